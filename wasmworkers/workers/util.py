import logging
import math
import os
import shutil
import tempfile
import threading
import time

import importlib_metadata

logger = logging.getLogger(__name__)


def first_entry_point(group, name=None):
    """Returns the object referred to by the first entry point named
       ``name`` in ``group``.

       Raises :exc:`KeyError` if there is no such entry point.
    """
    for ep in importlib_metadata.entry_points(group=group):
        if name is None or ep.name == name:
            try:
                return ep.load()
            except ImportError as e:
                raise ImportError('ImportError while loading entry point '
                        '%r from group %r: %s' % (ep.name, group, e))
    raise KeyError("Module implementing %s %s not found." % (group, name))


def replace_invalid_UTF(a_string):
    """Replaces invalid UTF-8 sequences with U+FFFD."""
    if isinstance(a_string, bytes):
        return a_string.decode('utf-8', 'replace')
    return a_string


def ms2s(t):
    return t / 1000.0


def s2ms(t):
    return int(t * 1000)


def ceil_ms2s(t):
    return int(math.ceil(t / 1000.0))


class PerfTimer(object):
    def __init__(self):
        self.start_time = time.time()

    @property
    def elapsed(self):
        return time.time() - self.start_time


threadlocal_dir = threading.local()


def tempcwd(path=None):
    # Someone might have removed the tmpdir out from under us
    d = getattr(threadlocal_dir, 'tmpdir', None) or os.getcwd()
    if path is None:
        return d
    return os.path.join(d, path)


class TemporaryCwd(object):
    """Helper class for changing the working directory."""

    def __init__(self, inner_directory=None):
        self.extra = inner_directory
        self.path = None
        self.old_path = None

    def __enter__(self):
        self.path = tempfile.mkdtemp(prefix='wasmworkers_')
        logger.debug('Using temporary directory %s', self.path)
        p = self.path
        if self.extra:
            p = os.path.join(self.path, self.extra)
            os.mkdir(p)
        self.old_path = getattr(threadlocal_dir, 'tmpdir', None)
        threadlocal_dir.tmpdir = p
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        shutil.rmtree(self.path)
        threadlocal_dir.tmpdir = self.old_path
