"""Generic compilation machinery shared by all compiler backends.

A backend is a plain object selected by its key (``environ['compiler']``)
which customizes how a :class:`Compiler` builds the command line, names
the output file and runs the compiler. Every backend provides:

``key``, ``lang``, ``compiler``, ``options``
  Identifier, language tag, default executable and extra default options.

``options_for_filter(filters, output_filename, user_options)``
  Flags selecting the kind of output. May mutate ``filters``.

``order_arguments(options, input_filename, lib_includes, lib_options,
lib_paths, lib_links, user_options, static_lib_links)``
  The complete argument vector passed to the compiler executable.

``get_output_filename(dir_path, output_filebase)``
  Path of the produced artifact.

``get_shared_library_paths_as_arguments(lib_paths)``
  Flags for library search paths, both link-time and run-time.

``run_compiler(driver, compiler, options, input_filename, exec_options)``
  Runs the compilation, usually by calling ``driver.run_compiler``.

Backends are registered in the ``wasmworkers.backends`` entry point group
or with :func:`register_backend`.
"""
import logging
import os.path

import attr

from wasmworkers.workers.executors import LocalExecutor
from wasmworkers.workers.tools import ToolRegistry
from wasmworkers.workers.util import (first_entry_point, replace_invalid_UTF,
        tempcwd)

logger = logging.getLogger(__name__)

DEFAULT_COMPILER_TIME_LIMIT = 30000  # in ms
DEFAULT_COMPILER_MEM_LIMIT = 256 * 2**10  # in KiB
DEFAULT_COMPILER_OUTPUT_LIMIT = 5 * 2**20  # in bytes
DEFAULT_OUTPUT_FILEBASE = 'output'

BACKENDS_GROUP = 'wasmworkers.backends'

_backends = {}


def register_backend(key, factory):
    _backends[key] = factory


def get_backend(key):
    """Returns a new instance of the backend registered as ``key``.

       Raises :exc:`KeyError` for unknown keys.
    """
    if key in _backends:
        return _backends[key]()
    return first_entry_point(BACKENDS_GROUP, key)()


def _list(value):
    return list(value or [])


@attr.s
class CompilationRequest(object):
    source_file = attr.ib()
    includes = attr.ib(factory=list)
    lib_options = attr.ib(factory=list)
    lib_paths = attr.ib(factory=list)
    lib_links = attr.ib(factory=list)
    user_options = attr.ib(factory=list)
    static_lib_links = attr.ib(factory=list)
    output_filebase = attr.ib(default=DEFAULT_OUTPUT_FILEBASE)
    working_dir = attr.ib(default=None)

    @property
    def input_filename(self):
        return os.path.join(self.working_dir or tempcwd(), self.source_file)

    @classmethod
    def from_environ(cls, environ):
        return cls(
                source_file=environ['source_file'],
                includes=_list(environ.get('includes')),
                lib_options=_list(environ.get('lib_options')),
                lib_paths=_list(environ.get('lib_paths')),
                lib_links=_list(environ.get('lib_links')),
                user_options=_list(environ.get('extra_compilation_args')),
                static_lib_links=_list(environ.get('static_lib_links')),
                output_filebase=environ.get('output_filebase',
                                            DEFAULT_OUTPUT_FILEBASE),
                working_dir=tempcwd(environ.get('working_dir')))


@attr.s
class OutputFilters(object):
    binary = attr.ib(default=False)
    binary_object = attr.ib(default=False)

    @classmethod
    def from_environ(cls, environ):
        return cls(**environ.get('filters', {}))


class DefaultBackend(object):
    """A cc-style compiler producing an object file."""
    key = 'cc'
    lang = 'c'
    compiler = 'cc'
    options = ['-O2']

    def options_for_filter(self, filters, output_filename, user_options):
        filters.binary_object = True
        return ['-c', '-o', output_filename]

    def order_arguments(self, options, input_filename, lib_includes,
                        lib_options, lib_paths, lib_links, user_options,
                        static_lib_links):
        return (list(options) + [input_filename] + list(lib_includes)
                + list(lib_options) + list(lib_paths) + list(lib_links)
                + list(user_options) + list(static_lib_links))

    def get_output_filename(self, dir_path, output_filebase):
        return os.path.join(dir_path, '%s.o' % output_filebase)

    def get_shared_library_paths_as_arguments(self, lib_paths):
        args = []
        for path in lib_paths:
            args.append('-Wl,-rpath,' + path)
            args.append('-L' + path)
        return args

    def run_compiler(self, driver, compiler, options, input_filename,
                     exec_options=None):
        return driver.run_compiler(compiler, options, input_filename,
                                   exec_options)


class Compiler(object):
    """Runs a compilation job through a backend.

       ``tools`` is a :class:`ToolRegistry`; when not given, each job
       builds its own from its ``environ``.
    """

    def __init__(self, backend, tools=None, executor=None):
        self.backend = backend
        self.default_tools = tools
        self.tools = None
        self.executor = executor or LocalExecutor()
        self.environ = None
        self.request = None
        self.filters = None
        self.output_filename = None

    def compile(self, environ):
        self.environ = environ
        self.request = CompilationRequest.from_environ(environ)
        self.filters = OutputFilters.from_environ(environ)
        self.tools = self.default_tools
        if self.tools is None:
            self.tools = ToolRegistry.from_environ(environ,
                                                  executor=self.executor)

        backend = self.backend
        request = self.request
        input_filename = request.input_filename
        self.output_filename = backend.get_output_filename(
                os.path.dirname(input_filename), request.output_filebase)

        options = list(backend.options_for_filter(self.filters,
                self.output_filename, request.user_options))
        options.extend(backend.options)

        args = backend.order_arguments(
                options,
                input_filename,
                ['-I' + path for path in request.includes],
                request.lib_options,
                backend.get_shared_library_paths_as_arguments(
                    request.lib_paths),
                ['-l' + lib for lib in request.lib_links],
                request.user_options,
                request.static_lib_links)

        compiler = environ.get('compiler_path') or backend.compiler
        renv = backend.run_compiler(self, compiler, args, input_filename,
                                    None)
        return self._postprocess(renv)

    def default_exec_options(self):
        return dict(
                time_limit=DEFAULT_COMPILER_TIME_LIMIT,
                mem_limit=DEFAULT_COMPILER_MEM_LIMIT,
                output_limit=DEFAULT_COMPILER_OUTPUT_LIMIT,
                ignore_errors=True,
                capture_output=True,
                forward_stderr=True,
                environ=self.environ,
                environ_prefix='compilation_',
                cwd=self.request and self.request.working_dir)

    def run_compiler(self, compiler, options, input_filename,
                     exec_options=None):
        """Runs ``compiler`` with ``options`` and returns its renv.

           ``options`` already contains ``input_filename``.
        """
        if exec_options is None:
            exec_options = self.default_exec_options()
        logger.debug('compiling %s with %s (%s)', input_filename, compiler,
                     self.backend.key)
        with self.executor as executor:
            return executor([compiler] + list(options), **exec_options)

    def _postprocess(self, renv):
        environ = self.environ
        environ['compiler_output'] = replace_invalid_UTF(
                renv.get('stdout', b''))
        if renv['return_code']:
            environ['result_code'] = 'CE'
        elif not os.path.exists(self.output_filename):
            logger.warning('compiler did not produce %s',
                           self.output_filename)
            environ['result_code'] = 'CE'
            environ['compiler_output'] += '\nOutput file %s not produced' \
                    % os.path.basename(self.output_filename)
        elif 'compilation_result_size_limit' in environ and \
                os.path.getsize(self.output_filename) > \
                environ['compilation_result_size_limit']:
            environ['result_code'] = 'CE'
            environ['compiler_output'] = 'Compiled file size limit exceeded.'
        else:
            environ['result_code'] = 'OK'
            environ['out_file'] = self.output_filename
            environ['exec_info'] = {'mode': 'object'}
        return environ
