import os
import resource
import signal
import subprocess
import logging

from wasmworkers.workers.util import ceil_ms2s, ms2s, s2ms, tempcwd, PerfTimer

logger = logging.getLogger(__name__)


class ExecError(RuntimeError):
    pass


def _limits(mem_limit, time_limit):
    def preexec():
        os.setpgrp()
        if mem_limit:
            size = mem_limit * 1024
            resource.setrlimit(resource.RLIMIT_AS, (size, size))
        if time_limit:
            secs = ceil_ms2s(time_limit)
            resource.setrlimit(resource.RLIMIT_CPU, (secs, secs))
    return preexec


class LocalExecutor(object):
    """Runs an argument vector as a local process.

    Usage::

        with LocalExecutor() as executor:
            renv = executor(['wasmer', 'create-obj', ...], capture_output=True)

    ``mem_limit`` (KiB), ``time_limit`` and ``real_time_limit`` (ms) and
    ``output_limit`` (bytes) may be overridden by ``environ`` keys with
    the given ``environ_prefix``, e.g. ``compilation_time_limit``.

    The returned renv holds ``return_code`` and ``real_time_used``,
    ``stdout`` when ``capture_output`` is set, and ``real_time_killed``
    when the wall clock limit was hit.
    """

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        pass

    def __call__(self, command, ignore_errors=False, capture_output=False,
                 forward_stderr=False, mem_limit=None, time_limit=None,
                 real_time_limit=None, output_limit=None, environ=None,
                 environ_prefix='', cwd=None):
        if environ:
            mem_limit = environ.get(environ_prefix + 'mem_limit', mem_limit)
            time_limit = environ.get(environ_prefix + 'time_limit', time_limit)
            real_time_limit = environ.get(environ_prefix + 'real_time_limit',
                                          real_time_limit)
            output_limit = environ.get(environ_prefix + 'output_limit',
                                       output_limit)
        if time_limit and real_time_limit is None:
            real_time_limit = 2 * time_limit

        env = os.environ.copy()
        env['LC_ALL'] = 'en_US.UTF-8'
        env['LANGUAGE'] = 'en_US.UTF-8'

        logger.info('Executing: %s', ' '.join(command))
        renv = {}
        perf_timer = PerfTimer()
        try:
            p = subprocess.Popen(
                    command,
                    stdout=capture_output and subprocess.PIPE
                           or subprocess.DEVNULL,
                    stderr=forward_stderr and subprocess.STDOUT
                           or subprocess.DEVNULL,
                    env=env,
                    cwd=cwd or tempcwd(),
                    preexec_fn=_limits(mem_limit, time_limit))
        except OSError as e:
            if not ignore_errors:
                raise ExecError('Failed to execute command: %s (%s)'
                                % (command, e))
            return {'return_code': 127, 'real_time_used': 0,
                    'stdout': str(e).encode()}

        try:
            output, _ = p.communicate(
                    timeout=ms2s(real_time_limit) if real_time_limit else None)
        except subprocess.TimeoutExpired:
            os.killpg(p.pid, signal.SIGKILL)
            output, _ = p.communicate()
            renv['real_time_killed'] = True

        renv['return_code'] = p.returncode
        renv['real_time_used'] = s2ms(perf_timer.elapsed)
        logger.debug('Command "%s" exited with code %d, took %.2fs',
                     command[0], p.returncode, perf_timer.elapsed)

        if capture_output:
            renv['stdout'] = output[:output_limit] if output_limit else output

        if p.returncode and not ignore_errors:
            raise ExecError('Failed to execute command: %s. Returned with '
                            'code %s\n' % (command, p.returncode))
        return renv
