import sys
import os.path
import json
import logging

from wasmworkers.compilers.common import Compiler, get_backend
from wasmworkers.workers.util import threadlocal_dir

logger = logging.getLogger(__name__)


def run(environ, tools=None, executor=None):
    if 'compiler' not in environ:
        _, extension = os.path.splitext(environ['source_file'])
        environ['compiler'] = 'default-' + extension[1:].lower()

    logger.debug("running compile job %s %s", environ['compiler'],
                 environ.get('task_id', ''))

    backend = get_backend(environ['compiler'].split('.')[0])
    environ = Compiler(backend, tools, executor).compile(environ)
    assert 'compiler_output' in environ, \
        "Mandatory key 'compiler_output' not returned by job."
    assert 'result_code' in environ, \
        "Mandatory key 'result_code' not returned by job."
    return environ


def main():
    if len(sys.argv) < 2:
        print("""Usage: %s source [compiler [extra_compilation_args ...]]

   The source path is relative to the current directory. Set
   WASMWORKERS_WAT2WASM to compile .wat sources.""" \
              % sys.argv[0].split('/')[-1])
        raise SystemExit(1)

    logging.basicConfig(level=logging.DEBUG)

    environ = {
            'source_file': sys.argv[1],
            'extra_compilation_args': sys.argv[3:],
        }
    if len(sys.argv) > 2:
        compiler = sys.argv[2].lower()
        if compiler in ('wat', 'wasm', 'c'):
            compiler = 'default-' + compiler
        environ['compiler'] = compiler

    # Compile in place instead of in a temporary directory
    threadlocal_dir.tmpdir = os.getcwd()

    run(environ)
    print(json.dumps(environ))
