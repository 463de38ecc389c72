import logging
import os.path

from wasmworkers.workers.tools import MissingToolError

logger = logging.getLogger(__name__)

WAT_SUFFIX = '.wat'
WASM_SUFFIX = '.wasm'
WAT2WASM = 'wat2wasm'


def wasm_filename(input_filename):
    if is_wat(input_filename):
        return input_filename[:-len(WAT_SUFFIX)] + WASM_SUFFIX
    return input_filename


def is_wat(input_filename):
    return input_filename.lower().endswith(WAT_SUFFIX)


class WasmerBackend(object):
    """Builds object files with ``wasmer create-obj``.

       ``create-obj`` only accepts binary modules, so ``.wat`` sources are
       first converted with the ``wat2wasm`` tool.
    """
    key = 'wasmer'
    lang = 'wasm'
    compiler = 'wasmer'
    subcommand = 'create-obj'
    options = []

    def options_for_filter(self, filters, output_filename, user_options):
        # create-obj never emits anything but an object file
        filters.binary = True
        return ['-o', output_filename]

    def order_arguments(self, options, input_filename, lib_includes,
                        lib_options, lib_paths, lib_links, user_options,
                        static_lib_links):
        return ([self.subcommand] + list(options) + list(lib_includes)
                + list(lib_options) + list(lib_paths) + list(lib_links)
                + list(user_options) + list(static_lib_links)
                + [wasm_filename(input_filename)])

    def get_output_filename(self, dir_path, output_filebase):
        return os.path.join(dir_path, '%s.obj' % output_filebase)

    def get_shared_library_paths_as_arguments(self, lib_paths):
        # The wasmer driver has no -Wl,-rpath equivalent.
        return []

    def run_compiler(self, driver, compiler, options, input_filename,
                     exec_options=None):
        if exec_options is None:
            exec_options = driver.default_exec_options()

        if is_wat(input_filename):
            wat2wasm = driver.tools.find(WAT2WASM)
            if wat2wasm is None:
                raise MissingToolError(WAT2WASM)

            wat = input_filename
            input_filename = wasm_filename(wat)
            logger.debug('converting %s to %s', wat, input_filename)
            compilation_info = {'compiler': {'lang': self.lang}}
            renv = wat2wasm.run_tool(compilation_info, wat,
                                     ['-o', input_filename])
            if renv['return_code']:
                return renv

        return driver.run_compiler(compiler, options, input_filename,
                                   exec_options)
