"""Unit tests for the wasmer backend."""
import os.path

import pytest
from hamcrest import (assert_that, calling, contains_exactly, empty,
        equal_to, has_properties, is_, none, raises)

from wasmworkers.compilers.common import OutputFilters
from wasmworkers.compilers.wasmer import WasmerBackend, is_wat, wasm_filename
from wasmworkers.workers.tools import (MissingToolError, Tool,
        ToolDescriptor, ToolRegistry)


class _Driver(object):
    """Stands in for :class:`Compiler`, recording the main step."""

    def __init__(self, tools):
        self.tools = tools
        self.calls = []

    def default_exec_options(self):
        return {'time_limit': 1234}

    def run_compiler(self, compiler, options, input_filename,
                     exec_options=None):
        self.calls.append((compiler, options, input_filename, exec_options))
        return {'return_code': 0, 'stdout': b''}


def _registry(executor):
    return ToolRegistry([Tool(ToolDescriptor('wat2wasm', 'wat2wasm'),
                              executor)])


GROUPS = [
    ([], [], [], [], [], []),
    (['-Ia'], [], ['-Lx'], [], ['--enable-all'], []),
    (['-Ib', '-Ia', '-Ib'], ['--x'], [], ['-lz', '-lm'], [], ['libs.a']),
    ([], [], [], [], [], ['b.a', 'a.a', 'b.a']),
]


@pytest.mark.parametrize('groups', GROUPS)
def test_order_arguments_concatenates_groups(groups):
    args = WasmerBackend().order_arguments([], 'dir/m.wasm', *groups)
    expected = ['create-obj']
    for group in groups:
        expected.extend(group)
    expected.append('dir/m.wasm')
    assert_that(args, equal_to(expected))


def test_order_arguments_puts_options_after_subcommand():
    args = WasmerBackend().order_arguments(
            ['-o', '/w/output.obj'], '/w/foo.wat',
            ['-I/inc'], [], [], [], ['--enable-threads'], [])
    assert_that(args, contains_exactly('create-obj', '-o', '/w/output.obj',
            '-I/inc', '--enable-threads', '/w/foo.wasm'))


def test_order_arguments_does_not_mutate_groups():
    includes = ['-I1']
    WasmerBackend().order_arguments([], 'a.wasm', includes, [], [], [], [],
                                    [])
    assert_that(includes, equal_to(['-I1']))


@pytest.mark.parametrize('base', ['output', 'a', 'my.module'])
def test_output_filename_is_obj(base):
    assert_that(WasmerBackend().get_output_filename('/tmp/x', base),
                equal_to('/tmp/x/%s.obj' % base))


@pytest.mark.parametrize('filters', [
    OutputFilters(),
    OutputFilters(binary=False, binary_object=False),
    OutputFilters(binary=True, binary_object=True),
])
def test_options_for_filter_forces_binary(filters):
    options = WasmerBackend().options_for_filter(filters, '/w/output.obj',
                                                 ['-x'])
    assert_that(options, equal_to(['-o', '/w/output.obj']))
    assert_that(filters, has_properties(binary=True))


@pytest.mark.parametrize('paths', [[], ['/usr/lib'], ['/a', '/b']])
def test_no_shared_library_path_flags(paths):
    assert_that(WasmerBackend().get_shared_library_paths_as_arguments(paths),
                is_(empty()))


def test_wasm_filename_swaps_suffix_only():
    assert_that(wasm_filename('/w/foo.wat'), equal_to('/w/foo.wasm'))
    assert_that(wasm_filename('/w.wat/foo.wasm'),
                equal_to('/w.wat/foo.wasm'))
    assert_that(wasm_filename('foo.wat.wat'), equal_to('foo.wat.wasm'))
    assert_that(is_wat('/w/foo.wasm'), equal_to(False))


def test_wat_input_is_converted_first(tmpcwd, executor):
    wat = os.path.join(tmpcwd, 'foo.wat')
    wasm = os.path.join(tmpcwd, 'foo.wasm')
    driver = _Driver(_registry(executor))
    WasmerBackend().run_compiler(driver, 'wasmer', ['create-obj'], wat)

    assert_that(executor.commands, contains_exactly(
            ['wat2wasm', '-o', wasm, wat]))
    compiler, _, input_filename, exec_options = driver.calls[0]
    assert_that(compiler, equal_to('wasmer'))
    assert_that(input_filename, equal_to(wasm))
    assert_that(exec_options, equal_to({'time_limit': 1234}))


def test_missing_converter_aborts_before_main_step():
    driver = _Driver(ToolRegistry())
    assert_that(calling(WasmerBackend().run_compiler).with_args(
                    driver, 'wasmer', [], '/w/foo.wat'),
                raises(MissingToolError, 'wat2wasm not found'))
    assert_that(driver.calls, is_(empty()))


def test_converter_failure_is_the_result(make_executor):
    executor = make_executor(fail=('wat2wasm',), stdout=b'foo.wat:1: error')
    driver = _Driver(_registry(executor))
    renv = WasmerBackend().run_compiler(driver, 'wasmer', [], '/w/foo.wat')
    assert_that(renv['return_code'], equal_to(1))
    assert_that(renv['stdout'], equal_to(b'foo.wat:1: error'))
    assert_that(driver.calls, is_(empty()))


def test_binary_input_skips_conversion(executor):
    driver = _Driver(_registry(executor))
    WasmerBackend().run_compiler(driver, 'wasmer', [], '/w/foo.wasm',
                                 {'time_limit': 1})
    assert_that(executor.calls, is_(empty()))
    assert_that(driver.calls, contains_exactly(
            ('wasmer', [], '/w/foo.wasm', {'time_limit': 1})))


def test_binary_input_needs_no_converter():
    driver = _Driver(ToolRegistry())
    WasmerBackend().run_compiler(driver, 'wasmer', [], 'foo.wasm')
    assert_that(driver.calls[0][2], equal_to('foo.wasm'))


def test_converter_gets_only_language_tag():
    seen = []

    class _Tool(object):
        id = 'wat2wasm'

        def run_tool(self, compilation_info, input_path, extra_args=()):
            seen.append((compilation_info, input_path, list(extra_args)))
            return {'return_code': 0}

    driver = _Driver(ToolRegistry([_Tool()]))
    WasmerBackend().run_compiler(driver, 'wasmer', [], 'x/y.wat')
    assert_that(seen, contains_exactly(
            ({'compiler': {'lang': 'wasm'}}, 'x/y.wat', ['-o', 'x/y.wasm'])))
    assert_that(driver.tools.find('wat2wasm-missing'), is_(none()))


def test_wat_suffix_is_case_insensitive(tmpcwd, executor):
    assert_that(is_wat('/w/PROG.WAT'), equal_to(True))
    assert_that(wasm_filename('/w/PROG.WAT'), equal_to('/w/PROG.wasm'))

    driver = _Driver(_registry(executor))
    wat = os.path.join(tmpcwd, 'Prog.Wat')
    wasm = os.path.join(tmpcwd, 'Prog.wasm')
    WasmerBackend().run_compiler(driver, 'wasmer', [], wat)
    assert_that(executor.commands, contains_exactly(
            ['wat2wasm', '-o', wasm, wat]))
    assert_that(driver.calls[0][2], equal_to(wasm))
