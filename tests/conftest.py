"""Shared fixtures and executor test doubles."""
import pytest

from wasmworkers.workers.util import TemporaryCwd


class RecordingExecutor(object):
    """Executor double recording each command instead of running it.

       Every command creates the file named after its ``-o`` flag, unless
       it is listed in ``fail`` (matched against the first argument).
    """

    def __init__(self, fail=(), stdout=b''):
        self.calls = []
        self.fail = fail
        self.stdout = stdout

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        pass

    def __call__(self, command, **kwargs):
        self.calls.append((list(command), kwargs))
        if command[0] in self.fail:
            return {'return_code': 1, 'stdout': self.stdout,
                    'real_time_used': 0}
        if '-o' in command:
            with open(command[command.index('-o') + 1], 'wb') as f:
                f.write(b'\0asm')
        return {'return_code': 0, 'stdout': self.stdout, 'real_time_used': 0}

    @property
    def commands(self):
        return [command for command, _ in self.calls]


@pytest.fixture
def executor():
    return RecordingExecutor()


@pytest.fixture
def tmpcwd():
    with TemporaryCwd() as cwd:
        yield cwd.path


@pytest.fixture
def make_executor():
    return RecordingExecutor
