"""Auxiliary tools a compiler backend may call before or after compiling.

Tools are identified by a capability id (e.g. ``wat2wasm``) rather than by
the name or version of the executable implementing them. A job lists the
tools available to it in ``environ['tools']``::

    environ['tools'] = {
        'wat2wasm': '/opt/wabt/bin/wat2wasm',
        'wasm-opt': {'exe': '/usr/bin/wasm-opt', 'options': ['-O2']},
    }
"""
import logging
import os

import attr

from wasmworkers.workers.executors import LocalExecutor

logger = logging.getLogger(__name__)

#: Process environment variable naming a default ``wat2wasm`` executable.
WAT2WASM_ENV = 'WASMWORKERS_WAT2WASM'


class ToolError(RuntimeError):
    pass


class MissingToolError(ToolError):
    """Raised when a backend needs a tool which was not configured."""

    def __init__(self, capability):
        super(MissingToolError, self).__init__('%s not found' % capability)
        self.capability = capability


@attr.s(frozen=True)
class ToolDescriptor(object):
    id = attr.ib()
    exe = attr.ib()
    name = attr.ib(default=None)
    options = attr.ib(default=(), converter=tuple)

    @classmethod
    def from_config(cls, capability, config):
        if isinstance(config, dict):
            return cls(id=capability, exe=config['exe'],
                       name=config.get('name'),
                       options=config.get('options', ()))
        return cls(id=capability, exe=config)


class Tool(object):
    def __init__(self, descriptor, executor=None):
        self.descriptor = descriptor
        self.executor = executor or LocalExecutor()

    @property
    def id(self):
        return self.descriptor.id

    def run_tool(self, compilation_info, input_path, extra_args=()):
        """Runs the tool on ``input_path`` and returns its renv.

           ``compilation_info`` only identifies the calling compiler; the
           tool does not inherit its working directory or environment.
           A non-zero ``return_code`` is reported, not raised.
        """
        lang = compilation_info.get('compiler', {}).get('lang', '')
        cmdline = [self.descriptor.exe] + list(self.descriptor.options) \
                + list(extra_args) + [input_path]
        logger.debug('running tool %s for %s', self.id, lang)
        with self.executor as executor:
            renv = executor(cmdline, ignore_errors=True, capture_output=True,
                            forward_stderr=True)
        if renv['return_code']:
            logger.debug('tool %s failed with code %d', self.id,
                         renv['return_code'])
        return renv


class ToolRegistry(object):
    def __init__(self, tools=()):
        self._tools = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool):
        self._tools[tool.id] = tool

    def find(self, capability):
        """Returns the tool providing ``capability`` or ``None``."""
        return self._tools.get(capability)

    def __contains__(self, capability):
        return capability in self._tools

    def __len__(self):
        return len(self._tools)

    @classmethod
    def from_environ(cls, environ, executor=None):
        config = dict(environ.get('tools', {}))
        if 'wat2wasm' not in config and os.environ.get(WAT2WASM_ENV):
            config['wat2wasm'] = os.environ[WAT2WASM_ENV]
        return cls(Tool(ToolDescriptor.from_config(capability, value),
                        executor)
                   for capability, value in sorted(config.items()))
