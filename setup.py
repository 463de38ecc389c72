from setuptools import setup, find_packages
setup(
    name = "wasmworkers",
    version = '1.0',
    description = "Compiler invocation workers for WebAssembly toolchains",
    license = 'GPL',

    packages = find_packages(exclude=['tests', 'tests.*']),

    install_requires = [
        'attrs>=20.3.0',
        'importlib-metadata>=3.6',
    ],

    extras_require = {
        'test': [
            'pytest',
            'PyHamcrest',
        ],
    },

    entry_points = {
        'wasmworkers.backends': [
            # Default extension backends:
            'default-wat = wasmworkers.compilers.wasmer:WasmerBackend',
            'default-wasm = wasmworkers.compilers.wasmer:WasmerBackend',
            'default-c = wasmworkers.compilers.common:DefaultBackend',

            'wasmer = wasmworkers.compilers.wasmer:WasmerBackend',
            'cc = wasmworkers.compilers.common:DefaultBackend',
        ],
        'console_scripts': [
            'wasm-compile = wasmworkers.compilers.job:main',
        ]
    }
)
