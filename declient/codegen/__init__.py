"""Code generation module for declient.

This module writes compiled API declarations out as plain client functions,
one per endpoint, that share the runtime's request builders.

Main Components:
    - Codegen: Generates and writes the module for one configured API
    - ModuleEmitter: Builds the module AST for a compiled API class
    - PythonFileWriter: Validates and writes generated source

Example:
    >>> from declient.codegen import Codegen
    >>> from declient.config import DocumentConfig
    >>>
    >>> config = DocumentConfig(api='myproject.api:GitHub', output='./client')
    >>> Codegen(config).generate()
"""

from declient.codegen.ast_utils import ImportCollector
from declient.codegen.file_writer import PythonFileWriter
from declient.codegen.generator import Codegen, ModuleEmitter, load_api

__all__ = [
    'Codegen',
    'ImportCollector',
    'ModuleEmitter',
    'PythonFileWriter',
    'load_api',
]
