"""File writing utilities for generated Python code.

This module writes generated modules with syntax checking. Output paths
are universal paths, so generated code can be written to any filesystem
fsspec supports as well as to local directories.
"""

import ast
import logging

from upath import UPath

from declient.exceptions import CodeGenerationError, OutputError

logger = logging.getLogger(__name__)


class PythonFileWriter:
    """Writes Python AST modules to files with validation.

    Example:
        >>> writer = PythonFileWriter()
        >>> body = [ast.Import(names=[ast.alias(name='sys')])]
        >>> writer.write(body, 'generated/client.py')
    """

    def render(self, body: list[ast.stmt]) -> str:
        """Unparse statements into validated source code.

        Raises:
            CodeGenerationError: If the generated code is not valid Python.
        """
        mod = ast.Module(body=body, type_ignores=[])
        ast.fix_missing_locations(mod)
        source = ast.unparse(mod) + '\n'
        try:
            compile(source, '<generated>', 'exec')
        except SyntaxError as e:
            raise CodeGenerationError('generated code is not valid Python', cause=e) from e
        return source

    def write(self, body: list[ast.stmt], path: UPath | str) -> UPath:
        """Write a list of AST statements to a Python file.

        Args:
            body: List of AST statement nodes to write.
            path: Path where the file should be written.

        Returns:
            The written path.

        Raises:
            CodeGenerationError: If the generated code is not valid Python.
            OutputError: If the file cannot be written.
        """
        path = UPath(path)
        source = self.render(body)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(source, encoding='utf-8')
        except OSError as e:
            raise OutputError(str(path), cause=e) from e
        logger.debug(f'Wrote {len(source)} characters to {path}')
        return path

    def write_init_file(self, directory: UPath | str) -> None:
        """Create an empty __init__.py file in the specified directory."""
        directory = UPath(directory)
        init_file = directory / '__init__.py'

        if not init_file.exists():
            directory.mkdir(parents=True, exist_ok=True)
            init_file.touch()
