"""AST utilities and import collection for code generation.

This module provides helper functions for building Python AST nodes
and utilities for collecting and organizing imports during code generation.
"""

import ast
import sys
from collections.abc import Iterable
from typing import Any

__all__ = [
    # AST helpers
    '_name',
    '_attr',
    '_subscript',
    '_union_expr',
    '_constant',
    '_tuple',
    '_list',
    '_argument',
    '_assign',
    '_call',
    '_keyword',
    '_with',
    '_func',
    '_async_func',
    '_docstring',
    '_all',
    # Import collection
    'ImportCollector',
]


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _attr(value: str | ast.expr, attr: str) -> ast.Attribute:
    return ast.Attribute(
        value=_name(value) if isinstance(value, str) else value,
        attr=attr,
        ctx=ast.Load(),
    )


def _subscript(generic: str | ast.expr, inner: ast.expr) -> ast.Subscript:
    value = _name(generic) if isinstance(generic, str) else generic
    return ast.Subscript(value=value, slice=inner, ctx=ast.Load())


def _union_expr(types: list[ast.expr]) -> ast.expr:
    # A | B | C (using pipe operator instead of Union[A, B, C])
    if not types:
        raise ValueError('_union_expr requires at least one type')
    result = types[0]
    for t in types[1:]:
        result = ast.BinOp(left=result, op=ast.BitOr(), right=t)
    return result


def _constant(value: Any) -> ast.Constant:
    return ast.Constant(value=value)


def _tuple(elts: Iterable[ast.expr]) -> ast.Tuple:
    return ast.Tuple(elts=list(elts), ctx=ast.Load())


def _list(elts: Iterable[ast.expr]) -> ast.List:
    return ast.List(elts=list(elts), ctx=ast.Load())


def _argument(name: str, value: ast.expr | None = None) -> ast.arg:
    return ast.arg(
        arg=name,
        annotation=value,
    )


def _assign(target: ast.expr, value: ast.expr) -> ast.Assign:
    # Ensure target has Store context
    if isinstance(target, ast.Name):
        target = ast.Name(id=target.id, ctx=ast.Store())
    elif isinstance(target, ast.Attribute):
        target.ctx = ast.Store()
    return ast.Assign(
        targets=[target],
        value=value,
    )


def _call(
    func: ast.expr,
    args: list[ast.expr] | None = None,
    keywords: list[ast.keyword] | None = None,
) -> ast.Call:
    return ast.Call(
        func=func,
        args=args or [],
        keywords=keywords or [],
    )


def _keyword(name: str, value: ast.expr) -> ast.keyword:
    return ast.keyword(arg=name, value=value)


def _with(context: ast.expr, body: list[ast.stmt]) -> ast.With:
    return ast.With(items=[ast.withitem(context_expr=context)], body=body)


def _arguments(
    args: list[ast.arg],
    defaults: list[ast.expr] | None,
    posonlyargs: list[ast.arg] | None,
    kwonlyargs: list[ast.arg] | None,
    kw_defaults: list[ast.expr | None] | None,
) -> ast.arguments:
    return ast.arguments(
        posonlyargs=posonlyargs or [],
        args=args,
        vararg=None,
        kwarg=None,
        kwonlyargs=kwonlyargs or [],
        kw_defaults=kw_defaults or [],
        defaults=defaults or [],
    )


def _func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    defaults: list[ast.expr] | None = None,
    posonlyargs: list[ast.arg] | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
) -> ast.FunctionDef:
    return ast.FunctionDef(
        name=name,
        args=_arguments(args, defaults, posonlyargs, kwonlyargs, kw_defaults),
        body=body,
        decorator_list=[],
        returns=returns,
        type_params=[],
    )


def _async_func(
    name: str,
    args: list[ast.arg],
    body: list[ast.stmt],
    returns: ast.expr | None = None,
    defaults: list[ast.expr] | None = None,
    posonlyargs: list[ast.arg] | None = None,
    kwonlyargs: list[ast.arg] | None = None,
    kw_defaults: list[ast.expr | None] | None = None,
) -> ast.AsyncFunctionDef:
    return ast.AsyncFunctionDef(
        name=name,
        args=_arguments(args, defaults, posonlyargs, kwonlyargs, kw_defaults),
        body=body,
        decorator_list=[],
        returns=returns,
        type_params=[],
    )


def _docstring(text: str) -> ast.Expr:
    return ast.Expr(value=_constant(text))


def _all(names: Iterable[str]) -> ast.Assign:
    return _assign(
        target=_name('__all__'),
        value=_tuple(_constant(name) for name in names),
    )


# =============================================================================
# Import Collection
# =============================================================================


class ImportCollector:
    """Collects and manages imports for generated Python code.

    This class provides a centralized way to collect imports from various
    sources during code generation and convert them to AST import statements.
    It automatically deduplicates imports and sorts them for consistent output.

    Example:
        >>> collector = ImportCollector()
        >>> collector.add_imports({'typing': {'Any'}})
        >>> collector.add_import('declient.transport', 'BoundTransport')
        >>> imports = collector.to_ast()
    """

    def __init__(self):
        """Initialize an empty import collector."""
        self._imports: dict[str, set[str]] = {}

    def add_imports(self, imports: dict[str, set[str]]) -> None:
        """Add imports from a dictionary mapping modules to sets of names.

        Args:
            imports: Dictionary mapping module names to sets of imported names.
        """
        for module, names in imports.items():
            self._imports.setdefault(module, set()).update(names)

    def add_import(self, module: str, name: str) -> None:
        """Add a single import.

        Args:
            module: The module to import from (e.g., 'typing', 'pydantic').
            name: The name to import (e.g., 'Any', 'TypeAdapter').
        """
        self._imports.setdefault(module, set()).add(name)

    def imported_names(self) -> set[str]:
        return {name for names in self._imports.values() for name in names}

    def duplicate_names(self) -> set[str]:
        """Names imported from more than one module."""
        seen: set[str] = set()
        duplicates: set[str] = set()
        for names in self._imports.values():
            duplicates |= seen & names
            seen |= names
        return duplicates

    def _get_import_category(self, module: str) -> int:
        """Get the sort category for a module.

        Returns:
            0 for standard library, 1 for third-party, 2 for local/relative imports.
        """
        if module.startswith('.'):
            return 2

        base_module = module.split('.')[0]
        if base_module in sys.stdlib_module_names:
            return 0

        return 1

    def to_ast(self) -> list[ast.ImportFrom]:
        """Convert collected imports to AST ImportFrom statements.

        Imports are sorted standard library first, then third-party, then
        relative imports; alphabetically within each group.

        Returns:
            List of ast.ImportFrom statements, properly sorted.
        """
        import_stmts = []

        sorted_modules = sorted(
            self._imports.items(),
            key=lambda x: (self._get_import_category(x[0]), x[0]),
        )

        for module, names in sorted_modules:
            if module.startswith('.'):
                level = len(module) - len(module.lstrip('.'))
                import_module = module.lstrip('.') or None
            else:
                level = 0
                import_module = module

            import_stmts.append(
                ast.ImportFrom(
                    module=import_module,
                    names=[ast.alias(name=name, asname=None) for name in sorted(names)],
                    level=level,
                )
            )
        return import_stmts

    def has_imports(self) -> bool:
        return bool(self._imports)
