"""Rendering runtime type annotations and values back into source."""

import ast
import builtins
import enum
import sys
import types
import typing
from typing import Any

from declient.codegen.ast_utils import (
    ImportCollector,
    _attr,
    _constant,
    _name,
    _subscript,
    _tuple,
    _union_expr,
)
from declient.exceptions import CodeGenerationError

__all__ = ['annotation_expr', 'value_expr']

_BUILTIN_GENERICS = {list, dict, tuple, set, frozenset, type}


def _class_expr(cls: type, imports: ImportCollector) -> ast.expr:
    if cls.__module__ == 'builtins' and getattr(builtins, cls.__name__, None) is cls:
        return _name(cls.__name__)
    if '<locals>' in cls.__qualname__:
        raise CodeGenerationError(
            f'{cls.__qualname__} is defined inside a function and cannot be imported',
            context=cls.__qualname__,
        )
    head, *rest = cls.__qualname__.split('.')
    module = cls.__module__
    # Prefer the public package over a private submodule (httpx._models).
    package = module.partition('.')[0]
    if package != module and getattr(sys.modules.get(package), head, None) is cls:
        module = package
    imports.add_import(module, head)
    expr: ast.expr = _name(head)
    for part in rest:
        expr = _attr(expr, part)
    return expr


def _typing_expr(name: str, imports: ImportCollector) -> ast.Name:
    imports.add_import('typing', name)
    return _name(name)


def annotation_expr(annotation: Any, imports: ImportCollector) -> ast.expr:
    """Render a runtime annotation as an expression, collecting its imports.

    ``Annotated`` metadata is dropped; unrepresentable annotations (type
    variables, forward references) become ``Any``.
    """
    if annotation is None or annotation is type(None):
        return _constant(None)
    if annotation is Any:
        return _typing_expr('Any', imports)

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is typing.Annotated:
        return annotation_expr(args[0], imports)
    if origin is typing.Union or origin is types.UnionType:
        return _union_expr([annotation_expr(arg, imports) for arg in args])
    if origin is typing.Literal:
        elts = [value_expr(arg, imports) for arg in args]
        return _subscript(
            _typing_expr('Literal', imports), elts[0] if len(elts) == 1 else _tuple(elts)
        )
    if origin is not None and isinstance(origin, type):
        if origin in _BUILTIN_GENERICS:
            generic: ast.expr = _name(origin.__name__)
        elif origin.__module__ == 'collections.abc':
            imports.add_import('collections.abc', origin.__name__)
            generic = _name(origin.__name__)
        else:
            generic = _class_expr(origin, imports)
        if not args:
            return generic
        elts = [
            _constant(...) if arg is Ellipsis else annotation_expr(arg, imports)
            for arg in args
        ]
        return _subscript(generic, elts[0] if len(elts) == 1 else _tuple(elts))
    if isinstance(annotation, type):
        return _class_expr(annotation, imports)
    return _typing_expr('Any', imports)


def value_expr(value: Any, imports: ImportCollector) -> ast.expr:
    """Render a default value as an expression.

    Raises:
        CodeGenerationError: If the value has no literal source form.
    """
    if isinstance(value, enum.Enum):
        return _attr(_class_expr(type(value), imports), value.name)
    if value is None or isinstance(value, (bool, int, float, str, bytes)):
        return _constant(value)
    if isinstance(value, (tuple, list)):
        elts = [value_expr(item, imports) for item in value]
        if isinstance(value, list):
            return ast.List(elts=elts, ctx=ast.Load())
        return _tuple(elts)
    if isinstance(value, (frozenset, set)) and value:
        return ast.Set(elts=[value_expr(item, imports) for item in sorted(value, key=repr)])
    if isinstance(value, dict):
        return ast.Dict(
            keys=[value_expr(key, imports) for key in value],
            values=[value_expr(item, imports) for item in value.values()],
        )
    raise CodeGenerationError(
        f'default value {value!r} of type {type(value).__name__} cannot be written as source'
    )

