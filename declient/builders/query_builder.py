"""Query string serialization.

Values are flattened to ordered (key, value) string pairs according to the
shape of their declared type. Records (pydantic models and dataclasses) are
flattened field by field through a mapper that is computed once per record
class; the same mapper backs form bodies.
"""

import dataclasses
import functools
import typing
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, urlencode

from pydantic import BaseModel

from declient.builders.values import stringify
from declient.compiler.types import (
    CollectionFormat,
    RenameRule,
    TypeDescriptor,
    TypeKind,
    describe_type,
    is_record_type,
)
from declient.exceptions import SerializationError
from declient.params import QUERY_STRUCT_ATTR, QueryField

__all__ = [
    'QUERY_SAFE',
    'QueryFieldPlan',
    'encode_form',
    'encode_query',
    'form_pairs',
    'query_pairs',
    'struct_query_pairs',
    'struct_query_plan',
]

# Characters kept literal in query keys and values besides the unreserved set.
QUERY_SAFE = "!$'()*,;:@/?"

Pairs = list[tuple[str, str]]


@dataclass(frozen=True)
class QueryFieldPlan:
    """How one record field is flattened.

    Attributes:
        attribute: Attribute name read from the record instance.
        key: Query key after renaming.
        descriptor: Shape of the field's declared type.
        format: Collection format for list-valued fields.
    """

    attribute: str
    key: str
    descriptor: TypeDescriptor
    format: CollectionFormat = CollectionFormat.MULTI


def _record_fields(record_type: type) -> Iterable[tuple[str, Any, QueryField | None, str | None]]:
    """Yield (name, annotation, query options, alias) in declaration order."""
    if issubclass(record_type, BaseModel):
        for name, info in record_type.model_fields.items():
            options = next(
                (item for item in info.metadata if isinstance(item, QueryField)), None
            )
            alias = info.serialization_alias or info.alias
            yield name, info.annotation, options, alias
        return

    hints = typing.get_type_hints(record_type, include_extras=True)
    for record_field in dataclasses.fields(record_type):
        annotation = hints.get(record_field.name, Any)
        options = None
        if typing.get_origin(annotation) is typing.Annotated:
            options = next(
                (
                    item
                    for item in typing.get_args(annotation)[1:]
                    if isinstance(item, QueryField)
                ),
                None,
            )
        yield record_field.name, annotation, options, None


@functools.cache
def struct_query_plan(record_type: type) -> tuple[QueryFieldPlan, ...]:
    """Compute the field mapping of a record class.

    Key precedence: an explicit field rename (``QueryField(rename=...)``,
    then a pydantic alias), else the class-level rename rule set with
    ``@query_struct``, else the field name.

    Raises:
        UnknownFormatError: If the rename rule or a field format is unknown.
    """
    if not is_record_type(record_type):
        raise TypeError(f'{record_type!r} is not a pydantic model or dataclass')

    options = getattr(record_type, QUERY_STRUCT_ATTR, None)
    rule = None
    if options is not None and options.rename_all is not None:
        rule = RenameRule.parse(options.rename_all)

    plan = []
    for name, annotation, field_options, alias in _record_fields(record_type):
        if field_options is not None and field_options.rename:
            key = field_options.rename
        elif alias:
            key = alias
        elif rule is not None:
            key = rule.apply(name)
        else:
            key = name
        collection_format = CollectionFormat.parse(
            field_options.format if field_options is not None else None
        )
        plan.append(
            QueryFieldPlan(
                attribute=name,
                key=key,
                descriptor=describe_type(annotation),
                format=collection_format,
            )
        )
    return tuple(plan)


def query_pairs(
    key: str,
    value: Any,
    descriptor: TypeDescriptor,
    collection_format: CollectionFormat = CollectionFormat.MULTI,
) -> Pairs:
    """Flatten one query parameter value.

    Args:
        key: Query key used for the produced pairs.
        value: The argument value.
        descriptor: Shape of the declared type.
        collection_format: Layout of list values.

    Returns:
        Zero or more (key, value) pairs, in order.
    """
    match descriptor.kind:
        case TypeKind.OPTIONAL:
            if value is None:
                return []
            return query_pairs(key, value, descriptor.inner, collection_format)
        case TypeKind.LIST:
            items = [value] if isinstance(value, (str, bytes)) else list(value)
            if collection_format is CollectionFormat.MULTI:
                return [(key, stringify(item)) for item in items]
            if not items:
                return []
            separator = collection_format.separator
            return [(key, separator.join(stringify(item) for item in items))]
        case TypeKind.RECORD:
            return struct_query_pairs(value, descriptor.annotation)
        case TypeKind.MAPPING:
            return _mapping_pairs(value, descriptor.inner, collection_format)
    return [(key, stringify(value))]


def _mapping_pairs(
    value: Mapping, inner: TypeDescriptor, collection_format: CollectionFormat
) -> Pairs:
    pairs = []
    for entry_key, entry_value in value.items():
        if inner.kind is TypeKind.PRIMITIVE and isinstance(entry_value, (list, tuple)):
            entry_descriptor = describe_type(list)
        elif inner.kind is TypeKind.PRIMITIVE and entry_value is None:
            continue
        else:
            entry_descriptor = inner
        pairs.extend(
            query_pairs(str(entry_key), entry_value, entry_descriptor, collection_format)
        )
    return pairs


def struct_query_pairs(value: Any, record_type: type | None = None) -> Pairs:
    """Flatten a record instance field by field.

    Args:
        value: A pydantic model or dataclass instance, or a plain mapping.
        record_type: The declared record class; defaults to the value's class.
    """
    if value is None:
        return []
    if isinstance(value, Mapping):
        return _mapping_pairs(value, describe_type(Any), CollectionFormat.MULTI)
    if record_type is None or not isinstance(value, record_type):
        record_type = type(value)
    if not is_record_type(record_type):
        raise SerializationError(
            f'{type(value).__name__} is not a record and cannot be flattened'
        )
    plan = struct_query_plan(record_type)
    pairs = []
    for field_plan in plan:
        try:
            field_value = getattr(value, field_plan.attribute)
            pairs.extend(
                query_pairs(
                    field_plan.key, field_value, field_plan.descriptor, field_plan.format
                )
            )
        except SerializationError as e:
            raise e.within(field_plan.key) from e
    return pairs


def form_pairs(value: Any, descriptor: TypeDescriptor) -> Pairs:
    """Flatten a form body; lists become repeated keys."""
    match descriptor.kind:
        case TypeKind.OPTIONAL:
            if value is None:
                return []
            return form_pairs(value, descriptor.inner)
        case TypeKind.RECORD | TypeKind.MAPPING:
            return query_pairs('', value, descriptor)
    if isinstance(value, Mapping) or is_record_type(type(value)):
        return struct_query_pairs(value)
    raise SerializationError(
        f'form bodies must be records or mappings, not {type(value).__name__}'
    )


def encode_query(pairs: Iterable[tuple[str, str]]) -> str:
    """Percent-encode pairs into a query string (space becomes ``%20``)."""
    return '&'.join(
        f'{quote(key, safe=QUERY_SAFE)}={quote(value, safe=QUERY_SAFE)}'
        for key, value in pairs
    )


def encode_form(pairs: Iterable[tuple[str, str]]) -> bytes:
    """Encode pairs as ``application/x-www-form-urlencoded`` (space becomes ``+``)."""
    return urlencode(list(pairs)).encode('ascii')
