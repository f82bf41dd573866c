"""Request body encoding: JSON, form-urlencoded and multipart."""

from collections.abc import Iterable
from dataclasses import replace
from typing import Any

from pydantic import TypeAdapter
from pydantic_core import PydanticSerializationError

from declient.builders.multipart import DEFAULT_PART_CONTENT_TYPE, MultipartForm, Part
from declient.builders.query_builder import encode_form, form_pairs
from declient.compiler.types import TypeDescriptor, describe_type
from declient.exceptions import SerializationError

__all__ = [
    'FORM_CONTENT_TYPE',
    'JSON_CONTENT_TYPE',
    'encode_form_body',
    'encode_json_body',
    'encode_multipart_body',
    'multipart_parts',
]

JSON_CONTENT_TYPE = 'application/json'
FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded'

_ANY_ADAPTER = TypeAdapter(Any)

EncodedBody = tuple[str, bytes]


def encode_json_body(value: Any, adapter: TypeAdapter | None = None) -> EncodedBody:
    """Serialize a value to JSON, using field aliases.

    Args:
        value: The body argument.
        adapter: Serializer for the declared body type; any value is accepted
            when omitted.

    Returns:
        (content type, encoded bytes).
    """
    try:
        content = (adapter or _ANY_ADAPTER).dump_json(value, by_alias=True)
    except PydanticSerializationError as e:
        raise SerializationError(f'JSON serialization failed: {e}') from e
    return JSON_CONTENT_TYPE, content


def encode_form_body(value: Any, descriptor: TypeDescriptor | None = None) -> EncodedBody:
    descriptor = descriptor or describe_type(type(value))
    return FORM_CONTENT_TYPE, encode_form(form_pairs(value, descriptor))


def _as_part(value: Any, name: str) -> Part:
    if isinstance(value, Part):
        part = value.named(name)
    elif isinstance(value, str):
        part = Part.text(value, name=name)
    elif isinstance(value, (bytes, bytearray, memoryview)):
        part = Part.from_bytes(bytes(value), name=name)
    else:
        raise SerializationError(
            f'multipart values must be Part, str or bytes, not {type(value).__name__}',
            parameter=name,
        )
    if part.content_type is None:
        part = replace(part, content_type=DEFAULT_PART_CONTENT_TYPE)
    return part


def multipart_parts(fields: Iterable[tuple[str, Any]]) -> list[Part]:
    """Name and normalize the parts fed by multipart parameters.

    A single value becomes one part named after its field; a list becomes
    ``field[0]``, ``field[1]``, ... in order. Absent values are skipped.
    """
    parts = []
    for field_name, value in fields:
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            parts.extend(
                _as_part(item, f'{field_name}[{index}]') for index, item in enumerate(value)
            )
        else:
            parts.append(_as_part(value, field_name))
    return parts


def encode_multipart_body(
    fields: Iterable[tuple[str, Any]], boundary: str | None = None
) -> EncodedBody:
    form = MultipartForm(multipart_parts(fields), boundary=boundary)
    return form.content_type, form.encode()
