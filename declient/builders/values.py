"""Turning argument values into wire strings."""

import datetime
import enum
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from declient.exceptions import SerializationError

__all__ = ['serializing', 'stringify']


def stringify(value: Any) -> str:
    """Render a scalar value the way it appears in URLs, queries and headers.

    Booleans are lowercase, enums contribute their value and dates use
    ISO-8601.

    Raises:
        SerializationError: If the value is a collection, which has no
            single string form.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, enum.Enum):
        return stringify(value.value)
    if isinstance(value, (datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode('utf-8')
        except UnicodeDecodeError as e:
            raise SerializationError(f'bytes value is not valid UTF-8: {e}') from e
    if value is None or isinstance(value, (Mapping, list, tuple, set, frozenset)):
        raise SerializationError(
            f'value of type {type(value).__name__} cannot be rendered as a string'
        )
    return str(value)


@contextmanager
def serializing(parameter: str) -> Iterator[None]:
    """Attribute serialization failures in the block to ``parameter``.

    A failure already naming a record field is reported under the parameter
    holding the record (``'filters.page'``).
    """
    try:
        yield
    except SerializationError as e:
        raise e.within(parameter) from e
