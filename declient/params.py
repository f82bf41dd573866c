"""Parameter markers for endpoint declarations.

Markers are attached to parameters with ``typing.Annotated`` and pin the
parameter to a transport role, optionally with an alias or collection format.
Parameters without a marker are classified by name: a parameter named like a
URL placeholder goes into the path, and a single leftover parameter on a
POST, PUT or PATCH endpoint becomes the JSON body.

Example:
    >>> class GitHub(Api, base_url='https://api.github.com'):
    ...     @get('/search/repositories')
    ...     def search(
    ...         self,
    ...         q: Annotated[str, Query()],
    ...         topics: Annotated[list[str], Query(format='csv')] = (),
    ...     ) -> SearchResult: ...
"""

from dataclasses import dataclass
from typing import Any

__all__ = [
    'Body',
    'Form',
    'Header',
    'Headers',
    'Multipart',
    'ParamMarker',
    'Path',
    'Query',
    'QueryField',
    'QueryStructOptions',
    'query_struct',
]


class ParamMarker:
    """Base class of every role marker."""

    __slots__ = ()


@dataclass(frozen=True)
class Path(ParamMarker):
    """Substitute the value into the URL template.

    Attributes:
        alias: Placeholder name to fill, when it differs from the parameter name.
    """

    alias: str | None = None


@dataclass(frozen=True)
class Query(ParamMarker):
    """Send the value as query string pairs.

    Attributes:
        alias: Query key, when it differs from the parameter name.
        format: How list values are sent: 'multi' (repeated keys, the default),
            'csv', 'ssv' or 'pipes'.
    """

    alias: str | None = None
    format: Any = 'multi'


@dataclass(frozen=True)
class Header(ParamMarker):
    """Send the value as a single header.

    Attributes:
        name: The header name, sent with the case given here.
    """

    name: str


@dataclass(frozen=True)
class Headers(ParamMarker):
    """Merge a mapping (or iterable of pairs) into the request headers."""


@dataclass(frozen=True)
class Body(ParamMarker):
    """Send the value as the JSON request body."""


@dataclass(frozen=True)
class Form(ParamMarker):
    """Send the value as an ``application/x-www-form-urlencoded`` body."""


@dataclass(frozen=True)
class Multipart(ParamMarker):
    """Send the value as one multipart part, or one part per list item.

    Attributes:
        name: Form field name, when it differs from the parameter name.
    """

    name: str | None = None


@dataclass(frozen=True)
class QueryField:
    """Per-field query options for a record used as a query parameter.

    Attributes:
        rename: Query key for this field; always wins over the record's
            rename rule.
        format: Collection format for list-valued fields.
    """

    rename: str | None = None
    format: Any = 'multi'


@dataclass(frozen=True)
class QueryStructOptions:
    rename_all: str | None = None


QUERY_STRUCT_ATTR = '__declient_query__'


def query_struct(cls=None, *, rename_all: str | None = None):
    """Attach query options to a record class (pydantic model or dataclass).

    Usable bare or with arguments::

        @query_struct(rename_all='camelCase')
        class SearchParams(BaseModel):
            search_query: str
            page_size: int | None = None

    The rename rule is validated when an endpoint using the record compiles.
    """

    def decorate(target):
        setattr(target, QUERY_STRUCT_ATTR, QueryStructOptions(rename_all=rename_all))
        return target

    if cls is None:
        return decorate
    return decorate(cls)
