"""Endpoint declarations.

An API is declared as a class whose methods are decorated with a verb and a
URL template. This module holds the structured form those declarations are
read into and the decorators that mark methods as endpoints::

    class GitHub(Api, base_url='https://api.github.com'):
        @get('/repos/{owner}/{repo}')
        def get_repo(self, owner: str, repo: str) -> Repository: ...

        @delete('/repos/{owner}/{repo}', not_found_as_none=True, timeout='10s')
        def delete_repo(self, owner: str, repo: str) -> None: ...

Declarations can also be built directly from the dataclasses here, which is
what the compiler consumes either way.
"""

import datetime
import enum
import inspect
import re
import typing
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from declient._version import version
from declient.compiler.types import TypeDescriptor, describe_type
from declient.compiler.utils import is_token
from declient.exceptions import InvalidDeclarationError, UnknownFormatError
from declient.params import ParamMarker

__all__ = [
    'DEFAULT_USER_AGENT',
    'ApiDeclaration',
    'BindingMode',
    'EndpointDeclaration',
    'EndpointOptions',
    'ParameterDeclaration',
    'Route',
    'declare_endpoint',
    'delete',
    'get',
    'head',
    'http',
    'options',
    'parse_timeout',
    'patch',
    'post',
    'put',
    'route',
]

DEFAULT_USER_AGENT = f'declient/{version}'

ROUTE_ATTR = '__declient_route__'

REQUIRED = inspect.Parameter.empty

_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$')
_DURATION_UNITS = {'ms': 0.001, 's': 1.0, 'm': 60.0, 'h': 3600.0, None: 1.0}


class BindingMode(str, enum.Enum):
    """How a compiled API is attached to a transport.

    OWNED: the API class is a concrete client owning its transport.
    WRAPPER: the API class wraps any transport handed to it.
    CAPABILITY: the endpoints are called on any object that can execute
        requests and knows its base URL; the API class is never instantiated.
    """

    OWNED = 'owned'
    WRAPPER = 'wrapper'
    CAPABILITY = 'capability'


def parse_timeout(value: Any) -> float | None:
    """Normalize a timeout option to seconds.

    Accepts seconds as a number, a ``timedelta``, or a string such as
    ``'30s'``, ``'1m'``, ``'500ms'`` or ``'2h'`` (a bare number means seconds).

    Raises:
        UnknownFormatError: If the value cannot be parsed or is not positive.
    """
    if value is None:
        return None
    if isinstance(value, datetime.timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = float(value)
    elif isinstance(value, str) and (match := _DURATION_RE.match(value)):
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    else:
        raise UnknownFormatError('timeout', value, expected=['30s', '1m', '500ms'])
    if seconds <= 0:
        raise UnknownFormatError('timeout', value, expected=['a positive duration'])
    return seconds


@dataclass(frozen=True)
class EndpointOptions:
    not_found_as_none: bool = False
    timeout: float | None = None


@dataclass(frozen=True)
class ParameterDeclaration:
    """One declared parameter.

    Attributes:
        name: Parameter name.
        annotation: Declared type, ``Annotated`` metadata included.
        hint: Explicit role marker, or None to let the compiler infer the role.
        default: Default value, or ``REQUIRED``.
    """

    name: str
    annotation: Any = Any
    hint: ParamMarker | None = None
    default: Any = REQUIRED

    @property
    def descriptor(self) -> TypeDescriptor:
        return describe_type(self.annotation)

    @property
    def required(self) -> bool:
        return self.default is REQUIRED and not self.descriptor.is_optional


@dataclass(frozen=True)
class EndpointDeclaration:
    """One endpoint: verb, URL template, parameters and result type."""

    name: str
    method: str
    path: str
    parameters: tuple[ParameterDeclaration, ...] = ()
    returns: Any = Any
    options: EndpointOptions = field(default_factory=EndpointOptions)
    doc: str | None = None
    is_async: bool = False


@dataclass(frozen=True)
class ApiDeclaration:
    """A whole API: its endpoints plus interface-level settings."""

    name: str
    endpoints: tuple[EndpointDeclaration, ...] = ()
    base_url: str | None = None
    user_agent: str = DEFAULT_USER_AGENT
    headers: tuple[tuple[str, str], ...] = ()
    mode: BindingMode = BindingMode.OWNED


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    options: EndpointOptions = field(default_factory=EndpointOptions)


def route(
    method: str,
    path: str,
    *,
    not_found_as_none: bool = False,
    timeout: Any = None,
) -> Callable:
    """Mark a method as an endpoint.

    Args:
        method: The HTTP verb; any valid method token is accepted.
        path: URL template with ``{placeholder}`` segments.
        not_found_as_none: Return None on 404 instead of raising.
        timeout: Per-call timeout (seconds, ``timedelta`` or ``'30s'``).
    """
    method = method.strip().upper()
    if not is_token(method):
        raise InvalidDeclarationError(f'invalid HTTP method {method!r}')
    options = EndpointOptions(
        not_found_as_none=not_found_as_none, timeout=parse_timeout(timeout)
    )

    def decorator(func):
        setattr(func, ROUTE_ATTR, Route(method, path, options))
        return func

    return decorator


def get(path: str, **options) -> Callable:
    return route('GET', path, **options)


def post(path: str, **options) -> Callable:
    return route('POST', path, **options)


def put(path: str, **options) -> Callable:
    return route('PUT', path, **options)


def delete(path: str, **options) -> Callable:
    return route('DELETE', path, **options)


def patch(path: str, **options) -> Callable:
    return route('PATCH', path, **options)


def head(path: str, **options) -> Callable:
    return route('HEAD', path, **options)


def options(path: str, **kwargs) -> Callable:
    return route('OPTIONS', path, **kwargs)


def http(spec: str, **options) -> Callable:
    """Mark a method as an endpoint from a ``'VERB /path'`` string.

    Useful for verbs without a dedicated decorator, e.g. ``http('PURGE /cache/{key}')``.
    """
    method, _, path = spec.strip().partition(' ')
    path = path.strip()
    if not method or not path:
        raise InvalidDeclarationError(
            f"invalid endpoint spec {spec!r}, expected 'METHOD /path'"
        )
    return route(method, path, **options)


def _marker(name: str, annotation: Any) -> ParamMarker | None:
    if typing.get_origin(annotation) is not typing.Annotated:
        return None
    markers = []
    for item in typing.get_args(annotation)[1:]:
        if isinstance(item, type) and issubclass(item, ParamMarker):
            try:
                item = item()
            except TypeError as e:
                raise InvalidDeclarationError(
                    f"marker {item.__name__} on parameter '{name}' needs arguments"
                ) from e
        if isinstance(item, ParamMarker):
            markers.append(item)
    if len(markers) > 1:
        raise InvalidDeclarationError(
            f"parameter '{name}' has more than one role marker: {markers}"
        )
    return markers[0] if markers else None


def declare_endpoint(func: Callable, endpoint_route: Route | None = None) -> EndpointDeclaration:
    """Read an endpoint declaration from a decorated method.

    The first parameter (``self``) is the receiver and is not part of the
    endpoint. Variadic parameters are not supported.

    Raises:
        InvalidDeclarationError: If the function is not a valid endpoint.
    """
    endpoint_route = endpoint_route or getattr(func, ROUTE_ATTR, None)
    if endpoint_route is None:
        raise InvalidDeclarationError(f'{func.__qualname__} is not marked as an endpoint')

    try:
        hints = typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError) as e:
        raise InvalidDeclarationError(
            f'cannot resolve type hints of {func.__qualname__}: {e}'
        ) from e

    declared = list(inspect.signature(func).parameters.values())
    if not declared or declared[0].kind not in (
        inspect.Parameter.POSITIONAL_ONLY,
        inspect.Parameter.POSITIONAL_OR_KEYWORD,
    ):
        raise InvalidDeclarationError(
            f'{func.__qualname__} must take the client (self) as its first parameter'
        )

    parameters = []
    for parameter in declared[1:]:
        if parameter.kind in (
            inspect.Parameter.VAR_POSITIONAL,
            inspect.Parameter.VAR_KEYWORD,
        ):
            raise InvalidDeclarationError(
                f"variadic parameter '{parameter.name}' is not supported on endpoints"
            )
        annotation = hints.get(parameter.name, Any)
        parameters.append(
            ParameterDeclaration(
                name=parameter.name,
                annotation=annotation,
                hint=_marker(parameter.name, annotation),
                default=parameter.default,
            )
        )

    return EndpointDeclaration(
        name=func.__name__,
        method=endpoint_route.method,
        path=endpoint_route.path,
        parameters=tuple(parameters),
        returns=hints.get('return', Any),
        options=endpoint_route.options,
        doc=inspect.getdoc(func),
        is_async=inspect.iscoroutinefunction(func),
    )
