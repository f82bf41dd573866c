"""API classes and their binding to transports.

Subclassing ``Api`` (or ``AsyncApi``) declares an API. The class body is
compiled when the class is created, so a malformed declaration fails right
there with a CompilationError. Each decorated method is replaced by an
endpoint descriptor that executes the compiled plan.

Three binding modes are available, chosen with the ``mode`` class keyword:

- ``owned`` (default): instances own an httpx-backed transport::

      class GitHub(Api, base_url='https://api.github.com'): ...
      with GitHub() as github:
          github.get_repo('python', 'cpython')

- ``wrapper``: instances wrap any transport handed to them::

      class GitHub(Api, base_url='https://api.github.com', mode='wrapper'): ...
      github = GitHub(my_transport)

- ``capability``: the class is never instantiated; endpoints are called on
  any object with ``execute`` and ``base_url``::

      class GitHub(Api, mode='capability'): ...
      GitHub.get_repo(ApiClient(transport, 'https://api.github.com'), 'python', 'cpython')
"""

import copy
import functools
import inspect
import logging
import types
from collections.abc import Callable, Mapping
from typing import Any, ClassVar, Generic, TypeVar

import httpx

from declient.compiler.compiler import CompiledApi, compile_api
from declient.compiler.types import RequestPlan
from declient.config import ClientSettings
from declient.declarations import (
    DEFAULT_USER_AGENT,
    ROUTE_ATTR,
    ApiDeclaration,
    BindingMode,
    declare_endpoint,
)
from declient.exceptions import CompilationError, InvalidDeclarationError
from declient.runtime import ainvoke, invoke
from declient.transport import AsyncHttpxTransport, HttpxTransport

__all__ = [
    'Api',
    'AsyncApi',
    'AsyncEndpoint',
    'ClientBuilder',
    'Endpoint',
    'get_compiled_api',
]

logger = logging.getLogger(__name__)

TransportT = TypeVar('TransportT')
ApiT = TypeVar('ApiT', bound='Api')

_OPTION_NAMES = ('base_url', 'user_agent', 'headers', 'mode')

_RESERVED_NAMES = frozenset(
    {'base_url', 'inner', 'execute', 'with_base_url', 'builder', 'close', 'aclose'}
)


class Endpoint:
    """A compiled endpoint exposed as a method.

    Accessed on an instance it is a bound method. Accessed on the class it
    takes the bound transport as its first argument, which is how
    capability-mode APIs are called.
    """

    def __init__(self, plan: RequestPlan, func: Callable):
        functools.update_wrapper(self, func)
        self.plan = plan
        parameters = list(inspect.signature(func).parameters.values())[1:]
        self.signature = inspect.Signature(parameters)

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return types.MethodType(self, instance)

    def bind_arguments(self, args: tuple, kwargs: dict) -> dict[str, Any]:
        bound = self.signature.bind(*args, **kwargs)
        bound.apply_defaults()
        return dict(bound.arguments)

    def __call__(self, target, /, *args, **kwargs):
        return invoke(self.plan, target, self.bind_arguments(args, kwargs))

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.plan.method} {self.plan.path} ({self.plan.name})>'


class AsyncEndpoint(Endpoint):
    async def __call__(self, target, /, *args, **kwargs):
        return await ainvoke(self.plan, target, self.bind_arguments(args, kwargs))


def _collect_functions(cls: type) -> dict[str, Callable]:
    functions: dict[str, Callable] = {}
    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if isinstance(attr, Endpoint):
                functions[name] = attr.__wrapped__
            elif callable(attr) and hasattr(attr, ROUTE_ATTR):
                functions[name] = attr
            elif name in functions:
                del functions[name]
    return functions


def _binding_mode(value: Any, api_name: str) -> BindingMode:
    try:
        return BindingMode(value)
    except ValueError as e:
        raise InvalidDeclarationError(
            f"unknown binding mode {value!r} for API '{api_name}' "
            f'(expected one of: {", ".join(mode.value for mode in BindingMode)})'
        ) from e


def _header_items(headers: Mapping[str, Any] | None) -> tuple[tuple[str, str], ...]:
    if not headers:
        return ()
    items = headers.items() if isinstance(headers, Mapping) else headers
    return tuple((str(name), str(value)) for name, value in items)


def get_compiled_api(api: 'type[Api] | Api') -> CompiledApi:
    """Return the compiled plans of an API class (or instance).

    Raises:
        TypeError: If the class is abstract and was never compiled.
    """
    cls = api if isinstance(api, type) else type(api)
    compiled = cls.__dict__.get('__declient_api__')
    if compiled is None:
        raise TypeError(f'{cls.__qualname__} is not a compiled API class')
    return compiled


class Api(Generic[TransportT]):
    """Base class of synchronous API declarations.

    Class keywords:
        base_url: Base URL requests are resolved against. Required for the
            owned and wrapper modes.
        user_agent: ``User-Agent`` sent with every request.
        headers: Interface-level headers; underscores in names become hyphens.
        mode: 'owned' (default), 'wrapper' or 'capability'.
        abstract: Skip compilation, for intermediate base classes.
    """

    __declient_api__: ClassVar[CompiledApi | None] = None
    __declient_options__: ClassVar[dict[str, Any]] = {}
    _is_async: ClassVar[bool] = False

    def __init_subclass__(cls, *, abstract: bool = False, **kwargs):
        options = {key: kwargs.pop(key) for key in _OPTION_NAMES if key in kwargs}
        super().__init_subclass__(**kwargs)
        cls.__declient_options__ = {**cls.__declient_options__, **options}
        if abstract:
            cls.__declient_api__ = None
            return
        cls.__declient_api__ = cls._compile()
        endpoint_type = AsyncEndpoint if cls._is_async else Endpoint
        functions = _collect_functions(cls)
        for plan in cls.__declient_api__:
            setattr(cls, plan.name, endpoint_type(plan, functions[plan.name]))

    @classmethod
    def _compile(cls) -> CompiledApi:
        options = cls.__declient_options__
        api_name = cls.__qualname__
        endpoints = []
        for name, func in _collect_functions(cls).items():
            if name in _RESERVED_NAMES:
                raise InvalidDeclarationError(
                    f"endpoint name '{name}' of API '{api_name}' clashes with a client attribute"
                )
            if inspect.iscoroutinefunction(func) != cls._is_async:
                kind = 'async def' if cls._is_async else 'def'
                base = 'AsyncApi' if cls._is_async else 'Api'
                raise InvalidDeclarationError(
                    f"endpoint '{name}' of {base} subclass '{api_name}' must be a plain {kind}"
                )
            try:
                endpoints.append(declare_endpoint(func))
            except CompilationError as e:
                e.attach_endpoint(name)
                raise

        declaration = ApiDeclaration(
            name=api_name,
            endpoints=tuple(endpoints),
            base_url=options.get('base_url'),
            user_agent=options.get('user_agent') or DEFAULT_USER_AGENT,
            headers=_header_items(options.get('headers')),
            mode=_binding_mode(options.get('mode', BindingMode.OWNED), api_name),
        )
        return compile_api(declaration)

    def __init__(
        self,
        transport: TransportT | None = None,
        *,
        base_url: str | httpx.URL | None = None,
        settings: ClientSettings | None = None,
    ):
        """Create a client.

        Args:
            transport: The transport to execute requests with. Required in
                wrapper mode; owned clients create an httpx transport from
                ``settings`` when omitted.
            base_url: Overrides the declared base URL.
            settings: Transport settings for the created transport.
        """
        declaration = get_compiled_api(self).declaration
        if declaration.mode is BindingMode.CAPABILITY:
            raise TypeError(
                f'{declaration.name} is a capability API and is not instantiated; '
                f'call its endpoints on a bound transport, e.g. '
                f'{declaration.name}.<endpoint>(ApiClient(transport, base_url), ...)'
            )
        if declaration.mode is BindingMode.WRAPPER and transport is None:
            raise TypeError(f'{declaration.name} wraps a transport; pass one to it')

        self.base_url = httpx.URL(base_url or declaration.base_url)
        self._owns_transport = transport is None
        self.inner: TransportT = (
            transport if transport is not None else self._create_transport(settings)
        )

    def _create_transport(self, settings: ClientSettings | None):
        return HttpxTransport(settings=settings)

    @classmethod
    def builder(cls: type[ApiT]) -> 'ClientBuilder[ApiT]':
        return ClientBuilder(cls)

    def execute(self, request: httpx.Request) -> Any:
        return self.inner.execute(request)

    def with_base_url(self: ApiT, base_url: str | httpx.URL) -> ApiT:
        """Return a client sharing this client's transport, with another base URL."""
        clone = copy.copy(self)
        clone.base_url = httpx.URL(base_url)
        clone._owns_transport = False
        return clone

    def close(self) -> None:
        if self._owns_transport and hasattr(self.inner, 'close'):
            self.inner.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def __repr__(self) -> str:
        return f'{type(self).__name__}(base_url={str(self.base_url)!r})'


class AsyncApi(Api[TransportT], abstract=True):
    """Base class of asynchronous API declarations; endpoints are ``async def``."""

    _is_async: ClassVar[bool] = True

    def _create_transport(self, settings: ClientSettings | None):
        return AsyncHttpxTransport(settings=settings)

    def close(self) -> None:
        raise TypeError('use "await client.aclose()" or "async with" for async clients')

    def __enter__(self):
        raise TypeError('use "async with" for async clients')

    async def aclose(self) -> None:
        if self._owns_transport and hasattr(self.inner, 'aclose'):
            await self.inner.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


class ClientBuilder(Generic[ApiT]):
    """Step-by-step construction of an owned or wrapper client.

    Example:
        >>> github = GitHub.builder().base_url('https://github.example.com/api/v3').timeout(5).build()
    """

    def __init__(self, api_cls: type[ApiT]):
        self._api_cls = api_cls
        self._base_url: str | httpx.URL | None = None
        self._transport = None
        self._settings: dict[str, Any] = {}

    def base_url(self, base_url: str | httpx.URL) -> 'ClientBuilder[ApiT]':
        self._base_url = base_url
        return self

    def transport(self, transport: Any) -> 'ClientBuilder[ApiT]':
        self._transport = transport
        return self

    def client(self, client: httpx.Client | httpx.AsyncClient) -> 'ClientBuilder[ApiT]':
        """Use a preconfigured httpx client; it is not closed with the API client."""
        if isinstance(client, httpx.AsyncClient):
            return self.transport(AsyncHttpxTransport(client))
        return self.transport(HttpxTransport(client))

    def timeout(self, seconds: float) -> 'ClientBuilder[ApiT]':
        self._settings['timeout'] = seconds
        return self

    def connect_timeout(self, seconds: float) -> 'ClientBuilder[ApiT]':
        self._settings['connect_timeout'] = seconds
        return self

    def bearer_auth(self, token: str) -> 'ClientBuilder[ApiT]':
        """Send ``Authorization: Bearer <token>`` with every request.

        Applies to the transport the builder creates, not to one passed in
        with :meth:`transport` or :meth:`client`.
        """
        self._settings.update(bearer_token=token, basic_username=None, basic_password=None)
        return self

    def basic_auth(self, username: str, password: str) -> 'ClientBuilder[ApiT]':
        """Send HTTP basic credentials with every request."""
        self._settings.update(bearer_token=None, basic_username=username, basic_password=password)
        return self

    def settings(self, settings: ClientSettings) -> 'ClientBuilder[ApiT]':
        self._settings.update(settings.model_dump())
        return self

    def build(self) -> ApiT:
        settings = ClientSettings(**self._settings) if self._settings else None
        logger.debug(f'Building {self._api_cls.__qualname__} client')
        return self._api_cls(self._transport, base_url=self._base_url, settings=settings)
