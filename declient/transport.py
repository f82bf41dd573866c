"""Transports: the boundary between compiled endpoints and the network.

A transport is anything with an ``execute(request) -> response`` method
(awaitable for async transports). The httpx-backed transports here translate
httpx failures into declient call errors; anything else that satisfies the
protocol, such as a test double, can be used in their place.
"""

import logging
import ssl
from typing import Any, Generic, Protocol, TypeVar, runtime_checkable

import httpx

from declient.config import ClientSettings
from declient.exceptions import (
    CallError,
    InvalidRequestError,
    RequestTimeoutError,
    TlsError,
    TransportConnectionError,
)

__all__ = [
    'ApiClient',
    'AsyncHttpxTransport',
    'AsyncTransport',
    'BoundTransport',
    'HttpxTransport',
    'Transport',
    'translate_transport_error',
]

logger = logging.getLogger(__name__)

TransportT = TypeVar('TransportT')


@runtime_checkable
class Transport(Protocol):
    def execute(self, request: httpx.Request) -> httpx.Response: ...


@runtime_checkable
class AsyncTransport(Protocol):
    async def execute(self, request: httpx.Request) -> httpx.Response: ...


@runtime_checkable
class BoundTransport(Protocol):
    """A transport that also knows the base URL requests are resolved against."""

    base_url: Any

    def execute(self, request: httpx.Request) -> Any: ...


def _caused_by_tls(error: BaseException) -> bool:
    seen = set()
    current: BaseException | None = error
    while current is not None and id(current) not in seen:
        if isinstance(current, ssl.SSLError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


def translate_transport_error(error: httpx.RequestError, request: httpx.Request) -> CallError:
    """Map an httpx request failure onto the declient error it represents."""
    if isinstance(error, httpx.TimeoutException):
        return RequestTimeoutError(request=request)
    if isinstance(error, httpx.UnsupportedProtocol):
        return InvalidRequestError(str(error), request=request)
    if _caused_by_tls(error):
        return TlsError(str(error) or type(error).__name__, request=request)
    return TransportConnectionError(str(error) or type(error).__name__, request=request)


def _ensure_timeout(request: httpx.Request, timeout: httpx.Timeout) -> None:
    # Requests are built outside the client, so the client default is not applied.
    if 'timeout' not in request.extensions:
        request.extensions['timeout'] = timeout.as_dict()


def create_client(settings: ClientSettings | None = None) -> httpx.Client:
    settings = settings or ClientSettings()
    return httpx.Client(
        timeout=settings.httpx_timeout(),
        limits=settings.httpx_limits(),
        follow_redirects=settings.follow_redirects,
        auth=settings.httpx_auth(),
    )


def create_async_client(settings: ClientSettings | None = None) -> httpx.AsyncClient:
    settings = settings or ClientSettings()
    return httpx.AsyncClient(
        timeout=settings.httpx_timeout(),
        limits=settings.httpx_limits(),
        follow_redirects=settings.follow_redirects,
        auth=settings.httpx_auth(),
    )


class HttpxTransport:
    """Synchronous transport backed by an ``httpx.Client``.

    Example:
        >>> transport = HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))
        >>> response = transport.execute(httpx.Request('GET', 'https://example.com'))
    """

    def __init__(self, client: httpx.Client | None = None, settings: ClientSettings | None = None):
        """Initialize the transport.

        Args:
            client: The httpx client to send requests with. A client built
                from ``settings`` is created (and owned) when omitted.
            settings: Settings for the created client.
        """
        self._owns_client = client is None
        self.client = client or create_client(settings)

    def execute(self, request: httpx.Request) -> httpx.Response:
        _ensure_timeout(request, self.client.timeout)
        try:
            response = self.client.send(request)
        except httpx.RequestError as e:
            logger.debug(f'{request.method} {request.url} failed: {e!r}')
            raise translate_transport_error(e, request) from e
        logger.debug(f'{request.method} {request.url} -> {response.status_code}')
        return response

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


class AsyncHttpxTransport:
    """Asynchronous transport backed by an ``httpx.AsyncClient``."""

    def __init__(
        self, client: httpx.AsyncClient | None = None, settings: ClientSettings | None = None
    ):
        self._owns_client = client is None
        self.client = client or create_async_client(settings)

    async def execute(self, request: httpx.Request) -> httpx.Response:
        _ensure_timeout(request, self.client.timeout)
        try:
            response = await self.client.send(request)
        except httpx.RequestError as e:
            logger.debug(f'{request.method} {request.url} failed: {e!r}')
            raise translate_transport_error(e, request) from e
        logger.debug(f'{request.method} {request.url} -> {response.status_code}')
        return response

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()


class ApiClient(Generic[TransportT]):
    """Pairs a transport with a base URL.

    The result satisfies ``BoundTransport``, so it can be handed to
    capability-mode endpoints and to generated client functions. It is
    async-transparent: ``execute`` returns whatever the inner transport
    returns, awaitable or not.

    Example:
        >>> github = ApiClient(HttpxTransport(), 'https://api.github.com')
        >>> GitHubApi.get_repo(github, 'python', 'cpython')
    """

    def __init__(self, transport: TransportT, base_url: str | httpx.URL):
        self.inner = transport
        self.base_url = httpx.URL(base_url)

    def execute(self, request: httpx.Request) -> Any:
        return self.inner.execute(request)

    def with_base_url(self, base_url: str | httpx.URL) -> 'ApiClient[TransportT]':
        return ApiClient(self.inner, base_url)
