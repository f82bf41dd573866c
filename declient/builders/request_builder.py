"""Final request assembly: URL resolution and the httpx request object."""

from collections.abc import Iterable
from typing import Any

import httpx

from declient.builders.query_builder import encode_query
from declient.exceptions import InvalidRequestError
from declient.metadata import METADATA_EXTENSION, ParameterMetadata

__all__ = ['build_request', 'build_url', 'request_extensions']


def build_url(
    base_url: str | httpx.URL, path: str, query: Iterable[tuple[str, str]] = ()
) -> httpx.URL:
    """Resolve a substituted path against the base URL and attach the query.

    Resolution follows RFC 3986, so an absolute path replaces the base URL's
    path while a relative one is resolved against it. Query pairs are appended
    after any query already present in the template.

    Raises:
        InvalidRequestError: If the result is not an absolute http(s) URL.
    """
    try:
        url = httpx.URL(base_url).join(path)
    except (httpx.InvalidURL, TypeError) as e:
        raise InvalidRequestError(f'cannot resolve {path!r} against {base_url!r}: {e}') from e
    if not url.is_absolute_url:
        raise InvalidRequestError(f'base URL {str(base_url)!r} is not absolute')

    query_string = encode_query(query)
    if query_string:
        existing = url.query.decode('ascii')
        if existing:
            query_string = f'{existing}&{query_string}'
        url = url.copy_with(query=query_string.encode('ascii'))
    return url


def request_extensions(
    metadata: ParameterMetadata | None = None, timeout: float | None = None
) -> dict[str, Any]:
    """Request-scoped extensions: parameter metadata and a timeout override."""
    extensions: dict[str, Any] = {}
    if metadata is not None:
        extensions[METADATA_EXTENSION] = metadata
    if timeout is not None:
        extensions['timeout'] = httpx.Timeout(timeout).as_dict()
    return extensions


def build_request(
    method: str,
    url: httpx.URL,
    headers: httpx.Headers,
    body: tuple[str, bytes] | None = None,
    extensions: dict[str, Any] | None = None,
) -> httpx.Request:
    """Create the request; a body's content type is set after all header layers."""
    content = None
    if body is not None:
        content_type, content = body
        headers['Content-Type'] = content_type
    return httpx.Request(
        method, url, headers=headers, content=content, extensions=extensions or {}
    )
