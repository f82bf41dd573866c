"""Authentication for owned clients.

Credentials are applied by the httpx client as an ``auth`` flow, so every
request sent through an owned transport carries them without the endpoint
declarations knowing about it.
"""

from collections.abc import Generator

import httpx

__all__ = ['BearerAuth']


class BearerAuth(httpx.Auth):
    """Sets ``Authorization: Bearer <token>`` on every request.

    Example:
        >>> client = httpx.Client(auth=BearerAuth('my-secret-token'))
    """

    def __init__(self, token: str):
        self.token = token

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers['Authorization'] = f'Bearer {self.token}'
        yield request

    def __repr__(self) -> str:
        return 'BearerAuth(token=***)'
