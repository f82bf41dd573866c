"""Test fixtures for declient tests.

This module provides sample models and API declarations covering every
parameter role, return shape and binding mode, plus helpers for running
them against an in-memory httpx transport.
"""

import json
from dataclasses import dataclass
from typing import Annotated

import httpx
from pydantic import BaseModel, Field

from declient import (
    Api,
    AsyncApi,
    Form,
    Header,
    Headers,
    Multipart,
    Part,
    Path,
    Query,
    QueryField,
    delete,
    get,
    http,
    post,
    put,
    query_struct,
)
from declient.transport import AsyncHttpxTransport, HttpxTransport

BASE_URL = 'https://api.example.com'


class Repository(BaseModel):
    id: int
    name: str
    full_name: str | None = None
    stars: int = 0


class NewRepository(BaseModel):
    name: str
    private: bool = False
    default_branch: str = Field('main', serialization_alias='defaultBranch')


class Login(BaseModel):
    username: str
    password: str


class ApiErrorBody(BaseModel):
    message: str
    code: int | None = None


@query_struct(rename_all='camelCase')
class SearchParams(BaseModel):
    search_query: str
    page_size: int | None = None
    sort_order: Annotated[str | None, QueryField(rename='order')] = None
    tags: Annotated[list[str], QueryField(format='csv')] = []


@dataclass
class Pagination:
    page: int = 1
    per_page: int | None = None


class GitHub(Api, base_url=BASE_URL, headers={'X_Api_Version': '2022-11-28'}):
    @get('/repos/{owner}/{repo}')
    def get_repo(self, owner: str, repo: str) -> Repository:
        """Get a repository by owner and name."""

    @get('/repos/{owner}/{repo}', not_found_as_none=True)
    def find_repo(self, owner: str, repo: str) -> Repository | None: ...

    @get('/users/{id}')
    def get_user(self, user_id: Annotated[int, Path('id')]) -> dict: ...

    @get('/search/repositories')
    def search(
        self,
        q: Annotated[str, Query()],
        topics: Annotated[list[str], Query(format='csv')] = (),
        page: Annotated[int | None, Query()] = None,
    ) -> list[Repository]: ...

    @get('/search/advanced')
    def search_advanced(
        self,
        params: Annotated[SearchParams, Query()],
        paging: Annotated[Pagination | None, Query()] = None,
    ) -> list[Repository]: ...

    @post('/orgs/{org}/repos')
    def create_repo(
        self,
        org: str,
        repo: NewRepository,
        trace_id: Annotated[str | None, Header('X-Trace-Id')] = None,
    ) -> Repository: ...

    @delete('/repos/{owner}/{repo}', not_found_as_none=True)
    def delete_repo(self, owner: str, repo: str) -> None: ...

    @put('/user/starred/{owner}/{repo}')
    def star(self, owner: str, repo: str) -> None: ...

    @get('/repos/{owner}/{repo}/readme')
    def readme(
        self,
        owner: str,
        repo: str,
        extra: Annotated[dict[str, str] | None, Headers()] = None,
    ) -> httpx.Response: ...

    @post('/login', timeout='5s')
    def login(self, credentials: Annotated[Login, Form()]) -> dict[str, str]: ...

    @post('/uploads')
    def upload(
        self,
        file: Annotated[Part, Multipart()],
        description: Annotated[str, Multipart('desc')],
    ) -> None: ...

    @http('PURGE /cache/{key}')
    def purge(self, key: str) -> None: ...


class Wrapped(Api, base_url=BASE_URL, mode='wrapper'):
    @get('/status')
    def status(self) -> dict: ...


class Capability(Api, mode='capability'):
    @get('/repos/{owner}/{repo}')
    def get_repo(self, owner: str, repo: str) -> Repository: ...

    @delete('/repos/{owner}/{repo}', not_found_as_none=True)
    def delete_repo(self, owner: str, repo: str) -> None: ...


class AsyncGitHub(AsyncApi, base_url=BASE_URL):
    @get('/repos/{owner}/{repo}')
    async def get_repo(self, owner: str, repo: str) -> Repository: ...

    @get('/repos/{owner}/{repo}', not_found_as_none=True)
    async def find_repo(self, owner: str, repo: str) -> Repository | None: ...

    @post('/orgs/{org}/repos', timeout=2)
    async def create_repo(self, org: str, repo: NewRepository) -> Repository: ...


REPOSITORY_JSON = {'id': 1, 'name': 'cpython', 'full_name': 'python/cpython', 'stars': 10}


class RecordingHandler:
    """Mock transport handler that records requests and replays responses.

    Responses are given per (method, path) or as a default; anything else
    answers 200 with the repository payload.
    """

    def __init__(self, responses: dict | None = None, default: httpx.Response | None = None):
        self.responses = responses or {}
        self.default = default
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = (request.method, request.url.path)
        template = self.responses.get(key, self.default)
        if template is None:
            return httpx.Response(200, json=REPOSITORY_JSON)
        # Responses are single-use, so replay a copy.
        return httpx.Response(
            template.status_code, headers=template.headers, content=template.content
        )

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self):
        return json.loads(self.last.content)


def mock_transport(handler: RecordingHandler) -> HttpxTransport:
    return HttpxTransport(httpx.Client(transport=httpx.MockTransport(handler)))


def mock_async_transport(handler: RecordingHandler) -> AsyncHttpxTransport:
    return AsyncHttpxTransport(httpx.AsyncClient(transport=httpx.MockTransport(handler)))
