"""Test compiled API clients in their three binding modes."""

import asyncio
import json
from typing import Annotated

import httpx
import pytest

from declient import Api, ApiClient, AsyncApi, Part, Query, get, get_compiled_api
from declient.auth import BearerAuth
from declient.client import Endpoint
from declient.exceptions import (
    HttpStatusError,
    RequestTimeoutError,
    SerializationError,
)
from declient.metadata import get_parameter_metadata

from .fixtures import (
    BASE_URL,
    REPOSITORY_JSON,
    AsyncGitHub,
    Capability,
    GitHub,
    Login,
    NewRepository,
    Pagination,
    RecordingHandler,
    Repository,
    SearchParams,
    Wrapped,
    mock_async_transport,
    mock_transport,
)


@pytest.fixture
def handler():
    """Fixture providing a recording mock handler."""
    return RecordingHandler()


@pytest.fixture
def github(handler):
    """Fixture providing an owned client on a mock transport."""
    return GitHub(mock_transport(handler))


class TestOwnedClient:
    """Tests for owned-mode clients."""

    def test_get_repo(self, github, handler):
        """Test a path-only GET endpoint end to end."""
        repo = github.get_repo('python', 'cpython')
        assert repo == Repository(**REPOSITORY_JSON)
        request = handler.last
        assert request.method == 'GET'
        assert str(request.url) == 'https://api.example.com/repos/python/cpython'
        assert request.headers['accept'] == 'application/json'
        assert request.headers['user-agent'].startswith('declient/')
        assert request.headers['x-api-version'] == '2022-11-28'

    def test_keyword_arguments(self, github, handler):
        """Test that endpoints accept keyword arguments."""
        github.get_repo(owner='a b', repo='c/d')
        assert handler.last.url.raw_path == b'/repos/a%20b/c%2Fd'

    def test_path_alias(self, github, handler):
        """Test a path parameter bound through an alias."""
        handler.default = httpx.Response(200, json={'login': 'ada'})
        assert github.get_user(42) == {'login': 'ada'}
        assert handler.last.url.path == '/users/42'

    def test_query_parameters(self, github, handler):
        """Test scalar, csv and optional query parameters."""
        handler.default = httpx.Response(200, json=[REPOSITORY_JSON])
        result = github.search('lang:python', topics=['web', 'api'])
        assert result == [Repository(**REPOSITORY_JSON)]
        params = handler.last.url.params
        assert params['q'] == 'lang:python'
        assert params['topics'] == 'web,api'
        assert 'page' not in params

    def test_search_request_end_to_end(self, handler):
        """Test the exact wire request of a GET with a scalar and a csv query."""

        class Search(Api, base_url=BASE_URL):
            @get('/search')
            def search(
                self,
                q: Annotated[str, Query()],
                tags: Annotated[list[str], Query(format='csv')],
            ) -> dict: ...

        Search(mock_transport(handler)).search(q='rust', tags=['http', 'async'])
        request = handler.last
        assert request.method == 'GET'
        assert str(request.url) == BASE_URL + '/search?q=rust&tags=http,async'
        assert request.headers['user-agent'].startswith('declient/')
        assert request.headers['accept'] == 'application/json'
        assert 'content-type' not in request.headers
        assert request.content == b''

    def test_query_records(self, github, handler):
        """Test record-typed query parameters."""
        handler.default = httpx.Response(200, json=[])
        github.search_advanced(
            SearchParams(search_query='rust', tags=['a', 'b']), paging=Pagination(page=3)
        )
        params = handler.last.url.params
        assert params['searchQuery'] == 'rust'
        assert params['tags'] == 'a,b'
        assert params['page'] == '3'
        assert 'per_page' not in params

    def test_json_body_and_header(self, github, handler):
        """Test an inferred JSON body with an optional header."""
        github.create_repo('python', NewRepository(name='new'), trace_id='t-1')
        request = handler.last
        assert request.method == 'POST'
        assert request.url.path == '/orgs/python/repos'
        assert request.headers['content-type'] == 'application/json'
        assert request.headers['x-trace-id'] == 't-1'
        assert handler.last_json() == {'name': 'new', 'private': False, 'defaultBranch': 'main'}

    def test_absent_header_omitted(self, github, handler):
        """Test that a None header value is not sent."""
        github.create_repo('python', NewRepository(name='new'))
        assert 'x-trace-id' not in handler.last.headers

    def test_form_body(self, github, handler):
        """Test a form-encoded body."""
        handler.default = httpx.Response(200, json={'token': 'abc'})
        assert github.login(Login(username='ada', password='secret')) == {'token': 'abc'}
        request = handler.last
        assert request.headers['content-type'] == 'application/x-www-form-urlencoded'
        assert request.content == b'username=ada&password=secret'

    def test_multipart_body(self, github, handler):
        """Test a multipart body with a file part and a text part."""
        handler.default = httpx.Response(201)
        result = github.upload(Part.file('notes.txt', b'hello'), description='my notes')
        assert result is None
        request = handler.last
        content_type = request.headers['content-type']
        assert content_type.startswith('multipart/form-data; boundary=')
        body = request.content
        assert b'name="file"; filename="notes.txt"' in body
        assert b'name="desc"' in body
        assert b'my notes' in body

    def test_header_bag(self, github, handler):
        """Test a header bag that overrides a static header."""
        handler.default = httpx.Response(200, text='# README')
        response = github.readme('python', 'cpython', extra={'Accept': 'text/html', 'X-Extra': '1'})
        assert isinstance(response, httpx.Response)
        assert response.text == '# README'
        assert handler.last.headers['accept'] == 'text/html'
        assert handler.last.headers['x-extra'] == '1'

    def test_raw_response_error_status(self, github, handler):
        """Test that raw responses are returned even for error statuses."""
        handler.default = httpx.Response(500)
        assert github.readme('python', 'cpython').status_code == 500

    def test_not_found_as_none(self, github, handler):
        """Test that a 404 becomes None where the endpoint allows it."""
        handler.default = httpx.Response(404)
        assert github.find_repo('python', 'missing') is None
        assert github.delete_repo('python', 'missing') is None
        with pytest.raises(HttpStatusError) as exc_info:
            github.get_repo('python', 'missing')
        assert exc_info.value.status == 404

    def test_unit_with_not_found_flag(self, github, handler):
        """Test that a flagged unit endpoint returns True on success."""
        handler.default = httpx.Response(204)
        assert github.delete_repo('python', 'cpython') is True
        assert github.star('python', 'cpython') is None

    def test_custom_verb(self, github, handler):
        """Test an endpoint with a custom HTTP verb."""
        handler.default = httpx.Response(200)
        github.purge('home')
        assert handler.last.method == 'PURGE'
        assert handler.last.url.path == '/cache/home'

    def test_metadata_extension(self, github, handler):
        """Test that requests carry the endpoint metadata."""
        github.get_repo('python', 'cpython')
        metadata = get_parameter_metadata(handler.last)
        assert metadata.method_name == 'get_repo'
        assert metadata.path_template == '/repos/{owner}/{repo}'
        assert [p.location for p in metadata.parameters] == ['path', 'path']

    def test_timeout_extension(self, github, handler):
        """Test that an endpoint timeout is attached to the request."""
        handler.default = httpx.Response(200, json={})
        github.login(Login(username='a', password='b'))
        assert handler.last.extensions['timeout']['read'] == 5.0

    def test_serialization_error_names_parameter(self, github):
        """Test that serialization failures name the parameter."""
        with pytest.raises(SerializationError) as exc_info:
            github.get_repo(None, 'cpython')
        assert exc_info.value.parameter == 'owner'
        assert str(exc_info.value) == (
            "cannot serialize parameter 'owner': path parameters cannot be None"
        )

    def test_serialization_error_names_record_field(self, github):
        """Test that a failing record field is named after its parameter."""
        with pytest.raises(SerializationError) as exc_info:
            github.search_advanced(SearchParams(search_query='go'), paging=Pagination(page=[1]))
        assert exc_info.value.parameter == 'paging.page'
        assert 'list cannot be rendered' in exc_info.value.reason

    def test_missing_argument(self, github):
        """Test that missing arguments fail like a normal call."""
        with pytest.raises(TypeError):
            github.get_repo('python')

    def test_with_base_url(self, github, handler):
        """Test rebasing a client onto another base URL."""
        staging = github.with_base_url('https://staging.example.com')
        staging.get_repo('a', 'b')
        assert handler.last.url.host == 'staging.example.com'
        assert staging.inner is github.inner
        assert github.base_url == httpx.URL(BASE_URL)

    def test_builder(self, handler):
        """Test the client builder."""
        client = (
            GitHub.builder()
            .base_url('https://ghe.example.com/api/v3/')
            .client(httpx.Client(transport=httpx.MockTransport(handler)))
            .build()
        )
        client.get_repo('a', 'b')
        assert str(handler.last.url) == 'https://ghe.example.com/repos/a/b'

    def test_builder_bearer_auth(self, handler, monkeypatch):
        """Test that the builder's bearer credentials reach the wire."""

        def create_client(settings=None):
            return httpx.Client(transport=httpx.MockTransport(handler), auth=settings.httpx_auth())

        monkeypatch.setattr('declient.transport.create_client', create_client)
        with GitHub.builder().bearer_auth('t0k').build() as client:
            client.get_repo('a', 'b')
        assert handler.last.headers['authorization'] == 'Bearer t0k'

    def test_builder_basic_auth(self, handler, monkeypatch):
        """Test that the builder's basic credentials reach the wire."""

        def create_client(settings=None):
            return httpx.Client(transport=httpx.MockTransport(handler), auth=settings.httpx_auth())

        monkeypatch.setattr('declient.transport.create_client', create_client)
        with GitHub.builder().bearer_auth('t0k').basic_auth('ada', 'secret').build() as client:
            client.get_repo('a', 'b')
        assert handler.last.headers['authorization'] == 'Basic YWRhOnNlY3JldA=='

    def test_builder_auth_on_default_transport(self):
        """Test that the owned httpx client is created with the auth flow."""
        with GitHub.builder().bearer_auth('t0k').build() as client:
            assert isinstance(client.inner.client.auth, BearerAuth)

    def test_default_transport(self):
        """Test that an owned client creates and closes its own transport."""
        with GitHub() as client:
            assert client.base_url == httpx.URL(BASE_URL)
            assert client.inner.client.timeout.read == 30.0
        assert client.inner.client.is_closed

    def test_endpoint_repr_and_signature(self):
        """Test that endpoints keep their declared name and signature."""
        endpoint = GitHub.__dict__['get_repo']
        assert isinstance(endpoint, Endpoint)
        assert endpoint.__name__ == 'get_repo'
        assert list(endpoint.signature.parameters) == ['owner', 'repo']
        assert 'GET /repos/{owner}/{repo}' in repr(endpoint)


class TestWrapperMode:
    """Tests for wrapper-mode clients."""

    def test_requires_transport(self):
        """Test that a wrapper cannot be created without a transport."""
        with pytest.raises(TypeError, match='wraps a transport'):
            Wrapped()

    def test_wraps_any_transport(self):
        """Test a wrapper around a plain object with an execute method."""

        class StubTransport:
            def __init__(self):
                self.requests = []

            def execute(self, request):
                self.requests.append(request)
                return httpx.Response(200, json={'ok': True}, request=request)

        stub = StubTransport()
        client = Wrapped(stub)
        assert client.status() == {'ok': True}
        assert str(stub.requests[0].url) == 'https://api.example.com/status'
        assert client.inner is stub


class TestCapabilityMode:
    """Tests for capability-mode APIs."""

    def test_not_instantiable(self):
        """Test that capability APIs are never instantiated."""
        with pytest.raises(TypeError, match='capability API'):
            Capability()

    def test_called_on_bound_transport(self, handler):
        """Test calling endpoints on any bound transport."""
        bound = ApiClient(mock_transport(handler), 'https://eu.example.com')
        repo = Capability.get_repo(bound, 'python', 'cpython')
        assert repo.name == 'cpython'
        assert str(handler.last.url) == 'https://eu.example.com/repos/python/cpython'

        handler.default = httpx.Response(404)
        assert Capability.delete_repo(bound, 'a', 'b') is None

    def test_rebased_bound_transport(self, handler):
        """Test that a rebased bound transport shares the inner transport."""
        bound = ApiClient(mock_transport(handler), 'https://eu.example.com')
        us = bound.with_base_url('https://us.example.com')
        Capability.get_repo(us, 'a', 'b')
        assert handler.last.url.host == 'us.example.com'
        assert us.inner is bound.inner

    def test_compiled_plans_available(self):
        """Test that capability APIs expose their plans."""
        compiled = get_compiled_api(Capability)
        assert compiled.declaration.base_url is None
        assert [plan.name for plan in compiled] == ['get_repo', 'delete_repo']


class TestAsyncClient:
    """Tests for async API clients."""

    def test_get_repo(self, handler):
        """Test an async endpoint end to end."""

        async def run():
            async with AsyncGitHub(mock_async_transport(handler)) as client:
                return await client.get_repo('python', 'cpython')

        assert asyncio.run(run()) == Repository(**REPOSITORY_JSON)
        assert handler.last.url.path == '/repos/python/cpython'

    def test_not_found_as_none(self, handler):
        """Test 404 mapping on async endpoints."""
        handler.default = httpx.Response(404)

        async def run():
            client = AsyncGitHub(mock_async_transport(handler))
            return await client.find_repo('python', 'missing')

        assert asyncio.run(run()) is None

    def test_json_body(self, handler):
        """Test an async endpoint with a JSON body and a timeout."""

        async def run():
            client = AsyncGitHub(mock_async_transport(handler))
            return await client.create_repo('python', NewRepository(name='x'))

        assert asyncio.run(run()).name == 'cpython'
        assert json.loads(handler.last.content)['name'] == 'x'
        assert handler.last.extensions['timeout']['read'] == 2.0

    def test_timeout_enforced(self):
        """Test that a slow transport is cancelled after the endpoint timeout."""

        class SlowTransport:
            async def execute(self, request):
                await asyncio.sleep(10)

        class SlowApi(AsyncApi, base_url=BASE_URL):
            @get('/slow', timeout='10ms')
            async def slow(self) -> dict: ...

        async def run():
            client = SlowApi(SlowTransport())
            with pytest.raises(RequestTimeoutError):
                await client.slow()

        asyncio.run(run())

    def test_sync_close_rejected(self):
        """Test that async clients refuse the sync context manager."""
        client = AsyncGitHub(mock_async_transport(RecordingHandler()))
        with pytest.raises(TypeError):
            client.close()
        with pytest.raises(TypeError):
            with client:
                pass
