"""Test endpoint and API compilation."""

import logging
from typing import Annotated

import pytest

from declient import Api, Body, Form, Multipart, Part, Path, Query, get, post
from declient.compiler.compiler import EndpointCompiler, compile_api
from declient.compiler.types import (
    BodyKind,
    BodyRole,
    FormRole,
    HeaderRole,
    MultipartRole,
    PathRole,
    QueryRole,
    ReturnShapeKind,
)
from declient.declarations import (
    ApiDeclaration,
    BindingMode,
    EndpointDeclaration,
    EndpointOptions,
    ParameterDeclaration,
)
from declient.exceptions import (
    AmbiguousBodyError,
    ClassificationPrecedenceViolation,
    CompilationError,
    InvalidDeclarationError,
    UnknownFormatError,
    UnsatisfiedPlaceholderError,
)

from .fixtures import GitHub, NewRepository, Repository, SearchParams


def _api(*endpoints, **kwargs) -> ApiDeclaration:
    kwargs.setdefault('base_url', 'https://api.example.com')
    return ApiDeclaration(name='TestApi', endpoints=endpoints, **kwargs)


def _endpoint(name, method, path, *parameters, returns=None, **kwargs) -> EndpointDeclaration:
    return EndpointDeclaration(
        name=name, method=method, path=path, parameters=parameters, returns=returns, **kwargs
    )


class TestEndpointCompiler:
    """Tests for the EndpointCompiler class."""

    def test_get_repo_plan(self):
        """Test the plan of a plain path endpoint."""
        plan = GitHub.__declient_api__['get_repo']
        assert plan.method == 'GET'
        assert plan.path == '/repos/{owner}/{repo}'
        assert plan.placeholders == ('owner', 'repo')
        assert [p.role for p in plan.parameters] == [PathRole(), PathRole()]
        assert plan.body.kind is BodyKind.NONE
        assert plan.response.kind is ReturnShapeKind.JSON
        assert plan.doc == 'Get a repository by owner and name.'

    def test_static_headers(self):
        """Test that interface headers are folded into every plan."""
        plan = GitHub.__declient_api__['get_repo']
        names = [name for name, _ in plan.headers.static]
        assert names == ['User-Agent', 'Accept', 'X-Api-Version']
        assert dict(plan.headers.static)['User-Agent'].startswith('declient/')

    def test_inferred_body_and_header(self):
        """Test body inference next to a path parameter and a header."""
        plan = GitHub.__declient_api__['create_repo']
        assert isinstance(plan.parameter('repo').role, BodyRole)
        assert plan.parameter('repo').inferred is True
        assert plan.body.kind is BodyKind.JSON
        assert plan.body.fields == (('repo', 'repo'),)
        assert plan.headers.parameters == (('trace_id', 'X-Trace-Id'),)

    def test_form_and_multipart_plans(self):
        """Test form and multipart body plans."""
        login = GitHub.__declient_api__['login']
        assert login.body.kind is BodyKind.FORM
        assert isinstance(login.parameter('credentials').role, FormRole)
        assert login.timeout == 5.0

        upload = GitHub.__declient_api__['upload']
        assert upload.body.kind is BodyKind.MULTIPART
        assert upload.body.fields == (('file', 'file'), ('description', 'desc'))
        assert isinstance(upload.parameter('description').role, MultipartRole)

    def test_metadata(self):
        """Test the parameter metadata attached to every request."""
        plan = GitHub.__declient_api__['search']
        assert plan.metadata.method_name == 'search'
        assert plan.metadata.path_template == '/search/repositories'
        assert [(m.name, m.location, m.required) for m in plan.metadata.parameters] == [
            ('q', 'query', True),
            ('topics', 'query', False),
            ('page', 'query', False),
        ]
        assert plan.metadata.by_location('query')[0].type_name == 'str'

    def test_unbound_placeholder(self):
        """Test that every placeholder needs a path parameter."""
        endpoint = _endpoint(
            'get_user', 'GET', '/users/{id}', ParameterDeclaration('name', str, Query())
        )
        with pytest.raises(UnsatisfiedPlaceholderError) as exc_info:
            EndpointCompiler(_api(endpoint)).compile(endpoint)
        error = exc_info.value
        assert error.placeholder == 'id'
        assert error.endpoint == 'get_user'
        assert str(error).startswith("Failed to compile endpoint 'get_user' (GET /users/{id}): ")

    def test_placeholder_bound_twice(self):
        """Test that a placeholder may be bound by only one parameter."""
        endpoint = _endpoint(
            'get_user',
            'GET',
            '/users/{id}',
            ParameterDeclaration('id', int),
            ParameterDeclaration('user_id', int, Path('id')),
        )
        with pytest.raises(UnsatisfiedPlaceholderError) as exc_info:
            EndpointCompiler(_api(endpoint)).compile(endpoint)
        assert exc_info.value.parameters == ['id', 'user_id']

    def test_unused_path_parameter_warns(self, caplog):
        """Test that an explicit path parameter matching nothing only warns."""
        endpoint = _endpoint(
            'status', 'GET', '/status', ParameterDeclaration('region', str, Path())
        )
        with caplog.at_level(logging.WARNING, logger='declient.compiler.compiler'):
            plan = EndpointCompiler(_api(endpoint)).compile(endpoint)
        assert isinstance(plan.parameter('region').role, PathRole)
        assert "Path parameter 'region' matches no placeholder" in caplog.text

    def test_two_bodies(self):
        """Test that two body parameters are ambiguous."""
        endpoint = _endpoint(
            'create',
            'POST',
            '/items',
            ParameterDeclaration('a', dict, Body()),
            ParameterDeclaration('b', dict, Form()),
        )
        with pytest.raises(AmbiguousBodyError) as exc_info:
            EndpointCompiler(_api(endpoint)).compile(endpoint)
        assert exc_info.value.parameters == ['a', 'b']

    def test_body_and_multipart(self):
        """Test that a body cannot be combined with multipart parts."""
        endpoint = _endpoint(
            'upload',
            'POST',
            '/files',
            ParameterDeclaration('meta', dict, Body()),
            ParameterDeclaration('file', Part, Multipart()),
        )
        with pytest.raises(AmbiguousBodyError, match='cannot be combined with multipart'):
            EndpointCompiler(_api(endpoint)).compile(endpoint)

    def test_explicit_body_on_get(self):
        """Test that an explicit body marker is honored on any verb."""
        endpoint = _endpoint(
            'query', 'GET', '/graph', ParameterDeclaration('document', dict, Body())
        )
        plan = EndpointCompiler(_api(endpoint)).compile(endpoint)
        assert plan.body.kind is BodyKind.JSON

    def test_query_record_with_bad_rename_rule(self):
        """Test that a record's rename rule is validated at compile time."""
        from pydantic import BaseModel

        from declient.params import query_struct

        @query_struct(rename_all='Sentence case')
        class BadParams(BaseModel):
            a: int

        endpoint = _endpoint(
            'search', 'GET', '/search', ParameterDeclaration('params', BadParams, Query())
        )
        with pytest.raises(UnknownFormatError):
            EndpointCompiler(_api(endpoint)).compile(endpoint)

    def test_header_role(self):
        """Test that header parameters keep their declared name."""
        plan = GitHub.__declient_api__['create_repo']
        assert plan.parameter('trace_id').role == HeaderRole('X-Trace-Id')
        assert plan.parameter('trace_id').key == 'X-Trace-Id'

    def test_query_record(self):
        """Test a record-typed query parameter."""
        plan = GitHub.__declient_api__['search_advanced']
        assert isinstance(plan.parameter('params').role, QueryRole)
        assert plan.parameter('params').descriptor.annotation is SearchParams

    def test_custom_verb(self):
        """Test that a custom verb compiles without body inference."""
        plan = GitHub.__declient_api__['purge']
        assert plan.method == 'PURGE'
        assert plan.response.kind is ReturnShapeKind.UNIT


class TestCompileApi:
    """Tests for compile_api."""

    def test_compiles_all_endpoints(self):
        """Test that every endpoint gets a plan, in declaration order."""
        compiled = compile_api(
            _api(
                _endpoint('a', 'GET', '/a', returns=Repository),
                _endpoint('b', 'POST', '/b', ParameterDeclaration('body', NewRepository)),
            )
        )
        assert len(compiled) == 2
        assert [plan.name for plan in compiled] == ['a', 'b']
        assert compiled['b'].body.kind is BodyKind.JSON

    def test_all_or_nothing(self):
        """Test that one invalid endpoint fails the whole API."""
        with pytest.raises(ClassificationPrecedenceViolation) as exc_info:
            compile_api(
                _api(
                    _endpoint('good', 'GET', '/good'),
                    _endpoint(
                        'bad',
                        'POST',
                        '/bad',
                        ParameterDeclaration('x', int),
                        ParameterDeclaration('y', int),
                    ),
                )
            )
        assert exc_info.value.endpoint == 'bad'

    def test_duplicate_names(self):
        """Test that endpoint names must be unique."""
        with pytest.raises(InvalidDeclarationError, match='duplicate endpoint name'):
            compile_api(_api(_endpoint('a', 'GET', '/a'), _endpoint('a', 'GET', '/b')))

    def test_base_url_required_for_owned(self):
        """Test that owned and wrapper APIs need a base URL."""
        with pytest.raises(InvalidDeclarationError, match='needs a base_url'):
            compile_api(_api(_endpoint('a', 'GET', '/a'), base_url=None))

    def test_capability_without_base_url(self):
        """Test that capability APIs take the base URL from the transport."""
        compiled = compile_api(
            _api(_endpoint('a', 'GET', '/a'), base_url=None, mode=BindingMode.CAPABILITY)
        )
        assert len(compiled) == 1

    def test_invalid_method(self):
        """Test that a declared verb must be a valid token."""
        with pytest.raises(InvalidDeclarationError, match='invalid HTTP method'):
            compile_api(_api(_endpoint('a', 'BAD VERB', '/a')))

    def test_timeout_option(self):
        """Test that the endpoint timeout is carried into the plan."""
        compiled = compile_api(
            _api(_endpoint('a', 'GET', '/a', options=EndpointOptions(timeout=1.5)))
        )
        assert compiled['a'].timeout == 1.5


class TestApiClassCompilation:
    """Tests for compilation triggered by class definition."""

    def test_errors_at_class_definition(self):
        """Test that a bad endpoint fails when the class is defined."""
        with pytest.raises(CompilationError) as exc_info:

            class Broken(Api, base_url='https://api.example.com'):
                @get('/users/{id}')
                def get_user(self, name: str) -> dict: ...

        assert exc_info.value.endpoint == 'get_user'

    def test_reserved_endpoint_name(self):
        """Test that endpoint names may not shadow client attributes."""
        with pytest.raises(InvalidDeclarationError, match='clashes with a client attribute'):

            class Broken(Api, base_url='https://api.example.com'):
                @get('/x')
                def execute(self) -> dict: ...

    def test_async_endpoint_on_sync_api(self):
        """Test that a sync API rejects coroutine endpoints."""
        with pytest.raises(InvalidDeclarationError, match='must be a plain def'):

            class Broken(Api, base_url='https://api.example.com'):
                @get('/x')
                async def fetch(self) -> dict: ...

    def test_unknown_mode(self):
        """Test that the binding mode must be known."""
        with pytest.raises(InvalidDeclarationError, match='unknown binding mode'):

            class Broken(Api, base_url='https://api.example.com', mode='borrowed'):
                @get('/x')
                def fetch(self) -> dict: ...

    def test_inherited_endpoints(self):
        """Test that subclasses inherit and may override endpoints."""

        class Base(Api, abstract=True):
            @get('/a')
            def a(self) -> dict: ...

        class Child(Base, base_url='https://api.example.com'):
            @get('/b')
            def b(self, q: Annotated[str, Query()]) -> dict: ...

        assert [plan.name for plan in Child.__declient_api__] == ['a', 'b']
