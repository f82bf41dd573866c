"""Endpoint and API compilation.

Compiling an API validates every endpoint declaration and produces one
immutable RequestPlan per endpoint. Compilation is all-or-nothing: the first
invalid endpoint aborts it with a CompilationError that names the endpoint.
"""

import logging
import types
from collections.abc import Mapping
from dataclasses import dataclass

from pydantic import TypeAdapter
from pydantic.errors import PydanticSchemaGenerationError

from declient.builders.header_builder import static_headers
from declient.builders.query_builder import struct_query_plan
from declient.compiler.processors import ParameterProcessor, ResponseProcessor
from declient.compiler.types import (
    BodyKind,
    BodyPlan,
    BodyRole,
    ClassifiedParameter,
    FormRole,
    HeaderBagRole,
    HeaderPlan,
    HeaderRole,
    MultipartRole,
    PathRole,
    QueryRole,
    RequestPlan,
    TypeKind,
    type_repr,
)
from declient.compiler.utils import extract_placeholders, is_token
from declient.declarations import ApiDeclaration, BindingMode, EndpointDeclaration
from declient.exceptions import (
    AmbiguousBodyError,
    CompilationError,
    InvalidDeclarationError,
    UnsatisfiedPlaceholderError,
)
from declient.metadata import ParameterMetadata, ParamMeta

__all__ = ['CompiledApi', 'EndpointCompiler', 'compile_api']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledApi:
    """The request plans of an API, keyed by endpoint name."""

    declaration: ApiDeclaration
    plans: Mapping[str, RequestPlan]

    def __getitem__(self, name: str) -> RequestPlan:
        return self.plans[name]

    def __iter__(self):
        return iter(self.plans.values())

    def __len__(self) -> int:
        return len(self.plans)


class EndpointCompiler:
    """Compiles the endpoints of one API declaration into request plans.

    Example:
        >>> compiler = EndpointCompiler(api_declaration)
        >>> plan = compiler.compile(api_declaration.endpoints[0])
    """

    def __init__(self, api: ApiDeclaration):
        """Initialize the compiler.

        Args:
            api: The API declaration supplying interface-level headers and the
                user agent shared by all endpoints.
        """
        self.api = api
        self._static_headers = static_headers(api.user_agent, api.headers)
        self._response_processor = ResponseProcessor()

    def compile(self, endpoint: EndpointDeclaration) -> RequestPlan:
        """Compile one endpoint.

        Args:
            endpoint: The endpoint declaration.

        Returns:
            The endpoint's request plan.

        Raises:
            CompilationError: If the declaration is invalid. The error carries
                the endpoint name, verb and URL template.
        """
        try:
            return self._compile(endpoint)
        except CompilationError as e:
            e.attach_endpoint(endpoint.name, endpoint.method, endpoint.path)
            raise

    def _compile(self, endpoint: EndpointDeclaration) -> RequestPlan:
        method = endpoint.method.upper()
        if not is_token(method):
            raise InvalidDeclarationError(f'invalid HTTP method {endpoint.method!r}')

        placeholders = extract_placeholders(endpoint.path)
        parameters = ParameterProcessor(method, placeholders).classify(
            endpoint.parameters
        )

        self._check_placeholders(placeholders, parameters)
        self._check_records(parameters)

        return RequestPlan(
            name=endpoint.name,
            method=method,
            path=endpoint.path,
            placeholders=tuple(placeholders),
            parameters=tuple(parameters),
            headers=HeaderPlan(
                static=self._static_headers,
                parameters=tuple(
                    (p.name, p.role.name) for p in parameters if isinstance(p.role, HeaderRole)
                ),
                bags=tuple(p.name for p in parameters if isinstance(p.role, HeaderBagRole)),
            ),
            body=self._body_plan(parameters),
            response=self._response_processor.analyze(
                endpoint.returns, endpoint.options.not_found_as_none
            ),
            metadata=ParameterMetadata(
                method_name=endpoint.name,
                path_template=endpoint.path,
                parameters=tuple(
                    ParamMeta(
                        name=p.name,
                        location=p.role.location,
                        type_name=p.descriptor.type_name,
                        required=p.required,
                    )
                    for p in parameters
                ),
            ),
            timeout=endpoint.options.timeout,
            is_async=endpoint.is_async,
            doc=endpoint.doc,
        )

    def _check_placeholders(
        self, placeholders: list[str], parameters: list[ClassifiedParameter]
    ) -> None:
        path_parameters = [p for p in parameters if isinstance(p.role, PathRole)]
        for placeholder in placeholders:
            claimants = [p.name for p in path_parameters if p.key == placeholder]
            if len(claimants) != 1:
                raise UnsatisfiedPlaceholderError(placeholder, claimants)
        for parameter in path_parameters:
            if parameter.key not in placeholders:
                logger.warning(
                    f"Path parameter '{parameter.name}' matches no placeholder in "
                    f"'{self.api.name}' and will not appear in the URL"
                )

    def _check_records(self, parameters: list[ClassifiedParameter]) -> None:
        # Record plans are cached, so this also warms the per-call mapper.
        for parameter in parameters:
            if not isinstance(parameter.role, (QueryRole, FormRole)):
                continue
            descriptor = parameter.descriptor.unwrap_optional()
            if descriptor.kind is TypeKind.RECORD:
                struct_query_plan(descriptor.annotation)

    def _body_plan(self, parameters: list[ClassifiedParameter]) -> BodyPlan:
        bodies = [p for p in parameters if isinstance(p.role, (BodyRole, FormRole))]
        parts = [p for p in parameters if isinstance(p.role, MultipartRole)]

        if len(bodies) > 1:
            raise AmbiguousBodyError([p.name for p in bodies])
        if bodies and parts:
            names = [p.name for p in bodies + parts]
            raise AmbiguousBodyError(
                names,
                reason=f'body parameters cannot be combined with multipart parts: {names}',
            )

        if parts:
            return BodyPlan(
                kind=BodyKind.MULTIPART, fields=tuple((p.name, p.key) for p in parts)
            )
        if not bodies:
            return BodyPlan()

        body = bodies[0]
        if isinstance(body.role, FormRole):
            return BodyPlan(
                kind=BodyKind.FORM,
                fields=((body.name, body.name),),
                descriptor=body.descriptor,
            )
        try:
            adapter = TypeAdapter(body.descriptor.annotation)
        except PydanticSchemaGenerationError as e:
            raise InvalidDeclarationError(
                f"body parameter '{body.name}' of type "
                f'{type_repr(body.descriptor.annotation)} cannot be serialized: {e}'
            ) from e
        return BodyPlan(
            kind=BodyKind.JSON, fields=((body.name, body.name),), adapter=adapter
        )


def compile_api(api: ApiDeclaration) -> CompiledApi:
    """Compile every endpoint of an API.

    Raises:
        CompilationError: On the first invalid endpoint; nothing is returned
            for a partially valid API.
    """
    needs_base_url = api.mode in (BindingMode.OWNED, BindingMode.WRAPPER)
    if api.endpoints and needs_base_url and not api.base_url:
        raise InvalidDeclarationError(
            f"API '{api.name}' needs a base_url in {api.mode.value} mode"
        )

    compiler = EndpointCompiler(api)
    plans: dict[str, RequestPlan] = {}
    for endpoint in api.endpoints:
        if endpoint.name in plans:
            raise InvalidDeclarationError(
                f"duplicate endpoint name '{endpoint.name}' in API '{api.name}'"
            )
        plans[endpoint.name] = compiler.compile(endpoint)

    logger.debug(f"Compiled {len(plans)} endpoint(s) for API '{api.name}'")
    return CompiledApi(declaration=api, plans=types.MappingProxyType(plans))
