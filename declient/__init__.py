"""declient - Declarative HTTP API clients.

declient compiles a declarative description of an HTTP API into request
plans: each parameter gets a transport role (path, query, header, body,
form or multipart part), each endpoint gets a request-assembly recipe and a
response-interpretation policy. The plans are executed at runtime by the
API class itself, or emitted ahead of time as plain functions by the code
generator.

Quick Start:
    >>> from typing import Annotated
    >>> from declient import Api, Query, get
    >>>
    >>> class GitHub(Api, base_url='https://api.github.com'):
    ...     @get('/repos/{owner}/{repo}')
    ...     def get_repo(self, owner: str, repo: str) -> Repository: ...
    ...
    ...     @get('/search/repositories')
    ...     def search(self, q: Annotated[str, Query()]) -> SearchResult: ...
    >>>
    >>> with GitHub() as github:
    ...     repo = github.get_repo('python', 'cpython')

CLI Usage:
    $ declient generate --config declient.yaml
    $ declient inspect myproject.api:GitHub
"""

from declient._version import version as __version__
from declient.builders.multipart import MultipartForm, Part
from declient.client import Api, AsyncApi, ClientBuilder, get_compiled_api
from declient.codegen import Codegen
from declient.compiler.compiler import CompiledApi, compile_api
from declient.compiler.types import CollectionFormat, RenameRule, RequestPlan
from declient.config import ClientSettings, CodegenConfig, DocumentConfig, get_config
from declient.declarations import (
    ApiDeclaration,
    BindingMode,
    EndpointDeclaration,
    EndpointOptions,
    ParameterDeclaration,
    delete,
    get,
    head,
    http,
    options,
    patch,
    post,
    put,
)
from declient.exceptions import (
    AmbiguousBodyError,
    CallError,
    ClassificationPrecedenceViolation,
    CodeGenerationError,
    CompilationError,
    ConfigurationError,
    DeclientError,
    DeserializationError,
    HttpStatusError,
    InvalidDeclarationError,
    InvalidRequestError,
    OutputError,
    RequestTimeoutError,
    SerializationError,
    TlsError,
    TransportConnectionError,
    UnclassifiedParameterError,
    UnknownFormatError,
    UnsatisfiedPlaceholderError,
)
from declient.metadata import ParameterMetadata, ParamMeta, get_parameter_metadata, get_path_template
from declient.params import (
    Body,
    Form,
    Header,
    Headers,
    Multipart,
    Path,
    Query,
    QueryField,
    query_struct,
)
from declient.transport import (
    ApiClient,
    AsyncHttpxTransport,
    AsyncTransport,
    BoundTransport,
    HttpxTransport,
    Transport,
)

__all__ = [
    # Declaring APIs
    'Api',
    'AsyncApi',
    'ClientBuilder',
    'get',
    'post',
    'put',
    'delete',
    'patch',
    'head',
    'options',
    'http',
    # Parameter markers
    'Path',
    'Query',
    'Header',
    'Headers',
    'Body',
    'Form',
    'Multipart',
    'QueryField',
    'query_struct',
    'Part',
    'MultipartForm',
    # Declarations and plans
    'ApiDeclaration',
    'EndpointDeclaration',
    'EndpointOptions',
    'ParameterDeclaration',
    'BindingMode',
    'CollectionFormat',
    'RenameRule',
    'RequestPlan',
    'CompiledApi',
    'compile_api',
    'get_compiled_api',
    # Transports
    'Transport',
    'AsyncTransport',
    'BoundTransport',
    'HttpxTransport',
    'AsyncHttpxTransport',
    'ApiClient',
    # Metadata
    'ParamMeta',
    'ParameterMetadata',
    'get_parameter_metadata',
    'get_path_template',
    # Configuration and code generation
    'ClientSettings',
    'CodegenConfig',
    'DocumentConfig',
    'get_config',
    'Codegen',
    # Exceptions
    'DeclientError',
    'CompilationError',
    'InvalidDeclarationError',
    'UnsatisfiedPlaceholderError',
    'AmbiguousBodyError',
    'UnclassifiedParameterError',
    'ClassificationPrecedenceViolation',
    'UnknownFormatError',
    'CallError',
    'HttpStatusError',
    'RequestTimeoutError',
    'TransportConnectionError',
    'TlsError',
    'InvalidRequestError',
    'SerializationError',
    'DeserializationError',
    'CodeGenerationError',
    'ConfigurationError',
    'OutputError',
]
