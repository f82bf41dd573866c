"""Custom exceptions for declient.

This module defines the exception hierarchy used throughout declient.
Errors fall into two families: compilation errors, raised while an API
declaration is turned into request plans (always at class-definition time),
and call errors, raised while a compiled endpoint talks to a server.
"""

from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

__all__ = [
    'DeclientError',
    # Compilation
    'CompilationError',
    'InvalidDeclarationError',
    'UnsatisfiedPlaceholderError',
    'AmbiguousBodyError',
    'UnclassifiedParameterError',
    'ClassificationPrecedenceViolation',
    'UnknownFormatError',
    # Calls
    'CallError',
    'HttpStatusError',
    'RequestTimeoutError',
    'TransportConnectionError',
    'TlsError',
    'InvalidRequestError',
    'SerializationError',
    'DeserializationError',
    # Tooling
    'CodeGenerationError',
    'ConfigurationError',
    'OutputError',
]


class DeclientError(Exception):
    """Base exception for all declient errors.

    All exceptions raised by declient inherit from this class, making it easy
    to catch every declient-related error with a single except clause.

    Example:
        try:
            api.get_user(42)
        except DeclientError as e:
            print(f"declient error: {e}")
    """

    def __init__(self, message: str, *args, **kwargs):
        self.message = message
        super().__init__(message, *args, **kwargs)


# =============================================================================
# Compilation errors
# =============================================================================


class CompilationError(DeclientError):
    """An API declaration could not be compiled into request plans.

    Compilation errors are fatal and happen once, when the API class is
    defined. No partially compiled API is ever produced.

    Attributes:
        endpoint: The name of the endpoint being compiled, if known.
        method: The HTTP verb of that endpoint.
        path: The URL template of that endpoint.
        reason: The bare description of the failure, without endpoint context.
    """

    def __init__(
        self,
        message: str,
        endpoint: str | None = None,
        method: str | None = None,
        path: str | None = None,
    ):
        self.reason = message
        self.endpoint = endpoint
        self.method = method
        self.path = path
        full_message = message
        if endpoint:
            context = f"endpoint '{endpoint}'"
            if method and path:
                context += f' ({method.upper()} {path})'
            full_message = f'Failed to compile {context}: {message}'
        super().__init__(full_message)

    def attach_endpoint(
        self, endpoint: str, method: str | None = None, path: str | None = None
    ) -> None:
        """Annotate the error with the endpoint it was raised for.

        Errors raised deep inside the compiler do not know which endpoint they
        belong to; the endpoint compiler attaches that context on the way out.
        Context that is already present is kept.
        """
        if self.endpoint:
            return
        CompilationError.__init__(self, self.reason, endpoint, method, path)


class InvalidDeclarationError(CompilationError):
    """A declaration is malformed (bad verb, return type, binding mode...)."""

    pass


class UnsatisfiedPlaceholderError(CompilationError):
    """A URL placeholder is not bound to exactly one path parameter.

    Attributes:
        placeholder: The placeholder name as it appears between braces.
        parameters: The path parameters that claim it (empty when none does).
    """

    def __init__(self, placeholder: str, parameters: list[str] | None = None):
        self.placeholder = placeholder
        self.parameters = parameters or []
        if self.parameters:
            message = (
                f"placeholder '{{{placeholder}}}' is bound by more than one path "
                f'parameter: {self.parameters}'
            )
        else:
            message = f"placeholder '{{{placeholder}}}' is not bound by any parameter"
        super().__init__(message)


class AmbiguousBodyError(CompilationError):
    """More than one parameter would supply the request body.

    Attributes:
        parameters: Names of the competing body-bearing parameters.
    """

    def __init__(self, parameters: list[str], reason: str | None = None):
        self.parameters = parameters
        message = reason or (
            f'multiple body parameters found: {parameters}. '
            'Only one Body or Form parameter is allowed per endpoint'
        )
        super().__init__(message)


class UnclassifiedParameterError(CompilationError):
    """A single parameter has no role and the verb cannot carry a body.

    Attributes:
        parameter: The offending parameter name.
        placeholders: The placeholders available in the URL template.
    """

    def __init__(self, parameter: str, verb: str, placeholders: list[str]):
        self.parameter = parameter
        self.verb = verb
        self.placeholders = placeholders
        message = (
            f"parameter '{parameter}' does not match any URL placeholder "
            f'(available: {placeholders}) and {verb.upper()} requests do not '
            'support a body. Mark it with Query(), Header(), or Path(), or '
            'rename it to match a placeholder'
        )
        super().__init__(message)


class ClassificationPrecedenceViolation(CompilationError):
    """More than one parameter is left without a role.

    Attributes:
        parameters: The unclassified parameter names, in declaration order.
        placeholders: The placeholders available in the URL template.
    """

    def __init__(self, parameters: list[str], placeholders: list[str]):
        self.parameters = parameters
        self.placeholders = placeholders
        message = (
            f'multiple unattributed parameters found: {parameters}. '
            'Only one body parameter can be inferred; mark the others with '
            f'Query(), Header(), or Path() (available placeholders: {placeholders})'
        )
        super().__init__(message)


class UnknownFormatError(CompilationError):
    """A format option (collection format, rename rule, duration) is unknown.

    Attributes:
        kind: What was being parsed, e.g. 'collection format'.
        value: The rejected value.
        expected: The accepted spellings.
    """

    def __init__(self, kind: str, value: Any, expected: list[str] | None = None):
        self.kind = kind
        self.value = value
        self.expected = expected or []
        message = f'unknown {kind} {value!r}'
        if self.expected:
            message += f' (expected one of: {", ".join(self.expected)})'
        super().__init__(message)


# =============================================================================
# Call errors
# =============================================================================


class CallError(DeclientError):
    """Base exception for failures while executing a compiled endpoint.

    Attributes:
        request: The request being executed, when one was built.
    """

    def __init__(self, message: str, request: httpx.Request | None = None):
        self.request = request
        super().__init__(message)


class HttpStatusError(CallError):
    """The server answered with a status the endpoint does not accept.

    The raw body is always preserved so callers can re-decode it as an
    API-specific error type with :meth:`decode_body`.

    Attributes:
        status: The HTTP status code.
        detail: The reason phrase or message, if any.
        body: The raw response body, or None when the response had none.
        response: The full response, when available.
    """

    def __init__(
        self,
        status: int,
        message: str | None = None,
        body: bytes | None = None,
        response: httpx.Response | None = None,
        request: httpx.Request | None = None,
    ):
        self.status = status
        self.detail = message
        self.body = body
        self.response = response
        text = f'HTTP error {status}: {message}' if message else f'HTTP error {status}'
        super().__init__(text, request=request)

    @classmethod
    def from_response(cls, response: httpx.Response) -> 'HttpStatusError':
        """Build the error for an unaccepted response, keeping its body."""
        try:
            request = response.request
        except RuntimeError:
            request = None
        return cls(
            response.status_code,
            response.reason_phrase or None,
            body=response.content or None,
            response=response,
            request=request,
        )

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return 500 <= self.status < 600

    @property
    def is_not_found(self) -> bool:
        return self.status == 404

    @property
    def text(self) -> str:
        """The body decoded as UTF-8, with undecodable bytes replaced."""
        return (self.body or b'').decode('utf-8', errors='replace')

    def decode_body(self, type_: Any) -> Any:
        """Decode the error body as JSON into the given type.

        Args:
            type_: Any type a pydantic TypeAdapter accepts, typically a model
                describing the API's error payload.

        Returns:
            The decoded value.

        Raises:
            DeserializationError: If the body is missing or does not match.
        """
        if not self.body:
            raise DeserializationError('.', 'error response has no body')
        try:
            return TypeAdapter(type_).validate_json(self.body)
        except ValidationError as e:
            raise DeserializationError.from_validation_error(e) from e


class RequestTimeoutError(CallError, TimeoutError):
    """The call did not complete within its timeout."""

    def __init__(self, message: str = 'request timeout', request=None):
        super().__init__(message, request=request)


class TransportConnectionError(CallError):
    """The transport could not reach the server."""

    def __init__(self, message: str, request: httpx.Request | None = None):
        super().__init__(f'connection error: {message}', request=request)


class TlsError(CallError):
    """The TLS handshake or certificate validation failed."""

    def __init__(self, message: str, request: httpx.Request | None = None):
        super().__init__(f'TLS error: {message}', request=request)


class InvalidRequestError(CallError):
    """A request could not be built, e.g. the base URL is malformed."""

    def __init__(self, message: str, request: httpx.Request | None = None):
        super().__init__(f'invalid request: {message}', request=request)


class SerializationError(CallError):
    """An argument could not be encoded for the wire.

    Attributes:
        parameter: The parameter whose value failed, when known. A failure
            inside a record names the field after its parameter, as in
            ``'filters.page'``.
        reason: The bare description of the failure, without the parameter.
    """

    def __init__(self, message: str, parameter: str | None = None):
        self.parameter = parameter
        self.reason = message
        full_message = message
        if parameter:
            full_message = f"cannot serialize parameter '{parameter}': {message}"
        super().__init__(full_message)

    def within(self, parameter: str) -> 'SerializationError':
        """The same failure, reported as part of the enclosing ``parameter``."""
        qualified = f'{parameter}.{self.parameter}' if self.parameter else parameter
        return SerializationError(self.reason, parameter=qualified)


class DeserializationError(CallError):
    """A response body did not decode into the declared result type.

    Attributes:
        path: Dotted location of the first mismatch ('.' for the document root).
        detail: Description of the mismatch.
    """

    def __init__(self, path: str, message: str):
        self.path = path
        self.detail = message
        super().__init__(f"JSON deserialization error at '{path}': {message}")

    @classmethod
    def from_validation_error(cls, error: ValidationError) -> 'DeserializationError':
        """Build the error from the first entry of a pydantic ValidationError."""
        errors = error.errors()
        if not errors:
            return cls('.', str(error))
        first = errors[0]
        path = '.'.join(str(part) for part in first.get('loc', ())) or '.'
        return cls(path, first.get('msg', str(error)))


# =============================================================================
# Tooling errors
# =============================================================================


class CodeGenerationError(DeclientError):
    """Error during offline code generation.

    Attributes:
        context: Additional context about what was being generated.
        cause: The underlying exception that caused the failure.
    """

    def __init__(
        self, message: str, context: str | None = None, cause: Exception | None = None
    ):
        self.context = context
        self.cause = cause
        full_message = message
        if context:
            full_message = f'{message} (while generating {context})'
        if cause:
            full_message += f': {cause}'
        super().__init__(full_message)


class ConfigurationError(DeclientError):
    """Error in configuration.

    Attributes:
        config_path: The path to the configuration file, if applicable.
        field: The specific configuration field that is invalid.
    """

    def __init__(
        self, message: str, config_path: str | None = None, field: str | None = None
    ):
        self.config_path = config_path
        self.field = field
        full_message = message
        if config_path:
            full_message = f"{message} in '{config_path}'"
        if field:
            full_message += f' (field: {field})'
        super().__init__(full_message)


class OutputError(DeclientError):
    """Error writing generated output.

    Attributes:
        output_path: The path where output was being written.
        cause: The underlying exception that caused the failure.
    """

    def __init__(self, output_path: str, cause: Exception | None = None):
        self.output_path = output_path
        self.cause = cause
        message = f"Failed to write output to '{output_path}'"
        if cause:
            message += f': {cause}'
        super().__init__(message)
