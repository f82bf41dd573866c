"""Return type analysis.

This module provides the ResponseProcessor class, which classifies an
endpoint's declared return type into the shape the response interpreter
works with and prepares the JSON validator for it once.
"""

from typing import Any

from pydantic import TypeAdapter
from pydantic.errors import PydanticSchemaGenerationError

from declient.compiler.types import (
    ResponsePolicy,
    ReturnShapeKind,
    TypeKind,
    describe_type,
    type_repr,
)
from declient.exceptions import InvalidDeclarationError

__all__ = ['ResponseProcessor']


class ResponseProcessor:
    """Builds the response policy of an endpoint.

    Errors are raised as exceptions, so the declared return annotation is the
    success type itself. With ``not_found_as_none`` the annotation must be
    optional (``T | None``), and the optional layer is unwrapped before the
    inner type is classified:

    - ``None`` becomes UNIT,
    - ``httpx.Response`` becomes RAW_RESPONSE,
    - anything else becomes JSON, decoded through a TypeAdapter.
    """

    def analyze(self, returns: Any, not_found_as_none: bool = False) -> ResponsePolicy:
        """Classify a return annotation.

        Args:
            returns: The declared return annotation.
            not_found_as_none: Whether the endpoint maps 404 to None.

        Returns:
            The response policy.

        Raises:
            InvalidDeclarationError: If ``not_found_as_none`` is set on a
                non-optional return type, or the type cannot be validated.
        """
        descriptor = describe_type(returns)

        if not_found_as_none:
            if descriptor.kind is TypeKind.OPTIONAL:
                descriptor = descriptor.inner
            elif descriptor.kind is not TypeKind.UNIT:
                raise InvalidDeclarationError(
                    'not_found_as_none requires an optional return type, '
                    f'e.g. {type_repr(returns)} | None'
                )

        if descriptor.kind is TypeKind.UNIT:
            return ResponsePolicy(ReturnShapeKind.UNIT, not_found_as_none)
        if descriptor.kind is TypeKind.RAW_RESPONSE:
            return ResponsePolicy(
                ReturnShapeKind.RAW_RESPONSE, not_found_as_none, descriptor.annotation
            )

        annotation = descriptor.annotation
        try:
            adapter = TypeAdapter(annotation)
        except PydanticSchemaGenerationError as e:
            raise InvalidDeclarationError(
                f'return type {type_repr(annotation)} cannot be decoded from JSON: {e}'
            ) from e
        return ResponsePolicy(ReturnShapeKind.JSON, not_found_as_none, annotation, adapter)
