"""Response interpretation.

Turns a response into an endpoint's result according to its response policy:

============  =================  =======  ==========  =================
Shape         not_found_as_none  404      2xx         other
============  =================  =======  ==========  =================
Unit          False              error    None        HttpStatusError
Unit          True               None     True        HttpStatusError
RawResponse   False              response response    response
RawResponse   True               None     response    response
Json          False              error    decoded     HttpStatusError
Json          True               None     decoded     HttpStatusError
============  =================  =======  ==========  =================

Raw responses are never status-checked; only the 404 mapping applies to them.
"""

from typing import Any

import httpx
from pydantic import RootModel, TypeAdapter, ValidationError

from declient.compiler.types import ResponsePolicy, ReturnShapeKind
from declient.exceptions import DeserializationError, HttpStatusError

__all__ = ['decode_json', 'interpret_response']


def decode_json(content: bytes, adapter: TypeAdapter) -> Any:
    """Validate a JSON document, unwrapping root models.

    Raises:
        DeserializationError: With the dotted location of the first mismatch.
    """
    try:
        validated = adapter.validate_json(content)
    except ValidationError as e:
        raise DeserializationError.from_validation_error(e) from e
    if isinstance(validated, RootModel):
        return validated.root
    return validated


def interpret_response(policy: ResponsePolicy, response: httpx.Response) -> Any:
    """Apply a response policy to a response.

    Args:
        policy: The endpoint's response policy.
        response: The (fully read) response.

    Returns:
        The endpoint result, see the module table.

    Raises:
        HttpStatusError: For statuses the policy does not accept.
        DeserializationError: If a JSON body does not match the declared type.
    """
    status = response.status_code

    if policy.not_found_as_none and status == 404:
        return None

    if policy.kind is ReturnShapeKind.RAW_RESPONSE:
        return response

    if not response.is_success:
        raise HttpStatusError.from_response(response)

    if policy.kind is ReturnShapeKind.UNIT:
        return True if policy.not_found_as_none else None

    return decode_json(response.content, policy.adapter)
