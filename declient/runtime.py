"""Executing request plans.

``build_plan_request`` walks a plan with concrete argument values and
produces the request; ``invoke`` and ``ainvoke`` send it through a bound
transport and interpret the response. Plans are only read here, never
modified, so any number of calls may share one.
"""

import asyncio
from collections.abc import Awaitable, Mapping
from typing import Any

import httpx

from declient.builders.body_builder import (
    encode_form_body,
    encode_json_body,
    encode_multipart_body,
)
from declient.builders.header_builder import assemble_headers
from declient.builders.path_builder import build_path
from declient.builders.query_builder import query_pairs
from declient.builders.request_builder import build_request, build_url, request_extensions
from declient.builders.values import serializing
from declient.compiler.types import BodyKind, BodyPlan, PathRole, QueryRole, RequestPlan
from declient.exceptions import RequestTimeoutError
from declient.interpreter import interpret_response

__all__ = ['ainvoke', 'await_with_timeout', 'build_plan_request', 'invoke']


def _encode_body(plan: BodyPlan, arguments: Mapping[str, Any]) -> tuple[str, bytes] | None:
    if plan.kind is BodyKind.MULTIPART:
        return encode_multipart_body(
            (field_name, arguments[name]) for name, field_name in plan.fields
        )
    if plan.kind is BodyKind.NONE:
        return None

    name = plan.fields[0][0]
    value = arguments[name]
    if value is None:
        return None
    with serializing(name):
        if plan.kind is BodyKind.FORM:
            return encode_form_body(value, plan.descriptor)
        return encode_json_body(value, plan.adapter)


def build_plan_request(
    plan: RequestPlan, arguments: Mapping[str, Any], base_url: str | httpx.URL
) -> httpx.Request:
    """Assemble the request for one call.

    Args:
        plan: The endpoint's request plan.
        arguments: Argument values by parameter name, defaults applied.
        base_url: Base URL the substituted path is resolved against.

    Returns:
        The request, with the endpoint metadata and any timeout override
        attached as extensions.

    Raises:
        SerializationError: If an argument cannot be encoded.
        InvalidRequestError: If the URL cannot be built.
    """
    path = plan.path
    for parameter in plan.with_role(PathRole):
        with serializing(parameter.name):
            path = build_path(path, [(parameter.key, arguments[parameter.name])])

    query = []
    for parameter in plan.with_role(QueryRole):
        with serializing(parameter.name):
            query.extend(
                query_pairs(
                    parameter.key,
                    arguments[parameter.name],
                    parameter.descriptor,
                    parameter.role.format,
                )
            )

    with serializing('headers'):
        headers = assemble_headers(
            plan.headers.static,
            [(header, arguments[name]) for name, header in plan.headers.parameters],
            [arguments[name] for name in plan.headers.bags],
        )

    return build_request(
        plan.method,
        build_url(base_url, path, query),
        headers,
        _encode_body(plan.body, arguments),
        request_extensions(plan.metadata, plan.timeout),
    )


def invoke(plan: RequestPlan, target: Any, arguments: Mapping[str, Any]) -> Any:
    """Run a synchronous endpoint against a bound transport."""
    request = build_plan_request(plan, arguments, target.base_url)
    response = target.execute(request)
    return interpret_response(plan.response, response)


async def await_with_timeout(
    awaitable: Awaitable[httpx.Response],
    timeout: float | None,
    request: httpx.Request | None = None,
) -> httpx.Response:
    """Await a response, cancelling it once the timeout elapses."""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except RequestTimeoutError:
        raise
    except asyncio.TimeoutError as e:
        raise RequestTimeoutError(request=request) from e


async def ainvoke(plan: RequestPlan, target: Any, arguments: Mapping[str, Any]) -> Any:
    """Run an asynchronous endpoint against a bound async transport."""
    request = build_plan_request(plan, arguments, target.base_url)
    response = await await_with_timeout(target.execute(request), plan.timeout, request)
    return interpret_response(plan.response, response)
