"""Header layering.

Headers are merged in layers: baseline, interface-level, single-value header
parameters, then header-bag parameters. A later layer overrides an earlier
one by case-insensitive name; the name keeps the case of the overriding
layer and the position of the first occurrence.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from declient.builders.values import stringify
from declient.compiler.utils import header_name
from declient.exceptions import SerializationError

__all__ = [
    'DEFAULT_ACCEPT',
    'assemble_headers',
    'merge_headers',
    'static_headers',
]

DEFAULT_ACCEPT = 'application/json'

HeaderPairs = list[tuple[str, str]]


def merge_headers(*layers: Iterable[tuple[str, str]]) -> HeaderPairs:
    merged: dict[str, tuple[str, str]] = {}
    for layer in layers:
        for name, value in layer:
            merged[name.lower()] = (name, value)
    return list(merged.values())


def static_headers(
    user_agent: str, interface_headers: Iterable[tuple[str, str]] = ()
) -> tuple[tuple[str, str], ...]:
    """Fold the baseline and interface-level layers.

    Interface-level header names are declared with underscores in place of
    hyphens (``X_Api_Version`` becomes ``X-Api-Version``).
    """
    baseline = [('User-Agent', user_agent), ('Accept', DEFAULT_ACCEPT)]
    interface = [(header_name(name), str(value)) for name, value in interface_headers]
    return tuple(merge_headers(baseline, interface))


def _bag_items(bag: Any) -> Iterable[tuple[Any, Any]]:
    if isinstance(bag, Mapping):
        return bag.items()
    try:
        return [(name, value) for name, value in bag]
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f'header bags must be mappings or (name, value) pairs, not {type(bag).__name__}'
        ) from e


def assemble_headers(
    static: Iterable[tuple[str, str]],
    values: Iterable[tuple[str, Any]] = (),
    bags: Iterable[Any] = (),
) -> httpx.Headers:
    """Build the header set of one call.

    Args:
        static: The folded baseline and interface layers.
        values: (header name, value) for single-value header parameters;
            None values are left out.
        bags: Header-bag argument values, in declaration order.

    Returns:
        The merged headers.
    """
    single = [(name, stringify(value)) for name, value in values if value is not None]
    bag_pairs = []
    for bag in bags:
        if bag is None:
            continue
        bag_pairs.extend((str(name), stringify(value)) for name, value in _bag_items(bag))
    return httpx.Headers(merge_headers(static, single, bag_pairs))
