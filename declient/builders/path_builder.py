"""URL template substitution."""

from collections.abc import Iterable
from typing import Any
from urllib.parse import quote

from declient.builders.values import stringify
from declient.exceptions import SerializationError

__all__ = ['PATH_SAFE', 'build_path', 'encode_path_segment']

# Printable ASCII left literal in a substituted segment. Everything else,
# including space " # < > ` ? { } / \ % and all non-ASCII bytes, is
# percent-encoded.
PATH_SAFE = "!$&'()*+,;=:@[]^|"


def encode_path_segment(value: Any) -> str:
    if value is None:
        raise SerializationError('path parameters cannot be None')
    return quote(stringify(value), safe=PATH_SAFE)


def build_path(template: str, values: Iterable[tuple[str, Any]]) -> str:
    """Substitute ``{placeholder}`` occurrences with encoded values.

    Args:
        template: URL template such as ``/repos/{owner}/{repo}``.
        values: (placeholder, value) pairs. Every occurrence of a placeholder
            is replaced.

    Returns:
        The substituted path.

    Example:
        >>> build_path('/repos/{owner}/{repo}', [('owner', 'my org'), ('repo', 'x')])
        '/repos/my%20org/x'
    """
    path = template
    for placeholder, value in values:
        path = path.replace(f'{{{placeholder}}}', encode_path_segment(value))
    return path
