import re

__all__ = (
    'BODY_METHODS',
    'capitalize',
    'extract_placeholders',
    'header_name',
    'is_token',
    'supports_body',
    'to_camel_case',
    'to_kebab_case',
    'to_pascal_case',
    'to_snake_case',
)

# Verbs whose requests may carry an inferred body.
BODY_METHODS = frozenset({'POST', 'PUT', 'PATCH'})

# RFC 9110 token characters, the grammar of a method name.
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

_PLACEHOLDER_RE = re.compile(r'\{([^{}]*)\}')


def capitalize(input_string):
    if not input_string:
        return ''
    return input_string[0].upper() + input_string[1:]


def is_token(value: str) -> bool:
    return bool(_TOKEN_RE.match(value))


def supports_body(method: str) -> bool:
    """Whether an unclassified parameter may become the body for this verb."""
    return method.upper() in BODY_METHODS


def extract_placeholders(template: str) -> list[str]:
    """Return the ``{name}`` placeholders of a URL template, in order.

    Empty placeholders (``{}``) are skipped and duplicates are reported once.

    Example:
        >>> extract_placeholders('/repos/{owner}/{repo}')
        ['owner', 'repo']
    """
    placeholders = []
    for match in _PLACEHOLDER_RE.finditer(template):
        name = match.group(1)
        if name and name not in placeholders:
            placeholders.append(name)
    return placeholders


def to_snake_case(name: str) -> str:
    """Insert an underscore before every inner uppercase letter and lowercase."""
    result = []
    for i, char in enumerate(name):
        if char.isupper():
            if i > 0 and not name[i - 1] == '_':
                result.append('_')
            result.append(char.lower())
        else:
            result.append(char)
    return ''.join(result)


def to_camel_case(name: str) -> str:
    """Drop underscores and capitalize the letter that follows each one."""
    result = []
    capitalize_next = False
    for char in name:
        if char == '_':
            capitalize_next = True
        elif capitalize_next:
            result.append(char.upper())
            capitalize_next = False
        else:
            result.append(char)
    return ''.join(result)


def to_pascal_case(name: str) -> str:
    return capitalize(to_camel_case(name))


def to_kebab_case(name: str) -> str:
    return to_snake_case(name).replace('_', '-')


def header_name(name: str) -> str:
    """Interface-level header names use underscores where HTTP uses hyphens."""
    return name.replace('_', '-')

