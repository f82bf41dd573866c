"""Per-request parameter metadata.

Every request built from a compiled endpoint carries a description of the
endpoint's parameters in ``request.extensions``. Transports and middleware
can read it (for example to label metrics by path template instead of the
substituted URL) without it ever reaching the wire.
"""

from dataclasses import dataclass

import httpx

__all__ = [
    'METADATA_EXTENSION',
    'ParamMeta',
    'ParameterMetadata',
    'get_parameter_metadata',
    'get_path_template',
]

METADATA_EXTENSION = 'declient.metadata'


@dataclass(frozen=True)
class ParamMeta:
    """One declared parameter.

    Attributes:
        name: Parameter name as declared.
        location: 'path', 'query', 'header', 'headers', 'body', 'form'
            or 'multipart'.
        type_name: Readable name of the declared value type.
        required: False when the parameter is optional or has a default.
    """

    name: str
    location: str
    type_name: str
    required: bool


@dataclass(frozen=True)
class ParameterMetadata:
    """The parameters of one endpoint, in declaration order."""

    method_name: str
    path_template: str
    parameters: tuple[ParamMeta, ...] = ()

    def by_location(self, location: str) -> tuple[ParamMeta, ...]:
        return tuple(p for p in self.parameters if p.location == location)


def get_parameter_metadata(request: httpx.Request) -> ParameterMetadata | None:
    """Return the metadata attached to a request, if it came from an endpoint."""
    return request.extensions.get(METADATA_EXTENSION)


def get_path_template(request: httpx.Request) -> str | None:
    """Return the URL template (e.g. ``/users/{id}``) a request was built from."""
    metadata = get_parameter_metadata(request)
    return metadata.path_template if metadata else None
