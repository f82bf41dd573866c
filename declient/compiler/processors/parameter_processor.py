"""Parameter classification.

This module provides the ParameterProcessor class that assigns each declared
parameter exactly one transport role. Precedence is fixed: an explicit marker
wins, then a name matching a URL placeholder, and finally a single leftover
parameter becomes the body when the verb can carry one.
"""

import logging
from collections.abc import Sequence

from declient.compiler.types import (
    BodyRole,
    ClassifiedParameter,
    CollectionFormat,
    FormRole,
    HeaderBagRole,
    HeaderRole,
    MultipartRole,
    ParamRole,
    PathRole,
    QueryRole,
)
from declient.compiler.utils import supports_body
from declient.declarations import ParameterDeclaration
from declient.exceptions import (
    ClassificationPrecedenceViolation,
    InvalidDeclarationError,
    UnclassifiedParameterError,
)
from declient.params import Body, Form, Header, Headers, Multipart, ParamMarker, Path, Query

__all__ = ['ParameterProcessor']

logger = logging.getLogger(__name__)


class ParameterProcessor:
    """Classifies the parameters of one endpoint.

    Example:
        >>> processor = ParameterProcessor('GET', ['owner', 'repo'])
        >>> classified = processor.classify(endpoint.parameters)
    """

    def __init__(self, method: str, placeholders: Sequence[str]):
        """Initialize the parameter processor.

        Args:
            method: The endpoint's HTTP verb.
            placeholders: Placeholders of the endpoint's URL template.
        """
        self.method = method.upper()
        self.placeholders = list(placeholders)
        self._placeholder_set = frozenset(placeholders)

    def role_from_marker(self, name: str, marker: ParamMarker) -> ParamRole:
        """Translate an explicit marker into a role.

        Args:
            name: The parameter the marker is attached to.
            marker: The marker instance.

        Returns:
            The role, used verbatim.

        Raises:
            UnknownFormatError: If a query collection format is unknown.
            InvalidDeclarationError: If the marker is malformed.
        """
        match marker:
            case Path(alias=alias):
                return PathRole(alias)
            case Query(alias=alias, format=collection_format):
                return QueryRole(alias, CollectionFormat.parse(collection_format))
            case Header(name=header):
                if not header:
                    raise InvalidDeclarationError(
                        f"Header marker on parameter '{name}' needs a header name"
                    )
                return HeaderRole(header)
            case Headers():
                return HeaderBagRole()
            case Body():
                return BodyRole()
            case Form():
                return FormRole()
            case Multipart(name=field_name):
                return MultipartRole(field_name)
        raise InvalidDeclarationError(
            f"unsupported marker {marker!r} on parameter '{name}'"
        )

    def classify(
        self, parameters: Sequence[ParameterDeclaration]
    ) -> list[ClassifiedParameter]:
        """Assign a role to every parameter, keeping declaration order.

        Args:
            parameters: The endpoint's declared parameters.

        Returns:
            One classified parameter per declared parameter.

        Raises:
            UnclassifiedParameterError: If a single parameter is left without
                a role and the verb does not support a body.
            ClassificationPrecedenceViolation: If more than one parameter is
                left without a role.
        """
        roles: dict[str, tuple[ParamRole, bool]] = {}
        unclassified: list[str] = []

        for parameter in parameters:
            if parameter.hint is not None:
                roles[parameter.name] = (
                    self.role_from_marker(parameter.name, parameter.hint),
                    False,
                )
            elif parameter.name in self._placeholder_set:
                roles[parameter.name] = (PathRole(), True)
            else:
                unclassified.append(parameter.name)

        if len(unclassified) > 1:
            raise ClassificationPrecedenceViolation(unclassified, self.placeholders)
        if unclassified:
            name = unclassified[0]
            if not supports_body(self.method):
                raise UnclassifiedParameterError(name, self.method, self.placeholders)
            logger.debug(f"Inferred parameter '{name}' as the request body")
            roles[name] = (BodyRole(), True)

        return [
            ClassifiedParameter(
                name=parameter.name,
                role=roles[parameter.name][0],
                descriptor=parameter.descriptor,
                required=parameter.required,
                inferred=roles[parameter.name][1],
            )
            for parameter in parameters
        ]
