"""Types produced and consumed by the endpoint compiler.

The compiler turns declarations into immutable plans. Everything in this
module is frozen once built, so plans can be shared by any number of
concurrent calls.
"""

import collections.abc
import dataclasses
import enum
import types
import typing
from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, Union

import httpx
from pydantic import BaseModel, RootModel, TypeAdapter

from declient.builders.multipart import Part
from declient.compiler.utils import (
    to_camel_case,
    to_kebab_case,
    to_pascal_case,
    to_snake_case,
)
from declient.exceptions import UnknownFormatError
from declient.metadata import ParameterMetadata

__all__ = [
    'BodyKind',
    'BodyPlan',
    'BodyRole',
    'ClassifiedParameter',
    'CollectionFormat',
    'FormRole',
    'HeaderBagRole',
    'HeaderPlan',
    'HeaderRole',
    'MultipartRole',
    'ParamRole',
    'PathRole',
    'QueryRole',
    'RenameRule',
    'RequestPlan',
    'ResponsePolicy',
    'ReturnShapeKind',
    'TypeDescriptor',
    'TypeKind',
    'describe_type',
]


# =============================================================================
# Formats
# =============================================================================


class CollectionFormat(str, enum.Enum):
    """How a list value is laid out in the query string."""

    MULTI = 'multi'
    CSV = 'csv'
    SSV = 'ssv'
    PIPES = 'pipes'

    @property
    def separator(self) -> str | None:
        return _SEPARATORS.get(self)

    @classmethod
    def parse(cls, value: 'str | CollectionFormat | None') -> 'CollectionFormat':
        """Resolve a user-supplied format, accepting the common aliases.

        Raises:
            UnknownFormatError: If the value names no known format.
        """
        if value is None:
            return cls.MULTI
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            resolved = _FORMAT_ALIASES.get(value.strip().lower())
            if resolved is not None:
                return resolved
        raise UnknownFormatError(
            'collection format', value, expected=sorted(_FORMAT_ALIASES)
        )


_SEPARATORS = {
    CollectionFormat.CSV: ',',
    CollectionFormat.SSV: ' ',
    CollectionFormat.PIPES: '|',
}

_FORMAT_ALIASES = {
    'multi': CollectionFormat.MULTI,
    'csv': CollectionFormat.CSV,
    'comma': CollectionFormat.CSV,
    'ssv': CollectionFormat.SSV,
    'space': CollectionFormat.SSV,
    'pipes': CollectionFormat.PIPES,
    'pipe': CollectionFormat.PIPES,
}


class RenameRule(str, enum.Enum):
    """Case convention applied to record field names in the query string."""

    LOWERCASE = 'lowercase'
    UPPERCASE = 'UPPERCASE'
    CAMEL_CASE = 'camelCase'
    PASCAL_CASE = 'PascalCase'
    SNAKE_CASE = 'snake_case'
    SCREAMING_SNAKE_CASE = 'SCREAMING_SNAKE_CASE'
    KEBAB_CASE = 'kebab-case'
    SCREAMING_KEBAB_CASE = 'SCREAMING-KEBAB-CASE'

    @classmethod
    def parse(cls, value: 'str | RenameRule') -> 'RenameRule':
        """Resolve a rule name; ``lower`` and ``UPPER`` are accepted too.

        Raises:
            UnknownFormatError: If the value names no known rule.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(_RULE_ALIASES.get(value, value))
            except ValueError:
                pass
        raise UnknownFormatError(
            'rename rule', value, expected=[rule.value for rule in cls]
        )

    def apply(self, name: str) -> str:
        match self:
            case RenameRule.LOWERCASE:
                return name.lower()
            case RenameRule.UPPERCASE:
                return name.upper()
            case RenameRule.CAMEL_CASE:
                return to_camel_case(name)
            case RenameRule.PASCAL_CASE:
                return to_pascal_case(name)
            case RenameRule.SNAKE_CASE:
                return to_snake_case(name)
            case RenameRule.SCREAMING_SNAKE_CASE:
                return to_snake_case(name).upper()
            case RenameRule.KEBAB_CASE:
                return to_kebab_case(name)
            case RenameRule.SCREAMING_KEBAB_CASE:
                return to_kebab_case(name).upper()


_RULE_ALIASES = {'lower': 'lowercase', 'UPPER': 'UPPERCASE'}


# =============================================================================
# Value type descriptors
# =============================================================================


class TypeKind(str, enum.Enum):
    PRIMITIVE = 'primitive'
    OPTIONAL = 'optional'
    LIST = 'list'
    RECORD = 'record'
    MAPPING = 'mapping'
    PART = 'part'
    UNIT = 'unit'
    RAW_RESPONSE = 'raw_response'


@dataclass(frozen=True, eq=False)
class TypeDescriptor:
    """The shape of a declared value type, as far as the wire cares.

    Attributes:
        kind: The broad shape of the type.
        annotation: The annotation the descriptor was built from, with any
            ``Annotated`` metadata stripped.
        inner: The element type for optional, list and mapping kinds.
    """

    kind: TypeKind
    annotation: Any
    inner: 'TypeDescriptor | None' = None

    @property
    def is_optional(self) -> bool:
        return self.kind is TypeKind.OPTIONAL

    def unwrap_optional(self) -> 'TypeDescriptor':
        return self.inner if self.kind is TypeKind.OPTIONAL else self

    @property
    def type_name(self) -> str:
        return type_repr(self.annotation)


_LIST_ORIGINS = {
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
    collections.abc.Collection,
    collections.abc.Iterable,
}

_MAPPING_ORIGINS = {
    dict,
    collections.abc.Mapping,
    collections.abc.MutableMapping,
}


def _is_union(origin) -> bool:
    return origin is Union or origin is types.UnionType


def is_record_type(annotation) -> bool:
    if not isinstance(annotation, type):
        return False
    if issubclass(annotation, BaseModel):
        return not issubclass(annotation, RootModel)
    return dataclasses.is_dataclass(annotation)


def describe_type(annotation: Any) -> TypeDescriptor:
    """Build the descriptor for a parameter or return annotation."""
    origin = typing.get_origin(annotation)

    if origin is Annotated:
        return describe_type(typing.get_args(annotation)[0])

    if annotation is None or annotation is type(None):
        return TypeDescriptor(TypeKind.UNIT, None)

    if _is_union(origin):
        args = typing.get_args(annotation)
        others = [arg for arg in args if arg is not type(None)]
        if len(others) == len(args):
            return TypeDescriptor(TypeKind.PRIMITIVE, annotation)
        if len(others) == 1:
            inner = describe_type(others[0])
        else:
            inner = TypeDescriptor(TypeKind.PRIMITIVE, Union[tuple(others)])
        return TypeDescriptor(TypeKind.OPTIONAL, annotation, inner)

    if origin in _LIST_ORIGINS:
        args = [arg for arg in typing.get_args(annotation) if arg is not Ellipsis]
        inner = describe_type(args[0]) if args else describe_type(Any)
        return TypeDescriptor(TypeKind.LIST, annotation, inner)

    if origin in _MAPPING_ORIGINS:
        args = typing.get_args(annotation)
        inner = describe_type(args[1]) if len(args) == 2 else describe_type(Any)
        return TypeDescriptor(TypeKind.MAPPING, annotation, inner)

    if annotation in _LIST_ORIGINS:
        return TypeDescriptor(TypeKind.LIST, annotation, describe_type(Any))

    if annotation in _MAPPING_ORIGINS or typing.is_typeddict(annotation):
        return TypeDescriptor(TypeKind.MAPPING, annotation, describe_type(Any))

    if isinstance(annotation, type):
        if issubclass(annotation, httpx.Response):
            return TypeDescriptor(TypeKind.RAW_RESPONSE, annotation)
        if issubclass(annotation, Part):
            return TypeDescriptor(TypeKind.PART, annotation)
        if is_record_type(annotation):
            return TypeDescriptor(TypeKind.RECORD, annotation)

    return TypeDescriptor(TypeKind.PRIMITIVE, annotation)


def type_repr(annotation: Any) -> str:
    if annotation is None or annotation is type(None):
        return 'None'
    if isinstance(annotation, type) and not typing.get_args(annotation):
        return annotation.__qualname__
    return repr(annotation).replace('typing.', '')


# =============================================================================
# Parameter roles
# =============================================================================


@dataclass(frozen=True)
class PathRole:
    alias: str | None = None
    location: ClassVar[str] = 'path'


@dataclass(frozen=True)
class QueryRole:
    alias: str | None = None
    format: CollectionFormat = CollectionFormat.MULTI
    location: ClassVar[str] = 'query'


@dataclass(frozen=True)
class HeaderRole:
    name: str
    location: ClassVar[str] = 'header'


@dataclass(frozen=True)
class HeaderBagRole:
    location: ClassVar[str] = 'headers'


@dataclass(frozen=True)
class BodyRole:
    location: ClassVar[str] = 'body'


@dataclass(frozen=True)
class FormRole:
    location: ClassVar[str] = 'form'


@dataclass(frozen=True)
class MultipartRole:
    field_name: str | None = None
    location: ClassVar[str] = 'multipart'


ParamRole = (
    PathRole
    | QueryRole
    | HeaderRole
    | HeaderBagRole
    | BodyRole
    | FormRole
    | MultipartRole
)


@dataclass(frozen=True, eq=False)
class ClassifiedParameter:
    """A declared parameter together with its final role.

    Attributes:
        name: Parameter name as declared.
        role: The transport role it was assigned.
        descriptor: Shape of the declared value type.
        required: False when the value may be omitted.
        inferred: True when the role came from inference rather than a marker.
    """

    name: str
    role: ParamRole
    descriptor: TypeDescriptor
    required: bool = True
    inferred: bool = False

    @property
    def key(self) -> str:
        """The wire name: placeholder, query key, header or form field."""
        match self.role:
            case PathRole(alias=alias) | QueryRole(alias=alias):
                return alias or self.name
            case HeaderRole(name=name):
                return name
            case MultipartRole(field_name=field_name):
                return field_name or self.name
        return self.name


# =============================================================================
# Plans
# =============================================================================


class ReturnShapeKind(str, enum.Enum):
    JSON = 'json'
    RAW_RESPONSE = 'raw_response'
    UNIT = 'unit'


@dataclass(frozen=True, eq=False)
class ResponsePolicy:
    """How a response is turned into the endpoint's result.

    Attributes:
        kind: The classified result shape.
        not_found_as_none: Whether a 404 answer yields None instead of an error.
        annotation: The success type after unwrapping, for JSON decoding.
        adapter: Validator for JSON results, built once per endpoint.
    """

    kind: ReturnShapeKind
    not_found_as_none: bool = False
    annotation: Any = None
    adapter: TypeAdapter | None = None


@dataclass(frozen=True)
class HeaderPlan:
    """Header layers of an endpoint.

    Attributes:
        static: Baseline and interface-level headers, already merged.
        parameters: (parameter name, header name) for single-value headers.
        bags: Names of header-bag parameters, in declaration order.
    """

    static: tuple[tuple[str, str], ...] = ()
    parameters: tuple[tuple[str, str], ...] = ()
    bags: tuple[str, ...] = ()


class BodyKind(str, enum.Enum):
    NONE = 'none'
    JSON = 'json'
    FORM = 'form'
    MULTIPART = 'multipart'


@dataclass(frozen=True, eq=False)
class BodyPlan:
    """The single body strategy of an endpoint.

    Attributes:
        kind: Which encoding is used, if any.
        fields: (parameter name, field name) pairs feeding the body. JSON and
            form bodies have exactly one; multipart bodies one per part
            parameter.
        adapter: Serializer for JSON bodies.
        descriptor: Shape of the form body value.
    """

    kind: BodyKind = BodyKind.NONE
    fields: tuple[tuple[str, str], ...] = ()
    adapter: TypeAdapter | None = None
    descriptor: TypeDescriptor | None = None


@dataclass(frozen=True, eq=False)
class RequestPlan:
    """Everything needed to execute one endpoint, computed once.

    Attributes:
        name: The endpoint (method) name.
        method: The HTTP verb, uppercased.
        path: The URL template.
        placeholders: Placeholders of the template, in order.
        parameters: Classified parameters in declaration order.
        headers: Header layers.
        body: Body strategy.
        response: Result interpretation policy.
        timeout: Per-call timeout in seconds, if the endpoint overrides it.
        metadata: Parameter description attached to every request.
        is_async: Whether the endpoint is a coroutine function.
        doc: The endpoint's docstring.
    """

    name: str
    method: str
    path: str
    placeholders: tuple[str, ...]
    parameters: tuple[ClassifiedParameter, ...]
    headers: HeaderPlan
    body: BodyPlan
    response: ResponsePolicy
    metadata: ParameterMetadata
    timeout: float | None = None
    is_async: bool = False
    doc: str | None = None
    _by_name: dict = field(default=None, init=False, repr=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            '_by_name',
            types.MappingProxyType({p.name: p for p in self.parameters}),
        )

    def parameter(self, name: str) -> ClassifiedParameter:
        return self._by_name[name]

    def with_role(self, *role_types: type) -> tuple[ClassifiedParameter, ...]:
        return tuple(p for p in self.parameters if isinstance(p.role, role_types))
