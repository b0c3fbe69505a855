"""
Schema descriptors - library-agnostic description of a data shape.

A descriptor is the single declaration that both the validation layer
(pydantic) and the documentation layer (Swagger 2.0) are derived from.

Shapes:
- Primitive: string, integer, number, boolean, file, any
- Object: ordered mapping of field name -> descriptor
- Array: item descriptor
- Reference: points at a registered Object/Array by id

Usage:
    UserSchema = Object(
        {"userName": String(min_length=6, description="username", required=True)},
        id="UserSchema",
    )
"""

from dataclasses import dataclass, field, replace
from typing import Any as AnyType, Dict, List, Optional, Sequence


PRIMITIVE_KINDS = ('string', 'integer', 'number', 'boolean', 'file', 'any')


class _Missing:
    """Marker for 'no default declared' (None is a legal default)."""

    def __repr__(self):
        return 'MISSING'

    def __bool__(self):
        return False


MISSING = _Missing()


class DeclarationError(ValueError):
    """Raised when a route or schema declaration is invalid.

    Declaration errors are programming errors in route declarations and
    should abort application startup.
    """


@dataclass(frozen=True)
class SchemaDescriptor:
    """Base for all descriptors."""
    required: bool = False
    description: str = ''
    default: AnyType = MISSING
    id: Optional[str] = None

    @property
    def has_default(self) -> bool:
        return self.default is not MISSING

    def mark_required(self, required: bool = True) -> 'SchemaDescriptor':
        return replace(self, required=required)

    def with_id(self, id: str) -> 'SchemaDescriptor':
        return replace(self, id=id)


@dataclass(frozen=True)
class Primitive(SchemaDescriptor):
    kind: str = 'string'
    enum: Optional[Sequence[AnyType]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    format: Optional[str] = None

    def __post_init__(self):
        if self.kind not in PRIMITIVE_KINDS:
            raise DeclarationError(
                f"Unsupported schema kind '{self.kind}'. "
                f"Expected one of: {', '.join(PRIMITIVE_KINDS)}"
            )
        if self.enum is not None and not isinstance(self.enum, tuple):
            object.__setattr__(self, 'enum', tuple(self.enum))


@dataclass(frozen=True)
class Object(SchemaDescriptor):
    fields: Dict[str, SchemaDescriptor] = field(default_factory=dict)

    def __init__(self, fields: Optional[Dict[str, SchemaDescriptor]] = None, **kwargs):
        object.__setattr__(self, 'fields', dict(fields or {}))
        for name in ('required', 'description', 'default', 'id'):
            value = kwargs.pop(name, getattr(SchemaDescriptor, name, MISSING))
            object.__setattr__(self, name, value)
        if kwargs:
            raise TypeError(f"Unexpected Object arguments: {', '.join(kwargs)}")

    def __hash__(self):
        return hash((self.id, tuple(self.fields)))

    def required_fields(self) -> List[str]:
        return [name for name, spec in self.fields.items() if spec.required]


@dataclass(frozen=True)
class Array(SchemaDescriptor):
    items: Optional[SchemaDescriptor] = None


@dataclass(frozen=True)
class Reference(SchemaDescriptor):
    ref: str = ''

    def __post_init__(self):
        if not self.ref:
            raise DeclarationError("Reference requires the id of a registered schema")


# Builders in the spirit of the validation library's own constructors.

def String(**kwargs) -> Primitive:
    return Primitive(kind='string', **kwargs)


def Integer(**kwargs) -> Primitive:
    return Primitive(kind='integer', **kwargs)


def Number(**kwargs) -> Primitive:
    return Primitive(kind='number', **kwargs)


def Boolean(**kwargs) -> Primitive:
    return Primitive(kind='boolean', **kwargs)


def File(**kwargs) -> Primitive:
    return Primitive(kind='file', **kwargs)


def Any(**kwargs) -> Primitive:
    return Primitive(kind='any', **kwargs)


def Ref(ref: str, **kwargs) -> Reference:
    return Reference(ref=ref, **kwargs)


def is_descriptor(value: AnyType) -> bool:
    return isinstance(value, SchemaDescriptor)
