"""
Schema bridge - descriptor <-> validation schema <-> Swagger fragment.

Directions:
- to_validation(): descriptor -> pydantic-backed ValidationSchema
- to_documentation(): descriptor -> Swagger 2.0 fragment, filing every
  schema that carries an id into the shared definitions table
- from_documentation() / to_internal(): Swagger fragment (+ optional model)
  -> descriptor

Documentation generation never raises for a malformed descriptor: it logs
and degrades to the most permissive fragment ({}). Declaration errors
(e.g. a conflicting definition in STRICT mode) still propagate.
"""

import copy
import logging
from typing import Annotated, Any, ClassVar, Dict, List, Mapping, MutableMapping, Optional, Set

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    create_model,
    model_validator,
)

from ..config import SchemaMode
from .descriptor import (
    Array,
    DeclarationError,
    Object,
    Primitive,
    Reference,
    SchemaDescriptor,
    is_descriptor,
)
from .validate import ContractViolation, ValidationSchema


logger = logging.getLogger('swagger_contracts.contracts.bridge')

DEFINITIONS_PREFIX = '#/definitions/'

_PYTHON_TYPES = {
    'string': str,
    'integer': int,
    'number': float,
    'boolean': bool,
}


class SchemaTranslationError(DeclarationError):
    """A descriptor could not be compiled into a validation schema."""


class Definitions(dict):
    """
    Definitions table (id -> Swagger schema).

    Re-registering an id with identical content is a no-op. Conflicting
    content is resolved by ``mode``: WARN keeps the last write and logs,
    STRICT raises DeclarationError.
    """

    def __init__(self, *args, mode: SchemaMode = SchemaMode.WARN, **kwargs):
        super().__init__(*args, **kwargs)
        self.mode = mode

    def register(self, schema_id: str, schema: Dict[str, Any]) -> None:
        existing = self.get(schema_id)
        if existing is None or existing == schema:
            self[schema_id] = schema
            return
        if self.mode == SchemaMode.STRICT:
            raise DeclarationError(
                f"Schema id '{schema_id}' registered twice with different content"
            )
        logger.warning(
            f"Definition '{schema_id}' overwritten with different content",
            extra={"event": "definition_conflict", "schema_id": schema_id},
        )
        self[schema_id] = schema


def _register(definitions: MutableMapping, schema_id: str, schema: Dict[str, Any]) -> None:
    if isinstance(definitions, Definitions):
        definitions.register(schema_id, schema)
    else:
        definitions[schema_id] = schema


# =============================================================================
# DESCRIPTOR -> VALIDATION
# =============================================================================

class _DescriptorModel(BaseModel):
    """Base for generated object models; injects declared defaults."""
    __descriptor_defaults__: ClassVar[Dict[str, Any]] = {}

    @model_validator(mode='before')
    @classmethod
    def _apply_defaults(cls, data):
        defaults = cls.__descriptor_defaults__
        if isinstance(data, dict) and defaults:
            missing = {k: copy.deepcopy(v) for k, v in defaults.items() if k not in data}
            if missing:
                data = {**data, **missing}
        return data


class _OpenModel(_DescriptorModel):
    model_config = ConfigDict(extra='allow', arbitrary_types_allowed=True)


class _ClosedModel(_DescriptorModel):
    model_config = ConfigDict(extra='forbid', arbitrary_types_allowed=True)


def _one_of(allowed):
    def check(value):
        if value not in allowed:
            raise ValueError(f"Input should be one of: {', '.join(repr(v) for v in allowed)}")
        return value
    return check


def _primitive_type(spec: Primitive):
    if spec.kind in ('file', 'any'):
        return Any

    base = _PYTHON_TYPES[spec.kind]
    constraints = {}
    if spec.kind == 'string':
        if spec.min_length is not None:
            constraints['min_length'] = spec.min_length
        if spec.max_length is not None:
            constraints['max_length'] = spec.max_length
        if spec.pattern:
            constraints['pattern'] = spec.pattern
    elif spec.kind in ('integer', 'number'):
        if spec.minimum is not None:
            constraints['ge'] = spec.minimum
        if spec.maximum is not None:
            constraints['le'] = spec.maximum

    metadata = []
    if constraints:
        metadata.append(Field(**constraints))
    if spec.enum:
        metadata.append(AfterValidator(_one_of(spec.enum)))
    if metadata:
        return Annotated[(base, *metadata)]
    return base


def _python_type(
    spec: SchemaDescriptor,
    models: Mapping[str, SchemaDescriptor],
    allow_unknown: bool,
    resolving: Set[str],
):
    if isinstance(spec, Primitive):
        return _primitive_type(spec)

    if isinstance(spec, Reference):
        target = models.get(spec.ref)
        if target is None:
            raise SchemaTranslationError(f"Unknown schema reference '{spec.ref}'")
        if spec.ref in resolving:
            raise SchemaTranslationError(f"Recursive schema reference '{spec.ref}'")
        return _python_type(target, models, allow_unknown, resolving | {spec.ref})

    if isinstance(spec, Array):
        if spec.items is None:
            return List[Any]
        return List[_python_type(spec.items, models, allow_unknown, resolving)]

    if isinstance(spec, Object):
        return _object_model(spec, models, allow_unknown, resolving)

    raise SchemaTranslationError(f"Unsupported descriptor {type(spec).__name__}")


def _object_model(
    spec: Object,
    models: Mapping[str, SchemaDescriptor],
    allow_unknown: bool,
    resolving: Set[str],
):
    # Wire names become aliases so any key (leading underscores, names that
    # shadow BaseModel attributes) is legal.
    fields = {}
    defaults = {}
    for index, (name, child) in enumerate(spec.fields.items()):
        annotation = _python_type(child, models, allow_unknown, resolving)
        if child.required:
            fields[f'f{index}'] = (annotation, Field(alias=name))
        else:
            fields[f'f{index}'] = (annotation, Field(default=None, alias=name))
        if child.has_default:
            defaults[name] = child.default

    model = create_model(
        spec.id or 'Object',
        __base__=_OpenModel if allow_unknown else _ClosedModel,
        **fields,
    )
    model.__descriptor_defaults__ = defaults
    return model


def to_validation(
    descriptor: SchemaDescriptor,
    models: Optional[Mapping[str, SchemaDescriptor]] = None,
    allow_unknown: bool = False,
    error_cls=ContractViolation,
) -> ValidationSchema:
    """
    Compile a descriptor into an executable validation schema.

    Args:
        descriptor: Schema to compile
        models: Registered schemas (id -> descriptor) for Reference lookup
        allow_unknown: Let undeclared object keys pass through unchanged
        error_cls: ContractViolation subclass used to report failures

    Raises:
        SchemaTranslationError: unknown reference or invalid constraint
    """
    models = models or {}
    try:
        adapter = TypeAdapter(_python_type(descriptor, models, allow_unknown, set()))
    except SchemaTranslationError:
        raise
    except Exception as e:
        raise SchemaTranslationError(f"Cannot build validation schema: {e}") from e
    return ValidationSchema(descriptor, adapter, error_cls)


# =============================================================================
# DESCRIPTOR -> DOCUMENTATION
# =============================================================================

def _ref(schema_id: str) -> str:
    return DEFINITIONS_PREFIX + schema_id


def _primitive_doc(spec: Primitive) -> Dict[str, Any]:
    if spec.kind == 'any':
        fragment = {}
    else:
        fragment = {'type': spec.kind}
    if spec.format:
        fragment['format'] = spec.format
    if spec.enum:
        fragment['enum'] = list(spec.enum)
    if spec.minimum is not None:
        fragment['minimum'] = spec.minimum
    if spec.maximum is not None:
        fragment['maximum'] = spec.maximum
    if spec.min_length is not None:
        fragment['minLength'] = spec.min_length
    if spec.max_length is not None:
        fragment['maxLength'] = spec.max_length
    if spec.pattern:
        fragment['pattern'] = spec.pattern
    if spec.has_default:
        fragment['default'] = spec.default
    if spec.description:
        fragment['description'] = spec.description
    return fragment


def _ref_fragment(spec: SchemaDescriptor, schema_id: str) -> Dict[str, Any]:
    # $ref with description/required siblings: consumers merge all three keys.
    return {
        '$ref': _ref(schema_id),
        'description': spec.description or '',
        'required': spec.required or False,
    }


def _structure(spec, definitions, models, visiting) -> Dict[str, Any]:
    """Full structural schema of a descriptor, ignoring its own id."""
    if isinstance(spec, Primitive):
        return _primitive_doc(spec)

    if isinstance(spec, Object):
        properties = {
            name: _fragment(child, definitions, models, visiting)
            for name, child in spec.fields.items()
        }
        schema = {'type': 'object', 'properties': properties}
        required = spec.required_fields()
        if required:
            schema['required'] = required
        if spec.description:
            schema['description'] = spec.description
        return schema

    if isinstance(spec, Array):
        schema = {'type': 'array'}
        if spec.items is None:
            logger.warning("Array schema without item schema, documenting items as {}")
            schema['items'] = {}
        elif spec.items.id or isinstance(spec.items, Reference):
            item_ref = _fragment(spec.items, definitions, models, visiting).get('$ref')
            schema['items'] = {'$ref': item_ref} if item_ref else {}
            schema['description'] = spec.description or ''
            schema['required'] = spec.required or False
            return schema
        else:
            schema['items'] = _fragment(spec.items, definitions, models, visiting)
        if spec.description:
            schema['description'] = spec.description
        return schema

    raise TypeError(f"Cannot document {type(spec).__name__}")


def _fragment(spec, definitions, models, visiting) -> Dict[str, Any]:
    if isinstance(spec, Reference):
        if spec.ref in definitions:
            return _ref_fragment(spec, spec.ref)
        target = models.get(spec.ref)
        if target is None:
            logger.warning(
                f"Unresolved schema reference '{spec.ref}', documenting as {{}}",
                extra={"event": "unresolved_reference", "schema_id": spec.ref},
            )
            return {}
        _file_definition(target, spec.ref, definitions, models, visiting)
        return _ref_fragment(spec, spec.ref)

    if isinstance(spec, (Object, Array)) and spec.id:
        _file_definition(spec, spec.id, definitions, models, visiting)
        return _ref_fragment(spec, spec.id)

    return _structure(spec, definitions, models, visiting)


def _file_definition(spec, schema_id, definitions, models, visiting) -> None:
    if schema_id in visiting:
        return
    schema = _structure(spec, definitions, models, visiting | {schema_id})
    _register(definitions, schema_id, schema)


def to_documentation(
    descriptor: SchemaDescriptor,
    definitions: MutableMapping[str, Any],
    models: Optional[Mapping[str, SchemaDescriptor]] = None,
) -> Dict[str, Any]:
    """
    Convert a descriptor to a Swagger 2.0 fragment.

    Side effect: every Object/Array carrying an id (and every resolved
    Reference) is filed into ``definitions``.

    Returns:
        The fragment, or {} when the descriptor cannot be documented
    """
    try:
        return _fragment(descriptor, definitions, models or {}, frozenset())
    except DeclarationError:
        raise
    except Exception:
        logger.exception(
            "Schema documentation failed, falling back to permissive schema",
            extra={"event": "documentation_degraded"},
        )
        return {}


def to_definition(
    descriptor: SchemaDescriptor,
    definitions: MutableMapping[str, Any],
    models: Optional[Mapping[str, SchemaDescriptor]] = None,
) -> Dict[str, Any]:
    """Structural schema for a definitions-table entry (never a $ref)."""
    try:
        visiting = frozenset([descriptor.id]) if descriptor.id else frozenset()
        return _structure(descriptor, definitions, models or {}, visiting)
    except DeclarationError:
        raise
    except Exception:
        logger.exception(
            "Definition documentation failed, falling back to permissive schema",
            extra={"event": "documentation_degraded", "schema_id": descriptor.id},
        )
        return {}


# =============================================================================
# DOCUMENTATION -> DESCRIPTOR
# =============================================================================

def model_fields(model: Any) -> Dict[str, SchemaDescriptor]:
    """Descriptor-valued fields of a model (mapping or class), in order."""
    if model is None:
        return {}
    if isinstance(model, Mapping):
        return {k: v for k, v in model.items() if is_descriptor(v)}
    fields = {}
    for klass in reversed(getattr(model, '__mro__', (type(model),))):
        for name, value in vars(klass).items():
            if not name.startswith('_') and is_descriptor(value):
                fields[name] = value
    return fields


def model_description(model: Any) -> str:
    return getattr(model, '__definition_description__', None) or ''


def from_documentation(fragment: Any, model: Any = None) -> Optional[SchemaDescriptor]:
    """
    Rebuild a descriptor from a Swagger fragment.

    Args:
        fragment: Swagger schema dict (or an existing descriptor, returned as-is)
        model: Optional mapping/class whose descriptor attributes supply
            object keys or array items

    Returns:
        Descriptor, or None for an unsupported type (no constraint)
    """
    if is_descriptor(fragment):
        return fragment
    fragment = dict(fragment or {})

    required = fragment.get('required') is True
    description = fragment.get('description') or model_description(model)

    ref = fragment.get('$ref')
    if isinstance(ref, str) and not model:
        return Reference(
            ref=ref[len(DEFINITIONS_PREFIX):] if ref.startswith(DEFINITIONS_PREFIX) else ref,
            required=required,
            description=description,
        )

    kind = fragment.get('type') or 'object'
    extra = {}
    if 'default' in fragment:
        extra['default'] = fragment['default']

    if kind == 'object':
        fields = {}
        required_names = fragment.get('required')
        required_names = required_names if isinstance(required_names, list) else []
        for name, sub in (fragment.get('properties') or {}).items():
            child = from_documentation(sub)
            if child is None:
                child = Primitive(kind='any')
            if name in required_names and not child.required:
                child = child.mark_required()
            fields[name] = child
        fields.update(model_fields(model))
        return Object(fields, required=required, description=description, **extra)

    if kind == 'array':
        items = None
        if fragment.get('items'):
            items = from_documentation(fragment['items'])
        elif model is not None:
            items = Object(model_fields(model), description=model_description(model))
        return Array(items=items, required=required, description=description, **extra)

    if kind == 'file' or kind in _PYTHON_TYPES:
        return Primitive(
            kind=kind,
            required=required,
            description=description,
            enum=fragment.get('enum'),
            minimum=fragment.get('minimum'),
            maximum=fragment.get('maximum'),
            min_length=fragment.get('minLength'),
            max_length=fragment.get('maxLength'),
            pattern=fragment.get('pattern'),
            format=fragment.get('format'),
            **extra,
        )

    logger.debug(f"Unsupported schema type '{kind}', no validation constraint")
    return None


to_internal = from_documentation


def descriptor_from_model(model: Any) -> Object:
    """Object descriptor for a model class declared with @definition."""
    return Object(
        model_fields(model),
        id=getattr(model, '__definition_id__', None),
        description=model_description(model),
    )
