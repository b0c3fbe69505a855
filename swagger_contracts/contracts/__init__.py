"""
Contract declaration package.

Provides schema descriptors, the declaration registry, the Controller
builder, validation middleware synthesis and the route compiler.
"""

from .descriptor import (
    MISSING,
    DeclarationError,
    SchemaDescriptor,
    Primitive,
    Object,
    Array,
    Reference,
    String,
    Integer,
    Number,
    Boolean,
    File,
    Any,
    Ref,
)
from .bridge import (
    Definitions,
    SchemaTranslationError,
    to_validation,
    to_documentation,
    to_definition,
    from_documentation,
    to_internal,
)
from .registry import (
    ParamIn,
    ParameterBinding,
    ResponseBinding,
    HandlerEntry,
    ControllerEntry,
    Registry,
)
from .declarations import Controller, definition
from .document import RouteDocument, APIDocument
from .validate import (
    ContractViolation,
    RequestValidationError,
    ResponseValidationError,
    ValidationSchema,
)
from .wrapper import RequestContext, compose
from .compiler import FlaskRouter, SwaggerRouter
from .discovery import discover

__all__ = [
    'MISSING',
    'DeclarationError',
    'SchemaDescriptor',
    'Primitive',
    'Object',
    'Array',
    'Reference',
    'String',
    'Integer',
    'Number',
    'Boolean',
    'File',
    'Any',
    'Ref',
    'Definitions',
    'SchemaTranslationError',
    'to_validation',
    'to_documentation',
    'to_definition',
    'from_documentation',
    'to_internal',
    'ParamIn',
    'ParameterBinding',
    'ResponseBinding',
    'HandlerEntry',
    'ControllerEntry',
    'Registry',
    'Controller',
    'definition',
    'RouteDocument',
    'APIDocument',
    'ContractViolation',
    'RequestValidationError',
    'ResponseValidationError',
    'ValidationSchema',
    'RequestContext',
    'compose',
    'FlaskRouter',
    'SwaggerRouter',
    'discover',
]
