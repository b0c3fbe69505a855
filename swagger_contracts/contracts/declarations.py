"""
Declarative route API.

Usage:
    registry = Registry()
    users = registry.controller("/v1/users")

    @users.get("/{id}")
    @users.parameter("id", Integer(), ParamIn.PATH)
    @users.parameter("fields", String())
    @users.response(200, UserSchema)
    @users.summary("Fetch a user")
    @users.tag("users")
    def get_user(ctx):
        return {"id": ctx.params["id"], ...}

Decorators register against the handler's method key (its __name__) and
return the handler unchanged. Decorators are applied bottom-up, so the one
nearest the handler registers (and validates, and documents) first.
"""

from dataclasses import replace
from functools import partial
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .bridge import descriptor_from_model, from_documentation, to_documentation
from .descriptor import Primitive, SchemaDescriptor, is_descriptor, String
from .document import RouteDocument
from .registry import ParamIn, ParameterBinding, Registry, ResponseBinding


SchemaLike = Union[SchemaDescriptor, Mapping[str, Any], None]


def as_descriptor(schema: SchemaLike, default: Optional[SchemaDescriptor] = None) -> SchemaDescriptor:
    """Accept a descriptor, a Swagger-shaped dict or a @definition model."""
    if schema is None:
        return default if default is not None else String()
    if is_descriptor(schema):
        return schema
    if isinstance(schema, type) and hasattr(schema, '__definition_id__'):
        return descriptor_from_model(schema)
    descriptor = from_documentation(schema)
    if descriptor is None:
        # unsupported type: accept anything
        return Primitive(kind='any')
    return descriptor


def definition(id: Optional[str] = None, description: str = ''):
    """
    Class decorator turning a class of descriptor attributes into a model.

    @definition("Address", "Postal address")
    class Address:
        street = String(required=True)
        city = String()
    """
    def decorator(cls):
        cls.__definition_id__ = id or cls.__name__
        cls.__definition_description__ = description
        return cls
    return decorator


# =============================================================================
# CONTRIBUTORS
# =============================================================================
# fn(route_doc, definitions) -> RouteDocument; each returns an updated copy.

def parameter_contributor(binding: ParameterBinding, models: Mapping[str, SchemaDescriptor]) -> Callable:
    def contribute(route_doc: RouteDocument, definitions: Dict[str, Any]) -> RouteDocument:
        fragment = dict(to_documentation(binding.schema, definitions, models))
        description = fragment.pop('description', '') or ''
        parameter = {
            'description': description,
            'in': binding.location.value,
            'name': binding.name,
            'required': binding.required,
        }
        if binding.location == ParamIn.BODY:
            # body schema keeps its own required list (or the $ref sibling)
            parameter['schema'] = fragment
        else:
            fragment.pop('required', None)
            parameter.update(fragment)
        return replace(route_doc, parameters=route_doc.parameters + [parameter])
    return contribute


def response_contributor(binding: ResponseBinding, models: Mapping[str, SchemaDescriptor]) -> Callable:
    def contribute(route_doc: RouteDocument, definitions: Dict[str, Any]) -> RouteDocument:
        fragment = dict(to_documentation(binding.schema, definitions, models))
        description = fragment.pop('description', '') or ''
        responses = dict(route_doc.responses)
        responses[str(binding.status_code)] = {'description': description, 'schema': fragment}
        return replace(route_doc, responses=responses)
    return contribute


def summary_contributor(text: str) -> Callable:
    return lambda route_doc, definitions: replace(route_doc, summary=text)


def description_contributor(text: str) -> Callable:
    return lambda route_doc, definitions: replace(route_doc, description=text)


def operation_id_contributor(operation_id: str) -> Callable:
    return lambda route_doc, definitions: replace(route_doc, operation_id=operation_id)


def tag_contributor(*names: str) -> Callable:
    def contribute(route_doc: RouteDocument, definitions: Dict[str, Any]) -> RouteDocument:
        tags = list(route_doc.tags)
        tags.extend(n for n in names if n not in tags)
        return replace(route_doc, tags=tags)
    return contribute


def consumes_contributor(*mime_types: str) -> Callable:
    return lambda route_doc, definitions: replace(route_doc, consumes=list(mime_types))


def produces_contributor(*mime_types: str) -> Callable:
    return lambda route_doc, definitions: replace(route_doc, produces=list(mime_types))


# =============================================================================
# CONTROLLER BUILDER
# =============================================================================

class Controller:
    """
    Route-bearing controller.

    One instance per group of routes sharing a path prefix. The instance is
    the controller identity inside the Registry.
    """
    is_swagger_controller = True

    def __init__(self, registry: Registry, prefix: str = '', name: Optional[str] = None):
        self.registry = registry
        self.prefix = prefix
        self.name = name or prefix or 'controller'
        registry.register_controller(self, prefix, self.name)

        self.get = partial(self.route, 'get')
        self.post = partial(self.route, 'post')
        self.put = partial(self.route, 'put')
        self.patch = partial(self.route, 'patch')
        self.delete = partial(self.route, 'delete')
        self.head = partial(self.route, 'head')
        self.options = partial(self.route, 'options')

    def __repr__(self):
        return f"<Controller {self.name} prefix={self.prefix!r}>"

    def _declare(self, action: Callable[[str], None]):
        def decorator(fn):
            action(fn.__name__)
            return fn
        return decorator

    def route(self, verb: str, path: str):
        """Mount the handler at ``prefix + path`` for ``verb``."""
        def decorator(fn):
            self.registry.register_route(self, fn.__name__, verb, path, fn)
            return fn
        return decorator

    def parameter(
        self,
        name: str,
        schema: SchemaLike = None,
        location: Union[ParamIn, str] = ParamIn.QUERY,
        required: Optional[bool] = None,
    ):
        """Declare a request parameter (query by default)."""
        binding = ParameterBinding(name, location, as_descriptor(schema), required)

        def action(key):
            self.registry.register_parameter(self, key, binding)
            self.registry.register_middleware_contributor(
                self, key, parameter_contributor(binding, self.registry.models)
            )
        return self._declare(action)

    def response(self, status_code: int, schema: SchemaLike = None):
        """Declare the response shape for a status code."""
        binding = ResponseBinding(status_code, as_descriptor(schema, String(default='')))

        def action(key):
            self.registry.register_response(self, key, binding)
            self.registry.register_middleware_contributor(
                self, key, response_contributor(binding, self.registry.models)
            )
        return self._declare(action)

    def summary(self, text: str):
        return self.contributor(summary_contributor(text))

    def description(self, text: str):
        return self.contributor(description_contributor(text))

    def operation_id(self, operation_id: str):
        return self.contributor(operation_id_contributor(operation_id))

    def tag(self, *names: str):
        return self.contributor(tag_contributor(*names))

    def consumes(self, *mime_types: str):
        return self.contributor(consumes_contributor(*mime_types))

    def produces(self, *mime_types: str):
        return self.contributor(produces_contributor(*mime_types))

    def contributor(self, fn: Callable):
        """Register a custom documentation contributor."""
        return self._declare(lambda key: self.registry.register_middleware_contributor(self, key, fn))

    def middleware(self, *fns: Callable):
        """Register external middleware(ctx, call_next), run ahead of validators."""
        def action(key):
            for fn in fns:
                self.registry.register_middleware(self, key, fn)
        return self._declare(action)
