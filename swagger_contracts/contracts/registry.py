"""
Contract Registry - Single source of truth for route declarations.

Each controller has:
- ControllerEntry: path prefix + handlers by method key
- HandlerEntry: routes, ParameterBindings, ResponseBindings,
  documentation contributors and external middleware

Registration is pure accumulation in call order. Nothing is reordered or
deduplicated by name: two bindings with the same parameter name coexist.
Entries freeze when the route compiler reads them.

Registration happens at import time, single-threaded, before any request
is served, so no locking is needed.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .descriptor import (
    Array,
    DeclarationError,
    Object,
    SchemaDescriptor,
    String,
)


logger = logging.getLogger('swagger_contracts.contracts')


class ParamIn(Enum):
    """Where a request parameter is read from."""
    QUERY = "query"
    BODY = "body"
    HEADER = "header"
    PATH = "path"
    FORM_DATA = "formData"


@dataclass(frozen=True)
class ParameterBinding:
    """A declared request parameter. Path parameters are always required."""
    name: str
    location: ParamIn
    schema: SchemaDescriptor
    required: Optional[bool] = None

    def __post_init__(self):
        if not isinstance(self.location, ParamIn):
            object.__setattr__(self, 'location', ParamIn(self.location))
        required = self.required
        if required is None:
            required = bool(self.schema.required)
        if self.location == ParamIn.PATH:
            required = True
        object.__setattr__(self, 'required', required)


def _default_response_schema() -> SchemaDescriptor:
    return String(default='')


@dataclass(frozen=True)
class ResponseBinding:
    """A declared response shape for one status code."""
    status_code: int
    schema: SchemaDescriptor = field(default_factory=_default_response_schema)

    def __post_init__(self):
        object.__setattr__(self, 'status_code', int(self.status_code))


@dataclass
class HandlerEntry:
    """Everything declared for one (controller, method key)."""
    key: str
    handler: Optional[Callable] = None
    routes: List[Tuple[str, str]] = field(default_factory=list)   # (verb, path)
    parameters: List[ParameterBinding] = field(default_factory=list)
    responses: Dict[int, ResponseBinding] = field(default_factory=dict)
    contributors: List[Callable] = field(default_factory=list)
    middlewares: List[Callable] = field(default_factory=list)
    frozen: bool = False

    def body_binding(self) -> Optional[ParameterBinding]:
        for binding in self.parameters:
            if binding.location == ParamIn.BODY:
                return binding
        return None


@dataclass
class ControllerEntry:
    """Path prefix plus handlers of one controller, in declaration order."""
    prefix: str
    name: str
    handlers: Dict[str, HandlerEntry] = field(default_factory=dict)


class Registry:
    """
    Declaration registry for one application.

    Create one per API and pass it to every Controller and to the
    SwaggerRouter that compiles it.
    """

    def __init__(self):
        self._controllers: Dict[Any, ControllerEntry] = {}
        self.models: Dict[str, SchemaDescriptor] = {}

    # -------------------------------------------------------------------------
    # Controllers
    # -------------------------------------------------------------------------

    def controller(self, prefix: str = '', name: Optional[str] = None):
        """Create a Controller builder bound to this registry."""
        from .declarations import Controller
        return Controller(self, prefix, name=name)

    def register_controller(self, controller: Any, prefix: str = '', name: Optional[str] = None) -> ControllerEntry:
        """
        Register a controller with its path prefix.

        Raises:
            DeclarationError: If the controller is already registered with a
                different prefix
        """
        entry = self._controllers.get(controller)
        if entry is not None:
            if entry.prefix != prefix:
                raise DeclarationError(
                    f"Controller '{entry.name}' already registered with prefix '{entry.prefix}'"
                )
            return entry
        entry = ControllerEntry(prefix=prefix, name=name or getattr(controller, '__name__', None) or prefix)
        self._controllers[controller] = entry
        logger.debug(f"Controller registered: {entry.name} prefix={prefix!r}")
        return entry

    def _entry(self, controller: Any) -> ControllerEntry:
        entry = self._controllers.get(controller)
        if entry is None:
            entry = self.register_controller(controller)
        return entry

    def _handler(self, controller: Any, key: str) -> HandlerEntry:
        handlers = self._entry(controller).handlers
        handler = handlers.get(key)
        if handler is None:
            handler = handlers[key] = HandlerEntry(key=key)
        if handler.frozen:
            raise DeclarationError(
                f"Handler '{key}' was already compiled; declarations must precede load_controller()"
            )
        return handler

    # -------------------------------------------------------------------------
    # Declarations
    # -------------------------------------------------------------------------

    def register_route(self, controller: Any, key: str, verb: str, path: str, handler: Callable) -> None:
        """Mount ``handler`` at ``path`` for ``verb`` (lowercase HTTP method)."""
        entry = self._handler(controller, key)
        if entry.handler is not None and entry.handler is not handler:
            raise DeclarationError(f"Method key '{key}' is bound to two different handlers")
        entry.handler = handler
        entry.routes.append((verb.lower(), path))

    def register_parameter(self, controller: Any, key: str, binding: ParameterBinding) -> None:
        """
        Append a parameter binding.

        Raises:
            DeclarationError: If a second body binding is declared
        """
        entry = self._handler(controller, key)
        if binding.location == ParamIn.BODY and entry.body_binding() is not None:
            raise DeclarationError(
                f"Handler '{key}' declares more than one body parameter "
                f"('{entry.body_binding().name}', '{binding.name}')"
            )
        entry.parameters.append(binding)
        self._collect_models(binding.schema)

    def register_response(self, controller: Any, key: str, binding: ResponseBinding) -> None:
        """Register a response binding. Last registration for a code wins."""
        entry = self._handler(controller, key)
        entry.responses[binding.status_code] = binding
        self._collect_models(binding.schema)

    def register_middleware_contributor(self, controller: Any, key: str, fn: Callable) -> None:
        """Append a documentation contributor: fn(route_doc, definitions) -> route_doc."""
        self._handler(controller, key).contributors.append(fn)

    def register_middleware(self, controller: Any, key: str, fn: Callable) -> None:
        """Append external middleware that runs ahead of the validators."""
        self._handler(controller, key).middlewares.append(fn)

    # -------------------------------------------------------------------------
    # Models
    # -------------------------------------------------------------------------

    def add_model(self, descriptor: SchemaDescriptor) -> None:
        """
        Register a named schema so References can resolve to it.

        Raises:
            DeclarationError: If the descriptor has no id
        """
        if not descriptor.id:
            raise DeclarationError("Schema doesn't have an id. Set id=... on the schema definition")
        self.models[descriptor.id] = descriptor
        self._collect_models(descriptor, include_self=False)

    def _collect_models(self, descriptor: SchemaDescriptor, include_self: bool = True) -> None:
        if descriptor is None:
            return
        if include_self and descriptor.id and isinstance(descriptor, (Object, Array)):
            self.models.setdefault(descriptor.id, descriptor)
        if isinstance(descriptor, Object):
            for child in descriptor.fields.values():
                self._collect_models(child)
        elif isinstance(descriptor, Array):
            self._collect_models(descriptor.items)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def entry(self, controller: Any) -> Optional[ControllerEntry]:
        return self._controllers.get(controller)

    def entries_for(self, controller: Any) -> Tuple[HandlerEntry, ...]:
        """Handler entries of a controller, in declaration order."""
        entry = self._controllers.get(controller)
        if entry is None:
            return ()
        return tuple(entry.handlers.values())

    def controllers(self) -> Iterator[Tuple[Any, ControllerEntry]]:
        return iter(list(self._controllers.items()))

    def freeze(self, controller: Any) -> None:
        """Freeze every handler of a controller; later declarations fail."""
        for handler in self.entries_for(controller):
            handler.frozen = True
