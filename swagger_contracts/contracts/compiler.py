"""
Route compiler - declarations -> mounted Flask routes + Swagger document.

For every controller handler with at least one route:
1. Freeze its declarations
2. Fold its documentation contributors into a RouteDocument
3. Rewrite "{name}" placeholders to Flask's "<name>"
4. Chain: external middleware, request validator, response validator, handler
5. Mount on the blueprint and record paths[fullPath][verb]

fullPath is the declared path with the base path stripped, since the base
path is already published as the document's basePath.

Usage:
    router = SwaggerRouter(registry, SwaggerConfig(title="Users API", base_path="/v1"))
    router.add_definition(UserSchema)
    router.load_controller(users)
    router.set_swagger_file("swagger.json")
    router.load_swagger_ui("/docs")
    app.register_blueprint(router.get_router())
"""

import json
import logging
import re
from collections import ChainMap
from itertools import count
from typing import Any, Callable, Iterable, Mapping, Optional, Union

from flask import Blueprint, Response, request

from ..config import SwaggerConfig
from ..middleware.error_envelope import violation_response
from .bridge import descriptor_from_model, to_definition
from .declarations import Controller
from .descriptor import DeclarationError, SchemaDescriptor, is_descriptor
from .discovery import discover, is_controller, is_definition
from .document import APIDocument, RouteDocument
from .registry import HandlerEntry, Registry
from .ui import render_swagger_ui
from .validate import ContractViolation
from .wrapper import (
    RequestContext,
    compose,
    handler_middleware,
    request_validator,
    response_validator,
)


logger = logging.getLogger('swagger_contracts.compiler')

_PLACEHOLDER = re.compile(r'{(\w+)}')


class FlaskRouter:
    """
    Router boundary: register(verb, path, *middleware) on a Flask Blueprint.

    The middleware chain runs inside the Flask view; contract violations
    become error envelopes, everything else propagates to Flask.
    """
    VERBS = ('get', 'post', 'put', 'patch', 'delete', 'head', 'options')

    def __init__(self, blueprint: Optional[Blueprint] = None, name: str = 'swagger_contracts'):
        self.blueprint = blueprint or Blueprint(name, __name__)
        self._ids = count()

    def supports(self, verb: str) -> bool:
        return verb in self.VERBS

    @staticmethod
    def to_native_path(path: str) -> str:
        """"/users/{id}" -> "/users/<id>"."""
        return _PLACEHOLDER.sub(r'<\1>', path)

    def _endpoint(self, hint: str) -> str:
        safe = re.sub(r'\W', '_', hint).strip('_') or 'route'
        return f"{safe}_{next(self._ids)}"

    def register(self, verb: str, path: str, *middleware: Callable, endpoint: Optional[str] = None) -> str:
        """Mount a middleware chain for one verb; returns the endpoint name."""
        chain = compose(list(middleware))

        def view(**view_args):
            ctx = RequestContext.from_request(request, view_args)
            try:
                chain(ctx)
            except ContractViolation as e:
                return violation_response(e)
            return ctx.make_response()

        endpoint = self._endpoint(endpoint or f"{verb}_{path}")
        self.blueprint.add_url_rule(path, endpoint=endpoint, view_func=view, methods=[verb.upper()])
        return endpoint

    def add_view(self, path: str, view: Callable, endpoint: str) -> None:
        self.blueprint.add_url_rule(path, endpoint=self._endpoint(endpoint), view_func=view, methods=['GET'])


class SwaggerRouter:
    """
    Compiles registered controllers onto a Flask blueprint and aggregates
    their documentation into one APIDocument.
    """

    def __init__(
        self,
        registry: Optional[Registry] = None,
        config: Union[SwaggerConfig, Mapping[str, Any], None] = None,
        router: Optional[FlaskRouter] = None,
    ):
        if isinstance(config, Mapping):
            config = SwaggerConfig.from_mapping(config)
        self.config = config or SwaggerConfig()
        self.registry = registry or Registry()
        self._router = router or FlaskRouter()
        self.document = APIDocument(self.config)
        self._swagger_file_name: Optional[str] = None

        # Schemas first so controller references resolve.
        if self.config.schemas_glob:
            self.load(discover(self.config.schemas_glob))
        if self.config.controllers_glob:
            self.load(discover(self.config.controllers_glob))
        if self.config.swagger_file:
            self.set_swagger_file(self.config.swagger_file)
        if self.config.ui_path:
            self.load_swagger_ui(self.config.ui_path)

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def load(self, values: Iterable[Any]) -> None:
        """
        Consume already-discovered values: definitions first, then controllers.
        Anything else is ignored.
        """
        values = list(values)
        for value in values:
            if is_definition(value):
                self.add_definition(value)
        for value in values:
            if is_controller(value):
                self.load_controller(value)
            elif not is_definition(value):
                logger.debug(f"Ignoring discovered value of type {type(value).__name__}")

    def load_controller(self, controller: Any, decorator: Optional[Callable] = None) -> None:
        """
        Mount every routed handler of ``controller`` and document it.

        Args:
            controller: A Controller (or any key registered in the registry)
            decorator: Optional decorator(handler, ctx, call_next, summary)
                wrapping each handler call
        """
        registry = controller.registry if isinstance(controller, Controller) else self.registry
        entry = registry.entry(controller)
        if entry is None:
            logger.warning(f"Controller {controller!r} has no declarations, nothing to load")
            return

        registry.freeze(controller)
        models = ChainMap(registry.models, self.registry.models)
        for handler in registry.entries_for(controller):
            if not handler.routes:
                continue
            route_doc = self._route_document(handler)
            middleware = [
                *handler.middlewares,
                request_validator(handler, models),
                response_validator(handler, models),
                handler_middleware(handler.handler, decorator, route_doc.summary),
            ]

            for verb, path in handler.routes:
                declared = entry.prefix + path
                doc_path = self._document_path(declared)
                if verb in self.document.paths.get(doc_path, {}):
                    logger.warning(f"Route {verb.upper()} {doc_path} declared twice, last one documented")
                self.document.add_operation(doc_path, verb, route_doc)

                if not self._router.supports(verb):
                    logger.warning(f"Unsupported HTTP verb '{verb}' for {declared}, route documented but not mounted")
                    continue
                self._router.register(
                    verb,
                    self._router.to_native_path(declared),
                    *middleware,
                    endpoint=f"{entry.name}_{handler.key}_{verb}",
                )
                logger.debug(f"Mounted {verb.upper()} {declared} -> {handler.key}")

        logger.info(f"controller added: {entry.name}")

    def _route_document(self, handler: HandlerEntry) -> RouteDocument:
        route_doc = RouteDocument()
        for contribute in handler.contributors:
            route_doc = contribute(route_doc, self.document.definitions)
        return route_doc

    def _document_path(self, declared: str) -> str:
        base = self.config.base_path
        if base and (declared == base or declared.startswith(base + '/')):
            return declared[len(base):] or '/'
        return declared

    def add_definition(self, schema: Union[SchemaDescriptor, type]) -> None:
        """
        Add a named model to the document's definitions.

        Raises:
            DeclarationError: If the schema has no id
        """
        descriptor = schema if is_descriptor(schema) else descriptor_from_model(schema)
        if not descriptor.id:
            raise DeclarationError("Schema doesn't have an id. Set id=... on the schema definition")
        self.registry.add_model(descriptor)
        definitions = self.document.definitions
        definitions.register(descriptor.id, to_definition(descriptor, definitions, self.registry.models))

    # -------------------------------------------------------------------------
    # Serving
    # -------------------------------------------------------------------------

    def set_swagger_file(self, file_name: str) -> None:
        """Serve the compiled document as JSON at base_path/file_name."""
        self._swagger_file_name = f"{self.config.base_path}/{file_name}"

        def swagger_file():
            return Response(json.dumps(self.document.to_dict()), mimetype='application/json')

        self._router.add_view(self._swagger_file_name, swagger_file, 'swagger_file')

    def get_swagger_file(self) -> Optional[str]:
        return self._swagger_file_name

    def load_swagger_ui(self, url: str) -> None:
        """
        Serve the Swagger UI page at base_path + url.

        Raises:
            DeclarationError: If set_swagger_file() was not called first
        """
        if not self._swagger_file_name:
            raise DeclarationError("Call set_swagger_file() before load_swagger_ui()")
        spec_url = self._swagger_file_name
        title = self.config.title

        def swagger_ui():
            return render_swagger_ui(spec_url, title)

        self._router.add_view(f"{self.config.base_path}{url}", swagger_ui, 'swagger_ui')

    def get_router(self) -> Blueprint:
        return self._router.blueprint

    def to_dict(self):
        return self.document.to_dict()
