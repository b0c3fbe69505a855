"""
Documentation objects produced by route compilation.

- RouteDocument: one (path, verb) operation
- APIDocument: the aggregated Swagger 2.0 document served to clients
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import SchemaMode, SwaggerConfig
from .bridge import Definitions


@dataclass(frozen=True)
class RouteDocument:
    """Swagger operation object. Contributors return updated copies."""
    tags: List[str] = field(default_factory=list)
    summary: str = ''
    description: str = ''
    operation_id: Optional[str] = None
    consumes: List[str] = field(default_factory=lambda: ['application/json'])
    produces: List[str] = field(default_factory=lambda: ['application/json'])
    parameters: List[Dict[str, Any]] = field(default_factory=list)
    responses: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    security: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            'tags': list(self.tags),
            'summary': self.summary,
            'description': self.description,
            'consumes': list(self.consumes),
            'produces': list(self.produces),
            'responses': dict(self.responses),
            'security': list(self.security),
        }
        if self.operation_id:
            doc['operationId'] = self.operation_id
        if self.parameters:
            doc['parameters'] = list(self.parameters)
        return doc


class APIDocument:
    """
    Aggregated Swagger 2.0 document.

    Mutated only during compilation; served verbatim afterwards.
    """

    def __init__(self, config: SwaggerConfig):
        self.info = config.info()
        self.base_path = config.base_path
        self.tags = [dict(t) for t in config.tags]
        self.paths: Dict[str, Dict[str, Any]] = {}
        self.definitions = Definitions(mode=config.definition_mode or SchemaMode.WARN)

    def add_operation(self, path: str, verb: str, route_doc: RouteDocument) -> None:
        self.paths.setdefault(path, {})[verb] = route_doc.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        doc = {
            'swagger': '2.0',
            'info': dict(self.info),
            'basePath': self.base_path,
            'paths': self.paths,
            'definitions': dict(self.definitions),
        }
        if self.tags:
            doc['tags'] = self.tags
        return doc
