"""
swagger_contracts - declare request/response contracts per Flask handler.

This package provides:
- Schema descriptors and the Registry/Controller declaration API
- Request/response validation middleware derived from declarations
- A route compiler mounting handlers on a Flask blueprint
- A Swagger 2.0 document built from the same declarations
- Global middleware (request_id, error_envelope)
"""

from .config import SchemaMode, SwaggerConfig
from .contracts import Controller, ParamIn, Registry, SwaggerRouter

__all__ = ['SchemaMode', 'SwaggerConfig', 'Controller', 'ParamIn', 'Registry', 'SwaggerRouter']
