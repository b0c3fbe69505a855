"""
Configuration for the compiled API document and its serving routes.

API metadata is a plain declarative structure consumed once when a
SwaggerRouter is constructed. Values come from keyword arguments, from a
Swagger-shaped mapping (``SwaggerConfig.from_mapping``) or from the
environment (``SwaggerConfig.from_env``).

Env vars:
  - SWAGGER_TITLE, SWAGGER_VERSION, SWAGGER_DESCRIPTION
  - SWAGGER_BASE_PATH (e.g. "/v1")
  - SWAGGER_FILE_NAME (e.g. "swagger.json"), SWAGGER_UI_PATH (e.g. "/docs")
  - SWAGGER_DEFINITION_MODE: warn (default) | strict
  - SWAGGER_CONTROLLERS_GLOB, SWAGGER_SCHEMAS_GLOB
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()


class SchemaMode(Enum):
    """Enforcement mode for conflicting schema definitions."""
    WARN = "warn"      # Log conflict, last definition wins
    STRICT = "strict"  # Fail at declaration time


def _get_default_mode() -> SchemaMode:
    """Get definition mode from environment."""
    mode = os.environ.get('SWAGGER_DEFINITION_MODE', 'warn').lower()
    return SchemaMode.STRICT if mode == 'strict' else SchemaMode.WARN


def _normalize_base_path(base_path: Optional[str]) -> str:
    if not base_path or base_path == '/':
        return ''
    if not base_path.startswith('/'):
        base_path = '/' + base_path
    return base_path.rstrip('/')


@dataclass
class SwaggerConfig:
    """API metadata and serving options."""
    title: str = 'Swagger UI'
    version: str = '1.0.0'
    description: str = ''
    base_path: str = ''
    tags: List[Dict[str, Any]] = field(default_factory=list)
    terms_of_service: Optional[str] = None
    contact: Optional[Dict[str, str]] = None
    license: Optional[Dict[str, str]] = None
    swagger_file: Optional[str] = None
    ui_path: Optional[str] = None
    definition_mode: SchemaMode = field(default_factory=_get_default_mode)
    controllers_glob: Optional[str] = None
    schemas_glob: Optional[str] = None

    def __post_init__(self):
        self.base_path = _normalize_base_path(self.base_path)
        if isinstance(self.definition_mode, str):
            self.definition_mode = SchemaMode(self.definition_mode.lower())

    @classmethod
    def from_env(cls, **overrides) -> 'SwaggerConfig':
        """Build config from SWAGGER_* environment variables."""
        values = {
            'title': os.getenv('SWAGGER_TITLE', 'Swagger UI'),
            'version': os.getenv('SWAGGER_VERSION', '1.0.0'),
            'description': os.getenv('SWAGGER_DESCRIPTION', ''),
            'base_path': os.getenv('SWAGGER_BASE_PATH', ''),
            'swagger_file': os.getenv('SWAGGER_FILE_NAME') or None,
            'ui_path': os.getenv('SWAGGER_UI_PATH') or None,
            'controllers_glob': os.getenv('SWAGGER_CONTROLLERS_GLOB') or None,
            'schemas_glob': os.getenv('SWAGGER_SCHEMAS_GLOB') or None,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_mapping(cls, swagger: Mapping[str, Any]) -> 'SwaggerConfig':
        """
        Build config from a Swagger-shaped mapping.

        Example:
            SwaggerConfig.from_mapping({
                "info": {"title": "Users API", "version": "2.0.0"},
                "basePath": "/v1",
                "tags": [{"name": "users"}],
                "autoImportControllers": {"globPath": "app/controllers/*.py"},
            })
        """
        info = swagger.get('info') or {}
        controllers = swagger.get('autoImportControllers') or {}
        schemas = swagger.get('autoImportSchemas') or {}
        return cls(
            title=info.get('title', 'Swagger UI'),
            version=info.get('version', '1.0.0'),
            description=info.get('description', ''),
            terms_of_service=info.get('termsOfService'),
            contact=info.get('contact'),
            license=info.get('license'),
            base_path=swagger.get('basePath', ''),
            tags=list(swagger.get('tags') or []),
            controllers_glob=controllers.get('globPath'),
            schemas_glob=schemas.get('globPath'),
        )

    def info(self) -> Dict[str, Any]:
        """The Swagger ``info`` block."""
        info = {'title': self.title, 'version': self.version}
        if self.description:
            info['description'] = self.description
        if self.terms_of_service:
            info['termsOfService'] = self.terms_of_service
        if self.contact:
            info['contact'] = dict(self.contact)
        if self.license:
            info['license'] = dict(self.license)
        return info
