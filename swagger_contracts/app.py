"""
Flask Application Factory - mounts a compiled SwaggerRouter.

Wires, in order:
- Request ID injection (X-Request-ID)
- The compiled blueprint (routes, swagger file, UI)
- Global error envelope handlers
"""

import logging
from typing import Optional

from flask import Flask

from .contracts import SwaggerRouter
from .middleware import setup_error_handlers, setup_request_id_middleware


logger = logging.getLogger('swagger_contracts.app')


def create_app(router: SwaggerRouter, import_name: str = __name__, config: Optional[dict] = None) -> Flask:
    """
    Build a Flask app serving ``router``.

    Args:
        router: A SwaggerRouter whose controllers are already loaded
        import_name: Flask import name
        config: Optional Flask config overrides
    """
    app = Flask(import_name)
    if config:
        app.config.update(config)

    setup_request_id_middleware(app)
    app.register_blueprint(router.get_router())
    setup_error_handlers(app)

    document = router.document
    logger.info(
        f"API '{document.info.get('title')}' mounted: {len(document.paths)} paths, "
        f"{len(document.definitions)} definitions"
    )
    return app
