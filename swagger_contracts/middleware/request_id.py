"""
Request id correlation for error envelopes and violation logs.

The id comes from the incoming header (X-Request-ID by default) or is a new
UUID; it lives on g.request_id and is echoed on every response.
"""

import uuid

from flask import Flask, g, has_app_context, request


REQUEST_ID_HEADER = 'X-Request-ID'


def _new_id() -> str:
    return str(uuid.uuid4())


def setup_request_id_middleware(app: Flask, header: str = REQUEST_ID_HEADER) -> None:
    """Read (or mint) the request id before each request, echo it after."""

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get(header) or _new_id()

    @app.after_request
    def echo_request_id(response):
        request_id = getattr(g, 'request_id', None)
        if request_id:
            response.headers[header] = request_id
        return response


def get_request_id() -> str:
    """Current request id, or a fresh UUID when none is set."""
    if has_app_context():
        return getattr(g, 'request_id', None) or _new_id()
    return _new_id()
