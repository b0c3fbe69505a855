"""
JSON error envelope shared by compiled routes and app-wide handlers.

Shape:
{
    "error": {
        "code": "INVALID_PARAMS",
        "message": "\\"params.id\\" Field required",
        "requestId": "uuid",
        "details": {"violations": [{"field": "params.id", ...}]}
    }
}

Compiled routes turn a ContractViolation into this envelope themselves;
setup_error_handlers() covers everything raised elsewhere in the app.
"""

import logging
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, g, jsonify
from werkzeug.exceptions import HTTPException

from ..contracts.validate import ContractViolation
from .request_id import REQUEST_ID_HEADER


logger = logging.getLogger('swagger_contracts.middleware.error')


# Status used when a code is rendered without an explicit one
STATUS_BY_CODE = {
    "INVALID_PARAMS": 400,            # RequestValidationError
    "CONTRACT_VIOLATION": 400,
    "RESPONSE_SCHEMA_MISMATCH": 500,  # ResponseValidationError
    "NOT_FOUND": 404,
    "METHOD_NOT_ALLOWED": 405,
    "UNSUPPORTED_MEDIA_TYPE": 415,
    "INTERNAL_ERROR": 500,
}


def error_envelope(
    code: str,
    message: str,
    field: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> Dict[str, Any]:
    """The envelope dict; requestId is None outside the request id middleware."""
    body = {"code": code, "message": message, "requestId": getattr(g, 'request_id', None)}
    optional = {"field": field, "details": details, "hint": hint}
    body.update((key, value) for key, value in optional.items() if value)
    return {"error": body}


def make_error_response(
    code: str,
    message: str,
    status_code: Optional[int] = None,
    field: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    hint: Optional[str] = None,
) -> Tuple[Response, int]:
    """
    Render an error envelope. Requires an app context.

    Args:
        code: Machine-readable code, e.g. "RESPONSE_SCHEMA_MISMATCH"
        message: Client-facing message
        status_code: HTTP status; looked up from STATUS_BY_CODE when omitted
        field, details, hint: Optional envelope members

    Returns:
        (response, status_code) as accepted by Flask views
    """
    envelope = error_envelope(code, message, field=field, details=details, hint=hint)
    response = jsonify(envelope)

    request_id = envelope["error"]["requestId"]
    if request_id:
        response.headers[REQUEST_ID_HEADER] = request_id

    return response, status_code or STATUS_BY_CODE.get(code, 500)


def violation_response(violation: ContractViolation) -> Tuple[Response, int]:
    """Envelope for a request or response contract violation."""
    return make_error_response(
        violation.code,
        violation.message,
        status_code=violation.status_code,
        details=violation.details,
    )


def _http_code(error: HTTPException) -> str:
    # "Method Not Allowed" -> "METHOD_NOT_ALLOWED"
    return '_'.join(error.name.upper().split())


def setup_error_handlers(app: Flask) -> None:
    """
    Install app-wide handlers rendering every error as an envelope.

    Covers violations raised outside a compiled route (e.g. from a plain
    Flask view), werkzeug HTTP errors and anything left unhandled.
    """

    @app.errorhandler(ContractViolation)
    def handle_contract_violation(error):
        return violation_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return make_error_response(_http_code(error), error.description, status_code=error.code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(
            f"Unhandled error: {error}",
            extra={
                "event": "unhandled_error",
                "request_id": getattr(g, 'request_id', None),
                "error_type": type(error).__name__,
            },
        )
        return make_error_response("INTERNAL_ERROR", "An unexpected error occurred", status_code=500)
