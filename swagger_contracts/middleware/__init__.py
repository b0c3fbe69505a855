"""
Global middleware for API requests.

Provides:
- Request ID injection (X-Request-ID)
- Error envelope standardization
"""

from .request_id import setup_request_id_middleware, get_request_id
from .error_envelope import (
    setup_error_handlers,
    make_error_response,
    violation_response,
)

__all__ = [
    'setup_request_id_middleware',
    'get_request_id',
    'setup_error_handlers',
    'make_error_response',
    'violation_response',
]
