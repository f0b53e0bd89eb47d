"""
Error handling for the Redis session backend.

- ErrorCode enum for standardized error codes
- AppException and the session connection/store subclasses
- Error response model and FastAPI exception handlers
"""

from redis_session.errors.codes import ErrorCode
from redis_session.errors.exceptions import (
    AppException,
    SessionConnectionError,
    SessionStoreError,
)
from redis_session.errors.handlers import (
    ErrorResponse,
    build_error_response,
    handle_app_exception,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "SessionConnectionError",
    "SessionStoreError",
    "ErrorResponse",
    "build_error_response",
    "handle_app_exception",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
