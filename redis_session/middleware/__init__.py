"""
Middleware components for the Redis session backend.
"""

from redis_session.middleware.session import (
    REQUEST_ID_HEADER,
    SessionContext,
    SessionMiddleware,
    new_session_id,
    sanitize_session_id,
)

__all__ = [
    "REQUEST_ID_HEADER",
    "SessionContext",
    "SessionMiddleware",
    "new_session_id",
    "sanitize_session_id",
]
