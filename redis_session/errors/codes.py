"""
Error code catalog for the Redis session backend.

Codes distinguish a store that could not be reached at all from a store
that was reachable but failed an individual command, since the host
reacts to each differently.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used by the session backend.

    Each error code maps to a default HTTP status code used when the
    error reaches a FastAPI response.
    """

    SESSION_CONNECTION_ERROR = "SESSION_CONNECTION_ERROR"
    """Connecting, authenticating or selecting the database failed (HTTP 503)"""

    SESSION_STORE_ERROR = "SESSION_STORE_ERROR"
    """A get/set/delete/expire command failed on an open connection (HTTP 503)"""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.SESSION_CONNECTION_ERROR: 503,
    ErrorCode.SESSION_STORE_ERROR: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
