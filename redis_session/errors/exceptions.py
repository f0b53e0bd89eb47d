"""
Exception classes for the Redis session backend.

AppException carries an error code, message, HTTP status and optional
details. The two session-specific subclasses let callers catch connection
failures separately from per-command failures.
"""

from typing import Any, Optional

from redis_session.errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    Example:
        raise AppException(
            error_code=ErrorCode.SESSION_STORE_ERROR,
            message="Failed to write session",
            details={"operation": "set"}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        """
        Initialize an AppException.

        Args:
            error_code: The error code from the ErrorCode enum
            message: A human-readable error message
            status_code: The HTTP status code (defaults to the error code's default)
            details: Optional dictionary with additional error context
        """
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for JSON serialization."""
        result = {
            "error_code": self.error_code.value,
            "message": self.message,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


class SessionConnectionError(AppException):
    """
    The session store connection could not be established or is not open.

    Fatal for the current request's session handling: the host must abort
    rather than continue without a store.
    """

    def __init__(
        self,
        message: str = "Session store connection failed",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(
            error_code=ErrorCode.SESSION_CONNECTION_ERROR,
            message=message,
            details=details
        )


class SessionStoreError(AppException):
    """A store command failed on a previously established connection."""

    def __init__(
        self,
        message: str = "Session store operation failed",
        details: Optional[dict[str, Any]] = None
    ):
        super().__init__(
            error_code=ErrorCode.SESSION_STORE_ERROR,
            message=message,
            details=details
        )


def connection_error(
    stage: str,
    message: str = "Session store connection failed",
    details: Optional[dict[str, Any]] = None
) -> SessionConnectionError:
    """Create a connection error tagged with the step that failed."""
    return SessionConnectionError(message=message, details={"stage": stage, **(details or {})})


def store_error(
    operation: str,
    message: str = "Session store operation failed",
    details: Optional[dict[str, Any]] = None
) -> SessionStoreError:
    """Create a store error tagged with the command that failed."""
    return SessionStoreError(message=message, details={"operation": operation, **(details or {})})

