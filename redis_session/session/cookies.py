"""
Bridge between the session store and the host's cookie handling.

destroy() has no access to the HTTP response, so the host middleware
binds a SessionCookieState for each request in a context variable and
applies any clearing request once the response exists.
"""

import logging
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from starlette.responses import Response

logger = logging.getLogger(__name__)

# Expiry sent when clearing the cookie
EXPIRED_AT = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class SessionCookieState:
    """Per-request cookie instructions collected during session handling."""
    name: str
    clear_requested: bool = False


session_cookie_var: ContextVar[Optional[SessionCookieState]] = ContextVar(
    "session_cookie", default=None
)


def bind_session_cookie(name: str) -> Token:
    """Start tracking cookie instructions for the current request."""
    return session_cookie_var.set(SessionCookieState(name=name))


def current_cookie_state() -> Optional[SessionCookieState]:
    return session_cookie_var.get()


def expire_session_cookie() -> bool:
    """
    Ask the host to clear the client's session cookie.

    Returns:
        True if a request context picked up the instruction, False when
        called outside one (for example from a CLI cleanup job).
    """
    state = session_cookie_var.get()
    if state is None:
        logger.debug("No request bound; session cookie left untouched")
        return False
    state.clear_requested = True
    return True


def clear_cookie(
    response: Response,
    name: str,
    path: str = "/",
    domain: Optional[str] = None,
    secure: bool = False,
) -> None:
    """Overwrite the cookie with an empty value that has already expired."""
    response.set_cookie(
        name,
        "",
        max_age=0,
        expires=EXPIRED_AT,
        path=path,
        domain=domain,
        secure=secure,
        httponly=True,
        samesite="lax",
    )
