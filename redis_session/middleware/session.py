"""
Session lifecycle middleware.

Plays the host's part in the session protocol for a FastAPI/Starlette app:
it picks the session id from the cookie (or mints one), opens the store,
reads the payload before the endpoint runs, writes it back afterwards, and
turns store failures into loud 503 responses instead of carrying on
without a store.

Endpoints reach the session through request.state.session:

    @app.post("/logout")
    async def logout(request: Request):
        await request.state.session.destroy()
        return {"ok": True}
"""

import logging
import random
import re
import secrets
import uuid
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from redis_session.config.settings import Settings
from redis_session.errors.exceptions import AppException, SessionConnectionError
from redis_session.errors.handlers import build_error_response
from redis_session.session.cookies import (
    bind_session_cookie,
    clear_cookie,
    current_cookie_state,
    session_cookie_var,
)
from redis_session.session.store import SessionHandler
from redis_session.telemetry.service import fingerprint, request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Characters PHP itself emits in session ids; anything else is reissued
SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9,-]{22,256}$")

DEFAULT_EXCLUDED_PATHS = ("/health", "/health/ready")


def new_session_id() -> str:
    """Generate a fresh 32-character hex session id."""
    return secrets.token_hex(16)


def sanitize_session_id(raw: Optional[str]) -> Optional[str]:
    """Return the cookie value if it looks like a session id, else None."""
    if raw and SESSION_ID_PATTERN.match(raw):
        return raw
    return None


@dataclass
class SessionContext:
    """
    The current request's session as seen by endpoints.

    Attributes:
        session_id: Id the payload is stored under
        data: Serialized payload; endpoints replace it to change the session
        store: Handler the middleware read from and will write back to
        is_new: True when the id was minted for this request
        destroyed: Set by destroy(); suppresses the write-back
    """
    session_id: str
    data: bytes
    store: SessionHandler = field(repr=False)
    is_new: bool = False
    destroyed: bool = False

    async def destroy(self) -> None:
        """Delete the session from the store and clear the client cookie."""
        await self.store.destroy(self.session_id)
        self.destroyed = True
        self.data = b""


class SessionMiddleware(BaseHTTPMiddleware):
    """
    Middleware that runs the session handler around each request.

    Per request it:
    1. Assigns a request id (X-Request-ID header or a new UUID) for logs
    2. Resolves the session id from the cookie, minting one if needed
    3. Calls open() and read() on the store
    4. Runs the endpoint with request.state.session set
    5. Writes the payload back unless the session was destroyed
    6. Occasionally calls gc(), with probability session_gc_probability
    7. Sets, or clears, the session cookie on the response

    open() is idempotent, so calling it on every request costs nothing
    once the connection exists. close() is left to application shutdown.
    """

    def __init__(
        self,
        app: ASGIApp,
        store: SessionHandler,
        settings: Settings,
        excluded_paths: Iterable[str] = DEFAULT_EXCLUDED_PATHS,
    ):
        super().__init__(app)
        self.store = store
        self.settings = settings
        self.excluded_paths = frozenset(excluded_paths)

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        request_token = request_id_var.set(request_id)
        cookie_token = bind_session_cookie(self.settings.session_cookie_name)

        try:
            if request.url.path in self.excluded_paths:
                response = await call_next(request)
            else:
                response = await self._handle_session(request, call_next)

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            session_cookie_var.reset(cookie_token)
            request_id_var.reset(request_token)

    async def _handle_session(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        session_id = sanitize_session_id(
            request.cookies.get(self.settings.session_cookie_name)
        )
        is_new = session_id is None
        if is_new:
            session_id = new_session_id()

        try:
            await self.store.open()
            data = await self.store.read(session_id)
        except AppException as exc:
            return self._error_response(request, exc)

        context = SessionContext(
            session_id=session_id,
            data=data,
            store=self.store,
            is_new=is_new,
        )
        request.state.session = context

        response = await call_next(request)

        try:
            if not context.destroyed:
                await self.store.write(session_id, context.data)
            if random.random() < self.settings.session_gc_probability:
                await self.store.gc(self.settings.session_ttl_seconds)
        except AppException as exc:
            return self._error_response(request, exc)

        cookie_state = current_cookie_state()
        if cookie_state is not None and cookie_state.clear_requested:
            self._clear_cookie(response)
        elif is_new:
            response.set_cookie(
                self.settings.session_cookie_name,
                session_id,
                path=self.settings.session_cookie_path,
                domain=self.settings.session_cookie_domain,
                secure=self.settings.session_cookie_secure,
                httponly=True,
                samesite="lax",
            )
            logger.debug("Issued new session cookie", extra={
                "extra_data": {"session": fingerprint(session_id)}
            })

        return response

    def _clear_cookie(self, response: Response) -> None:
        clear_cookie(
            response,
            self.settings.session_cookie_name,
            path=self.settings.session_cookie_path,
            domain=self.settings.session_cookie_domain,
            secure=self.settings.session_cookie_secure,
        )

    def _error_response(self, request: Request, exc: AppException) -> Response:
        """
        Fail the request loudly.

        A connection failure also clears the session cookie, logging the
        user out rather than letting them continue on a session that can
        be neither loaded nor saved.
        """
        logger.error(
            "Session handling failed",
            extra={
                "extra_data": {
                    "error_code": exc.error_code.value,
                    "error_message": exc.message,
                    "details": exc.details,
                    "path": request.url.path,
                    "method": request.method,
                }
            },
        )
        response = build_error_response(exc, request.state.request_id)
        if isinstance(exc, SessionConnectionError):
            self._clear_cookie(response)
        return response
