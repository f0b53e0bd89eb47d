"""
Application factory wiring the Redis session backend into FastAPI.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from redis_session import __version__
from redis_session.config.settings import Settings, get_settings, validate_startup
from redis_session.errors.exceptions import AppException
from redis_session.errors.handlers import register_exception_handlers
from redis_session.middleware.session import SessionMiddleware
from redis_session.session.redis_store import RedisSessionStore
from redis_session.session.store import SessionHandler
from redis_session.telemetry.service import initialize_telemetry

logger = logging.getLogger(__name__)

SERVICE_NAME = "Redis Session Backend"


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[SessionHandler] = None,
) -> FastAPI:
    """
    Build a FastAPI application with Redis-backed sessions.

    Args:
        settings: Resolved settings; loaded from the environment if omitted.
        store: Session handler to use; a RedisSessionStore built from
            settings if omitted.

    Returns:
        The configured application. Its session handler is available as
        app.state.session_store.
    """
    settings = settings or get_settings()
    validate_startup(settings)
    initialize_telemetry(settings)

    store = store or RedisSessionStore(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting session backend", extra={
            "extra_data": {
                "environment": settings.environment.value,
                "redis_host": settings.redis_host,
                "redis_port": settings.redis_port,
            }
        })
        yield
        await store.close()
        logger.info("Session backend stopped")

    app = FastAPI(title=SERVICE_NAME, version=__version__, lifespan=lifespan)
    app.state.session_store = store
    app.state.settings = settings

    register_exception_handlers(app)
    app.add_middleware(SessionMiddleware, store=store, settings=settings)

    @app.get("/health")
    async def health_basic():
        """Returns 200 whenever the process is accepting requests."""
        return {"status": "ok", "service": SERVICE_NAME, "version": __version__}

    @app.get("/health/ready")
    async def health_ready():
        """
        Readiness check: 200 when the session store answers PING, else 503.

        The store is opened on demand so a fresh process can report ready
        before its first session request.
        """
        healthy = False
        error = None
        try:
            await store.open()
            healthy = await store.health_check()
        except AppException as e:
            error = e.message

        body = {
            "status": "healthy" if healthy else "unhealthy",
            "service": SERVICE_NAME,
            "version": __version__,
            "dependencies": [{"name": "session_store", "healthy": healthy}],
        }
        if error:
            body["dependencies"][0]["error"] = error
        return JSONResponse(status_code=200 if healthy else 503, content=body)

    return app


if __name__ == "__main__":
    import uvicorn

    load_dotenv()
    port = int(os.environ.get("PORT", 8080))
    uvicorn.run(create_app(), host="0.0.0.0", port=port, log_level="info")
