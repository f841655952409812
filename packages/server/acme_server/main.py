"""
Acme Platform API Server

Entry point for the FastAPI application.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from acme_server.api.v1 import router as api_v1_router
from acme_server.core.config import Settings, get_settings
from acme_server.core.csrf import CSRF_HEADER, CsrfStore
from acme_server.core.database import Database
from acme_server.core.email import EmailSender, LogEmailSender, ResendEmailSender
from acme_server.core.errors import register_exception_handlers
from acme_server.core.logging import configure_logging
from acme_server.core.middleware import CSRFMiddleware, SecurityHeadersMiddleware
from acme_server.core.redis import close_redis, create_redis

log = structlog.get_logger()


def _default_email_sender(settings: Settings) -> EmailSender:
    if settings.resend_api_key:
        return ResendEmailSender(settings.resend_api_key, settings.email_from)
    return LogEmailSender()


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    csrf_store: Optional[CsrfStore] = None,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators not passed in are built from ``settings``.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.log_format)

    app = FastAPI(
        title="Acme Platform",
        description="Multi-tenant accounts, organizations and memberships.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    redis_client = None
    if csrf_store is None:
        redis_client = create_redis(settings.redis_url)
        csrf_store = CsrfStore(redis_client, settings.csrf_token_ttl_seconds)

    app.state.settings = settings
    app.state.db = database or Database(settings.database_url, echo=settings.database_echo)
    app.state.redis = redis_client
    app.state.csrf_store = csrf_store
    app.state.email_sender = email_sender or _default_email_sender(settings)

    register_exception_handlers(app)

    # Middleware (order matters: last added is outermost)
    app.add_middleware(CSRFMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", CSRF_HEADER],
    )

    app.include_router(api_v1_router, prefix="/api/v1")

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check endpoint for startup probes."""
        try:
            await app.state.db.ping()
            if app.state.redis is not None:
                await app.state.redis.ping()
        except Exception as exc:
            log.warning("server.not_ready", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info("server.starting", environment=settings.environment)
        await app.state.db.create_all()

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("server.stopping")
        await close_redis(app.state.redis)
        await app.state.db.dispose()

    return app


app = create_app()


def run() -> None:
    """CLI entry point: serve the app with uvicorn."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("acme_server.main:app", host=settings.host, port=settings.port)
