"""
Hive API Server

Entry point for the FastAPI application.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from hive_server.api.v1 import router as api_v1_router
from hive_server.core.config import get_settings
from hive_server.core.database import async_session_factory, close_db
from hive_server.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from hive_server.core.redis import close_redis

settings = get_settings()
log = structlog.get_logger()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Hive",
        description="Workspaces, features, tickets and bounties with hive chat.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # Middleware (last added is outermost)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "x-jwt"],
    )

    app.include_router(api_v1_router)

    @app.get("/health", tags=["System"])
    async def health_check():
        """Health check endpoint for liveness probes."""
        return {"status": "ok"}

    @app.get("/ready", tags=["System"])
    async def readiness_check():
        """Readiness check: the database answers a trivial query."""
        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as exc:
            log.error("ready.database_unavailable", error=str(exc))
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ready"}

    @app.on_event("startup")
    async def on_startup():
        log.info(
            "Hive starting",
            public_url=settings.public_url,
            workflow_configured=bool(settings.stakwork_api_key),
            super_admins=len(settings.super_admins),
        )

    @app.on_event("shutdown")
    async def on_shutdown():
        log.info("Hive shutting down")
        await close_redis()
        await close_db()

    return app


app = create_app()
