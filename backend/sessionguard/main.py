"""SessionGuard - FastAPI Application Factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sessionguard.api import api_router
from sessionguard.api.admin_tokens import diagnostic_router
from sessionguard.api.auth import router as auth_router
from sessionguard.api.health import router as health_router
from sessionguard.core import settings, setup_logging
from sessionguard.core.logging import get_logger

# Import all models to ensure they're registered with Base for Alembic
from sessionguard.models import (  # noqa: F401
    Comment,
    Post,
    Project,
    RevokedToken,
    User,
)
from sessionguard.services.reaper import RevocationReaper

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    # Configure logging
    setup_logging(
        level=settings.log_level,
        format_type="structured" if not settings.debug else "dev",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    # Check security configuration
    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    reaper = RevocationReaper.get_instance()
    await reaper.start()

    yield

    # Shutdown
    logger.info("Shutting down...")
    await reaper.stop()


def create_app(enable_diagnostic_endpoints: bool | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Diagnostic endpoints are decided here, once; a running app never grows
    or loses routes.
    """
    if enable_diagnostic_endpoints is None:
        enable_diagnostic_endpoints = settings.enable_diagnostic_endpoints

    app = FastAPI(
        title=settings.app_name,
        description="Bearer-token session revocation and ownership checks",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    # Prometheus metrics (before routers so /metrics endpoint is registered first)
    if settings.enable_metrics:
        from prometheus_fastapi_instrumentator import Instrumentator

        Instrumentator(
            excluded_handlers=["/health", "/metrics"],
        ).instrument(app).expose(app, endpoint="/metrics", include_in_schema=False)

    # Include routers
    app.include_router(health_router)  # Health at root level
    app.include_router(auth_router)  # Auth at root level (/auth)
    app.include_router(api_router)  # API at /api

    if enable_diagnostic_endpoints:
        logger.warning("Diagnostic endpoints enabled: immediate cleanup bypasses grace period")
        app.include_router(diagnostic_router, prefix="/api")

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with API information."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
        }

    return app


# Application instance
app = create_app()
