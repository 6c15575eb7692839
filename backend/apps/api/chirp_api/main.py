"""
Chirp API - FastAPI application entry point.

This module builds the FastAPI application and configures routers,
error handlers, and lifecycle events.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from arq import create_pool
from arq.connections import RedisSettings
from fastapi import Depends, FastAPI, Request, status
from fastapi.responses import JSONResponse

from chirp_core import get_logger, init_logging
from chirp_core.config import Settings
from chirp_core.exceptions import StorageUnavailable
from chirp_core.locks import KeyedLock

from .config import settings as default_settings
from .dependencies import require_api_token
from .routers import feeds, hub

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifecycle manager.

    Initializes the database and the task queue pool on startup and
    releases them on shutdown.

    Args:
        app: The FastAPI application instance.

    Yields:
        None during application runtime.
    """
    from chirp_database.session import close_database, create_tables, init_database

    settings: Settings = app.state.settings
    init_logging(settings.log_level)
    logger.info("Starting Chirp API", extra={"version": settings.version})

    init_database(settings.database_url, echo=settings.debug)
    if settings.create_tables:
        await create_tables()

    # Initialize Redis pool for task queue
    app.state.redis_pool = await create_pool(RedisSettings.from_dsn(settings.redis_url))
    logger.info("Redis pool initialized")

    yield

    # Shutdown: Cleanup resources
    if app.state.redis_pool:
        await app.state.redis_pool.close()
    await close_database()
    logger.info("Shutting down Chirp API")


async def storage_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report storage outages as 503 instead of a bare 500."""
    logger.error("Storage unavailable", extra={"path": request.url.path, "error": str(exc)})
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Storage unavailable"},
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build a Chirp API application.

    Args:
        settings: Settings to use; the environment-loaded settings otherwise.

    Returns:
        Configured FastAPI application.
    """
    settings = settings or default_settings

    app = FastAPI(
        title="Chirp API",
        description="Chirp - federated status updates over the hub protocol",
        version=settings.version,
        lifespan=lifespan,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.locks = KeyedLock()
    app.state.redis_pool = None

    app.add_exception_handler(StorageUnavailable, storage_unavailable_handler)

    # Hub-facing endpoints live at the site root; management API under /api
    app.include_router(hub.router, tags=["Hub"])
    app.include_router(
        feeds.router,
        prefix="/api/feeds",
        tags=["Feeds"],
        dependencies=[Depends(require_api_token)],
    )

    @app.get("/api/health")
    async def health_check() -> dict[str, str]:
        """
        Health check endpoint.

        Returns:
            Dictionary containing service status and version.
        """
        return {"status": "healthy", "version": settings.version}

    return app


app = create_app()
