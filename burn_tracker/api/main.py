"""
Main FastAPI application for the burn tracker.
Configures the API server with routes, middleware and background refresh.
"""

from fastapi import FastAPI
from contextlib import asynccontextmanager

import structlog

from burn_tracker.core.config import settings
from burn_tracker.core.container import build_container
from burn_tracker.core.logging import setup_logging
from burn_tracker.core.tokens import TokenRegistry
from burn_tracker.api.middleware import add_middleware
from burn_tracker.api.schemas.common import HealthCheckResponse
from burn_tracker.api.routes import burn


logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting burn tracker API server")

    container = await build_container(settings)
    app.state.container = container
    app.state.burn_store = container.store
    app.state.tokens = container.tokens
    app.state.scheduler = container.scheduler
    app.state.provider_pool = container.pool

    try:
        await container.scheduler.start()
    except Exception as e:
        logger.error("Failed to start burn scheduler", error=str(e))

    yield

    logger.info("Shutting down burn tracker API server")
    try:
        await container.close()
    except Exception as e:
        logger.error("Error during shutdown", error=str(e))


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Create and configure FastAPI application."""
    setup_logging()

    app = FastAPI(
        title="Burn Tracker API",
        description="Token burn amounts over trailing windows, refreshed in the background.",
        version=settings.app_version,
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.tokens = TokenRegistry()

    add_middleware(app)

    @app.get(
        "/health",
        response_model=HealthCheckResponse,
        tags=["System"],
        summary="Health Check",
        description="Liveness of the API process"
    )
    async def health_check():
        """Health check endpoint."""
        return HealthCheckResponse(version=settings.app_version)

    app.include_router(burn.router, tags=["Burn Data"])

    logger.info("FastAPI application created successfully")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "burn_tracker.api.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower()
    )
