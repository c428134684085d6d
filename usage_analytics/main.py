"""Main FastAPI application."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from usage_analytics.api.routes import events_router, health_router, stats_router
from usage_analytics.core.config import get_settings
from usage_analytics.core.logging import get_logger, setup_logging
from usage_analytics.services.analytics import UsageAnalytics

settings = get_settings()
setup_logging(settings)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Migrates legacy history before the ingestion worker starts, and drains
    queued events on shutdown.
    """
    logger.info(
        "Starting usage analytics service",
        extra={"version": settings.version, "config_dir": str(settings.storage.directory)},
    )

    analytics = UsageAnalytics.from_config(settings.storage)
    outcome = analytics.migrate()
    logger.info("Analytics migration checked", extra={"outcome": outcome.value})

    await analytics.recorder.start()
    app.state.analytics = analytics

    yield

    await analytics.recorder.shutdown()
    logger.info("Shutting down usage analytics service")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description="Durable usage analytics for proxied provider requests",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        debug=settings.debug,
    )

    app.include_router(health_router)
    app.include_router(events_router)
    app.include_router(stats_router)

    logger.info("FastAPI application created successfully")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "usage_analytics.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
