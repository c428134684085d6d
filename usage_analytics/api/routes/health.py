"""Health check endpoint."""

from datetime import UTC, datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from usage_analytics.api.routes.stats import get_analytics
from usage_analytics.core.config import Settings, get_settings
from usage_analytics.services.analytics import UsageAnalytics

router = APIRouter()


class StorageHealth(BaseModel):
    """Presence of the persisted analytics documents."""

    history_file: str
    history_exists: bool
    aggregate_file: str
    aggregate_exists: bool
    pending_events: int
    recorder_running: bool


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    service: str
    version: str
    storage: StorageHealth


@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(
    settings: Settings = Depends(get_settings),
    analytics: UsageAnalytics = Depends(get_analytics),
) -> HealthResponse:
    """
    Health check endpoint.

    Returns the service status and where analytics are stored.

    Args:
        settings: Application settings (injected)
        analytics: Analytics services (injected)
    """
    return HealthResponse(
        status="healthy" if analytics.recorder.running else "degraded",
        timestamp=datetime.now(UTC),
        service=settings.app_name,
        version=settings.version,
        storage=StorageHealth(
            history_file=str(analytics.history_store.path),
            history_exists=analytics.history_store.exists(),
            aggregate_file=str(analytics.aggregate_store.path),
            aggregate_exists=analytics.aggregate_store.exists(),
            pending_events=analytics.recorder.pending,
            recorder_running=analytics.recorder.running,
        ),
    )
