"""Usage statistics, export and maintenance endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from usage_analytics.core.logging import get_logger
from usage_analytics.models.stats import HistoryPage, UsageStats
from usage_analytics.services.analytics import UsageAnalytics
from usage_analytics.services.storage import StorageIOError

logger = get_logger(__name__)
router = APIRouter(prefix="/stats", tags=["stats"])


def get_analytics(request: Request) -> UsageAnalytics:
    """Fetch initialized analytics services from app state."""
    analytics = getattr(request.app.state, "analytics", None)
    if not isinstance(analytics, UsageAnalytics):
        raise HTTPException(status_code=500, detail="Usage analytics is not initialized")
    return analytics


def _storage_failure(action: str, exc: StorageIOError) -> HTTPException:
    logger.warning("Maintenance action failed", extra={"action": action, "error": str(exc)})
    return HTTPException(status_code=500, detail=str(exc))


@router.get("", response_model=UsageStats)
async def usage_stats(analytics: UsageAnalytics = Depends(get_analytics)) -> UsageStats:
    """Get total, today, per-model, per-provider, daily and hourly usage."""
    return analytics.query.query()


@router.get("/history", response_model=HistoryPage)
async def recent_history(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    analytics: UsageAnalytics = Depends(get_analytics),
) -> HistoryPage:
    """List recent requests, newest first."""
    return analytics.query.recent(limit=limit, offset=offset)


@router.get("/export/history")
async def export_history(analytics: UsageAnalytics = Depends(get_analytics)) -> Response:
    """Export the recent history window as CSV."""
    return Response(
        content=analytics.exporter.export_history_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="history.csv"'},
    )


@router.get("/export/aggregate")
async def export_aggregate(analytics: UsageAnalytics = Depends(get_analytics)) -> dict[str, Any]:
    """Export the cumulative aggregate document."""
    return analytics.exporter.export_aggregate()


@router.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
async def clear_history(analytics: UsageAnalytics = Depends(get_analytics)) -> Response:
    """Clear recent history. Cumulative analytics are kept."""
    try:
        await analytics.recorder.clear_history()
    except StorageIOError as exc:
        raise _storage_failure("Clearing history", exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/aggregate", status_code=status.HTTP_204_NO_CONTENT)
async def reset_analytics(analytics: UsageAnalytics = Depends(get_analytics)) -> Response:
    """Reset cumulative analytics. Recent history is kept."""
    try:
        await analytics.recorder.reset_analytics()
    except StorageIOError as exc:
        raise _storage_failure("Resetting analytics", exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
