"""Ingestion endpoint for completed request events."""

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from usage_analytics.api.routes.stats import get_analytics
from usage_analytics.models.events import RequestEvent
from usage_analytics.services.analytics import UsageAnalytics

router = APIRouter(prefix="/events", tags=["events"])


class EventAcceptedResponse(BaseModel):
    """Acknowledgement for a queued event."""

    id: str
    queued: bool
    pending: int


@router.post("", response_model=EventAcceptedResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_event(
    event: RequestEvent,
    analytics: UsageAnalytics = Depends(get_analytics),
) -> EventAcceptedResponse:
    """Queue a completed request for background recording."""
    await analytics.recorder.submit(event)
    return EventAcceptedResponse(
        id=event.fingerprint,
        queued=True,
        pending=analytics.recorder.pending,
    )
