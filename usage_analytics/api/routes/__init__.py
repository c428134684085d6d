"""API routes."""

from usage_analytics.api.routes.events import router as events_router
from usage_analytics.api.routes.health import router as health_router
from usage_analytics.api.routes.stats import router as stats_router

__all__ = ["events_router", "health_router", "stats_router"]
