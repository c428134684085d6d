"""Data models for the application."""

from usage_analytics.models.events import HistoryRecord, RequestEvent
from usage_analytics.models.stats import (
    Aggregate,
    HistoryPage,
    NamedCounterBucket,
    NamedUsage,
    StatsSource,
    TimeSeriesPoint,
    UsageStats,
)

__all__ = [
    "Aggregate",
    "HistoryPage",
    "HistoryRecord",
    "NamedCounterBucket",
    "NamedUsage",
    "RequestEvent",
    "StatsSource",
    "TimeSeriesPoint",
    "UsageStats",
]
