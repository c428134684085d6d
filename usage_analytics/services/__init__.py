"""Services for the application."""

from usage_analytics.services.aggregator import StatsAggregator
from usage_analytics.services.analytics import UsageAnalytics
from usage_analytics.services.export import UsageExporter
from usage_analytics.services.migration import MigrationError, MigrationManager, MigrationOutcome
from usage_analytics.services.query import StatsQueryService
from usage_analytics.services.recorder import UsageRecorder
from usage_analytics.services.storage import (
    AggregateStore,
    HistoryStore,
    StorageCorruptError,
    StorageError,
    StorageIOError,
)

__all__ = [
    "AggregateStore",
    "HistoryStore",
    "MigrationError",
    "MigrationManager",
    "MigrationOutcome",
    "StatsAggregator",
    "StatsQueryService",
    "StorageCorruptError",
    "StorageError",
    "StorageIOError",
    "UsageAnalytics",
    "UsageExporter",
    "UsageRecorder",
]
