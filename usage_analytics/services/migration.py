"""One-time upgrade from the legacy history-only layout to the split layout."""

from enum import StrEnum

from usage_analytics.core.logging import get_logger
from usage_analytics.models.events import HistoryRecord
from usage_analytics.models.stats import Aggregate
from usage_analytics.services.aggregator import StatsAggregator
from usage_analytics.services.storage import (
    AggregateStore,
    HistoryStore,
    StorageError,
    StorageIOError,
)

logger = get_logger(__name__)


class MigrationError(StorageError):
    """Raised when a migrated aggregate could not be persisted."""


class MigrationOutcome(StrEnum):
    """Result of a startup migration attempt."""

    ALREADY_MIGRATED = "already_migrated"
    NOTHING_TO_MIGRATE = "nothing_to_migrate"
    MIGRATED = "migrated"
    FAILED = "failed"


class MigrationManager:
    """Builds the aggregate from legacy history when no aggregate exists yet."""

    def __init__(
        self,
        aggregate_store: AggregateStore,
        history_store: HistoryStore,
        aggregator: StatsAggregator | None = None,
    ) -> None:
        self._aggregate_store = aggregate_store
        self._history_store = history_store
        self._aggregator = aggregator or StatsAggregator()
        self.unsaved_aggregate: Aggregate | None = None

    def run(self) -> MigrationOutcome:
        """
        Migrate once. Safe to call on every startup.

        The presence of the aggregate file marks the migrated state, so a
        failed write is retried on the next call. The aggregate built by a
        failed attempt is kept in ``unsaved_aggregate``.
        """
        if self._aggregate_store.exists():
            return MigrationOutcome.ALREADY_MIGRATED

        history = self._history_store.load()
        if not history.requests:
            return MigrationOutcome.NOTHING_TO_MIGRATE

        aggregate = self.build_aggregate(history)
        try:
            self._persist(aggregate)
        except MigrationError as exc:
            self.unsaved_aggregate = aggregate
            logger.error(
                "Analytics migration failed, will retry on next startup",
                extra={"file": str(self._aggregate_store.path), "error": str(exc)},
            )
            return MigrationOutcome.FAILED

        self.unsaved_aggregate = None
        logger.info(
            "Migrated legacy history into analytics aggregate",
            extra={
                "events": aggregate.total_requests,
                "days": len(aggregate.requests_by_day),
            },
        )
        return MigrationOutcome.MIGRATED

    def build_aggregate(self, history: HistoryRecord) -> Aggregate:
        """Compute an aggregate from legacy history without persisting it."""
        aggregate = self._aggregator.backfill(history.requests, Aggregate())

        if aggregate.total_tokens_in == 0 and aggregate.total_tokens_out == 0:
            aggregate.total_tokens_in = history.total_tokens_in
            aggregate.total_tokens_out = history.total_tokens_out
        if aggregate.total_cost_usd == 0:
            aggregate.total_cost_usd = history.total_cost_usd

        return aggregate

    def _persist(self, aggregate: Aggregate) -> None:
        try:
            self._aggregate_store.save(aggregate)
        except StorageIOError as exc:
            raise MigrationError(str(exc)) from exc
