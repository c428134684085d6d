"""Wiring of the analytics stores and the services built on them."""

from dataclasses import dataclass

from usage_analytics.core.config import StorageConfig
from usage_analytics.core.logging import get_logger
from usage_analytics.services.aggregator import StatsAggregator
from usage_analytics.services.export import UsageExporter
from usage_analytics.services.migration import MigrationManager, MigrationOutcome
from usage_analytics.services.query import StatsQueryService
from usage_analytics.services.recorder import UsageRecorder
from usage_analytics.services.storage import AggregateStore, HistoryStore

logger = get_logger(__name__)


@dataclass
class UsageAnalytics:
    """Store pair and the services sharing it."""

    aggregate_store: AggregateStore
    history_store: HistoryStore
    aggregator: StatsAggregator
    migration: MigrationManager
    recorder: UsageRecorder
    query: StatsQueryService
    exporter: UsageExporter

    @classmethod
    def from_config(
        cls, config: StorageConfig, aggregator: StatsAggregator | None = None
    ) -> "UsageAnalytics":
        aggregator = aggregator or StatsAggregator()
        aggregate_store = AggregateStore(config.aggregate_path)
        history_store = HistoryStore(config.history_path, limit=config.history_limit)

        return cls(
            aggregate_store=aggregate_store,
            history_store=history_store,
            aggregator=aggregator,
            migration=MigrationManager(aggregate_store, history_store, aggregator),
            recorder=UsageRecorder(
                aggregate_store,
                history_store,
                aggregator,
                history_limit=config.history_limit,
                queue_size=config.ingest_queue_size,
            ),
            query=StatsQueryService(aggregate_store, history_store, aggregator),
            exporter=UsageExporter(aggregate_store, history_store),
        )

    def migrate(self) -> MigrationOutcome:
        """
        Run the startup migration.

        When the migrated aggregate cannot be written, the recorder keeps it
        in memory so live events are counted on top of the legacy history.
        The first successful save then completes the migration.
        """
        outcome = self.migration.run()
        if outcome == MigrationOutcome.FAILED and self.migration.unsaved_aggregate is not None:
            self.recorder.seed(self.migration.unsaved_aggregate)
            logger.warning(
                "Ingesting on top of unsaved migrated aggregate",
                extra={"events": self.migration.unsaved_aggregate.total_requests},
            )
        return outcome
