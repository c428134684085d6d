"""Read-model assembly over the aggregate and history documents."""

from collections.abc import Callable

from usage_analytics.models.events import HistoryRecord, RequestEvent
from usage_analytics.models.stats import (
    UNKNOWN_NAME,
    Aggregate,
    HistoryPage,
    NamedCounterBucket,
    NamedUsage,
    StatsSource,
    TimeSeriesPoint,
    UsageStats,
)
from usage_analytics.services.aggregator import (
    StatsAggregator,
    event_day_label,
    event_hour_label,
    sort_series,
    upsert_point,
)
from usage_analytics.services.storage import AggregateStore, HistoryStore

LabelFn = Callable[[int], str]


def bucket_events(
    events: list[RequestEvent], label_fn: LabelFn
) -> tuple[list[TimeSeriesPoint], list[TimeSeriesPoint]]:
    """Group events into ascending request-count and token-sum series."""
    requests: list[TimeSeriesPoint] = []
    tokens: list[TimeSeriesPoint] = []
    for event in events:
        label = label_fn(event.timestamp)
        upsert_point(requests, label, 1)
        upsert_point(tokens, label, event.total_tokens)
    return sort_series(requests), sort_series(tokens)


def rank_buckets(buckets: dict[str, NamedCounterBucket]) -> list[NamedUsage]:
    """Named usage entries by descending request count, ``unknown`` excluded."""
    entries = [
        NamedUsage(
            name=name,
            requests=bucket.requests,
            success_count=bucket.success_count,
            tokens=bucket.tokens,
        )
        for name, bucket in buckets.items()
        if name != UNKNOWN_NAME
    ]
    entries.sort(key=lambda entry: entry.requests, reverse=True)
    return entries


def series_value(series: list[TimeSeriesPoint], label: str) -> int:
    for point in series:
        if point.label == label:
            return point.value
    return 0


class StatsQueryService:
    """Answers usage questions from whatever is currently durable on disk."""

    def __init__(
        self,
        aggregate_store: AggregateStore,
        history_store: HistoryStore,
        aggregator: StatsAggregator | None = None,
    ) -> None:
        self._aggregate_store = aggregate_store
        self._history_store = history_store
        self._aggregator = aggregator or StatsAggregator()

    def query(self) -> UsageStats:
        """Build the usage report. Never writes to either store."""
        aggregate_exists = self._aggregate_store.exists()
        aggregate = self._aggregate_store.load()
        history = self._history_store.load()

        if aggregate.total_requests == 0 and not history.requests:
            return UsageStats()

        if aggregate.total_requests > 0:
            stats = self._totals_from_aggregate(aggregate)
        else:
            stats = self._totals_from_history(history)

        if aggregate_exists and aggregate.created_at:
            stats.tracking_since = aggregate.created_at

        today = self._aggregator.today_label()
        stats.today_requests = series_value(aggregate.requests_by_day, today)
        stats.today_tokens = series_value(aggregate.tokens_by_day, today)

        stats.models = rank_buckets(aggregate.model_stats)
        stats.providers = rank_buckets(aggregate.provider_stats)

        if aggregate.requests_by_day:
            stats.requests_by_day = sort_series(aggregate.requests_by_day)
            stats.tokens_by_day = sort_series(aggregate.tokens_by_day)
        else:
            stats.requests_by_day, stats.tokens_by_day = bucket_events(
                history.requests, event_day_label
            )

        stats.requests_by_hour, stats.tokens_by_hour = bucket_events(
            history.requests, event_hour_label
        )
        return stats

    def recent(self, *, limit: int = 50, offset: int = 0) -> HistoryPage:
        """Recent history window, newest first."""
        events = list(reversed(self._history_store.load().requests))
        return HistoryPage(
            total=len(events),
            limit=limit,
            offset=offset,
            items=events[offset : offset + limit],
        )

    @staticmethod
    def _totals_from_aggregate(aggregate: Aggregate) -> UsageStats:
        return UsageStats(
            source=StatsSource.AGGREGATE,
            total_requests=aggregate.total_requests,
            success_count=aggregate.total_success_count,
            failure_count=aggregate.total_failure_count,
            success_rate=_rate(aggregate.total_success_count, aggregate.total_requests),
            total_tokens_in=aggregate.total_tokens_in,
            total_tokens_out=aggregate.total_tokens_out,
            total_cost_usd=aggregate.total_cost_usd,
        )

    @staticmethod
    def _totals_from_history(history: HistoryRecord) -> UsageStats:
        total = len(history.requests)
        success = sum(1 for event in history.requests if event.is_success)
        return UsageStats(
            source=StatsSource.HISTORY,
            total_requests=total,
            success_count=success,
            failure_count=total - success,
            success_rate=_rate(success, total),
            total_tokens_in=sum(event.tokens_in or 0 for event in history.requests),
            total_tokens_out=sum(event.tokens_out or 0 for event in history.requests),
            total_cost_usd=history.total_cost_usd,
        )


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0
