"""Incremental folding of request events into the cumulative aggregate."""

from collections.abc import Callable, Iterable
from datetime import UTC, date, datetime

from usage_analytics.models.events import RequestEvent
from usage_analytics.models.stats import (
    UNKNOWN_NAME,
    Aggregate,
    NamedCounterBucket,
    TimeSeriesPoint,
)

Clock = Callable[[], datetime]


def normalize_name(name: str | None) -> str:
    """Collapse empty and sentinel names into the shared ``unknown`` bucket."""
    if not name or not name.strip() or name == UNKNOWN_NAME:
        return UNKNOWN_NAME
    return name


def day_label(day: date) -> str:
    return day.isoformat()


def event_day_label(timestamp_ms: int) -> str:
    """UTC calendar day of an epoch-millisecond timestamp."""
    return day_label(datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).date())


def event_hour_label(timestamp_ms: int) -> str:
    """UTC calendar hour of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=UTC).strftime("%Y-%m-%dT%H:00")


def upsert_point(series: list[TimeSeriesPoint], label: str, amount: int) -> None:
    """Add ``amount`` to the point labelled ``label``, inserting it if absent."""
    for point in series:
        if point.label == label:
            point.value += amount
            return
    series.append(TimeSeriesPoint(label=label, value=amount))


def upsert_bucket(
    buckets: dict[str, NamedCounterBucket],
    name: str | None,
    *,
    success: bool,
    tokens: int,
) -> None:
    """Count one request against the bucket for ``name``, creating it if absent."""
    key = normalize_name(name)
    bucket = buckets.get(key)
    if bucket is None:
        bucket = NamedCounterBucket()
        buckets[key] = bucket

    bucket.requests += 1
    if success:
        bucket.success_count += 1
    bucket.tokens += tokens


def sort_series(series: list[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
    return sorted(series, key=lambda point: point.label)


def stamp_created(aggregate: Aggregate, moment: datetime) -> None:
    """Record the creation time once, on the first fold into a fresh aggregate."""
    if not aggregate.created_at:
        aggregate.created_at = int(moment.timestamp() * 1000)


class StatsAggregator:
    """
    Folds completed request events into an Aggregate.

    Live events are bucketed under the local calendar day of the aggregation
    moment, read from ``clock``. Backfilled events are bucketed under the UTC
    day of their own timestamp instead.
    """

    def __init__(self, clock: Clock = datetime.now) -> None:
        self._clock = clock

    def today_label(self) -> str:
        return day_label(self._clock().date())

    def apply(self, event: RequestEvent, aggregate: Aggregate) -> Aggregate:
        """Return a copy of ``aggregate`` with ``event`` folded in."""
        moment = self._clock()
        updated = aggregate.model_copy(deep=True)
        stamp_created(updated, moment)
        self._fold(event, updated, label=day_label(moment.date()))
        return updated

    def backfill(self, events: Iterable[RequestEvent], aggregate: Aggregate) -> Aggregate:
        """Return a copy of ``aggregate`` with historic ``events`` folded in by event date."""
        updated = aggregate.model_copy(deep=True)
        stamp_created(updated, self._clock())
        for event in events:
            self._fold(event, updated, label=event_day_label(event.timestamp))

        updated.requests_by_day = sort_series(updated.requests_by_day)
        updated.tokens_by_day = sort_series(updated.tokens_by_day)
        return updated

    @staticmethod
    def _fold(event: RequestEvent, aggregate: Aggregate, *, label: str) -> None:
        tokens_in = event.tokens_in or 0
        tokens_out = event.tokens_out or 0
        tokens = tokens_in + tokens_out

        aggregate.total_requests += 1
        if event.is_success:
            aggregate.total_success_count += 1
        else:
            aggregate.total_failure_count += 1

        aggregate.total_tokens_in += tokens_in
        aggregate.total_tokens_out += tokens_out

        upsert_point(aggregate.requests_by_day, label, 1)
        upsert_point(aggregate.tokens_by_day, label, tokens)

        upsert_bucket(aggregate.model_stats, event.model, success=event.is_success, tokens=tokens)
        upsert_bucket(
            aggregate.provider_stats, event.provider, success=event.is_success, tokens=tokens
        )
