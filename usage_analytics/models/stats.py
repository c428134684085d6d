"""Cumulative aggregate and usage report models."""

from enum import StrEnum

from pydantic import Field

from usage_analytics.models.events import CamelModel, RequestEvent

UNKNOWN_NAME = "unknown"


class TimeSeriesPoint(CamelModel):
    """Single labelled counter in a day or hour series."""

    label: str = Field(description="Calendar day (YYYY-MM-DD) or hour (YYYY-MM-DDTHH:00)")
    value: int = Field(default=0, ge=0)


class NamedCounterBucket(CamelModel):
    """Per-model or per-provider counters."""

    requests: int = Field(default=0, ge=0)
    success_count: int = Field(default=0, ge=0)
    tokens: int = Field(default=0, ge=0)


class Aggregate(CamelModel):
    """Unbounded cumulative analytics document. Never trimmed."""

    created_at: int = Field(
        default=0, ge=0, description="Creation time in epoch ms, 0 until first written"
    )
    total_requests: int = Field(default=0, ge=0)
    total_success_count: int = Field(default=0, ge=0)
    total_failure_count: int = Field(default=0, ge=0)
    total_tokens_in: int = Field(default=0, ge=0)
    total_tokens_out: int = Field(default=0, ge=0)
    total_cost_usd: float = Field(default=0.0, ge=0.0)
    requests_by_day: list[TimeSeriesPoint] = Field(default_factory=list)
    tokens_by_day: list[TimeSeriesPoint] = Field(default_factory=list)
    model_stats: dict[str, NamedCounterBucket] = Field(default_factory=dict)
    provider_stats: dict[str, NamedCounterBucket] = Field(default_factory=dict)


class StatsSource(StrEnum):
    """Which document a usage report was computed from."""

    EMPTY = "empty"
    AGGREGATE = "aggregate"
    HISTORY = "history"


class NamedUsage(CamelModel):
    """Ranked usage entry for one model or provider."""

    name: str
    requests: int
    success_count: int
    tokens: int


class UsageStats(CamelModel):
    """Read model answering total, today, keyed, daily and hourly questions."""

    source: StatsSource = Field(default=StatsSource.EMPTY)
    tracking_since: int | None = Field(
        default=None, description="Aggregate creation time in epoch ms, if one exists"
    )

    total_requests: int = 0
    success_count: int = 0
    failure_count: int = 0
    success_rate: float = 0.0
    total_tokens_in: int = 0
    total_tokens_out: int = 0
    total_cost_usd: float = 0.0

    today_requests: int = 0
    today_tokens: int = 0

    models: list[NamedUsage] = Field(default_factory=list)
    providers: list[NamedUsage] = Field(default_factory=list)

    requests_by_day: list[TimeSeriesPoint] = Field(default_factory=list)
    tokens_by_day: list[TimeSeriesPoint] = Field(default_factory=list)
    requests_by_hour: list[TimeSeriesPoint] = Field(default_factory=list)
    tokens_by_hour: list[TimeSeriesPoint] = Field(default_factory=list)


class HistoryPage(CamelModel):
    """Paginated slice of the recent history window."""

    total: int
    limit: int
    offset: int
    items: list[RequestEvent]
