"""Request event and recent-history models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from usage_analytics.core.config import DEFAULT_HISTORY_LIMIT

SUCCESS_STATUS_CEILING = 400


class CamelModel(BaseModel):
    """Base model persisted with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


class RequestEvent(CamelModel):
    """Completed proxied request emitted by the log tailer."""

    id: str = Field(default="", description="Event identifier")
    timestamp: int = Field(description="Completion time in epoch milliseconds")
    provider: str = Field(default="unknown", description="Provider that served the request")
    model: str = Field(default="unknown", description="Model requested")
    method: str = Field(default="", description="HTTP method")
    path: str = Field(default="", description="Request path")
    status: int = Field(description="HTTP status code")
    duration_ms: float = Field(default=0, ge=0, description="Request duration in milliseconds")
    tokens_in: int | None = Field(default=None, ge=0, description="Input token count")
    tokens_out: int | None = Field(default=None, ge=0, description="Output token count")

    @property
    def is_success(self) -> bool:
        return self.status < SUCCESS_STATUS_CEILING

    @property
    def total_tokens(self) -> int:
        return (self.tokens_in or 0) + (self.tokens_out or 0)

    @property
    def fingerprint(self) -> str:
        """Identity used to detect an event that was already recorded."""
        if self.id:
            return self.id
        return ":".join(
            [
                str(self.timestamp),
                self.method,
                self.path,
                str(self.status),
                self.provider,
                self.model,
            ]
        )


class HistoryRecord(CamelModel):
    """Bounded window of recent events plus legacy cumulative totals."""

    requests: list[RequestEvent] = Field(default_factory=list)
    total_tokens_in: int = Field(default=0, description="Legacy cumulative input tokens")
    total_tokens_out: int = Field(default=0, description="Legacy cumulative output tokens")
    total_cost_usd: float = Field(default=0.0, description="Legacy cumulative cost")

    def push(self, event: RequestEvent, limit: int = DEFAULT_HISTORY_LIMIT) -> None:
        """Append an event, dropping the oldest entries beyond ``limit``."""
        self.requests.append(event)
        overflow = len(self.requests) - limit
        if overflow > 0:
            del self.requests[:overflow]

    def clear(self) -> None:
        """Drop all events. Legacy totals are kept for display compatibility."""
        self.requests.clear()

    def fingerprints(self) -> set[str]:
        return {event.fingerprint for event in self.requests}
