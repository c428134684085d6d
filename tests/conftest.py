"""Pytest configuration and fixtures."""

from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from itertools import count
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from usage_analytics.core.config import StorageConfig
from usage_analytics.main import create_app
from usage_analytics.main import settings as app_settings
from usage_analytics.models.events import RequestEvent
from usage_analytics.services.aggregator import StatsAggregator
from usage_analytics.services.analytics import UsageAnalytics
from usage_analytics.services.storage import AggregateStore, HistoryStore

FIXED_NOW = datetime(2026, 3, 14, 12, 0, 0)
EventFactory = Callable[..., RequestEvent]


def epoch_ms(moment: datetime) -> int:
    """Epoch milliseconds for a datetime (naive values are treated as UTC)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return int(moment.timestamp() * 1000)


@pytest.fixture
def make_event() -> EventFactory:
    """Build request events with unique IDs and overridable fields."""
    sequence = count(1)

    def factory(**overrides: Any) -> RequestEvent:
        number = next(sequence)
        fields: dict[str, Any] = {
            "id": f"evt-{number}",
            "timestamp": epoch_ms(FIXED_NOW),
            "provider": "claude",
            "model": "claude-sonnet",
            "method": "POST",
            "path": "/v1/messages",
            "status": 200,
            "duration_ms": 120,
            "tokens_in": 10,
            "tokens_out": 5,
        }
        fields.update(overrides)
        return RequestEvent(**fields)

    return factory


@pytest.fixture
def fixed_aggregator() -> StatsAggregator:
    """Aggregator whose local clock is pinned to FIXED_NOW."""
    return StatsAggregator(clock=lambda: FIXED_NOW)


@pytest.fixture
def storage_config(tmp_path: Path) -> StorageConfig:
    return StorageConfig(config_dir=str(tmp_path / "analytics"))


@pytest.fixture
def aggregate_store(storage_config: StorageConfig) -> AggregateStore:
    return AggregateStore(storage_config.aggregate_path)


@pytest.fixture
def history_store(storage_config: StorageConfig) -> HistoryStore:
    return HistoryStore(storage_config.history_path, limit=storage_config.history_limit)


@pytest.fixture
def analytics(storage_config: StorageConfig, fixed_aggregator: StatsAggregator) -> UsageAnalytics:
    return UsageAnalytics.from_config(storage_config, aggregator=fixed_aggregator)


@pytest.fixture
def analytics_client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[TestClient]:
    """Create test client with isolated analytics storage."""
    monkeypatch.setattr(
        app_settings, "storage", StorageConfig(config_dir=str(tmp_path / "client-analytics"))
    )

    app = create_app()
    with TestClient(app) as client:
        yield client
