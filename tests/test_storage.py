"""Tests for the atomic JSON document stores."""

import json
import logging
import os

import pytest
from pytest_mock import MockerFixture

from usage_analytics.models.events import HistoryRecord
from usage_analytics.models.stats import Aggregate, NamedCounterBucket, TimeSeriesPoint
from usage_analytics.services.storage import (
    AggregateStore,
    HistoryStore,
    StorageIOError,
    atomic_write_json,
    temp_path_for,
)


def _sample_aggregate() -> Aggregate:
    return Aggregate(
        created_at=1_700_000_000_000,
        total_requests=3,
        total_success_count=2,
        total_failure_count=1,
        total_tokens_in=30,
        total_tokens_out=15,
        total_cost_usd=0.25,
        requests_by_day=[TimeSeriesPoint(label="2026-03-14", value=3)],
        tokens_by_day=[TimeSeriesPoint(label="2026-03-14", value=45)],
        model_stats={"claude-sonnet": NamedCounterBucket(requests=3, success_count=2, tokens=45)},
        provider_stats={"claude": NamedCounterBucket(requests=3, success_count=2, tokens=45)},
    )


class TestAtomicWrite:
    """Tests for the shared temp-then-replace primitive."""

    def test_writes_target_and_removes_temp(self, tmp_path) -> None:
        target = tmp_path / "nested" / "doc.json"

        atomic_write_json(target, {"a": 1})

        assert json.loads(target.read_text(encoding="utf-8")) == {"a": 1}
        assert not temp_path_for(target).exists()

    def test_replace_failure_keeps_previous_document(self, tmp_path, mocker: MockerFixture) -> None:
        target = tmp_path / "doc.json"
        atomic_write_json(target, {"version": 1})

        mocker.patch(
            "usage_analytics.services.storage.os.replace", side_effect=OSError("disk full")
        )
        with pytest.raises(StorageIOError, match="disk full"):
            atomic_write_json(target, {"version": 2})

        assert json.loads(target.read_text(encoding="utf-8")) == {"version": 1}

    def test_stray_temp_file_is_overwritten(self, tmp_path) -> None:
        target = tmp_path / "doc.json"
        temp_path_for(target).write_text("{half a docu", encoding="utf-8")

        atomic_write_json(target, {"ok": True})

        assert json.loads(target.read_text(encoding="utf-8")) == {"ok": True}
        assert not temp_path_for(target).exists()

    @pytest.mark.skipif(os.name == "nt" or os.geteuid() == 0, reason="needs POSIX non-root")
    def test_unwritable_directory_raises(self, tmp_path) -> None:
        locked = tmp_path / "locked"
        locked.mkdir()
        locked.chmod(0o500)
        try:
            with pytest.raises(StorageIOError):
                atomic_write_json(locked / "doc.json", {"a": 1})
        finally:
            locked.chmod(0o700)


class TestAggregateStore:
    """Tests for aggregate persistence."""

    def test_missing_file_loads_defaults(self, aggregate_store: AggregateStore) -> None:
        first = aggregate_store.load()
        second = aggregate_store.load()

        assert first.total_requests == 0
        assert first == second
        assert first.created_at == 0
        assert not aggregate_store.exists()

    def test_round_trip(self, aggregate_store: AggregateStore) -> None:
        aggregate = _sample_aggregate()

        aggregate_store.save(aggregate)

        assert aggregate_store.load() == aggregate

    def test_uses_camel_case_field_names(self, aggregate_store: AggregateStore) -> None:
        aggregate_store.save(_sample_aggregate())

        raw = json.loads(aggregate_store.path.read_text(encoding="utf-8"))
        assert raw["totalRequests"] == 3
        assert raw["totalSuccessCount"] == 2
        assert raw["totalCostUsd"] == 0.25
        assert raw["requestsByDay"] == [{"label": "2026-03-14", "value": 3}]
        assert raw["modelStats"]["claude-sonnet"] == {
            "requests": 3,
            "successCount": 2,
            "tokens": 45,
        }

    def test_missing_optional_fields_are_defaulted(self, aggregate_store: AggregateStore) -> None:
        aggregate_store.path.parent.mkdir(parents=True, exist_ok=True)
        aggregate_store.path.write_text(
            json.dumps({"createdAt": 5, "totalRequests": 2, "totalSuccessCount": 2}),
            encoding="utf-8",
        )

        loaded = aggregate_store.load()

        assert loaded.created_at == 5
        assert loaded.total_requests == 2
        assert loaded.total_failure_count == 0
        assert loaded.requests_by_day == []
        assert loaded.provider_stats == {}

    @pytest.mark.parametrize("content", ["{not json", "[1, 2, 3]", '{"totalRequests": "many"}'])
    def test_corrupt_file_loads_defaults(
        self, aggregate_store: AggregateStore, caplog: pytest.LogCaptureFixture, content: str
    ) -> None:
        aggregate_store.path.parent.mkdir(parents=True, exist_ok=True)
        aggregate_store.path.write_text(content, encoding="utf-8")

        with caplog.at_level(logging.WARNING):
            loaded = aggregate_store.load()

        assert loaded.total_requests == 0
        assert "corrupt" in caplog.text

    def test_delete(self, aggregate_store: AggregateStore) -> None:
        aggregate_store.save(_sample_aggregate())

        aggregate_store.delete()
        aggregate_store.delete()

        assert not aggregate_store.exists()


class TestHistoryStore:
    """Tests for recent history persistence."""

    def test_round_trip(self, history_store: HistoryStore, make_event) -> None:
        history = HistoryRecord(total_tokens_in=100, total_tokens_out=50, total_cost_usd=1.5)
        history.push(make_event())
        history.push(make_event(status=502, tokens_in=None, tokens_out=None))

        history_store.save(history)

        assert history_store.load() == history

    def test_legacy_document_fields(self, history_store: HistoryStore) -> None:
        history_store.path.parent.mkdir(parents=True, exist_ok=True)
        history_store.path.write_text(
            json.dumps(
                {
                    "requests": [
                        {
                            "id": "a",
                            "timestamp": 1_700_000_000_000,
                            "provider": "gemini",
                            "model": "gemini-pro",
                            "method": "POST",
                            "path": "/v1/chat",
                            "status": 200,
                            "durationMs": 42,
                            "tokensIn": 3,
                            "tokensOut": 4,
                        }
                    ],
                    "totalTokensIn": 900,
                    "totalTokensOut": 800,
                    "totalCostUsd": 2.5,
                }
            ),
            encoding="utf-8",
        )

        loaded = history_store.load()

        assert len(loaded.requests) == 1
        assert loaded.requests[0].duration_ms == 42
        assert loaded.requests[0].tokens_out == 4
        assert loaded.total_tokens_in == 900
        assert loaded.total_cost_usd == 2.5

    def test_malformed_entries_are_skipped(
        self, history_store: HistoryStore, caplog: pytest.LogCaptureFixture
    ) -> None:
        history_store.path.parent.mkdir(parents=True, exist_ok=True)
        history_store.path.write_text(
            json.dumps(
                {
                    "requests": [
                        {"id": "ok", "timestamp": 1, "status": 200},
                        {"id": "broken", "status": "not-a-status"},
                    ],
                    "totalTokensIn": 7,
                }
            ),
            encoding="utf-8",
        )

        with caplog.at_level(logging.WARNING):
            loaded = history_store.load()

        assert [event.id for event in loaded.requests] == ["ok"]
        assert loaded.total_tokens_in == 7
        assert "Skipping malformed history record" in caplog.text

    def test_load_trims_to_limit(self, tmp_path, make_event) -> None:
        store = HistoryStore(tmp_path / "history.json", limit=3)
        history = HistoryRecord(requests=[make_event() for _ in range(5)])
        store.save(history)

        loaded = store.load()

        assert [event.id for event in loaded.requests] == ["evt-3", "evt-4", "evt-5"]
