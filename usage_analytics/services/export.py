"""Export helpers for the recent history window and the aggregate."""

import csv
import io
import json
from pathlib import Path
from typing import Any

from usage_analytics.models.events import HistoryRecord
from usage_analytics.models.stats import Aggregate
from usage_analytics.services.storage import AggregateStore, HistoryStore, atomic_write_text

HISTORY_COLUMNS = (
    "id",
    "timestamp",
    "provider",
    "model",
    "method",
    "path",
    "status",
    "durationMs",
    "tokensIn",
    "tokensOut",
)


def history_to_csv(history: HistoryRecord) -> str:
    """Render history events as CSV in chronological order."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=HISTORY_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for event in history.requests:
        row = event.model_dump(mode="json", by_alias=True)
        writer.writerow({key: "" if row[key] is None else row[key] for key in HISTORY_COLUMNS})
    return buffer.getvalue()


def aggregate_to_document(aggregate: Aggregate) -> dict[str, Any]:
    return aggregate.model_dump(mode="json", by_alias=True)


class UsageExporter:
    """Exports durable analytics state for the presentation layer."""

    def __init__(self, aggregate_store: AggregateStore, history_store: HistoryStore) -> None:
        self._aggregate_store = aggregate_store
        self._history_store = history_store

    def export_history_csv(self) -> str:
        return history_to_csv(self._history_store.load())

    def export_aggregate(self) -> dict[str, Any]:
        return aggregate_to_document(self._aggregate_store.load())

    def write_history_csv(self, destination: Path | str) -> Path:
        """
        Write the history CSV to ``destination``.

        Raises:
            StorageIOError: If the file could not be written
        """
        path = Path(destination)
        atomic_write_text(path, self.export_history_csv())
        return path

    def write_aggregate(self, destination: Path | str) -> Path:
        """
        Write the aggregate JSON document to ``destination``.

        Raises:
            StorageIOError: If the file could not be written
        """
        path = Path(destination)
        atomic_write_text(path, json.dumps(self.export_aggregate(), indent=2))
        return path
