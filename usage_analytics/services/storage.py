"""Crash-safe JSON document stores for history and aggregate analytics."""

import contextlib
import json
import os
from pathlib import Path
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from usage_analytics.core.logging import get_logger
from usage_analytics.models.events import HistoryRecord, RequestEvent
from usage_analytics.models.stats import Aggregate

logger = get_logger(__name__)
DocT = TypeVar("DocT", bound=BaseModel)

TEMP_SUFFIX = ".tmp"


class StorageError(Exception):
    """Base exception for storage operations."""


class StorageCorruptError(StorageError):
    """Raised when a stored document exists but cannot be parsed."""


class StorageIOError(StorageError):
    """Raised when a document cannot be written, replaced or deleted."""


def temp_path_for(path: Path) -> Path:
    return path.with_name(path.name + TEMP_SUFFIX)


def atomic_write_text(path: Path, content: str) -> None:
    """
    Write ``content`` to ``path`` so readers never see a partial document.

    The data goes to a sibling temporary file first, which is then renamed
    over the target. On failure the previous target content is untouched.

    Raises:
        StorageIOError: If the write or the replace step fails
    """
    tmp_path = temp_path_for(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8", newline="") as tmp_file:
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    except OSError as exc:
        with contextlib.suppress(OSError):
            tmp_path.unlink(missing_ok=True)
        raise StorageIOError(f"Failed to write {path}: {exc}") from exc


def atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    atomic_write_text(path, json.dumps(payload, ensure_ascii=True, indent=2))


class JsonDocumentStore(Generic[DocT]):
    """Load/save a single pydantic document as a JSON file."""

    document_cls: type[DocT]

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> DocT:
        """
        Load the document, substituting defaults on a missing or corrupt file.

        Never raises to the caller.
        """
        if not self.path.exists():
            return self.document_cls()

        try:
            return self._parse(self._read_raw())
        except StorageCorruptError as exc:
            logger.warning(
                "Stored document is corrupt, using defaults",
                extra={"file": str(self.path), "error": str(exc)},
            )
            return self.document_cls()

    def save(self, document: DocT) -> None:
        """
        Persist the whole document atomically.

        Raises:
            StorageIOError: If the document could not be written
        """
        atomic_write_json(self.path, document.model_dump(mode="json", by_alias=True))

    def _read_raw(self) -> dict[str, Any]:
        try:
            with self.path.open(encoding="utf-8") as document_file:
                raw = json.load(document_file)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageCorruptError(str(exc)) from exc

        if not isinstance(raw, dict):
            raise StorageCorruptError(f"Expected a JSON object, got {type(raw).__name__}")
        return raw

    def _parse(self, raw: dict[str, Any]) -> DocT:
        try:
            return self.document_cls.model_validate(raw)
        except ValidationError as exc:
            raise StorageCorruptError(str(exc)) from exc


class AggregateStore(JsonDocumentStore[Aggregate]):
    """Durable storage for the cumulative analytics aggregate."""

    document_cls = Aggregate

    def delete(self) -> None:
        """
        Remove the aggregate document so the next write starts fresh.

        Raises:
            StorageIOError: If the file exists but could not be removed
        """
        try:
            self.path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageIOError(f"Failed to delete {self.path}: {exc}") from exc


class HistoryStore(JsonDocumentStore[HistoryRecord]):
    """Durable storage for the bounded recent-event window."""

    document_cls = HistoryRecord

    def __init__(self, path: Path | str, limit: int | None = None) -> None:
        super().__init__(path)
        self.limit = limit

    def _parse(self, raw: dict[str, Any]) -> HistoryRecord:
        raw_requests = raw.get("requests") or []
        if not isinstance(raw_requests, list):
            raise StorageCorruptError("'requests' must be a list")

        events: list[RequestEvent] = []
        for raw_event in raw_requests:
            try:
                events.append(RequestEvent.model_validate(raw_event))
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed history record",
                    extra={"file": str(self.path), "error": str(exc)},
                )

        if self.limit is not None and len(events) > self.limit:
            events = events[-self.limit :]

        record = super()._parse({key: value for key, value in raw.items() if key != "requests"})
        record.requests = events
        return record
