"""Background ingestion of completed request events."""

import asyncio

from usage_analytics.core.config import DEFAULT_HISTORY_LIMIT
from usage_analytics.core.logging import event_id_context, get_logger
from usage_analytics.models.events import HistoryRecord, RequestEvent
from usage_analytics.models.stats import Aggregate
from usage_analytics.services.aggregator import StatsAggregator
from usage_analytics.services.storage import AggregateStore, HistoryStore, StorageIOError

logger = get_logger(__name__)


class UsageRecorder:
    """
    Single writer for the aggregate and history documents.

    Events are queued by producers and folded one at a time by a background
    worker. Every fold is followed by a save of both documents; a failed save
    is logged and the in-memory state stays authoritative for the session.
    Maintenance operations share the same lock and surface storage failures
    to their caller.
    """

    def __init__(
        self,
        aggregate_store: AggregateStore,
        history_store: HistoryStore,
        aggregator: StatsAggregator | None = None,
        *,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
        queue_size: int = 0,
    ) -> None:
        self._aggregate_store = aggregate_store
        self._history_store = history_store
        self._aggregator = aggregator or StatsAggregator()
        self._history_limit = history_limit

        self._aggregate: Aggregate | None = None
        self._history: HistoryRecord | None = None

        self._queue: asyncio.Queue[RequestEvent] = asyncio.Queue(maxsize=queue_size)
        self._lock = asyncio.Lock()
        self._worker: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def pending(self) -> int:
        """Number of queued events not yet folded."""
        return self._queue.qsize()

    async def start(self) -> None:
        """Start the ingestion worker."""
        if self._running:
            return

        self._running = True
        self._worker = asyncio.create_task(self._worker_loop(), name="usage-ingest")
        logger.info("Usage recorder started")

    async def shutdown(self) -> None:
        """Stop the worker, folding anything still queued."""
        if not self._running:
            return

        # The worker exits on its next poll; an event it already dequeued is
        # folded before it returns.
        self._running = False
        if self._worker is not None:
            await asyncio.gather(self._worker, return_exceptions=True)
            self._worker = None

        drained = 0
        while not self._queue.empty():
            event = self._queue.get_nowait()
            await self.record(event)
            self._queue.task_done()
            drained += 1

        logger.info("Usage recorder stopped", extra={"drained": drained})

    async def submit(self, event: RequestEvent) -> None:
        """Queue an event for background ingestion."""
        await self._queue.put(event)

    async def join(self) -> None:
        """Wait until every queued event has been folded."""
        await self._queue.join()

    def seed(self, aggregate: Aggregate) -> None:
        """Fold future events into ``aggregate`` instead of the stored document."""
        self._aggregate = aggregate.model_copy(deep=True)

    async def record(self, event: RequestEvent) -> bool:
        """
        Fold one event into both documents and persist them.

        Returns:
            False if the event was already recorded, True otherwise
        """
        async with self._lock:
            aggregate, history = self._state()
            token = event_id_context.set(event.fingerprint)
            try:
                if event.fingerprint in history.fingerprints():
                    logger.debug("Skipping duplicate event")
                    return False

                self._aggregate = self._aggregator.apply(event, aggregate)
                history.push(event, self._history_limit)

                self._persist_quietly(self._aggregate_store, self._aggregate)
                self._persist_quietly(self._history_store, history)
                return True
            finally:
                event_id_context.reset(token)

    async def clear_history(self) -> None:
        """
        Empty the recent history window. The aggregate is left untouched.

        Raises:
            StorageIOError: If the cleared history could not be written
        """
        async with self._lock:
            _, history = self._state()
            cleared = history.model_copy(deep=True)
            cleared.clear()
            self._history_store.save(cleared)
            self._history = cleared

        logger.info("Usage history cleared")

    async def reset_analytics(self) -> None:
        """
        Delete the aggregate so the next event starts a fresh one.

        History is left untouched.

        Raises:
            StorageIOError: If the aggregate file could not be removed
        """
        async with self._lock:
            self._aggregate_store.delete()
            self._aggregate = None

        logger.info("Usage analytics reset")

    async def _worker_loop(self) -> None:
        while self._running:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=1.0)
            except TimeoutError:
                continue
            except asyncio.CancelledError:
                break

            try:
                await self.record(event)
            except Exception as exc:  # noqa: BLE001
                logger.error(
                    "Failed to record usage event",
                    extra={"event_id": event.fingerprint, "error": str(exc)},
                    exc_info=True,
                )
            finally:
                self._queue.task_done()

    def _state(self) -> tuple[Aggregate, HistoryRecord]:
        if self._aggregate is None:
            self._aggregate = self._aggregate_store.load()
        if self._history is None:
            self._history = self._history_store.load()
        return self._aggregate, self._history

    @staticmethod
    def _persist_quietly(
        store: AggregateStore | HistoryStore, document: Aggregate | HistoryRecord
    ) -> None:
        try:
            store.save(document)  # type: ignore[arg-type]
        except StorageIOError as exc:
            logger.error(
                "Failed to persist usage document",
                extra={"file": str(store.path), "error": str(exc)},
            )
