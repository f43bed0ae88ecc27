"""Access-log events and the background worker that persists them."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from wikisync.db.connection import utc_now
from wikisync.sync.queue import BoundedWorkQueue

logger = logging.getLogger(__name__)


@dataclass
class AccessLogEvent:
    """One served request, waiting to be persisted."""

    path: str
    method: str
    status_code: int
    response_time_ms: int
    resource_type: str = ""
    resource_id: str = ""
    user_id: str = ""
    ip_address: str = ""
    user_agent: str = ""
    accessed_at: datetime = field(default_factory=utc_now)


class AccessLogWorker:
    """Drains a BoundedWorkQueue into a store on an asyncio task.

    Delivery is at-most-once: a persistence failure for one event is logged
    and the event is dropped.
    """

    def __init__(
        self,
        queue: BoundedWorkQueue[AccessLogEvent],
        store,
        shutdown_grace_secs: float = 30.0,
        error_backoff_secs: float = 5.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Args:
            queue: Queue to drain.
            store: Object with a ``record(event)`` method.
            shutdown_grace_secs: How long ``stop()`` keeps draining.
            error_backoff_secs: Pause after an unexpected loop error.
        """
        self.queue = queue
        self.store = store
        self.shutdown_grace_secs = shutdown_grace_secs
        self.error_backoff_secs = error_backoff_secs
        self.persisted = 0
        self.failed = 0
        self.discarded = 0
        self._sleep = sleep
        self._cancel = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the consumer task."""
        if self.running:
            return
        self._cancel.clear()
        self._task = asyncio.create_task(self._run(), name="access-log-worker")
        logger.info("Access log worker started")

    def _persist(self, event: AccessLogEvent) -> None:
        try:
            self.store.record(event)
            self.persisted += 1
        except Exception as e:
            self.failed += 1
            logger.error(f"Failed to persist access log for {event.method} {event.path}: {e}")

    async def _run(self) -> None:
        while not self._cancel.is_set():
            try:
                event = await self.queue.dequeue(self._cancel)
                if event is None:
                    break
                self._persist(event)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Access log worker error")
                await self._sleep(self.error_backoff_secs)

    async def _drain(self) -> None:
        while (event := self.queue.get_nowait()) is not None:
            self._persist(event)
            # Yield so a grace-period timeout can interrupt a long drain
            await asyncio.sleep(0)

    async def stop(self) -> None:
        """Stop consuming and drain what is left within the grace period.

        Events still queued after the grace period are discarded.
        """
        self._cancel.set()
        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        try:
            await asyncio.wait_for(self._drain(), timeout=self.shutdown_grace_secs)
        except asyncio.TimeoutError:
            pass

        remaining = self.queue.size()
        while self.queue.get_nowait() is not None:
            self.discarded += 1
        if remaining:
            logger.warning(f"Discarded {remaining} access log event(s) at shutdown")
        logger.info(
            f"Access log worker stopped ({self.persisted} persisted, {self.failed} failed)"
        )
