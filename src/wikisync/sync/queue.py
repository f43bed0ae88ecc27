"""Bounded, non-blocking work queue with a single cancellable consumer."""

import asyncio
import logging
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OverflowPolicy(str, Enum):
    """What to do when an item arrives at a full queue."""

    DROP_OLDEST = "drop_oldest"
    REJECT = "reject"


class BoundedWorkQueue(Generic[T]):
    """In-memory FIFO whose producers never wait.

    Attributes:
        capacity: Maximum number of queued items.
        policy: Overflow policy applied when the queue is full.
        dropped: Items evicted under ``drop_oldest``.
        rejected: Items refused under ``reject``.
    """

    def __init__(self, capacity: int = 10000, policy: OverflowPolicy | str = OverflowPolicy.DROP_OLDEST):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.policy = OverflowPolicy(policy)
        self.dropped = 0
        self.rejected = 0
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)

    def enqueue(self, item: T) -> bool:
        """Add an item without blocking.

        Returns:
            False if the item was refused, True otherwise.
        """
        if self._queue.full():
            if self.policy is OverflowPolicy.REJECT:
                self.rejected += 1
                return False
            self._queue.get_nowait()
            self.dropped += 1
        self._queue.put_nowait(item)
        return True

    async def dequeue(self, cancel: asyncio.Event) -> T | None:
        """Wait for the next item.

        Returns:
            The item, or None once ``cancel`` is set.
        """
        if not self._queue.empty():
            return self._queue.get_nowait()
        if cancel.is_set():
            return None

        get_task = asyncio.ensure_future(self._queue.get())
        cancel_task = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({get_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            cancel_task.cancel()
            if not get_task.done():
                get_task.cancel()

        if get_task.done() and not get_task.cancelled():
            return get_task.result()
        return None

    def get_nowait(self) -> T | None:
        """Take the next item if one is queued."""
        if self._queue.empty():
            return None
        return self._queue.get_nowait()

    def size(self) -> int:
        """Approximate number of queued items."""
        return self._queue.qsize()
