"""
Bounded queue — fixed-capacity FIFO handoff with an explicit completion signal.

Wraps asyncio.Queue with the two things a producer/consumer pair needs on top of it:

  - offer(): blocking put with a short timeout, retried until it lands or the
    cycle is cancelled. A full queue slows the writer down; nothing is dropped
    and nothing buffers beyond `capacity`.
  - complete(): the writer's "no more items" signal. Readers drain what is left
    and then stop, including readers already waiting on an empty queue.

Cancellation is a threading.Event so a host thread can request it while the
cycle runs on an event loop elsewhere.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import AsyncIterator
from typing import Generic, TypeVar

import structlog

T = TypeVar("T")

log = structlog.get_logger()


class QueueCompleted(Exception):
    """Raised by get() once the queue is completed and fully drained."""


class BoundedQueue(Generic[T]):
    """Single-writer, single-reader bounded channel."""

    def __init__(self, capacity: int = 100, put_timeout: float = 0.05, name: str = "queue") -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._queue: asyncio.Queue[T] = asyncio.Queue(maxsize=capacity)
        self._completed = asyncio.Event()
        self._put_timeout = put_timeout
        self.name = name

    @property
    def capacity(self) -> int:
        return self._queue.maxsize

    @property
    def is_completed(self) -> bool:
        return self._completed.is_set()

    def qsize(self) -> int:
        return self._queue.qsize()

    def complete(self) -> None:
        """Mark the queue complete. Idempotent."""
        if not self._completed.is_set():
            self._completed.set()
            log.debug("queue.completed", queue=self.name, remaining=self._queue.qsize())

    async def offer(self, item: T, cancel: threading.Event | None = None) -> bool:
        """
        Put with backpressure: wait up to put_timeout, then retry.

        Returns False (item not added) only when cancellation is observed or
        the queue was already completed.
        """
        blocked = 0
        while True:
            if cancel is not None and cancel.is_set():
                log.debug("queue.offer_cancelled", queue=self.name, blocked=blocked)
                return False
            if self._completed.is_set():
                log.warning("queue.offer_after_complete", queue=self.name)
                return False
            try:
                await asyncio.wait_for(self._queue.put(item), timeout=self._put_timeout)
                return True
            except TimeoutError:
                blocked += 1
                log.debug("queue.offer_blocked", queue=self.name, attempt=blocked)

    async def get(self) -> T:
        """Next item in FIFO order; raises QueueCompleted once complete and empty."""
        while True:
            if not self._queue.empty():
                return self._queue.get_nowait()
            if self._completed.is_set():
                raise QueueCompleted(self.name)

            getter = asyncio.ensure_future(self._queue.get())
            completion = asyncio.ensure_future(self._completed.wait())
            try:
                await asyncio.wait({getter, completion}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                completion.cancel()
                if not getter.done():
                    getter.cancel()
            if getter.done() and not getter.cancelled():
                return getter.result()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._drain()

    async def _drain(self) -> AsyncIterator[T]:
        while True:
            try:
                item = await self.get()
            except QueueCompleted:
                return
            yield item
