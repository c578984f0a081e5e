"""
Unit tests for the bounded queue — FIFO, backpressure, completion and cancellation.
"""

from __future__ import annotations

import asyncio
import threading

import pytest

from sectigo_gateway.sync.queue import BoundedQueue, QueueCompleted


class TestBoundedQueue:
    def test_rejects_non_positive_capacity(self) -> None:
        with pytest.raises(ValueError):
            BoundedQueue(capacity=0)

    def test_drains_in_fifo_order_after_complete(self) -> None:
        """
        GIVEN three offered items and a completed queue
        WHEN iterated
        THEN items come out in insertion order and iteration stops.
        """

        async def scenario() -> list[int]:
            queue: BoundedQueue[int] = BoundedQueue(capacity=5)
            for i in (1, 2, 3):
                assert await queue.offer(i)
            queue.complete()
            return [item async for item in queue]

        assert asyncio.run(scenario()) == [1, 2, 3]

    def test_get_after_complete_and_empty_raises(self) -> None:
        async def scenario() -> None:
            queue: BoundedQueue[int] = BoundedQueue()
            queue.complete()
            with pytest.raises(QueueCompleted):
                await queue.get()

        asyncio.run(scenario())

    def test_waiting_reader_wakes_on_complete(self) -> None:
        """
        GIVEN a reader blocked on an empty queue
        WHEN the writer completes the queue
        THEN the reader's iteration ends with no items.
        """

        async def scenario() -> list[int]:
            queue: BoundedQueue[int] = BoundedQueue()

            async def read() -> list[int]:
                return [item async for item in queue]

            reader = asyncio.create_task(read())
            await asyncio.sleep(0.01)
            queue.complete()
            return await asyncio.wait_for(reader, timeout=1)

        assert asyncio.run(scenario()) == []

    def test_never_exceeds_capacity(self) -> None:
        """
        GIVEN capacity 2 and a writer offering 10 items against a slow reader
        WHEN both run
        THEN the queue never holds more than 2 items and nothing is lost.
        """

        async def scenario() -> tuple[list[int], int]:
            queue: BoundedQueue[int] = BoundedQueue(capacity=2, put_timeout=0.01)
            peak = 0

            async def write() -> None:
                for i in range(10):
                    await queue.offer(i)
                queue.complete()

            async def read() -> list[int]:
                nonlocal peak
                items = []
                async for item in queue:
                    peak = max(peak, queue.qsize() + 1)
                    items.append(item)
                    await asyncio.sleep(0.005)
                return items

            _, items = await asyncio.gather(write(), read())
            return items, peak

        items, peak = asyncio.run(scenario())
        assert items == list(range(10))
        assert peak <= 2

    def test_offer_on_full_queue_returns_false_when_cancelled(self) -> None:
        """
        GIVEN a full queue with no reader
        WHEN the cancellation event is set while offer() retries
        THEN offer() returns False instead of blocking forever.
        """

        async def scenario() -> bool:
            queue: BoundedQueue[int] = BoundedQueue(capacity=1, put_timeout=0.01)
            cancel = threading.Event()
            await queue.offer(0, cancel)
            pending = asyncio.create_task(queue.offer(1, cancel))
            await asyncio.sleep(0.05)
            cancel.set()
            return await asyncio.wait_for(pending, timeout=1)

        assert asyncio.run(scenario()) is False

    def test_offer_after_complete_returns_false(self) -> None:
        async def scenario() -> bool:
            queue: BoundedQueue[int] = BoundedQueue()
            queue.complete()
            return await queue.offer(1)

        assert asyncio.run(scenario()) is False

    def test_complete_is_idempotent(self) -> None:
        async def scenario() -> bool:
            queue: BoundedQueue[int] = BoundedQueue()
            queue.complete()
            queue.complete()
            return queue.is_completed

        assert asyncio.run(scenario()) is True
