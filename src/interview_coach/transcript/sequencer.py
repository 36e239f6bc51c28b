"""Per-session FIFO execution of transcript writes.

Each session id gets a single worker task that drains its queue one task at
a time; different session ids run concurrently. A failing task is logged and
its error is delivered to its caller only; the worker moves on to the next
task. Callers that stop waiting (cancelled request, disconnected client) do
not cancel the task: once enqueued it runs to completion. If the worker
itself is cancelled, its key is retired and every waiter is released.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
Task = Callable[[], Awaitable[Any]]


class TurnSequencer:
    """Serialization point for all writes that touch one session's transcript."""

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[tuple[Task, asyncio.Future]]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}

    async def enqueue(self, key: str, task: Callable[[], Awaitable[T]]) -> T:
        """Run *task* after every task previously enqueued for *key*."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = asyncio.create_task(self._drain(key, queue))
        queue.put_nowait((task, future))
        return await asyncio.shield(future)

    def pending(self, key: str) -> int:
        """Tasks queued for *key* that have not started yet."""
        queue = self._queues.get(key)
        return queue.qsize() if queue is not None else 0

    @property
    def active_keys(self) -> set[str]:
        return set(self._workers)

    async def _drain(self, key: str, queue: asyncio.Queue[tuple[Task, asyncio.Future]]) -> None:
        current: asyncio.Future | None = None
        try:
            while True:
                try:
                    task, current = queue.get_nowait()
                except asyncio.QueueEmpty:
                    # No await between the empty check and removal, so no task can
                    # be enqueued onto a queue that is being retired.
                    return
                try:
                    result = await task()
                except Exception as exc:
                    logger.warning("Sequenced task for %s failed: %s", key, exc)
                    if not current.done():
                        current.set_exception(exc)
                else:
                    if not current.done():
                        current.set_result(result)
                current = None
        finally:
            if self._queues.get(key) is queue:
                del self._queues[key]
                del self._workers[key]
            # Worker torn down mid-queue: remaining waiters see a cancellation.
            if current is not None and not current.done():
                current.cancel()
            while not queue.empty():
                _, waiting = queue.get_nowait()
                waiting.cancel()

    async def drain(self) -> None:
        """Wait until every queued task has finished."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
