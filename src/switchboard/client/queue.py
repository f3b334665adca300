"""Concurrency-limited FIFO queue for outbound work.

At most `concurrency` units of work run at once. Work waiting for a slot is
admitted strictly in submission order. A finishing unit frees its slot and
admits the next waiter in the same synchronous step, whatever its outcome.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from switchboard.exceptions import QueueClosedError
from switchboard.logging import get_logger

logger = get_logger(__name__)


@dataclass
class QueuedTask:
    """Work waiting in, or running from, the queue.

    Attributes:
        work: Zero-argument coroutine function.
        future: Completion handle returned to the submitter.
        enqueued_at: Monotonic time of submission.
    """

    work: Callable[[], Awaitable[Any]]
    future: asyncio.Future[Any]
    enqueued_at: float = field(default_factory=time.monotonic)


class RequestQueue:
    """Runs submitted coroutines with bounded concurrency.

    Example:
        ```python
        queue = RequestQueue(concurrency=3)
        result = await queue.submit(lambda: fetch("users.list"))
        queue.close()
        await queue.join()
        ```
    """

    def __init__(self, concurrency: int = 3) -> None:
        """Initialize the queue.

        Args:
            concurrency: Maximum units of work executing at once.

        Raises:
            ValueError: If concurrency is not a positive integer.
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._concurrency = concurrency
        self._waiting: deque[QueuedTask] = deque()
        self._running = 0
        self._closed = False
        self._tasks: set[asyncio.Task[None]] = set()
        self._idle: asyncio.Event | None = None

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def running(self) -> int:
        """Units of work currently executing."""
        return self._running

    @property
    def pending(self) -> int:
        """Units of work waiting for a slot."""
        return len(self._waiting)

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, work: Callable[[], Awaitable[Any]]) -> asyncio.Future[Any]:
        """Queue work and return a future for its outcome.

        Must be called from within a running event loop.

        Args:
            work: Zero-argument coroutine function.

        Returns:
            Future resolving to the work's result or raising its error.

        Raises:
            QueueClosedError: If the queue has been closed.
        """
        if self._closed:
            raise QueueClosedError()
        loop = asyncio.get_running_loop()
        task = QueuedTask(work=work, future=loop.create_future())
        self._waiting.append(task)
        self._admit()
        return task.future

    def close(self) -> None:
        """Stop accepting work. Queued and running work still completes."""
        if not self._closed:
            logger.debug("Request queue closed", pending=self.pending, running=self.running)
        self._closed = True

    async def join(self) -> None:
        """Wait until nothing is queued or running."""
        while self._running or self._waiting:
            if self._idle is None:
                self._idle = asyncio.Event()
            await self._idle.wait()

    def _admit(self) -> None:
        while self._running < self._concurrency and self._waiting:
            task = self._waiting.popleft()
            if task.future.done():
                # Submitter cancelled while the task was waiting
                continue
            self._running += 1
            runner = asyncio.ensure_future(self._run(task))
            self._tasks.add(runner)
            runner.add_done_callback(self._tasks.discard)
        if not self._running and not self._waiting and self._idle is not None:
            self._idle.set()
            self._idle = None

    async def _run(self, task: QueuedTask) -> None:
        try:
            result = await task.work()
        except asyncio.CancelledError:
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as e:
            if not task.future.done():
                task.future.set_exception(e)
        else:
            if not task.future.done():
                task.future.set_result(result)
        finally:
            self._running -= 1
            self._admit()
