"""Tests for the concurrency-limited request queue."""

from __future__ import annotations

import asyncio

import pytest

from switchboard.client.queue import RequestQueue
from switchboard.exceptions import QueueClosedError


class ConcurrencyProbe:
    """Tracks how many units of work run at once."""

    def __init__(self) -> None:
        self.active = 0
        self.peak = 0
        self.started: list[int] = []

    def work(self, label: int, delay: float = 0.01, fail: bool = False):
        async def run() -> int:
            self.active += 1
            self.peak = max(self.peak, self.active)
            self.started.append(label)
            try:
                await asyncio.sleep(delay)
                if fail:
                    raise RuntimeError(f"task {label} failed")
                return label
            finally:
                self.active -= 1

        return run


class TestRequestQueue:
    """Tests for RequestQueue."""

    def test_rejects_non_positive_concurrency(self):
        """Concurrency must be at least 1."""
        with pytest.raises(ValueError):
            RequestQueue(concurrency=0)

    @pytest.mark.asyncio
    async def test_returns_work_result(self):
        """The handle resolves with the work's result."""
        queue = RequestQueue(concurrency=2)

        async def work() -> str:
            return "done"

        assert await queue.submit(work) == "done"

    @pytest.mark.asyncio
    async def test_propagates_work_error(self):
        """The handle raises the work's error."""
        queue = RequestQueue(concurrency=2)

        async def work() -> None:
            raise ValueError("broken")

        with pytest.raises(ValueError, match="broken"):
            await queue.submit(work)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [1, 3, 5])
    async def test_never_exceeds_concurrency(self, concurrency: int):
        """A burst of submissions never runs more than `concurrency` at once."""
        queue = RequestQueue(concurrency=concurrency)
        probe = ConcurrencyProbe()

        handles = [queue.submit(probe.work(i)) for i in range(20)]
        results = await asyncio.gather(*handles)

        assert results == list(range(20))
        assert probe.peak == concurrency

    @pytest.mark.asyncio
    async def test_failing_work_does_not_stall_queue(self):
        """Failures free their slot; the bound still holds."""
        queue = RequestQueue(concurrency=2)
        probe = ConcurrencyProbe()

        handles = [
            queue.submit(probe.work(i, delay=0 if i % 2 else 0.01, fail=i % 2 == 1))
            for i in range(10)
        ]
        results = await asyncio.gather(*handles, return_exceptions=True)

        assert [isinstance(r, RuntimeError) for r in results] == [i % 2 == 1 for i in range(10)]
        assert probe.peak <= 2
        assert queue.running == 0
        assert queue.pending == 0

    @pytest.mark.asyncio
    async def test_admits_in_submission_order(self):
        """Waiting tasks start in the order they were submitted."""
        queue = RequestQueue(concurrency=2)
        probe = ConcurrencyProbe()

        handles = [queue.submit(probe.work(i, delay=0.005 * (5 - i % 5))) for i in range(10)]
        await asyncio.gather(*handles)

        assert probe.started == list(range(10))

    @pytest.mark.asyncio
    async def test_counters(self):
        """running and pending reflect the queue state."""
        queue = RequestQueue(concurrency=1)
        release = asyncio.Event()

        async def blocked() -> None:
            await release.wait()

        first = queue.submit(blocked)
        second = queue.submit(blocked)
        await asyncio.sleep(0)

        assert queue.running == 1
        assert queue.pending == 1

        release.set()
        await asyncio.gather(first, second)
        assert queue.running == 0
        assert queue.pending == 0

    @pytest.mark.asyncio
    async def test_submit_after_close_raises(self):
        """A closed queue rejects new work."""
        queue = RequestQueue()
        queue.close()

        async def work() -> None:
            return None

        assert queue.closed
        with pytest.raises(QueueClosedError):
            queue.submit(work)

    @pytest.mark.asyncio
    async def test_close_lets_queued_work_finish(self):
        """Closing stops admissions of new work, not work already queued."""
        queue = RequestQueue(concurrency=1)
        probe = ConcurrencyProbe()

        handles = [queue.submit(probe.work(i)) for i in range(3)]
        queue.close()

        assert await asyncio.gather(*handles) == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_join_waits_for_idle(self):
        """join() returns once everything has finished."""
        queue = RequestQueue(concurrency=2)
        probe = ConcurrencyProbe()

        for i in range(5):
            queue.submit(probe.work(i))
        await queue.join()

        assert sorted(probe.started) == [0, 1, 2, 3, 4]
        assert queue.running == 0

    @pytest.mark.asyncio
    async def test_join_on_empty_queue_returns(self):
        """join() on an idle queue returns immediately."""
        await asyncio.wait_for(RequestQueue().join(), timeout=1)

    @pytest.mark.asyncio
    async def test_cancelled_waiting_handle_is_skipped(self):
        """A handle cancelled before admission never runs."""
        queue = RequestQueue(concurrency=1)
        release = asyncio.Event()
        ran: list[str] = []

        async def blocked() -> None:
            await release.wait()

        async def skipped() -> None:
            ran.append("skipped")

        first = queue.submit(blocked)
        second = queue.submit(skipped)
        second.cancel()
        release.set()
        await first
        await queue.join()

        assert ran == []
