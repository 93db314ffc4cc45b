"""
Bounded rebuild executor tests.
"""

import asyncio

import pytest

from reviewhub.services import RebuildExecutor


class TestRebuildExecutor:

    @pytest.mark.asyncio
    async def test_runs_submitted_jobs(self, rebuild_executor):
        done = []

        async def job():
            done.append(1)

        assert rebuild_executor.submit(job, name="one")
        assert rebuild_executor.submit(job, name="two")
        await rebuild_executor.join()

        assert done == [1, 1]
        assert rebuild_executor.stats.completed == 2

    @pytest.mark.asyncio
    async def test_rejects_when_queue_full(self):
        executor = RebuildExecutor(pool_size=1, queue_size=1)
        await executor.start()
        gate = asyncio.Event()

        async def blocked():
            await gate.wait()

        try:
            assert executor.submit(blocked, name="running")
            await asyncio.sleep(0)  # worker picks up the first job
            assert executor.submit(blocked, name="queued")
            assert executor.pending == 1
            assert not executor.submit(blocked, name="rejected")
            assert executor.stats.rejected == 1
        finally:
            gate.set()
            await executor.stop()

    @pytest.mark.asyncio
    async def test_failed_job_does_not_kill_worker(self, rebuild_executor):
        done = []

        async def failing():
            raise RuntimeError("store down")

        async def ok():
            done.append(True)

        rebuild_executor.submit(failing)
        rebuild_executor.submit(ok)
        await rebuild_executor.join()

        assert done == [True]
        assert rebuild_executor.stats.failed == 1
        assert rebuild_executor.is_running

    @pytest.mark.asyncio
    async def test_submit_before_start_is_rejected(self):
        executor = RebuildExecutor()

        async def job():
            pass

        assert not executor.submit(job)
        assert executor.stats.rejected == 1

    @pytest.mark.asyncio
    async def test_pool_size_bounds_concurrency(self):
        executor = RebuildExecutor(pool_size=2, queue_size=10)
        await executor.start()
        running = 0
        peak = 0

        async def job():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1

        for _ in range(6):
            executor.submit(job)
        await executor.stop()

        assert peak == 2
        assert executor.stats.completed == 6
        assert not executor.is_running

    @pytest.mark.asyncio
    async def test_stop_without_drain_runs_discard_callbacks(self):
        executor = RebuildExecutor(pool_size=1, queue_size=4)
        await executor.start()
        gate = asyncio.Event()
        ran = []
        discarded = []

        async def blocked():
            await gate.wait()

        async def job():
            ran.append(True)

        def on_discard(name):
            async def callback():
                discarded.append(name)
            return callback

        executor.submit(blocked, name="running")
        await asyncio.sleep(0)
        executor.submit(job, name="first", on_discard=on_discard("first"))
        executor.submit(job, name="second", on_discard=on_discard("second"))
        executor.submit(job, name="third")

        await executor.stop(drain=False)

        assert ran == []
        assert discarded == ["first", "second"]
        assert executor.stats.discarded == 3
        assert not executor.is_running

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            RebuildExecutor(pool_size=0)
        with pytest.raises(ValueError):
            RebuildExecutor(queue_size=0)
