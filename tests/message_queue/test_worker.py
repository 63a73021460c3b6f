"""
Tests for QueueWorker.
"""
import asyncio

import pytest

from src.message_queue import AnalysisJob, InMemoryQueue, QueueWorker
from src.models.analysis import AnalysisKind


def make_job(job_id: str) -> AnalysisJob:
    return AnalysisJob(
        id=job_id,
        analysis_id=f"pd_1700000000000_{job_id}",
        kind=AnalysisKind.PROBLEM_DEFINITION,
        business_idea="football socks",
    )


async def wait_until(predicate, timeout: float = 2.0) -> None:
    async def _poll():
        while not await predicate():
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.mark.asyncio
class TestQueueWorker:

    @pytest.fixture
    async def queue(self):
        return InMemoryQueue()

    async def test_worker_processes_job(self, queue):
        handled = asyncio.Event()
        seen = []

        async def handler(job):
            seen.append(job.analysis_id)
            handled.set()

        worker = QueueWorker(queue=queue, handler=handler, poll_interval=0.01)
        await queue.enqueue(make_job("a1"))
        worker_task = asyncio.create_task(worker.start())

        try:
            await asyncio.wait_for(handled.wait(), timeout=2.0)

            async def completed():
                return (await queue.get_metrics()).completed == 1

            await wait_until(completed)
            assert seen == ["pd_1700000000000_a1"]
        finally:
            await worker.stop()
            await asyncio.wait_for(worker_task, timeout=2.0)

    async def test_handler_error_marks_job_failed(self, queue):
        async def handler(job):
            raise RuntimeError("pipeline exploded")

        worker = QueueWorker(queue=queue, handler=handler, poll_interval=0.01)
        await queue.enqueue(make_job("b1"))
        worker_task = asyncio.create_task(worker.start())

        try:
            async def failed():
                return (await queue.get_metrics()).failed == 1

            await wait_until(failed)
            [job] = await queue.get_failed_jobs()
            assert job.error == "pipeline exploded"
            assert worker.is_running
        finally:
            await worker.stop()
            await asyncio.wait_for(worker_task, timeout=2.0)

    async def test_concurrency_is_bounded(self, queue):
        running = 0
        peak = 0
        release = asyncio.Event()

        async def handler(job):
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await release.wait()
            running -= 1

        worker = QueueWorker(queue=queue, handler=handler, max_concurrent=2, poll_interval=0.01)
        for i in range(4):
            await queue.enqueue(make_job(f"c{i}"))
        worker_task = asyncio.create_task(worker.start())

        try:
            async def two_claimed():
                return (await queue.get_metrics()).processing == 2

            await wait_until(two_claimed)
            await asyncio.sleep(0.05)

            # Jobs beyond the slot count stay pending instead of being claimed
            stats = await queue.get_metrics()
            assert (stats.processing, stats.pending) == (2, 2)
            assert peak == 2
            release.set()

            async def all_done():
                return (await queue.get_metrics()).completed == 4

            await wait_until(all_done)
        finally:
            release.set()
            await worker.stop()
            await asyncio.wait_for(worker_task, timeout=2.0)

    async def test_stop_waits_for_in_flight_jobs(self, queue):
        finished = []

        async def handler(job):
            await asyncio.sleep(0.1)
            finished.append(job.id)

        worker = QueueWorker(queue=queue, handler=handler, poll_interval=0.01)
        await queue.enqueue(make_job("d1"))
        worker_task = asyncio.create_task(worker.start())

        async def picked_up():
            return (await queue.get_metrics()).processing == 1

        await wait_until(picked_up)
        await worker.stop()
        await asyncio.wait_for(worker_task, timeout=2.0)

        assert finished == ["d1"]
        assert not worker.is_running
