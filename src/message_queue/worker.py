"""
Queue Worker

Runs the background half of problem definition analyses.
"""

import asyncio
from typing import Awaitable, Callable

from loguru import logger

from src.message_queue.base import AnalysisJob, JobQueue

JobHandler = Callable[[AnalysisJob], Awaitable[None]]


class QueueWorker:
    """
    Pulls jobs off a JobQueue and runs each through the handler as its own task.

    At most `max_concurrent` handlers run at once. A handler exception never
    reaches the poll loop: the job is marked failed and polling continues.

    Usage:
        >>> worker = QueueWorker(queue, orchestrator.process_job, max_concurrent=5)
        >>> task = asyncio.create_task(worker.start())
        >>> ...
        >>> await worker.stop()
    """

    def __init__(
        self,
        queue: JobQueue,
        handler: JobHandler,
        max_concurrent: int = 5,
        poll_interval: float = 1.0,
        shutdown_timeout: float = 30.0,
    ):
        self.queue = queue
        self.handler = handler
        self.max_concurrent = max_concurrent
        self.poll_interval = poll_interval
        self.shutdown_timeout = shutdown_timeout
        self._running = False
        self._in_flight: set[asyncio.Task] = set()
        self._slots = asyncio.Semaphore(max_concurrent)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Poll until stop() is called."""
        if self._running:
            logger.warning("Queue worker already running, ignoring second start")
            return

        self._running = True
        logger.info(
            f"🚀 Queue worker polling (max_concurrent={self.max_concurrent}, "
            f"poll_interval={self.poll_interval}s)"
        )

        try:
            while self._running:
                if not await self._dispatch_next():
                    await asyncio.sleep(self.poll_interval)
        except Exception as e:
            logger.opt(exception=e).error(f"Queue worker poll loop died: {e}")
            raise
        finally:
            logger.info("🛑 Queue worker no longer polling")

    async def stop(self) -> None:
        """
        Stop polling, give in-flight jobs `shutdown_timeout` seconds to
        finish, then cancel the rest.
        """
        if not self._running:
            return

        self._running = False
        if not self._in_flight:
            return

        logger.info(f"Draining {len(self._in_flight)} in-flight analyses...")
        pending = list(self._in_flight)
        try:
            await asyncio.wait_for(
                asyncio.gather(*pending, return_exceptions=True),
                timeout=self.shutdown_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Drain exceeded {self.shutdown_timeout}s, cancelling remaining analyses")
            for task in pending:
                task.cancel()

    async def _dispatch_next(self) -> bool:
        """
        Claim a slot, then start a task for the next job.

        Jobs are only dequeued once a slot is free so the rest stay pending.
        False when no job was started.
        """
        await self._slots.acquire()
        job = await self.queue.dequeue() if self._running else None
        if job is None:
            self._slots.release()
            return False

        task = asyncio.create_task(self._run(job))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return True

    async def _run(self, job: AnalysisJob) -> None:
        job_log = logger.bind(job_id=job.id, analysis_id=job.analysis_id, kind=job.kind)

        try:
            job_log.debug(f"Running job {job.id}")
            await self.handler(job)
        except Exception as e:
            job_log.bind(error=str(e)).opt(exception=e).error(
                f"❌ Job {job.id} for {job.analysis_id} failed: {e}"
            )
            await self.queue.fail(job.id, str(e))
        else:
            await self.queue.complete(job.id)
            job_log.info(f"✅ Job {job.id} for {job.analysis_id} done")
        finally:
            self._slots.release()
