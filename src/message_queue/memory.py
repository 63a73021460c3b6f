"""
In-Memory Job Queue

Simple in-memory queue for single-instance deployments and tests.
Uses asyncio primitives for safe concurrent access.
"""

import asyncio
import uuid
from collections import deque
from datetime import datetime, timezone
from typing import Optional

from src.message_queue.base import (
    JobQueue,
    AnalysisJob,
    QueueMetrics,
    JobStatus,
)
from src.utils.metrics import metrics

FAILED_HISTORY_SIZE = 100


class InMemoryQueue(JobQueue):
    """
    In-memory job queue implementation.

    Jobs live in process memory and are lost on restart; the analysis
    record stays in_progress in that case. Finished jobs are dropped and
    only counted, apart from the most recent failures kept for inspection.
    """

    def __init__(self, failed_history: int = FAILED_HISTORY_SIZE):
        self._jobs: dict[str, AnalysisJob] = {}
        self._pending_queue: asyncio.Queue = asyncio.Queue()
        self._processing: set[str] = set()
        self._completed_count = 0
        self._failed_count = 0
        self._recent_failures: deque[AnalysisJob] = deque(maxlen=failed_history)
        self._processing_times: deque[float] = deque(maxlen=1000)
        self._lock = asyncio.Lock()

    async def enqueue(self, job: AnalysisJob) -> str:
        async with self._lock:
            if not job.id:
                job.id = str(uuid.uuid4())

            self._jobs[job.id] = job
            await self._pending_queue.put(job.id)
            metrics.queue_pending.set(self._pending_queue.qsize())

            return job.id

    async def dequeue(self) -> Optional[AnalysisJob]:
        """
        Get next job to process.

        Waits briefly for a job so callers can poll in a loop.
        """
        try:
            job_id = await asyncio.wait_for(self._pending_queue.get(), timeout=0.1)
        except asyncio.TimeoutError:
            return None

        async with self._lock:
            job = self._jobs.get(job_id)
            if not job:
                return None

            job.status = JobStatus.PROCESSING
            self._processing.add(job_id)
            self._update_gauges()

            return job

    async def complete(self, job_id: str) -> None:
        async with self._lock:
            job = self._finish(job_id)
            if not job:
                return

            job.status = JobStatus.COMPLETED
            self._completed_count += 1
            self._update_gauges()

    async def fail(self, job_id: str, error: str) -> None:
        async with self._lock:
            job = self._finish(job_id)
            if not job:
                return

            job.status = JobStatus.FAILED
            job.error = error
            self._failed_count += 1
            self._recent_failures.append(job)
            self._update_gauges()

    async def get_metrics(self) -> QueueMetrics:
        async with self._lock:
            finished = self._completed_count + self._failed_count
            error_rate = (self._failed_count / finished * 100) if finished else 0.0
            avg_time = (
                sum(self._processing_times) / len(self._processing_times)
                if self._processing_times
                else 0.0
            )

            return QueueMetrics(
                pending=self._pending_queue.qsize(),
                processing=len(self._processing),
                completed=self._completed_count,
                failed=self._failed_count,
                avg_processing_time_ms=avg_time,
                error_rate=error_rate,
            )

    async def get_failed_jobs(self, limit: int = 100) -> list[AnalysisJob]:
        """Most recent failures, newest last."""
        async with self._lock:
            return list(self._recent_failures)[-limit:]

    def _finish(self, job_id: str) -> Optional[AnalysisJob]:
        job = self._jobs.pop(job_id, None)
        if job is None:
            return None

        self._processing.discard(job_id)
        elapsed = (datetime.now(timezone.utc) - job.created_at).total_seconds() * 1000
        self._processing_times.append(elapsed)
        return job

    def _update_gauges(self) -> None:
        metrics.queue_pending.set(self._pending_queue.qsize())
        metrics.queue_processing.set(len(self._processing))
        metrics.queue_failed.set(self._failed_count)
