"""
Base Queue Interface

Abstract interface for the background analysis job queue.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from src.models.analysis import AnalysisKind


class JobStatus(str, Enum):
    """Job processing status."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class AnalysisJob(BaseModel):
    """
    The background half of an analysis.

    Attributes:
        id: Unique job identifier
        analysis_id: Record the job completes
        kind: Which pipeline to run
        business_idea: Validated, trimmed idea text
        status: Current processing status
        created_at: Timestamp when the job was queued
        error: Error message if the job failed
    """
    model_config = ConfigDict(use_enum_values=True)

    id: str = ""
    analysis_id: str
    kind: AnalysisKind
    business_idea: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    error: Optional[str] = None


class QueueMetrics(BaseModel):
    """
    Queue performance metrics.

    Attributes:
        pending: Jobs awaiting processing
        processing: Jobs currently running
        completed: Total successful jobs
        failed: Total failed jobs
        avg_processing_time_ms: Average enqueue-to-done duration
        error_rate: Percentage of finished jobs that failed
    """
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    avg_processing_time_ms: float = 0.0
    error_rate: float = 0.0


class JobQueue(ABC):
    """
    Abstract job queue interface.

    Jobs are attempted once: fail() records the error and parks the job in
    the failed set, it never re-queues.
    """

    @abstractmethod
    async def enqueue(self, job: AnalysisJob) -> str:
        """Add a job and return its ID."""
        pass

    @abstractmethod
    async def dequeue(self) -> Optional[AnalysisJob]:
        """Next job to process, or None if the queue is empty."""
        pass

    @abstractmethod
    async def complete(self, job_id: str) -> None:
        pass

    @abstractmethod
    async def fail(self, job_id: str, error: str) -> None:
        pass

    @abstractmethod
    async def get_metrics(self) -> QueueMetrics:
        pass

    @abstractmethod
    async def get_failed_jobs(self, limit: int = 100) -> list[AnalysisJob]:
        pass
