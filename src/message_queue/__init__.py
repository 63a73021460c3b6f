"""
Analysis Job Queue

Runs the background half of asynchronous analyses:
- Abstract queue interface
- In-memory queue for single-instance deployments
- Worker with bounded concurrency and its own error boundary
- Queue metrics and monitoring
"""

from src.message_queue.base import JobQueue, AnalysisJob, QueueMetrics, JobStatus
from src.message_queue.memory import InMemoryQueue
from src.message_queue.worker import QueueWorker

__all__ = [
    "JobQueue",
    "AnalysisJob",
    "QueueMetrics",
    "JobStatus",
    "InMemoryQueue",
    "QueueWorker",
]
