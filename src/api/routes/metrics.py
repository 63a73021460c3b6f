"""
Metrics Endpoints

Scrape target for Prometheus plus a JSON view of the analysis job queue.
"""
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, Response
from loguru import logger

from src.message_queue import JobQueue, QueueMetrics
from src.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"


async def _queue_snapshot(app: FastAPI) -> QueueMetrics | None:
    """Current queue statistics, mirrored into the queue gauges. None before startup."""
    queue: JobQueue | None = getattr(app.state, "queue", None)
    if queue is None:
        return None

    snapshot = await queue.get_metrics()
    metrics.queue_pending.set(snapshot.pending)
    metrics.queue_processing.set(snapshot.processing)
    metrics.queue_failed.set(snapshot.failed)
    return snapshot


@router.get("/metrics")
async def prometheus_metrics(request: Request):
    """
    Every registered series in text exposition format: analyses by kind and
    status, pipeline durations, adapter outcomes, upstream attempts, model
    fallbacks, store errors and queue depth.
    """
    try:
        await _queue_snapshot(request.app)
        body = metrics.export()
    except Exception as e:
        logger.opt(exception=e).error(f"📉 Metrics export failed: {e}")
        return Response(content=f"# export failed: {e}\n", media_type="text/plain", status_code=500)

    return Response(content=body, media_type=PROMETHEUS_CONTENT_TYPE)


@router.get("/metrics/queue")
async def queue_metrics(request: Request):
    """Pending, processing, completed and failed jobs with average duration and error rate."""
    try:
        snapshot = await _queue_snapshot(request.app)
    except Exception as e:
        logger.opt(exception=e).error(f"📉 Queue statistics unavailable: {e}")
        return JSONResponse(status_code=500, content={"status": "error", "error": str(e)})

    if snapshot is None:
        return JSONResponse(status_code=500, content={"status": "error", "error": "Job queue not initialized"})

    return {"status": "ok", "metrics": snapshot.model_dump()}
