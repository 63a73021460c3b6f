"""
Health and Readiness Endpoints

Liveness answers as long as the process serves requests; readiness also
needs the orchestrator built by the lifespan and a reachable record store.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

router = APIRouter(tags=["Health"])

API_VERSION = "1.0.0"
SERVICE_NAME = "pmf-scout"

ENDPOINTS = {
    "health": "/health",
    "ready": "/ready",
    "metrics": "/metrics",
    "queue_metrics": "/metrics/queue",
    "market_size": "/agents/market-size (POST)",
    "problem_definition": "/agents/problem-definition (POST)",
    "competitor_research": "/agents/competitor-research (POST)",
    "analysis": "/analyses/{analysisId}",
}


def _not_ready(reason: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "not_ready", "reason": reason})


@router.get("/health")
async def health_check():
    return {"status": "healthy", "service": SERVICE_NAME, "version": API_VERSION}


@router.get("/ready")
async def readiness_check(request: Request):
    """200 once the orchestrator exists and its store answers a ping, else 503."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return _not_ready("Orchestrator not initialized")

    store = orchestrator.store
    try:
        reachable = await store.ping()
    except Exception as e:
        logger.warning(f"🩺 Store ping raised during readiness check: {e}")
        reachable = False

    if not reachable:
        return _not_ready(f"{store.backend} store unreachable")

    return {"status": "ready", "store": store.backend, "orchestrator": "initialized"}


@router.get("/")
async def root():
    return {"service": "PMF Scout API", "version": API_VERSION, "endpoints": ENDPOINTS}
