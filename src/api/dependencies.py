"""
FastAPI Dependencies

Reusable dependencies giving routes the objects the lifespan built.
"""

from fastapi import Request, HTTPException, status
from loguru import logger

from src.core.analysis_orchestrator import AnalysisOrchestrator


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    """
    The orchestrator created in the application lifespan.

    Raises:
        HTTPException: 503 if the service has not finished starting
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        logger.error("❌ Orchestrator requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready"
        )
    return orchestrator
