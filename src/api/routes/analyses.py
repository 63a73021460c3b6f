"""
Analysis Endpoints

Market size (synchronous), problem definition and competitor research
(asynchronous) analyses, plus polling by analysisId.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from src.api.dependencies import get_orchestrator
from src.core.analysis_orchestrator import AnalysisOrchestrator
from src.models.analysis import AnalysisRecord
from src.models.request import AnalysisRequest
from src.utils.errors import AnalysisTimeoutError, InputValidationError, PersistenceError
from src.utils.fallback_responses import get_known_competitors

router = APIRouter(tags=["Analyses"])


async def _read_request(request: Request) -> AnalysisRequest:
    """Decode the JSON body; an unreadable body counts as a missing idea."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        body = None
    return AnalysisRequest.parse(body)


def _bad_request(error: InputValidationError) -> JSONResponse:
    logger.warning(f"🚫 Rejected analysis request: {error}")
    return JSONResponse(status_code=400, content={"error": str(error)})


def _server_error(error: Exception) -> JSONResponse:
    if isinstance(error, AnalysisTimeoutError):
        return JSONResponse(
            status_code=504,
            content={"error": "Analysis timed out", "message": str(error), "type": "timeout"},
        )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(error), "type": type(error).__name__},
    )


@router.post("/agents/market-size")
async def market_size(
    request: Request,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Score the market for an idea from Census data.

    Flow:
    1. Validate businessIdea (400 when missing or blank, before any upstream call)
    2. Fetch population/income, connectivity and business survey data in parallel
    3. Aggregate, persist and return the completed record

    Returns 504 when data fetching exceeds its deadline.
    """
    try:
        analysis_request = await _read_request(request)
    except InputValidationError as e:
        return _bad_request(e)

    try:
        record = await orchestrator.run_market_size(analysis_request)
    except Exception as e:
        logger.opt(exception=e).error(f"❌ Market size analysis failed: {e}")
        return _server_error(e)

    return record.to_document()


def _accepted(record: AnalysisRecord, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={
            "analysisId": record.analysis_id,
            "status": record.status.value,
            "message": "Analysis started. Poll /analyses/{analysisId} for results.",
            "businessIdea": record.business_idea,
            "createdAt": record.created_at.isoformat(),
            **extra,
        },
    )


@router.post("/agents/problem-definition", status_code=202)
async def problem_definition(
    request: Request,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Start a problem definition analysis.

    Returns 202 once the in_progress record is stored and the job queued.
    Poll GET /analyses/{analysisId} for the result.
    """
    try:
        analysis_request = await _read_request(request)
    except InputValidationError as e:
        return _bad_request(e)

    try:
        record = await orchestrator.submit_problem_definition(analysis_request)
    except Exception as e:
        logger.opt(exception=e).error(f"❌ Could not start problem definition analysis: {e}")
        return _server_error(e)

    return _accepted(record)


@router.post("/agents/competitor-research", status_code=202)
async def competitor_research(
    request: Request,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """
    Start a competitor research analysis.

    The 202 body lists the known competitors the research falls back on;
    the finished record carries the analyzed competitors and the landscape.
    """
    try:
        analysis_request = await _read_request(request)
    except InputValidationError as e:
        return _bad_request(e)

    try:
        record = await orchestrator.submit_competitor_research(analysis_request)
    except Exception as e:
        logger.opt(exception=e).error(f"❌ Could not start competitor research: {e}")
        return _server_error(e)

    known = [competitor.model_dump(by_alias=True) for competitor in get_known_competitors()]
    return _accepted(record, knownCompetitors=known)


@router.get("/analyses/{analysis_id}")
async def get_analysis(
    analysis_id: str,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Current state of an analysis, in progress or finished."""
    try:
        record = await orchestrator.get_analysis(analysis_id)
    except PersistenceError as e:
        logger.error(f"💾 Could not read analysis {analysis_id}: {e}")
        return _server_error(e)

    if record is None:
        return JSONResponse(status_code=404, content={"error": f"Analysis {analysis_id} not found"})
    return record.to_document()
