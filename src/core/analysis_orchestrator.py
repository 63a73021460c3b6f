"""
Analysis Orchestrator
Coordinates adapters, the scoring engine and the record store for one analysis.

Architecture:
    market_size:         request → [population/income ‖ connectivity ‖ business survey] → engine → store → 200
    problem_definition:  request → store(in_progress) → queue → 202
                         worker  → discussion search → model analysis → engine → store
    competitor_research: request → store(in_progress) → queue → 202
                         worker  → discovery → per-competitor analysis → landscape → engine → store
"""
import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Optional

from loguru import logger
from pydantic_ai import Agent

from src.adapters.base import SourceAdapter
from src.adapters.competitor_research import (
    CompetitorAnalysisAdapter,
    CompetitorDiscoveryAdapter,
    LandscapeAnalysisAdapter,
)
from src.adapters.census import BusinessSurveyAdapter, ConnectivityAdapter, PopulationIncomeAdapter
from src.adapters.discussion_search import DiscussionSearchAdapter
from src.adapters.model_analysis import ModelAnalysisAdapter
from src.config import Settings, get_settings
from src.core.scoring_engine import Aggregate, aggregate
from src.message_queue.base import AnalysisJob, JobQueue
from src.models.analysis import AnalysisKind, AnalysisRecord, AnalysisStatus
from src.models.request import AnalysisRequest
from src.models.source_result import ErrorKind, SourceResult
from src.repositories.analyses import AnalysisStore
from src.utils.errors import AnalysisTimeoutError, MalformedModelOutputError, PersistenceError
from src.utils.fallback_responses import get_fallback_problem_payload
from src.utils.metrics import metrics
from src.utils.observability import log_pipeline_event
from src.utils.resilient_http import ResilientHttpClient


@dataclass
class PipelineSources:
    """The adapters one analysis runs against. Built fresh for every analysis."""
    population_income: SourceAdapter
    connectivity: SourceAdapter
    business_survey: SourceAdapter
    discussion_search: SourceAdapter
    model_analysis: SourceAdapter
    competitor_discovery: SourceAdapter
    competitor_analysis: SourceAdapter
    landscape_analysis: SourceAdapter


def build_source_factory(
    http: ResilientHttpClient,
    agent: Agent,
    settings: Settings,
    research_agent: Optional[Agent] = None,
) -> Callable[[], PipelineSources]:
    """
    Factory closing over the shared HTTP client and model agents.

    `research_agent` runs the competitor research prompts; the analysis
    agent is used when none is given.
    """
    research_agent = research_agent or agent

    def factory() -> PipelineSources:
        return PipelineSources(
            population_income=PopulationIncomeAdapter(http, settings),
            connectivity=ConnectivityAdapter(http, settings),
            business_survey=BusinessSurveyAdapter(http, settings),
            discussion_search=DiscussionSearchAdapter(http, settings),
            model_analysis=ModelAnalysisAdapter(agent, settings),
            competitor_discovery=CompetitorDiscoveryAdapter(research_agent, settings),
            competitor_analysis=CompetitorAnalysisAdapter(
                research_agent, settings, discussion=DiscussionSearchAdapter(http, settings)
            ),
            landscape_analysis=LandscapeAnalysisAdapter(research_agent, settings),
        )

    return factory


class AnalysisOrchestrator:
    """
    Runs analysis pipelines and owns every write of their records.

    Responsibilities:
    1. Build a fresh set of adapters per analysis
    2. Race data fetching against its deadline
    3. Aggregate results and write the record, best-effort
    4. Record failures with a classified errorType before re-raising

    Usage:
        >>> orchestrator = AnalysisOrchestrator(store, source_factory, queue)
        >>> record = await orchestrator.run_market_size(AnalysisRequest(business_idea="football socks"))
        >>> print(record.score, record.confidence)
    """

    def __init__(
        self,
        store: AnalysisStore,
        source_factory: Callable[[], PipelineSources],
        queue: Optional[JobQueue] = None,
        settings: Optional[Settings] = None,
    ):
        self.store = store
        self.source_factory = source_factory
        self.queue = queue
        self.settings = settings or get_settings()

        logger.info(f"Analysis Orchestrator initialized (store={store.backend})")

    # ============================================
    # MARKET SIZE (synchronous)
    # ============================================

    async def run_market_size(self, request: AnalysisRequest) -> AnalysisRecord:
        record = AnalysisRecord.start(AnalysisKind.MARKET_SIZE, request.business_idea)
        started = time.perf_counter()
        log_pipeline_event(record.analysis_id, "started", kind=record.kind.value)

        sources = self.source_factory()
        idea = record.business_idea
        try:
            results = await self._with_deadline(
                asyncio.gather(
                    sources.population_income.fetch(idea),
                    sources.connectivity.fetch(idea),
                    sources.business_survey.fetch(idea),
                ),
                "market data fetch",
            )
            result = aggregate(AnalysisKind.MARKET_SIZE, results)
        except Exception as e:
            await self._record_failure(record, e, started)
            raise

        await self._complete(record, result, started)
        return record

    # ============================================
    # ASYNCHRONOUS ANALYSES
    # ============================================

    async def submit_problem_definition(self, request: AnalysisRequest) -> AnalysisRecord:
        return await self._submit(AnalysisKind.PROBLEM_DEFINITION, request)

    async def submit_competitor_research(self, request: AnalysisRequest) -> AnalysisRecord:
        return await self._submit(AnalysisKind.COMPETITOR_RESEARCH, request)

    async def _submit(self, kind: AnalysisKind, request: AnalysisRequest) -> AnalysisRecord:
        """
        Write the in_progress record, queue the work, and return.

        The in_progress write is awaited before returning so a client polling
        by analysisId always finds the record.
        """
        if self.queue is None:
            raise RuntimeError("No job queue configured for asynchronous analyses")

        record = AnalysisRecord.start(kind, request.business_idea)
        await self._save(record)

        job = AnalysisJob(
            analysis_id=record.analysis_id,
            kind=record.kind,
            business_idea=record.business_idea,
        )
        await self.queue.enqueue(job)
        log_pipeline_event(record.analysis_id, "queued", kind=record.kind.value, job_id=job.id)
        return record

    async def process_job(self, job: AnalysisJob) -> None:
        """Worker handler: finish the analysis a job refers to."""
        record = await self._load_for_job(job)
        if record.kind == AnalysisKind.COMPETITOR_RESEARCH:
            await self._run_competitor_pipeline(record)
        else:
            await self._run_problem_pipeline(record)

    async def run_problem_definition(self, request: AnalysisRequest) -> AnalysisRecord:
        """The problem-definition pipeline start to finish, in the caller's task."""
        record = AnalysisRecord.start(AnalysisKind.PROBLEM_DEFINITION, request.business_idea)
        await self._save(record)
        return await self._run_problem_pipeline(record)

    async def run_competitor_research(self, request: AnalysisRequest) -> AnalysisRecord:
        """The competitor-research pipeline start to finish, in the caller's task."""
        record = AnalysisRecord.start(AnalysisKind.COMPETITOR_RESEARCH, request.business_idea)
        await self._save(record)
        return await self._run_competitor_pipeline(record)

    async def _run_problem_pipeline(self, record: AnalysisRecord) -> AnalysisRecord:
        started = time.perf_counter()
        log_pipeline_event(record.analysis_id, "started", kind=record.kind.value)

        sources = self.source_factory()
        idea = record.business_idea
        try:
            discussion = await self._with_deadline(
                sources.discussion_search.fetch(idea), "discussion search"
            )
            log_pipeline_event(
                record.analysis_id,
                "sources_fetched",
                (time.perf_counter() - started) * 1000,
                discussion_succeeded=discussion.succeeded,
            )

            try:
                model = await sources.model_analysis.fetch(idea, context=(discussion,))
            except MalformedModelOutputError as e:
                logger.warning(f"🛟 Unusable model reply for {record.analysis_id}, using neutral analysis: {e}")
                metrics.model_fallbacks.inc()
                model = SourceResult.failed(
                    "model_analysis",
                    ErrorKind.MALFORMED_OUTPUT,
                    payload=get_fallback_problem_payload(),
                )

            result = aggregate(AnalysisKind.PROBLEM_DEFINITION, [discussion, model])
        except Exception as e:
            await self._record_failure(record, e, started)
            raise

        await self._complete(record, result, started)
        return record

    async def _run_competitor_pipeline(self, record: AnalysisRecord) -> AnalysisRecord:
        started = time.perf_counter()
        log_pipeline_event(record.analysis_id, "started", kind=record.kind.value)

        sources = self.source_factory()
        idea = record.business_idea
        try:
            discovery = await sources.competitor_discovery.fetch(idea)
            analysis = await sources.competitor_analysis.fetch(idea, context=(discovery,))
            log_pipeline_event(
                record.analysis_id,
                "sources_fetched",
                (time.perf_counter() - started) * 1000,
                discovery_succeeded=discovery.succeeded,
                analysis_succeeded=analysis.succeeded,
            )

            landscape = await sources.landscape_analysis.fetch(idea, context=(analysis,))
            if not landscape.succeeded:
                logger.warning(f"🛟 No landscape analysis for {record.analysis_id}, using neutral assessment")
                metrics.model_fallbacks.inc()

            result = aggregate(AnalysisKind.COMPETITOR_RESEARCH, [discovery, analysis, landscape])
        except Exception as e:
            await self._record_failure(record, e, started)
            raise

        await self._complete(record, result, started)
        return record

    # ============================================
    # READS
    # ============================================

    async def get_analysis(self, analysis_id: str) -> Optional[AnalysisRecord]:
        try:
            return await self.store.get(analysis_id)
        except PersistenceError:
            metrics.store_errors.inc(operation="get")
            raise

    # ============================================
    # INTERNALS
    # ============================================

    async def _with_deadline(self, awaitable, phase: str):
        timeout = self.settings.data_fetch_timeout_seconds
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError as e:
            raise AnalysisTimeoutError(phase, timeout) from e

    async def _load_for_job(self, job: AnalysisJob) -> AnalysisRecord:
        try:
            record = await self.store.get(job.analysis_id)
        except PersistenceError as e:
            logger.error(f"💾 Could not load {job.analysis_id}, rebuilding from job: {e}")
            metrics.store_errors.inc(operation="get")
            record = None

        if record is None:
            record = AnalysisRecord(
                analysis_id=job.analysis_id,
                kind=job.kind,
                business_idea=job.business_idea,
                created_at=job.created_at,
            )
        return record

    async def _complete(self, record: AnalysisRecord, result: Aggregate, started: float) -> None:
        record.status = AnalysisStatus.COMPLETED
        record.score = result.score
        record.breakdown = result.breakdown
        record.confidence = result.confidence
        record.reasoning = result.reasoning
        record.details = result.details
        record.sources = result.sources
        record.touch()

        await self._save(record)

        duration = time.perf_counter() - started
        metrics.analyses_total.inc(kind=record.kind.value, status="completed")
        metrics.pipeline_duration.observe(duration, kind=record.kind.value)
        log_pipeline_event(
            record.analysis_id,
            "completed",
            duration * 1000,
            kind=record.kind.value,
            score=record.score,
            confidence=record.confidence,
        )

    async def _record_failure(self, record: AnalysisRecord, error: Exception, started: float) -> None:
        record.status = AnalysisStatus.FAILED
        record.error = str(error)
        record.error_type = "timeout" if isinstance(error, AnalysisTimeoutError) else type(error).__name__
        record.touch()

        await self._save(record)

        duration = time.perf_counter() - started
        metrics.analyses_total.inc(kind=record.kind.value, status="failed")
        metrics.pipeline_duration.observe(duration, kind=record.kind.value)
        log_pipeline_event(
            record.analysis_id,
            "failed",
            duration * 1000,
            kind=record.kind.value,
            error=record.error,
            error_type=record.error_type,
        )

    async def _save(self, record: AnalysisRecord) -> bool:
        """Best-effort write: store failures are logged and counted, never raised."""
        try:
            return await self.store.save(record)
        except PersistenceError as e:
            logger.error(f"💾 Store write failed for {record.analysis_id} ({record.status}): {e}")
            metrics.store_errors.inc(operation="save")
            return False
