"""
FastAPI Application

Main entry point for the PMF Scout API.
Handles application lifecycle and router mounting.
"""
import asyncio
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from src.adapters.competitor_research import build_research_agent
from src.adapters.model_analysis import build_analysis_agent
from src.api.routes import analyses_router, health_router, metrics_router
from src.config import Settings, get_settings
from src.core.analysis_orchestrator import AnalysisOrchestrator, build_source_factory
from src.message_queue import InMemoryQueue, QueueWorker
from src.repositories import AnalysisStore, DatabaseManager, InMemoryAnalysisStore, MongoAnalysisStore
from src.utils.observability import configure_logging
from src.utils.resilient_http import ResilientHttpClient, RetryPolicy


async def build_store(settings: Settings) -> AnalysisStore:
    """Connect the configured store backend and prepare its indexes."""
    if settings.store_backend == "memory":
        logger.warning("⚠️ Using in-memory analysis store; records are lost on restart")
        return InMemoryAnalysisStore()

    db_manager = DatabaseManager(settings)
    await db_manager.connect()
    await db_manager.create_indexes()
    return MongoAnalysisStore(db_manager, settings.analyses_table_name)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Build the shared HTTP client, analysis store and model agents
    - Build the orchestrator and job queue
    - Start the background queue worker

    Shutdown:
    - Stop the worker, letting in-flight analyses finish
    - Close the HTTP client and the store
    """
    settings: Settings = app.state.settings
    logger.info("Starting PMF Scout API server...")

    client = httpx.AsyncClient(headers={"Accept": "application/json"})
    http = ResilientHttpClient(client, RetryPolicy.from_settings(settings))
    store = await build_store(settings)
    agent = build_analysis_agent(settings)
    research_agent = build_research_agent(settings)

    queue = InMemoryQueue()
    orchestrator = AnalysisOrchestrator(
        store=store,
        source_factory=build_source_factory(http, agent, settings, research_agent=research_agent),
        queue=queue,
        settings=settings,
    )

    worker = QueueWorker(
        queue=queue,
        handler=orchestrator.process_job,
        max_concurrent=settings.worker_max_concurrent,
        poll_interval=settings.worker_poll_interval_seconds,
    )

    # Store in app state for access in routes
    app.state.orchestrator = orchestrator
    app.state.queue = queue
    app.state.worker = worker

    worker_task = asyncio.create_task(worker.start())
    app.state.worker_task = worker_task

    logger.info("API server ready to receive analyses")

    yield

    # Shutdown
    logger.info("Shutting down API server...")

    await worker.stop()
    if not worker_task.done():
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            logger.info("Stopped queue worker")

    await http.aclose()
    await store.close()
    logger.info("Shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application. Settings are resolved here so missing credentials
    fail with a ConfigurationError before any connection is opened.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="PMF Scout API",
        description="Business idea scoring: market size, problem definition and competitor research analyses",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.frontend_origin.split(",") if origin.strip()],
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Api-Key"],
    )

    # Mount routers
    app.include_router(health_router)
    app.include_router(analyses_router)
    app.include_router(metrics_router)

    return app


app = create_app()
