"""
CLI Runner for the Analysis Orchestrator
Runs one analysis against the live APIs and prints the resulting record.

Usage:
    python -m src.core.cli_runner market-size "football socks"
    python -m src.core.cli_runner problem-definition "football socks"
    python -m src.core.cli_runner competitor-research "football socks"
"""
import argparse
import asyncio
import json
import sys

import httpx
from loguru import logger

from src.adapters.competitor_research import build_research_agent
from src.adapters.model_analysis import build_analysis_agent
from src.config import ConfigurationError, load_settings
from src.core.analysis_orchestrator import AnalysisOrchestrator, build_source_factory
from src.models.request import AnalysisRequest
from src.repositories.analyses import InMemoryAnalysisStore
from src.utils.errors import AnalysisError
from src.utils.observability import configure_logging
from src.utils.resilient_http import ResilientHttpClient, RetryPolicy

COMMANDS = ("market-size", "problem-definition", "competitor-research")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.core.cli_runner",
        description="Score a business idea from the command line.",
    )
    parser.add_argument("analysis", choices=COMMANDS, help="Which analysis to run")
    parser.add_argument("business_idea", help='Idea to score, e.g. "football socks"')
    return parser


async def run_analysis(analysis: str, business_idea: str) -> dict:
    """
    Run one pipeline synchronously with an in-memory store.
    Demonstrates the full adapter → engine → store flow without the API.
    """
    settings = load_settings(store_backend="memory")
    request = AnalysisRequest.parse({"businessIdea": business_idea})

    logger.info("=" * 70)
    logger.info(f"🔬 PMF Scout - {analysis} for: {request.business_idea}")
    logger.info("=" * 70)

    async with httpx.AsyncClient(headers={"Accept": "application/json"}) as client:
        http = ResilientHttpClient(client, RetryPolicy.from_settings(settings))
        orchestrator = AnalysisOrchestrator(
            store=InMemoryAnalysisStore(),
            source_factory=build_source_factory(
                http,
                build_analysis_agent(settings),
                settings,
                research_agent=build_research_agent(settings),
            ),
            settings=settings,
        )

        if analysis == "market-size":
            record = await orchestrator.run_market_size(request)
        elif analysis == "competitor-research":
            record = await orchestrator.run_competitor_research(request)
        else:
            record = await orchestrator.run_problem_definition(request)

    logger.info(f"✅ {record.analysis_id}: score={record.score} confidence={record.confidence}")
    return record.to_document()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        configure_logging()
        document = asyncio.run(run_analysis(args.analysis, args.business_idea))
    except ConfigurationError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    except AnalysisError as e:
        print(f"❌ {type(e).__name__}: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\n👋 Interrupted", file=sys.stderr)
        return 130

    print(json.dumps(document, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
