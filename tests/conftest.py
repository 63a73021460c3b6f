import os

# Required credentials must exist before src.config / src.api.main are imported
os.environ.setdefault("CENSUS_API_KEY", "test-census-key")
os.environ.setdefault("REDDIT_CLIENT_ID", "test-reddit-id")
os.environ.setdefault("REDDIT_CLIENT_SECRET", "test-reddit-secret")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

import httpx
import pytest

from src.config import load_settings
from src.models.source_result import SourceResult
from src.utils.metrics import metrics
from src.utils.resilient_http import ResilientHttpClient, RetryPolicy


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every requested wait."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def settings():
    """Settings with fast, deterministic resilience knobs."""
    return load_settings(
        store_backend="memory",
        http_max_retries=2,
        http_base_backoff_ms=100,
        http_backoff_cap_ms=1000,
        data_fetch_timeout_seconds=2.0,
        discussion_channels=["startups", "entrepreneur"],
        discussion_max_pages=1,
    )


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_http(settings, sleeper):
    """
    Build a ResilientHttpClient over httpx.MockTransport.

    Usage:
        http = make_http(lambda request: httpx.Response(200, json={...}))
    """
    clients = []

    def _make(handler, policy: RetryPolicy | None = None) -> ResilientHttpClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return ResilientHttpClient(client, policy or RetryPolicy.from_settings(settings), sleep=sleeper)

    return _make


@pytest.fixture
def census_payloads():
    """Live-looking payloads for the three market sources."""
    return [
        SourceResult.ok("population_income", {
            "population": 331_449_281,
            "medianIncome": 69_717,
            "addressableValue": 331_449_281 * 69_717 / 1_000_000,
        }),
        SourceResult.ok("connectivity", {
            "totalHouseholds": 127_544_730,
            "householdsWithInternet": 114_120_423,
            "internetPenetration": 0.8947,
        }),
        SourceResult.ok("business_survey", {
            "establishments": 6_500_000,
            "employment": 130_000_000,
            "previousEmployment": 125_000_000,
            "marketShare": 0.01,
            "growthRate": 0.04,
        }),
    ]
