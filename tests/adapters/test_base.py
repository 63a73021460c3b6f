"""
Tests for the adapter base class and error classification.
"""
import asyncio

import httpx
import pytest

from src.adapters.base import SourceAdapter, classify_error
from src.models.source_result import ErrorKind
from src.utils.errors import (
    AnalysisTimeoutError,
    AuthError,
    ExhaustedRetriesError,
    MalformedModelOutputError,
    RateLimitedError,
    SourceNotFoundError,
    UpstreamResponseError,
)
from src.utils.llm_client import LLMCriticalError, LLMError
from src.utils.metrics import metrics


class StaticAdapter(SourceAdapter):
    name = "connectivity"

    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error

    async def _fetch_payload(self, query, context):
        if self.error:
            raise self.error
        return self.payload


class PropagatingAdapter(StaticAdapter):
    propagate = (MalformedModelOutputError,)


class TestClassifyError:

    @pytest.mark.parametrize("error, kind", [
        (AuthError("x"), ErrorKind.AUTH),
        (LLMCriticalError("bad key"), ErrorKind.AUTH),
        (RateLimitedError("x", 5), ErrorKind.RATE_LIMITED),
        (ExhaustedRetriesError("x", 3, None), ErrorKind.EXHAUSTED_RETRIES),
        (LLMError("gave up"), ErrorKind.EXHAUSTED_RETRIES),
        (AnalysisTimeoutError("phase", 1), ErrorKind.TIMEOUT),
        (asyncio.TimeoutError(), ErrorKind.TIMEOUT),
        (httpx.ConnectTimeout("slow"), ErrorKind.TIMEOUT),
        (SourceNotFoundError("x"), ErrorKind.NOT_FOUND),
        (UpstreamResponseError("x", "bad"), ErrorKind.UPSTREAM),
        (MalformedModelOutputError("junk"), ErrorKind.MALFORMED_OUTPUT),
        (KeyError("surprise"), ErrorKind.UNKNOWN),
    ])
    def test_mapping(self, error, kind):
        assert classify_error(error) == kind


@pytest.mark.asyncio
class TestSourceAdapterFetch:

    async def test_success(self):
        result = await StaticAdapter(payload={"internetPenetration": 0.8}).fetch("idea")

        assert result.succeeded is True
        assert result.source_name == "connectivity"
        assert result.payload == {"internetPenetration": 0.8}
        assert metrics.source_results.get(source="connectivity", outcome="succeeded") == 1

    async def test_unexpected_error_becomes_failed_result(self):
        result = await StaticAdapter(error=KeyError("B28002_001E")).fetch("idea")

        assert result.succeeded is False
        assert result.error_kind == ErrorKind.UNKNOWN
        assert result.payload == {"internetPenetration": 0.90}

    async def test_propagated_types_escape(self):
        adapter = PropagatingAdapter(error=MalformedModelOutputError("junk"))

        with pytest.raises(MalformedModelOutputError):
            await adapter.fetch("idea")
        assert metrics.source_results.get(source="connectivity", outcome="error") == 1

    async def test_results_are_immutable(self):
        result = await StaticAdapter(payload={"internetPenetration": 0.8}).fetch("idea")

        with pytest.raises(Exception):
            result.succeeded = False
