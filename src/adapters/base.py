"""
Source Adapter Base

Every upstream is wrapped in an adapter whose fetch() never raises for
ordinary upstream failures: it returns a SourceResult, failed when needed,
carrying the adapter's fail-closed payload.
"""
import asyncio
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Sequence, Tuple, Type

import httpx
from loguru import logger

from src.models.source_result import ErrorKind, SourceResult
from src.utils.errors import (
    AnalysisTimeoutError,
    AuthError,
    ExhaustedRetriesError,
    MalformedModelOutputError,
    RateLimitedError,
    SourceNotFoundError,
    UpstreamResponseError,
)
from src.utils.fallback_responses import fallback_payload
from src.utils.llm_client import LLMCriticalError, LLMError
from src.utils.metrics import metrics


def classify_error(error: BaseException) -> ErrorKind:
    """Map an exception to the ErrorKind recorded on a failed SourceResult."""
    if isinstance(error, (AuthError, LLMCriticalError)):
        return ErrorKind.AUTH
    if isinstance(error, RateLimitedError):
        return ErrorKind.RATE_LIMITED
    if isinstance(error, (ExhaustedRetriesError, LLMError)):
        return ErrorKind.EXHAUSTED_RETRIES
    if isinstance(error, (AnalysisTimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorKind.TIMEOUT
    if isinstance(error, SourceNotFoundError):
        return ErrorKind.NOT_FOUND
    if isinstance(error, (UpstreamResponseError, httpx.HTTPError)):
        return ErrorKind.UPSTREAM
    if isinstance(error, MalformedModelOutputError):
        return ErrorKind.MALFORMED_OUTPUT
    return ErrorKind.UNKNOWN


class SourceAdapter(ABC):
    """
    One upstream data source.

    Subclasses implement _fetch_payload(); exception types listed in
    `propagate` escape fetch() instead of becoming a failed result.
    """

    name: str = "source"
    propagate: Tuple[Type[BaseException], ...] = ()

    async def fetch(self, query: str, context: Sequence[SourceResult] = ()) -> SourceResult:
        started = time.perf_counter()
        try:
            payload = await self._fetch_payload(query, context)
        except self.propagate:
            metrics.source_results.inc(source=self.name, outcome="error")
            raise
        except Exception as e:
            kind = classify_error(e)
            logger.bind(source=self.name, error_kind=kind.value).warning(
                f"⚠️ {self.name} failed ({kind.value}): {e} - using fallback values"
            )
            metrics.source_results.inc(source=self.name, outcome="failed")
            return SourceResult.failed(self.name, kind, payload=self.fallback_payload())

        duration_ms = (time.perf_counter() - started) * 1000
        logger.bind(source=self.name, duration_ms=round(duration_ms, 2)).debug(
            f"✅ {self.name} fetched in {duration_ms:.0f}ms"
        )
        metrics.source_results.inc(source=self.name, outcome="succeeded")
        return SourceResult.ok(self.name, payload)

    @abstractmethod
    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        """Produce the live payload or raise."""
        ...

    def fallback_payload(self) -> Optional[Dict[str, Any]]:
        """Fail-closed values reported when the upstream is unavailable."""
        return fallback_payload(self.name) or None
