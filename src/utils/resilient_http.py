"""
Resilient HTTP Client

Wraps httpx.AsyncClient with timeouts, exponential backoff and
retry-after aware rate-limit handling. Every attempt is logged and counted.
"""
import asyncio
import time
from dataclasses import dataclass, field, replace
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Optional

import httpx
from loguru import logger

from src.config import Settings
from src.utils.errors import (
    AuthError,
    ExhaustedRetriesError,
    RateLimitedError,
    SourceNotFoundError,
    UpstreamResponseError,
)
from src.utils.metrics import metrics
from src.utils.observability import log_source_attempt


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry, how long to wait, and what counts as retryable."""

    max_retries: int = 3
    base_backoff_ms: int = 1000
    cap_ms: int = 10000
    timeout_ms: int = 10000
    retry_on_rate_limit: bool = True
    retryable_statuses: frozenset[int] = field(default_factory=lambda: frozenset({503}))

    def backoff_seconds(self, attempt: int) -> float:
        """Exponential backoff for a zero-based attempt, capped at cap_ms."""
        return min(self.base_backoff_ms * (2 ** attempt), self.cap_ms) / 1000

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    @classmethod
    def from_settings(cls, settings: Settings, **overrides) -> "RetryPolicy":
        policy = cls(
            max_retries=settings.http_max_retries,
            base_backoff_ms=settings.http_base_backoff_ms,
            cap_ms=settings.http_backoff_cap_ms,
            timeout_ms=settings.http_timeout_ms,
        )
        return replace(policy, **overrides) if overrides else policy


def parse_retry_after(response: httpx.Response) -> Optional[float]:
    """
    Seconds to wait before retrying a rate-limited request.

    Reads the retry-after header (delta seconds or an HTTP-date), then
    x-ratelimit-reset (seconds until the window resets, as Reddit sends it),
    then falls back to a retry_after / retryAfter field in a JSON body.
    """
    header = response.headers.get("retry-after")
    if header:
        header = header.strip()
        try:
            return max(0.0, float(header))
        except ValueError:
            pass
        try:
            reset_at = parsedate_to_datetime(header)
        except (TypeError, ValueError):
            reset_at = None
        if reset_at is not None:
            return max(0.0, reset_at.timestamp() - time.time())

    reset = response.headers.get("x-ratelimit-reset")
    if reset:
        try:
            return max(0.0, float(reset.strip()))
        except ValueError:
            pass

    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        for key in ("retry_after", "retryAfter"):
            value = body.get(key)
            if value is None:
                continue
            try:
                return max(0.0, float(value))
            except (TypeError, ValueError):
                continue
    return None


class ResilientHttpClient:
    """
    Retry loop around a shared httpx.AsyncClient.

    Status handling:
        2xx/3xx      -> response returned
        429          -> wait retry-after (or backoff) and retry, or raise RateLimitedError
        503          -> exponential backoff retry
        timeouts     -> exponential backoff retry
        401/403      -> AuthError, never retried
        404          -> SourceNotFoundError
        other errors -> UpstreamResponseError

    The sleep function is injectable so tests can run without waiting.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def call(
        self,
        method: str,
        url: str,
        *,
        source: str,
        policy: Optional[RetryPolicy] = None,
        **kwargs,
    ) -> httpx.Response:
        policy = policy or self.policy
        kwargs.setdefault("timeout", policy.timeout_ms / 1000)
        last_error: Optional[Exception] = None

        for attempt in range(policy.max_attempts):
            attempt_no = attempt + 1
            is_last = attempt_no == policy.max_attempts

            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.TimeoutException as e:
                last_error = e
                outcome = "timeout"
                wait = policy.backoff_seconds(attempt)
            except httpx.TransportError as e:
                last_error = e
                outcome = "transport_error"
                wait = policy.backoff_seconds(attempt)
            else:
                status = response.status_code

                if status < 400:
                    self._record(source, attempt_no, "success", status_code=status)
                    return response

                if status in (401, 403):
                    self._record(source, attempt_no, "auth_error", status_code=status)
                    raise AuthError(source, f"HTTP {status} from {url}")

                if status == 404:
                    self._record(source, attempt_no, "not_found", status_code=status)
                    raise SourceNotFoundError(source, url)

                if status == 429:
                    retry_after = parse_retry_after(response)
                    if not policy.retry_on_rate_limit:
                        self._record(
                            source, attempt_no, "rate_limited",
                            status_code=status, retry_after=retry_after,
                        )
                        raise RateLimitedError(source, retry_after)
                    last_error = RateLimitedError(source, retry_after)
                    outcome = "rate_limited"
                    wait = retry_after if retry_after is not None else policy.backoff_seconds(attempt)

                elif status in policy.retryable_statuses:
                    last_error = UpstreamResponseError(source, f"HTTP {status}", status_code=status)
                    outcome = "server_error"
                    wait = policy.backoff_seconds(attempt)

                else:
                    self._record(source, attempt_no, "http_error", status_code=status)
                    raise UpstreamResponseError(
                        source, f"unexpected HTTP {status} from {url}", status_code=status
                    )

            if is_last:
                self._record(source, attempt_no, outcome, error=str(last_error))
                break

            self._record(source, attempt_no, outcome, wait_seconds=round(wait, 3), error=str(last_error))
            await self._sleep(wait)

        logger.error(f"❌ {source}: giving up after {policy.max_attempts} attempts ({last_error})")
        raise ExhaustedRetriesError(source, policy.max_attempts, last_error)

    async def get_json(self, url: str, *, source: str, policy: Optional[RetryPolicy] = None, **kwargs) -> Any:
        response = await self.call("GET", url, source=source, policy=policy, **kwargs)
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamResponseError(source, "response body is not JSON", response.status_code) from e

    async def aclose(self) -> None:
        await self.client.aclose()

    @staticmethod
    def _record(source: str, attempt: int, outcome: str, **context) -> None:
        log_source_attempt(source, attempt, outcome, **context)
        metrics.upstream_attempts.inc(source=source, outcome=outcome)
