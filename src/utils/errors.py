"""
Error Taxonomy

Exceptions shared by the HTTP client, the source adapters and the orchestrator.
"""
from typing import Optional


class AnalysisError(Exception):
    """Base class for every pipeline error."""
    pass


class AuthError(AnalysisError):
    """Upstream rejected our credentials (401/403). Never retried."""

    def __init__(self, source: str, message: str = "credentials rejected"):
        self.source = source
        super().__init__(f"{source}: {message}")


class RateLimitedError(AnalysisError):
    """Upstream answered 429."""

    def __init__(self, source: str, retry_after: Optional[float] = None):
        self.source = source
        self.retry_after = retry_after
        suffix = f" (retry after {retry_after:g}s)" if retry_after is not None else ""
        super().__init__(f"{source}: rate limited{suffix}")


class ExhaustedRetriesError(AnalysisError):
    """Every attempt allowed by the retry policy failed."""

    def __init__(self, source: str, attempts: int, last_error: Optional[Exception]):
        self.source = source
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{source}: failed after {attempts} attempts: {last_error}")


class SourceNotFoundError(AnalysisError):
    """Upstream answered 404 for one enumerated source."""

    def __init__(self, source: str, url: str = ""):
        self.source = source
        self.url = url
        super().__init__(f"{source}: not found {url}".rstrip())


class UpstreamResponseError(AnalysisError):
    """Unexpected status code or an unparseable body."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class AnalysisTimeoutError(AnalysisError):
    """A pipeline phase exceeded its deadline."""

    def __init__(self, phase: str, timeout_seconds: float):
        self.phase = phase
        self.timeout_seconds = timeout_seconds
        super().__init__(f"{phase} timed out after {timeout_seconds:g}s")


class MalformedModelOutputError(AnalysisError):
    """The model reply is not valid JSON or lacks required fields."""
    pass


class InputValidationError(AnalysisError):
    """Request input is missing or blank."""
    pass


class PersistenceError(AnalysisError):
    """The analysis store failed to read or write."""
    pass
