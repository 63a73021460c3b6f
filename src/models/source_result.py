from enum import StrEnum
from typing import Any, Dict, Optional
from pydantic import ConfigDict
from src.models.base import CamelModel


class ErrorKind(StrEnum):
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    EXHAUSTED_RETRIES = "exhausted_retries"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"
    UPSTREAM = "upstream"
    MALFORMED_OUTPUT = "malformed_output"
    UNKNOWN = "unknown"


class SourceResult(CamelModel):
    """
    Outcome of one adapter fetch.

    A failed result may still carry a payload: the fail-closed fallback values
    the adapter substitutes. Those values feed the score but never the confidence.
    """
    model_config = ConfigDict(frozen=True)

    source_name: str
    succeeded: bool
    payload: Optional[Dict[str, Any]] = None
    error_kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls, name: str, payload: Dict[str, Any]) -> "SourceResult":
        return cls(source_name=name, succeeded=True, payload=payload)

    @classmethod
    def failed(
        cls,
        name: str,
        kind: ErrorKind = ErrorKind.UNKNOWN,
        payload: Optional[Dict[str, Any]] = None
    ) -> "SourceResult":
        return cls(source_name=name, succeeded=False, payload=payload, error_kind=kind)
