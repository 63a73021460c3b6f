import secrets
import time
from enum import StrEnum
from typing import Any, Dict, Optional
from pydantic import Field, model_validator
from src.models.base import CamelModel, RecordBaseModel


class AnalysisStatus(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({AnalysisStatus.COMPLETED, AnalysisStatus.FAILED})


class AnalysisKind(StrEnum):
    MARKET_SIZE = "market_size"
    PROBLEM_DEFINITION = "problem_definition"
    COMPETITOR_RESEARCH = "competitor_research"

    @property
    def id_prefix(self) -> str:
        return ID_PREFIXES[self]


ID_PREFIXES = {
    AnalysisKind.MARKET_SIZE: "ms",
    AnalysisKind.PROBLEM_DEFINITION: "pd",
    AnalysisKind.COMPETITOR_RESEARCH: "comp",
}


def new_analysis_id(kind: AnalysisKind) -> str:
    """Time-based plus random: <prefix>_<epoch ms>_<9 hex chars>."""
    return f"{kind.id_prefix}_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class MetricEstimate(CamelModel):
    """One scored dimension: the estimated value and its bounded score."""
    value: float
    score: float = Field(ge=0)
    max_score: float = Field(gt=0)
    details: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_score_bound(self) -> "MetricEstimate":
        if self.score > self.max_score:
            raise ValueError(f"score {self.score} exceeds max_score {self.max_score}")
        return self


class AnalysisRecord(RecordBaseModel):
    """
    The persisted result of one analysis.

    Lifecycle: in_progress -> completed | failed. Terminal records are never
    overwritten (enforced by the store).
    """
    analysis_id: str
    kind: AnalysisKind
    status: AnalysisStatus = AnalysisStatus.IN_PROGRESS
    business_idea: str

    score: Optional[float] = None
    breakdown: Dict[str, float] = Field(default_factory=dict)
    confidence: Optional[float] = None
    reasoning: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    sources: Dict[str, bool] = Field(default_factory=dict)

    error: Optional[str] = None
    error_type: Optional[str] = None

    @classmethod
    def start(cls, kind: AnalysisKind, business_idea: str) -> "AnalysisRecord":
        return cls(
            analysis_id=new_analysis_id(kind),
            kind=kind,
            business_idea=business_idea,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
