from typing import List
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ProblemBreakdown(BaseModel):
    clarity: float
    evidence: float
    urgency: float
    frequency: float


class ModelAnalysis(BaseModel):
    """
    The JSON contract the model is asked to reply with.

    Both camelCase and snake_case spellings of the list fields are accepted.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    score: float
    breakdown: ProblemBreakdown
    confidence: float
    reasoning: str

    pain_points: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("painPoints", "pain_points"),
        serialization_alias="painPoints",
    )
    target_customers: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("targetCustomers", "target_customers"),
        serialization_alias="targetCustomers",
    )
    recommendations: List[str] = Field(default_factory=list)
