from typing import Any, Optional
from pydantic import BaseModel
from src.utils.errors import InputValidationError


class AnalysisRequest(BaseModel):
    business_idea: str

    @classmethod
    def parse(cls, body: Optional[Any]) -> "AnalysisRequest":
        """
        Build a request from a decoded JSON body.

        Raises InputValidationError when businessIdea is missing, not a string,
        or blank after trimming.
        """
        idea = body.get("businessIdea") if isinstance(body, dict) else None
        if not isinstance(idea, str) or not idea.strip():
            raise InputValidationError("Missing required parameter: businessIdea")
        return cls(business_idea=idea.strip())
