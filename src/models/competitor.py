from typing import Any, Dict, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from src.models.base import CamelModel


class Competitor(CamelModel):
    """A company already serving the market, as discovered or known."""
    name: str
    url: str = ""
    category: str = "unknown"  # direct, indirect or unknown
    products: List[str] = Field(default_factory=list)
    price_range: str = "Unknown"
    positioning: str = ""
    market_share: Optional[str] = None
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)


class CompetitorBreakdown(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    market_position: float = Field(validation_alias=AliasChoices("marketPosition", "market_position"),
                                   serialization_alias="marketPosition")
    product_quality: float = Field(validation_alias=AliasChoices("productQuality", "product_quality"),
                                   serialization_alias="productQuality")
    brand_strength: float = Field(validation_alias=AliasChoices("brandStrength", "brand_strength"),
                                  serialization_alias="brandStrength")
    pricing_strategy: float = Field(validation_alias=AliasChoices("pricingStrategy", "pricing_strategy"),
                                    serialization_alias="pricingStrategy")
    customer_satisfaction: float = Field(
        validation_alias=AliasChoices("customerSatisfaction", "customer_satisfaction"),
        serialization_alias="customerSatisfaction",
    )


class CompetitorAnalysis(BaseModel):
    """The JSON contract for the model's judgement of one competitor."""
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    score: float
    breakdown: CompetitorBreakdown
    confidence: float
    reasoning: str
    threats: List[str] = Field(default_factory=list)
    opportunities: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class LandscapeAnalysis(BaseModel):
    """
    The JSON contract for the competitive landscape as a whole.

    The four sections are free-form; only the headline numbers are required.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    market_structure: Dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("marketStructure", "market_structure"),
        serialization_alias="marketStructure",
    )
    dynamics: Dict[str, Any] = Field(default_factory=dict)
    opportunity: Dict[str, Any] = Field(default_factory=dict)
    defensibility: Dict[str, Any] = Field(default_factory=dict)
    score: float
    confidence: float
    reasoning: str
