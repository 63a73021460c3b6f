"""
Source adapters: one per upstream, each returning a SourceResult.
"""
from src.adapters.base import SourceAdapter, classify_error
from src.adapters.census import BusinessSurveyAdapter, ConnectivityAdapter, PopulationIncomeAdapter
from src.adapters.competitor_research import (
    CompetitorAnalysisAdapter,
    CompetitorDiscoveryAdapter,
    LandscapeAnalysisAdapter,
    build_research_agent,
)
from src.adapters.discussion_search import DiscussionSearchAdapter
from src.adapters.model_analysis import ModelAnalysisAdapter, build_analysis_agent

__all__ = [
    "SourceAdapter",
    "classify_error",
    "PopulationIncomeAdapter",
    "ConnectivityAdapter",
    "BusinessSurveyAdapter",
    "DiscussionSearchAdapter",
    "ModelAnalysisAdapter",
    "build_analysis_agent",
    "CompetitorDiscoveryAdapter",
    "CompetitorAnalysisAdapter",
    "LandscapeAnalysisAdapter",
    "build_research_agent",
]
