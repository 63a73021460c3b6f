"""
Competitor Research Adapters

Three steps, each a SourceAdapter so failures degrade like every other source:
discovery names the competitors, per-competitor analysis scores each one
against the idea, and the landscape analysis judges the market as a whole.
"""
import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai import Agent

from src.adapters.base import SourceAdapter
from src.adapters.model_analysis import ask_model, build_analysis_agent, discussion_posts, parse_model_reply
from src.config import Settings
from src.models.competitor import Competitor, CompetitorAnalysis, LandscapeAnalysis
from src.models.source_result import SourceResult
from src.utils.errors import AnalysisError, UpstreamResponseError
from src.utils.fallback_responses import get_fallback_landscape_payload, get_known_competitors
from src.utils.llm_client import LLMCriticalError, LLMError


RESEARCH_INSTRUCTIONS = (
    "You are a VC partner researching the competition a new business would face. "
    "Be concrete about named companies, their products and their positioning. "
    "Reply with a single JSON object and nothing else."
)

DISCOVERY_FORMAT = """{
  "competitors": [
    {
      "name": "<company>",
      "url": "<homepage>",
      "category": "direct" | "indirect",
      "products": ["..."],
      "priceRange": "<e.g. $10-$20>",
      "positioning": "<one line>",
      "strengths": ["..."],
      "weaknesses": ["..."]
    }
  ]
}"""

COMPETITOR_FORMAT = """{
  "score": <number 0-10>,
  "breakdown": {
    "marketPosition": <0-10>,
    "productQuality": <0-10>,
    "brandStrength": <0-10>,
    "pricingStrategy": <0-10>,
    "customerSatisfaction": <0-10>
  },
  "confidence": <number 0-1>,
  "reasoning": "<two or three sentences>",
  "threats": ["..."],
  "opportunities": ["..."],
  "recommendations": ["..."]
}"""

LANDSCAPE_FORMAT = """{
  "marketStructure": {"concentration": "...", "barriers": ["..."], "intensity": "...", "maturity": "..."},
  "dynamics": {"forces": ["..."], "shareDistribution": "...", "growthPatterns": "...", "strategies": ["..."]},
  "opportunity": {"marketGaps": ["..."], "underservedSegments": ["..."], "advantages": ["..."], "growthAreas": ["..."]},
  "defensibility": {"advantages": ["..."], "moats": ["..."], "switchingCosts": "...", "networkEffects": "..."},
  "score": <number 0-10, attractiveness of entering this market>,
  "confidence": <number 0-1>,
  "reasoning": "<two or three sentences>"
}"""


class CompetitorList(BaseModel):
    model_config = ConfigDict(extra='ignore')

    competitors: List[Competitor] = Field(default_factory=list)


def build_research_agent(settings: Settings) -> Agent[None, str]:
    return build_analysis_agent(settings, instructions=RESEARCH_INSTRUCTIONS)


def _context_payload(context: Sequence[SourceResult], name: str) -> Dict[str, Any]:
    for result in context:
        if result.source_name == name and isinstance(result.payload, dict):
            return result.payload
    return {}


def _known_payload(limit: int) -> Dict[str, Any]:
    known = get_known_competitors()[:limit]
    return {
        "competitors": [competitor.model_dump(by_alias=True) for competitor in known],
        "discoveredBy": "known_list",
    }


class CompetitorDiscoveryAdapter(SourceAdapter):
    """
    Names the companies already serving the idea's market.

    When the model cannot name any, the result fails over to the known
    competitor list.
    """

    name = "competitor_discovery"

    def __init__(self, agent: Agent, settings: Settings):
        self.agent = agent
        self.settings = settings

    def build_prompt(self, business_idea: str) -> str:
        return f"""
        BUSINESS IDEA:
        {business_idea}

        List up to {self.settings.competitor_max_count} existing companies competing for the same
        customers. Direct competitors sell a similar product; indirect ones solve the same need
        another way.

        Reply in exactly this JSON format:
        {DISCOVERY_FORMAT}
        """

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        reply = await ask_model(self.agent, self.build_prompt(query), self.settings, "competitor discovery")
        found = parse_model_reply(reply, CompetitorList).competitors

        unique: Dict[str, Competitor] = {}
        for competitor in found:
            key = competitor.name.strip().lower()
            if key and key not in unique:
                unique[key] = competitor
        if not unique:
            raise UpstreamResponseError(self.name, "model named no competitors")

        competitors = list(unique.values())[:self.settings.competitor_max_count]
        logger.info(f"🏁 Discovered {len(competitors)} competitors")
        return {
            "competitors": [competitor.model_dump(by_alias=True) for competitor in competitors],
            "discoveredBy": "model",
        }

    def fallback_payload(self) -> Dict[str, Any]:
        return _known_payload(self.settings.competitor_max_count)


class CompetitorAnalysisAdapter(SourceAdapter):
    """
    Scores each discovered competitor, one at a time.

    A competitor whose discussion search or model reply fails is skipped;
    the result only fails when none could be analyzed.
    """

    name = "competitor_analysis"

    def __init__(self, agent: Agent, settings: Settings, discussion: Optional[SourceAdapter] = None):
        self.agent = agent
        self.settings = settings
        self.discussion = discussion

    async def _discussions_about(self, competitor: Competitor, business_idea: str) -> List[Dict[str, Any]]:
        if self.discussion is None:
            return []
        try:
            result = await asyncio.wait_for(
                self.discussion.fetch(f"{competitor.name} {business_idea}"),
                timeout=self.settings.data_fetch_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.warning(f"⏱️ Discussion search for {competitor.name} timed out, continuing without it")
            return []
        return discussion_posts([result])[:self.settings.competitor_context_posts]

    def build_prompt(self, business_idea: str, competitor: Competitor, posts: List[Dict[str, Any]]) -> str:
        excerpts = [
            {
                "title": p.get("title", ""),
                "score": p.get("score", 0),
                "comments": p.get("commentCount", 0),
                "excerpt": (p.get("selftext") or "")[:300],
            }
            for p in posts
        ]
        evidence = json.dumps(excerpts, indent=2) if excerpts else "No relevant discussions were found."

        return f"""
        BUSINESS IDEA:
        {business_idea}

        COMPETITOR:
        {json.dumps(competitor.model_dump(by_alias=True), indent=2)}

        COMMUNITY DISCUSSIONS ABOUT THIS COMPETITOR:
        {evidence}

        Assess how well this competitor serves the target market: strengths and weaknesses,
        pricing and positioning, customer satisfaction, and what it means for a new entrant.

        Reply in exactly this JSON format:
        {COMPETITOR_FORMAT}
        """

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        discovered = _context_payload(context, "competitor_discovery").get("competitors") or []
        competitors = [Competitor.model_validate(entry) for entry in discovered if isinstance(entry, dict)]

        analyzed: List[Dict[str, Any]] = []
        skipped: List[str] = []
        for competitor in competitors:
            posts = await self._discussions_about(competitor, query)
            try:
                reply = await ask_model(
                    self.agent,
                    self.build_prompt(query, competitor, posts),
                    self.settings,
                    f"competitor analysis ({competitor.name})",
                )
                analysis = parse_model_reply(reply, CompetitorAnalysis)
            except (AnalysisError, LLMError, LLMCriticalError) as e:
                logger.warning(f"⚠️ Could not analyze {competitor.name}, skipping: {e}")
                skipped.append(competitor.name)
                continue

            analyzed.append({
                **competitor.model_dump(by_alias=True),
                "analysis": analysis.model_dump(by_alias=True),
                "discussions": [
                    {key: post.get(key) for key in ("title", "score", "commentCount", "url")}
                    for post in posts
                ],
            })

        if competitors and not analyzed:
            raise UpstreamResponseError(self.name, f"no competitor could be analyzed ({len(skipped)} tried)")

        logger.info(f"🔍 Analyzed {len(analyzed)} of {len(competitors)} competitors")
        return {"competitors": analyzed, "analyzedCount": len(analyzed), "skipped": skipped}


class LandscapeAnalysisAdapter(SourceAdapter):
    """
    Judges the competitive landscape from the per-competitor analyses.

    Any failure, including an unusable reply, yields the neutral landscape.
    """

    name = "landscape_analysis"

    def __init__(self, agent: Agent, settings: Settings):
        self.agent = agent
        self.settings = settings

    def build_prompt(self, business_idea: str, competitors: List[Dict[str, Any]]) -> str:
        summary = [
            {
                "name": c.get("name"),
                "category": c.get("category"),
                "positioning": c.get("positioning"),
                "priceRange": c.get("priceRange"),
                "analysis": c.get("analysis"),
            }
            for c in competitors
        ]
        return f"""
        BUSINESS IDEA:
        {business_idea}

        COMPETITOR ANALYSES:
        {json.dumps(summary, indent=2) if summary else "No competitors could be analyzed."}

        Assess market structure, competitive dynamics, the opportunity for a new entrant
        and how defensible a position in this market would be.

        Reply in exactly this JSON format:
        {LANDSCAPE_FORMAT}
        """

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        competitors = _context_payload(context, "competitor_analysis").get("competitors") or []
        prompt = self.build_prompt(query, [c for c in competitors if isinstance(c, dict)])

        reply = await ask_model(self.agent, prompt, self.settings, "landscape analysis")
        landscape = parse_model_reply(reply, LandscapeAnalysis)
        logger.info(f"🗺️ Landscape analysis parsed (score={landscape.score})")
        return landscape.model_dump(by_alias=True)

    def fallback_payload(self) -> Dict[str, Any]:
        return get_fallback_landscape_payload()
