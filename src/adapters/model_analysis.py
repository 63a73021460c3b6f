"""
Model Analysis Adapter

Asks Claude to judge how well-defined the problem behind an idea is, grounded
in the discussion posts found for it.
"""
import asyncio
import json
import re
import time
from typing import Any, Dict, List, Sequence, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError
from pydantic_ai import Agent
from pydantic_ai.models.anthropic import AnthropicModel
from pydantic_ai.providers.anthropic import AnthropicProvider
from pydantic_ai.settings import ModelSettings

from src.adapters.base import SourceAdapter
from src.config import Settings
from src.models.model_analysis import ModelAnalysis
from src.models.source_result import SourceResult
from src.utils.errors import AnalysisTimeoutError, MalformedModelOutputError
from src.utils.fallback_responses import get_fallback_problem_payload
from src.utils.llm_client import run_agent_with_retry


INSTRUCTIONS = (
    "You are a startup analyst evaluating problem-solution fit. "
    "Judge how clear, evidenced, urgent and frequent the underlying problem is, "
    "using the community discussions provided as evidence. "
    "Reply with a single JSON object and nothing else."
)

REPLY_FORMAT = """{
  "score": <number 0-10>,
  "breakdown": {"clarity": <0-3>, "evidence": <0-3>, "urgency": <0-2>, "frequency": <0-2>},
  "confidence": <number 0-1>,
  "reasoning": "<two or three sentences>",
  "painPoints": ["..."],
  "targetCustomers": ["..."],
  "recommendations": ["..."]
}"""

_FENCE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)

ReplyT = TypeVar("ReplyT", bound=BaseModel)


def build_analysis_agent(settings: Settings, instructions: str = INSTRUCTIONS) -> Agent[None, str]:
    """A Claude agent with the given role instructions and the configured token budget."""
    model = AnthropicModel(
        settings.analysis_model,
        provider=AnthropicProvider(api_key=settings.anthropic_api_key),
    )
    agent: Agent[None, str] = Agent(
        model,
        output_type=str,
        instructions=instructions,
        model_settings=ModelSettings(max_tokens=settings.model_max_tokens),
    )
    logger.info(f"Analysis agent initialized with model: {settings.analysis_model}")
    return agent


def strip_code_fences(text: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` marker."""
    return _FENCE.sub("", text.strip()).strip()


def parse_model_reply(text: str, contract: Type[ReplyT] = ModelAnalysis) -> ReplyT:
    """
    Parse the model's text reply into its JSON contract (ModelAnalysis by default).

    Raises MalformedModelOutputError when the reply is not JSON or is missing
    required fields.
    """
    cleaned = strip_code_fences(text or "")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedModelOutputError(f"model reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MalformedModelOutputError("model reply is not a JSON object")

    try:
        return contract.model_validate(data)
    except ValidationError as e:
        missing = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise MalformedModelOutputError(f"model reply failed validation: {missing}") from e


async def ask_model(agent: Agent, prompt: str, settings: Settings, phase: str) -> str:
    """
    One retried agent run bounded by model_timeout_seconds.

    Raises AnalysisTimeoutError naming `phase` when the bound is hit.
    """
    timeout = settings.model_timeout_seconds
    try:
        reply = await asyncio.wait_for(
            run_agent_with_retry(agent, prompt, settings=settings),
            timeout=timeout,
        )
    except asyncio.TimeoutError as e:
        raise AnalysisTimeoutError(phase, timeout) from e
    return reply if isinstance(reply, str) else str(reply)


def discussion_posts(context: Sequence[SourceResult]) -> List[Dict[str, Any]]:
    """Posts carried by any discussion result in the context, best first."""
    posts: List[Dict[str, Any]] = []
    for result in context:
        if result.payload and isinstance(result.payload.get("posts"), list):
            posts.extend(p for p in result.payload["posts"] if isinstance(p, dict))
    return sorted(posts, key=lambda p: p.get("score") or 0, reverse=True)


class ModelAnalysisAdapter(SourceAdapter):

    name = "model_analysis"
    propagate = (MalformedModelOutputError, AnalysisTimeoutError)

    def __init__(self, agent: Agent, settings: Settings):
        self.agent = agent
        self.settings = settings

    def build_prompt(self, business_idea: str, context: Sequence[SourceResult]) -> str:
        posts = discussion_posts(context)[:self.settings.model_context_posts]
        excerpts = [
            {
                "title": p.get("title", ""),
                "score": p.get("score", 0),
                "comments": p.get("commentCount", 0),
                "channel": p.get("channel", ""),
                "excerpt": (p.get("selftext") or "")[:500],
            }
            for p in posts
        ]
        evidence = json.dumps(excerpts, indent=2) if excerpts else "No relevant discussions were found."

        return f"""
        BUSINESS IDEA:
        {business_idea}

        TOP COMMUNITY DISCUSSIONS:
        {evidence}

        Reply in exactly this JSON format:
        {REPLY_FORMAT}
        """

    async def _fetch_payload(self, query: str, context: Sequence[SourceResult]) -> Dict[str, Any]:
        prompt = self.build_prompt(query, context)
        started = time.perf_counter()

        reply = await ask_model(self.agent, prompt, self.settings, "model analysis")

        analysis = parse_model_reply(reply)
        logger.info(
            f"🧠 Model analysis parsed in {(time.perf_counter() - started) * 1000:.0f}ms "
            f"(score={analysis.score})"
        )
        return analysis.model_dump(by_alias=True)

    def fallback_payload(self) -> Dict[str, Any]:
        return get_fallback_problem_payload()
