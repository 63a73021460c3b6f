"""
Aggregation & Scoring Engine

Pure functions that turn adapter results into a 0-10 score, per-dimension
sub-scores, metric estimates and a data-availability confidence.

Nothing here performs I/O or raises on bad input: missing or unusable
values fall back per field to the documented constants.
"""
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from src.models.analysis import AnalysisKind, MetricEstimate
from src.models.source_result import SourceResult
from src.utils.fallback_responses import (
    COMPETITOR_MAXIMA,
    DEFAULT_GROWTH_RATE,
    DEFAULT_MARKET_SHARE,
    FALLBACK_INTERNET_PENETRATION,
    FALLBACK_MEDIAN_INCOME,
    FALLBACK_POPULATION,
    MARKET_SIZE_MAXIMA,
    PROBLEM_DEFINITION_MAXIMA,
    fallback_payload,
)


CONFIDENCE_BASE = 0.5
CONFIDENCE_STEP = 0.1
CONFIDENCE_CEILING = 0.9

# Fields that count toward confidence when a source succeeds and reports them
CONFIDENCE_FIELDS: Mapping[str, tuple] = {
    "population_income": ("population", "medianIncome"),
    "connectivity": ("internetPenetration",),
    "business_survey": ("establishments", "employment", "growthRate"),
    "discussion_search": ("posts", "totalComments"),
    "model_analysis": ("breakdown", "reasoning", "painPoints"),
    "competitor_discovery": ("competitors",),
    "competitor_analysis": ("competitors",),
    "landscape_analysis": ("marketStructure", "opportunity", "reasoning"),
}

URGENCY_WORDS = ("urgent", "critical", "pain", "problem", "need", "must", "help")


@dataclass(frozen=True)
class Aggregate:
    """Everything the engine derives for one analysis."""
    score: float
    breakdown: Dict[str, float]
    metrics: Dict[str, MetricEstimate]
    confidence: float
    reasoning: str
    sources: Dict[str, bool]
    extras: Dict[str, Any] = field(default_factory=dict)

    @property
    def details(self) -> Dict[str, Any]:
        details = {name: metric.model_dump(by_alias=True) for name, metric in self.metrics.items()}
        details.update(self.extras)
        return details


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _field(payload: Mapping[str, Any], key: str, default: float) -> float:
    number = _as_number(payload.get(key))
    return default if number is None else number


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return math.isfinite(value)
    return True


def _find(results: Iterable[SourceResult], name: str) -> Optional[SourceResult]:
    for result in results:
        if result.source_name == name:
            return result
    return None


def _payload(results: Sequence[SourceResult], name: str) -> Dict[str, Any]:
    """The result's payload when it has one, else the fallback constants."""
    result = _find(results, name)
    if result is not None and isinstance(result.payload, dict):
        return result.payload
    return fallback_payload(name)


def _score_sum(breakdown: Mapping[str, float]) -> float:
    return round(sum(breakdown.values()), 1)


def compute_confidence(results: Sequence[SourceResult]) -> float:
    """
    0.5 plus 0.1 per present field across succeeded sources, capped at 0.9.

    Failed results never count, even when they carry fallback values.
    """
    count = 0
    for result in results:
        if not result.succeeded or not isinstance(result.payload, dict):
            continue
        for key in CONFIDENCE_FIELDS.get(result.source_name, ()):
            if _is_present(result.payload.get(key)):
                count += 1
    return round(min(CONFIDENCE_CEILING, CONFIDENCE_BASE + CONFIDENCE_STEP * count), 2)


def _sources(results: Sequence[SourceResult]) -> Dict[str, bool]:
    return {result.source_name: result.succeeded for result in results}


# ============================================
# MARKET SIZE
# ============================================

def aggregate_market_size(results: Sequence[SourceResult]) -> Aggregate:
    """
    TAM, SAM, SOM and growth from the Census sources.

    Values are in millions of USD except growth, which is a rate.
    """
    population_income = _payload(results, "population_income")
    connectivity = _payload(results, "connectivity")
    survey = _payload(results, "business_survey")

    population = _field(population_income, "population", FALLBACK_POPULATION)
    median_income = _field(population_income, "medianIncome", FALLBACK_MEDIAN_INCOME)
    penetration = _field(connectivity, "internetPenetration", FALLBACK_INTERNET_PENETRATION)
    market_share = _field(survey, "marketShare", DEFAULT_MARKET_SHARE)
    growth_rate = _field(survey, "growthRate", DEFAULT_GROWTH_RATE)

    tam = population * median_income / 1_000_000
    sam = tam * penetration
    som = sam * market_share

    metrics = {
        "tam": MetricEstimate(
            value=tam,
            score=clamp(tam / 1000 * 3, 0, MARKET_SIZE_MAXIMA["tam"]),
            max_score=MARKET_SIZE_MAXIMA["tam"],
            details={
                "totalPopulation": int(population),
                "medianIncome": int(median_income),
                "unit": "millions USD",
            },
        ),
        "sam": MetricEstimate(
            value=sam,
            score=clamp(penetration * 3, 0, MARKET_SIZE_MAXIMA["sam"]),
            max_score=MARKET_SIZE_MAXIMA["sam"],
            details={
                "internetPenetration": penetration,
                "totalHouseholds": connectivity.get("totalHouseholds"),
                "householdsWithInternet": connectivity.get("householdsWithInternet"),
                "unit": "millions USD",
            },
        ),
        "som": MetricEstimate(
            value=som,
            score=clamp(market_share * 10 * 2, 0, MARKET_SIZE_MAXIMA["som"]),
            max_score=MARKET_SIZE_MAXIMA["som"],
            details={
                "totalEstablishments": survey.get("establishments"),
                "totalEmployment": survey.get("employment"),
                "assumedMarketShare": market_share,
                "unit": "millions USD",
            },
        ),
        "growth": MetricEstimate(
            value=growth_rate,
            score=clamp(growth_rate * 10 * 2, 0, MARKET_SIZE_MAXIMA["growth"]),
            max_score=MARKET_SIZE_MAXIMA["growth"],
            details={
                "currentYearEmployment": survey.get("employment"),
                "previousYearEmployment": survey.get("previousEmployment"),
                "growthRate": growth_rate,
                "unit": "percentage",
            },
        ),
    }

    breakdown = {name: round(metric.score, 1) for name, metric in metrics.items()}
    reasoning = (
        f"Market analysis based on Census data. TAM: ${tam:,.2f}M, SAM: ${sam:,.2f}M, "
        f"SOM: ${som:,.2f}M. Market growth rate: {growth_rate * 100:.1f}%."
    )

    return Aggregate(
        score=_score_sum(breakdown),
        breakdown=breakdown,
        metrics=metrics,
        confidence=compute_confidence(results),
        reasoning=reasoning,
        sources=_sources(results),
    )


# ============================================
# PROBLEM DEFINITION
# ============================================

def count_urgency_hits(posts: Sequence[Mapping[str, Any]]) -> int:
    """Per post, how many distinct urgency words appear in title + body."""
    hits = 0
    for post in posts:
        text = f"{post.get('title') or ''} {post.get('selftext') or ''}".lower()
        hits += sum(1 for word in URGENCY_WORDS if word in text)
    return hits


def discussion_heuristic(payload: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Sub-scores derived from discussion volume and engagement.

    None when there are no posts to judge.
    """
    posts = payload.get("posts")
    posts = [p for p in posts if isinstance(p, Mapping)] if isinstance(posts, (list, tuple)) else []
    n = len(posts)
    if n == 0:
        return None

    post_score = sum(_as_number(p.get("score")) or 0.0 for p in posts)
    comments = sum(_as_number(p.get("commentCount")) or 0.0 for p in posts)
    urgency_hits = count_urgency_hits(posts)

    return {
        "scores": {
            "clarity": clamp(post_score / (n * 100) * 3, 0, PROBLEM_DEFINITION_MAXIMA["clarity"]),
            "evidence": clamp(n / 50 * 3, 0, PROBLEM_DEFINITION_MAXIMA["evidence"]),
            "urgency": clamp(urgency_hits / (n * 2) * 2, 0, PROBLEM_DEFINITION_MAXIMA["urgency"]),
            "frequency": clamp(comments / (n * 10) * 2, 0, PROBLEM_DEFINITION_MAXIMA["frequency"]),
        },
        "postCount": n,
        "totalComments": int(comments),
        "postScore": int(post_score),
        "urgencyHits": urgency_hits,
    }


def model_candidates(payload: Optional[Mapping[str, Any]]) -> Optional[Dict[str, float]]:
    """The model's own breakdown, clamped per dimension. None without a model payload."""
    if not isinstance(payload, Mapping):
        return None
    breakdown = payload.get("breakdown")
    if not isinstance(breakdown, Mapping):
        return None
    return {
        name: clamp(_field(breakdown, name, maximum / 2), 0, maximum)
        for name, maximum in PROBLEM_DEFINITION_MAXIMA.items()
    }


def aggregate_problem_definition(results: Sequence[SourceResult]) -> Aggregate:
    """
    Clarity, evidence, urgency and frequency.

    Each dimension is the mean of the discussion heuristic and the model's
    breakdown, whichever are available; with neither it sits at half its max.
    """
    discussion = _payload(results, "discussion_search")
    model_result = _find(results, "model_analysis")
    model_payload = model_result.payload if model_result is not None else None

    heuristic = discussion_heuristic(discussion)
    model = model_candidates(model_payload)

    metrics: Dict[str, MetricEstimate] = {}
    for name, maximum in PROBLEM_DEFINITION_MAXIMA.items():
        candidates: List[float] = []
        if heuristic is not None:
            candidates.append(heuristic["scores"][name])
        if model is not None:
            candidates.append(model[name])

        score = sum(candidates) / len(candidates) if candidates else maximum / 2
        metrics[name] = MetricEstimate(
            value=score,
            score=clamp(score, 0, maximum),
            max_score=maximum,
            details={
                "discussionEstimate": heuristic["scores"][name] if heuristic else None,
                "modelEstimate": model[name] if model else None,
                "candidates": len(candidates),
            },
        )

    breakdown = {name: round(metric.score, 1) for name, metric in metrics.items()}

    post_count = heuristic["postCount"] if heuristic else 0
    total_comments = heuristic["totalComments"] if heuristic else 0
    urgency_hits = heuristic["urgencyHits"] if heuristic else 0
    channels = discussion.get("channelsSearched") or []
    reasoning = (
        f"Analyzed {post_count} relevant discussions across {len(channels)} channels. "
        f"Found {total_comments} comments and {urgency_hits} urgency indicators."
    )
    if model_result is not None and model_result.succeeded and isinstance(model_payload, Mapping):
        model_reasoning = model_payload.get("reasoning")
        if isinstance(model_reasoning, str) and model_reasoning.strip():
            reasoning = f"{reasoning} {model_reasoning.strip()}"

    extras: Dict[str, Any] = {}
    if isinstance(model_payload, Mapping):
        extras["insights"] = {
            key: list(model_payload.get(key) or [])
            for key in ("painPoints", "targetCustomers", "recommendations")
        }
    posts = discussion.get("posts")
    if isinstance(posts, (list, tuple)):
        extras["topDiscussions"] = [
            {key: post.get(key) for key in ("title", "score", "commentCount", "channel", "url")}
            for post in list(posts)[:5]
            if isinstance(post, Mapping)
        ]

    return Aggregate(
        score=_score_sum(breakdown),
        breakdown=breakdown,
        metrics=metrics,
        confidence=compute_confidence(results),
        reasoning=reasoning,
        sources=_sources(results),
        extras=extras,
    )


# ============================================
# COMPETITOR RESEARCH
# ============================================

def competitor_breakdowns(payload: Mapping[str, Any]) -> List[Mapping[str, Any]]:
    """Breakdowns of every analyzed competitor that has one."""
    competitors = payload.get("competitors")
    if not isinstance(competitors, (list, tuple)):
        return []
    breakdowns = []
    for competitor in competitors:
        analysis = competitor.get("analysis") if isinstance(competitor, Mapping) else None
        breakdown = analysis.get("breakdown") if isinstance(analysis, Mapping) else None
        if isinstance(breakdown, Mapping):
            breakdowns.append(breakdown)
    return breakdowns


def aggregate_competitor_research(results: Sequence[SourceResult]) -> Aggregate:
    """
    Headline score from the landscape analysis; breakdown from the competitors.

    The score is the landscape's 0-10 attractiveness of entering the market.
    Each breakdown dimension is the mean strength of the analyzed competitors
    on that dimension, or half its max when none were analyzed.
    """
    discovery = _payload(results, "competitor_discovery")
    analysis = _payload(results, "competitor_analysis")
    landscape_result = _find(results, "landscape_analysis")
    landscape = _payload(results, "landscape_analysis")

    breakdowns = competitor_breakdowns(analysis)
    metrics: Dict[str, MetricEstimate] = {}
    for name, maximum in COMPETITOR_MAXIMA.items():
        values = [
            clamp(number, 0, maximum)
            for number in (_as_number(b.get(name)) for b in breakdowns)
            if number is not None
        ]
        mean = sum(values) / len(values) if values else maximum / 2
        metrics[name] = MetricEstimate(
            value=mean,
            score=clamp(mean, 0, maximum),
            max_score=maximum,
            details={"competitorsScored": len(values)},
        )

    breakdown = {name: round(metric.score, 1) for name, metric in metrics.items()}
    score = round(clamp(_field(landscape, "score", 5.0), 0, 10), 1)

    discovered = [c for c in discovery.get("competitors") or [] if isinstance(c, Mapping)]
    analyzed = [c for c in analysis.get("competitors") or [] if isinstance(c, Mapping)]
    reasoning = (
        f"Identified {len(discovered)} competitors "
        f"({'model discovery' if discovery.get('discoveredBy') == 'model' else 'known competitor list'}) "
        f"and analyzed {len(analyzed)} of them."
    )
    if landscape_result is not None and landscape_result.succeeded:
        landscape_reasoning = landscape.get("reasoning")
        if isinstance(landscape_reasoning, str) and landscape_reasoning.strip():
            reasoning = f"{reasoning} {landscape_reasoning.strip()}"

    extras = {
        "competitors": analyzed,
        "discoveredCompetitors": [c.get("name") for c in discovered],
        "landscape": {
            key: landscape.get(key) or {}
            for key in ("marketStructure", "dynamics", "opportunity", "defensibility")
        },
    }

    return Aggregate(
        score=score,
        breakdown=breakdown,
        metrics=metrics,
        confidence=compute_confidence(results),
        reasoning=reasoning,
        sources=_sources(results),
        extras=extras,
    )


AGGREGATORS = {
    AnalysisKind.MARKET_SIZE: aggregate_market_size,
    AnalysisKind.PROBLEM_DEFINITION: aggregate_problem_definition,
    AnalysisKind.COMPETITOR_RESEARCH: aggregate_competitor_research,
}


def aggregate(kind: AnalysisKind, results: Sequence[SourceResult]) -> Aggregate:
    return AGGREGATORS[AnalysisKind(kind)](results)
