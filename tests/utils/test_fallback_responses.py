"""
Tests for fallback values used when sources degrade.
"""
from src.utils.fallback_responses import (
    FALLBACK_PAYLOADS,
    fallback_payload,
    get_fallback_landscape_payload,
    get_fallback_problem_analysis,
    get_fallback_problem_payload,
    get_known_competitors,
)


class TestFallbackPayloads:

    def test_population_income_constants(self):
        payload = fallback_payload("population_income")

        assert payload["population"] == 331_000_000
        assert payload["medianIncome"] == 67_521
        assert payload["addressableValue"] == 331_000_000 * 67_521 / 1_000_000

    def test_copies_are_independent(self):
        first = fallback_payload("discussion_search")
        first["posts"].append({"title": "x"})

        assert fallback_payload("discussion_search")["posts"] == []
        assert FALLBACK_PAYLOADS["discussion_search"]["posts"] == ()

    def test_unknown_source_is_empty(self):
        assert fallback_payload("model_analysis") == {}


class TestNeutralProblemAnalysis:

    def test_neutral_scores(self):
        analysis = get_fallback_problem_analysis()

        assert analysis.score == 5.0
        assert analysis.confidence == 0.5
        assert analysis.breakdown.clarity == 1.5
        assert analysis.breakdown.evidence == 1.5
        assert analysis.breakdown.urgency == 1.0
        assert analysis.breakdown.frequency == 1.0

    def test_payload_uses_camel_case_lists(self):
        payload = get_fallback_problem_payload()

        assert payload["painPoints"] == []
        assert payload["targetCustomers"] == []
        assert payload["breakdown"]["clarity"] == 1.5


class TestCompetitorFallbacks:

    def test_known_competitors_direct_first(self):
        known = get_known_competitors()

        assert [(c.name, c.category) for c in known] == [
            ("Nike", "direct"), ("Adidas", "direct"), ("Under Armour", "indirect"),
        ]
        assert known[0].strengths[0] == "Brand recognition"

    def test_known_competitors_are_fresh_copies(self):
        get_known_competitors()[0].products.append("x")

        assert "x" not in get_known_competitors()[0].products

    def test_neutral_landscape(self):
        payload = get_fallback_landscape_payload()

        assert payload["score"] == 5.0
        assert payload["confidence"] == 0.5
        assert payload["marketStructure"]["concentration"] == "Unknown"
        assert payload["defensibility"]["moats"] == ["Unknown"]
