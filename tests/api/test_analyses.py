"""
Tests for the analysis endpoints.
"""
import pytest
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock, MagicMock

from src.api.main import create_app
from src.models.analysis import AnalysisKind, AnalysisRecord, AnalysisStatus
from src.utils.errors import AnalysisTimeoutError, PersistenceError


def completed_market_record() -> AnalysisRecord:
    return AnalysisRecord(
        analysis_id="ms_1700000000000_abc123def",
        kind=AnalysisKind.MARKET_SIZE,
        status=AnalysisStatus.COMPLETED,
        business_idea="football socks",
        score=6.9,
        breakdown={"tam": 3.0, "sam": 2.7, "som": 0.2, "growth": 1.0},
        confidence=0.5,
        reasoning="Market analysis based on Census data.",
        sources={"population_income": False, "connectivity": False, "business_survey": False},
    )


@pytest.fixture
def mock_orchestrator():
    orchestrator = MagicMock()
    orchestrator.run_market_size = AsyncMock(return_value=completed_market_record())
    orchestrator.submit_problem_definition = AsyncMock(return_value=AnalysisRecord(
        analysis_id="pd_1700000000000_abc123def",
        kind=AnalysisKind.PROBLEM_DEFINITION,
        business_idea="football socks",
    ))
    orchestrator.submit_competitor_research = AsyncMock(return_value=AnalysisRecord(
        analysis_id="comp_1700000000000_abc123def",
        kind=AnalysisKind.COMPETITOR_RESEARCH,
        business_idea="football socks",
    ))
    orchestrator.get_analysis = AsyncMock(return_value=None)
    return orchestrator


@pytest.fixture
def client(settings, mock_orchestrator):
    """Client over a fresh app; the lifespan is not run, state is set directly."""
    app = create_app(settings)
    app.state.orchestrator = mock_orchestrator
    return TestClient(app)


class TestMarketSize:

    def test_returns_completed_record(self, client, mock_orchestrator):
        response = client.post("/agents/market-size", json={"businessIdea": "  football socks  "})

        assert response.status_code == 200
        data = response.json()
        assert data["analysisId"] == "ms_1700000000000_abc123def"
        assert data["status"] == "completed"
        assert data["breakdown"]["sam"] == 2.7
        assert data["sources"]["connectivity"] is False

        request = mock_orchestrator.run_market_size.await_args.args[0]
        assert request.business_idea == "football socks"

    @pytest.mark.parametrize("body", [{}, {"businessIdea": ""}, {"businessIdea": "   "}, {"businessIdea": 42}])
    def test_missing_idea_is_400_without_upstream_calls(self, client, mock_orchestrator, body):
        response = client.post("/agents/market-size", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "Missing required parameter: businessIdea"}
        mock_orchestrator.run_market_size.assert_not_awaited()

    def test_invalid_json_is_400(self, client, mock_orchestrator):
        response = client.post(
            "/agents/market-size",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        mock_orchestrator.run_market_size.assert_not_awaited()

    def test_timeout_is_504(self, client, mock_orchestrator):
        mock_orchestrator.run_market_size.side_effect = AnalysisTimeoutError("market data fetch", 25)

        response = client.post("/agents/market-size", json={"businessIdea": "football socks"})

        assert response.status_code == 504
        assert response.json() == {
            "error": "Analysis timed out",
            "message": "market data fetch timed out after 25s",
            "type": "timeout",
        }

    def test_unexpected_error_is_500(self, client, mock_orchestrator):
        mock_orchestrator.run_market_size.side_effect = ValueError("bad aggregate")

        response = client.post("/agents/market-size", json={"businessIdea": "football socks"})

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Internal server error"
        assert data["type"] == "ValueError"


class TestProblemDefinition:

    def test_returns_202_with_analysis_id(self, client, mock_orchestrator):
        response = client.post("/agents/problem-definition", json={"businessIdea": "football socks"})

        assert response.status_code == 202
        data = response.json()
        assert data["analysisId"] == "pd_1700000000000_abc123def"
        assert data["status"] == "in_progress"
        assert data["businessIdea"] == "football socks"
        assert "createdAt" in data
        assert "/analyses/" in data["message"]

    def test_missing_idea_is_400(self, client, mock_orchestrator):
        response = client.post("/agents/problem-definition", json={"idea": "football socks"})

        assert response.status_code == 400
        mock_orchestrator.submit_problem_definition.assert_not_awaited()

    def test_submit_failure_is_500(self, client, mock_orchestrator):
        mock_orchestrator.submit_problem_definition.side_effect = RuntimeError("queue closed")

        response = client.post("/agents/problem-definition", json={"businessIdea": "football socks"})

        assert response.status_code == 500
        assert response.json()["type"] == "RuntimeError"


class TestCompetitorResearch:

    def test_returns_202_with_known_competitors(self, client, mock_orchestrator):
        response = client.post("/agents/competitor-research", json={"businessIdea": " football socks "})

        assert response.status_code == 202
        data = response.json()
        assert data["analysisId"] == "comp_1700000000000_abc123def"
        assert data["status"] == "in_progress"
        assert [c["name"] for c in data["knownCompetitors"]] == ["Nike", "Adidas", "Under Armour"]
        assert data["knownCompetitors"][0]["priceRange"] == "$12-$25"

        request = mock_orchestrator.submit_competitor_research.await_args.args[0]
        assert request.business_idea == "football socks"

    def test_blank_idea_is_400(self, client, mock_orchestrator):
        response = client.post("/agents/competitor-research", json={"businessIdea": "   "})

        assert response.status_code == 400
        mock_orchestrator.submit_competitor_research.assert_not_awaited()

    def test_submit_failure_is_500(self, client, mock_orchestrator):
        mock_orchestrator.submit_competitor_research.side_effect = RuntimeError("queue closed")

        response = client.post("/agents/competitor-research", json={"businessIdea": "football socks"})

        assert response.status_code == 500


class TestGetAnalysis:

    def test_found(self, client, mock_orchestrator):
        mock_orchestrator.get_analysis.return_value = completed_market_record()

        response = client.get("/analyses/ms_1700000000000_abc123def")

        assert response.status_code == 200
        assert response.json()["score"] == 6.9
        mock_orchestrator.get_analysis.assert_awaited_once_with("ms_1700000000000_abc123def")

    def test_not_found(self, client):
        response = client.get("/analyses/ms_0_missing")

        assert response.status_code == 404
        assert "ms_0_missing" in response.json()["error"]

    def test_store_error_is_500(self, client, mock_orchestrator):
        mock_orchestrator.get_analysis.side_effect = PersistenceError("get failed")

        response = client.get("/analyses/ms_1700000000000_abc123def")

        assert response.status_code == 500
        assert response.json()["type"] == "PersistenceError"


class TestServiceNotReady:

    def test_orchestrator_missing_is_503(self, settings):
        client = TestClient(create_app(settings))

        response = client.post("/agents/market-size", json={"businessIdea": "football socks"})

        assert response.status_code == 503


class TestCors:

    def test_preflight_allows_frontend_origin(self, client):
        response = client.options(
            "/agents/market-size",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_preflight_rejects_unknown_origin(self, client):
        response = client.options(
            "/agents/market-size",
            headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
        )

        assert "access-control-allow-origin" not in response.headers
