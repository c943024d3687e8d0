"""
============================================================================
Project Sim Steward v1.0.0
Integration Test: Verdict API Endpoint
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: FastAPI TestClient, fixture dataset
Side Effects: None (no network, dataset injected)

COVERAGE:
- 200 verdict envelope for the documented examples
- 400 for malformed JSON and failed validation
- 500 degraded envelope when the dataset is unreadable
- Legacy form field names
- Health endpoint status
- Degraded envelope from the global exception handler

============================================================================
"""

from typing import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api.verdict import router as verdict_router
from app.logic.precedent_retriever import PrecedentRecord
from services.precedent_store import PrecedentDatasetError, PrecedentStore
from services.verdict_service import VerdictService, get_verdict_service


# ============================================================================
# Test App Setup
# ============================================================================

FIXTURE_DATASET = (
    PrecedentRecord("Dive at Monza", "Car A braked late", "Car A at fault", "80"),
    PrecedentRecord("Dive at Spa", "Lunge from too far back", "Car A at fault", "85%"),
    PrecedentRecord("Dive at Imola", "Locked up into Car B", "Car A penalised", "78"),
    PrecedentRecord("Dive at Suzuka", "Late move into the hairpin", "Car A at fault", "85"),
    PrecedentRecord("Weave on the straight", "Car B block in the draft", "Car B at fault", "20"),
)


def create_test_app() -> FastAPI:
    """Create FastAPI test application with the verdict router."""
    app = FastAPI(title="Verdict API Test")
    app.include_router(verdict_router, prefix="/api")
    return app


def make_service(loader=lambda path: FIXTURE_DATASET) -> VerdictService:
    return VerdictService(store=PrecedentStore("fixture.csv", loader=loader))


@pytest.fixture
def client() -> Iterator[TestClient]:
    app = create_test_app()
    service = make_service()
    app.dependency_overrides[get_verdict_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def broken_client() -> Iterator[TestClient]:
    def broken(path):
        raise PrecedentDatasetError("Dataset unreadable: bad bytes", path=path)

    app = create_test_app()
    service = make_service(loader=broken)
    app.dependency_overrides[get_verdict_service] = lambda: service
    with TestClient(app) as test_client:
        yield test_client


# ============================================================================
# 200 Responses
# ============================================================================

class TestAnalyzeSuccess:

    def test_divebomb_example(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={
            "categoryLabel": "Divebomb / Late lunge",
            "partyAIdentifier": "#12",
            "partyBIdentifier": "#7",
        })

        assert response.status_code == 200
        assert response.headers["X-Correlation-ID"]
        body = response.json()
        verdict = body["verdict"]
        assert verdict["fault"] == {"partyA": "72%", "partyB": "28%"}
        assert verdict["confidence"] == "VeryHigh"
        assert "#12" in verdict["carIdentification"]
        assert {"rule", "explanation", "proTip", "spotterAdvice"} <= set(verdict)
        assert len(body["matches"]) == 4
        assert body["matches"][0]["title"] == "Dive at Monza"
        assert body["matches"][0]["faultPctDriverA"] == "80"

    def test_no_precedent_example(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={
            "categoryLabel": "Racing incident (no fault)",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["verdict"]["fault"] == {"partyA": "57%", "partyB": "43%"}
        assert body["verdict"]["confidence"] == "Low"
        assert body["matches"] == []

    def test_override(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={
            "categoryLabel": "Divebomb / Late lunge",
            "overrideFaultA": "35",
        })

        assert response.status_code == 200
        verdict = response.json()["verdict"]
        assert verdict["fault"] == {"partyA": "35%", "partyB": "65%"}
        assert verdict["confidence"] == "HumanOverride"

    def test_legacy_field_names(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={
            "incidentType": "Divebomb / Late lunge",
            "carA": "#3",
            "carB": "#4",
        })

        assert response.status_code == 200
        assert "#3" in response.json()["verdict"]["carIdentification"]


# ============================================================================
# 400 Responses
# ============================================================================

class TestAnalyzeValidation:

    def test_override_out_of_range(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={
            "categoryLabel": "General contact",
            "overrideFaultA": 150,
        })

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "STW-VAL-003"
        assert body["details"]["validation_errors"]

    def test_missing_category_label(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={"stewardNotes": "Contact"})

        assert response.status_code == 400
        assert response.json()["error_code"].startswith("STW-VAL-")

    def test_blank_category_label(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={"categoryLabel": "  "})

        assert response.status_code == 400
        assert response.json()["error_code"] == "STW-VAL-001"

    def test_malformed_json(self, client: TestClient) -> None:
        response = client.post(
            "/api/analyze",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "STW-VAL-000"

    def test_non_object_json(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json=["Divebomb / Late lunge"])

        assert response.status_code == 400
        assert response.json()["error_code"] == "STW-VAL-000"


# ============================================================================
# 500 Responses
# ============================================================================

class TestAnalyzeDegraded:

    def test_dataset_error_returns_shaped_envelope(self, broken_client: TestClient) -> None:
        response = broken_client.post("/api/analyze", json={
            "categoryLabel": "Divebomb / Late lunge",
        })

        assert response.status_code == 500
        body = response.json()
        verdict = body["verdict"]
        assert verdict["fault"] == {"partyA": "50%", "partyB": "50%"}
        assert verdict["confidence"] == "N/A"
        assert verdict["explanation"].startswith("Server error:")
        assert body["matches"] == []


# ============================================================================
# Health
# ============================================================================

class TestHealth:

    def test_health_reports_dataset(self) -> None:
        from app.main import app

        service = make_service()
        service.preload()
        app.dependency_overrides[get_verdict_service] = lambda: service
        try:
            response = TestClient(app).get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["components"]["dataset"]["status"] == "loaded"


# ============================================================================
# Unhandled Errors
# ============================================================================

class TestUnhandledErrors:

    def test_failing_service_factory_returns_degraded_envelope(self) -> None:
        from app.main import app

        def failing_factory():
            raise RuntimeError("service construction failed")

        app.dependency_overrides[get_verdict_service] = failing_factory
        try:
            client = TestClient(app, raise_server_exceptions=False)
            response = client.post("/api/analyze", json={"categoryLabel": "General contact"})
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert response.headers["X-Correlation-ID"]
        body = response.json()
        verdict = body["verdict"]
        assert verdict["fault"] == {"partyA": "50%", "partyB": "50%"}
        assert verdict["confidence"] == "N/A"
        assert "RuntimeError" in verdict["explanation"]
        assert body["matches"] == []
