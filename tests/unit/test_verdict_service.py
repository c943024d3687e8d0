"""
Unit Tests for the Verdict Service

Reliability Level: STEWARD TIER (Verdict-Critical)

Tests the end-to-end pipeline with an injected dataset, title resolver
and narrative generator:
- Documented fault and confidence examples
- Human override path and its locked fault
- Narrative enrichment, partial acceptance and failure fallback
- Title resolver failures keep the generic title
- Dataset errors propagate to the caller
"""

import asyncio
import json
import threading
from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from app.infra.narrative_client import NarrativeGenerator, NarrativeServiceError
from app.infra.title_resolver import TitleResolver
from app.logic.incident_classifier import CanonicalIncidentKey
from app.logic.precedent_retriever import PrecedentRecord
from app.schemas.incident import IncidentReportIn
from app.schemas.verdict import ConfidenceLabel
from services.precedent_store import PrecedentDatasetError, PrecedentStore
from services.steward_config import StewardConfig
from services.verdict_service import (
    NARRATIVE_SKIPPED,
    VerdictService,
    build_narrative_generator,
)


# =============================================================================
# Test Doubles
# =============================================================================

FIXTURE_DATASET = (
    PrecedentRecord("Dive at Monza", "Car A braked late", "Car A at fault", "80"),
    PrecedentRecord("Dive at Spa", "Lunge from too far back", "Car A at fault", "85%"),
    PrecedentRecord("Dive at Imola", "Locked up into Car B", "Car A penalised", "78"),
    PrecedentRecord("Dive at Suzuka", "Late move into the hairpin", "Car A at fault", "85"),
    PrecedentRecord("Weave on the straight", "Car B block in the draft", "Car B at fault", "20"),
    PrecedentRecord("Rain crash", "Aquaplaning on the kink", "No action", "50"),
)


class FakeNarrative(NarrativeGenerator):
    """Narrative generator returning a canned payload or raising."""

    def __init__(self, payload: str = "", error: Optional[Exception] = None, delay: float = 0.0):
        self.payload = payload
        self.error = error
        self.delay = delay
        self.prompts = []

    async def generate_narrative(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.payload


class FakeTitleResolver:
    """Title resolver double with a fixed answer."""

    def __init__(self, title: Optional[str]):
        self.title = title
        self.calls = []

    async def resolve(self, url, deadline, correlation_id="UNKNOWN"):
        self.calls.append(url)
        return self.title


def make_store(records=FIXTURE_DATASET) -> PrecedentStore:
    return PrecedentStore("fixture.csv", loader=lambda path: records)


def make_service(**kwargs) -> VerdictService:
    kwargs.setdefault("store", make_store())
    return VerdictService(**kwargs)


def report(**fields) -> IncidentReportIn:
    return IncidentReportIn.model_validate(fields)


# =============================================================================
# Test baseline pipeline
# =============================================================================

class TestBaselinePipeline:

    @pytest.mark.asyncio
    async def test_divebomb_with_four_precedents(self) -> None:
        service = make_service()
        outcome = await service.analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-e2e-1"
        )
        verdict = outcome.response.verdict

        assert outcome.canonical_key == CanonicalIncidentKey.DIVEBOMB
        assert verdict.fault.party_a == "72%"
        assert verdict.fault.party_b == "28%"
        assert verdict.confidence == ConfidenceLabel.VERY_HIGH
        assert len(outcome.response.matches) == 4
        assert outcome.narrative_outcome == NARRATIVE_SKIPPED
        assert outcome.title == "incident"

    @pytest.mark.asyncio
    async def test_no_matches_uses_default_prior(self) -> None:
        service = make_service()
        outcome = await service.analyze(
            report(categoryLabel="Racing incident (no fault)"), "test-e2e-2"
        )
        verdict = outcome.response.verdict

        assert verdict.fault.party_a == "57%"
        assert verdict.fault.party_b == "43%"
        assert verdict.confidence == ConfidenceLabel.LOW
        assert outcome.response.matches == []

    @pytest.mark.asyncio
    async def test_baseline_fields_are_populated(self) -> None:
        outcome = await make_service().analyze(
            report(
                categoryLabel="Divebomb / Late lunge",
                partyAIdentifier="#12",
                partyBIdentifier="#7",
            ),
            "test-fields",
        )
        verdict = outcome.response.verdict
        assert "#12" in verdict.car_identification
        assert "#7" in verdict.car_identification
        assert verdict.rule
        assert verdict.explanation
        assert verdict.spotter_advice is not None

    @pytest.mark.asyncio
    async def test_matches_wire_shape(self) -> None:
        outcome = await make_service().analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-wire"
        )
        body = outcome.response.to_response()
        first = body["matches"][0]
        assert first["title"] == "Dive at Monza"
        assert first["faultPctDriverA"] == "80"
        assert first["score"] == 15.0
        assert body["verdict"]["fault"] == {"partyA": "72%", "partyB": "28%"}

    @pytest.mark.asyncio
    async def test_missing_dataset_degrades_to_prior(self, tmp_path) -> None:
        service = make_service(store=PrecedentStore(str(tmp_path / "absent.csv")))
        outcome = await service.analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-missing"
        )
        assert outcome.response.verdict.fault.party_a == "57%"
        assert outcome.response.verdict.confidence == ConfidenceLabel.LOW

    @pytest.mark.asyncio
    async def test_dataset_error_propagates(self) -> None:
        def broken(path):
            raise PrecedentDatasetError("corrupt", path=path)

        service = make_service(store=PrecedentStore("broken.csv", loader=broken))
        with pytest.raises(PrecedentDatasetError):
            await service.analyze(report(categoryLabel="General contact"), "test-broken")

    @pytest.mark.asyncio
    async def test_dataset_read_runs_off_the_event_loop(self) -> None:
        loader_threads = []

        def loader(path):
            loader_threads.append(threading.get_ident())
            return FIXTURE_DATASET

        service = make_service(store=PrecedentStore("fixture.csv", loader=loader))
        outcome = await service.analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-thread"
        )
        assert outcome.response.verdict.fault.party_a == "72%"
        assert len(loader_threads) == 1
        assert loader_threads[0] != threading.get_ident()


# =============================================================================
# Test override path
# =============================================================================

class TestOverride:

    @pytest.mark.asyncio
    async def test_override_sets_fault_and_confidence(self) -> None:
        outcome = await make_service().analyze(
            report(categoryLabel="Divebomb / Late lunge", overrideFaultA=35),
            "test-override",
        )
        verdict = outcome.response.verdict
        assert verdict.fault.party_a == "35%"
        assert verdict.fault.party_b == "65%"
        assert verdict.confidence == ConfidenceLabel.HUMAN_OVERRIDE
        assert len(outcome.response.matches) == 4
        assert outcome.used_override is True

    @pytest.mark.asyncio
    async def test_override_is_clamped(self) -> None:
        outcome = await make_service().analyze(
            report(categoryLabel="General contact", overrideFaultA=100),
            "test-override-clamp",
        )
        assert outcome.response.verdict.fault.party_a == "98%"

    @pytest.mark.asyncio
    async def test_narrative_cannot_replace_override_fault(self) -> None:
        narrative = FakeNarrative(json.dumps({
            "fault": {"partyA": "60%", "partyB": "40%"},
            "explanation": "Narrative explanation.",
        }))
        outcome = await make_service(narrative=narrative).analyze(
            report(categoryLabel="Divebomb / Late lunge", overrideFaultA=35),
            "test-override-locked",
        )
        verdict = outcome.response.verdict
        assert verdict.fault.party_a == "35%"
        assert verdict.explanation == "Narrative explanation."
        assert outcome.reconciliation.rejected_fields["fault"] == "locked"


# =============================================================================
# Test title resolution
# =============================================================================

class TestTitle:

    @pytest.mark.asyncio
    async def test_resolved_title_drives_inference(self) -> None:
        resolver = FakeTitleResolver("Huge dive at Monza")
        outcome = await make_service(title_resolver=resolver).analyze(
            report(categoryLabel="Other", referenceUrl="https://youtu.be/abc"),
            "test-title",
        )
        assert outcome.title == "Huge dive at Monza"
        assert outcome.canonical_key == CanonicalIncidentKey.DIVEBOMB
        assert resolver.calls == ["https://youtu.be/abc"]

    @pytest.mark.asyncio
    async def test_manual_title_skips_resolver(self) -> None:
        resolver = FakeTitleResolver("Resolved title")
        outcome = await make_service(title_resolver=resolver).analyze(
            report(
                categoryLabel="General contact",
                referenceUrl="https://youtu.be/abc",
                manualTitle="Manual title",
            ),
            "test-manual-title",
        )
        assert outcome.title == "Manual title"
        assert resolver.calls == []

    @pytest.mark.asyncio
    async def test_unresolved_title_is_generic(self) -> None:
        resolver = FakeTitleResolver(None)
        outcome = await make_service(title_resolver=resolver).analyze(
            report(categoryLabel="General contact", referenceUrl="https://youtu.be/abc"),
            "test-no-title",
        )
        assert outcome.title == "incident"

    @pytest.mark.asyncio
    async def test_redirect_loop_keeps_generic_title(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        resolver = TitleResolver(transport=httpx.MockTransport(handler))
        resolver._async_sleep = AsyncMock()
        outcome = await make_service(title_resolver=resolver).analyze(
            report(
                categoryLabel="Divebomb / Late lunge",
                referenceUrl="https://www.youtube.com/watch?v=abc123",
            ),
            "test-redirect-loop",
        )
        assert outcome.title == "incident"
        assert outcome.response.verdict.fault.party_a == "72%"

    @pytest.mark.asyncio
    async def test_resolver_exception_keeps_generic_title(self) -> None:
        class ExplodingResolver:
            async def resolve(self, url, deadline, correlation_id="UNKNOWN"):
                raise RuntimeError("resolver crashed")

        outcome = await make_service(title_resolver=ExplodingResolver()).analyze(
            report(categoryLabel="General contact", referenceUrl="https://youtu.be/abc"),
            "test-resolver-crash",
        )
        assert outcome.title == "incident"


# =============================================================================
# Test narrative enrichment
# =============================================================================

class TestNarrative:

    @pytest.mark.asyncio
    async def test_valid_payload_is_accepted(self) -> None:
        narrative = FakeNarrative("```json\n" + json.dumps({
            "rule": "Rule 5",
            "fault": {"partyA": "60%", "partyB": "40%"},
            "explanation": "Car A lunged from too far back.",
        }) + "\n```")
        outcome = await make_service(narrative=narrative).analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-narrative"
        )
        verdict = outcome.response.verdict
        assert outcome.narrative_outcome == "accepted"
        assert verdict.fault.party_a == "60%"
        assert verdict.rule == "Rule 5"
        assert verdict.confidence == ConfidenceLabel.VERY_HIGH
        assert "72%" in narrative.prompts[0]

    @pytest.mark.asyncio
    async def test_bad_fault_is_partial(self) -> None:
        narrative = FakeNarrative(json.dumps({
            "fault": {"partyA": "70%", "partyB": "40%"},
            "explanation": "Only this field is usable.",
        }))
        outcome = await make_service(narrative=narrative).analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-partial"
        )
        verdict = outcome.response.verdict
        assert outcome.narrative_outcome == "partial"
        assert verdict.fault.party_a == "72%"
        assert verdict.explanation == "Only this field is usable."

    @pytest.mark.asyncio
    async def test_unparseable_payload_keeps_baseline(self) -> None:
        narrative = FakeNarrative("I am unable to judge this incident.")
        service = make_service(narrative=narrative)
        outcome = await service.analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-unparseable"
        )
        baseline = await make_service().analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-baseline"
        )
        assert outcome.narrative_outcome == "fallback"
        assert outcome.response.verdict == baseline.response.verdict

    @pytest.mark.asyncio
    async def test_service_error_falls_back(self) -> None:
        narrative = FakeNarrative(error=NarrativeServiceError("STW-NAR-002", "boom"))
        outcome = await make_service(narrative=narrative).analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-nar-error"
        )
        assert outcome.narrative_outcome == "fallback"
        assert outcome.response.verdict.fault.party_a == "72%"

    @pytest.mark.asyncio
    async def test_plain_network_error_falls_back(self) -> None:
        narrative = FakeNarrative(error=ConnectionError("narrative host unreachable"))
        baseline = await make_service().analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-nar-baseline"
        )
        outcome = await make_service(narrative=narrative).analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-nar-connection"
        )
        assert outcome.narrative_outcome == "fallback"
        assert outcome.reconciliation is None
        assert outcome.response.verdict == baseline.response.verdict
        assert outcome.response.verdict.fault.party_a == "72%"

    @pytest.mark.asyncio
    async def test_deadline_falls_back(self) -> None:
        narrative = FakeNarrative(payload="{}", delay=5.0)
        service = make_service(narrative=narrative, deadline_seconds=0.05)
        outcome = await service.analyze(
            report(categoryLabel="Divebomb / Late lunge"), "test-deadline"
        )
        assert outcome.narrative_outcome == "fallback"
        assert outcome.response.verdict.fault.party_a == "72%"


# =============================================================================
# Test factory
# =============================================================================

class TestFactory:

    def test_no_key_means_no_generator(self) -> None:
        assert build_narrative_generator(StewardConfig()) is None

    def test_disabled_means_no_generator(self) -> None:
        config = StewardConfig(narrative_api_key="key", narrative_enabled=False)
        assert build_narrative_generator(config) is None

    def test_key_builds_client(self) -> None:
        generator = build_narrative_generator(StewardConfig(narrative_api_key="key"))
        assert generator is not None
        assert generator.is_configured

    def test_status_reports_components(self) -> None:
        service = make_service()
        assert service.preload() == len(FIXTURE_DATASET)
        status = service.status()
        assert status["dataset"]["status"] == "loaded"
        assert status["narrative_configured"] is False
