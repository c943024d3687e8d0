"""
============================================================================
Sim Steward - Verdict Service
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Traceability: Every stage logs with the request correlation_id

PIPELINE:
    1. Title        manual title, else title resolver, else "incident"
    2. Classifier   canonical incident key (inference for unknown labels)
    3. Retriever    top ranked precedents from the reference dataset
    4. Blender      bounded fault for party A (override wins)
    5. Confidence   label from match count / override
    6. Baseline     deterministic verdict
    7. Narrative    optional enrichment, reconciled field by field

FAILURE POLICY:
    - Title and narrative failures degrade locally, never abort
    - All outbound calls share one request deadline
    - PrecedentDatasetError propagates (the API answers 500 with a
      fully shaped degraded verdict)

============================================================================
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
import asyncio
import logging
import time

from app.infra.deadline import DeadlineExceeded, RequestDeadline
from app.infra.narrative_client import (
    GrokNarrativeClient,
    NarrativeGenerator,
    NarrativeServiceError,
)
from app.infra.title_resolver import TitleResolver
from app.logic.baseline_verdict import build_baseline_verdict
from app.logic.confidence_estimator import estimate_confidence
from app.logic.fault_blender import blend, collect_estimates
from app.logic.incident_classifier import CanonicalIncidentKey, resolve_category
from app.logic.narrative_prompt import GENERIC_TITLE, build_narrative_prompt
from app.logic.precedent_retriever import retrieve
from app.logic.rule_book import match_rule
from app.logic.verdict_reconciler import (
    FIELD_FAULT,
    OUTCOME_FALLBACK,
    ReconciliationResult,
    VerdictReconciler,
)
from app.observability.metrics import (
    record_narrative_outcome,
    record_precedent_matches,
    record_verdict_latency,
    record_verdict_request,
)
from app.schemas.incident import IncidentReportIn
from app.schemas.verdict import RankedMatchOut, Verdict, VerdictResponse
from services.precedent_store import PrecedentStore, get_precedent_store
from services.steward_config import StewardConfig, get_steward_config

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

NARRATIVE_SKIPPED = "skipped"

# Fields the narrative may never replace under a human override
OVERRIDE_LOCKED_FIELDS = frozenset({FIELD_FAULT})


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class VerdictOutcome:
    """
    Result of one analyze call.

    Attributes:
        response: Envelope returned to the client
        canonical_key: Resolved incident category
        title: Effective display title
        used_override: Whether a human override drove the fault
        narrative_outcome: accepted/partial/fallback/skipped
        reconciliation: Reconciler details when a payload was received
    """
    response: VerdictResponse
    canonical_key: CanonicalIncidentKey
    title: str
    used_override: bool
    narrative_outcome: str
    reconciliation: Optional[ReconciliationResult] = None

    def to_log_dict(self) -> Dict[str, Any]:
        verdict = self.response.verdict
        return {
            "canonical_key": self.canonical_key.value,
            "fault_a": verdict.fault.party_a,
            "confidence": verdict.confidence.value,
            "matches": len(self.response.matches),
            "narrative": self.narrative_outcome,
        }


# =============================================================================
# Verdict Service
# =============================================================================

class VerdictService:
    """
    Orchestrates the incident fault resolution pipeline.

    Reliability Level: STEWARD TIER (Verdict-Critical)
    Input Constraints: Validated IncidentReportIn
    Side Effects: Outbound title/narrative calls, metrics, logging

    The service holds no per-request state and is shared across requests.
    """

    def __init__(
        self,
        store: PrecedentStore,
        title_resolver: Optional[TitleResolver] = None,
        narrative: Optional[NarrativeGenerator] = None,
        reconciler: Optional[VerdictReconciler] = None,
        match_limit: int = 5,
        deadline_seconds: float = 15.0,
    ) -> None:
        self._store = store
        self._title_resolver = title_resolver
        self._narrative = narrative
        self._reconciler = reconciler or VerdictReconciler()
        self._match_limit = match_limit
        self._deadline_seconds = deadline_seconds

    @property
    def narrative_configured(self) -> bool:
        return self._narrative is not None

    def preload(self, correlation_id: str = "STARTUP") -> int:
        """Load the dataset ahead of the first request; returns record count."""
        return len(self._store.get_records(correlation_id))

    def status(self) -> Dict[str, Any]:
        """Component snapshot for the health endpoint."""
        return {
            "dataset": self._store.status(),
            "narrative_configured": self.narrative_configured,
            "match_limit": self._match_limit,
            "deadline_seconds": self._deadline_seconds,
        }

    async def analyze(
        self,
        report: IncidentReportIn,
        correlation_id: str,
    ) -> VerdictOutcome:
        """
        Produce a verdict for a validated incident report.

        Raises:
            PrecedentDatasetError: If the dataset exists but is unreadable
        """
        started = time.perf_counter()
        deadline = RequestDeadline(self._deadline_seconds)

        logger.info(
            f"[VERDICT-START] category_label={report.category_label} | "
            f"has_url={report.reference_url is not None} | "
            f"has_notes={report.steward_notes is not None} | "
            f"has_override={report.has_override} | "
            f"correlation_id={correlation_id}"
        )

        dataset = await asyncio.to_thread(self._store.get_records, correlation_id)

        title = await self._resolve_title(report, deadline, correlation_id)

        key = resolve_category(
            report.category_label,
            title=title if title != GENERIC_TITLE else None,
            steward_notes=report.steward_notes,
            correlation_id=correlation_id,
        )
        record_verdict_request(key.value, correlation_id)

        context_text, title_text = self._query_texts(report, title)
        matches = retrieve(
            dataset,
            key,
            context_text,
            limit=self._match_limit,
            title_text=title_text,
            correlation_id=correlation_id,
        )
        record_precedent_matches(len(matches))

        rule = match_rule(" ".join(
            t for t in (report.category_label, report.steward_notes, title) if t
        ))
        estimates = collect_estimates(matches, rule, key)
        fault_a = blend(estimates, report.override_fault_a, correlation_id)
        confidence = estimate_confidence(len(matches), report.has_override, correlation_id)

        baseline = build_baseline_verdict(
            key,
            fault_a,
            confidence,
            matches,
            rule=rule,
            party_a_identifier=report.party_a_identifier,
            party_b_identifier=report.party_b_identifier,
            used_override=report.has_override,
        )

        prompt = build_narrative_prompt(
            baseline,
            key,
            matches=matches,
            estimates=estimates,
            title=title,
            reference_url=report.reference_url,
            steward_notes=report.steward_notes,
        )
        verdict, narrative_outcome, reconciliation = await self._narrate(
            baseline, prompt, report.has_override, deadline, correlation_id
        )
        record_narrative_outcome(narrative_outcome, correlation_id)

        response = VerdictResponse(
            verdict=verdict,
            matches=[RankedMatchOut(**m.to_dict()) for m in matches],
        )

        outcome = VerdictOutcome(
            response=response,
            canonical_key=key,
            title=title,
            used_override=report.has_override,
            narrative_outcome=narrative_outcome,
            reconciliation=reconciliation,
        )

        elapsed = time.perf_counter() - started
        record_verdict_latency(elapsed)
        logger.info(
            f"[VERDICT-COMPLETE] {outcome.to_log_dict()} | "
            f"elapsed={elapsed:.3f}s | "
            f"correlation_id={correlation_id}"
        )

        return outcome

    @staticmethod
    def _query_texts(
        report: IncidentReportIn,
        title: str,
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Pick the retrieval query texts.

        Steward notes are the primary context; without notes the title is
        the context. The title is scored separately only next to notes and
        only when it is not the generic fallback.
        """
        if report.steward_notes:
            title_text = title if title != GENERIC_TITLE else None
            return report.steward_notes, title_text
        return (title if title != GENERIC_TITLE else None), None

    async def _resolve_title(
        self,
        report: IncidentReportIn,
        deadline: RequestDeadline,
        correlation_id: str,
    ) -> str:
        if report.manual_title:
            return report.manual_title
        if not report.reference_url or self._title_resolver is None:
            return GENERIC_TITLE

        try:
            title = await self._title_resolver.resolve(
                report.reference_url, deadline, correlation_id
            )
        except Exception as e:
            logger.warning(
                f"[VERDICT-TITLE-FALLBACK] Unexpected {type(e).__name__}: "
                f"{str(e)[:200]} | "
                f"correlation_id={correlation_id}"
            )
            return GENERIC_TITLE
        return title or GENERIC_TITLE

    async def _narrate(
        self,
        baseline: Verdict,
        prompt: str,
        used_override: bool,
        deadline: RequestDeadline,
        correlation_id: str,
    ) -> Tuple[Verdict, str, Optional[ReconciliationResult]]:
        """
        Enrich the baseline with the narrative service.

        Network, timeout and deadline failures are treated exactly like an
        unparseable payload: the baseline is returned. This holds for any
        exception a generator raises, not only NarrativeServiceError.
        """
        if self._narrative is None:
            return baseline, NARRATIVE_SKIPPED, None

        try:
            payload = await deadline.run(self._narrative.generate_narrative(prompt))
        except (NarrativeServiceError, DeadlineExceeded) as e:
            logger.warning(
                f"[VERDICT-NARRATIVE-FALLBACK] {e.error_code} {e.message} | "
                f"correlation_id={correlation_id}"
            )
            return baseline, OUTCOME_FALLBACK, None
        except Exception as e:
            logger.warning(
                f"[VERDICT-NARRATIVE-FALLBACK] Unexpected {type(e).__name__}: "
                f"{str(e)[:200]} | "
                f"correlation_id={correlation_id}"
            )
            return baseline, OUTCOME_FALLBACK, None

        locked = OVERRIDE_LOCKED_FIELDS if used_override else frozenset()
        result = self._reconciler.reconcile(
            baseline, payload, locked_fields=locked, correlation_id=correlation_id
        )
        return result.verdict, result.outcome, result


# =============================================================================
# Factory
# =============================================================================

def build_narrative_generator(config: StewardConfig) -> Optional[NarrativeGenerator]:
    """Build the narrative client, or None when narrative is not configured."""
    if not config.narrative_configured:
        return None
    return GrokNarrativeClient(
        api_key=config.narrative_api_key,
        model=config.narrative_model,
        url=config.narrative_url,
        timeout=config.request_deadline_seconds,
    )


def build_verdict_service(
    config: Optional[StewardConfig] = None,
    store: Optional[PrecedentStore] = None,
) -> VerdictService:
    """Wire a VerdictService from configuration."""
    config = config or get_steward_config()
    return VerdictService(
        store=store or get_precedent_store(config.dataset_path),
        title_resolver=TitleResolver(
            max_attempts=config.fetch_max_attempts,
            base_delay=config.fetch_backoff_seconds,
        ),
        narrative=build_narrative_generator(config),
        match_limit=config.match_limit,
        deadline_seconds=config.request_deadline_seconds,
    )


_service_instance: Optional[VerdictService] = None


def get_verdict_service() -> VerdictService:
    """Get the process-wide service, building it on first access."""
    global _service_instance

    if _service_instance is None:
        _service_instance = build_verdict_service()

    return _service_instance


def reset_verdict_service() -> None:
    """Reset the process-wide service (used by tests)."""
    global _service_instance
    _service_instance = None
