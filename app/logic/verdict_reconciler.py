"""
============================================================================
Project Sim Steward v1.0.0
Verdict Reconciler - Field-Level Merge of Narrative Output into the Baseline
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: Baseline Verdict + arbitrary external payload
Side Effects: Logging only

RECONCILIATION RULES:
- The external payload is a best-effort overlay, never a requirement
- Unparseable payload: the baseline is returned unmodified (not an error)
- Each field is validated on its own; a bad field falls back to the
  baseline without rejecting the rest of the payload
- The external fault pair is accepted only when both values parse as
  integers in [0, 100] and sum to exactly 100
- Confidence is engine-owned and never taken from the payload
- Locked fields (e.g. the fault pair under a human override) are never
  replaced

PAYLOAD FORMS ACCEPTED:
- dict
- JSON text, optionally wrapped in a ``` code fence
- prose with one embedded JSON object (first '{' to last '}')
- any of the above nested under a top-level "verdict" key

============================================================================
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from app.schemas.verdict import FaultSplit, SpotterAdvice, Verdict, parse_percent

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

FIELD_RULE = "rule"
FIELD_FAULT = "fault"
FIELD_CAR_IDENTIFICATION = "car_identification"
FIELD_EXPLANATION = "explanation"
FIELD_PRO_TIP = "pro_tip"
FIELD_OVERTAKE_TIP = "overtake_tip"
FIELD_DEFEND_TIP = "defend_tip"
FIELD_SPOTTER_ADVICE = "spotter_advice"
FIELD_CONFIDENCE = "confidence"

# Plain text fields and the payload keys that may carry them
TEXT_FIELDS: Dict[str, Tuple[str, ...]] = {
    FIELD_RULE: ("rule",),
    FIELD_CAR_IDENTIFICATION: ("carIdentification", "car_identification"),
    FIELD_EXPLANATION: ("explanation",),
    FIELD_PRO_TIP: ("proTip", "pro_tip"),
    FIELD_OVERTAKE_TIP: ("overtakeTip", "overtake_tip"),
    FIELD_DEFEND_TIP: ("defendTip", "defend_tip"),
}

FAULT_KEYS: Tuple[str, ...] = ("fault",)
PARTY_A_KEYS: Tuple[str, ...] = ("partyA", "party_a", "Car A", "carA")
PARTY_B_KEYS: Tuple[str, ...] = ("partyB", "party_b", "Car B", "carB")
SPOTTER_KEYS: Tuple[str, ...] = ("spotterAdvice", "spotter_advice")
CONFIDENCE_KEYS: Tuple[str, ...] = ("confidence",)

TOTAL_FAULT = 100

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z]*\s*(.*?)\s*```$", re.DOTALL)

# Outcome labels (also used as metric label values)
OUTCOME_ACCEPTED = "accepted"
OUTCOME_PARTIAL = "partial"
OUTCOME_FALLBACK = "fallback"


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class ReconciliationResult:
    """
    Outcome of a reconciliation.

    Attributes:
        verdict: The merged verdict
        parsed: Whether the payload parsed into an object at all
        accepted_fields: Fields taken from the payload
        rejected_fields: Field name -> reason it fell back to baseline
    """
    verdict: Verdict
    parsed: bool
    accepted_fields: List[str] = field(default_factory=list)
    rejected_fields: Dict[str, str] = field(default_factory=dict)

    @property
    def outcome(self) -> str:
        if not self.parsed or not self.accepted_fields:
            return OUTCOME_FALLBACK
        if self.rejected_fields:
            return OUTCOME_PARTIAL
        return OUTCOME_ACCEPTED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parsed": self.parsed,
            "outcome": self.outcome,
            "accepted_fields": list(self.accepted_fields),
            "rejected_fields": dict(self.rejected_fields),
        }


# =============================================================================
# Payload Parsing
# =============================================================================

def _unwrap_fence(text: str) -> str:
    match = _FENCE_PATTERN.match(text)
    return match.group(1) if match else text


def _loads_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_external_payload(payload: Any) -> Optional[Dict[str, Any]]:
    """
    Turn an arbitrary narrative payload into a dict, or None.

    Reliability Level: STEWARD TIER
    Input Constraints: Anything (total function)
    Side Effects: None
    """
    if payload is None:
        return None

    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError:
            return None

    if isinstance(payload, dict):
        parsed: Optional[Dict[str, Any]] = payload
    elif isinstance(payload, str):
        text = _unwrap_fence(payload.strip())
        parsed = _loads_object(text)
        if parsed is None:
            start = text.find("{")
            end = text.rfind("}")
            if start != -1 and end > start:
                parsed = _loads_object(text[start:end + 1])
    else:
        return None

    if parsed is None:
        return None

    nested = parsed.get("verdict")
    if isinstance(nested, dict):
        return nested
    return parsed


def _lookup(data: Dict[str, Any], keys: Tuple[str, ...]) -> Tuple[bool, Any]:
    for key in keys:
        if key in data:
            return True, data[key]
    return False, None


def _clean_text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


# =============================================================================
# Field Validators
# =============================================================================

def validate_fault(value: Any) -> Tuple[Optional[FaultSplit], str]:
    """
    Validate an external fault pair.

    Returns:
        (FaultSplit, "") when valid, else (None, reason)
    """
    if not isinstance(value, dict):
        return None, "fault is not an object"

    _, raw_a = _lookup(value, PARTY_A_KEYS)
    _, raw_b = _lookup(value, PARTY_B_KEYS)
    a = parse_percent(raw_a)
    b = parse_percent(raw_b)

    if a is None or b is None:
        return None, f"non-integer fault values {raw_a!r}/{raw_b!r}"
    if not (0 <= a <= TOTAL_FAULT and 0 <= b <= TOTAL_FAULT):
        return None, f"fault values out of range {a}/{b}"
    if a + b != TOTAL_FAULT:
        return None, f"fault values sum to {a + b}"

    return FaultSplit.from_party_a(a), ""


def validate_spotter_advice(
    value: Any,
    baseline: Optional[SpotterAdvice],
) -> Tuple[Optional[SpotterAdvice], str]:
    """
    Validate external spotter advice.

    A missing or blank role falls back to the baseline's role; without a
    baseline both roles are required.
    """
    if not isinstance(value, dict):
        return None, "spotterAdvice is not an object"

    overtaker = _clean_text(value.get("overtaker"))
    defender = _clean_text(value.get("defender"))

    if overtaker is None and defender is None:
        return None, "spotterAdvice has no usable roles"

    if baseline is not None:
        overtaker = overtaker or baseline.overtaker
        defender = defender or baseline.defender

    if overtaker is None or defender is None:
        return None, "spotterAdvice is incomplete"

    return SpotterAdvice(overtaker=overtaker, defender=defender), ""


# =============================================================================
# Reconciler
# =============================================================================

class VerdictReconciler:
    """
    Merges an external narrative payload into a baseline verdict.

    Reliability Level: STEWARD TIER (Verdict-Critical)
    Input Constraints: baseline must be a valid Verdict
    Side Effects: Logging only

    The reconciler holds no state between calls and is safe to share.
    """

    def reconcile(
        self,
        baseline: Verdict,
        payload: Any,
        locked_fields: FrozenSet[str] = frozenset(),
        correlation_id: str = "UNKNOWN",
    ) -> ReconciliationResult:
        """
        Reconcile a baseline with an external payload, field by field.

        Args:
            baseline: Deterministic verdict computed by the engine
            payload: Narrative output (dict, JSON text, prose, or None)
            locked_fields: Fields that must keep the baseline value
            correlation_id: Audit trail identifier

        Returns:
            ReconciliationResult with the merged verdict
        """
        data = parse_external_payload(payload)
        if data is None:
            logger.warning(
                f"[RECONCILER] Payload unparseable, using baseline | "
                f"payload_type={type(payload).__name__} | "
                f"correlation_id={correlation_id}"
            )
            return ReconciliationResult(verdict=baseline, parsed=False)

        updates: Dict[str, Any] = {}
        accepted: List[str] = []
        rejected: Dict[str, str] = {}

        for name, keys in TEXT_FIELDS.items():
            present, raw = _lookup(data, keys)
            if not present:
                continue
            if name in locked_fields:
                rejected[name] = "locked"
                continue
            text = _clean_text(raw)
            if text is None:
                rejected[name] = "not a non-empty string"
                continue
            updates[name] = text
            accepted.append(name)

        present, raw = _lookup(data, FAULT_KEYS)
        if present:
            if FIELD_FAULT in locked_fields:
                rejected[FIELD_FAULT] = "locked"
            else:
                split, reason = validate_fault(raw)
                if split is None:
                    rejected[FIELD_FAULT] = reason
                else:
                    updates[FIELD_FAULT] = split
                    accepted.append(FIELD_FAULT)

        present, raw = _lookup(data, SPOTTER_KEYS)
        if present:
            if FIELD_SPOTTER_ADVICE in locked_fields:
                rejected[FIELD_SPOTTER_ADVICE] = "locked"
            else:
                advice, reason = validate_spotter_advice(raw, baseline.spotter_advice)
                if advice is None:
                    rejected[FIELD_SPOTTER_ADVICE] = reason
                else:
                    updates[FIELD_SPOTTER_ADVICE] = advice
                    accepted.append(FIELD_SPOTTER_ADVICE)

        present, raw = _lookup(data, CONFIDENCE_KEYS)
        if present and raw != baseline.confidence.value:
            rejected[FIELD_CONFIDENCE] = "engine-owned"

        verdict = baseline.model_copy(update=updates) if updates else baseline
        result = ReconciliationResult(
            verdict=verdict,
            parsed=True,
            accepted_fields=accepted,
            rejected_fields=rejected,
        )

        log = logger.info if not rejected else logger.warning
        log(
            f"[RECONCILER] Payload reconciled | "
            f"outcome={result.outcome} | "
            f"accepted={accepted} | "
            f"rejected={rejected} | "
            f"correlation_id={correlation_id}"
        )

        return result


def reconcile(baseline: Verdict, payload: Any) -> Verdict:
    """Reconcile with no locked fields and return only the merged verdict."""
    return VerdictReconciler().reconcile(baseline, payload).verdict
