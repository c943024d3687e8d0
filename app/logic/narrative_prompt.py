"""
Incident Fault Resolution - Narrative Prompt Builder

Builds the natural-language prompt sent to the narrative service. The prompt
is grounded entirely on the baseline verdict so the service only has to
phrase what the engine already decided.

Reliability Level: STEWARD TIER
Side Effects: None
"""

from typing import Optional, Sequence

from app.logic.fault_blender import FaultEstimate
from app.logic.incident_classifier import CanonicalIncidentKey, DISPLAY_NAMES
from app.logic.precedent_retriever import RankedMatch
from app.schemas.verdict import Verdict

GENERIC_TITLE = "incident"

# Precedents quoted in the prompt
MAX_PROMPT_PRECEDENTS = 3


# =============================================================================
# PROMPT TEMPLATE
# =============================================================================

NARRATIVE_PROMPT_TEMPLATE = """You are a neutral sim racing steward.

INCIDENT:
- Video: {video}
- Title: {title}
- Type: {incident_type}
- Confidence: {confidence}
- Rule: {rule}
- Fault: Car A {fault_a}, Car B {fault_b}
- Roles: {car_identification}
- Estimates: {estimates}
- Steward notes: {steward_notes}

SIMILAR PRECEDENTS:
{precedents}

Tone: calm, educational, no blame.
1. Quote the rule.
2. State the fault split exactly as given above.
3. Explain in 3-4 sentences.
4. Overtaking tip for Car A.
5. Defense tip for Car B.
6. Spotter advice for both drivers.

RETURN ONLY JSON in this exact shape:
{{"rule": "...", "fault": {{"partyA": "{fault_a}", "partyB": "{fault_b}"}}, "carIdentification": "...", "explanation": "...", "proTip": "...", "overtakeTip": "...", "defendTip": "...", "spotterAdvice": {{"overtaker": "...", "defender": "..."}}}}"""


def _format_title(title: Optional[str]) -> str:
    if not title or title == GENERIC_TITLE:
        return GENERIC_TITLE
    return f'"{title}"'


def _format_precedents(matches: Sequence[RankedMatch]) -> str:
    if not matches:
        return "- none found"
    lines = []
    for match in matches[:MAX_PROMPT_PRECEDENTS]:
        record = match.record
        fault = record.fault_pct_driver_a or "n/a"
        lines.append(f"- {record.title}: {record.ruling} (Car A fault {fault})")
    return "\n".join(lines)


def _format_estimates(estimates: Sequence[FaultEstimate]) -> str:
    if not estimates:
        return "none"
    return ", ".join(f"{e.source.value}={e.value_a}%" for e in estimates)


def build_narrative_prompt(
    baseline: Verdict,
    key: CanonicalIncidentKey,
    matches: Sequence[RankedMatch] = (),
    estimates: Sequence[FaultEstimate] = (),
    title: Optional[str] = None,
    reference_url: Optional[str] = None,
    steward_notes: Optional[str] = None,
) -> str:
    """Render the narrative prompt from the baseline verdict."""
    return NARRATIVE_PROMPT_TEMPLATE.format(
        video=reference_url or "not provided",
        title=_format_title(title),
        incident_type=DISPLAY_NAMES[key],
        confidence=baseline.confidence.value,
        rule=baseline.rule,
        fault_a=baseline.fault.party_a,
        fault_b=baseline.fault.party_b,
        car_identification=baseline.car_identification,
        estimates=_format_estimates(estimates),
        steward_notes=steward_notes or "none",
        precedents=_format_precedents(matches),
    )
