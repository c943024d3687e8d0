"""
Incident Fault Resolution - Baseline Verdict Builder

Assembles the fully deterministic verdict from the engine's outputs. The
baseline is both the grounding for the narrative prompt and the fallback
target for every field the narrative service fails to supply.

Reliability Level: STEWARD TIER
Side Effects: None
"""

from typing import Optional, Sequence

from app.logic.incident_classifier import (
    CanonicalIncidentKey,
    DISPLAY_NAMES,
    get_roles,
)
from app.logic.precedent_retriever import RankedMatch
from app.logic.rule_book import DEFAULT_RULE_DESCRIPTION, StewardRule, coaching_for
from app.schemas.verdict import (
    ConfidenceLabel,
    FaultSplit,
    SpotterAdvice,
    Verdict,
)


def describe_party(label: str, identifier: Optional[str], role: str) -> str:
    if identifier:
        return f"{label} ({identifier}): {role}."
    return f"{label}: {role}."


def build_car_identification(
    key: CanonicalIncidentKey,
    party_a_identifier: Optional[str] = None,
    party_b_identifier: Optional[str] = None,
) -> str:
    """Render both parties with their category roles."""
    role_a, role_b = get_roles(key)
    return " ".join((
        describe_party("Car A", party_a_identifier, role_a),
        describe_party("Car B", party_b_identifier, role_b),
    ))


def build_explanation(
    key: CanonicalIncidentKey,
    fault: FaultSplit,
    matches: Sequence[RankedMatch],
    used_override: bool,
) -> str:
    """Deterministic explanation used when no narrative is available."""
    category = DISPLAY_NAMES[key]
    if used_override:
        basis = "The fault split was set by a steward override."
    elif matches:
        basis = (
            f"The split is weighted toward {len(matches)} similar precedent "
            f"case(s) from the stewarding archive."
        )
    else:
        basis = (
            "No comparable precedent was found, so the split leans on the "
            "default prior."
        )
    return (
        f"Contact classified as {category}. "
        f"Car A is assessed at {fault.party_a} and Car B at {fault.party_b}. "
        f"{basis}"
    )


def build_baseline_verdict(
    key: CanonicalIncidentKey,
    fault_a: int,
    confidence: ConfidenceLabel,
    matches: Sequence[RankedMatch],
    rule: Optional[StewardRule] = None,
    party_a_identifier: Optional[str] = None,
    party_b_identifier: Optional[str] = None,
    used_override: bool = False,
) -> Verdict:
    """
    Build the baseline verdict.

    Reliability Level: STEWARD TIER
    Input Constraints: fault_a already clamped to [2, 98]
    Side Effects: None
    """
    fault = FaultSplit.from_party_a(fault_a)
    coaching = coaching_for(key)
    return Verdict(
        rule=rule.description if rule is not None else DEFAULT_RULE_DESCRIPTION,
        fault=fault,
        car_identification=build_car_identification(
            key, party_a_identifier, party_b_identifier
        ),
        explanation=build_explanation(key, fault, matches, used_override),
        pro_tip=coaching.pro_tip,
        confidence=confidence,
        overtake_tip=coaching.overtake_tip,
        defend_tip=coaching.defend_tip,
        spotter_advice=SpotterAdvice(
            overtaker=coaching.spotter_overtaker,
            defender=coaching.spotter_defender,
        ),
    )
