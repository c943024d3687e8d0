"""
Incident Fault Resolution - Fault Blender Module

This module combines independent fault estimates for party A into a single
bounded integer percentage.

Formula (no override):
    PrecedentEstimate = round_half_even(PrecedentAverage)
    FaultA = clamp(round_half_even(0.70 x PrecedentEstimate + 0.30 x 50), 2, 98)
    PrecedentAverage defaults to 60 when no match carries a parseable value.

    The average is rounded to a whole percent before blending, so there are
    two roundings: a mean of 82.5 becomes 82, then blends to 72 (a single
    final rounding of 72.75 would give 73).

Override path:
    FaultA = round(Override), nothing else contributes.

Both paths clamp to [2, 98]: the engine never asserts absolute fault.
Party B is always 100 - FaultA.

Rule-book and heuristic estimates are produced for diagnostics and prompt
grounding; they carry zero weight in the blend.

Reliability Level: STEWARD TIER
Decimal Integrity: All arithmetic uses decimal.Decimal with ROUND_HALF_EVEN
Traceability: All operations include correlation_id for audit
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from app.logic.incident_classifier import CanonicalIncidentKey
from app.logic.precedent_retriever import RankedMatch
from app.logic.rule_book import StewardRule, heuristic_fault_a

# Configure module logger
logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

# Blend weights (must sum to 1)
PRECEDENT_WEIGHT = Decimal("0.70")
PRIOR_WEIGHT = Decimal("0.30")

# Neutral prior: no evidence either way
NEUTRAL_PRIOR = Decimal("50")

# Precedent average when no match carries a parseable fault value
DEFAULT_PRECEDENT_FAULT = Decimal("60")

# Bounds on the final fault for party A
MIN_FAULT_A = 2
MAX_FAULT_A = 98

TOTAL_FAULT = 100

PRECISION_WHOLE = Decimal("1")


# =============================================================================
# Enums / Data Classes
# =============================================================================

class FaultSource(str, Enum):
    """Origin of a fault estimate."""
    OVERRIDE = "override"
    PRECEDENT = "precedent"
    RULE = "rule"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class FaultEstimate:
    """
    A single fault estimate for party A.

    Attributes:
        value_a: Integer fault for party A (0-100)
        source: Which signal produced it
        sample_size: Number of values behind a precedent estimate
        detail: Short human-readable provenance
    """
    value_a: int
    source: FaultSource
    sample_size: int = 0
    detail: str = ""

    def __post_init__(self) -> None:
        if not 0 <= self.value_a <= TOTAL_FAULT:
            raise ValueError(
                f"[STW-BLD-001] value_a must be 0-100, got {self.value_a}"
            )

    def to_dict(self) -> Dict[str, object]:
        return {
            "value_a": self.value_a,
            "source": self.source.value,
            "sample_size": self.sample_size,
            "detail": self.detail,
        }


# =============================================================================
# Helpers
# =============================================================================

def _round_whole(value: Decimal) -> int:
    return int(value.quantize(PRECISION_WHOLE, rounding=ROUND_HALF_EVEN))


def clamp_fault(value: int) -> int:
    """Clamp a fault percentage to [MIN_FAULT_A, MAX_FAULT_A]."""
    return max(MIN_FAULT_A, min(MAX_FAULT_A, value))


def split_fault(value_a: int) -> Tuple[int, int]:
    """Return (party A, party B); party B is derived, never computed alone."""
    return value_a, TOTAL_FAULT - value_a


def precedent_average(matches: Sequence[RankedMatch]) -> Tuple[Decimal, int]:
    """
    Mean fault over matches with a parseable value.

    Returns:
        (average, sample_size); (DEFAULT_PRECEDENT_FAULT, 0) when none parse
    """
    values = [m.record.fault_value for m in matches]
    valid = [v for v in values if v is not None]
    if not valid:
        return DEFAULT_PRECEDENT_FAULT, 0
    return sum(valid, Decimal("0")) / Decimal(len(valid)), len(valid)


# =============================================================================
# Estimators
# =============================================================================

def estimate_from_precedents(matches: Sequence[RankedMatch]) -> FaultEstimate:
    average, sample_size = precedent_average(matches)
    detail = (
        f"mean of {sample_size} precedent(s)" if sample_size
        else "default prior (no parseable precedent)"
    )
    return FaultEstimate(
        value_a=_round_whole(average),
        source=FaultSource.PRECEDENT,
        sample_size=sample_size,
        detail=detail,
    )


def estimate_from_rule(rule: Optional[StewardRule]) -> Optional[FaultEstimate]:
    if rule is None:
        return None
    return FaultEstimate(
        value_a=rule.fault_a,
        source=FaultSource.RULE,
        detail=rule.description,
    )


def estimate_from_heuristic(key: CanonicalIncidentKey) -> FaultEstimate:
    return FaultEstimate(
        value_a=heuristic_fault_a(key),
        source=FaultSource.HEURISTIC,
        detail=f"category default for {key.value}",
    )


def collect_estimates(
    matches: Sequence[RankedMatch],
    rule: Optional[StewardRule],
    key: CanonicalIncidentKey,
) -> List[FaultEstimate]:
    """Build the precedent, rule (when matched) and heuristic estimates."""
    estimates = [estimate_from_precedents(matches)]
    rule_estimate = estimate_from_rule(rule)
    if rule_estimate is not None:
        estimates.append(rule_estimate)
    estimates.append(estimate_from_heuristic(key))
    return estimates


# =============================================================================
# Blend
# =============================================================================

def blend(
    estimates: Sequence[FaultEstimate],
    override: Optional[Decimal] = None,
    correlation_id: str = "UNKNOWN",
) -> int:
    """
    Blend fault estimates into a bounded integer for party A.

    Reliability Level: STEWARD TIER
    Input Constraints:
        - estimates: any mix of FaultEstimate; only PRECEDENT contributes
        - override: Decimal in [0, 100] or None
    Side Effects: Logs the blend with correlation_id

    Returns:
        Integer fault for party A in [2, 98]
    """
    if override is not None:
        result = clamp_fault(_round_whole(Decimal(override)))
        logger.info(
            f"[BLENDER] Human override applied | "
            f"override={override} | "
            f"fault_a={result} | "
            f"correlation_id={correlation_id}"
        )
        return result

    precedent = next(
        (e for e in estimates if e.source == FaultSource.PRECEDENT), None
    )
    precedent_value = (
        Decimal(precedent.value_a) if precedent is not None
        else DEFAULT_PRECEDENT_FAULT
    )

    raw = precedent_value * PRECEDENT_WEIGHT + NEUTRAL_PRIOR * PRIOR_WEIGHT
    result = clamp_fault(_round_whole(raw))

    logger.info(
        f"[BLENDER] Fault blended | "
        f"precedent={precedent_value} | "
        f"raw={raw} | "
        f"fault_a={result} | "
        f"diagnostics={[e.to_dict() for e in estimates if e.source != FaultSource.PRECEDENT]} | "
        f"correlation_id={correlation_id}"
    )

    return result
