"""
Incident Fault Resolution - Confidence Estimator Module

Derives a discrete confidence label from the number of qualifying precedent
matches and whether a human override was used.

Policy (fixed, count based, independent of score magnitude):
    override used  -> HumanOverride
    matches >= 4   -> VeryHigh
    matches >= 2   -> High
    matches >= 1   -> Medium
    otherwise      -> Low

Reliability Level: STEWARD TIER
Traceability: All operations include correlation_id for audit
"""

from typing import Tuple
import logging

from app.schemas.verdict import ConfidenceLabel

# Configure module logger
logger = logging.getLogger(__name__)

# =============================================================================
# Constants
# =============================================================================

VERY_HIGH_MIN_MATCHES = 4
HIGH_MIN_MATCHES = 2
MEDIUM_MIN_MATCHES = 1

# Highest threshold first
CONFIDENCE_THRESHOLDS: Tuple[Tuple[int, ConfidenceLabel], ...] = (
    (VERY_HIGH_MIN_MATCHES, ConfidenceLabel.VERY_HIGH),
    (HIGH_MIN_MATCHES, ConfidenceLabel.HIGH),
    (MEDIUM_MIN_MATCHES, ConfidenceLabel.MEDIUM),
)

# Ordering used to compare labels (override ranks above evidence)
CONFIDENCE_RANK = {
    ConfidenceLabel.LOW: 0,
    ConfidenceLabel.MEDIUM: 1,
    ConfidenceLabel.HIGH: 2,
    ConfidenceLabel.VERY_HIGH: 3,
    ConfidenceLabel.HUMAN_OVERRIDE: 4,
}


def estimate_confidence(
    match_count: int,
    used_override: bool,
    correlation_id: str = "UNKNOWN",
) -> ConfidenceLabel:
    """
    Map evidence strength to a confidence label.

    Reliability Level: STEWARD TIER
    Input Constraints: match_count >= 0 (negative counts treated as 0)
    Side Effects: Debug log only

    Returns:
        ConfidenceLabel (never NOT_AVAILABLE)
    """
    if used_override:
        label = ConfidenceLabel.HUMAN_OVERRIDE
    else:
        label = ConfidenceLabel.LOW
        for minimum, candidate in CONFIDENCE_THRESHOLDS:
            if match_count >= minimum:
                label = candidate
                break

    logger.debug(
        f"[CONFIDENCE] Estimated | match_count={match_count} | "
        f"used_override={used_override} | label={label.value} | "
        f"correlation_id={correlation_id}"
    )
    return label
