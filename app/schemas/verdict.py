"""
============================================================================
Project Sim Steward v1.0.0
Verdict Schema - Pydantic Models for the Verdict Envelope
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: Fault split must sum to exactly 100
Side Effects: None (pure validation)

STRUCTURAL MANDATE:
- Party B fault is always derived as 100 - party A, never computed alone
- Fault values are rendered as percentage strings ("72%")
- Every response, including the 500 envelope, is a fully shaped verdict
- JSON field names are camelCase on the wire

============================================================================
"""

import re
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


# ============================================================================
# CONSTANTS
# ============================================================================

PERCENT_PATTERN = re.compile(r"^\s*(-?\d+)\s*%?\s*$")

TOTAL_FAULT = 100


# ============================================================================
# ENUMS
# ============================================================================

class ConfidenceLabel(str, Enum):
    """
    Discrete confidence labels attached to a verdict.

    Reliability Level: STEWARD TIER

    NOT_AVAILABLE is reserved for the degraded 500 envelope; the
    confidence estimator never produces it.
    """
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    VERY_HIGH = "VeryHigh"
    HUMAN_OVERRIDE = "HumanOverride"
    NOT_AVAILABLE = "N/A"


# ============================================================================
# HELPERS
# ============================================================================

def format_percent(value: int) -> str:
    """Render an integer percentage as "NN%"."""
    return f"{int(value)}%"


def parse_percent(value) -> Optional[int]:
    """
    Parse a percentage into an integer.

    Accepts ints and strings like "72", "72%", " 72 % ". Rejects booleans,
    fractional values and anything non-numeric by returning None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        match = PERCENT_PATTERN.match(value)
        if match:
            return int(match.group(1))
    return None


# ============================================================================
# VERDICT MODELS
# ============================================================================

class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        use_enum_values=False,
    )


class FaultSplit(_CamelModel):
    """
    Fault split between the two parties.

    Reliability Level: STEWARD TIER
    Input Constraints: party_a + party_b == 100
    Side Effects: None
    """
    party_a: str = Field(..., description="Party A fault, e.g. '72%'")
    party_b: str = Field(..., description="Party B fault, e.g. '28%'")

    @model_validator(mode="after")
    def validate_sum(self) -> "FaultSplit":
        """Reject splits that do not sum to exactly 100."""
        a = parse_percent(self.party_a)
        b = parse_percent(self.party_b)
        if a is None or b is None:
            raise ValueError(
                f"[STW-VER-001] Fault values must be integer percentages. "
                f"Received: {self.party_a!r} / {self.party_b!r}"
            )
        if a + b != TOTAL_FAULT:
            raise ValueError(
                f"[STW-VER-002] Fault split must sum to {TOTAL_FAULT}. "
                f"Received: {a} + {b} = {a + b}"
            )
        return self

    @classmethod
    def from_party_a(cls, value_a: int) -> "FaultSplit":
        """Build a split where party B is derived as 100 - party A."""
        return cls(
            party_a=format_percent(value_a),
            party_b=format_percent(TOTAL_FAULT - int(value_a)),
        )

    @property
    def value_a(self) -> int:
        return parse_percent(self.party_a)

    @property
    def value_b(self) -> int:
        return parse_percent(self.party_b)


class SpotterAdvice(_CamelModel):
    """Spotter call guidance for both roles."""
    overtaker: str
    defender: str


class Verdict(_CamelModel):
    """
    Structured steward verdict.

    Reliability Level: STEWARD TIER (Verdict-Critical)
    Input Constraints: Valid FaultSplit, known confidence label
    Side Effects: None

    The structured fields (fault, confidence, car_identification) are the
    guaranteed part of the contract; the narrative fields are best-effort.
    """
    rule: str
    fault: FaultSplit
    car_identification: str
    explanation: str
    pro_tip: str
    confidence: ConfidenceLabel
    overtake_tip: Optional[str] = None
    defend_tip: Optional[str] = None
    spotter_advice: Optional[SpotterAdvice] = None

    def to_response(self) -> dict:
        """Serialize to the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RankedMatchOut(_CamelModel):
    """Wire representation of a ranked precedent match."""
    title: str
    reason: str
    ruling: str
    fault_pct_driver_a: Optional[str] = None
    score: float


class VerdictResponse(_CamelModel):
    """
    Envelope returned by the analyze endpoint for both 200 and 500.

    Reliability Level: STEWARD TIER
    """
    verdict: Verdict
    matches: List[RankedMatchOut] = Field(default_factory=list)

    def to_response(self) -> dict:
        """Serialize to the camelCase wire format."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# DEGRADED ENVELOPE
# ============================================================================

def build_error_verdict(message: str) -> Verdict:
    """
    Build the degraded verdict returned with a 500 response.

    The fault pair stays 50/50 so the sum-to-100 invariant holds even on
    the error path.
    """
    return Verdict(
        rule="Error",
        fault=FaultSplit.from_party_a(50),
        car_identification="Unavailable",
        explanation=f"Server error: {message}",
        pro_tip="Please retry the analysis in a moment.",
        confidence=ConfidenceLabel.NOT_AVAILABLE,
    )


# ============================================================================
# END OF VERDICT SCHEMA
# ============================================================================
