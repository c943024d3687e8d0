"""
============================================================================
Project Sim Steward v1.0.0
Incident Schema - Pydantic Models for Incident Report Validation
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: JSON body from the incident submission form
Side Effects: None (pure validation)

VALIDATION MANDATE:
- categoryLabel is required and must be non-empty
- overrideFaultA, when present, must parse to a finite number in [0, 100]
- referenceUrl, when present, must be an http(s) link
- Empty optional strings are treated as absent
- Legacy form field names (url, incidentType, carA, carB) are accepted

============================================================================
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


# ============================================================================
# CONSTANTS
# ============================================================================

# Inclusive bounds for a steward-supplied fault override
OVERRIDE_MIN = Decimal("0")
OVERRIDE_MAX = Decimal("100")

# Upper bound on free-text fields to keep prompts bounded
MAX_NOTES_LENGTH = 4000
MAX_LABEL_LENGTH = 120
MAX_IDENTIFIER_LENGTH = 80
MAX_TITLE_LENGTH = 300
MAX_URL_LENGTH = 2048


# ============================================================================
# CUSTOM VALIDATORS
# ============================================================================

def parse_override_fault(value: Any) -> Optional[Decimal]:
    """
    Parse a steward fault override into a bounded Decimal.

    Reliability Level: STEWARD TIER
    Input Constraints:
        - int, float, Decimal or numeric string
        - finite, within [0, 100]
        - booleans are rejected
    Side Effects: None

    Raises:
        ValueError: If the value is not a number in [0, 100]
    """
    if value is None:
        return None

    if isinstance(value, str) and not value.strip():
        return None

    if isinstance(value, bool):
        raise ValueError(
            f"[STW-VAL-002] overrideFaultA must be a number, received boolean {value}"
        )

    if not isinstance(value, (int, float, Decimal, str)):
        raise ValueError(
            f"[STW-VAL-002] overrideFaultA must be a number. "
            f"Received: {type(value).__name__}"
        )

    try:
        parsed = Decimal(str(value).strip().rstrip("%").strip())
    except InvalidOperation:
        raise ValueError(
            f"[STW-VAL-002] overrideFaultA is not a valid number. Received: {value!r}"
        )

    if not parsed.is_finite():
        raise ValueError(
            f"[STW-VAL-002] overrideFaultA must be finite. Received: {value!r}"
        )

    if parsed < OVERRIDE_MIN or parsed > OVERRIDE_MAX:
        raise ValueError(
            f"[STW-VAL-003] overrideFaultA must be between {OVERRIDE_MIN} and "
            f"{OVERRIDE_MAX}. Received: {parsed}"
        )

    return parsed


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


# ============================================================================
# INCIDENT REPORT INPUT SCHEMA
# ============================================================================

class IncidentReportIn(BaseModel):
    """
    Pydantic model for an incoming incident report.

    Reliability Level: STEWARD TIER
    Input Constraints:
        - categoryLabel: required, human-readable category
        - overrideFaultA: optional number in [0, 100]
    Side Effects: None (pure validation)

    The model is frozen: an incident report is immutable once received.
    """

    model_config = ConfigDict(
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "referenceUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                "categoryLabel": "Divebomb / Late lunge",
                "partyAIdentifier": "#12 M. Rossi",
                "partyBIdentifier": "#7 J. Smith",
                "stewardNotes": "Car A braked late into T1 and punted Car B",
                "manualTitle": "Late lunge at Monza T1",
            }
        },
    )

    reference_url: Optional[str] = Field(
        None,
        max_length=MAX_URL_LENGTH,
        validation_alias=AliasChoices("referenceUrl", "reference_url", "url"),
        serialization_alias="referenceUrl",
        description="Link to the incident video or discussion thread",
    )

    category_label: str = Field(
        ...,
        min_length=1,
        max_length=MAX_LABEL_LENGTH,
        validation_alias=AliasChoices("categoryLabel", "category_label", "incidentType"),
        serialization_alias="categoryLabel",
        description="Incident category chosen by the submitter",
    )

    party_a_identifier: Optional[str] = Field(
        None,
        max_length=MAX_IDENTIFIER_LENGTH,
        validation_alias=AliasChoices("partyAIdentifier", "party_a_identifier", "carA"),
        serialization_alias="partyAIdentifier",
    )

    party_b_identifier: Optional[str] = Field(
        None,
        max_length=MAX_IDENTIFIER_LENGTH,
        validation_alias=AliasChoices("partyBIdentifier", "party_b_identifier", "carB"),
        serialization_alias="partyBIdentifier",
    )

    steward_notes: Optional[str] = Field(
        None,
        max_length=MAX_NOTES_LENGTH,
        validation_alias=AliasChoices("stewardNotes", "steward_notes"),
        serialization_alias="stewardNotes",
        description="Free-text human observations; authoritative over inferred context",
    )

    override_fault_a: Optional[Decimal] = Field(
        None,
        validation_alias=AliasChoices("overrideFaultA", "override_fault_a"),
        serialization_alias="overrideFaultA",
        description="Steward fault override for party A, bypasses all scoring",
    )

    manual_title: Optional[str] = Field(
        None,
        max_length=MAX_TITLE_LENGTH,
        validation_alias=AliasChoices("manualTitle", "manual_title"),
        serialization_alias="manualTitle",
    )

    @field_validator(
        "reference_url",
        "party_a_identifier",
        "party_b_identifier",
        "steward_notes",
        "manual_title",
        mode="before",
    )
    @classmethod
    def blank_optionals_are_absent(cls, v: Any) -> Any:
        """Treat empty optional strings as absent."""
        return _blank_to_none(v)

    @field_validator("category_label", mode="before")
    @classmethod
    def validate_category_label(cls, v: Any) -> Any:
        """
        Reject missing or whitespace-only category labels.

        Reliability Level: STEWARD TIER
        """
        if v is None or (isinstance(v, str) and not v.strip()):
            raise ValueError("[STW-VAL-001] categoryLabel is required and must be non-empty")
        return v

    @field_validator("reference_url", mode="after")
    @classmethod
    def validate_reference_url(cls, v: Optional[str]) -> Optional[str]:
        """
        Ensure reference links are http(s) URLs.

        Reliability Level: STANDARD
        """
        if v is None:
            return v
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError(
                f"[STW-VAL-004] referenceUrl must be an http(s) link. Received: {v[:80]}"
            )
        return v

    @field_validator("override_fault_a", mode="before")
    @classmethod
    def validate_override(cls, v: Any) -> Optional[Decimal]:
        """
        Validate the fault override range.

        Reliability Level: STEWARD TIER
        Input Constraints: number in [0, 100]
        Side Effects: None
        """
        return parse_override_fault(v)

    @property
    def has_override(self) -> bool:
        """True when a steward fault override was supplied."""
        return self.override_fault_a is not None


# ============================================================================
# END OF INCIDENT SCHEMA
# ============================================================================
