# ============================================================================
# Project Sim Steward v1.0.0
# Pydantic Schemas - Data Validation Layer
# ============================================================================

from app.schemas.incident import IncidentReportIn
from app.schemas.verdict import (
    ConfidenceLabel,
    FaultSplit,
    RankedMatchOut,
    SpotterAdvice,
    Verdict,
    VerdictResponse,
)

__all__ = [
    "IncidentReportIn",
    "ConfidenceLabel",
    "FaultSplit",
    "RankedMatchOut",
    "SpotterAdvice",
    "Verdict",
    "VerdictResponse",
]
