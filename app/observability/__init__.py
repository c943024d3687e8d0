"""
============================================================================
Project Sim Steward v1.0.0
Observability Module - Prometheus Metrics
============================================================================

Reliability Level: STEWARD TIER
Input Constraints: None
Side Effects: Exposes Prometheus metrics

============================================================================
"""

from app.observability.metrics import (
    VERDICT_REQUESTS,
    VERDICT_OUTCOMES,
    NARRATIVE_OUTCOMES,
    PRECEDENT_MATCHES,
    TITLE_RESOLUTIONS,
    VERDICT_LATENCY,
    record_verdict_request,
    record_verdict_outcome,
    record_narrative_outcome,
    record_precedent_matches,
    record_title_resolution,
    record_verdict_latency,
)

__all__ = [
    "VERDICT_REQUESTS",
    "VERDICT_OUTCOMES",
    "NARRATIVE_OUTCOMES",
    "PRECEDENT_MATCHES",
    "TITLE_RESOLUTIONS",
    "VERDICT_LATENCY",
    "record_verdict_request",
    "record_verdict_outcome",
    "record_narrative_outcome",
    "record_precedent_matches",
    "record_title_resolution",
    "record_verdict_latency",
]
