"""
============================================================================
Project Sim Steward v1.0.0
Logic Layer - Incident Fault Resolution Engine
============================================================================

STEWARD TIER INFRASTRUCTURE

This module contains the deterministic core:
- Classifier: category label to canonical incident key and roles
- Retriever: lexical precedent scoring over the reference dataset
- Blender: bounded fault percentage for party A
- Confidence Estimator: label from evidence strength
- Baseline Verdict: the deterministic verdict
- Verdict Reconciler: field-level merge of narrative output

============================================================================
"""

from app.logic.incident_classifier import (
    CanonicalIncidentKey,
    DEFAULT_KEY,
    ROLE_MAP,
    classify,
    infer_category,
    resolve_category,
    get_roles,
)

from app.logic.precedent_retriever import (
    PrecedentRecord,
    RankedMatch,
    retrieve,
)

from app.logic.rule_book import (
    StewardRule,
    RULE_BOOK,
    match_rule,
)

from app.logic.fault_blender import (
    FaultEstimate,
    FaultSource,
    blend,
    collect_estimates,
)

from app.logic.confidence_estimator import estimate_confidence

from app.logic.baseline_verdict import build_baseline_verdict

from app.logic.verdict_reconciler import (
    ReconciliationResult,
    VerdictReconciler,
    reconcile,
)

__all__ = [
    # Classifier
    "CanonicalIncidentKey",
    "DEFAULT_KEY",
    "ROLE_MAP",
    "classify",
    "infer_category",
    "resolve_category",
    "get_roles",
    # Retriever
    "PrecedentRecord",
    "RankedMatch",
    "retrieve",
    # Rule book
    "StewardRule",
    "RULE_BOOK",
    "match_rule",
    # Blender
    "FaultEstimate",
    "FaultSource",
    "blend",
    "collect_estimates",
    # Confidence
    "estimate_confidence",
    # Baseline
    "build_baseline_verdict",
    # Reconciler
    "ReconciliationResult",
    "VerdictReconciler",
    "reconcile",
]
