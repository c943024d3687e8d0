"""
============================================================================
Project Sim Steward - Services Layer
============================================================================

Configuration, reference dataset and verdict pipeline orchestration.

Reliability Level: STEWARD TIER
============================================================================
"""

from services.steward_config import (
    StewardConfig,
    StewardConfigurationError,
    get_steward_config,
    reset_steward_config,
)

from services.precedent_store import (
    PrecedentStore,
    PrecedentDatasetError,
    DatasetStatus,
    load_precedents_csv,
    get_precedent_store,
    reset_precedent_store,
)

from services.verdict_service import (
    VerdictService,
    VerdictOutcome,
    build_verdict_service,
    get_verdict_service,
    reset_verdict_service,
)

__all__ = [
    # Configuration
    "StewardConfig",
    "StewardConfigurationError",
    "get_steward_config",
    "reset_steward_config",
    # Precedent Store
    "PrecedentStore",
    "PrecedentDatasetError",
    "DatasetStatus",
    "load_precedents_csv",
    "get_precedent_store",
    "reset_precedent_store",
    # Verdict Service
    "VerdictService",
    "VerdictOutcome",
    "build_verdict_service",
    "get_verdict_service",
    "reset_verdict_service",
]
