# ============================================================================
# Project Sim Steward v1.0.0
# API Routes Module
# ============================================================================

from app.api.verdict import router as verdict_router

__all__ = ["verdict_router"]
