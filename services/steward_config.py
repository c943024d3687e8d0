"""
============================================================================
Sim Steward - Configuration
============================================================================

Reliability Level: STEWARD TIER
Traceability: Configuration loading is logged

This module provides configuration management for the verdict pipeline:
- Environment variable parsing with type safety
- Default values for every setting
- Range validation with fail-closed startup (STW-CFG-001)

ENVIRONMENT VARIABLES:
    - STEWARD_DATASET_PATH: Reference dataset CSV (default: data/precedents.csv)
    - STEWARD_MATCH_LIMIT: Max ranked matches returned (default: 5)
    - STEWARD_REQUEST_DEADLINE_SECONDS: Request deadline (default: 15, 1-60)
    - STEWARD_FETCH_MAX_ATTEMPTS: Title GET attempts (default: 3, 1-5)
    - STEWARD_FETCH_BACKOFF_SECONDS: Base backoff delay (default: 0.5)
    - STEWARD_NARRATIVE_ENABLED: Call the narrative service (default: true)
    - STEWARD_NARRATIVE_MODEL: Narrative model (default: grok-3)
    - STEWARD_NARRATIVE_URL: Narrative endpoint
    - GROK_API_KEY: Narrative API key (absent: narrative skipped)

ERROR CODES:
    - STW-CFG-001: Configuration invalid

============================================================================
"""

from typing import Optional, List
from dataclasses import dataclass
import logging
import os

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Error Codes
# =============================================================================

class StewardConfigErrorCode:
    """Configuration-specific error codes for audit logging."""
    CONFIG_INVALID = "STW-CFG-001"


# =============================================================================
# Default Values
# =============================================================================

DEFAULT_DATASET_PATH = "data/precedents.csv"
DEFAULT_MATCH_LIMIT = 5
DEFAULT_REQUEST_DEADLINE_SECONDS = 15.0
DEFAULT_FETCH_MAX_ATTEMPTS = 3
DEFAULT_FETCH_BACKOFF_SECONDS = 0.5
DEFAULT_NARRATIVE_ENABLED = True
DEFAULT_NARRATIVE_MODEL = "grok-3"
DEFAULT_NARRATIVE_URL = "https://api.x.ai/v1/chat/completions"

# Validation ranges (inclusive)
MIN_DEADLINE_SECONDS = 1.0
MAX_DEADLINE_SECONDS = 60.0
MIN_FETCH_ATTEMPTS = 1
MAX_FETCH_ATTEMPTS = 5
MAX_MATCH_LIMIT = 50


# =============================================================================
# Configuration Validation Exception
# =============================================================================

class StewardConfigurationError(Exception):
    """
    Exception raised when the configuration is invalid.

    Reliability Level: STEWARD TIER
    """

    def __init__(self, message: str, error_code: str = StewardConfigErrorCode.CONFIG_INVALID):
        self.error_code = error_code
        self.message = message
        super().__init__(f"[{error_code}] {message}")


# =============================================================================
# Parsing Helpers
# =============================================================================

def _read_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.lower().strip() in ("true", "1", "yes", "on")


def _read_int(name: str, default: int) -> int:
    raw = os.environ.get(name, str(default))
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(
            f"[STEWARD-CONFIG] Invalid {name} value: {raw}, "
            f"using default: {default}"
        )
        return default


def _read_float(name: str, default: float) -> float:
    raw = os.environ.get(name, str(default))
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning(
            f"[STEWARD-CONFIG] Invalid {name} value: {raw}, "
            f"using default: {default}"
        )
        return default


def _read_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


# =============================================================================
# StewardConfig Class
# =============================================================================

@dataclass
class StewardConfig:
    """
    Verdict pipeline configuration.

    Reliability Level: STEWARD TIER
    Input Constraints: Numeric values within documented ranges
    Side Effects: Logs configuration on load
    """

    dataset_path: str = DEFAULT_DATASET_PATH
    match_limit: int = DEFAULT_MATCH_LIMIT
    request_deadline_seconds: float = DEFAULT_REQUEST_DEADLINE_SECONDS
    fetch_max_attempts: int = DEFAULT_FETCH_MAX_ATTEMPTS
    fetch_backoff_seconds: float = DEFAULT_FETCH_BACKOFF_SECONDS
    narrative_enabled: bool = DEFAULT_NARRATIVE_ENABLED
    narrative_api_key: Optional[str] = None
    narrative_model: str = DEFAULT_NARRATIVE_MODEL
    narrative_url: str = DEFAULT_NARRATIVE_URL

    @property
    def narrative_configured(self) -> bool:
        """Narrative generation runs only when enabled and keyed."""
        return self.narrative_enabled and bool(self.narrative_api_key)

    def validate(self) -> None:
        """
        Validate configuration ranges.

        Raises:
            StewardConfigurationError: If any value is out of range
        """
        errors: List[str] = []

        if not self.dataset_path or not self.dataset_path.strip():
            errors.append("STEWARD_DATASET_PATH must not be empty")

        if not 1 <= self.match_limit <= MAX_MATCH_LIMIT:
            errors.append(
                f"STEWARD_MATCH_LIMIT must be 1-{MAX_MATCH_LIMIT}, got: {self.match_limit}"
            )

        if not MIN_DEADLINE_SECONDS <= self.request_deadline_seconds <= MAX_DEADLINE_SECONDS:
            errors.append(
                f"STEWARD_REQUEST_DEADLINE_SECONDS must be "
                f"{MIN_DEADLINE_SECONDS:g}-{MAX_DEADLINE_SECONDS:g}, "
                f"got: {self.request_deadline_seconds}"
            )

        if not MIN_FETCH_ATTEMPTS <= self.fetch_max_attempts <= MAX_FETCH_ATTEMPTS:
            errors.append(
                f"STEWARD_FETCH_MAX_ATTEMPTS must be "
                f"{MIN_FETCH_ATTEMPTS}-{MAX_FETCH_ATTEMPTS}, "
                f"got: {self.fetch_max_attempts}"
            )

        if self.fetch_backoff_seconds < 0:
            errors.append(
                f"STEWARD_FETCH_BACKOFF_SECONDS must be non-negative, "
                f"got: {self.fetch_backoff_seconds}"
            )

        if errors:
            error_msg = "Steward configuration validation failed: " + "; ".join(errors)
            logger.error(f"[{StewardConfigErrorCode.CONFIG_INVALID}] {error_msg}")
            raise StewardConfigurationError(error_msg)

        logger.info(
            f"[STEWARD-CONFIG] Configuration validated | "
            f"dataset_path={self.dataset_path} | "
            f"match_limit={self.match_limit} | "
            f"deadline={self.request_deadline_seconds}s | "
            f"fetch_max_attempts={self.fetch_max_attempts} | "
            f"narrative_configured={self.narrative_configured}"
        )

    @classmethod
    def from_environment(cls, validate: bool = True) -> "StewardConfig":
        """
        Load configuration from environment variables.

        Args:
            validate: Whether to validate configuration after loading

        Raises:
            StewardConfigurationError: If validation is requested and fails
        """
        config = cls(
            dataset_path=_read_str("STEWARD_DATASET_PATH", DEFAULT_DATASET_PATH),
            match_limit=_read_int("STEWARD_MATCH_LIMIT", DEFAULT_MATCH_LIMIT),
            request_deadline_seconds=_read_float(
                "STEWARD_REQUEST_DEADLINE_SECONDS", DEFAULT_REQUEST_DEADLINE_SECONDS
            ),
            fetch_max_attempts=_read_int(
                "STEWARD_FETCH_MAX_ATTEMPTS", DEFAULT_FETCH_MAX_ATTEMPTS
            ),
            fetch_backoff_seconds=_read_float(
                "STEWARD_FETCH_BACKOFF_SECONDS", DEFAULT_FETCH_BACKOFF_SECONDS
            ),
            narrative_enabled=_read_bool(
                "STEWARD_NARRATIVE_ENABLED", DEFAULT_NARRATIVE_ENABLED
            ),
            narrative_api_key=_read_str("GROK_API_KEY", None),
            narrative_model=_read_str("STEWARD_NARRATIVE_MODEL", DEFAULT_NARRATIVE_MODEL),
            narrative_url=_read_str("STEWARD_NARRATIVE_URL", DEFAULT_NARRATIVE_URL),
        )

        logger.info(
            f"[STEWARD-CONFIG] Loading configuration from environment | "
            f"STEWARD_DATASET_PATH={config.dataset_path} | "
            f"STEWARD_MATCH_LIMIT={config.match_limit} | "
            f"STEWARD_REQUEST_DEADLINE_SECONDS={config.request_deadline_seconds} | "
            f"GROK_API_KEY_SET={bool(config.narrative_api_key)}"
        )

        if validate:
            config.validate()

        return config

    def to_dict(self) -> dict:
        """Serialize for logging; the API key is never included."""
        return {
            "dataset_path": self.dataset_path,
            "match_limit": self.match_limit,
            "request_deadline_seconds": self.request_deadline_seconds,
            "fetch_max_attempts": self.fetch_max_attempts,
            "fetch_backoff_seconds": self.fetch_backoff_seconds,
            "narrative_enabled": self.narrative_enabled,
            "narrative_configured": self.narrative_configured,
            "narrative_model": self.narrative_model,
            "narrative_url": self.narrative_url,
        }


# =============================================================================
# Module-Level Configuration Instance
# =============================================================================

# Global configuration instance (lazy-loaded)
_config_instance: Optional[StewardConfig] = None


def get_steward_config(validate: bool = True) -> StewardConfig:
    """
    Get the global configuration instance, loading it on first access.

    Raises:
        StewardConfigurationError: If validation fails
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = StewardConfig.from_environment(validate=validate)

    return _config_instance


def reset_steward_config() -> None:
    """Reset the global configuration instance (used by tests)."""
    global _config_instance
    _config_instance = None
    logger.debug("[STEWARD-CONFIG] Configuration instance reset")


# =============================================================================
# Module Exports
# =============================================================================

__all__ = [
    "StewardConfig",
    "StewardConfigurationError",
    "StewardConfigErrorCode",
    "DEFAULT_DATASET_PATH",
    "DEFAULT_MATCH_LIMIT",
    "DEFAULT_REQUEST_DEADLINE_SECONDS",
    "DEFAULT_FETCH_MAX_ATTEMPTS",
    "DEFAULT_FETCH_BACKOFF_SECONDS",
    "get_steward_config",
    "reset_steward_config",
]
