"""
============================================================================
Sim Steward - Precedent Store
============================================================================

Reliability Level: STEWARD TIER
Traceability: Dataset loading is logged with correlation_id

The reference dataset is a CSV of historical stewarding decisions with the
columns title, reason, ruling and fault_pct_driver_a. It is loaded once
(at startup or first use), converted into immutable PrecedentRecords and
never mutated afterwards, so any number of requests may read it
concurrently.

LOAD OUTCOMES:
    - LOADED: file parsed, records cached
    - MISSING: file absent, empty dataset cached (verdicts fall back to
      the default prior)
    - ERROR: file present but unreadable or missing required columns;
      PrecedentDatasetError is raised and nothing is cached, so the next
      request retries the load

ERROR CODES:
    - STW-DS-001: Dataset unreadable
    - STW-DS-002: Dataset schema invalid

============================================================================
"""

from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
import logging
import threading

import pandas as pd

from app.logic.precedent_retriever import PrecedentRecord
from services.steward_config import get_steward_config

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REQUIRED_COLUMNS: Tuple[str, ...] = ("title", "reason", "ruling")
FAULT_COLUMN = "fault_pct_driver_a"


# =============================================================================
# Error Codes
# =============================================================================

class DatasetErrorCode:
    """Dataset-specific error codes for audit logging."""
    UNREADABLE = "STW-DS-001"
    SCHEMA_INVALID = "STW-DS-002"


class DatasetStatus(str, Enum):
    NOT_LOADED = "not_loaded"
    LOADED = "loaded"
    MISSING = "missing"
    ERROR = "error"


class PrecedentDatasetError(Exception):
    """
    Raised when the reference dataset exists but cannot be used.

    Reliability Level: STEWARD TIER
    """

    def __init__(
        self,
        message: str,
        error_code: str = DatasetErrorCode.UNREADABLE,
        path: Optional[str] = None
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.path = path
        super().__init__(f"[{error_code}] {message}")


# =============================================================================
# CSV Loader
# =============================================================================

def _cell(row: Dict[str, Any], column: str) -> str:
    value = row.get(column, "")
    return str(value).strip() if value is not None else ""


def load_precedents_csv(path: str) -> Tuple[PrecedentRecord, ...]:
    """
    Read the reference CSV into immutable records.

    Every column is read as text with no NA coercion, so malformed fault
    values survive as strings and are filtered at averaging time.

    Raises:
        FileNotFoundError: If the file does not exist
        PrecedentDatasetError: If the file cannot be parsed or lacks columns
    """
    csv_path = Path(path)
    if not csv_path.is_file():
        raise FileNotFoundError(path)

    try:
        frame = pd.read_csv(
            csv_path,
            dtype=str,
            keep_default_na=False,
            encoding="utf-8-sig",
            skipinitialspace=True,
        )
    except pd.errors.EmptyDataError:
        return ()
    except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
        raise PrecedentDatasetError(
            f"Dataset unreadable: {str(e)[:200]}",
            error_code=DatasetErrorCode.UNREADABLE,
            path=path,
        ) from e

    frame.columns = [str(c).strip().lower() for c in frame.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
    if missing:
        raise PrecedentDatasetError(
            f"Dataset missing required columns: {missing}",
            error_code=DatasetErrorCode.SCHEMA_INVALID,
            path=path,
        )

    records = []
    for row in frame.to_dict(orient="records"):
        fault = _cell(row, FAULT_COLUMN)
        records.append(PrecedentRecord(
            title=_cell(row, "title"),
            reason=_cell(row, "reason"),
            ruling=_cell(row, "ruling"),
            fault_pct_driver_a=fault or None,
        ))
    return tuple(records)


# =============================================================================
# Precedent Store
# =============================================================================

class PrecedentStore:
    """
    Init-once holder for the reference dataset.

    Reliability Level: STEWARD TIER
    Input Constraints: loader returns a sequence of PrecedentRecord
    Side Effects: Reads the dataset on first access

    The loader is injectable so tests can substitute a fixture dataset.
    """

    def __init__(
        self,
        path: str,
        loader: Callable[[str], Sequence[PrecedentRecord]] = load_precedents_csv,
    ) -> None:
        self._path = path
        self._loader = loader
        self._lock = threading.Lock()
        self._records: Optional[Tuple[PrecedentRecord, ...]] = None
        self._status = DatasetStatus.NOT_LOADED
        self._last_error: Optional[str] = None

    @property
    def path(self) -> str:
        return self._path

    @property
    def dataset_status(self) -> DatasetStatus:
        return self._status

    def get_records(self, correlation_id: str = "UNKNOWN") -> Tuple[PrecedentRecord, ...]:
        """
        Return the cached records, loading them on first use.

        Raises:
            PrecedentDatasetError: If the dataset exists but is unreadable
        """
        records = self._records
        if records is not None:
            return records

        with self._lock:
            if self._records is None:
                self._records = self._load(correlation_id)
            return self._records

    def _load(self, correlation_id: str) -> Tuple[PrecedentRecord, ...]:
        try:
            records = tuple(self._loader(self._path))
        except FileNotFoundError:
            self._status = DatasetStatus.MISSING
            logger.warning(
                f"[DATASET-MISSING] Reference dataset not found, using empty dataset | "
                f"path={self._path} | "
                f"correlation_id={correlation_id}"
            )
            return ()
        except PrecedentDatasetError as e:
            self._status = DatasetStatus.ERROR
            self._last_error = e.message
            logger.error(
                f"[{e.error_code}] DATASET_LOAD_FAILED: {e.message} | "
                f"path={self._path} | "
                f"correlation_id={correlation_id}"
            )
            raise

        self._status = DatasetStatus.LOADED
        self._last_error = None
        logger.info(
            f"[DATASET-LOADED] Reference dataset ready | "
            f"path={self._path} | "
            f"records={len(records)} | "
            f"correlation_id={correlation_id}"
        )
        return records

    def status(self) -> Dict[str, Any]:
        """Snapshot for the health endpoint."""
        return {
            "status": self._status.value,
            "path": self._path,
            "records": len(self._records) if self._records is not None else 0,
            "error": self._last_error,
        }


# =============================================================================
# Module-Level Store Instance
# =============================================================================

_store_instance: Optional[PrecedentStore] = None


def get_precedent_store(path: Optional[str] = None) -> PrecedentStore:
    """
    Get the process-wide store, creating it on first access.

    Args:
        path: Dataset path (defaults to the configured path)
    """
    global _store_instance

    if _store_instance is None:
        if path is None:
            path = get_steward_config().dataset_path
        _store_instance = PrecedentStore(path)

    return _store_instance


def reset_precedent_store() -> None:
    """Reset the process-wide store (used by tests)."""
    global _store_instance
    _store_instance = None
    logger.debug("[DATASET] Store instance reset")
