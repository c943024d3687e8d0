"""
============================================================================
Project Sim Steward v1.0.0
Precedent Retriever - Lexical Scoring over the Reference Dataset
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: In-memory list of PrecedentRecord (read-only)
Side Effects: None (pure function, no I/O)

SCORING POLICY (per record):
- +15.0 if the searchable text contains the category keyword phrase
- +3.0  per context token (first 12) found in the searchable text
- +1.5  per title token (first 8) found in the searchable text
- Records scoring 0 are dropped; records without a title are never scored

DETERMINISM:
- Scores use decimal.Decimal, so identical inputs give identical totals
- Ranking uses a stable sort: ties keep dataset order

============================================================================
"""

import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Sequence

from app.logic.incident_classifier import CATEGORY_KEYWORDS, CanonicalIncidentKey

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

CATEGORY_WEIGHT = Decimal("15")
CONTEXT_TOKEN_WEIGHT = Decimal("3")
TITLE_TOKEN_WEIGHT = Decimal("1.5")

MAX_CONTEXT_TOKENS = 12
MAX_TITLE_TOKENS = 8

DEFAULT_MATCH_LIMIT = 5

MIN_TOKEN_LENGTH = 3

ZERO = Decimal("0")

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+")

_STOPWORDS = frozenset({
    "the", "and", "for", "with", "was", "were", "that", "this", "his", "her",
    "their", "they", "had", "has", "have", "but", "not", "into", "from",
    "out", "onto", "then", "than", "are", "who", "what", "when", "where",
    "which", "there", "after", "before", "over", "under", "you", "your",
})


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class PrecedentRecord:
    """
    A historical stewarding decision from the reference dataset.

    Reliability Level: STEWARD TIER
    Input Constraints: fault_pct_driver_a may be malformed or missing
    Side Effects: None (immutable)
    """
    title: str
    reason: str
    ruling: str
    fault_pct_driver_a: Optional[str] = None

    @property
    def searchable_text(self) -> str:
        return f"{self.title} {self.reason} {self.ruling}".casefold()

    @property
    def fault_value(self) -> Optional[Decimal]:
        return parse_fault_pct(self.fault_pct_driver_a)


@dataclass(frozen=True)
class RankedMatch:
    """
    A precedent record with its non-negative relevance score.
    """
    record: PrecedentRecord
    score: Decimal

    def to_dict(self) -> dict:
        """Convert to dictionary for the wire format."""
        return {
            "title": self.record.title,
            "reason": self.record.reason,
            "ruling": self.record.ruling,
            "fault_pct_driver_a": self.record.fault_pct_driver_a,
            "score": float(self.score),
        }


# =============================================================================
# Helpers
# =============================================================================

def parse_fault_pct(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse a dataset fault percentage.

    Returns None for missing, non-numeric, non-finite or out-of-range
    values; such records are excluded from averaging.
    """
    if raw is None:
        return None
    text = str(raw).strip().rstrip("%").strip()
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation:
        return None
    if not value.is_finite() or value < ZERO or value > Decimal("100"):
        return None
    return value


def extract_tokens(text: Optional[str], limit: int) -> List[str]:
    """
    Extract up to `limit` distinct query tokens from free text.

    Tokens are case-folded alphanumeric runs of at least three characters,
    stop words removed, first occurrence order preserved.
    """
    if not text or limit <= 0:
        return []
    tokens: List[str] = []
    seen = set()
    for token in _TOKEN_PATTERN.findall(text.casefold()):
        if len(token) < MIN_TOKEN_LENGTH or token in _STOPWORDS or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
        if len(tokens) >= limit:
            break
    return tokens


def score_record(
    record: PrecedentRecord,
    keyword: Optional[str],
    context_tokens: Sequence[str],
    title_tokens: Sequence[str],
) -> Decimal:
    """Score a single record. Records without a title always score zero."""
    if not record.title or not record.title.strip():
        return ZERO

    text = record.searchable_text
    score = ZERO

    if keyword and keyword in text:
        score += CATEGORY_WEIGHT

    for token in context_tokens:
        if token in text:
            score += CONTEXT_TOKEN_WEIGHT

    for token in title_tokens:
        if token in text:
            score += TITLE_TOKEN_WEIGHT

    return score


# =============================================================================
# Retrieval
# =============================================================================

def retrieve(
    dataset: Sequence[PrecedentRecord],
    canonical_key: CanonicalIncidentKey,
    context_text: Optional[str],
    limit: int = DEFAULT_MATCH_LIMIT,
    title_text: Optional[str] = None,
    correlation_id: str = "UNKNOWN",
) -> List[RankedMatch]:
    """
    Score every record and return the top `limit` ranked matches.

    Reliability Level: STEWARD TIER
    Input Constraints:
        - dataset: read-only sequence of records
        - context_text: steward notes, or the effective title when absent
        - title_text: effective title, scored at the lower title weight
    Side Effects: None

    Returns:
        Matches ordered by score descending, ties in dataset order
    """
    if limit <= 0:
        return []

    keyword = CATEGORY_KEYWORDS.get(canonical_key)
    context_tokens = extract_tokens(context_text, MAX_CONTEXT_TOKENS)
    title_tokens = extract_tokens(title_text, MAX_TITLE_TOKENS)

    scored: List[RankedMatch] = []
    for record in dataset:
        score = score_record(record, keyword, context_tokens, title_tokens)
        if score > ZERO:
            scored.append(RankedMatch(record=record, score=score))

    # sorted() is stable; equal scores keep dataset order
    ranked = sorted(scored, key=lambda m: m.score, reverse=True)[:limit]

    logger.info(
        f"[RETRIEVER] Precedents ranked | "
        f"key={canonical_key.value} | "
        f"candidates={len(scored)} | "
        f"returned={len(ranked)} | "
        f"context_tokens={len(context_tokens)} | "
        f"title_tokens={len(title_tokens)} | "
        f"correlation_id={correlation_id}"
    )

    return ranked
