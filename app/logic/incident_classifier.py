"""
============================================================================
Project Sim Steward v1.0.0
Incident Classifier - Canonical Incident Keys and Role Mapping
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)
Input Constraints: Any string (total functions, no failure mode)
Side Effects: None (pure lookups)

CLASSIFICATION RULES:
- classify() is a deterministic table lookup over a closed enumeration
- Unknown labels map to GENERAL_CONTACT
- infer_category() applies ordered keyword patterns to free text
- resolve_category() only falls back to inference when the submitted
  label is unrecognized

============================================================================
"""

import logging
import re
from enum import Enum
from typing import Dict, List, Optional, Pattern, Tuple

# Configure module logger
logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================

class CanonicalIncidentKey(str, Enum):
    """
    Closed enumeration of canonical incident categories.

    Reliability Level: STEWARD TIER
    """
    DIVEBOMB = "divebomb"
    WEAVE_BLOCK = "weave_block"
    UNSAFE_REJOIN = "unsafe_rejoin"
    VORTEX_EXIT = "vortex_exit"
    TRACK_LIMITS = "track_limits"
    NETCODE = "netcode"
    USED_AS_BARRIER = "used_as_barrier"
    PIT_LANE_INCIDENT = "pit_lane_incident"
    T1_CHAOS = "t1_chaos"
    INTENTIONAL_WRECK = "intentional_wreck"
    RACING_INCIDENT = "racing_incident"
    GENERAL_CONTACT = "general_contact"


DEFAULT_KEY = CanonicalIncidentKey.GENERAL_CONTACT


# =============================================================================
# Lookup Tables
# =============================================================================

# Normalized label -> canonical key. Labels are normalized by normalize_label().
_LABEL_TABLE: Dict[str, CanonicalIncidentKey] = {
    "divebomb late lunge": CanonicalIncidentKey.DIVEBOMB,
    "divebomb": CanonicalIncidentKey.DIVEBOMB,
    "dive bomb": CanonicalIncidentKey.DIVEBOMB,
    "late lunge": CanonicalIncidentKey.DIVEBOMB,
    "weave blocking": CanonicalIncidentKey.WEAVE_BLOCK,
    "weave block": CanonicalIncidentKey.WEAVE_BLOCK,
    "blocking": CanonicalIncidentKey.WEAVE_BLOCK,
    "unsafe rejoin": CanonicalIncidentKey.UNSAFE_REJOIN,
    "rejoin": CanonicalIncidentKey.UNSAFE_REJOIN,
    "vortex exit": CanonicalIncidentKey.VORTEX_EXIT,
    "vortex exit draft exit": CanonicalIncidentKey.VORTEX_EXIT,
    "draft exit": CanonicalIncidentKey.VORTEX_EXIT,
    "track limits": CanonicalIncidentKey.TRACK_LIMITS,
    "track limits apex cut": CanonicalIncidentKey.TRACK_LIMITS,
    "apex cut": CanonicalIncidentKey.TRACK_LIMITS,
    "netcode": CanonicalIncidentKey.NETCODE,
    "netcode lag": CanonicalIncidentKey.NETCODE,
    "lag": CanonicalIncidentKey.NETCODE,
    "used as barrier": CanonicalIncidentKey.USED_AS_BARRIER,
    "used as a barrier": CanonicalIncidentKey.USED_AS_BARRIER,
    "pit lane incident": CanonicalIncidentKey.PIT_LANE_INCIDENT,
    "pit lane": CanonicalIncidentKey.PIT_LANE_INCIDENT,
    "t1 chaos": CanonicalIncidentKey.T1_CHAOS,
    "turn 1 chaos": CanonicalIncidentKey.T1_CHAOS,
    "lap 1 turn 1 chaos": CanonicalIncidentKey.T1_CHAOS,
    "first corner chaos": CanonicalIncidentKey.T1_CHAOS,
    "intentional wreck": CanonicalIncidentKey.INTENTIONAL_WRECK,
    "intentional wreck pit maneuver": CanonicalIncidentKey.INTENTIONAL_WRECK,
    "pit maneuver": CanonicalIncidentKey.INTENTIONAL_WRECK,
    "racing incident": CanonicalIncidentKey.RACING_INCIDENT,
    "racing incident no fault": CanonicalIncidentKey.RACING_INCIDENT,
    "no fault": CanonicalIncidentKey.RACING_INCIDENT,
    "general contact": CanonicalIncidentKey.GENERAL_CONTACT,
    "contact": CanonicalIncidentKey.GENERAL_CONTACT,
}

# Canonical keys are always accepted verbatim ("weave_block" -> "weave block")
for _key in CanonicalIncidentKey:
    _LABEL_TABLE.setdefault(_key.value.replace("_", " "), _key)


# Keyword phrase each key contributes to precedent scoring
CATEGORY_KEYWORDS: Dict[CanonicalIncidentKey, str] = {
    CanonicalIncidentKey.DIVEBOMB: "dive",
    CanonicalIncidentKey.WEAVE_BLOCK: "block",
    CanonicalIncidentKey.UNSAFE_REJOIN: "rejoin",
    CanonicalIncidentKey.VORTEX_EXIT: "vortex",
    CanonicalIncidentKey.TRACK_LIMITS: "track limits",
    CanonicalIncidentKey.NETCODE: "netcode",
    CanonicalIncidentKey.USED_AS_BARRIER: "barrier",
    CanonicalIncidentKey.PIT_LANE_INCIDENT: "pit lane",
    CanonicalIncidentKey.T1_CHAOS: "turn 1",
    CanonicalIncidentKey.INTENTIONAL_WRECK: "intentional",
    CanonicalIncidentKey.RACING_INCIDENT: "racing incident",
    CanonicalIncidentKey.GENERAL_CONTACT: "contact",
}


# Human-readable names used in prompts and explanations
DISPLAY_NAMES: Dict[CanonicalIncidentKey, str] = {
    CanonicalIncidentKey.DIVEBOMB: "divebomb",
    CanonicalIncidentKey.WEAVE_BLOCK: "weave block",
    CanonicalIncidentKey.UNSAFE_REJOIN: "unsafe rejoin",
    CanonicalIncidentKey.VORTEX_EXIT: "vortex exit",
    CanonicalIncidentKey.TRACK_LIMITS: "track limits",
    CanonicalIncidentKey.NETCODE: "netcode",
    CanonicalIncidentKey.USED_AS_BARRIER: "used as barrier",
    CanonicalIncidentKey.PIT_LANE_INCIDENT: "pit lane incident",
    CanonicalIncidentKey.T1_CHAOS: "turn 1 chaos",
    CanonicalIncidentKey.INTENTIONAL_WRECK: "intentional wreck",
    CanonicalIncidentKey.RACING_INCIDENT: "racing incident",
    CanonicalIncidentKey.GENERAL_CONTACT: "general contact",
}


# Role pair (party A, party B) per category
ROLE_MAP: Dict[CanonicalIncidentKey, Tuple[str, str]] = {
    CanonicalIncidentKey.DIVEBOMB: ("Overtaker", "Defender"),
    CanonicalIncidentKey.WEAVE_BLOCK: ("Attacker", "Blocker"),
    CanonicalIncidentKey.UNSAFE_REJOIN: ("Rejoining car", "Car on track"),
    CanonicalIncidentKey.VORTEX_EXIT: ("Following car", "Lead car"),
    CanonicalIncidentKey.TRACK_LIMITS: ("Overtaker", "Defender"),
    CanonicalIncidentKey.NETCODE: ("Lagging car", "Affected car"),
    CanonicalIncidentKey.USED_AS_BARRIER: ("Offending car", "Barrier car"),
    CanonicalIncidentKey.PIT_LANE_INCIDENT: ("Pit lane car", "Other car"),
    CanonicalIncidentKey.T1_CHAOS: ("Trailing car", "Leading car"),
    CanonicalIncidentKey.INTENTIONAL_WRECK: ("Aggressor", "Victim"),
    CanonicalIncidentKey.RACING_INCIDENT: ("Involved car", "Involved car"),
    CanonicalIncidentKey.GENERAL_CONTACT: ("Overtaker", "Defender"),
}


# Ordered inference patterns. First match wins.
_INFERENCE_RULES: List[Tuple[Pattern, CanonicalIncidentKey]] = [
    (re.compile(r"\bpit maneuver|\bpit manoeuvre|\bintentional|\bon purpose|\brevenge|\bwrecked me"),
     CanonicalIncidentKey.INTENTIONAL_WRECK),
    (re.compile(r"\bpit lane|\bpit entry|\bpit exit|\bpit road"),
     CanonicalIncidentKey.PIT_LANE_INCIDENT),
    (re.compile(r"\bdive|\blunge|\blate brak|\bunder ?brak|\bbrake"),
     CanonicalIncidentKey.DIVEBOMB),
    (re.compile(r"\bvortex|\bdraft exit"),
     CanonicalIncidentKey.VORTEX_EXIT),
    (re.compile(r"\bweave|\bblock"),
     CanonicalIncidentKey.WEAVE_BLOCK),
    (re.compile(r"\brejoin|\bspin"),
     CanonicalIncidentKey.UNSAFE_REJOIN),
    (re.compile(r"\btrack limit|\bapex|\bcut the"),
     CanonicalIncidentKey.TRACK_LIMITS),
    (re.compile(r"\bnetcode|\blag|\bteleport|\bdesync"),
     CanonicalIncidentKey.NETCODE),
    (re.compile(r"\bbarrier|\bwall|\bused (?:you|me)"),
     CanonicalIncidentKey.USED_AS_BARRIER),
    (re.compile(r"\bturn 1\b|\bt1\b|\bfirst corner|\blap 1\b"),
     CanonicalIncidentKey.T1_CHAOS),
    (re.compile(r"\bracing incident"),
     CanonicalIncidentKey.RACING_INCIDENT),
]

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


# =============================================================================
# Functions
# =============================================================================

def normalize_label(label: Optional[str]) -> str:
    """Case-fold and collapse punctuation/whitespace to single spaces."""
    if not label:
        return ""
    return _NON_ALNUM.sub(" ", label.casefold()).strip()


def classify(category_label: Optional[str]) -> CanonicalIncidentKey:
    """
    Map a submitted category label to its canonical key.

    Reliability Level: STEWARD TIER
    Input Constraints: Any string, including None
    Side Effects: None

    Returns:
        The canonical key, or GENERAL_CONTACT for unknown labels
    """
    return _LABEL_TABLE.get(normalize_label(category_label), DEFAULT_KEY)


def is_known_label(category_label: Optional[str]) -> bool:
    """True when the label is present in the lookup table."""
    return normalize_label(category_label) in _LABEL_TABLE


def infer_category(text: Optional[str]) -> Optional[CanonicalIncidentKey]:
    """
    Infer a canonical key from free text using ordered keyword patterns.

    Returns:
        The first matching key, or None when nothing matches
    """
    if not text:
        return None
    lowered = text.casefold()
    for pattern, key in _INFERENCE_RULES:
        if pattern.search(lowered):
            return key
    return None


def resolve_category(
    category_label: Optional[str],
    title: Optional[str] = None,
    steward_notes: Optional[str] = None,
    correlation_id: str = "UNKNOWN",
) -> CanonicalIncidentKey:
    """
    Resolve the effective canonical key for an incident.

    The table lookup on the submitted label always wins. Inference over the
    label, steward notes and title only runs for unrecognized labels.
    """
    if is_known_label(category_label):
        return classify(category_label)

    for source, text in (("label", category_label), ("notes", steward_notes), ("title", title)):
        inferred = infer_category(text)
        if inferred is not None:
            logger.info(
                f"[CLASSIFIER] Inferred category from {source} | "
                f"label={category_label!r} | key={inferred.value} | "
                f"correlation_id={correlation_id}"
            )
            return inferred

    logger.debug(
        f"[CLASSIFIER] Unrecognized label, using default | "
        f"label={category_label!r} | key={DEFAULT_KEY.value} | "
        f"correlation_id={correlation_id}"
    )
    return DEFAULT_KEY


def get_roles(key: CanonicalIncidentKey) -> Tuple[str, str]:
    """Return the (party A, party B) role pair for a category."""
    return ROLE_MAP[key]
