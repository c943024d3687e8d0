"""
============================================================================
Project Sim Steward v1.0.0
Rule Book - Sporting Code Rules, Heuristic Defaults and Coaching Notes
============================================================================

Reliability Level: STEWARD TIER
Input Constraints: Free text (rule matching), canonical keys (tables)
Side Effects: None (static tables)

TABLES:
- RULE_BOOK: ordered keyword rules with a rule-derived fault estimate
- HEURISTIC_FAULT_A: static fault default for party A per category
- COACHING: deterministic tips per category for the baseline verdict

Every table is exhaustive over CanonicalIncidentKey where it is keyed by it.

============================================================================
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from app.logic.incident_classifier import CanonicalIncidentKey


# =============================================================================
# Constants
# =============================================================================

DEFAULT_RULE_DESCRIPTION = "iRacing Sporting Code"

# Heuristic fallback for any key missing from HEURISTIC_FAULT_A
DEFAULT_HEURISTIC_FAULT_A = 70


# =============================================================================
# Data Classes
# =============================================================================

@dataclass(frozen=True)
class StewardRule:
    """
    A sporting-code rule with the keywords that trigger it.

    Attributes:
        keywords: Case-folded phrases; any occurrence triggers the rule
        fault_a: Rule-derived fault estimate for party A (0-100)
        description: Citation shown as the verdict's rule
    """
    keywords: Tuple[str, ...]
    fault_a: int
    description: str

    def matches(self, text: str) -> bool:
        return any(keyword in text for keyword in self.keywords)


@dataclass(frozen=True)
class CoachingNotes:
    """Deterministic advice attached to the baseline verdict."""
    pro_tip: str
    overtake_tip: str
    defend_tip: str
    spotter_overtaker: str
    spotter_defender: str


# =============================================================================
# Rule Book
# =============================================================================

# Order matters: the first matching rule is selected.
RULE_BOOK: Tuple[StewardRule, ...] = (
    StewardRule(
        keywords=("pit maneuver", "pit manoeuvre", "intentional", "on purpose"),
        fault_a=98,
        description="Pit maneuver / intentional wrecking (BMW SIM GT Rule 9)",
    ),
    StewardRule(
        keywords=("dive", "late", "lunge", "brake", "underbraking", "punting"),
        fault_a=90,
        description="Under-braking and punting (BMW SIM GT Rule 5)",
    ),
    StewardRule(
        keywords=("block", "weave", "reactionary"),
        fault_a=20,
        description="Blocking (BMW SIM GT Rule 2)",
    ),
    StewardRule(
        keywords=("rejoin", "off-track", "spin"),
        fault_a=85,
        description="Unsafe rejoin (BMW SIM GT Rule 7)",
    ),
    StewardRule(
        keywords=("overlap", "apex", "door open"),
        fault_a=95,
        description="Side-by-side rule violation (BMW SIM GT Rule 4)",
    ),
    StewardRule(
        keywords=("netcode", "lag", "teleport"),
        fault_a=50,
        description="Netcode-related incident",
    ),
    StewardRule(
        keywords=("barrier", "used you"),
        fault_a=95,
        description="Using another car as a barrier",
    ),
)


def match_rule(text: Optional[str]) -> Optional[StewardRule]:
    """
    Return the first rule whose keywords occur in the text.

    Reliability Level: STEWARD TIER
    Input Constraints: Any string, including None
    Side Effects: None
    """
    if not text:
        return None
    lowered = text.casefold()
    for rule in RULE_BOOK:
        if rule.matches(lowered):
            return rule
    return None


# =============================================================================
# Heuristic Defaults
# =============================================================================

HEURISTIC_FAULT_A: Dict[CanonicalIncidentKey, int] = {
    CanonicalIncidentKey.DIVEBOMB: 92,
    CanonicalIncidentKey.WEAVE_BLOCK: 15,
    CanonicalIncidentKey.UNSAFE_REJOIN: 80,
    CanonicalIncidentKey.VORTEX_EXIT: 88,
    CanonicalIncidentKey.TRACK_LIMITS: 70,
    CanonicalIncidentKey.NETCODE: 50,
    CanonicalIncidentKey.USED_AS_BARRIER: 95,
    CanonicalIncidentKey.PIT_LANE_INCIDENT: 75,
    CanonicalIncidentKey.T1_CHAOS: 65,
    CanonicalIncidentKey.INTENTIONAL_WRECK: 98,
    CanonicalIncidentKey.RACING_INCIDENT: 50,
    CanonicalIncidentKey.GENERAL_CONTACT: 70,
}


def heuristic_fault_a(key: CanonicalIncidentKey) -> int:
    return HEURISTIC_FAULT_A.get(key, DEFAULT_HEURISTIC_FAULT_A)


# =============================================================================
# Coaching Notes
# =============================================================================

_GENERIC_COACHING = CoachingNotes(
    pro_tip="Leave a car's width and race the car, not the gap.",
    overtake_tip="Wait for a clear overlap before committing to the corner.",
    defend_tip="Pick one line early and hold it through the braking zone.",
    spotter_overtaker="Listen to your spotter before committing.",
    spotter_defender="React to 'car inside!' by leaving room.",
)

COACHING: Dict[CanonicalIncidentKey, CoachingNotes] = {
    CanonicalIncidentKey.DIVEBOMB: CoachingNotes(
        pro_tip="If you cannot stop at the apex, you were never really alongside.",
        overtake_tip="Set up the pass on the previous exit instead of lunging late.",
        defend_tip="Brake at your normal marker; do not turn in on a car with overlap.",
        spotter_overtaker="Call 'inside' only once your front wheels reach their doors.",
        spotter_defender="React to 'car inside!' before turn-in.",
    ),
    CanonicalIncidentKey.WEAVE_BLOCK: CoachingNotes(
        pro_tip="One defensive move per straight; reactionary moves are penalised.",
        overtake_tip="Show a nose on both sides, then commit on the exit you are given.",
        defend_tip="Make a single move before the braking zone and hold it.",
        spotter_overtaker="Confirm the defender has finished their move before diving.",
        spotter_defender="Stop moving once 'car alongside' is called.",
    ),
    CanonicalIncidentKey.UNSAFE_REJOIN: CoachingNotes(
        pro_tip="After an off, rejoin parallel to the racing line and wait for a gap.",
        overtake_tip="Give cars rejoining from the runoff as much room as you safely can.",
        defend_tip="Check mirrors and relative before rejoining the circuit.",
        spotter_overtaker="Warn early about cars stopped or spinning ahead.",
        spotter_defender="Call 'clear' only when traffic has passed the rejoin point.",
    ),
    CanonicalIncidentKey.VORTEX_EXIT: CoachingNotes(
        pro_tip="Pull out of the draft before the braking zone, not in it.",
        overtake_tip="Commit to the side you break the tow on; never switch back.",
        defend_tip="Leave the draft exit line open once a car is alongside.",
        spotter_overtaker="Call the exit side clearly before leaving the tow.",
        spotter_defender="Call 'car left/right' as soon as the tow is broken.",
    ),
    CanonicalIncidentKey.TRACK_LIMITS: CoachingNotes(
        pro_tip="Positions gained off track must be given back immediately.",
        overtake_tip="Complete the pass within the white lines.",
        defend_tip="Leave racing room at the apex when a car has overlap.",
        spotter_overtaker="Warn when the defender is running out of road.",
        spotter_defender="Call overlap at turn-in so room can be left.",
    ),
    CanonicalIncidentKey.NETCODE: CoachingNotes(
        pro_tip="Give extra space to cars with poor connection quality.",
        overtake_tip="Avoid close side-by-side racing with a warping car.",
        defend_tip="Report persistent lag to race control rather than retaliating.",
        spotter_overtaker="Flag cars that are teleporting on the relative.",
        spotter_defender="Call extra margin around cars with connection issues.",
    ),
    CanonicalIncidentKey.USED_AS_BARRIER: CoachingNotes(
        pro_tip="Another car is never your braking reference.",
        overtake_tip="Only go for the pass if you can make the corner on your own.",
        defend_tip="Leave room, but log the incident if you are used as a wall.",
        spotter_overtaker="Call when there is no room to make the corner.",
        spotter_defender="Warn of cars carrying too much speed alongside.",
    ),
    CanonicalIncidentKey.PIT_LANE_INCIDENT: CoachingNotes(
        pro_tip="Respect the pit entry and exit blend lines at all times.",
        overtake_tip="Do not cross the pit exit line to gain position.",
        defend_tip="Hold a predictable line past pit entry.",
        spotter_overtaker="Call cars leaving the pit lane early.",
        spotter_defender="Warn of cars diving for pit entry.",
    ),
    CanonicalIncidentKey.T1_CHAOS: CoachingNotes(
        pro_tip="You cannot win the race in turn 1, but you can lose it.",
        overtake_tip="Brake early on lap 1 and expect the cars ahead to check up.",
        defend_tip="Protect your line but leave space for the chaos around you.",
        spotter_overtaker="Call accordions and stopped cars immediately.",
        spotter_defender="Call cars three-wide through the first corner.",
    ),
    CanonicalIncidentKey.INTENTIONAL_WRECK: CoachingNotes(
        pro_tip="Retaliation turns a racing incident into a disqualification.",
        overtake_tip="Report the incident instead of settling it on track.",
        defend_tip="Protect yourself and file a protest with evidence.",
        spotter_overtaker="Keep your driver calm and focused on their own race.",
        spotter_defender="Warn of aggressive cars approaching.",
    ),
    CanonicalIncidentKey.RACING_INCIDENT: CoachingNotes(
        pro_tip="Both drivers could have avoided this; leave margin next time.",
        overtake_tip="Commit fully or back out; half-committed moves end in contact.",
        defend_tip="Leave a little extra room when a move is borderline.",
        spotter_overtaker="Call gaps that are closing.",
        spotter_defender="Call 'car inside!' early and often.",
    ),
    CanonicalIncidentKey.GENERAL_CONTACT: _GENERIC_COACHING,
}


def coaching_for(key: CanonicalIncidentKey) -> CoachingNotes:
    return COACHING.get(key, _GENERIC_COACHING)
