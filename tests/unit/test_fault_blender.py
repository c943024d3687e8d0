"""
Unit Tests for the Fault Blender

Reliability Level: STEWARD TIER
Decimal Integrity: Expected values computed with ROUND_HALF_EVEN

Tests the blending policy:
- 0.70 rounded precedent average + 0.30 neutral prior
- Default precedent average of 60 when nothing parses
- Override path bypasses blending
- Clamp to [2, 98]
"""

from decimal import Decimal

import pytest

from app.logic.fault_blender import (
    DEFAULT_PRECEDENT_FAULT,
    FaultEstimate,
    FaultSource,
    MAX_FAULT_A,
    MIN_FAULT_A,
    blend,
    clamp_fault,
    collect_estimates,
    estimate_from_precedents,
    precedent_average,
    split_fault,
)
from app.logic.incident_classifier import CanonicalIncidentKey
from app.logic.precedent_retriever import PrecedentRecord, RankedMatch
from app.logic.rule_book import match_rule


def make_matches(*faults):
    return [
        RankedMatch(
            record=PrecedentRecord(f"case {i}", "reason", "ruling", fault),
            score=Decimal("15"),
        )
        for i, fault in enumerate(faults)
    ]


# =============================================================================
# Test precedent averaging
# =============================================================================

class TestPrecedentAverage:

    def test_mean_of_parseable_values(self) -> None:
        average, size = precedent_average(make_matches("80", "85%", "78", "85"))
        assert average == Decimal("82")
        assert size == 4

    def test_malformed_values_are_skipped(self) -> None:
        average, size = precedent_average(make_matches("90", "abc", None, "70"))
        assert average == Decimal("80")
        assert size == 2

    def test_default_when_nothing_parses(self) -> None:
        average, size = precedent_average(make_matches("abc", None))
        assert average == DEFAULT_PRECEDENT_FAULT
        assert size == 0
        assert precedent_average([]) == (DEFAULT_PRECEDENT_FAULT, 0)

    def test_precedent_estimate_rounds_half_even(self) -> None:
        estimate = estimate_from_precedents(make_matches("82", "83"))
        assert estimate.value_a == 82
        assert estimate.source == FaultSource.PRECEDENT
        assert estimate.sample_size == 2


# =============================================================================
# Test blend()
# =============================================================================

class TestBlend:

    def test_documented_example(self) -> None:
        estimates = collect_estimates(
            make_matches("80", "85", "78", "85"), None, CanonicalIncidentKey.DIVEBOMB
        )
        # round(82 * 0.7 + 50 * 0.3) = round(72.4) = 72
        assert blend(estimates) == 72

    def test_half_point_mean_is_rounded_before_blending(self) -> None:
        estimates = collect_estimates(
            make_matches("82", "83"), None, CanonicalIncidentKey.DIVEBOMB
        )
        # mean 82.5 -> 82, then round(82 * 0.7 + 50 * 0.3) = round(72.4) = 72
        assert blend(estimates) == 72

    def test_default_prior_without_matches(self) -> None:
        estimates = collect_estimates([], None, CanonicalIncidentKey.RACING_INCIDENT)
        # round(60 * 0.7 + 50 * 0.3) = 57
        assert blend(estimates) == 57

    def test_missing_precedent_estimate_uses_default(self) -> None:
        assert blend([]) == 57

    def test_rule_and_heuristic_do_not_move_result(self) -> None:
        matches = make_matches("80", "85", "78", "85")
        rule = match_rule("block")
        with_rule = collect_estimates(matches, rule, CanonicalIncidentKey.WEAVE_BLOCK)
        without = collect_estimates(matches, None, CanonicalIncidentKey.DIVEBOMB)
        assert blend(with_rule) == blend(without)

    @pytest.mark.parametrize("override,expected", [
        (Decimal("0"), MIN_FAULT_A),
        (Decimal("100"), MAX_FAULT_A),
        (Decimal("72.5"), 72),
        (Decimal("73.5"), 74),
        (Decimal("40"), 40),
    ])
    def test_override_path(self, override, expected) -> None:
        estimates = collect_estimates(
            make_matches("10", "10"), None, CanonicalIncidentKey.DIVEBOMB
        )
        assert blend(estimates, override=override) == expected

    def test_clamp_and_split(self) -> None:
        assert clamp_fault(0) == 2
        assert clamp_fault(100) == 98
        assert clamp_fault(50) == 50
        assert split_fault(72) == (72, 28)


# =============================================================================
# Test estimates
# =============================================================================

class TestEstimates:

    def test_collect_estimates_includes_rule_when_matched(self) -> None:
        rule = match_rule("late lunge into the hairpin")
        estimates = collect_estimates([], rule, CanonicalIncidentKey.DIVEBOMB)
        sources = [e.source for e in estimates]
        assert sources == [FaultSource.PRECEDENT, FaultSource.RULE, FaultSource.HEURISTIC]
        assert estimates[1].value_a == 90

    def test_collect_estimates_without_rule(self) -> None:
        estimates = collect_estimates([], None, CanonicalIncidentKey.WEAVE_BLOCK)
        assert [e.source for e in estimates] == [FaultSource.PRECEDENT, FaultSource.HEURISTIC]
        assert estimates[1].value_a == 15

    def test_estimate_rejects_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="STW-BLD-001"):
            FaultEstimate(value_a=101, source=FaultSource.RULE)
