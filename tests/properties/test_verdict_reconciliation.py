"""
============================================================================
Property-Based Tests for Verdict Reconciliation
============================================================================

Reliability Level: STEWARD TIER (Verdict-Critical)

Tests the reconciler with arbitrary external payloads using Hypothesis.

Properties tested:
- Property 6: Unparseable payloads return the baseline unchanged
- Property 7: Every output field is either the baseline value or a valid
  payload value, and the fault pair always sums to 100
- Property 8: Confidence and locked fields never change

============================================================================
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from app.logic.verdict_reconciler import VerdictReconciler
from app.schemas.verdict import ConfidenceLabel, FaultSplit, SpotterAdvice, Verdict


# =============================================================================
# HYPOTHESIS STRATEGIES
# =============================================================================

BASELINE = Verdict(
    rule="iRacing Sporting Code",
    fault=FaultSplit.from_party_a(57),
    car_identification="Car A: Driver A. Car B: Driver B.",
    explanation="Baseline explanation.",
    pro_tip="Baseline tip.",
    confidence=ConfidenceLabel.LOW,
    overtake_tip="Baseline overtake.",
    defend_tip="Baseline defend.",
    spotter_advice=SpotterAdvice(overtaker="Base O", defender="Base D"),
)

scalar_strategy = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-200, max_value=200),
    st.text(max_size=20),
)

percent_strategy = st.one_of(
    st.integers(min_value=-50, max_value=150),
    st.integers(min_value=-50, max_value=150).map(lambda v: f"{v}%"),
    st.text(max_size=5),
)

fault_strategy = st.one_of(
    scalar_strategy,
    st.fixed_dictionaries({"partyA": percent_strategy, "partyB": percent_strategy}),
)

payload_strategy = st.fixed_dictionaries(
    {},
    optional={
        "rule": scalar_strategy,
        "fault": fault_strategy,
        "carIdentification": scalar_strategy,
        "explanation": scalar_strategy,
        "proTip": scalar_strategy,
        "overtakeTip": scalar_strategy,
        "defendTip": scalar_strategy,
        "confidence": st.sampled_from(["Low", "High", "VeryHigh", "HumanOverride"]),
        "spotterAdvice": st.one_of(
            scalar_strategy,
            st.fixed_dictionaries({}, optional={
                "overtaker": scalar_strategy,
                "defender": scalar_strategy,
            }),
        ),
    },
)

# Text that contains no '{' can never parse into an object
non_object_text_strategy = st.text(
    alphabet=st.characters(blacklist_characters="{"), max_size=80
)


# =============================================================================
# PROPERTY 6: Unparseable payloads
# =============================================================================

class TestUnparseablePayload:
    """
    Property 6: Any payload that does not parse into an object leaves the
    baseline verdict untouched.
    """

    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    @given(text=non_object_text_strategy)
    def test_text_without_object(self, text) -> None:
        result = VerdictReconciler().reconcile(BASELINE, text)
        assert result.verdict == BASELINE
        assert result.parsed is False

    @given(payload=st.one_of(st.none(), st.integers(), st.lists(st.integers())))
    def test_non_text_payload(self, payload) -> None:
        assert VerdictReconciler().reconcile(BASELINE, payload).verdict == BASELINE


# =============================================================================
# PROPERTY 7: Field-level fallback
# =============================================================================

class TestFieldLevelFallback:
    """
    Property 7: For any payload, each output field is the baseline value or
    the payload's valid value, and the fault pair sums to 100.
    """

    @settings(max_examples=300, suppress_health_check=[HealthCheck.too_slow])
    @given(payload=payload_strategy)
    def test_fields_come_from_baseline_or_payload(self, payload) -> None:
        verdict = VerdictReconciler().reconcile(BASELINE, payload).verdict

        for field_name, key in (
            ("rule", "rule"),
            ("car_identification", "carIdentification"),
            ("explanation", "explanation"),
            ("pro_tip", "proTip"),
            ("overtake_tip", "overtakeTip"),
            ("defend_tip", "defendTip"),
        ):
            value = getattr(verdict, field_name)
            if value != getattr(BASELINE, field_name):
                raw = payload.get(key)
                assert isinstance(raw, str)
                assert value == raw.strip()
                assert value

        assert verdict.fault.value_a + verdict.fault.value_b == 100
        assert 0 <= verdict.fault.value_a <= 100
        assert verdict.spotter_advice.overtaker
        assert verdict.spotter_advice.defender


# =============================================================================
# PROPERTY 8: Engine-owned and locked fields
# =============================================================================

class TestEngineOwnedFields:
    """
    Property 8: Confidence is never taken from the payload, and a locked
    fault keeps the baseline value for any payload.
    """

    @settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])
    @given(payload=payload_strategy)
    def test_confidence_and_locked_fault(self, payload) -> None:
        result = VerdictReconciler().reconcile(
            BASELINE, payload, locked_fields=frozenset({"fault"})
        )
        assert result.verdict.confidence == BASELINE.confidence
        assert result.verdict.fault == BASELINE.fault
