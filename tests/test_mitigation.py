"""
Tests for the Mitigation Reducer.

Tests cover:
- Effective score arithmetic
- Floor at zero
- Order independence of the reduction
- mitigation_applied flag
"""

import itertools

import pytest

from risk_aggregation import (
    AppliedMitigation,
    EffectiveRiskScore,
    RiskScore,
    RiskTrend,
    ScorePredictions,
    reduce_score,
    total_risk_reduction,
)


def _mitigation(reduction: float, name: str = "control") -> AppliedMitigation:
    return AppliedMitigation(name=name, applied_risk_reduction_score=reduction)


# =============================================================
# TEST: Concrete scenarios
# =============================================================

class TestReduceScore:
    """Test reduce_score()."""

    def test_two_mitigations_reduce_score(self):
        """80 reduced by 30 and 20 gives 30."""
        raw = RiskScore(overall=80, confidence=85)

        result = reduce_score(raw, [_mitigation(30, "cctv"), _mitigation(20, "guards")])

        assert isinstance(result, EffectiveRiskScore)
        assert result.total_risk_reduction == 50
        assert result.overall == 30
        assert result.mitigation_applied is True
        assert result.original_score == 80

    def test_reduction_larger_than_score_floors_at_zero(self):
        """20 reduced by 50 gives 0, never negative."""
        result = reduce_score(RiskScore(overall=20), [_mitigation(50)])

        assert result.overall == 0
        assert result.original_score == 20
        assert result.total_risk_reduction == 50

    def test_no_mitigations_keeps_score(self):
        """No mitigations: effective equals raw, not applied."""
        result = reduce_score(RiskScore(overall=64), [])

        assert result.overall == 64
        assert result.total_risk_reduction == 0
        assert result.mitigation_applied is False

    def test_zero_reduction_mitigation_not_applied(self):
        """A mitigation worth 0 does not count as applied."""
        result = reduce_score(RiskScore(overall=64), [_mitigation(0)])

        assert result.overall == 64
        assert result.mitigation_applied is False

    @pytest.mark.parametrize(
        "reduction,expected",
        [(0.5, 49), (0.25, 49), (1.5, 48), (2.5, 47)],
    )
    def test_fractional_reduction_rounds_down(self, reduction, expected):
        """An applied mitigation always lowers a positive score."""
        result = reduce_score(RiskScore(overall=50), [_mitigation(reduction)])

        assert result.overall == expected
        assert result.mitigation_applied is True
        assert result.overall < result.original_score

    def test_other_fields_carried_over(self):
        """Components, trend and predictions are kept."""
        raw = RiskScore(
            overall=70,
            components={"physicalSecurity": 40},
            confidence=90,
            trend=RiskTrend.DETERIORATING,
            explanation="Exposed perimeter",
            recommendations=["Add fencing"],
            predictions=ScorePredictions(next_week=72, next_month=75),
        )

        result = reduce_score(raw, [_mitigation(10)])

        assert result.components == {"physicalSecurity": 40}
        assert result.confidence == 90
        assert result.trend == RiskTrend.DETERIORATING
        assert result.explanation == "Exposed perimeter"
        assert result.recommendations == ["Add fencing"]
        assert result.predictions.next_month == 75
        assert result.is_fallback is False


# =============================================================
# TEST: Properties
# =============================================================

class TestReductionProperties:
    """Invariants that hold for any input."""

    @pytest.mark.parametrize("overall", [0, 1, 35, 50, 99, 100])
    @pytest.mark.parametrize("reductions", [[], [5], [10, 15], [60, 70], [0.5, 0.25]])
    def test_effective_within_bounds(self, overall, reductions):
        """Effective score is in [0, raw.overall]."""
        result = reduce_score(RiskScore(overall=overall), [_mitigation(r) for r in reductions])

        assert 0 <= result.overall <= overall
        assert result.mitigation_applied == (result.total_risk_reduction > 0)

    def test_reduction_is_order_independent(self):
        """The same mitigations in any order give the same result."""
        mitigations = [_mitigation(12, "a"), _mitigation(7, "b"), _mitigation(3, "c")]
        raw = RiskScore(overall=90)

        results = {
            (reduce_score(raw, list(order)).overall, total_risk_reduction(order))
            for order in itertools.permutations(mitigations)
        }

        assert results == {(68, 22)}

    def test_negative_reduction_rejected(self):
        """Mitigations cannot increase risk."""
        with pytest.raises(ValueError, match="negative risk reduction"):
            _mitigation(-5)


class TestAppliedMitigationFromDict:
    """Test AppliedMitigation.from_dict()."""

    def test_from_stored_entry(self):
        mitigation = AppliedMitigation.from_dict({
            "mitigation_id": "m-1",
            "name": "Armed escort",
            "category": "travel",
            "applied_risk_reduction_score": 15,
            "applied_at": "2025-06-12T08:15:38Z",
        })

        assert mitigation.name == "Armed escort"
        assert mitigation.applied_risk_reduction_score == 15
        assert mitigation.category.value == "travel"
        assert mitigation.applied_at.year == 2025

    def test_unknown_category_becomes_general(self):
        mitigation = AppliedMitigation.from_dict({"name": "x", "category": "weird"})

        assert mitigation.category.value == "general"
        assert mitigation.applied_risk_reduction_score == 0
