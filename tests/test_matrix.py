"""
Tests for the Risk Matrix Builder.

Tests cover:
- Cell counting by impact/likelihood
- Lenient defaulting of malformed ordinals
- Severity banding and its monotonicity
"""

import pytest

from risk_aggregation import (
    CellSeverity,
    MatrixConfig,
    RiskOrdinal,
    RiskRecord,
    build_matrix,
    cell_score,
    cell_severity,
)


LEVELS = ["very_low", "low", "medium", "high", "very_high"]


# =============================================================
# TEST: Counting
# =============================================================

class TestBuildMatrix:
    """Test build_matrix()."""

    def test_empty_input_gives_zero_matrix(self):
        matrix = build_matrix([])

        assert matrix.cells == [[0] * 5 for _ in range(5)]
        assert matrix.total == 0
        assert matrix.defaulted_count == 0

    def test_very_high_record_lands_in_corner(self):
        """very_high/very_high is cell [4][4], score 25, critical."""
        matrix = build_matrix([RiskRecord(impact="very_high", likelihood="very_high")])

        assert matrix.count(4, 4) == 1
        assert cell_score(4, 4) == 25
        assert matrix.severity(4, 4) == CellSeverity.CRITICAL

    def test_indexed_impact_then_likelihood(self):
        matrix = build_matrix([RiskRecord(impact="high", likelihood="low")])

        assert matrix.cells[3][1] == 1
        assert matrix.cells[1][3] == 0

    def test_accepts_stored_dicts(self):
        matrix = build_matrix([
            {"id": "r-1", "impact": "low", "likelihood": "very_low"},
            {"id": "r-2", "impact": "low", "likelihood": "very_low"},
        ])

        assert matrix.count(1, 0) == 2

    def test_unknown_values_default_to_medium(self):
        """Malformed ordinals still count, as medium."""
        matrix = build_matrix([
            RiskRecord(impact="catastrophic", likelihood="high"),
            RiskRecord(impact=None, likelihood=None),
            {"likelihood": "very_low"},
        ])

        assert matrix.count(2, 3) == 1
        assert matrix.count(2, 2) == 1
        assert matrix.count(2, 0) == 1
        assert matrix.defaulted_count == 3

    def test_only_exact_lowercase_values_match(self):
        """Mixed-case or padded values are unknown and count as medium."""
        matrix = build_matrix([
            RiskRecord(impact="High", likelihood="low"),
            RiskRecord(impact=" high", likelihood="LOW"),
        ])

        assert matrix.count(2, 1) == 1
        assert matrix.count(2, 2) == 1
        assert matrix.count(3, 1) == 0
        assert matrix.defaulted_count == 2

    def test_counts_sum_to_record_count(self):
        """Every record is counted exactly once."""
        records = [
            RiskRecord(impact=impact, likelihood=likelihood)
            for impact in LEVELS + ["bogus"]
            for likelihood in LEVELS + [None]
        ]

        matrix = build_matrix(records)

        assert matrix.total == len(records)
        assert matrix.defaulted_count == 11

    def test_to_dict_has_labels(self):
        data = build_matrix([]).to_dict()

        assert data["impact_labels"] == ["Very Low", "Low", "Medium", "High", "Very High"]
        assert data["severity"][0][0] == "low"
        assert data["severity"][4][4] == "critical"


# =============================================================
# TEST: Severity banding
# =============================================================

class TestCellSeverity:
    """Test cell_severity()."""

    @pytest.mark.parametrize(
        "impact,likelihood,expected",
        [
            (0, 0, CellSeverity.LOW),        # 1
            (1, 1, CellSeverity.LOW),        # 4
            (0, 4, CellSeverity.MEDIUM),     # 5
            (2, 2, CellSeverity.MEDIUM),     # 9
            (1, 4, CellSeverity.HIGH),       # 10
            (3, 3, CellSeverity.HIGH),       # 16
            (3, 4, CellSeverity.CRITICAL),   # 20
        ],
    )
    def test_bands(self, impact, likelihood, expected):
        assert cell_severity(impact, likelihood) == expected

    def test_score_is_monotonic(self):
        """Raising either index never lowers the score."""
        for fixed in range(5):
            for index in range(4):
                assert cell_score(index + 1, fixed) >= cell_score(index, fixed)
                assert cell_score(fixed, index + 1) >= cell_score(fixed, index)

    def test_out_of_range_index_raises(self):
        with pytest.raises(IndexError):
            cell_score(5, 0)

    def test_custom_thresholds(self):
        config = MatrixConfig(low_max=1, medium_max=2, high_max=3)

        assert cell_severity(0, 1, config) == CellSeverity.MEDIUM
        assert cell_severity(1, 1, config) == CellSeverity.CRITICAL


class TestRiskOrdinal:
    def test_parse_known_values(self):
        assert [RiskOrdinal.parse(level) for level in LEVELS] == list(RiskOrdinal)

    def test_parse_unknown_returns_none(self):
        assert RiskOrdinal.parse("extreme") is None
        assert RiskOrdinal.parse(3) is None
