"""
Risk Aggregation Engine - Risk Matrix Builder.

============================================================
PURPOSE
============================================================
Reduces risk records into a 5x5 impact x likelihood count
matrix, indexed [impact][likelihood].

============================================================
SEVERITY BANDING
============================================================
    score = (impact_index + 1) * (likelihood_index + 1)

    1-4   LOW
    5-9   MEDIUM
    10-16 HIGH
    17-25 CRITICAL

The score is multiplicative, so joint extremes dominate.

============================================================
LENIENT ORDINALS
============================================================
Missing or unknown impact/likelihood values are counted as
MEDIUM. Every record is counted exactly once; the number of
records that needed a default is reported as defaulted_count.

============================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .config import MatrixConfig
from .types import CellSeverity, RiskOrdinal, RiskRecord


logger = logging.getLogger(__name__)


MATRIX_SIZE = len(RiskOrdinal)
DEFAULT_ORDINAL = RiskOrdinal.MEDIUM

AXIS_LABELS = [ordinal.label for ordinal in RiskOrdinal]


def cell_score(impact_index: int, likelihood_index: int) -> int:
    """Multiplicative cell score, 1-25."""
    for index in (impact_index, likelihood_index):
        if not 0 <= index < MATRIX_SIZE:
            raise IndexError(f"Matrix index out of range: {index}")
    return (impact_index + 1) * (likelihood_index + 1)


def cell_severity(
    impact_index: int,
    likelihood_index: int,
    config: Optional[MatrixConfig] = None,
) -> CellSeverity:
    """Severity band of a matrix cell."""
    config = config or MatrixConfig()
    score = cell_score(impact_index, likelihood_index)

    if score <= config.low_max:
        return CellSeverity.LOW
    elif score <= config.medium_max:
        return CellSeverity.MEDIUM
    elif score <= config.high_max:
        return CellSeverity.HIGH
    return CellSeverity.CRITICAL


@dataclass
class RiskMatrix:
    """Count matrix produced by build_matrix()."""

    cells: List[List[int]] = field(
        default_factory=lambda: [[0] * MATRIX_SIZE for _ in range(MATRIX_SIZE)]
    )
    defaulted_count: int = 0
    config: MatrixConfig = field(default_factory=MatrixConfig)

    def count(self, impact_index: int, likelihood_index: int) -> int:
        return self.cells[impact_index][likelihood_index]

    @property
    def total(self) -> int:
        """Number of records counted."""
        return sum(sum(row) for row in self.cells)

    def severity(self, impact_index: int, likelihood_index: int) -> CellSeverity:
        return cell_severity(impact_index, likelihood_index, self.config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cells": [list(row) for row in self.cells],
            "severity": [
                [self.severity(impact, likelihood).value for likelihood in range(MATRIX_SIZE)]
                for impact in range(MATRIX_SIZE)
            ],
            "impact_labels": list(AXIS_LABELS),
            "likelihood_labels": list(AXIS_LABELS),
            "total": self.total,
            "defaulted_count": self.defaulted_count,
        }


def _ordinal_index(value: Any) -> Optional[int]:
    ordinal = RiskOrdinal.parse(value)
    return int(ordinal) if ordinal is not None else None


def build_matrix(
    records: Iterable[Any],
    config: Optional[MatrixConfig] = None,
) -> RiskMatrix:
    """
    Build the impact x likelihood matrix.

    Args:
        records: RiskRecord instances or stored risk dicts
        config: Severity band configuration

    Returns:
        RiskMatrix; all zeros for empty input
    """
    matrix = RiskMatrix(config=config or MatrixConfig())

    for record in records:
        if isinstance(record, dict):
            record = RiskRecord.from_dict(record)

        impact = _ordinal_index(record.impact)
        likelihood = _ordinal_index(record.likelihood)

        if impact is None or likelihood is None:
            matrix.defaulted_count += 1

        if impact is None:
            impact = int(DEFAULT_ORDINAL)
        if likelihood is None:
            likelihood = int(DEFAULT_ORDINAL)

        matrix.cells[impact][likelihood] += 1

    if matrix.defaulted_count:
        logger.warning(
            f"{matrix.defaulted_count} risk record(s) had missing or unknown "
            f"impact/likelihood and were counted as medium"
        )

    return matrix
