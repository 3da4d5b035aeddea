"""
Risk Aggregation Engine - Mitigation Reducer.

============================================================
PURPOSE
============================================================
Applies an entity's mitigations to a raw Oracle score.

    total     = sum(applied_risk_reduction_score)
    effective = max(0, floor(raw.overall - total))

Fractional reductions round the effective score down, so any
positive reduction lowers the score by at least one point.

Pure and order independent. No error conditions.

============================================================
"""

import math
from typing import Iterable

from .types import AppliedMitigation, EffectiveRiskScore, RiskScore


def total_risk_reduction(mitigations: Iterable[AppliedMitigation]) -> float:
    """Sum of applied reductions; 0 for no mitigations."""
    return sum((m.applied_risk_reduction_score for m in mitigations), 0.0)


def reduce_score(
    raw: RiskScore,
    mitigations: Iterable[AppliedMitigation],
    is_fallback: bool = False,
) -> EffectiveRiskScore:
    """
    Reduce a raw score by the given mitigations.

    Args:
        raw: Score returned by the Scoring Oracle (or the fallback)
        mitigations: Mitigations currently applied to the entity
        is_fallback: Whether raw is the outage fallback score

    Returns:
        EffectiveRiskScore; overall is floored at 0
    """
    total = total_risk_reduction(mitigations)
    effective = max(0, math.floor(raw.overall - total))

    return EffectiveRiskScore(
        overall=effective,
        components=raw.components,
        confidence=raw.confidence,
        trend=raw.trend,
        explanation=raw.explanation,
        recommendations=raw.recommendations,
        predictions=raw.predictions,
        last_updated=raw.last_updated,
        original_score=raw.overall,
        total_risk_reduction=total,
        mitigation_applied=total > 0,
        is_fallback=is_fallback,
    )
