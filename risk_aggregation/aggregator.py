"""
Risk Aggregation Engine - Organization Aggregator.

============================================================
PURPOSE
============================================================
Computes one organization-wide risk score:

1. Fan-out: read assets, personnel, incidents, risks and
   travel plans for the organization concurrently
2. Fan-in: wait for all five reads; a failed read becomes an
   empty category
3. Submit the aggregate bundle as one "organization" request
4. Surface the Oracle's score, components, trend,
   explanation and recommendations
5. Compute weekly and percentage change against a previous
   score

============================================================
PREVIOUS SCORE RESOLUTION
============================================================
1. Value supplied by the caller
2. Latest score from the configured ScoreHistory
3. Synthesized for display continuity, if enabled:
       max(10, score - randint(5, 10))
4. Otherwise the current score (no change)

============================================================
FAILURE HANDLING
============================================================
- Category read fails -> empty list, name in failed_categories
- Oracle fails        -> static fallback result (score 42)

score_organization() never raises for either; cancellation
still propagates and cancels in-flight reads.

============================================================
"""

import asyncio
import logging
import random
from typing import Any, Dict, List, Optional, Tuple

from .config import EngineConfig
from .oracle import ScoringOracle, parse_oracle_response
from .repository import ScoreHistory
from .store import EntityStore
from .types import (
    EntityCategory,
    EntityType,
    OracleError,
    OrganizationRiskScore,
    PreviousScoreSource,
    RiskScore,
    ScoringRequest,
)


logger = logging.getLogger(__name__)


Bundle = Dict[str, List[Dict[str, Any]]]


def compute_change(score: float, previous_score: float) -> Tuple[float, float]:
    """
    Weekly and percentage change of a score.

    Returns:
        (score - previous_score, change / previous_score * 100),
        the percentage being 0 when previous_score is not positive
    """
    weekly_change = score - previous_score
    if previous_score > 0:
        percentage_change = weekly_change / previous_score * 100
    else:
        percentage_change = 0.0
    return weekly_change, percentage_change


class OrganizationAggregator:
    """
    Organization-level risk aggregation.

    ============================================================
    DEPENDENCIES
    ============================================================
    - oracle: ScoringOracle for the organization request
    - store: EntityStore for the five category reads
    - history: optional ScoreHistory for trend baselines

    ============================================================
    """

    def __init__(
        self,
        oracle: ScoringOracle,
        store: EntityStore,
        history: Optional[ScoreHistory] = None,
        config: Optional[EngineConfig] = None,
        rng: Optional[random.Random] = None,
        user_id: Optional[str] = None,
    ):
        self._oracle = oracle
        self._store = store
        self._history = history
        self.config = config or EngineConfig()
        self._rng = rng or random.Random()
        self._user_id = user_id

    async def score_organization(
        self,
        organization_id: str,
        previous_score: Optional[float] = None,
    ) -> OrganizationRiskScore:
        """
        Compute the organization's composite risk score.

        Args:
            organization_id: Organization to score
            previous_score: Known previous score, if any

        Returns:
            OrganizationRiskScore; the static fallback when the
            Oracle cannot be used
        """
        # --------------------------------------------------
        # Step 1-2: Fan-out / fan-in
        # --------------------------------------------------
        bundle, failed_categories = await self.collect_bundle(organization_id)

        # --------------------------------------------------
        # Step 3: Organization request
        # --------------------------------------------------
        request = ScoringRequest(
            type=EntityType.ORGANIZATION,
            data=bundle,
            organization_id=organization_id,
            user_id=self._user_id,
        )

        raw = await self._request_score(request)
        if raw is None:
            return self.fallback_result(organization_id, failed_categories)

        # --------------------------------------------------
        # Step 4-5: Result with trend against previous score
        # --------------------------------------------------
        previous, source = await self._resolve_previous_score(
            organization_id, raw.overall, previous_score
        )
        weekly_change, percentage_change = compute_change(raw.overall, previous)

        result = OrganizationRiskScore(
            organization_id=organization_id,
            score=raw.overall,
            previous_score=previous,
            components=raw.components,
            trend=raw.trend,
            explanation=raw.explanation,
            recommendations=raw.recommendations,
            confidence=raw.confidence,
            weekly_change=weekly_change,
            percentage_change=percentage_change,
            previous_score_source=source,
            failed_categories=failed_categories,
        )

        await self._record(result)
        return result

    async def collect_bundle(self, organization_id: str) -> Tuple[Bundle, List[str]]:
        """
        Read the five entity categories concurrently.

        Returns:
            (bundle keyed by category, names of failed categories)
        """
        readers = {
            EntityCategory.ASSETS: self._store.list_assets,
            EntityCategory.PERSONNEL: self._store.list_personnel,
            EntityCategory.INCIDENTS: self._store.list_incidents,
            EntityCategory.RISKS: self._store.list_risks,
            EntityCategory.TRAVEL_PLANS: self._store.list_travel_plans,
        }
        categories = list(readers)

        results = await asyncio.gather(
            *(readers[category](organization_id) for category in categories),
            return_exceptions=True,
        )

        # A cancelled caller never gets here: gather() raises instead.
        # A CancelledError in results came from a single read.
        bundle: Bundle = {}
        failed: List[str] = []

        for category, result in zip(categories, results):
            if isinstance(result, (Exception, asyncio.CancelledError)):
                logger.warning(
                    f"Failed to read {category.value} for {organization_id}, "
                    f"continuing with no {category.value}: {result}"
                )
                bundle[category.value] = []
                failed.append(category.value)
            elif isinstance(result, BaseException):
                raise result
            else:
                bundle[category.value] = list(result or [])

        return bundle, failed

    def fallback_result(
        self,
        organization_id: str,
        failed_categories: Optional[List[str]] = None,
    ) -> OrganizationRiskScore:
        """The static organization score used when the Oracle fails."""
        fallback = self.config.fallback
        weekly_change, percentage_change = compute_change(
            fallback.organization_score, fallback.organization_previous_score
        )

        return OrganizationRiskScore(
            organization_id=organization_id,
            score=fallback.organization_score,
            previous_score=fallback.organization_previous_score,
            components=dict(fallback.organization_components),
            trend=fallback.organization_trend,
            explanation=fallback.organization_explanation,
            recommendations=list(fallback.organization_recommendations),
            weekly_change=weekly_change,
            percentage_change=percentage_change,
            previous_score_source=PreviousScoreSource.FALLBACK,
            is_fallback=True,
            failed_categories=list(failed_categories or []),
        )

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _request_score(self, request: ScoringRequest) -> Optional[RiskScore]:
        try:
            payload = await self._oracle.score(request)
            return parse_oracle_response(payload)
        except OracleError as e:
            logger.warning(f"Oracle failed for organization {request.organization_id}: {e}")
        except Exception as e:
            logger.warning(
                f"Unexpected Oracle error for organization {request.organization_id}: {e}"
            )
        return None

    async def _resolve_previous_score(
        self,
        organization_id: str,
        score: int,
        supplied: Optional[float],
    ) -> Tuple[float, PreviousScoreSource]:
        if supplied is not None:
            return supplied, PreviousScoreSource.SUPPLIED

        if self._history is not None:
            try:
                latest = await self._history.get_latest_score(organization_id)
            except Exception as e:
                logger.warning(f"Could not load score history for {organization_id}: {e}")
                latest = None
            if latest is not None:
                return latest, PreviousScoreSource.HISTORY

        settings = self.config.aggregator
        if settings.synthesize_previous_score:
            drop = self._rng.randint(settings.synthesized_drop_min, settings.synthesized_drop_max)
            synthesized = max(settings.min_synthesized_previous, score - drop)
            logger.debug(f"No previous score for {organization_id}, synthesized {synthesized}")
            return synthesized, PreviousScoreSource.SYNTHESIZED

        return score, PreviousScoreSource.NONE

    async def _record(self, result: OrganizationRiskScore) -> None:
        if self._history is None or not self.config.aggregator.record_history:
            return
        try:
            await self._history.record_score(result)
        except Exception as e:
            logger.warning(f"Could not record score for {result.organization_id}: {e}")
