"""
Risk Aggregation Engine - Repository.

============================================================
PURPOSE
============================================================
Repository for the organization risk score time series.

Provides:
- Saving organization scores
- Retrieving the latest score (trend baseline)
- Querying score history

OrganizationScoreHistory wraps the repository in its own
transactions so the aggregator can use it as a ScoreHistory.

============================================================
"""

from datetime import datetime
from typing import List, Optional, Protocol

from sqlalchemy import and_, desc, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .database import transaction_scope
from .models import OrganizationRiskSnapshot
from .types import OrganizationRiskScore, PreviousScoreSource


# Previous scores that were actually observed; the rest are display only
_OBSERVED_PREVIOUS = (PreviousScoreSource.SUPPLIED, PreviousScoreSource.HISTORY)


def persisted_previous_score(result: OrganizationRiskScore) -> Optional[float]:
    """The previous score to store, None when it was synthesized or absent."""
    if result.previous_score_source in _OBSERVED_PREVIOUS:
        return result.previous_score
    return None


class ScoreHistory(Protocol):
    """Persisted time series of organization scores."""

    async def get_latest_score(self, organization_id: str) -> Optional[int]:
        ...

    async def record_score(self, result: OrganizationRiskScore) -> None:
        ...


class OrganizationRiskRepository:
    """
    Repository for organization score persistence.

    ============================================================
    METHODS
    ============================================================
    - save_score: Persist an organization score
    - get_latest_snapshot: Most recent score for an organization
    - get_history: Scores in a time range

    ============================================================
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # --------------------------------------------------------
    # WRITE OPERATIONS
    # --------------------------------------------------------

    async def save_score(self, result: OrganizationRiskScore) -> OrganizationRiskSnapshot:
        """
        Save an organization score.

        previous_score is stored only when it was supplied by the
        caller or read from history; synthesized values are dropped.

        Raises:
            ValueError: For fallback scores, which are not real
                        observations
        """
        if result.is_fallback:
            raise ValueError("Fallback organization scores are not persisted")

        snapshot = OrganizationRiskSnapshot(
            organization_id=result.organization_id,
            score=result.score,
            previous_score=persisted_previous_score(result),
            trend=result.trend.value,
            confidence=result.confidence,
            components=dict(result.components),
            explanation=result.explanation,
            recommendations=list(result.recommendations),
            failed_categories=list(result.failed_categories),
            is_partial=result.is_partial,
            assessed_at=result.assessed_at,
        )

        self._session.add(snapshot)
        await self._session.flush()
        return snapshot

    # --------------------------------------------------------
    # READ OPERATIONS
    # --------------------------------------------------------

    async def get_latest_snapshot(
        self,
        organization_id: str,
    ) -> Optional[OrganizationRiskSnapshot]:
        stmt = (
            select(OrganizationRiskSnapshot)
            .where(OrganizationRiskSnapshot.organization_id == organization_id)
            .order_by(desc(OrganizationRiskSnapshot.assessed_at))
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_history(
        self,
        organization_id: str,
        since: Optional[datetime] = None,
        limit: int = 1000,
    ) -> List[OrganizationRiskSnapshot]:
        """
        Scores for an organization, newest first.

        Args:
            organization_id: Organization to query
            since: Only scores assessed at or after this time
            limit: Maximum number of records
        """
        conditions = [OrganizationRiskSnapshot.organization_id == organization_id]

        if since:
            conditions.append(OrganizationRiskSnapshot.assessed_at >= since)

        stmt = (
            select(OrganizationRiskSnapshot)
            .where(and_(*conditions))
            .order_by(desc(OrganizationRiskSnapshot.assessed_at))
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class OrganizationScoreHistory:
    """ScoreHistory backed by OrganizationRiskRepository."""

    def __init__(self, session_factory: async_sessionmaker):
        self._session_factory = session_factory

    async def get_latest_score(self, organization_id: str) -> Optional[int]:
        async with self._session_factory() as session:
            snapshot = await OrganizationRiskRepository(session).get_latest_snapshot(
                organization_id
            )
        return snapshot.score if snapshot is not None else None

    async def record_score(self, result: OrganizationRiskScore) -> None:
        async with transaction_scope(self._session_factory) as session:
            await OrganizationRiskRepository(session).save_score(result)
