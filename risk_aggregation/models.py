"""
Risk Aggregation Engine - Persistence Layer.

============================================================
PURPOSE
============================================================
ORM model for the organization risk score time series.

Enables:
- Trend computation against a real previous score
- Historical tracking of organization risk posture

Synthesized and fallback scores are never stored.

============================================================
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# ORGANIZATION RISK SNAPSHOT MODEL
# ============================================================


class OrganizationRiskSnapshot(Base):
    """
    Point-in-time organization risk score.

    ============================================================
    WHAT IT STORES
    ============================================================
    - Score (0-100) and the previous score it was compared to
    - Component breakdown as returned by the Oracle
    - Trend, explanation, recommendations
    - Categories whose reads failed (partial data)

    ============================================================
    """

    __tablename__ = "organization_risk_snapshots"

    # Primary key
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )

    organization_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Organization the score belongs to",
    )

    # Core scoring data
    score: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Organization risk score (0-100)",
    )

    previous_score: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
    )

    trend: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="stable",
        comment="improving, stable, deteriorating",
    )

    confidence: Mapped[Optional[float]] = mapped_column(
        Float,
        nullable=True,
    )

    components: Mapped[Dict[str, Any]] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    explanation: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    recommendations: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    failed_categories: Mapped[List[str]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
        comment="Entity Store reads that failed for this score",
    )

    is_partial: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    # Timestamps
    assessed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        comment="When the score was computed",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )

    # Indexes
    __table_args__ = (
        Index("ix_org_risk_snapshots_org_assessed", "organization_id", "assessed_at"),
    )

    def __repr__(self) -> str:
        return (
            f"OrganizationRiskSnapshot("
            f"id={self.id}, "
            f"org={self.organization_id}, "
            f"score={self.score}, "
            f"assessed_at={self.assessed_at})"
        )
