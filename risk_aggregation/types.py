"""
Risk Aggregation Engine - Type Definitions.

============================================================
PURPOSE
============================================================
Data contracts for the Risk Aggregation Engine.

This module defines the enums, dataclasses and exceptions
shared by the mitigation reducer, the entity score requester,
the risk matrix builder and the organization aggregator.

============================================================
DESIGN PRINCIPLES
============================================================
- Scores are immutable once built
- Every score and component is clamped to [0, 100]
- Entities are read-only snapshots taken at scoring time
- Wire names (camelCase) only appear in to_dict()/to_payload()

============================================================
SCORABLE ENTITIES
============================================================
1. ASSET - Physical sites, vehicles and equipment
2. PERSONNEL - People under the organization's duty of care
3. TRAVEL - Travel plans
4. INCIDENT - Reported security incidents

============================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, ClassVar, Dict, List, Optional


MIN_SCORE = 0.0
MAX_SCORE = 100.0


def clamp_score(value: float) -> float:
    """Clamp a score-like value to [0, 100]."""
    return max(MIN_SCORE, min(MAX_SCORE, float(value)))


# ============================================================
# ENUMS
# ============================================================


class RiskTrend(str, Enum):
    """Qualitative direction of a score relative to a prior value."""

    IMPROVING = "improving"
    STABLE = "stable"
    DETERIORATING = "deteriorating"

    @classmethod
    def parse(cls, value: Any, default: "RiskTrend" = None) -> "RiskTrend":
        """Convert a raw trend value, falling back to STABLE."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.STABLE


class RiskLevel(str, Enum):
    """
    Qualitative level of a 0-100 score.

    - LOW: 0-30
    - MEDIUM: 31-70
    - HIGH: 71-100
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        if score <= 30:
            return cls.LOW
        elif score <= 70:
            return cls.MEDIUM
        return cls.HIGH


class CellSeverity(str, Enum):
    """Severity band of a risk matrix cell."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskOrdinal(IntEnum):
    """Five ordered impact/likelihood levels used by risk records."""

    VERY_LOW = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    VERY_HIGH = 4

    @classmethod
    def parse(cls, value: Any) -> Optional["RiskOrdinal"]:
        """
        Parse a stored ordinal such as "very_high".

        Only the exact lowercase stored values are accepted;
        "High" or " high" are unknown.

        Returns:
            The ordinal, or None when the value is missing or unknown
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or value != value.lower():
            return None
        try:
            return cls[value.upper()]
        except KeyError:
            return None

    @property
    def label(self) -> str:
        """Display label, e.g. "Very High"."""
        return self.name.replace("_", " ").title()


class EntityType(str, Enum):
    """Request type tags understood by the Scoring Oracle."""

    ASSET = "asset"
    PERSONNEL = "personnel"
    TRAVEL = "travel"
    INCIDENT = "incident"
    RISK = "risk"
    ORGANIZATION = "organization"
    MITIGATION = "mitigation"


class EntityCategory(str, Enum):
    """
    Entity Store collections read for an organization.

    Values are the keys of the aggregate bundle sent to the Oracle.
    """

    ASSETS = "assets"
    PERSONNEL = "personnel"
    INCIDENTS = "incidents"
    RISKS = "risks"
    TRAVEL_PLANS = "travelPlans"


class MitigationCategory(str, Enum):
    ASSET = "asset"
    PERSONNEL = "personnel"
    INCIDENT = "incident"
    TRAVEL = "travel"
    RISK = "risk"
    GENERAL = "general"


class PreviousScoreSource(str, Enum):
    """Where an organization score's previous value came from."""

    SUPPLIED = "supplied"          # Passed in by the caller
    HISTORY = "history"            # Latest persisted score
    SYNTHESIZED = "synthesized"    # Invented for display continuity
    NONE = "none"                  # Unavailable, previous == current
    FALLBACK = "fallback"          # Part of the static fallback result


# ============================================================
# SCORE CONTRACTS
# ============================================================


@dataclass(frozen=True)
class ScorePredictions:
    """Short and medium term score predictions from the Oracle."""

    next_week: Optional[float] = None
    next_month: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"nextWeek": self.next_week, "nextMonth": self.next_month}


@dataclass(frozen=True)
class RiskScore:
    """
    A risk assessment returned by the Scoring Oracle.

    ============================================================
    GUARANTEES
    ============================================================
    - overall is an integer in [0, 100]
    - every component value is in [0, 100]
    - confidence is in [0, 100]

    ============================================================
    """

    overall: int = 0
    components: Dict[str, float] = field(default_factory=dict)
    confidence: float = 0.0
    trend: RiskTrend = RiskTrend.STABLE
    explanation: str = ""
    recommendations: List[str] = field(default_factory=list)
    predictions: Optional[ScorePredictions] = None
    last_updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        object.__setattr__(self, "overall", int(round(clamp_score(self.overall))))
        object.__setattr__(self, "confidence", clamp_score(self.confidence))
        object.__setattr__(
            self,
            "components",
            {name: clamp_score(value) for name, value in self.components.items()},
        )

    @property
    def level(self) -> RiskLevel:
        return RiskLevel.from_score(self.overall)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "overall": self.overall,
            "components": dict(self.components),
            "confidence": self.confidence,
            "trend": self.trend.value,
            "explanation": self.explanation,
            "recommendations": list(self.recommendations),
            "predictions": self.predictions.to_dict() if self.predictions else None,
            "lastUpdated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class AppliedMitigation:
    """
    A mitigation applied to a scored entity.

    Only name and applied_risk_reduction_score take part in
    scoring; the rest is carried through from the stored record.
    """

    name: str
    applied_risk_reduction_score: float
    mitigation_id: Optional[str] = None
    category: MitigationCategory = MitigationCategory.GENERAL
    description: Optional[str] = None
    notes: Optional[str] = None
    applied_at: Optional[datetime] = None
    applied_by: Optional[str] = None

    def __post_init__(self) -> None:
        if self.applied_risk_reduction_score < 0:
            raise ValueError(
                f"Mitigation '{self.name}' has negative risk reduction: "
                f"{self.applied_risk_reduction_score}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppliedMitigation":
        """Build from a stored mitigation entry."""
        try:
            category = MitigationCategory(data.get("category") or "general")
        except ValueError:
            category = MitigationCategory.GENERAL

        applied_at = data.get("applied_at")
        if isinstance(applied_at, str):
            applied_at = datetime.fromisoformat(applied_at.replace("Z", "+00:00"))

        return cls(
            name=data.get("name", ""),
            applied_risk_reduction_score=float(data.get("applied_risk_reduction_score") or 0),
            mitigation_id=data.get("mitigation_id"),
            category=category,
            description=data.get("description"),
            notes=data.get("notes"),
            applied_at=applied_at,
            applied_by=data.get("applied_by"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mitigation_id": self.mitigation_id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "applied_risk_reduction_score": self.applied_risk_reduction_score,
            "notes": self.notes,
            "applied_at": self.applied_at.isoformat() if self.applied_at else None,
            "applied_by": self.applied_by,
        }


@dataclass(frozen=True)
class EffectiveRiskScore(RiskScore):
    """
    A RiskScore after mitigation reductions.

    overall holds the reduced score; original_score keeps the
    Oracle's value. Derived, never persisted on its own.
    """

    original_score: int = 0
    total_risk_reduction: float = 0.0
    mitigation_applied: bool = False
    is_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "originalScore": self.original_score,
            "totalRiskReduction": self.total_risk_reduction,
            "mitigationApplied": self.mitigation_applied,
            "isFallback": self.is_fallback,
        })
        return data


# ============================================================
# SCORABLE ENTITIES
# ============================================================


@dataclass
class ScorableEntity:
    """
    Base class for entities the engine can score.

    attributes holds every stored field the engine does not
    model explicitly; it is passed through to the Oracle as is.
    """

    entity_type: ClassVar[EntityType]

    organization_id: str
    id: Optional[str] = None
    name: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)
    mitigations: List[AppliedMitigation] = field(default_factory=list)

    # Stored fields lifted into dedicated attributes by from_record()
    _COMMON_FIELDS: ClassVar[tuple] = ("organization_id", "id", "name", "mitigations")
    _SPECIFIC_FIELDS: ClassVar[tuple] = ()

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ScorableEntity":
        """Build an entity snapshot from an Entity Store row."""
        known = cls._COMMON_FIELDS + cls._SPECIFIC_FIELDS
        specific = {
            key: record[key]
            for key in cls._SPECIFIC_FIELDS
            if record.get(key) is not None
        }
        return cls(
            organization_id=record.get("organization_id", ""),
            id=record.get("id"),
            name=record.get("name") or "",
            attributes={k: v for k, v in record.items() if k not in known},
            mitigations=[
                AppliedMitigation.from_dict(m) for m in (record.get("mitigations") or [])
            ],
            **specific,
        )

    def type_specific_payload(self) -> Dict[str, Any]:
        """Fields added to the payload by each variant."""
        return {}

    def to_payload(self) -> Dict[str, Any]:
        """Serialize into the data object of a scoring request."""
        payload = dict(self.attributes)
        payload.update({
            "id": self.id,
            "name": self.name,
            "organization_id": self.organization_id,
            "mitigations": [m.to_dict() for m in self.mitigations],
        })
        payload.update(self.type_specific_payload())
        return payload


@dataclass
class Asset(ScorableEntity):
    """A building, vehicle, piece of equipment or other protected site."""

    entity_type: ClassVar[EntityType] = EntityType.ASSET
    _COMMON_FIELDS: ClassVar[tuple] = ("organization_id", "id", "name", "mitigations", "type")
    _SPECIFIC_FIELDS: ClassVar[tuple] = ("type_specific_attributes",)

    asset_type: str = ""
    type_specific_attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Asset":
        asset = super().from_record(record)
        asset.asset_type = record.get("type") or ""
        return asset

    def type_specific_payload(self) -> Dict[str, Any]:
        return {
            "type": self.asset_type,
            "type_specific_attributes": dict(self.type_specific_attributes),
        }


@dataclass
class Personnel(ScorableEntity):
    entity_type: ClassVar[EntityType] = EntityType.PERSONNEL
    _SPECIFIC_FIELDS: ClassVar[tuple] = ("work_asset_id",)

    work_asset_id: Optional[str] = None

    def type_specific_payload(self) -> Dict[str, Any]:
        return {"work_asset_id": self.work_asset_id}


@dataclass
class TravelPlan(ScorableEntity):
    entity_type: ClassVar[EntityType] = EntityType.TRAVEL
    _SPECIFIC_FIELDS: ClassVar[tuple] = ("traveler_name", "destination", "departure_date", "return_date")

    traveler_name: Optional[str] = None
    destination: Any = None
    departure_date: Optional[str] = None
    return_date: Optional[str] = None

    def type_specific_payload(self) -> Dict[str, Any]:
        return {
            "traveler_name": self.traveler_name,
            "destination": self.destination,
            "departure_date": self.departure_date,
            "return_date": self.return_date,
        }


@dataclass
class Incident(ScorableEntity):
    entity_type: ClassVar[EntityType] = EntityType.INCIDENT
    _SPECIFIC_FIELDS: ClassVar[tuple] = ("severity", "status", "date_time")

    severity: Optional[str] = None
    status: Optional[str] = None
    date_time: Optional[str] = None

    def type_specific_payload(self) -> Dict[str, Any]:
        return {
            "severity": self.severity,
            "status": self.status,
            "date_time": self.date_time,
        }


@dataclass(frozen=True)
class RiskRecord:
    """
    A discrete risk register entry, reduced into the risk matrix.

    impact and likelihood are kept raw so that malformed
    upstream values can be detected and counted.
    """

    impact: Optional[str] = None
    likelihood: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskRecord":
        return cls(impact=data.get("impact"), likelihood=data.get("likelihood"))


# ============================================================
# REQUEST / ORGANIZATION CONTRACTS
# ============================================================


@dataclass(frozen=True)
class ScoringRequest:
    """A single request to the Scoring Oracle."""

    type: EntityType
    data: Dict[str, Any]
    organization_id: str
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the request."""
        body = {
            "type": self.type.value,
            "data": self.data,
            "organizationId": self.organization_id,
        }
        if self.user_id:
            body["userId"] = self.user_id
        return body


@dataclass(frozen=True)
class OrganizationRiskScore:
    """
    Organization-wide composite risk score.

    ============================================================
    TREND FIELDS
    ============================================================
    - weekly_change: score - previous_score
    - percentage_change: weekly_change / previous_score * 100,
      or 0 when previous_score is 0
    - previous_score_source: where previous_score came from

    ============================================================
    """

    organization_id: str
    score: int
    previous_score: float
    components: Dict[str, float] = field(default_factory=dict)
    trend: RiskTrend = RiskTrend.STABLE
    explanation: str = ""
    recommendations: List[str] = field(default_factory=list)
    confidence: Optional[float] = None
    weekly_change: float = 0.0
    percentage_change: float = 0.0
    previous_score_source: PreviousScoreSource = PreviousScoreSource.NONE
    is_fallback: bool = False
    failed_categories: List[str] = field(default_factory=list)
    assessed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def level(self) -> RiskLevel:
        return RiskLevel.from_score(self.score)

    @property
    def is_partial(self) -> bool:
        """True when at least one category read failed."""
        return bool(self.failed_categories)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "organizationId": self.organization_id,
            "score": self.score,
            "previousScore": self.previous_score,
            "components": dict(self.components),
            "trend": self.trend.value,
            "explanation": self.explanation,
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "weeklyChange": self.weekly_change,
            "percentageChange": self.percentage_change,
            "previousScoreSource": self.previous_score_source.value,
            "isFallback": self.is_fallback,
            "failedCategories": list(self.failed_categories),
            "assessedAt": self.assessed_at.isoformat(),
        }


# ============================================================
# ERROR TYPES
# ============================================================


class RiskAggregationError(Exception):
    """Base exception for the risk aggregation engine."""

    def __init__(
        self,
        message: str,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
        }

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (caused by: {self.original_error})"
        return self.message


class OracleError(RiskAggregationError):
    """The Scoring Oracle could not produce a usable result."""
    pass


class OracleUnavailableError(OracleError):
    """Transport failure or non-2xx response from the Oracle."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.status_code = status_code
        self.response_body = response_body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
        })
        return data


class MalformedOracleResponseError(OracleError):
    """The Oracle answered, but the payload failed validation."""
    pass


class EntityStoreError(RiskAggregationError):
    """A read against the Entity Store failed."""

    def __init__(
        self,
        message: str,
        category: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, original_error, context)
        self.category = category
