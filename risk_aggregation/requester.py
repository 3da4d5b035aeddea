"""
Risk Aggregation Engine - Entity Score Requester.

============================================================
PURPOSE
============================================================
Scores a single entity (asset, personnel, travel plan or
incident):

1. Serialize the entity into a typed ScoringRequest
2. Call the Scoring Oracle once
3. Reduce the Oracle's score by the entity's mitigations

============================================================
FAILURE HANDLING
============================================================
Any Oracle failure (transport, non-2xx, malformed payload)
yields the fallback score (50 / confidence 60 / stable) with
the entity's mitigations still applied on top of it.
Failures are logged, never raised.

============================================================
USAGE
============================================================
    requester = EntityScoreRequester(oracle=HttpScoringOracle(config))

    effective = await requester.score_entity(
        Asset(organization_id="org-1", name="HQ", asset_type="building")
    )
    print(effective.overall, effective.original_score)

============================================================
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .config import FallbackConfig
from .mitigation import reduce_score
from .oracle import ScoringOracle, parse_oracle_response
from .store import EntityStore
from .types import (
    Asset,
    EffectiveRiskScore,
    EntityType,
    OracleError,
    Personnel,
    RiskScore,
    ScorableEntity,
    ScoringRequest,
)


logger = logging.getLogger(__name__)


# Attribute label, key, placeholder when missing
_TYPE_SPECIFIC_FIELDS = {
    "building": [
        ("Building Type", "building_type", "Not specified"),
        ("Primary Function", "primary_function", "Not specified"),
        ("Floor Count", "floor_count", "Unknown"),
        ("Year Built", "year_built", "Unknown"),
        ("Total Area", "total_area", "Unknown"),
        ("Last Renovation", "last_renovation", "Unknown"),
    ],
    "vehicle": [
        ("Vehicle Type", "vehicle_type", "Not specified"),
        ("Make", "make", "Unknown"),
        ("Model", "model", "Unknown"),
        ("Year", "year", "Unknown"),
        ("License/Registration", "license_plate", "Unknown"),
        ("Mileage/Hours", "mileage", "Unknown"),
        ("Fuel Type", "fuel_type", "Unknown"),
        ("Security Features", "security_features", "None specified"),
    ],
    "equipment": [
        ("Equipment Type", "equipment_type", "Not specified"),
        ("Manufacturer", "manufacturer", "Unknown"),
        ("Model", "model", "Unknown"),
        ("Serial Number", "serial_number", "Unknown"),
        ("Purchase Date", "purchase_date", "Unknown"),
        ("Last Maintenance", "last_maintenance_date", "Unknown"),
        ("Next Maintenance Due", "next_maintenance_due", "Unknown"),
        ("Operational Status", "operational_status", "Unknown"),
    ],
}


def describe_type_specific_attributes(
    asset_type: str,
    attributes: Optional[Dict[str, Any]],
) -> str:
    """
    Render an asset's type-specific attributes as text for the Oracle.

    Returns an empty string for asset types without a known
    attribute set or when no attributes are stored.
    """
    fields = _TYPE_SPECIFIC_FIELDS.get(asset_type)
    if not fields or not attributes:
        return ""

    lines = []
    for label, key, placeholder in fields:
        value = attributes.get(key)
        if not value:
            value = placeholder
        elif key == "total_area":
            value = f"{value} sq ft/m²"
        lines.append(f"{label}: {value}")
    return "\n".join(lines)


class EntityScoreRequester:
    """
    Builds per-entity scoring requests and applies mitigations.

    ============================================================
    DEPENDENCIES
    ============================================================
    - oracle: any ScoringOracle implementation
    - store: optional EntityStore, used only to look up the
      work location of personnel

    ============================================================
    """

    def __init__(
        self,
        oracle: ScoringOracle,
        store: Optional[EntityStore] = None,
        fallback: Optional[FallbackConfig] = None,
        user_id: Optional[str] = None,
    ):
        self._oracle = oracle
        self._store = store
        self._fallback = fallback or FallbackConfig()
        self._user_id = user_id

    # --------------------------------------------------------
    # ENTITY SCORING
    # --------------------------------------------------------

    async def score_entity(self, entity: ScorableEntity) -> EffectiveRiskScore:
        """
        Score one entity and apply its mitigations.

        Never raises for Oracle failures; returns the fallback
        score reduced by the entity's mitigations instead.
        """
        request = await self.build_request(entity)

        raw = await self._request_score(request)
        if raw is None:
            return reduce_score(self.fallback_score(), entity.mitigations, is_fallback=True)

        return reduce_score(raw, entity.mitigations)

    async def build_request(self, entity: ScorableEntity) -> ScoringRequest:
        """Serialize an entity into a ScoringRequest."""
        data = entity.to_payload()

        if isinstance(entity, Asset):
            details = describe_type_specific_attributes(
                entity.asset_type, entity.type_specific_attributes
            )
            data["typeSpecificDetails"] = details

        elif isinstance(entity, Personnel):
            data["work_location_context"] = (
                await self._get_asset_context(entity.work_asset_id)
                if entity.work_asset_id
                else None
            )

        return ScoringRequest(
            type=entity.entity_type,
            data=data,
            organization_id=entity.organization_id,
            user_id=self._user_id,
        )

    # --------------------------------------------------------
    # RISK / MITIGATION EVALUATION
    # --------------------------------------------------------

    async def evaluate_risk(self, risk_data: Dict[str, Any], organization_id: str) -> RiskScore:
        """Evaluate a risk register entry. Falls back like score_entity."""
        request = ScoringRequest(
            type=EntityType.RISK,
            data=risk_data,
            organization_id=organization_id,
            user_id=self._user_id,
        )
        return await self._request_score(request) or self.fallback_score()

    async def evaluate_mitigation(
        self,
        mitigation_data: Dict[str, Any],
        organization_id: str,
    ) -> RiskScore:
        """Evaluate the effectiveness of a mitigation strategy."""
        request = ScoringRequest(
            type=EntityType.MITIGATION,
            data=mitigation_data,
            organization_id=organization_id,
            user_id=self._user_id,
        )
        return await self._request_score(request) or self.fallback_score()

    def fallback_score(self) -> RiskScore:
        """The score used when the Oracle cannot be reached."""
        return RiskScore(
            overall=self._fallback.entity_score,
            confidence=self._fallback.entity_confidence,
            trend=self._fallback.entity_trend,
            explanation=self._fallback.entity_explanation,
        )

    # --------------------------------------------------------
    # INTERNALS
    # --------------------------------------------------------

    async def _request_score(self, request: ScoringRequest) -> Optional[RiskScore]:
        """Call the Oracle; None on any failure."""
        try:
            payload = await self._oracle.score(request)
            return parse_oracle_response(payload)
        except OracleError as e:
            logger.warning(
                f"Oracle failed for {request.type.value} in {request.organization_id}: {e}"
            )
        except Exception as e:
            logger.warning(
                f"Unexpected Oracle error for {request.type.value} "
                f"in {request.organization_id}: {e}"
            )
        return None

    async def _get_asset_context(self, asset_id: str) -> Optional[Dict[str, Any]]:
        """Context about a personnel record's work location."""
        if self._store is None:
            return None

        try:
            asset = await self._store.get_asset(asset_id)
        except Exception as e:
            logger.warning(f"Error getting asset context for {asset_id}: {e}")
            return None

        if asset is None:
            return None

        return {
            "name": asset.get("name"),
            "type": asset.get("type"),
            "type_specific_attributes": asset.get("type_specific_attributes"),
            "location": asset.get("location"),
            "status": asset.get("status"),
            "risk_score": stored_overall(asset),
        }


# ============================================================
# CONVENIENCE FUNCTIONS
# ============================================================


def stored_overall(record: Dict[str, Any], score_key: str = "ai_risk_score") -> float:
    """Overall score stored on an entity record, 0 when absent."""
    score = record.get(score_key)
    if not isinstance(score, dict):
        return 0
    return score.get("overall") or 0


def rank_by_risk(
    records: Sequence[Dict[str, Any]],
    limit: int = 5,
    score_key: str = "ai_risk_score",
) -> List[Dict[str, Any]]:
    """
    Highest-risk stored entities first.

    Travel plans store their score under "risk_assessment";
    assets and personnel under "ai_risk_score".
    """
    ranked = sorted(records, key=lambda r: stored_overall(r, score_key), reverse=True)
    return ranked[:limit]
