"""
Risk Aggregation Engine - Entity Store.

============================================================
PURPOSE
============================================================
Read contract the engine depends on, plus a SQLAlchemy
implementation over the application's tables.

============================================================
READS
============================================================
- list_assets(org_id)        -> assets
- list_personnel(org_id)     -> personnel_details
- list_incidents(org_id)     -> incident_reports
- list_risks(org_id)         -> risks
- list_travel_plans(org_id)  -> travel_plans
- get_asset(asset_id)        -> single asset or None

Each read is independent and may fail on its own with
EntityStoreError.

============================================================
"""

import json
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import column, literal_column, select, table
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .types import EntityCategory, EntityStoreError


logger = logging.getLogger(__name__)


CATEGORY_TABLES: Dict[EntityCategory, str] = {
    EntityCategory.ASSETS: "assets",
    EntityCategory.PERSONNEL: "personnel_details",
    EntityCategory.INCIDENTS: "incident_reports",
    EntityCategory.RISKS: "risks",
    EntityCategory.TRAVEL_PLANS: "travel_plans",
}


# Nested fields the application stores as JSON / JSONB. The untyped
# SELECT * cannot tell the driver to decode them, so text values are
# decoded after the read.
JSON_FIELDS = frozenset({
    "ai_risk_score",
    "risk_assessment",
    "mitigations",
    "type_specific_attributes",
    "location",
    "destination",
    "coordinates",
    "emergency_contact",
    "itinerary",
})


def decode_row(mapping: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Convert a result row to a dict, decoding JSON text fields.

    Only object and array text is decoded; anything else, or
    text that is not valid JSON, is kept as stored.
    """
    row = dict(mapping)
    for key in JSON_FIELDS.intersection(row):
        value = row[key]
        if isinstance(value, bytes):
            value = value.decode("utf-8", errors="replace")
        if not isinstance(value, str) or not value.lstrip().startswith(("{", "[")):
            continue
        try:
            row[key] = json.loads(value)
        except ValueError:
            logger.debug(f"Field {key} is not valid JSON, keeping raw value")
    return row


class EntityStore(Protocol):
    """Organization-scoped reads used by the engine."""

    async def list_assets(self, organization_id: str) -> List[Dict[str, Any]]:
        ...

    async def list_personnel(self, organization_id: str) -> List[Dict[str, Any]]:
        ...

    async def list_incidents(self, organization_id: str) -> List[Dict[str, Any]]:
        ...

    async def list_risks(self, organization_id: str) -> List[Dict[str, Any]]:
        ...

    async def list_travel_plans(self, organization_id: str) -> List[Dict[str, Any]]:
        ...

    async def get_asset(self, asset_id: str) -> Optional[Dict[str, Any]]:
        ...


class SqlEntityStore:
    """
    EntityStore backed by SQLAlchemy.

    Takes a session factory rather than a session: every read
    opens its own AsyncSession so that concurrent reads never
    share one.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self._session_factory = session_factory

    async def list_assets(self, organization_id: str) -> List[Dict[str, Any]]:
        return await self.list_category(EntityCategory.ASSETS, organization_id)

    async def list_personnel(self, organization_id: str) -> List[Dict[str, Any]]:
        return await self.list_category(EntityCategory.PERSONNEL, organization_id)

    async def list_incidents(self, organization_id: str) -> List[Dict[str, Any]]:
        return await self.list_category(EntityCategory.INCIDENTS, organization_id)

    async def list_risks(self, organization_id: str) -> List[Dict[str, Any]]:
        return await self.list_category(EntityCategory.RISKS, organization_id)

    async def list_travel_plans(self, organization_id: str) -> List[Dict[str, Any]]:
        return await self.list_category(EntityCategory.TRAVEL_PLANS, organization_id)

    async def list_category(
        self,
        category: EntityCategory,
        organization_id: str,
    ) -> List[Dict[str, Any]]:
        """
        All rows of a category belonging to an organization.

        Raises:
            EntityStoreError: If the query fails
        """
        table_name = CATEGORY_TABLES[category]
        stmt = (
            select(literal_column("*"))
            .select_from(table(table_name))
            .where(column("organization_id") == organization_id)
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                rows = [decode_row(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise EntityStoreError(
                f"Failed to read {table_name}",
                category=category.value,
                original_error=e,
                context={"organization_id": organization_id},
            ) from e

        logger.debug(f"Read {len(rows)} row(s) from {table_name} for {organization_id}")
        return rows

    async def get_asset(self, asset_id: str) -> Optional[Dict[str, Any]]:
        """A single asset by id, or None."""
        stmt = (
            select(literal_column("*"))
            .select_from(table(CATEGORY_TABLES[EntityCategory.ASSETS]))
            .where(column("id") == asset_id)
            .limit(1)
        )

        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                row = result.first()
        except SQLAlchemyError as e:
            raise EntityStoreError(
                f"Failed to read asset {asset_id}",
                category=EntityCategory.ASSETS.value,
                original_error=e,
            ) from e

        return decode_row(row._mapping) if row is not None else None
