"""Coffee date repository."""
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.config import settings
from coffee_chronicles.repositories.base import ItemStore, SECONDARY_INDEX

METADATA_SK = "METADATA"
ALL_COFFEE_DATES_PK = "COFFEE_DATES"


def coffee_date_pk(coffee_date_id: str) -> str:
    return f"COFFEE_DATE#{coffee_date_id}"


class CoffeeDateRepository(ItemStore):
    """Repository for coffee date rows."""

    def __init__(self, db: AsyncSession, table: Optional[str] = None):
        super().__init__(db)
        self.table = table or settings.coffee_dates_table

    @staticmethod
    def keys_for(coffee_date_id: str, visit_date: str) -> Dict[str, str]:
        """Primary and secondary keys of a coffee date row."""
        return {
            "PK": coffee_date_pk(coffee_date_id),
            "SK": METADATA_SK,
            "GSI1PK": ALL_COFFEE_DATES_PK,
            "GSI1SK": visit_date,
        }

    async def get(self, coffee_date_id: str) -> Optional[Dict[str, Any]]:
        return await self.get_item(self.table, coffee_date_pk(coffee_date_id), METADATA_SK)

    async def put(self, record: Dict[str, Any]) -> None:
        await self.put_item(self.table, record)

    async def update_fields(
        self,
        coffee_date_id: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        await self.update_item(
            self.table,
            coffee_date_pk(coffee_date_id),
            METADATA_SK,
            changes,
            expected_version=expected_version,
        )

    async def remove(self, coffee_date_id: str) -> None:
        await self.delete_item(self.table, coffee_date_pk(coffee_date_id), METADATA_SK)

    async def list_by_visit_date(self, ascending: bool = False) -> List[Dict[str, Any]]:
        """All coffee dates ordered by visit date (newest first by default)."""
        return await self.query_by_secondary_index(
            self.table,
            SECONDARY_INDEX,
            ALL_COFFEE_DATES_PK,
            ascending=ascending,
        )
