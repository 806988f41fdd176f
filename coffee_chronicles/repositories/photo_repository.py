"""Photo repository."""
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.config import settings
from coffee_chronicles.repositories.base import ItemStore, SECONDARY_INDEX
from coffee_chronicles.repositories.coffee_date_repository import METADATA_SK, coffee_date_pk

UNASSIGNED_PK = "UNASSIGNED"


def photo_pk(photo_id: str) -> str:
    return f"PHOTO#{photo_id}"


def owner_index_pk(coffee_date_id: Optional[str]) -> str:
    """Secondary partition holding the photos of a coffee date."""
    return coffee_date_pk(coffee_date_id) if coffee_date_id else UNASSIGNED_PK


class PhotoRepository(ItemStore):
    """Repository for photo metadata rows."""

    def __init__(self, db: AsyncSession, table: Optional[str] = None):
        super().__init__(db)
        self.table = table or settings.photos_table

    @staticmethod
    def keys_for(photo_id: str, coffee_date_id: Optional[str]) -> Dict[str, str]:
        return {
            "PK": photo_pk(photo_id),
            "SK": METADATA_SK,
            "GSI1PK": owner_index_pk(coffee_date_id),
            "GSI1SK": photo_pk(photo_id),
        }

    async def get(self, photo_id: str) -> Optional[Dict[str, Any]]:
        return await self.get_item(self.table, photo_pk(photo_id), METADATA_SK)

    async def put(self, record: Dict[str, Any]) -> None:
        await self.put_item(self.table, record)

    async def update_fields(self, photo_id: str, changes: Dict[str, Any]) -> None:
        await self.update_item(self.table, photo_pk(photo_id), METADATA_SK, changes)

    async def remove(self, photo_id: str) -> None:
        await self.delete_item(self.table, photo_pk(photo_id), METADATA_SK)

    async def list_by_coffee_date(self, coffee_date_id: str) -> List[Dict[str, Any]]:
        return await self.query_by_secondary_index(
            self.table, SECONDARY_INDEX, owner_index_pk(coffee_date_id)
        )

    async def list_unassigned(self) -> List[Dict[str, Any]]:
        return await self.query_by_secondary_index(self.table, SECONDARY_INDEX, UNASSIGNED_PK)

    async def group_by_coffee_date(
        self,
        coffee_date_ids: Iterable[str],
    ) -> Dict[str, List[Dict[str, Any]]]:
        """Fetch the photos of several coffee dates at once, keyed by coffee date id."""
        ids = list(coffee_date_ids)
        records = await self.query_by_secondary_index_many(
            self.table, SECONDARY_INDEX, [owner_index_pk(i) for i in ids]
        )
        grouped: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for record in records:
            grouped[record.get("coffeeDateId", "")].append(record)
        return {i: grouped.get(i, []) for i in ids}

    async def list_all(self) -> List[Dict[str, Any]]:
        return await self.scan_all(self.table)
