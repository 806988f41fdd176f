"""Generic item store with composite keys and one secondary index."""
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coffee_chronicles.core.exceptions import (
    ConflictException,
    DataAccessException,
    NotFoundException,
)
from coffee_chronicles.models.database import Item

logger = logging.getLogger(__name__)

KEY_ATTRIBUTES = ("PK", "SK", "GSI1PK", "GSI1SK")
VERSION_ATTRIBUTE = "version"
SECONDARY_INDEX = "GSI1"

_COLUMNS = (Item.pk, Item.sk, Item.gsi1pk, Item.gsi1sk, Item.data, Item.version)


@contextmanager
def _store_errors(message: str):
    """Wrap any SQLAlchemy failure into a DataAccessException."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"{message}: {e}")
        raise DataAccessException(message, cause=e) from e


class ItemStore:
    """
    Typed access to logical tables of schemaless items.

    Items are plain dicts. ``PK``/``SK`` form the primary key,
    ``GSI1PK``/``GSI1SK`` the secondary index key; everything else is stored
    as attributes. Items read back also carry a ``version`` counter that
    increments on every write and backs conditional updates.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize store.

        Args:
            db: Database session
        """
        self.db = db

    @staticmethod
    def _to_item(row: Any) -> Dict[str, Any]:
        item = dict(row.data or {})
        item["PK"] = row.pk
        item["SK"] = row.sk
        if row.gsi1pk is not None:
            item["GSI1PK"] = row.gsi1pk
        if row.gsi1sk is not None:
            item["GSI1SK"] = row.gsi1sk
        item[VERSION_ATTRIBUTE] = row.version
        return item

    @staticmethod
    def _attributes(item: Dict[str, Any]) -> Dict[str, Any]:
        return {
            k: v for k, v in item.items()
            if k not in KEY_ATTRIBUTES and k != VERSION_ATTRIBUTE
        }

    @staticmethod
    def _check_index(index: str):
        if index != SECONDARY_INDEX:
            raise DataAccessException(f"Unknown secondary index {index}")

    async def _fetch_row(self, table: str, pk: str, sk: str):
        result = await self.db.execute(
            select(*_COLUMNS).where(
                Item.table_name == table,
                Item.pk == pk,
                Item.sk == sk,
            )
        )
        return result.one_or_none()

    async def get_item(self, table: str, pk: str, sk: str) -> Optional[Dict[str, Any]]:
        """
        Get an item by primary key.

        Returns:
            The item, or None if it does not exist
        """
        with _store_errors(f"Failed to get item from {table}"):
            row = await self._fetch_row(table, pk, sk)
        return self._to_item(row) if row else None

    async def put_item(self, table: str, item: Dict[str, Any]) -> None:
        """
        Insert or replace an item. The item must carry its own PK and SK.

        Raises:
            DataAccessException: If the keys are missing or the write fails
        """
        if not item.get("PK") or not item.get("SK"):
            raise DataAccessException(f"Item for {table} is missing PK or SK")

        pk, sk = item["PK"], item["SK"]
        values = {
            "gsi1pk": item.get("GSI1PK"),
            "gsi1sk": item.get("GSI1SK"),
            "data": self._attributes(item),
        }
        with _store_errors(f"Failed to put item into {table}"):
            existing = await self._fetch_row(table, pk, sk)
            if existing is None:
                await self.db.execute(
                    insert(Item).values(table_name=table, pk=pk, sk=sk, version=1, **values)
                )
            else:
                await self.db.execute(
                    update(Item)
                    .where(Item.table_name == table, Item.pk == pk, Item.sk == sk)
                    .values(version=Item.version + 1, **values)
                    .execution_options(synchronize_session=False)
                )

    async def update_item(
        self,
        table: str,
        pk: str,
        sk: str,
        changes: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> None:
        """
        Apply a partial attribute update.

        ``GSI1PK``/``GSI1SK`` in ``changes`` re-key the item in the secondary
        index within the same row write.

        Args:
            table: Logical table name
            pk: Partition key
            sk: Sort key
            changes: Attributes to set
            expected_version: Only apply if the stored version still matches

        Raises:
            NotFoundException: If the item does not exist
            ConflictException: If expected_version no longer matches
            DataAccessException: If the write fails
        """
        if "PK" in changes or "SK" in changes or VERSION_ATTRIBUTE in changes:
            raise DataAccessException(f"Primary key and version of {pk} cannot be updated")

        with _store_errors(f"Failed to update item in {table}"):
            row = await self._fetch_row(table, pk, sk)
            if row is None:
                raise NotFoundException(table, f"{pk}/{sk}")
            if expected_version is not None and row.version != expected_version:
                raise ConflictException(table, pk)

            data = dict(row.data or {})
            values: Dict[str, Any] = {}
            for key, value in changes.items():
                if key == "GSI1PK":
                    values["gsi1pk"] = value
                elif key == "GSI1SK":
                    values["gsi1sk"] = value
                else:
                    data[key] = value
            values["data"] = data

            stmt = update(Item).where(
                Item.table_name == table,
                Item.pk == pk,
                Item.sk == sk,
            )
            if expected_version is not None:
                stmt = stmt.where(Item.version == expected_version)

            result = await self.db.execute(
                stmt.values(version=Item.version + 1, **values)
                .execution_options(synchronize_session=False)
            )

        if result.rowcount == 0:
            raise ConflictException(table, pk)

    async def delete_item(self, table: str, pk: str, sk: str) -> None:
        """Delete an item. Deleting a missing item is a no-op."""
        with _store_errors(f"Failed to delete item from {table}"):
            await self.db.execute(
                delete(Item)
                .where(Item.table_name == table, Item.pk == pk, Item.sk == sk)
                .execution_options(synchronize_session=False)
            )

    async def query_by_secondary_index(
        self,
        table: str,
        index: str,
        gsi_pk: str,
        gsi_sk: Optional[str] = None,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        """
        Query items by secondary index key, ordered by the index sort key.

        Returns:
            Matching items (empty list when none)
        """
        self._check_index(index)
        query = select(*_COLUMNS).where(Item.table_name == table, Item.gsi1pk == gsi_pk)
        if gsi_sk is not None:
            query = query.where(Item.gsi1sk == gsi_sk)
        order = Item.gsi1sk.asc() if ascending else Item.gsi1sk.desc()
        query = query.order_by(order, Item.pk)

        with _store_errors(f"Failed to query {index} in {table}"):
            result = await self.db.execute(query)
            return [self._to_item(row) for row in result.all()]

    async def query_by_secondary_index_many(
        self,
        table: str,
        index: str,
        gsi_pks: Iterable[str],
    ) -> List[Dict[str, Any]]:
        """Query several secondary partitions in a single round trip."""
        self._check_index(index)
        keys = list(dict.fromkeys(gsi_pks))
        if not keys:
            return []

        with _store_errors(f"Failed to batch query {index} in {table}"):
            result = await self.db.execute(
                select(*_COLUMNS)
                .where(Item.table_name == table, Item.gsi1pk.in_(keys))
                .order_by(Item.gsi1pk, Item.gsi1sk)
            )
            return [self._to_item(row) for row in result.all()]

    async def query_by_primary_key(
        self,
        table: str,
        pk: str,
        ascending: bool = True,
    ) -> List[Dict[str, Any]]:
        """Get all items sharing a partition key, ordered by sort key."""
        order = Item.sk.asc() if ascending else Item.sk.desc()
        with _store_errors(f"Failed to query by PK in {table}"):
            result = await self.db.execute(
                select(*_COLUMNS)
                .where(Item.table_name == table, Item.pk == pk)
                .order_by(order)
            )
            return [self._to_item(row) for row in result.all()]

    async def scan_all(self, table: str) -> List[Dict[str, Any]]:
        """Return every item in a table (use with caution)."""
        with _store_errors(f"Failed to scan table {table}"):
            result = await self.db.execute(
                select(*_COLUMNS)
                .where(Item.table_name == table)
                .order_by(Item.pk, Item.sk)
            )
            return [self._to_item(row) for row in result.all()]
