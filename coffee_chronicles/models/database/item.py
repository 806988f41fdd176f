"""Generic key-value item table backing every logical table."""
from sqlalchemy import Column, String, Integer, JSON, Index

from coffee_chronicles.core.database import Base


class Item(Base):
    """
    One row per stored item.

    Items are addressed by (table_name, pk, sk). The optional (gsi1pk, gsi1sk)
    pair is the secondary index used for "all items related to X" queries.
    Every non-key attribute lives in ``data``.
    """

    __tablename__ = "items"

    table_name = Column(String(128), primary_key=True)
    pk = Column(String(255), primary_key=True)
    sk = Column(String(255), primary_key=True)
    gsi1pk = Column(String(255), nullable=True)
    gsi1sk = Column(String(255), nullable=True)
    data = Column(JSON, default=dict, nullable=False)
    version = Column(Integer, default=1, nullable=False)

    __table_args__ = (
        Index("ix_items_gsi1", "table_name", "gsi1pk", "gsi1sk"),
    )

    def __repr__(self) -> str:
        return f"<Item(table={self.table_name}, pk='{self.pk}', sk='{self.sk}')>"
