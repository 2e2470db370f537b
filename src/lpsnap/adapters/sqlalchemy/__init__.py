"""SQLAlchemy adapter: table definitions and the async table store."""

from __future__ import annotations

from .mappings import UTCDateTime, captures_table, create_all_tables, metadata, positions_table
from .store import SqlAlchemyTableStore, create_store_engine, map_store_error

__all__ = [
    "SqlAlchemyTableStore",
    "UTCDateTime",
    "captures_table",
    "create_all_tables",
    "create_store_engine",
    "map_store_error",
    "metadata",
    "positions_table",
]
