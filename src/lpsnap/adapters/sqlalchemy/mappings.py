"""SQLAlchemy Core table definitions for captures and positions."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Dialect,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    TypeDecorator,
)

from lpsnap.domain.ports import Table as TableName

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _utcnow() -> datetime:
    return datetime.now(UTC)


metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_label)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

captures_table = Table(
    str(TableName.CAPTURES),
    metadata,
    Column("id", String, primary_key=True),
    Column("url", String),
    Column("title", String),
    Column("timestamp", UTCDateTime, index=True),
    Column("protocol", String),
    Column("data", JSON),
    Column("screenshot", String),
    Column("created_at", UTCDateTime, nullable=False, default=_utcnow),
)

positions_table = Table(
    str(TableName.POSITIONS),
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("capture_id", String, ForeignKey("captures.id", ondelete="CASCADE"), index=True),
    Column("protocol", String, nullable=False),
    Column("pair", String, nullable=False),
    Column("pair_key", String, nullable=False),
    Column("token0", String),
    Column("token1", String),
    Column("source", String, nullable=False),
    Column("fee_tier", String),
    Column("network", String),
    Column("balance", Float),
    Column("pending_yield", Float),
    Column("apy", Float),
    Column("range_min", Float),
    Column("range_max", Float),
    Column("current_price", Float),
    Column("in_range", Boolean),
    Column("token0_amount", Float),
    Column("token1_amount", Float),
    Column("token0_value", Float),
    Column("token1_value", Float),
    Column("token0_percentage", Float),
    Column("token1_percentage", Float),
    Column("captured_at", UTCDateTime, nullable=False),
    Column("created_at", UTCDateTime, nullable=False, default=_utcnow),
    Index("ix_positions_protocol_pair_key", "protocol", "pair_key"),
)

TABLES: Final[dict[TableName, Table]] = {
    TableName.CAPTURES: captures_table,
    TableName.POSITIONS: positions_table,
}


def create_all_tables(engine: Engine) -> None:
    metadata.create_all(engine)
    log.debug("Ensured tables %s", ", ".join(sorted(metadata.tables)))
