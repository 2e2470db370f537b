from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from lpsnap.adapters.sqlalchemy import (
    SqlAlchemyTableStore,
    create_all_tables,
    create_store_engine,
)
from lpsnap.domain.reconciliation import PositionCache
from tests.support.store import InMemoryTableStore

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def store() -> InMemoryTableStore:
    return InMemoryTableStore()


@pytest.fixture
def cache(store: InMemoryTableStore) -> PositionCache:
    return PositionCache(store, timeout=1.0)


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_store_engine("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_store(sqlite_engine: Engine) -> SqlAlchemyTableStore:
    return SqlAlchemyTableStore(sqlite_engine, default_timeout=5.0)
