"""Async table store over SQLAlchemy Core.

Blocking database calls run in worker threads. A semaphore bounds how many run at
once; an engine sharing a single connection (in-memory SQLite) is limited to one.
Every call is wrapped in a timeout. A call that times out before committing is rolled
back, so a reported timeout never leaves a write behind. Driver errors are mapped onto
the store error hierarchy: lock and connection failures are transient, everything
else is fatal.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import TYPE_CHECKING, Any, Final

from sqlalchemy import and_, create_engine, event, select, true
from sqlalchemy import exc as sa_exc
from sqlalchemy.pool import StaticPool

from lpsnap.domain.ports import (
    ConditionOp,
    StoreError,
    StoreFatalError,
    StoreTransientError,
)

from .mappings import TABLES

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from sqlalchemy import ColumnElement, Connection, Table
    from sqlalchemy.engine import Engine

    from lpsnap.domain.model.rows import Row
    from lpsnap.domain.ports import Condition, OrderBy, Predicate
    from lpsnap.domain.ports import Table as TableName
    from lpsnap.domain.ports import TableStore

log = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY: Final[int] = 4

_FATAL_OPERATIONAL_MARKERS: Final[tuple[str, ...]] = ("no such table", "no such column")


def _is_memory_sqlite(uri: str) -> bool:
    return uri.startswith("sqlite") and (":memory:" in uri or uri.rstrip("/").endswith(":"))


def create_store_engine(uri: str, *, echo: bool = False) -> Engine:
    """Create an engine suitable for use from worker threads.

    SQLite connections are opened with foreign keys enforced; in-memory databases
    share one connection so every thread sees the same data.
    """

    if not uri.startswith("sqlite"):
        return create_engine(uri, future=True, echo=echo)

    if _is_memory_sqlite(uri):
        engine = create_engine(
            uri,
            future=True,
            echo=echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            uri, future=True, echo=echo, connect_args={"check_same_thread": False}
        )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:  # noqa: ANN401
        _ = connection_record
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def map_store_error(exc: BaseException) -> StoreError:
    """Translate a driver or timeout error into the store error hierarchy."""

    if isinstance(exc, StoreError):
        return exc
    if isinstance(exc, TimeoutError | sa_exc.TimeoutError | sa_exc.DisconnectionError):
        return StoreTransientError(f"Store call timed out or lost its connection: {exc}")
    if isinstance(exc, sa_exc.OperationalError):
        message = str(exc.orig) if exc.orig is not None else str(exc)
        if any(marker in message.lower() for marker in _FATAL_OPERATIONAL_MARKERS):
            return StoreFatalError(message)
        return StoreTransientError(message)
    if isinstance(exc, sa_exc.IntegrityError | sa_exc.ProgrammingError):
        message = str(exc.orig) if exc.orig is not None else str(exc)
        return StoreFatalError(message)
    return StoreFatalError(str(exc))


class SqlAlchemyTableStore:
    def __init__(
        self,
        engine: Engine,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        default_timeout: float | None = None,
    ) -> None:
        if isinstance(engine.pool, StaticPool):
            max_concurrency = 1
        self._engine = engine
        self._default_timeout = default_timeout
        self._slots = threading.BoundedSemaphore(max_concurrency)

    @property
    def engine(self) -> Engine:
        return self._engine

    async def insert(
        self,
        table: TableName,
        record: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> Row:
        sa_table = _table(table)
        values = _checked_values(sa_table, record)

        def run(connection: Connection) -> Row:
            result = connection.execute(sa_table.insert().values(**values))
            key = result.inserted_primary_key
            if key is None:
                raise StoreFatalError(f"Insert into {table} returned no primary key")
            primary = next(iter(sa_table.primary_key.columns))
            row = connection.execute(
                select(sa_table).where(primary == key[0])
            ).mappings().one()
            return dict(row)

        return await self._run(run, timeout)

    async def update(
        self,
        table: TableName,
        predicate: Predicate,
        patch: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> int:
        sa_table = _table(table)
        values = _checked_values(sa_table, patch)
        where = _where(sa_table, predicate)

        def run(connection: Connection) -> int:
            return connection.execute(sa_table.update().where(where).values(**values)).rowcount

        return await self._run(run, timeout)

    async def select(
        self,
        table: TableName,
        predicate: Predicate = (),
        *,
        order: Sequence[OrderBy] = (),
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[Row]:
        sa_table = _table(table)
        statement = select(sa_table).where(_where(sa_table, predicate))
        for item in order:
            column = _column(sa_table, item.column)
            statement = statement.order_by(column.desc() if item.descending else column.asc())
        if limit is not None:
            statement = statement.limit(limit)

        def run(connection: Connection) -> list[Row]:
            return [dict(row) for row in connection.execute(statement).mappings()]

        return await self._run(run, timeout)

    async def delete(
        self,
        table: TableName,
        predicate: Predicate,
        *,
        timeout: float | None = None,
    ) -> int:
        sa_table = _table(table)
        where = _where(sa_table, predicate)

        def run(connection: Connection) -> int:
            return connection.execute(sa_table.delete().where(where)).rowcount

        return await self._run(run, timeout)

    async def _run[T](self, operation: Callable[[Connection], T], timeout: float | None) -> T:
        budget = timeout if timeout is not None else self._default_timeout
        attempt = _Attempt()
        worker = asyncio.ensure_future(asyncio.to_thread(self._execute, operation, attempt))
        worker.add_done_callback(_drain)
        try:
            try:
                return await asyncio.wait_for(asyncio.shield(worker), budget)
            except TimeoutError:
                if attempt.abandon():
                    raise
                log.debug("Store call outlived its timeout while committing; awaiting it")
                return await worker
        except StoreError:
            raise
        except (TimeoutError, sa_exc.SQLAlchemyError) as exc:
            mapped = map_store_error(exc)
            log.debug("Store call failed: %s", mapped)
            raise mapped from exc

    def _execute[T](self, operation: Callable[[Connection], T], attempt: _Attempt) -> T:
        with self._slots, self._engine.connect() as connection:
            if attempt.abandoned:
                raise StoreTransientError("Store call abandoned before it started")
            result = operation(connection)
            if not attempt.begin_commit():
                connection.rollback()
                raise StoreTransientError("Store call abandoned after its timeout; rolled back")
            connection.commit()
            return result


class _Attempt:
    """Decides, under a lock, whether a timed-out call commits or rolls back.

    Once the worker starts committing the caller can no longer abandon it, so a
    reported timeout always means nothing was written.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._abandoned = False
        self._committing = False

    @property
    def abandoned(self) -> bool:
        with self._guard:
            return self._abandoned

    def begin_commit(self) -> bool:
        with self._guard:
            if self._abandoned:
                return False
            self._committing = True
            return True

    def abandon(self) -> bool:
        with self._guard:
            if self._committing:
                return False
            self._abandoned = True
            return True


def _drain(worker: asyncio.Future[Any]) -> None:
    # Abandoned workers finish unobserved.
    if not worker.cancelled():
        worker.exception()


def _table(name: TableName) -> Table:
    try:
        return TABLES[name]
    except KeyError:
        raise StoreFatalError(f"Unknown table {name!r}") from None


def _column(table: Table, name: str) -> ColumnElement[Any]:
    try:
        return table.c[name]
    except KeyError:
        raise StoreFatalError(f"Unknown column {name!r} on {table.name}") from None


def _checked_values(table: Table, values: Mapping[str, object]) -> dict[str, object]:
    unknown = sorted(set(values) - set(table.c.keys()))
    if unknown:
        raise StoreFatalError(f"Unknown columns for {table.name}: {', '.join(unknown)}")
    return dict(values)


def _condition(table: Table, condition: Condition) -> ColumnElement[bool]:
    column = _column(table, condition.column)
    match condition.op:
        case ConditionOp.EQ:
            return column == condition.value
        case ConditionOp.LT:
            return column < condition.value
        case ConditionOp.GTE:
            return column >= condition.value
        case ConditionOp.IN:
            values = condition.value if isinstance(condition.value, tuple | list) else ()
            return column.in_(values)  # pyright: ignore[reportUnknownArgumentType]
        case ConditionOp.IS_NULL:
            return column.is_(None)
    raise StoreFatalError(f"Unsupported condition {condition.op!r}")


def _where(table: Table, predicate: Predicate) -> ColumnElement[bool]:
    if not predicate:
        return true()
    return and_(*(_condition(table, condition) for condition in predicate))


if TYPE_CHECKING:
    _store_check: TableStore = SqlAlchemyTableStore(create_store_engine("sqlite://"))
