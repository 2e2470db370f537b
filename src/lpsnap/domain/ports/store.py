"""Port for the table store holding captures and positions."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from lpsnap.domain.model.rows import Row


class Table(StrEnum):
    CAPTURES = "captures"
    POSITIONS = "positions"


class ConditionOp(StrEnum):
    EQ = "eq"
    LT = "lt"
    GTE = "gte"
    IN = "in"
    IS_NULL = "is_null"


@dataclass(frozen=True, slots=True)
class Condition:
    """One column test; a predicate is the conjunction of its conditions."""

    column: str
    op: ConditionOp
    value: object = None


type Predicate = tuple[Condition, ...]


def eq(column: str, value: object) -> Condition:
    return Condition(column, ConditionOp.EQ, value)


def lt(column: str, value: object) -> Condition:
    return Condition(column, ConditionOp.LT, value)


def gte(column: str, value: object) -> Condition:
    return Condition(column, ConditionOp.GTE, value)


def in_(column: str, values: Sequence[object]) -> Condition:
    return Condition(column, ConditionOp.IN, tuple(values))


def is_null(column: str) -> Condition:
    return Condition(column, ConditionOp.IS_NULL)


@dataclass(frozen=True, slots=True)
class OrderBy:
    column: str
    descending: bool = False


class StoreError(RuntimeError):
    """Base class for table store failures."""


class StoreTransientError(StoreError):
    """Network, locking, or timeout failure; the same call may succeed later."""


class StoreFatalError(StoreError):
    """Malformed request or schema violation; retrying cannot help."""


@runtime_checkable
class TableStore(Protocol):
    """Async table store; every call takes a caller-supplied timeout in seconds."""

    async def insert(
        self,
        table: Table,
        record: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> Row: ...

    async def update(
        self,
        table: Table,
        predicate: Predicate,
        patch: Mapping[str, object],
        *,
        timeout: float | None = None,
    ) -> int: ...

    async def select(
        self,
        table: Table,
        predicate: Predicate = (),
        *,
        order: Sequence[OrderBy] = (),
        limit: int | None = None,
        timeout: float | None = None,
    ) -> list[Row]: ...

    async def delete(
        self,
        table: Table,
        predicate: Predicate,
        *,
        timeout: float | None = None,
    ) -> int: ...
