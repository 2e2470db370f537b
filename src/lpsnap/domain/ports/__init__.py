"""Ports connecting the domain to stores and extraction sources."""

from __future__ import annotations

from .clock import Clock, utcnow
from .extraction import TextPatternExtractor, VisionExtractionError, VisionExtractor
from .store import (
    Condition,
    ConditionOp,
    OrderBy,
    Predicate,
    StoreError,
    StoreFatalError,
    StoreTransientError,
    Table,
    TableStore,
    eq,
    gte,
    in_,
    is_null,
    lt,
)

__all__ = [
    "Clock",
    "Condition",
    "ConditionOp",
    "OrderBy",
    "Predicate",
    "StoreError",
    "StoreFatalError",
    "StoreTransientError",
    "Table",
    "TableStore",
    "TextPatternExtractor",
    "VisionExtractionError",
    "VisionExtractor",
    "eq",
    "gte",
    "in_",
    "is_null",
    "lt",
    "utcnow",
]
