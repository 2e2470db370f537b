"""Data types shared by the quality-control stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lpsnap.domain.model import CanonicalKey, PositionRecord


class IssueType(StrEnum):
    MISSING_TOKEN_NAMES = "MISSING_TOKEN_NAMES"
    WRONG_CATEGORY = "WRONG_CATEGORY"
    MISSING_TOKEN_DATA = "MISSING_TOKEN_DATA"
    INVALID_PERCENTAGES = "INVALID_PERCENTAGES"
    BALANCE_MISMATCH = "BALANCE_MISMATCH"


class Severity(StrEnum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of the capture envelope check.

    Errors abort the remaining stages; warnings are informational.
    """

    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True, slots=True, kw_only=True)
class QCIssue:
    type: IssueType
    severity: Severity
    position: PositionRecord
    message: str
    auto_fixable: bool = False

    @property
    def row_id(self) -> int | None:
        return self.position.row_id

    @property
    def key(self) -> CanonicalKey:
        return self.position.key


@dataclass(frozen=True, slots=True, kw_only=True)
class PositionFix:
    """A row-scoped patch that repairs one auto-fixable issue."""

    issue_type: IssueType
    row_id: int
    key: CanonicalKey
    patch: dict[str, object]


@dataclass(frozen=True, slots=True, kw_only=True)
class FixResult:
    fix: PositionFix
    applied: bool
    error: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class QCReport:
    """Result of one quality-control sweep over a capture."""

    capture_id: str
    success: bool
    validation: ValidationResult
    issues: tuple[QCIssue, ...] = ()
    fixes: tuple[FixResult, ...] = ()
    remaining: tuple[QCIssue, ...] = field(default=())
    stage: str | None = None

    @property
    def fixed(self) -> int:
        return sum(1 for result in self.fixes if result.applied)

    @property
    def outstanding_fixable(self) -> tuple[QCIssue, ...]:
        return tuple(issue for issue in self.remaining if issue.auto_fixable)
