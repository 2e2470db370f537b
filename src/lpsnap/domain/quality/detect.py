"""Stage 2: detect known classes of data defects in stored position records.

Detection is pure. Only two issue types can be repaired without new input: token
names can be derived from the pair label and percentages can be recomputed from the
token values. Everything else needs a fresh extraction and is reported only.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

from lpsnap.domain.model import ProtocolCategory, category_for
from lpsnap.domain.reconciliation.pairs import PAIR_SEPARATOR, split_pair

from .issues import IssueType, QCIssue, Severity

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lpsnap.domain.model import PositionRecord

PERCENTAGE_TOLERANCE: Final[float] = 0.5
BALANCE_TOLERANCE: Final[float] = 1.0


def detect_issues(
    records: Iterable[PositionRecord],
    *,
    filed_under: ProtocolCategory = ProtocolCategory.CLM,
) -> list[QCIssue]:
    issues: list[QCIssue] = []
    for record in records:
        issues.extend(detect_record_issues(record, filed_under=filed_under))
    return issues


def detect_record_issues(
    record: PositionRecord,
    *,
    filed_under: ProtocolCategory = ProtocolCategory.CLM,
) -> list[QCIssue]:
    issues: list[QCIssue] = []
    observation = record.observation
    values = record.fields
    label = record.pair_label

    if (not observation.token0 or not observation.token1) and PAIR_SEPARATOR in label:
        tokens = split_pair(label)
        issues.append(
            QCIssue(
                type=IssueType.MISSING_TOKEN_NAMES,
                severity=Severity.HIGH,
                position=record,
                message=f"Missing token0/token1 for {label}",
                auto_fixable=tokens is not None and all(tokens),
            )
        )

    category = category_for(observation.protocol)
    if category is not None and category is not filed_under:
        issues.append(
            QCIssue(
                type=IssueType.WRONG_CATEGORY,
                severity=Severity.HIGH,
                position=record,
                message=(
                    f"{observation.protocol} position filed under {filed_under} "
                    f"belongs to {category}"
                ),
            )
        )

    if values.balance is not None and values.balance > 0 and not values.has_token_amounts:
        issues.append(
            QCIssue(
                type=IssueType.MISSING_TOKEN_DATA,
                severity=Severity.MEDIUM,
                position=record,
                message=(
                    f"Position has balance (${values.balance}) but missing token amounts"
                ),
            )
        )

    if values.token0_percentage is not None and values.token1_percentage is not None:
        total = values.token0_percentage + values.token1_percentage
        if abs(total - 100) > PERCENTAGE_TOLERANCE:
            issues.append(
                QCIssue(
                    type=IssueType.INVALID_PERCENTAGES,
                    severity=Severity.LOW,
                    position=record,
                    message=f"Percentages don't sum to 100% ({total:g}%)",
                    auto_fixable=_value_total(record) > 0,
                )
            )

    if values.has_token_values and values.balance is not None:
        calculated = _value_total(record)
        diff = abs(calculated - values.balance)
        if diff > BALANCE_TOLERANCE:
            issues.append(
                QCIssue(
                    type=IssueType.BALANCE_MISMATCH,
                    severity=Severity.MEDIUM,
                    position=record,
                    message=(
                        f"Balance mismatch: reported ${values.balance:g}, "
                        f"calculated ${calculated:g} (diff: ${diff:.2f})"
                    ),
                )
            )

    return issues


def _value_total(record: PositionRecord) -> float:
    values = record.fields
    if values.token0_value is None or values.token1_value is None:
        return 0.0
    return values.token0_value + values.token1_value
