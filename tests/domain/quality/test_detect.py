from __future__ import annotations

import pytest

from lpsnap.domain.model import PositionRecord, ProtocolCategory
from lpsnap.domain.quality import IssueType, Severity, detect_issues, detect_record_issues
from lpsnap.domain.reconciliation import canonical_key
from tests.helpers.positions import make_complete_observation, make_observation


def _record(pair: str = "SOL/USDC", *, complete: bool = False, **kwargs: object) -> PositionRecord:
    factory = make_complete_observation if complete else make_observation
    observation = factory(pair, **kwargs)  # pyright: ignore[reportArgumentType]
    return PositionRecord(key=canonical_key(observation.protocol, pair), observation=observation)


def _types(record: PositionRecord, **kwargs: object) -> list[IssueType]:
    return [issue.type for issue in detect_record_issues(record, **kwargs)]  # pyright: ignore[reportArgumentType]


def test_clean_complete_record_has_no_issues() -> None:
    assert detect_record_issues(_record(complete=True)) == []


def test_missing_token_names_is_fixable_when_label_splits() -> None:
    issues = detect_record_issues(_record(token0=None))

    assert len(issues) == 1
    assert issues[0].type is IssueType.MISSING_TOKEN_NAMES
    assert issues[0].severity is Severity.HIGH
    assert issues[0].auto_fixable is True
    assert _types(_record("Hyperliquid Vault", token0=None, token1=None)) == []


@pytest.mark.parametrize("pair", ["A/B/C", "/USDC", "SOL/ "])
def test_missing_token_names_on_unsplittable_label_is_report_only(pair: str) -> None:
    issues = detect_record_issues(_record(pair, token0=None, token1=None))

    assert [issue.type for issue in issues] == [IssueType.MISSING_TOKEN_NAMES]
    assert issues[0].auto_fixable is False


def test_wrong_category_is_report_only() -> None:
    record = _record(protocol="Hyperliquid")

    issues = detect_record_issues(record)

    assert [issue.type for issue in issues] == [IssueType.WRONG_CATEGORY]
    assert issues[0].auto_fixable is False
    assert _types(record, filed_under=ProtocolCategory.HEDGE) == []
    assert _types(_record(protocol="Curve")) == []


def test_balance_without_token_amounts() -> None:
    issues = detect_record_issues(_record(balance=1000.0))

    assert [issue.type for issue in issues] == [IssueType.MISSING_TOKEN_DATA]
    assert issues[0].severity is Severity.MEDIUM
    assert issues[0].auto_fixable is False
    assert _types(_record(balance=0.0)) == []


def test_invalid_percentages_fixable_only_with_token_values() -> None:
    fixable = detect_record_issues(
        _record(complete=True, token0_percentage=70.0, token1_percentage=40.0)
    )
    no_values = detect_record_issues(_record(token0_percentage=70.0, token1_percentage=40.0))

    assert [issue.type for issue in fixable] == [IssueType.INVALID_PERCENTAGES]
    assert fixable[0].severity is Severity.LOW
    assert fixable[0].auto_fixable is True
    assert fixable[0].message == "Percentages don't sum to 100% (110%)"
    assert [issue.auto_fixable for issue in no_values] == [False]


def test_percentages_within_tolerance_are_accepted() -> None:
    record = _record(complete=True, token0_percentage=49.8, token1_percentage=50.6)

    assert _types(record) == []


def test_balance_mismatch_beyond_one_dollar() -> None:
    mismatch = _record(complete=True, balance=1005.0)
    close = _record(complete=True, balance=1000.9)

    issues = detect_record_issues(mismatch)

    assert [issue.type for issue in issues] == [IssueType.BALANCE_MISMATCH]
    assert issues[0].auto_fixable is False
    assert "diff: $5.00" in issues[0].message
    assert _types(close) == []


def test_detect_issues_over_many_records_keeps_order() -> None:
    records = [_record(token0=None), _record("JLP/USDC", token0="JLP", balance=5.0)]

    issues = detect_issues(records)

    assert [(issue.key.pair, issue.type) for issue in issues] == [
        ("SOL/USDC", IssueType.MISSING_TOKEN_NAMES),
        ("JLP/USDC", IssueType.MISSING_TOKEN_DATA),
    ]
