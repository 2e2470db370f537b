from __future__ import annotations

import pytest

from lpsnap.domain.model import PositionRecord
from lpsnap.domain.reconciliation import PositionSummary, canonical_key, summarize_positions
from tests.helpers.positions import make_observation


def _record(pair: str, *, protocol: str = "Orca", **values: object) -> PositionRecord:
    observation = make_observation(pair, protocol=protocol, **values)
    return PositionRecord(key=canonical_key(protocol, pair), observation=observation)


def test_summary_of_no_records() -> None:
    assert summarize_positions([]) == PositionSummary()


def test_summary_aggregates_present_values() -> None:
    records = [
        _record("SOL/USDC", balance=1000.0, pending_yield=5.0, apy=20.0, in_range=True),
        _record("JLP/USDC", balance=500.0, apy=40.0, in_range=False),
        _record("WETH/USDC", protocol="Aerodrome", pending_yield=1.5),
    ]

    summary = summarize_positions(records)

    assert summary.total_positions == 3
    assert summary.in_range == 1
    assert summary.out_of_range == 1
    assert summary.total_value == pytest.approx(1500.0)
    assert summary.total_pending_yield == pytest.approx(6.5)
    assert summary.average_apy == pytest.approx(30.0)
    assert summary.protocols == ("Aerodrome", "Orca")
    assert summary.pairs == ("ETH/USDC", "JLP/USDC", "SOL/USDC")


def test_average_apy_is_none_without_readings() -> None:
    summary = summarize_positions([_record("SOL/USDC", balance=10.0)])

    assert summary.average_apy is None
    assert summary.in_range == 0
    assert summary.out_of_range == 0
