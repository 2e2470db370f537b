from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from lpsnap.app import Services, build_services
from lpsnap.config import StoreConfig
from lpsnap.domain.model import ObservationSource
from lpsnap.domain.ports import Table
from lpsnap.ui import cli as cli_module
from tests.helpers.positions import make_observation, make_position_payload
from tests.support.extractors import ScriptedVisionExtractor
from tests.support.store import InMemoryTableStore

if TYPE_CHECKING:
    from pathlib import Path


class _Wiring:
    """Replaces ``build_services`` so every CLI run shares one in-memory store."""

    def __init__(self) -> None:
        self.store = InMemoryTableStore()
        self.calls: list[dict[str, object]] = []

    def __call__(self, **kwargs: object) -> Services:
        self.calls.append(kwargs)
        return build_services(
            store=self.store,
            store_config=StoreConfig(timeout_seconds=1.0),
            vision_extractor=kwargs.get("vision_extractor"),  # pyright: ignore[reportArgumentType]
        )


@pytest.fixture
def wiring(monkeypatch: pytest.MonkeyPatch) -> _Wiring:
    fake = _Wiring()
    monkeypatch.setattr(cli_module, "build_services", fake)
    return fake


def _write_capture(tmp_path: Path, capture_id: str = "cap-1", **overrides: object) -> Path:
    payload: dict[str, object] = {
        "id": capture_id,
        "url": "https://www.orca.so/portfolio",
        "title": "Orca portfolio",
        "protocol": "Orca",
        "timestamp": "2025-01-01T12:00:00Z",
        "screenshot": "data:image/png;base64,aGVsbG8=",
        "data": {
            "content": {
                "clmPositions": {
                    "positions": [
                        make_position_payload("SOL/USDC"),
                        make_position_payload(
                            "JLP/USDC", token0=None, token1=None, balance="$2,000"
                        ),
                    ]
                }
            }
        },
    }
    payload.update(overrides)
    path = tmp_path / f"{capture_id}.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_import_then_list_positions(
    wiring: _Wiring, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["import", str(_write_capture(tmp_path))])
    imported = capsys.readouterr().out

    cli_module.main(["positions"])
    listed = capsys.readouterr().out

    assert "Capture cap-1: saved 2/2 positions, 0 vision overlays, 0 unresolved" in imported
    assert "QC cap-1: PASSED" in imported
    assert wiring.calls[0] == {"vision_extractor": None}
    lines = listed.strip().splitlines()
    assert len(lines) == 2
    assert lines[0].startswith("Orca")
    assert "JLP/USDC" in lines[0]
    assert "$2,000.00" in lines[0]
    assert "SOL/USDC" in lines[1]
    assert "complete" in lines[1]


def test_positions_protocol_filter(
    wiring: _Wiring, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["import", str(_write_capture(tmp_path))])
    capsys.readouterr()

    cli_module.main(["positions", "--protocol", "Raydium"])

    assert capsys.readouterr().out.strip() == "No positions"


def test_stats_output(wiring: _Wiring, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli_module.main(["import", str(_write_capture(tmp_path))])
    capsys.readouterr()

    cli_module.main(["stats"])
    out = capsys.readouterr().out

    assert "Positions:      2" in out
    assert "Total value:    $3,000.00" in out
    assert "Average APY:    34.20%" in out
    assert "Protocols:      Orca" in out


def test_qc_for_capture_and_recent(
    wiring: _Wiring, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["import", str(_write_capture(tmp_path))])
    capsys.readouterr()

    cli_module.main(["qc", "cap-1"])
    single = capsys.readouterr().out
    cli_module.main(["qc", "--recent", "3"])
    recent = capsys.readouterr().out

    assert single.startswith("QC cap-1: PASSED (issues=1, fixed=0, remaining=1)")
    assert "BALANCE_MISMATCH" in single
    assert recent.count("QC cap-1") == 1


def test_qc_unknown_capture_reports_error(
    wiring: _Wiring, capsys: pytest.CaptureFixture[str]
) -> None:
    cli_module.main(["qc", "nope"])

    out = capsys.readouterr().out
    assert "QC nope: NEEDS ATTENTION" in out
    assert "error: Capture nope not found" in out


def test_prune(wiring: _Wiring, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    cli_module.main(["import", str(_write_capture(tmp_path))])
    capsys.readouterr()

    cli_module.main(["prune", "--days", "30"])

    assert capsys.readouterr().out.strip() == "Pruned 1 captures"
    assert wiring.store.rows[Table.POSITIONS] == []


def test_import_with_image_uses_vision(
    wiring: _Wiring,
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    reading = make_observation(
        "USDC/JLP",
        source=ObservationSource.VISION,
        token0=None,
        token1=None,
        token0_amount=1000.0,
        token1_amount=400.0,
    )
    vision = ScriptedVisionExtractor([reading])
    monkeypatch.setattr(cli_module, "AnthropicVisionExtractor", lambda: vision)
    image = tmp_path / "shot.png"
    image.write_bytes(b"hello")

    cli_module.main(["import", str(_write_capture(tmp_path)), "--image", str(image)])

    assert wiring.calls[0] == {"vision_extractor": vision}
    assert vision.calls[0][0] == "data:image/png;base64,aGVsbG8="
    assert "saved 3/3 positions, 1 vision overlays, 0 unresolved" in capsys.readouterr().out


def test_vision_without_api_key_exits(
    wiring: _Wiring, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["import", str(_write_capture(tmp_path)), "--vision"])

    assert excinfo.value.code == 1
    assert wiring.calls == []


@pytest.mark.parametrize(
    "argv",
    [
        ["qc", "--recent", "0"],
        ["prune", "--days", "-1"],
        ["qc"],
        ["frobnicate"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(wiring: _Wiring, argv: list[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(argv)

    assert excinfo.value.code == 2
    assert wiring.calls == []


def test_missing_capture_file_exits(wiring: _Wiring, tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli_module.main(["import", str(tmp_path / "missing.json")])

    assert excinfo.value.code == 1
