# ruff: noqa: T201

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from lpsnap.adapters.vision import AnthropicVisionExtractor
from lpsnap.app import (
    build_services,
    import_capture,
    latest_positions,
    position_stats,
    prune_old_captures,
    read_capture_file,
    read_image_file,
    run_quality_control,
    run_quality_control_recent,
)
from lpsnap.config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from lpsnap.app import Services
    from lpsnap.domain.model import PositionRecord
    from lpsnap.domain.quality import QCReport

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile captured DeFi positions")
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_cmd = subparsers.add_parser("import", help="Import a capture exported as JSON")
    import_cmd.add_argument("capture", type=Path, help="Path to the capture JSON file")
    import_cmd.add_argument(
        "--image",
        type=Path,
        help="Screenshot to read the token breakdown from (implies --vision)",
    )
    import_cmd.add_argument(
        "--vision",
        action="store_true",
        help="Run vision extraction on the capture's screenshot",
    )

    qc = subparsers.add_parser("qc", help="Run quality control")
    target = qc.add_mutually_exclusive_group(required=True)
    target.add_argument("capture_id", nargs="?", help="Capture id to check")
    target.add_argument(
        "--recent",
        type=int,
        metavar="N",
        help="Check the N most recent captures",
    )

    positions = subparsers.add_parser("positions", help="Show the latest position per pair")
    positions.add_argument("--protocol", type=str, help="Only show positions of this protocol")

    subparsers.add_parser("stats", help="Summarize the latest positions")

    prune = subparsers.add_parser("prune", help="Delete old captures and their positions")
    prune.add_argument(
        "--days",
        type=float,
        required=True,
        help="Delete captures older than this many days",
    )

    args = parser.parse_args(list(argv))
    if args.command == "qc" and args.recent is not None and args.recent <= 0:
        raise ValueError("--recent must be positive")
    if args.command == "prune" and args.days < 0:
        raise ValueError("--days must be non-negative")
    return args


async def _run_import(services: Services, args: argparse.Namespace) -> None:
    capture = read_capture_file(args.capture)
    image: str | None = None
    if args.image is not None:
        image = read_image_file(args.image)
    elif args.vision:
        image = capture.screenshot
        if image is None:
            log.warning("Capture %s has no screenshot; skipping vision extraction", capture.id)

    report = await import_capture(services, capture, image=image)
    print(
        f"Capture {report.capture_id}: saved {report.saved}/{report.attempted} positions, "
        f"{report.vision_applied} vision overlays, {len(report.unresolved)} unresolved"
    )
    for failure in report.failures:
        print(f"  failed: {failure.pair_label}: {failure.error}")
    if report.qc is not None:
        _print_qc(report.qc)


def _print_qc(report: QCReport) -> None:
    status = "PASSED" if report.success else "NEEDS ATTENTION"
    print(
        f"QC {report.capture_id}: {status} "
        f"(issues={len(report.issues)}, fixed={report.fixed}, remaining={len(report.remaining)})"
    )
    for error in report.validation.errors:
        print(f"  error: {error}")
    for issue in report.remaining:
        print(f"  [{issue.severity}] {issue.type}: {issue.message}")


def _print_positions(records: Sequence[PositionRecord]) -> None:
    if not records:
        print("No positions")
        return
    for record in records:
        values = record.fields
        balance = f"${values.balance:,.2f}" if values.balance is not None else "-"
        apy = f"{values.apy:.2f}%" if values.apy is not None else "-"
        if values.in_range is None:
            status = "unknown"
        else:
            status = "in range" if values.in_range else "out of range"
        completeness = "complete" if record.complete else "partial"
        print(
            f"{record.key.protocol:<12} {record.key.pair:<16} {balance:>14} {apy:>9} "
            f"{status:<12} {completeness} ({record.captured_at.isoformat()})"
        )


async def _run_command(services: Services, args: argparse.Namespace) -> None:
    if args.command == "import":
        await _run_import(services, args)
    elif args.command == "qc":
        if args.recent is not None:
            reports = await run_quality_control_recent(services, args.recent)
        else:
            reports = [await run_quality_control(services, args.capture_id)]
        for report in reports:
            _print_qc(report)
    elif args.command == "positions":
        _print_positions(await latest_positions(services, protocol=args.protocol))
    elif args.command == "stats":
        summary = await position_stats(services)
        average_apy = f"{summary.average_apy:.2f}%" if summary.average_apy is not None else "-"
        print(f"Positions:      {summary.total_positions}")
        print(f"In range:       {summary.in_range}")
        print(f"Out of range:   {summary.out_of_range}")
        print(f"Total value:    ${summary.total_value:,.2f}")
        print(f"Pending yield:  ${summary.total_pending_yield:,.2f}")
        print(f"Average APY:    {average_apy}")
        print(f"Protocols:      {', '.join(summary.protocols) or '-'}")
    elif args.command == "prune":
        deleted = await prune_old_captures(services, days=args.days)
        print(f"Pruned {deleted} captures")
    else:
        raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        wants_vision = parsed_args.command == "import" and (
            parsed_args.vision or parsed_args.image is not None
        )
        vision = AnthropicVisionExtractor() if wants_vision else None
        services = build_services(vision_extractor=vision)
        try:
            asyncio.run(_run_command(services, parsed_args))
        finally:
            services.close()
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
