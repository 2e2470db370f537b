"""Stage 1: structural check of a capture envelope."""

from __future__ import annotations

from typing import TYPE_CHECKING

from lpsnap.domain.model import is_known_protocol

from .issues import ValidationResult

if TYPE_CHECKING:
    from lpsnap.domain.model import Capture, Observation


def validate_capture(capture: Capture) -> ValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    if not capture.url:
        warnings.append("Missing URL")
    if not capture.protocol:
        errors.append("Missing protocol")
    if capture.timestamp is None:
        errors.append("Missing timestamp")
    if not capture.screenshot:
        warnings.append("Missing screenshot - vision extraction unavailable")
    if capture.protocol and not is_known_protocol(capture.protocol):
        warnings.append(f"Unknown protocol: {capture.protocol}")

    if capture.data is None:
        errors.append("Missing capture data")
    else:
        if capture.content is None:
            warnings.append("Missing capture content")
        if capture.clm_positions is None:
            warnings.append("Missing CLM positions data")

    return ValidationResult(errors=tuple(errors), warnings=tuple(warnings))


def validate_observation(observation: Observation) -> tuple[str, ...]:
    """Warnings for an observation that is stored as-is but looks inconsistent."""

    warnings: list[str] = []
    values = observation.fields
    if (
        values.range_min is not None
        and values.range_max is not None
        and values.range_min > values.range_max
    ):
        warnings.append(
            f"Range minimum {values.range_min} exceeds maximum {values.range_max} "
            f"for {observation.raw_pair_label}"
        )
    return tuple(warnings)
