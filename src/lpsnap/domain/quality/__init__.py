"""Post-write quality control for captured positions."""

from __future__ import annotations

from .detect import detect_issues, detect_record_issues
from .fix import apply_fixes, plan_fixes, round_percentage
from .issues import (
    FixResult,
    IssueType,
    PositionFix,
    QCIssue,
    QCReport,
    Severity,
    ValidationResult,
)
from .pipeline import QualityControlPipeline
from .validate import validate_capture, validate_observation

__all__ = [
    "FixResult",
    "IssueType",
    "PositionFix",
    "QCIssue",
    "QCReport",
    "QualityControlPipeline",
    "Severity",
    "ValidationResult",
    "apply_fixes",
    "detect_issues",
    "detect_record_issues",
    "plan_fixes",
    "round_percentage",
    "validate_capture",
    "validate_observation",
]
