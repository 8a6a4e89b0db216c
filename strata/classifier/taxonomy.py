"""Semantic error taxonomy — the closed set of extraction problem kinds.

Every problem raised while turning a table into strata layers maps to exactly
one ErrorKind, and every kind belongs to exactly one Severity:

- FATAL: abort the extraction; nothing is shown for review
- RECOVERABLE: the draft may be shown but a human must review it
- WARNING: logged and displayed, no behaviour change
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class Severity(str, Enum):
    FATAL = "fatal"
    RECOVERABLE = "recoverable"
    WARNING = "warning"


class ErrorKind(str, Enum):
    """All semantic error kinds produced during extraction."""

    DEPTH_DETECTION_FAILED = "depth-detection-failed"
    UNSUPPORTED_FORMAT = "unsupported-format"
    FILE_CORRUPTED = "file-corrupted"
    INSUFFICIENT_DATA = "insufficient-data"
    SCHEMA_VALIDATION_FAILED = "schema-validation-failed"
    MATERIAL_IDENTIFICATION_FAILED = "material-identification-failed"
    PARSING_ERROR = "parsing-error"
    VALIDATION_ERROR = "validation-error"
    CONFIDENCE_TOO_LOW = "confidence-too-low"
    DEPTH_UNIT_INCONSISTENCY = "depth-unit-inconsistency"
    MINOR_FORMATTING_ISSUES = "minor-formatting-issues"
    METADATA_INCOMPLETE = "metadata-incomplete"


class KindDefinition(BaseModel):
    """Static behaviour attached to an ErrorKind."""

    severity: Severity
    message: str
    can_retry: bool = False
    requires_manual_intervention: bool = False
    fallback_available: bool = True
    guidance: tuple[str, ...] = ()
    user_message: str = (
        "An error occurred during extraction. Please try again or use manual entry."
    )

    model_config = {"frozen": True}


KIND_DEFINITIONS: dict[ErrorKind, KindDefinition] = {
    ErrorKind.DEPTH_DETECTION_FAILED: KindDefinition(
        severity=Severity.FATAL,
        message="Cannot proceed without depth information",
        guidance=(
            "Ensure depth values are in a clearly labeled column",
            "Use consistent numeric format for all depth values",
            "Check that depth increments are regular and logical",
        ),
        user_message=(
            "Could not find depth information in your file. "
            "Please check that depth values are clearly labeled."
        ),
    ),
    ErrorKind.UNSUPPORTED_FORMAT: KindDefinition(
        severity=Severity.FATAL,
        message="File format cannot be processed",
        fallback_available=False,
        user_message="This file format is not supported. Please use Excel (.xlsx) or PDF files.",
    ),
    ErrorKind.FILE_CORRUPTED: KindDefinition(
        severity=Severity.FATAL,
        message="File is unreadable or corrupted",
        can_retry=True,
        user_message=(
            "The file appears to be corrupted or cannot be read. Please try uploading again."
        ),
    ),
    ErrorKind.INSUFFICIENT_DATA: KindDefinition(
        severity=Severity.FATAL,
        message="Not enough data to create valid strata layers",
        user_message=(
            "Not enough data found to create strata layers. "
            "Please check your file contains complete strata information."
        ),
    ),
    ErrorKind.SCHEMA_VALIDATION_FAILED: KindDefinition(
        severity=Severity.FATAL,
        message="Data does not conform to required schema",
        fallback_available=False,
    ),
    ErrorKind.MATERIAL_IDENTIFICATION_FAILED: KindDefinition(
        severity=Severity.RECOVERABLE,
        message="Some materials could not be identified automatically",
        requires_manual_intervention=True,
        guidance=(
            "Review extracted layers and add missing material names",
            "Use standard geological terminology",
            "Ensure material information is in text format, not just colors",
        ),
        user_message=(
            "Could not identify all material types. "
            "You can review and edit the results manually."
        ),
    ),
    ErrorKind.PARSING_ERROR: KindDefinition(
        severity=Severity.RECOVERABLE,
        message="Partial parsing errors occurred",
        can_retry=True,
        guidance=("Check the flagged rows in the source file",),
    ),
    ErrorKind.VALIDATION_ERROR: KindDefinition(
        severity=Severity.RECOVERABLE,
        message="Data validation issues found",
        requires_manual_intervention=True,
        guidance=("Correct the depth ranges flagged during review",),
    ),
    ErrorKind.CONFIDENCE_TOO_LOW: KindDefinition(
        severity=Severity.RECOVERABLE,
        message="Extraction confidence is below threshold",
        requires_manual_intervention=True,
        guidance=(
            "Carefully review all extracted data before saving",
            "Consider using manual entry for critical accuracy",
            "Verify source data quality and clarity",
        ),
        user_message=(
            "Extraction confidence is low. "
            "You can proceed but may need to review and edit the results."
        ),
    ),
    ErrorKind.DEPTH_UNIT_INCONSISTENCY: KindDefinition(
        severity=Severity.RECOVERABLE,
        message="Inconsistent depth units detected",
        guidance=("Confirm every depth value uses the unit named in the header",),
    ),
    ErrorKind.MINOR_FORMATTING_ISSUES: KindDefinition(
        severity=Severity.WARNING,
        message="Minor formatting inconsistencies detected",
    ),
    ErrorKind.METADATA_INCOMPLETE: KindDefinition(
        severity=Severity.WARNING,
        message="Some optional metadata is missing",
    ),
}

# Kinds whose presence means the data itself is ambiguous and must be reviewed.
AMBIGUOUS_KINDS = {ErrorKind.CONFIDENCE_TOO_LOW, ErrorKind.MATERIAL_IDENTIFICATION_FAILED}


class RawIssue(BaseModel):
    """A problem reported by an extraction stage, optionally pre-typed."""

    message: str
    kind: ErrorKind | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}


class SemanticError(BaseModel):
    """An immutable, fully classified extraction problem."""

    kind: ErrorKind
    severity: Severity
    message: str
    should_abort: bool
    should_force_review: bool
    should_downgrade_confidence: bool
    should_log_only: bool
    can_retry: bool
    requires_manual_intervention: bool
    fallback_available: bool
    guidance: tuple[str, ...] = ()
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    @property
    def user_message(self) -> str:
        return KIND_DEFINITIONS[self.kind].user_message


def build_semantic_error(
    kind: ErrorKind, message: str | None = None, context: dict[str, Any] | None = None
) -> SemanticError:
    """Create a SemanticError carrying the static flags of ``kind``."""
    definition = KIND_DEFINITIONS[kind]
    severity = definition.severity
    return SemanticError(
        kind=kind,
        severity=severity,
        message=message or definition.message,
        should_abort=severity == Severity.FATAL,
        should_force_review=severity == Severity.RECOVERABLE,
        should_downgrade_confidence=severity == Severity.RECOVERABLE,
        should_log_only=severity == Severity.WARNING,
        can_retry=definition.can_retry,
        requires_manual_intervention=definition.requires_manual_intervention,
        fallback_available=definition.fallback_available,
        guidance=definition.guidance,
        context=context or {},
    )
