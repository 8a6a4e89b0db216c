"""Semantic error classifier — maps raw extraction issues onto the closed taxonomy
and aggregates them into a single gating decision for the review surface.

Typed issues (RawIssue.kind, or an exception carrying a ``kind`` attribute) are
classified directly. Free-text messages fall back to an ordered table of
case-insensitive patterns: fatal rules first, then recoverable, then warnings.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Literal

from pydantic import BaseModel, Field

from strata.classifier.taxonomy import (
    AMBIGUOUS_KINDS,
    ErrorKind,
    RawIssue,
    SemanticError,
    Severity,
    build_semantic_error,
)
from strata.config.settings import ClassifierConfig
from strata.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class ExtractionAborted(Exception):
    """Raised when fatal errors prevent a draft from being reviewed."""

    def __init__(self, fatal_errors: list[SemanticError]) -> None:
        self.fatal_errors = list(fatal_errors)
        self.manual_entry_available = all(e.fallback_available for e in self.fatal_errors)
        summary = "; ".join(e.message for e in self.fatal_errors) or "extraction aborted"
        super().__init__(summary)


class SemanticRuleViolation(RuntimeError):
    """Raised when a processed result contradicts the aggregation rules."""


# Ordered (pattern, kind) rules. Fatal before recoverable before warning; first hit wins.
MESSAGE_RULES: list[tuple[re.Pattern[str], ErrorKind]] = [
    (re.compile(p, re.IGNORECASE), kind)
    for p, kind in [
        (r"\bdepth\b.*\b(not found|failed|missing)\b", ErrorKind.DEPTH_DETECTION_FAILED),
        (
            r"\b(could not|cannot|unable to) (identify|find|detect|locate)\b.*\bdepth\b",
            ErrorKind.DEPTH_DETECTION_FAILED,
        ),
        (r"\bunsupported\b", ErrorKind.UNSUPPORTED_FORMAT),
        (r"\b(invalid|unknown|unrecognized) (file )?format\b", ErrorKind.UNSUPPORTED_FORMAT),
        (r"\bcorrupt(ed)?\b", ErrorKind.FILE_CORRUPTED),
        (r"\b(cannot|could not|unable to) read\b", ErrorKind.FILE_CORRUPTED),
        (r"\bunreadable\b", ErrorKind.FILE_CORRUPTED),
        (r"\bcritical pars(e|ing) error\b", ErrorKind.FILE_CORRUPTED),
        (r"\binsufficient\b", ErrorKind.INSUFFICIENT_DATA),
        (r"\bno (valid )?(data|rows)\b", ErrorKind.INSUFFICIENT_DATA),
        (r"\b(sheet|workbook|file|grid|table) (is|was) empty\b", ErrorKind.INSUFFICIENT_DATA),
        (r"\bschema\b.*\b(validation|violation)\b", ErrorKind.SCHEMA_VALIDATION_FAILED),
        (
            r"\bmaterial\b.*\b(not found|failed|missing|unidentified)\b",
            ErrorKind.MATERIAL_IDENTIFICATION_FAILED,
        ),
        (r"\bambiguous material\b", ErrorKind.MATERIAL_IDENTIFICATION_FAILED),
        (
            r"\b(could not|cannot|unable to) (identify|find|detect)\b.*\bmaterials?\b",
            ErrorKind.MATERIAL_IDENTIFICATION_FAILED,
        ),
        (r"\bconfidence\b.*\b(low|below)\b", ErrorKind.CONFIDENCE_TOO_LOW),
        (r"\binvalid depth value\b", ErrorKind.PARSING_ERROR),
        (r"\bduplicate depth", ErrorKind.PARSING_ERROR),
        (r"\bunits?\b.*\b(inconsistent|mismatch(ed)?)\b", ErrorKind.DEPTH_UNIT_INCONSISTENCY),
        (r"\b(inconsistent|mismatch(ed)?)\b.*\bunits?\b", ErrorKind.DEPTH_UNIT_INCONSISTENCY),
        (r"\bvalidation\b", ErrorKind.VALIDATION_ERROR),
        (r"\boverlap", ErrorKind.VALIDATION_ERROR),
        (r"\bnegative depth", ErrorKind.VALIDATION_ERROR),
        (r"\binconsistent direction", ErrorKind.VALIDATION_ERROR),
        (r"\bminor\b", ErrorKind.MINOR_FORMATTING_ISSUES),
        (r"\bformatting\b", ErrorKind.MINOR_FORMATTING_ISSUES),
        (r"\blarge gaps?\b", ErrorKind.MINOR_FORMATTING_ISSUES),
        (r"\bmetadata\b.*\b(missing|incomplete)\b", ErrorKind.METADATA_INCOMPLETE),
        (r"\boptional field\b.*\bmissing\b", ErrorKind.METADATA_INCOMPLETE),
    ]
]

RecommendedAction = Literal["abort", "review_required", "proceed"]
ConfidenceLevel = Literal["high", "medium", "low"]


class SemanticErrorGroups(BaseModel):
    fatal: list[SemanticError] = Field(default_factory=list)
    recoverable: list[SemanticError] = Field(default_factory=list)
    warnings: list[SemanticError] = Field(default_factory=list)


class ProcessedExtractionResult(BaseModel):
    """Aggregate gating decision for one extraction attempt."""

    can_proceed: bool
    must_force_review: bool
    auto_save_allowed: bool
    confidence_adjustment: float = 0.0
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
    recommended_action: RecommendedAction
    semantic_errors: SemanticErrorGroups = Field(default_factory=SemanticErrorGroups)

    @property
    def confidence_downgraded(self) -> bool:
        return self.confidence_adjustment < 0

    @property
    def all_errors(self) -> list[SemanticError]:
        groups = self.semantic_errors
        return [*groups.fatal, *groups.recoverable, *groups.warnings]

    @property
    def confidence_level(self) -> ConfidenceLevel | None:
        if self.confidence_score is None:
            return None
        return confidence_level(self.confidence_score)


class ErrorReport(BaseModel):
    """User-facing summary of a processed extraction."""

    title: str
    message: str
    actions: list[str]
    severity: Severity | None
    can_save: bool
    must_review: bool
    should_abort: bool
    counts: dict[str, int]
    confidence_level: ConfidenceLevel | None = None


def confidence_level(score: float) -> ConfidenceLevel:
    if score >= 0.8:
        return "high"
    if score >= 0.5:
        return "medium"
    return "low"


def classify_message(message: str) -> ErrorKind:
    """Match a free-text message against the ordered rule table."""
    for pattern, kind in MESSAGE_RULES:
        if pattern.search(message):
            return kind
    return ErrorKind.PARSING_ERROR


def enforce_semantic_rules(result: ProcessedExtractionResult) -> None:
    """Raise SemanticRuleViolation if ``result`` breaks an aggregation invariant."""
    groups = result.semantic_errors
    problems: list[str] = []

    if groups.fatal:
        if result.can_proceed:
            problems.append("fatal errors present but can_proceed is true")
        if result.must_force_review:
            problems.append("fatal errors present but must_force_review is true")
    if result.auto_save_allowed and (result.must_force_review or groups.fatal):
        problems.append("auto_save_allowed contradicts review or abort state")
    if result.can_proceed and not result.must_force_review:
        ambiguous = [e.kind.value for e in groups.recoverable if e.kind in AMBIGUOUS_KINDS]
        if ambiguous:
            problems.append(f"ambiguous data bypasses review: {', '.join(ambiguous)}")

    if problems:
        message = "; ".join(problems)
        emit_structured_error(
            logger,
            code=ErrorCode.SEMANTIC_RULE_VIOLATION,
            message=message,
            suppressed=False,
            details={"recommended_action": result.recommended_action},
        )
        raise SemanticRuleViolation(message)


class SemanticErrorClassifier:
    """Classifies raw extraction issues and aggregates them into a gating result."""

    def __init__(self, config: ClassifierConfig | None = None) -> None:
        self._config = config or ClassifierConfig()

    def classify(self, issue: str | RawIssue | BaseException) -> SemanticError:
        kind: ErrorKind | None = None
        context: dict[str, Any] = {}

        if isinstance(issue, RawIssue):
            message = issue.message
            kind = issue.kind
            context = dict(issue.context)
        elif isinstance(issue, BaseException):
            message = str(issue)
            candidate = getattr(issue, "kind", None)
            if isinstance(candidate, ErrorKind):
                kind = candidate
        else:
            message = str(issue) if issue is not None else ""

        if kind is None:
            kind = classify_message(message)
            context.setdefault("classified_by", "message")
        else:
            context.setdefault("classified_by", "kind")

        context.setdefault("original_message", message)
        return build_semantic_error(kind, message or None, context)

    def classify_all(
        self,
        issues: Iterable[str | RawIssue | BaseException],
        confidence: float | None = None,
    ) -> ProcessedExtractionResult:
        groups = SemanticErrorGroups()
        for issue in issues:
            error = self.classify(issue)
            if error.severity == Severity.FATAL:
                groups.fatal.append(error)
            elif error.severity == Severity.RECOVERABLE:
                groups.recoverable.append(error)
            else:
                groups.warnings.append(error)
                logger.info("Extraction warning (%s): %s", error.kind.value, error.message)

        has_fatal = bool(groups.fatal)
        must_force_review = bool(groups.recoverable) and not has_fatal

        penalty = 0.0
        if groups.recoverable:
            penalty = max(
                self._config.recoverable_penalty * len(groups.recoverable),
                self._config.min_penalty,
            )

        score = None
        if confidence is not None:
            score = min(1.0, max(0.0, confidence - penalty))

        if has_fatal:
            action: RecommendedAction = "abort"
        elif must_force_review:
            action = "review_required"
        else:
            action = "proceed"

        result = ProcessedExtractionResult(
            can_proceed=not has_fatal,
            must_force_review=must_force_review,
            auto_save_allowed=not must_force_review and not has_fatal,
            confidence_adjustment=-penalty,
            confidence_score=score,
            recommended_action=action,
            semantic_errors=groups,
        )
        enforce_semantic_rules(result)
        return result

    def error_report(self, result: ProcessedExtractionResult) -> ErrorReport:
        groups = result.semantic_errors
        counts = {
            "fatal": len(groups.fatal),
            "recoverable": len(groups.recoverable),
            "warnings": len(groups.warnings),
        }
        if groups.fatal:
            severity: Severity | None = Severity.FATAL
            title = "Extraction Failed"
            message = (
                "Critical errors prevent data extraction. Please check the file and try again."
            )
            actions = ["Close", "Try Different File"]
        elif groups.recoverable:
            severity = Severity.RECOVERABLE
            title = "Review Required"
            message = (
                "Data quality issues detected. "
                "Please review and correct the extracted data before saving."
            )
            actions = ["Review Data", "Cancel"]
        elif groups.warnings:
            severity = Severity.WARNING
            title = "Extraction Complete with Warnings"
            message = (
                "Minor issues detected but extraction was successful. "
                "You may save or review the data."
            )
            actions = ["Save", "Review Data", "Cancel"]
        else:
            severity = None
            title = "Extraction Complete"
            message = "All layers were extracted without issues."
            actions = ["Save", "Review Data", "Cancel"]

        return ErrorReport(
            title=title,
            message=message,
            actions=actions,
            severity=severity,
            can_save=result.auto_save_allowed,
            must_review=result.must_force_review,
            should_abort=not result.can_proceed,
            counts=counts,
            confidence_level=result.confidence_level,
        )
