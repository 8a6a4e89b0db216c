"""Fallback planning: what the user can still do when an extraction is not clean.

A processed result plus the extracted layers selects one recovery path:

- none: a fatal error prevents any recovery from this file
- PARTIAL_EXTRACTION: enough was extracted to review and complete by hand
- GUIDED_CORRECTION: low-confidence layers, corrected with per-problem guidance
- MANUAL_ENTRY: nothing usable was extracted; enter the log by hand
"""

from __future__ import annotations

from enum import Enum
from typing import Literal, Sequence

from pydantic import BaseModel, Field

from strata.classifier.engine import ProcessedExtractionResult
from strata.classifier.taxonomy import ErrorKind, SemanticError, Severity
from strata.config.settings import FallbackConfig
from strata.pipeline.layers import Confidence, Layer

Effort = Literal["none", "low", "medium", "high"]
Priority = Literal["high", "medium", "low"]

_PRIORITY_BY_SEVERITY: dict[Severity, Priority] = {
    Severity.FATAL: "high",
    Severity.RECOVERABLE: "medium",
    Severity.WARNING: "low",
}
_PRIORITY_RANK = {"high": 3, "medium": 2, "low": 1}


class FallbackKind(str, Enum):
    PARTIAL_EXTRACTION = "partial_extraction"
    GUIDED_CORRECTION = "guided_correction"
    MANUAL_ENTRY = "manual_entry"


class FallbackStrategy(BaseModel):
    """Recommended recovery path for one extraction attempt."""

    kind: FallbackKind | None = None
    reason: str
    actions: list[str] = Field(default_factory=list)
    user_guidance: str
    can_recover: bool
    estimated_effort: Effort
    manual_entry_available: bool = True

    model_config = {"frozen": True}


class CorrectionGuidance(BaseModel):
    """One problem the reviewer should fix, and where."""

    kind: ErrorKind
    message: str
    priority: Priority
    suggested_action: str
    affected_layers: list[int] = Field(default_factory=list)

    model_config = {"frozen": True}


def prioritize_corrections(corrections: Sequence[CorrectionGuidance]) -> list[CorrectionGuidance]:
    """Highest priority first, then the correction touching the most layers."""
    return sorted(
        corrections,
        key=lambda c: (_PRIORITY_RANK[c.priority], len(c.affected_layers)),
        reverse=True,
    )


def affected_layers(error: SemanticError, layers: Sequence[Layer]) -> list[int]:
    if error.kind is ErrorKind.MATERIAL_IDENTIFICATION_FAILED:
        return [i for i, layer in enumerate(layers) if not layer.material.strip()]
    if error.kind is ErrorKind.CONFIDENCE_TOO_LOW:
        return [i for i, layer in enumerate(layers) if layer.confidence is Confidence.LOW]
    if error.kind is ErrorKind.VALIDATION_ERROR:
        ordered = sorted(range(len(layers)), key=lambda i: layers[i].start_depth)
        flagged = {
            i
            for i in ordered
            if layers[i].start_depth < 0 or layers[i].end_depth <= layers[i].start_depth
        }
        for a, b in zip(ordered, ordered[1:]):
            if layers[b].start_depth < layers[a].end_depth:
                flagged.update((a, b))
        return sorted(flagged)
    return []


class FallbackManager:
    """Chooses a recovery path and builds correction guidance for the reviewer."""

    def __init__(self, config: FallbackConfig | None = None) -> None:
        self._config = config or FallbackConfig()

    def determine_strategy(
        self,
        processed: ProcessedExtractionResult,
        layer_count: int,
        confidence: float | None = None,
    ) -> FallbackStrategy:
        """Pick a recovery path from the gating result and what was extracted.

        ``confidence`` defaults to the processed (penalised) score.
        """
        fatal = processed.semantic_errors.fatal
        if not processed.can_proceed:
            return FallbackStrategy(
                reason="Fatal error prevents any recovery",
                user_guidance="Please check the file format and try with a different file.",
                can_recover=False,
                estimated_effort="none",
                manual_entry_available=all(e.fallback_available for e in fatal),
            )

        if confidence is None:
            confidence = processed.confidence_score or 0.0

        if layer_count and confidence >= self._config.partial_extraction_threshold:
            return FallbackStrategy(
                kind=FallbackKind.PARTIAL_EXTRACTION,
                reason="Some data was successfully extracted",
                actions=[
                    "Review extracted layers",
                    "Manually add missing information",
                    "Validate and save",
                ],
                user_guidance=(
                    f"{layer_count} layers were extracted with {confidence:.1%} confidence. "
                    "Please review and complete the missing data."
                ),
                can_recover=True,
                estimated_effort="low",
            )

        if (
            layer_count
            and confidence >= self._config.min_confidence_threshold
            and self._config.enable_guided_correction
        ):
            return FallbackStrategy(
                kind=FallbackKind.GUIDED_CORRECTION,
                reason="Low confidence extraction requires user guidance",
                actions=[
                    "Review uncertain layers",
                    "Correct identified issues",
                    "Re-validate data",
                ],
                user_guidance=(
                    f"Extraction completed with low confidence ({confidence:.1%}). "
                    "Please review and correct the highlighted issues."
                ),
                can_recover=True,
                estimated_effort="medium",
            )

        return FallbackStrategy(
            kind=FallbackKind.MANUAL_ENTRY,
            reason="Automatic extraction failed, manual entry required",
            actions=[
                "Open manual entry",
                "Enter layers manually",
                "Use file as reference",
            ],
            user_guidance=(
                "Automatic extraction was not successful. "
                "You can enter the layers manually while viewing the original file."
            ),
            can_recover=True,
            estimated_effort="high",
        )

    def correction_guidance(
        self, processed: ProcessedExtractionResult, layers: Sequence[Layer]
    ) -> list[CorrectionGuidance]:
        corrections = [
            CorrectionGuidance(
                kind=error.kind,
                message=error.message,
                priority=_PRIORITY_BY_SEVERITY[error.severity],
                suggested_action=(
                    error.guidance[0]
                    if error.guidance
                    else "Review and correct the highlighted issue"
                ),
                affected_layers=affected_layers(error, layers),
            )
            for error in processed.all_errors
        ]
        return prioritize_corrections(corrections)
