"""Strata extractor — turns a cell grid into a draft layer set plus raw issues.

Stages:
1. Detect — locate depth and material columns
2. Correlate — pair depths with material identifiers
3. Assemble — sort, de-duplicate and span layers from one depth to the next
4. Score — per-layer confidence and an overall confidence score

Problems found along the way are reported as typed RawIssues for the
semantic classifier; the extractor itself never decides whether to abort.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, BinaryIO

from pydantic import BaseModel, Field

from strata.classifier.engine import (
    ExtractionAborted,
    ProcessedExtractionResult,
    SemanticErrorClassifier,
)
from strata.classifier.fallback import FallbackManager, FallbackStrategy
from strata.classifier.taxonomy import ErrorKind, RawIssue
from strata.config.settings import StrataConfig
from strata.pipeline.correlator import CorrelatedEntry, Correlation, CorrelationStats, correlate
from strata.pipeline.depth import depth_resolution, validate_depth_sequence
from strata.pipeline.detector import ColumnDetection, TabularFieldDetector
from strata.pipeline.grid import Grid, WorkbookError, load_workbook_grid
from strata.pipeline.layers import Confidence, Draft, DraftMetadata, Layer, LayerSource

logger = logging.getLogger(__name__)

_SEQUENCE_WARNING_KINDS = {
    "negative": ErrorKind.VALIDATION_ERROR,
    "direction": ErrorKind.VALIDATION_ERROR,
    "duplicate": ErrorKind.PARSING_ERROR,
    "gaps": ErrorKind.MINOR_FORMATTING_ISSUES,
}


class ExtractionOutcome(BaseModel):
    """Everything one extraction attempt produced, before classification."""

    draft: Draft | None = None
    issues: list[RawIssue] = Field(default_factory=list)
    detection: ColumnDetection | None = None
    stats: CorrelationStats = Field(default_factory=CorrelationStats)
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)


def _sequence_issue(message: str) -> RawIssue:
    lowered = message.lower()
    for marker, kind in _SEQUENCE_WARNING_KINDS.items():
        if marker in lowered:
            return RawIssue(message=message, kind=kind)
    return RawIssue(message=message)


class StrataExtractor:
    """Grid → draft extraction with typed issue reporting."""

    def __init__(
        self,
        config: StrataConfig | None = None,
        detector: TabularFieldDetector | None = None,
        classifier: SemanticErrorClassifier | None = None,
        fallback: FallbackManager | None = None,
    ) -> None:
        self._config = config or StrataConfig()
        self._detector = detector or TabularFieldDetector(self._config.detection)
        self._classifier = classifier or SemanticErrorClassifier(self._config.classifier)
        self._fallback = fallback or FallbackManager(self._config.fallback)

    def extract(
        self,
        grid: Grid,
        filename: str,
        project: str | None = None,
        bore_id: str | None = None,
    ) -> ExtractionOutcome:
        if grid.is_empty:
            return ExtractionOutcome(
                issues=[
                    RawIssue(
                        message="No data found: sheet is empty",
                        kind=ErrorKind.INSUFFICIENT_DATA,
                    )
                ]
            )

        detection = self._detector.detect_columns(grid)
        issues: list[RawIssue] = []
        if detection.depth is None:
            issues.append(
                RawIssue(
                    message="Could not identify depth column in the spreadsheet",
                    kind=ErrorKind.DEPTH_DETECTION_FAILED,
                )
            )
        if detection.material is None:
            issues.append(
                RawIssue(
                    message="Insufficient data: could not identify strata/material column",
                    kind=ErrorKind.INSUFFICIENT_DATA,
                )
            )
        if detection.depth is None or detection.material is None:
            return ExtractionOutcome(issues=issues, detection=detection)

        start = detection.data_start_row
        depth_cells = grid.column(detection.depth.index, start)
        material_cells = grid.column(detection.material.index, start)
        correlation = correlate(
            [c.value for c in depth_cells],
            [c.value for c in material_cells],
            [c.color for c in material_cells],
            row_offset=start,
        )
        issues.extend(self._correlation_issues(correlation, detection))

        if not correlation.entries:
            issues.append(
                RawIssue(
                    message="No valid rows with depth values found",
                    kind=ErrorKind.INSUFFICIENT_DATA,
                )
            )
            return ExtractionOutcome(
                issues=issues, detection=detection, stats=correlation.stats
            )

        layers, duplicates = self.assemble_layers(correlation.entries)
        if duplicates:
            issues.append(
                RawIssue(
                    message=f"Dropped {duplicates} rows with duplicate depth values",
                    kind=ErrorKind.PARSING_ERROR,
                    context={"duplicates": duplicates},
                )
            )

        score = self.overall_confidence(layers)
        if score < self._config.extraction.confidence_threshold:
            issues.append(
                RawIssue(
                    message=(
                        f"Extraction confidence {score:.0%} is below threshold "
                        f"{self._config.extraction.confidence_threshold:.0%}"
                    ),
                    kind=ErrorKind.CONFIDENCE_TOO_LOW,
                    context={"score": score},
                )
            )

        missing = [
            name for name, value in (("bore id", bore_id), ("project", project)) if not value
        ]
        if missing:
            issues.append(
                RawIssue(
                    message=f"Optional metadata missing: {', '.join(missing)}",
                    kind=ErrorKind.METADATA_INCOMPLETE,
                )
            )

        depths = [e.depth for e in correlation.entries]
        draft = Draft(
            layers=layers,
            metadata=DraftMetadata(
                filename=filename,
                project=project,
                bore_id=bore_id,
                depth_unit=detection.depth_unit,
                total_depth=layers[-1].end_depth,
                depth_resolution=depth_resolution(depths),
                sheet_name=grid.sheet_name,
            ),
            warnings=[issue.message for issue in issues],
            confidence_score=score,
        )
        logger.info(
            "Extracted %d layers from %s (confidence=%.2f, issues=%d)",
            len(layers),
            filename,
            score,
            len(issues),
        )
        return ExtractionOutcome(
            draft=draft,
            issues=issues,
            detection=detection,
            stats=correlation.stats,
            confidence_score=score,
        )

    def extract_workbook(
        self,
        source: str | Path | bytes | BinaryIO,
        filename: str | None = None,
        project: str | None = None,
        bore_id: str | None = None,
    ) -> ExtractionOutcome:
        """Load a workbook and extract it; read failures become fatal issues."""
        name = filename or (Path(source).name if isinstance(source, (str, Path)) else "upload.xlsx")
        try:
            grid = load_workbook_grid(source, filename=name)
        except WorkbookError as exc:
            return ExtractionOutcome(issues=[RawIssue(message=str(exc), kind=exc.kind)])
        return self.extract(grid, name, project=project, bore_id=bore_id)

    def extract_for_review(
        self,
        grid: Grid,
        filename: str,
        project: str | None = None,
        bore_id: str | None = None,
    ) -> tuple[Draft, ProcessedExtractionResult]:
        """Extract and classify; raise ExtractionAborted when nothing can be reviewed."""
        outcome = self.extract(grid, filename, project=project, bore_id=bore_id)
        processed = self._classifier.classify_all(outcome.issues, outcome.confidence_score)
        if not processed.can_proceed or outcome.draft is None:
            raise ExtractionAborted(processed.semantic_errors.fatal)
        return outcome.draft, processed

    def plan_fallback(
        self, outcome: ExtractionOutcome, processed: ProcessedExtractionResult
    ) -> FallbackStrategy | None:
        """Recovery path for an unclean extraction; None when it can be saved as is.

        Thresholds apply to the raw extraction confidence, before review penalties.
        """
        if outcome.draft is not None and processed.auto_save_allowed:
            return None
        layer_count = len(outcome.draft.layers) if outcome.draft is not None else 0
        strategy = self._fallback.determine_strategy(
            processed, layer_count, outcome.confidence_score
        )
        logger.info(
            "Fallback for %s: %s (effort=%s)",
            outcome.draft.metadata.filename if outcome.draft is not None else "extraction",
            strategy.kind.value if strategy.kind else "none",
            strategy.estimated_effort,
        )
        return strategy

    def _correlation_issues(
        self, correlation: Correlation, detection: ColumnDetection
    ) -> list[RawIssue]:
        issues = [
            RawIssue(message=w, kind=ErrorKind.PARSING_ERROR) for w in correlation.warnings
        ]
        if correlation.stats.no_material:
            issues.append(
                RawIssue(
                    message=(
                        f"Material not found for {correlation.stats.no_material} "
                        "rows with valid depths"
                    ),
                    kind=ErrorKind.MATERIAL_IDENTIFICATION_FAILED,
                )
            )

        suffixes = {e.unit_suffix for e in correlation.entries if e.unit_suffix}
        header_unit = None
        if detection.depth is not None and not detection.depth.inferred:
            header_unit = detection.depth_unit
        if len(suffixes) > 1 or (header_unit and suffixes and suffixes != {header_unit}):
            issues.append(
                RawIssue(
                    message=(
                        f"Depth units inconsistent: header says {detection.depth_unit}, "
                        f"values use {', '.join(sorted(suffixes))}"
                    ),
                    kind=ErrorKind.DEPTH_UNIT_INCONSISTENCY,
                )
            )

        for warning in validate_depth_sequence([e.depth for e in correlation.entries]):
            if "duplicate" in warning:
                # reported once the duplicates are actually dropped
                continue
            issues.append(_sequence_issue(warning))
        return issues

    def assemble_layers(self, entries: list[CorrelatedEntry]) -> tuple[list[Layer], int]:
        """Build depth-ordered, non-overlapping layers from correlated entries.

        Each layer runs from its depth to the next entry's depth; the last
        layer repeats the previous thickness (or the configured default).
        Returns the layers and the number of duplicate-depth rows dropped.
        """
        ordered: list[CorrelatedEntry] = []
        seen: set[float] = set()
        duplicates = 0
        for entry in sorted(entries, key=lambda e: (e.depth, e.index)):
            if entry.depth in seen:
                duplicates += 1
                continue
            seen.add(entry.depth)
            ordered.append(entry)

        layers: list[Layer] = []
        for i, entry in enumerate(ordered):
            if i + 1 < len(ordered):
                end = ordered[i + 1].depth
            elif i > 0:
                end = entry.depth + (entry.depth - ordered[i - 1].depth)
            else:
                end = entry.depth + self._config.extraction.default_terminal_thickness
            layers.append(self._layer_from_entry(entry, end))
        return layers, duplicates

    def overall_confidence(self, layers: list[Layer]) -> float:
        if not layers:
            return 0.0
        weights = self._config.extraction.confidence_weights
        low = weights.get(Confidence.LOW.value, 0.2)
        total = sum(weights.get(layer.confidence.value, low) for layer in layers)
        return min(1.0, max(0.0, total / len(layers)))

    @staticmethod
    def _layer_from_entry(entry: CorrelatedEntry, end: float) -> Layer:
        fields: dict[str, Any] = {
            "start_depth": entry.depth,
            "end_depth": end,
            "original_color": entry.original_color,
        }
        if entry.source == "text":
            fields.update(
                material=entry.material, confidence=Confidence.HIGH, source=LayerSource.TEXT
            )
        elif entry.source == "color":
            fields.update(
                material=entry.material, confidence=Confidence.MEDIUM, source=LayerSource.COLOR
            )
        else:
            fields.update(material="", confidence=Confidence.LOW, source=LayerSource.TEXT)
        return Layer(**fields)
