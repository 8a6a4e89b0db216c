"""Review edit model: the human-in-the-loop step between extraction and storage.

A ReviewEditModel owns at most one draft at a time and walks it through

    DISPLAYING -> EDITING* -> VALIDATING -> SAVED | REJECTED

Edit operations are synchronous and check only their own preconditions;
structural problems that span layers (overlaps, gaps) are reported by
validation. A failed edit raises EditError and leaves the working list as it
was. A rejected save keeps every edit so the user can fix and retry.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Sequence

from strata.classifier.engine import (
    ExtractionAborted,
    ProcessedExtractionResult,
    enforce_semantic_rules,
)
from strata.classifier.fallback import CorrectionGuidance, FallbackManager
from strata.persistence.adapter import PersistenceAdapter, PersistenceError, SaveRejected
from strata.persistence.records import PersistedRecord
from strata.pipeline.layers import Confidence, Draft, Layer
from strata.review.phases import (
    EDITABLE_PHASES,
    OPENABLE_PHASES,
    VALID_TRANSITIONS,
    ReviewPhase,
)
from strata.review.validation import EditValidation, validate_user_edits
from strata.signals.emitter import SignalEmitter
from strata.signals.types import SignalType
from strata.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class EditError(ValueError):
    """Raised when a single edit operation's preconditions are not met."""


class ReviewStateError(RuntimeError):
    """Raised when an operation is not valid in the current review phase."""


def _coerce_depth(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise EditError(f"{name} must be a number")
    try:
        depth = float(value)
    except (TypeError, ValueError):
        raise EditError(f"{name} must be a number, got {value!r}") from None
    if not math.isfinite(depth):
        raise EditError(f"{name} must be finite")
    return depth


class ReviewEditModel:
    """Working copy of one draft plus the operations a reviewer may apply to it."""

    def __init__(
        self,
        adapter: PersistenceAdapter,
        signals: SignalEmitter | None = None,
        session_id: str = "review",
        fallback: FallbackManager | None = None,
    ) -> None:
        self._adapter = adapter
        self._fallback = fallback or FallbackManager()
        self._signals = signals or SignalEmitter(session_id)
        self._phase = ReviewPhase.IDLE
        self._draft: Draft | None = None
        self._layers: list[Layer] = []
        self._processed: ProcessedExtractionResult | None = None
        self._review_acknowledged = False
        self._last_validation: EditValidation | None = None

    # --- State ---

    @property
    def phase(self) -> ReviewPhase:
        return self._phase

    @property
    def signals(self) -> SignalEmitter:
        return self._signals

    @property
    def has_draft(self) -> bool:
        return self._draft is not None

    @property
    def draft(self) -> Draft:
        """The open draft with the current working layers."""
        draft = self._require_draft()
        return draft.model_copy(update={"layers": self.layers})

    @property
    def layers(self) -> list[Layer]:
        return [layer.model_copy() for layer in self._layers]

    @property
    def processed(self) -> ProcessedExtractionResult | None:
        return self._processed

    @property
    def forced_review(self) -> bool:
        return self._processed is not None and self._processed.must_force_review

    @property
    def review_acknowledged(self) -> bool:
        return self._review_acknowledged

    @property
    def confidence_downgraded(self) -> bool:
        return self._processed is not None and self._processed.confidence_downgraded

    @property
    def last_validation(self) -> EditValidation | None:
        return self._last_validation

    def _transition(self, to_phase: ReviewPhase, context: dict[str, Any] | None = None) -> None:
        """Every phase change goes through here."""
        if to_phase not in VALID_TRANSITIONS.get(self._phase, set()):
            raise ReviewStateError(
                f"Invalid transition: {self._phase.value} -> {to_phase.value}"
            )
        from_phase = self._phase
        self._phase = to_phase
        self._signals.emit_phase_transition(from_phase.value, to_phase.value, context)

    def _require_draft(self) -> Draft:
        if self._draft is None:
            raise ReviewStateError("No draft is open for review")
        return self._draft

    def _require_editable(self) -> None:
        self._require_draft()
        if self._phase not in EDITABLE_PHASES:
            raise ReviewStateError(f"Draft cannot be edited while {self._phase.value}")

    def _layer_at(self, index: int) -> Layer:
        if not 0 <= index < len(self._layers):
            raise EditError(f"Layer index {index} is out of range (0-{len(self._layers) - 1})")
        return self._layers[index]

    def _commit_edit(self, operation: str, layers: list[Layer], **details: Any) -> None:
        if self._phase != ReviewPhase.EDITING:
            self._transition(ReviewPhase.EDITING)
        self._layers = layers
        self._last_validation = None
        self._signals.emit(
            SignalType.LAYERS_CHANGED,
            {"operation": operation, "layer_count": len(layers), **details},
        )

    # --- Lifecycle ---

    def open(self, draft: Draft, processed: ProcessedExtractionResult | None = None) -> None:
        """Open ``draft`` for review.

        Raises:
            ReviewStateError: if another draft is still open.
            ExtractionAborted: if ``processed`` says the extraction cannot proceed.
        """
        if self._phase not in OPENABLE_PHASES:
            raise ReviewStateError(
                f"A draft is already open ({self._phase.value}); save or cancel it first"
            )
        if processed is not None:
            if not processed.can_proceed:
                fatal = processed.semantic_errors.fatal
                emit_structured_error(
                    logger,
                    code=ErrorCode.EXTRACTION_ABORTED,
                    message="; ".join(e.message for e in fatal),
                    suppressed=False,
                    session_id=self._signals.session_id,
                    details={"filename": draft.metadata.filename},
                )
                self._adapter.notify(
                    f"Extraction failed: {fatal[0].user_message if fatal else 'aborted'}",
                    "error",
                )
                raise ExtractionAborted(fatal)
            enforce_semantic_rules(processed)

        self._draft = draft.model_copy(deep=True)
        self._layers = [layer.model_copy() for layer in draft.layers]
        self._processed = processed
        self._review_acknowledged = False
        self._last_validation = None
        self._transition(ReviewPhase.DISPLAYING, {"filename": draft.metadata.filename})
        self._signals.emit(
            SignalType.DRAFT_OPENED,
            {
                "filename": draft.metadata.filename,
                "layer_count": len(self._layers),
                "forced_review": self.forced_review,
            },
        )

    def acknowledge_review(self) -> None:
        """Record that the reviewer has seen the forced-review warnings."""
        self._require_editable()
        self._review_acknowledged = True

    def cancel(self) -> Draft:
        """Discard the open draft without writing anything."""
        draft = self.draft
        self._transition(ReviewPhase.CANCELLED)
        self._signals.emit(SignalType.DRAFT_CANCELLED, {"filename": draft.metadata.filename})
        self._clear()
        return draft

    def _clear(self) -> None:
        self._draft = None
        self._layers = []
        self._processed = None
        self._review_acknowledged = False

    # --- Edit operations ---

    def update_material(self, index: int, name: str) -> Layer:
        self._require_editable()
        layer = self._layer_at(index)
        material = str(name).strip() if name is not None else ""
        if not material:
            raise EditError("Material name cannot be empty")
        updated = layer.model_copy(
            update={"material": material, "confidence": Confidence.HIGH, "user_edited": True}
        )
        layers = list(self._layers)
        layers[index] = updated
        self._commit_edit("update_material", layers, index=index)
        return updated.model_copy()

    def update_depths(self, index: int, start: Any, end: Any) -> Layer:
        self._require_editable()
        layer = self._layer_at(index)
        start_depth = _coerce_depth(start, "Start depth")
        end_depth = _coerce_depth(end, "End depth")
        if start_depth >= end_depth:
            raise EditError(
                f"Start depth ({start_depth}) must be less than end depth ({end_depth})"
            )
        updated = layer.model_copy(
            update={
                "start_depth": start_depth,
                "end_depth": end_depth,
                "confidence": Confidence.HIGH,
                "user_edited": True,
            }
        )
        layers = list(self._layers)
        layers[index] = updated
        self._commit_edit("update_depths", layers, index=index)
        return updated.model_copy()

    def merge_layers(self, first: int, second: int) -> Layer:
        """Merge two adjacent layers; the lower index keeps its identity."""
        self._require_editable()
        if abs(first - second) != 1:
            raise EditError("Only adjacent layers can be merged")
        lower, upper = min(first, second), max(first, second)
        keep = self._layer_at(lower)
        other = self._layer_at(upper)
        merged = keep.model_copy(
            update={
                "start_depth": min(keep.start_depth, other.start_depth),
                "end_depth": max(keep.end_depth, other.end_depth),
                "confidence": Confidence.HIGH,
                "user_edited": True,
            }
        )
        layers = [*self._layers[:lower], merged, *self._layers[upper + 1 :]]
        self._commit_edit("merge_layers", layers, index=lower)
        return merged.model_copy()

    def split_layer(self, index: int, depth: Any) -> tuple[Layer, Layer]:
        """Split a layer at ``depth`` into two layers sharing that boundary."""
        self._require_editable()
        layer = self._layer_at(index)
        boundary = _coerce_depth(depth, "Split depth")
        if not layer.start_depth < boundary < layer.end_depth:
            raise EditError(
                f"Split depth {boundary} must be strictly between "
                f"{layer.start_depth} and {layer.end_depth}"
            )
        common = {"confidence": Confidence.HIGH, "user_edited": True}
        upper = layer.model_copy(update={"end_depth": boundary, **common})
        lower = layer.model_copy(update={"start_depth": boundary, **common})
        layers = [*self._layers[:index], upper, lower, *self._layers[index + 1 :]]
        self._commit_edit("split_layer", layers, index=index, depth=boundary)
        return upper.model_copy(), lower.model_copy()

    def delete_layer(self, index: int) -> Layer:
        self._require_editable()
        removed = self._layer_at(index)
        layers = [*self._layers[:index], *self._layers[index + 1 :]]
        self._commit_edit("delete_layer", layers, index=index)
        return removed

    # --- Validation and save ---

    def correction_guidance(self) -> list[CorrectionGuidance]:
        """Prioritised fixes for the open draft, located in the working layers."""
        self._require_draft()
        if self._processed is None:
            return []
        return self._fallback.correction_guidance(self._processed, self._layers)

    def validate_user_edits(self, layers: Sequence[Layer] | None = None) -> EditValidation:
        result = validate_user_edits(self._layers if layers is None else layers)
        self._last_validation = result
        return result

    async def confirm_and_save(self, layers: Sequence[Layer] | None = None) -> PersistedRecord:
        """Validate, gate, normalise and persist the working layers.

        Raises:
            SaveRejected: validation, gating, normalisation or schema checks
                failed. The draft stays open in REJECTED with edits intact.
            PersistenceError: the storage write failed. Nothing was saved.

        Any other failure from a port also leaves the draft in REJECTED and
        propagates unchanged.
        """
        self._require_editable()
        draft = self._require_draft()
        if layers is not None:
            self._layers = [layer.model_copy() for layer in layers]

        self._transition(ReviewPhase.VALIDATING)
        validation = self.validate_user_edits()
        if not validation.valid:
            self._transition(ReviewPhase.REJECTED, {"reason": "validation"})
            self._signals.emit(SignalType.VALIDATION_FAILED, {"errors": validation.errors})
            raise SaveRejected("Layer validation failed", errors=validation.errors)

        try:
            record = await self._adapter.save(
                draft,
                self._layers,
                processed=self._processed,
                review_acknowledged=self._review_acknowledged,
            )
        except SaveRejected as exc:
            self._transition(ReviewPhase.REJECTED, {"reason": str(exc)})
            self._signals.emit_save_rejected(str(exc), exc.errors)
            raise
        except PersistenceError as exc:
            self._transition(ReviewPhase.REJECTED, {"reason": "storage"})
            self._signals.emit_save_rejected(str(exc))
            raise
        except Exception as exc:
            self._transition(ReviewPhase.REJECTED, {"reason": "unexpected"})
            self._signals.emit_save_rejected(f"Save failed: {exc}")
            emit_structured_error(
                logger,
                code=ErrorCode.SAVE_FAILED,
                message=str(exc),
                suppressed=False,
                session_id=self._signals.session_id,
                phase=ReviewPhase.VALIDATING.value,
                details={"exception_type": type(exc).__name__},
            )
            raise

        self._transition(ReviewPhase.SAVED, {"record_id": record.id})
        self._signals.emit(
            SignalType.DRAFT_SAVED,
            {"record_id": record.id, "layer_count": len(record.metadata.strata_layers)},
        )
        self._clear()
        return record
