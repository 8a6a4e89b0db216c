"""Persistence adapter — converts a reviewed draft into the canonical stored record.

Contract: a save is a single atomic ``storage.put``. Everything that can be
rejected (semantic gating, depth normalisation, material sanitisation, schema
checks) is rejected before the write, so a failed save never leaves a partial
record behind.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import PurePath
from typing import Sequence

from strata.classifier.engine import ProcessedExtractionResult
from strata.classifier.taxonomy import ErrorKind, SemanticError, build_semantic_error
from strata.config.settings import PersistenceConfig
from strata.pipeline.depth import normalize_depth, sanitize_material
from strata.pipeline.layers import Confidence, Draft, Layer
from strata.persistence.ports import (
    AnonymousIdentity,
    ClockPort,
    IdentityPort,
    IdGeneratorPort,
    LoggingNotifier,
    NotifierPort,
    RandomIdGenerator,
    SchemaValidatorPort,
    StoragePort,
    SystemClock,
    ToastKind,
)
from strata.persistence.records import (
    ExtractedLayerRecord,
    ExtractionSource,
    PersistedRecord,
    RecordMetadata,
    StrataLayerRecord,
)
from strata.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)


class SaveRejected(Exception):
    """Raised when a draft may not be saved in its current state.

    The caller's edit state is untouched; fix the listed problems and retry.
    """

    def __init__(
        self,
        message: str,
        errors: list[str] | None = None,
        semantic_errors: list[SemanticError] | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = list(errors or [])
        self.semantic_errors = list(semantic_errors or [])


class PersistenceError(Exception):
    """Raised when the storage write itself fails. Nothing was persisted."""


def generate_filename(source_filename: str | None, date: str) -> str:
    stem = PurePath(source_filename).stem if source_filename else "strata_chart"
    return f"{stem}_extracted_{date}"


def strata_summary(layers: Sequence[StrataLayerRecord], total_depth: float | None) -> str:
    if not layers:
        return "No strata data available"
    if total_depth is None:
        total_depth = layers[-1].end_depth
    materials = len({layer.type for layer in layers})
    return (
        f"{len(layers)} layers identified, {materials} unique materials, "
        f"total depth: {total_depth:g} ft"
    )


class PersistenceAdapter:
    """Normalises reviewed layers and writes them through the storage port."""

    def __init__(
        self,
        storage: StoragePort,
        identity: IdentityPort | None = None,
        clock: ClockPort | None = None,
        id_generator: IdGeneratorPort | None = None,
        notifier: NotifierPort | None = None,
        schema_validator: SchemaValidatorPort | None = None,
        config: PersistenceConfig | None = None,
    ) -> None:
        self._storage = storage
        self._identity = identity or AnonymousIdentity()
        self._clock = clock or SystemClock()
        self._ids = id_generator or RandomIdGenerator()
        self._notifier = notifier or LoggingNotifier()
        self._schema_validator = schema_validator
        self._config = config or PersistenceConfig()

    # --- Gate ---

    def ensure_save_allowed(
        self, processed: ProcessedExtractionResult | None, review_acknowledged: bool
    ) -> None:
        """Refuse to save when the semantic result forbids it."""
        if processed is None:
            return
        if not processed.can_proceed:
            raise SaveRejected(
                "Extraction was aborted; nothing can be saved",
                semantic_errors=processed.semantic_errors.fatal,
            )
        if not processed.auto_save_allowed and not review_acknowledged:
            raise SaveRejected(
                "Review must be acknowledged before this extraction can be saved",
                semantic_errors=processed.semantic_errors.recoverable,
            )

    # --- Normalisation ---

    def normalize_layers(
        self,
        layers: Sequence[Layer],
        depth_unit: str = "feet",
        confidence_downgraded: bool = False,
    ) -> list[Layer]:
        """Return committed copies: depths in feet, sanitised materials, depth order.

        Raises:
            SaveRejected: listing every layer that could not be normalised.
        """
        errors: list[str] = []
        normalized: list[Layer] = []
        for i, layer in enumerate(layers):
            label = f"Layer {i + 1}"
            try:
                start = normalize_depth(layer.start_depth, depth_unit, self._config.max_depth)
                end = normalize_depth(layer.end_depth, depth_unit, self._config.max_depth)
            except ValueError as exc:
                errors.append(f"{label}: {exc}")
                continue
            try:
                material = sanitize_material(layer.material, self._config.material_max_length)
            except ValueError as exc:
                errors.append(f"{label}: {exc}")
                continue
            if start >= end:
                errors.append(f"{label}: layer has no thickness after normalisation")
                continue

            confidence = layer.confidence
            if confidence_downgraded and not layer.user_edited and confidence == Confidence.HIGH:
                confidence = Confidence.MEDIUM
            normalized.append(
                layer.model_copy(
                    update={
                        "material": material,
                        "start_depth": start,
                        "end_depth": end,
                        "confidence": confidence,
                    }
                )
            )

        if errors:
            raise SaveRejected("Layers could not be normalised", errors=errors)
        return sorted(normalized, key=lambda layer: layer.start_depth)

    # --- Record construction ---

    def build_record(
        self,
        draft: Draft,
        layers: Sequence[Layer],
        processed: ProcessedExtractionResult | None = None,
    ) -> PersistedRecord:
        """Build the stored record from already-normalised layers."""
        now = self._clock.now_iso()
        date = now[:10]
        metadata = draft.metadata
        user = self._identity.get_current_user()

        strata_layers = [
            StrataLayerRecord(
                type=layer.material,
                thickness=round(layer.end_depth - layer.start_depth, 2),
                start_depth=layer.start_depth,
                end_depth=layer.end_depth,
                confidence=layer.confidence,
                user_edited=layer.user_edited,
            )
            for layer in layers
        ]
        total_depth = self._total_depth(draft, layers)

        if processed is not None and processed.confidence_score is not None:
            score = processed.confidence_score
        else:
            score = draft.confidence_score

        return PersistedRecord(
            id=self._ids.uid("f"),
            project=metadata.project or self._config.default_project,
            filename=generate_filename(metadata.filename, date),
            metadata=RecordMetadata(
                bore_id=metadata.bore_id or f"extracted_{self._epoch_ms(now)}",
                date=date,
                tags=list(self._config.tags),
                notes=f"Imported from {metadata.filename} via strata chart extraction",
                created_at=now,
                created_by=user.username if user else "system",
                strata_layers=strata_layers,
                strata_summary=strata_summary(strata_layers, total_depth),
                extraction_source=ExtractionSource(
                    filename=metadata.filename,
                    extraction_timestamp=metadata.extraction_timestamp.isoformat(),
                    total_depth=total_depth,
                    depth_unit="feet",
                    layer_count=len(layers),
                    extracted_layers=[
                        ExtractedLayerRecord(
                            material=layer.material,
                            start_depth=layer.start_depth,
                            end_depth=layer.end_depth,
                            confidence=layer.confidence,
                            source=layer.source.value,
                            user_edited=layer.user_edited,
                            original_color=layer.original_color,
                        )
                        for layer in layers
                    ],
                    confidence_score=score,
                ),
            ),
        )

    def _total_depth(self, draft: Draft, layers: Sequence[Layer]) -> float | None:
        total = draft.metadata.total_depth
        if total is not None:
            try:
                return normalize_depth(total, draft.metadata.depth_unit, self._config.max_depth)
            except ValueError:
                logger.warning("Ignoring invalid total depth %r in draft metadata", total)
        return layers[-1].end_depth if layers else None

    @staticmethod
    def _epoch_ms(iso_timestamp: str) -> int:
        return int(datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00")).timestamp() * 1000)

    # --- Write ---

    async def save(
        self,
        draft: Draft,
        layers: Sequence[Layer],
        processed: ProcessedExtractionResult | None = None,
        review_acknowledged: bool = False,
    ) -> PersistedRecord:
        """Gate, normalise, build, schema-check and write one record."""
        self.ensure_save_allowed(processed, review_acknowledged)
        downgraded = processed.confidence_downgraded if processed is not None else False
        normalized = self.normalize_layers(layers, draft.metadata.depth_unit, downgraded)
        record = self.build_record(draft, normalized, processed)
        payload = record.to_store()

        if self._schema_validator is not None:
            check = self._schema_validator.validate_record(payload)
            for warning in check.warnings:
                logger.warning("Schema warning for %s: %s", record.id, warning)
            if not check.valid:
                emit_structured_error(
                    logger,
                    code=ErrorCode.SCHEMA_VALIDATION_FAILED,
                    message="; ".join(check.errors),
                    suppressed=False,
                    details={"record_id": record.id},
                )
                raise SaveRejected(
                    "Record failed schema validation",
                    errors=check.errors,
                    semantic_errors=[
                        build_semantic_error(
                            ErrorKind.SCHEMA_VALIDATION_FAILED, "; ".join(check.errors)
                        )
                    ],
                )

        try:
            await self._storage.put(self._config.collection, payload)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.STORAGE_WRITE_FAILED,
                message=str(exc),
                suppressed=False,
                details={"record_id": record.id, "collection": self._config.collection},
            )
            self.notify(f"Failed to save extracted data: {exc}", "error")
            raise PersistenceError(f"Storage write failed: {exc}") from exc

        logger.info(
            "Saved %d layers as %s in %s", len(normalized), record.id, self._config.collection
        )
        self.notify("Extracted strata data saved successfully", "success")
        return record

    def notify(self, message: str, kind: ToastKind) -> None:
        """Show a toast; notifier failures are logged and never propagate."""
        try:
            self._notifier.show_toast(message, kind)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.NOTIFIER_FAILED,
                message=str(exc),
                suppressed=True,
                details={"toast_kind": kind},
            )
