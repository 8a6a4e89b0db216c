"""Record schema validator — structural checks on a store-shaped record dict.

Runs on the serialised record (camelCase keys) right before the storage
write, so it sees exactly what the store will see. Structure and types come
from the ``PersistedRecord`` models; this module adds the cross-field rules
those models do not express.
"""

from __future__ import annotations

import json
import re
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from strata.persistence.ports import SchemaCheck
from strata.persistence.records import ExtractionSource, PersistedRecord, StrataLayerRecord

_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _is_iso_timestamp(value: str) -> bool:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return "T" in value


def _path(loc: tuple[int | str, ...]) -> str:
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path


def structural_errors(exc: ValidationError) -> list[str]:
    """Flatten pydantic errors into ``path: message`` strings."""
    errors = []
    for error in exc.errors():
        path = _path(error["loc"])
        if error["type"] == "missing":
            errors.append(f"{path} is required")
        else:
            errors.append(f"{path}: {error['msg']}")
    return errors


class RecordSchemaValidator:
    """Default SchemaValidatorPort implementation."""

    def validate_record(self, record: dict[str, Any]) -> SchemaCheck:
        try:
            parsed = PersistedRecord.model_validate_json(json.dumps(record), strict=True)
        except ValidationError as exc:
            return SchemaCheck(valid=False, errors=structural_errors(exc))

        errors: list[str] = []
        warnings: list[str] = []
        metadata = parsed.metadata
        if not _DATE.match(metadata.date):
            errors.append("metadata.date must be in YYYY-MM-DD format")
        if not _is_iso_timestamp(metadata.created_at):
            errors.append("metadata.createdAt must be in ISO 8601 format")
        self._validate_layers(metadata.strata_layers, errors, warnings)
        if metadata.extraction_source is not None:
            self._validate_extraction_source(metadata.extraction_source, errors, warnings)

        return SchemaCheck(valid=not errors, errors=errors, warnings=warnings)

    def _validate_layers(
        self, layers: list[StrataLayerRecord], errors: list[str], warnings: list[str]
    ) -> None:
        valid: list[StrataLayerRecord] = []
        for index, layer in enumerate(layers):
            prefix = f"metadata.strataLayers[{index}]"
            if layer.thickness <= 0:
                errors.append(f"{prefix}.thickness must be positive")
            if layer.start_depth >= layer.end_depth:
                errors.append(f"{prefix}.startDepth must be less than endDepth")
                continue
            expected = round(layer.end_depth - layer.start_depth, 2)
            if abs(expected - layer.thickness) > 0.01:
                warnings.append(
                    f"{prefix}.thickness ({layer.thickness}) doesn't match "
                    f"calculated thickness ({expected})"
                )
            valid.append(layer)

        ordered = sorted(valid, key=lambda item: item.start_depth)
        for current, following in zip(ordered, ordered[1:]):
            if current.end_depth > following.start_depth:
                errors.append(
                    f"Layer overlap detected: layer ending at {current.end_depth} "
                    f"overlaps with layer starting at {following.start_depth}"
                )
            elif following.start_depth > current.end_depth:
                gap = following.start_depth - current.end_depth
                warnings.append(
                    f"Gap detected between layers: {gap:.2f} units between "
                    f"{current.end_depth} and {following.start_depth}"
                )

    def _validate_extraction_source(
        self, source: ExtractionSource, errors: list[str], warnings: list[str]
    ) -> None:
        prefix = "metadata.extractionSource"
        if not _is_iso_timestamp(source.extraction_timestamp):
            errors.append(f"{prefix}.extractionTimestamp must be in ISO 8601 format")
        if source.layer_count != len(source.extracted_layers):
            warnings.append(
                f"{prefix}.layerCount ({source.layer_count}) doesn't match "
                f"extractedLayers length ({len(source.extracted_layers)})"
            )
        for index, layer in enumerate(source.extracted_layers):
            if layer.start_depth >= layer.end_depth:
                errors.append(
                    f"{prefix}.extractedLayers[{index}]: start_depth must be less than end_depth"
                )
