"""Validation of a reviewed layer list before it may be saved."""

from __future__ import annotations

import math
from typing import Any, Sequence

from pydantic import BaseModel, Field

from strata.pipeline.layers import Layer


class EditValidation(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


def _finite(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def validate_user_edits(layers: Sequence[Layer]) -> EditValidation:
    """Check required fields, depth ordering, overlaps and gaps.

    Every overlapping pair is reported, not just the first. Gaps between
    adjacent layers are warnings only.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not layers:
        return EditValidation(valid=False, errors=["At least one layer is required"])

    ordered: list[tuple[int, Layer]] = []
    for i, layer in enumerate(layers):
        label = f"Layer {i + 1}"
        if not layer.material or not layer.material.strip():
            errors.append(f"{label}: material is required")
        if not _finite(layer.start_depth) or not _finite(layer.end_depth):
            errors.append(f"{label}: depths must be finite numbers")
            continue
        if layer.start_depth < 0:
            errors.append(f"{label}: start depth cannot be negative")
        if layer.start_depth >= layer.end_depth:
            errors.append(
                f"{label}: start depth ({layer.start_depth}) must be less than "
                f"end depth ({layer.end_depth})"
            )
            continue
        ordered.append((i, layer))

    for a in range(len(ordered)):
        for b in range(a + 1, len(ordered)):
            i, first = ordered[a]
            j, second = ordered[b]
            if first.overlaps(second):
                errors.append(
                    f"Layer {i + 1} ({first.start_depth}-{first.end_depth}) overlaps "
                    f"layer {j + 1} ({second.start_depth}-{second.end_depth})"
                )

    by_depth = sorted(ordered, key=lambda item: item[1].start_depth)
    for (i, upper), (j, lower) in zip(by_depth, by_depth[1:]):
        if lower.start_depth > upper.end_depth:
            warnings.append(
                f"Gap between layer {i + 1} and layer {j + 1}: "
                f"{upper.end_depth} to {lower.start_depth}"
            )

    return EditValidation(valid=not errors, errors=errors, warnings=warnings)
