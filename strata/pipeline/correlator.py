"""Depth/material correlator — pairs each depth with its material identifier.

Material priority: trimmed non-blank text always wins, even when the cell also
has a background colour. Only rows without text fall back to ``color:<value>``.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

from strata.pipeline.depth import DepthUnit, parse_depth_value

logger = logging.getLogger(__name__)

MaterialSource = Literal["text", "color"]


class CorrelatedEntry(BaseModel):
    index: int
    depth: float
    material: str | None
    original_text: str | None
    original_color: str | None
    source: MaterialSource | None
    unit_suffix: DepthUnit | None = None

    model_config = {"frozen": True}


class CorrelationStats(BaseModel):
    total_rows: int = 0
    valid_entries: int = 0
    text_based: int = 0
    color_based: int = 0
    no_material: int = 0


class Correlation(BaseModel):
    entries: list[CorrelatedEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    invalid_rows: list[int] = Field(default_factory=list)
    stats: CorrelationStats = Field(default_factory=CorrelationStats)


def resolve_material(text: Any, color: str | None) -> tuple[str | None, MaterialSource | None]:
    """Apply the material-priority rule to one row."""
    trimmed = str(text).strip() if text is not None else ""
    if trimmed:
        return trimmed, "text"
    if color:
        return f"color:{color}", "color"
    return None, None


def _is_blank_row(depth: Any, material: Any, color: str | None) -> bool:
    def blank(value: Any) -> bool:
        return value is None or str(value).strip() == ""

    return blank(depth) and blank(material) and not color


def correlate(
    depths: list[Any],
    materials: list[Any],
    colors: list[str | None] | None = None,
    row_offset: int = 0,
) -> Correlation:
    """Walk parallel depth/material/colour arrays and build ordered entries.

    Fully blank rows (no depth, no text, no colour) are skipped without a
    warning. ``row_offset`` shifts the row numbers used in warnings so they
    match the source sheet.
    """
    if len(depths) != len(materials):
        raise ValueError(
            f"depths and materials must be the same length ({len(depths)} != {len(materials)})"
        )
    if colors is not None and len(colors) != len(depths):
        raise ValueError(
            f"colors must be the same length as depths ({len(colors)} != {len(depths)})"
        )

    result = Correlation()
    result.stats.total_rows = len(depths)

    for i, raw_depth in enumerate(depths):
        depth, suffix = parse_depth_value(raw_depth)
        color = colors[i] if colors is not None else None
        if depth is None and _is_blank_row(raw_depth, materials[i], color):
            continue
        if depth is None:
            result.warnings.append(f"Row {i + 1 + row_offset}: Invalid depth value")
            result.invalid_rows.append(i)
            continue

        material, source = resolve_material(materials[i], color)
        if source == "text":
            result.stats.text_based += 1
        elif source == "color":
            result.stats.color_based += 1
        else:
            result.stats.no_material += 1

        raw_text = materials[i]
        result.entries.append(
            CorrelatedEntry(
                index=i,
                depth=depth,
                material=material,
                original_text=str(raw_text) if raw_text is not None else None,
                original_color=color,
                source=source,
                unit_suffix=suffix,
            )
        )

    result.stats.valid_entries = len(result.entries)
    if result.warnings:
        logger.info("Dropped %d rows with invalid depth values", len(result.warnings))
    return result
