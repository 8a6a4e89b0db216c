"""Tabular field detector — locates the depth and material columns of a grid.

Detection runs in two passes per field:
1. Header pass — scan the first rows for a cell matching one of the field's
   header patterns (first match wins, row-major then column-major).
2. Fallback pass — infer the column from the shape of its data.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable

from pydantic import BaseModel

from strata.config.settings import DetectionConfig
from strata.pipeline.depth import DepthUnit, is_numeric, parse_depth_value, unit_from_header
from strata.pipeline.grid import Grid

logger = logging.getLogger(__name__)


class ColumnMatch(BaseModel):
    """Location of a detected column."""

    index: int
    header: str
    header_row: int
    inferred: bool = False

    model_config = {"frozen": True}


class ColumnDetection(BaseModel):
    depth: ColumnMatch | None = None
    material: ColumnMatch | None = None
    depth_unit: DepthUnit = "feet"

    @property
    def data_start_row(self) -> int:
        rows = [m.header_row for m in (self.depth, self.material) if m is not None]
        return max(rows, default=-1) + 1


@dataclass(frozen=True)
class FieldStrategy:
    """How to find one target column: header patterns, then a data fallback."""

    name: str
    patterns: list[re.Pattern[str]]
    fallback: Callable[[Grid, int, DetectionConfig], bool]
    inferred_header: str


def _sample(grid: Grid, column: int, config: DetectionConfig) -> list[object]:
    last = min(config.fallback_sample_rows, grid.row_count - 1)
    return [grid.cell(r, column).value for r in range(1, last + 1)]


def looks_like_depth(grid: Grid, column: int, config: DetectionConfig) -> bool:
    """True when the column's sampled numbers increase often enough to be depths."""
    values = []
    for value in _sample(grid, column, config):
        depth, _ = parse_depth_value(value)
        if depth is not None:
            values.append(depth)
    if len(values) < config.min_samples:
        return False
    increasing = sum(1 for a, b in zip(values, values[1:]) if b > a)
    return increasing / (len(values) - 1) >= config.depth_increasing_ratio


def looks_like_material(grid: Grid, column: int, config: DetectionConfig) -> bool:
    """True when enough sampled values are non-numeric text."""
    samples = [v for v in _sample(grid, column, config) if v is not None and str(v).strip()]
    if len(samples) < config.min_samples:
        return False
    text = sum(1 for v in samples if not is_numeric(v))
    return text / len(samples) >= config.material_text_ratio


def _looks_like_header_row(grid: Grid, row: int) -> bool:
    """A row of labels: something non-blank and nothing numeric."""
    cells = grid.rows[row] if row < grid.row_count else []
    filled = [cell for cell in cells if not cell.is_blank]
    return bool(filled) and not any(is_numeric(cell.value) for cell in filled)


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


class TabularFieldDetector:
    """Finds depth and material columns using an ordered strategy table."""

    def __init__(
        self,
        config: DetectionConfig | None = None,
        patterns: dict[str, list[str]] | None = None,
    ) -> None:
        self._config = config or DetectionConfig()
        patterns = patterns or {}
        self._strategies = {
            "depth": FieldStrategy(
                name="depth",
                patterns=_compile(patterns.get("depth", self._config.depth_patterns)),
                fallback=looks_like_depth,
                inferred_header="Depth (inferred)",
            ),
            "material": FieldStrategy(
                name="material",
                patterns=_compile(patterns.get("material", self._config.material_patterns)),
                fallback=looks_like_material,
                inferred_header="Material (inferred)",
            ),
        }

    def detect_columns(self, grid: Grid) -> ColumnDetection:
        depth = self._match_header(grid, self._strategies["depth"])
        material = self._match_header(grid, self._strategies["material"], exclude=depth)
        if depth is None:
            depth = self._match_fallback(grid, self._strategies["depth"], exclude=material)
        if material is None:
            material = self._match_fallback(grid, self._strategies["material"], exclude=depth)

        unit = unit_from_header(depth.header) if depth and not depth.inferred else "feet"
        logger.debug("Detected columns depth=%s material=%s unit=%s", depth, material, unit)
        return ColumnDetection(depth=depth, material=material, depth_unit=unit)

    def _match_header(
        self, grid: Grid, strategy: FieldStrategy, exclude: ColumnMatch | None = None
    ) -> ColumnMatch | None:
        last_row = min(self._config.header_scan_rows, grid.row_count - 1)
        for r in range(0, last_row + 1):
            for c, cell in enumerate(grid.rows[r]):
                if exclude is not None and c == exclude.index:
                    continue
                text = cell.text
                if not text:
                    continue
                if any(p.search(text) for p in strategy.patterns):
                    return ColumnMatch(index=c, header=text, header_row=r)
        return None

    def _match_fallback(
        self, grid: Grid, strategy: FieldStrategy, exclude: ColumnMatch | None = None
    ) -> ColumnMatch | None:
        for c in range(grid.column_count):
            if exclude is not None and c == exclude.index:
                continue
            if strategy.fallback(grid, c, self._config):
                header_row = 0 if _looks_like_header_row(grid, 0) else -1
                return ColumnMatch(
                    index=c,
                    header=strategy.inferred_header,
                    header_row=header_row,
                    inferred=True,
                )
        return None


def detect_columns(grid: Grid, config: DetectionConfig | None = None) -> ColumnDetection:
    """Convenience wrapper around TabularFieldDetector.detect_columns."""
    return TabularFieldDetector(config).detect_columns(grid)
