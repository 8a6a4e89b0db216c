"""Layer and draft data models shared by extraction, review and persistence."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from strata.pipeline.depth import DepthUnit


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LayerSource(str, Enum):
    """Provenance of a layer's material identification."""

    TEXT = "text"
    COLOR = "color"
    EXCEL_IMPORT = "excel-import"
    PDF_IMPORT = "pdf-import"


class Layer(BaseModel):
    """One subsurface layer spanning ``[start_depth, end_depth)``.

    Depths are in the owning draft's ``depth_unit`` until the layer is
    committed, at which point they are converted to feet.
    """

    material: str = ""
    start_depth: float
    end_depth: float
    confidence: Confidence = Confidence.MEDIUM
    source: LayerSource = LayerSource.TEXT
    user_edited: bool = False
    original_color: str | None = None

    @property
    def thickness(self) -> float:
        return self.end_depth - self.start_depth

    def overlaps(self, other: Layer) -> bool:
        return not (self.end_depth <= other.start_depth or other.end_depth <= self.start_depth)


class DraftMetadata(BaseModel):
    filename: str
    project: str | None = None
    bore_id: str | None = None
    depth_unit: DepthUnit = "feet"
    total_depth: float | None = None
    depth_resolution: float | None = None
    sheet_name: str | None = None
    extraction_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Draft(BaseModel):
    """A provisional layer set awaiting human review."""

    layers: list[Layer] = Field(default_factory=list)
    metadata: DraftMetadata
    warnings: list[str] = Field(default_factory=list)
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)
