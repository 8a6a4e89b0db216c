"""Stored record models — the canonical shape shared with manually entered data.

Field names follow the store's camelCase convention via aliases; dump with
``by_alias=True``. ``RecordMetadata`` forbids unknown keys so an extraction can
never smuggle extra fields into the canonical metadata.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from strata.pipeline.layers import Confidence

_STORE_CONFIG = {"extra": "forbid", "populate_by_name": True}

CORE_METADATA_KEYS = frozenset(
    {"boreId", "date", "waterLevel", "coordinates", "tags", "notes", "createdAt", "createdBy"}
)
EXTRACTION_METADATA_KEYS = frozenset({"strataLayers", "strataSummary", "extractionSource"})


class Coordinates(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class StrataLayerRecord(BaseModel):
    """A committed layer, depths in feet."""

    type: str
    thickness: float
    start_depth: float = Field(alias="startDepth")
    end_depth: float = Field(alias="endDepth")
    confidence: Confidence
    source: Literal["extraction", "manual", "import"] = "extraction"
    user_edited: bool = Field(default=False, alias="userEdited")

    model_config = _STORE_CONFIG


class ExtractedLayerRecord(BaseModel):
    """Traceability copy of a layer as it left review."""

    material: str
    start_depth: float
    end_depth: float
    confidence: Confidence
    source: str
    user_edited: bool = False
    original_color: str | None = None

    model_config = {"extra": "forbid"}


class ExtractionSource(BaseModel):
    filename: str
    extraction_timestamp: str = Field(alias="extractionTimestamp")
    total_depth: float | None = Field(default=None, alias="totalDepth")
    depth_unit: str = Field(default="feet", alias="depthUnit")
    layer_count: int = Field(alias="layerCount")
    extracted_layers: list[ExtractedLayerRecord] = Field(alias="extractedLayers")
    confidence_score: float | None = Field(default=None, alias="confidenceScore")

    model_config = _STORE_CONFIG


class RecordMetadata(BaseModel):
    bore_id: str = Field(alias="boreId")
    date: str
    water_level: float | None = Field(default=None, alias="waterLevel")
    coordinates: Coordinates | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str = ""
    created_at: str = Field(alias="createdAt")
    created_by: str = Field(alias="createdBy")
    strata_layers: list[StrataLayerRecord] = Field(default_factory=list, alias="strataLayers")
    strata_summary: str = Field(default="", alias="strataSummary")
    extraction_source: ExtractionSource | None = Field(default=None, alias="extractionSource")

    model_config = _STORE_CONFIG


class PersistedRecord(BaseModel):
    id: str
    project: str
    filename: str
    files: list[dict[str, Any]] = Field(default_factory=list)
    metadata: RecordMetadata

    model_config = _STORE_CONFIG

    def to_store(self) -> dict[str, Any]:
        """Serialise to the JSON-compatible dict handed to the storage port."""
        return self.model_dump(mode="json", by_alias=True)
