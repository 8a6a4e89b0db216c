"""Strata extraction configuration settings."""

from __future__ import annotations

import os
import re

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_DEPTH_PATTERNS: list[str] = [
    r"^depth$",
    r"^depth\s*\((ft|m|feet|meters?|metres?)\)$",
    r"^depth\s*(ft|m|feet|meters?|metres?)$",
    r"^elevation$",
    r"^elev\.?$",
    r"^from$",
    r"^top$",
    r"^start\s*depth$",
]

DEFAULT_MATERIAL_PATTERNS: list[str] = [
    r"^strata$",
    r"^material$",
    r"^soil\s*type$",
    r"^soil$",
    r"^lithology$",
    r"^description$",
    r"^layer$",
    r"^formation$",
    r"^geology$",
    r"^rock\s*type$",
    r"^unit$",
]


def _float_env(var_name: str, default: str) -> float:
    return float(os.getenv(var_name, default))


class DetectionConfig(BaseModel):
    """Column detection heuristics."""

    header_scan_rows: int = 5
    fallback_sample_rows: int = 10
    depth_increasing_ratio: float = Field(default=0.7, ge=0.0, le=1.0)
    material_text_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    min_samples: int = 3
    depth_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_DEPTH_PATTERNS))
    material_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_MATERIAL_PATTERNS))

    @field_validator("depth_patterns", "material_patterns")
    @classmethod
    def _validate_patterns(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("pattern list cannot be empty")
        for pattern in value:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid header pattern {pattern!r}: {exc}") from exc
        return value

    @field_validator("header_scan_rows", "fallback_sample_rows", "min_samples")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("row and sample counts must be >= 1")
        return value


class ExtractionConfig(BaseModel):
    """Layer assembly and overall confidence scoring."""

    model_config = {"validate_default": True}

    confidence_threshold: float = Field(
        default_factory=lambda: _float_env("STRATA_CONFIDENCE_THRESHOLD", "0.7"),
        ge=0.0,
        le=1.0,
    )
    default_terminal_thickness: float = Field(default=3.0, gt=0.0)
    confidence_weights: dict[str, float] = Field(
        default_factory=lambda: {"high": 1.0, "medium": 0.6, "low": 0.2}
    )


class ClassifierConfig(BaseModel):
    """Semantic error classification penalties."""

    recoverable_penalty: float = Field(default=0.2, ge=0.0, le=1.0)
    min_penalty: float = Field(default=0.1, ge=0.0, le=1.0)


class FallbackConfig(BaseModel):
    """Confidence thresholds that pick a recovery path for an unclean extraction."""

    partial_extraction_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    min_confidence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    enable_guided_correction: bool = True

    @model_validator(mode="after")
    def _validate_order(self) -> FallbackConfig:
        if self.min_confidence_threshold > self.partial_extraction_threshold:
            raise ValueError(
                "min_confidence_threshold cannot exceed partial_extraction_threshold"
            )
        return self


class PersistenceConfig(BaseModel):
    """Record construction and storage target."""

    model_config = {"validate_default": True}

    collection: str = Field(default_factory=lambda: os.getenv("STRATA_STORE_COLLECTION", "files"))
    default_project: str = Field(
        default_factory=lambda: os.getenv("STRATA_DEFAULT_PROJECT", "imported-data")
    )
    tags: list[str] = Field(default_factory=lambda: ["strata-extraction", "imported"])
    max_depth: float = Field(default=10000.0, gt=0.0)
    material_max_length: int = 100

    @field_validator("collection")
    @classmethod
    def _validate_collection(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("STRATA_STORE_COLLECTION cannot be empty")
        return value


class StrataConfig(BaseModel):
    """Root configuration for the extraction and review core."""

    model_config = {"validate_default": True}

    detection: DetectionConfig = Field(default_factory=DetectionConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    classifier: ClassifierConfig = Field(default_factory=ClassifierConfig)
    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("STRATA_LOG_LEVEL", "INFO"))

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level
