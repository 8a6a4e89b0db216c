"""Tests for fallback strategy selection and correction guidance."""

import pytest
from pydantic import ValidationError

from strata.classifier.engine import SemanticErrorClassifier
from strata.classifier.fallback import (
    CorrectionGuidance,
    FallbackKind,
    FallbackManager,
    prioritize_corrections,
)
from strata.classifier.taxonomy import ErrorKind, RawIssue
from strata.config.settings import FallbackConfig
from strata.pipeline.layers import Confidence


def _processed(*kinds, confidence=None):
    issues = [RawIssue(message=kind.value, kind=kind) for kind in kinds]
    return SemanticErrorClassifier().classify_all(issues, confidence=confidence)


@pytest.fixture
def manager():
    return FallbackManager()


class TestDetermineStrategy:
    def test_fatal_has_no_recovery(self, manager):
        strategy = manager.determine_strategy(
            _processed(ErrorKind.DEPTH_DETECTION_FAILED), layer_count=0, confidence=0.9
        )
        assert strategy.kind is None
        assert not strategy.can_recover
        assert strategy.estimated_effort == "none"
        assert strategy.actions == []
        assert strategy.manual_entry_available

    def test_unsupported_format_offers_no_manual_entry(self, manager):
        strategy = manager.determine_strategy(
            _processed(ErrorKind.UNSUPPORTED_FORMAT), layer_count=0
        )
        assert not strategy.manual_entry_available

    def test_partial_extraction(self, manager):
        strategy = manager.determine_strategy(
            _processed(ErrorKind.PARSING_ERROR), layer_count=3, confidence=0.9
        )
        assert strategy.kind is FallbackKind.PARTIAL_EXTRACTION
        assert strategy.can_recover
        assert strategy.estimated_effort == "low"
        assert strategy.user_guidance.startswith("3 layers were extracted with 90.0% confidence")

    def test_guided_correction(self, manager):
        strategy = manager.determine_strategy(
            _processed(ErrorKind.CONFIDENCE_TOO_LOW), layer_count=3, confidence=0.4
        )
        assert strategy.kind is FallbackKind.GUIDED_CORRECTION
        assert strategy.estimated_effort == "medium"
        assert "40.0%" in strategy.user_guidance

    def test_guided_correction_disabled_falls_to_manual_entry(self):
        manager = FallbackManager(FallbackConfig(enable_guided_correction=False))
        strategy = manager.determine_strategy(
            _processed(ErrorKind.CONFIDENCE_TOO_LOW), layer_count=3, confidence=0.4
        )
        assert strategy.kind is FallbackKind.MANUAL_ENTRY

    @pytest.mark.parametrize("layer_count,confidence", [(0, 0.9), (3, 0.2)])
    def test_manual_entry(self, manager, layer_count, confidence):
        strategy = manager.determine_strategy(
            _processed(ErrorKind.MATERIAL_IDENTIFICATION_FAILED),
            layer_count=layer_count,
            confidence=confidence,
        )
        assert strategy.kind is FallbackKind.MANUAL_ENTRY
        assert strategy.can_recover
        assert strategy.estimated_effort == "high"

    def test_defaults_to_processed_score(self, manager):
        # 0.8 - 2 * 0.2 penalty = 0.4
        processed = _processed(
            ErrorKind.PARSING_ERROR, ErrorKind.VALIDATION_ERROR, confidence=0.8
        )
        strategy = manager.determine_strategy(processed, layer_count=4)
        assert strategy.kind is FallbackKind.GUIDED_CORRECTION

    def test_thresholds_must_be_ordered(self):
        with pytest.raises(ValidationError):
            FallbackConfig(min_confidence_threshold=0.6, partial_extraction_threshold=0.5)


class TestCorrectionGuidance:
    def test_guidance_is_prioritised_and_located(self, manager, make_layer):
        layers = [
            make_layer("", 0, 5, confidence=Confidence.LOW),
            make_layer("Sand", 5, 10),
            make_layer("", 10, 15, confidence=Confidence.LOW),
        ]
        processed = _processed(
            ErrorKind.METADATA_INCOMPLETE,
            ErrorKind.MATERIAL_IDENTIFICATION_FAILED,
            ErrorKind.CONFIDENCE_TOO_LOW,
        )
        guidance = manager.correction_guidance(processed, layers)

        assert [g.kind for g in guidance] == [
            ErrorKind.MATERIAL_IDENTIFICATION_FAILED,
            ErrorKind.CONFIDENCE_TOO_LOW,
            ErrorKind.METADATA_INCOMPLETE,
        ]
        assert [g.priority for g in guidance] == ["medium", "medium", "low"]
        assert guidance[0].affected_layers == [0, 2]
        assert guidance[0].suggested_action == (
            "Review extracted layers and add missing material names"
        )
        assert guidance[2].suggested_action == "Review and correct the highlighted issue"
        assert guidance[2].affected_layers == []

    def test_overlapping_layers_located(self, manager, make_layer):
        layers = [make_layer("Clay", 0, 10), make_layer("Sand", 5, 12), make_layer("Silt", 12, 15)]
        guidance = manager.correction_guidance(_processed(ErrorKind.VALIDATION_ERROR), layers)
        assert guidance[0].affected_layers == [0, 1]

    def test_clean_result_needs_no_corrections(self, manager, make_layer):
        assert manager.correction_guidance(_processed(), [make_layer("Clay", 0, 5)]) == []


def test_prioritize_corrections():
    def guidance(priority, affected):
        return CorrectionGuidance(
            kind=ErrorKind.PARSING_ERROR,
            message=f"{priority}-{len(affected)}",
            priority=priority,
            suggested_action="fix",
            affected_layers=affected,
        )

    ordered = prioritize_corrections(
        [
            guidance("low", [0, 1, 2]),
            guidance("medium", [0]),
            guidance("high", []),
            guidance("medium", [0, 1]),
        ]
    )
    assert [g.message for g in ordered] == ["high-0", "medium-2", "medium-1", "low-3"]
