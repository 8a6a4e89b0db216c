"""Shared fakes and fixtures for the strata test suite."""

from __future__ import annotations

from typing import Any

import pytest

from strata.pipeline.grid import Grid
from strata.pipeline.layers import Confidence, Draft, DraftMetadata, Layer, LayerSource
from strata.persistence.adapter import PersistenceAdapter
from strata.persistence.ports import SchemaCheck, User
from strata.persistence.schema import RecordSchemaValidator
from strata.review.session import ReviewEditModel
from strata.signals.emitter import SignalEmitter


class InMemoryStorage:
    def __init__(self) -> None:
        self.writes: list[tuple[str, dict[str, Any]]] = []

    async def put(self, collection: str, record: dict[str, Any]) -> None:
        self.writes.append((collection, record))


class FailingStorage:
    def __init__(self) -> None:
        self.attempts = 0

    async def put(self, collection: str, record: dict[str, Any]) -> None:
        self.attempts += 1
        raise ConnectionError("store unavailable")


class FixedClock:
    def __init__(self, now: str = "2024-03-15T10:30:00.000Z") -> None:
        self.now = now

    def now_iso(self) -> str:
        return self.now


class SequentialIds:
    def __init__(self) -> None:
        self.count = 0

    def uid(self, prefix: str = "") -> str:
        self.count += 1
        return f"{prefix}_{self.count:04d}"


class StaticIdentity:
    def __init__(self, username: str | None = "geologist") -> None:
        self.username = username

    def get_current_user(self) -> User | None:
        return User(username=self.username) if self.username else None


class RecordingNotifier:
    def __init__(self) -> None:
        self.toasts: list[tuple[str, str]] = []

    def show_toast(self, message: str, kind: str = "info") -> None:
        self.toasts.append((message, kind))


class RejectingValidator:
    def validate_record(self, record: dict[str, Any]) -> SchemaCheck:
        return SchemaCheck(valid=False, errors=["metadata.boreId is required"])


def _layer(
    material: str,
    start: float,
    end: float,
    confidence: Confidence = Confidence.HIGH,
    source: LayerSource = LayerSource.TEXT,
    **kwargs: Any,
) -> Layer:
    return Layer(
        material=material,
        start_depth=start,
        end_depth=end,
        confidence=confidence,
        source=source,
        **kwargs,
    )


def _draft(layers: list[Layer] | None = None, **metadata: Any) -> Draft:
    if layers is None:
        layers = [
            _layer("Clay", 0, 5),
            _layer("Sand", 5, 10),
            _layer("Gravel", 10, 15),
        ]
    fields = {"filename": "bore_01.xlsx", "project": "site-a", "bore_id": "BH-01"}
    fields.update(metadata)
    return Draft(
        layers=layers,
        metadata=DraftMetadata(**fields),
        confidence_score=1.0,
    )


@pytest.fixture
def make_layer():
    return _layer


@pytest.fixture
def make_draft():
    return _draft


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def failing_storage():
    return FailingStorage()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def rejecting_validator():
    return RejectingValidator()


@pytest.fixture
def make_adapter(storage, notifier):
    """Build an adapter over in-memory ports; keyword arguments replace a port."""

    def build(**overrides: Any) -> PersistenceAdapter:
        fields: dict[str, Any] = {
            "storage": storage,
            "identity": StaticIdentity(),
            "clock": FixedClock(),
            "id_generator": SequentialIds(),
            "notifier": notifier,
            "schema_validator": RecordSchemaValidator(),
        }
        fields.update(overrides)
        return PersistenceAdapter(**fields)

    return build


@pytest.fixture
def adapter(make_adapter):
    return make_adapter()


@pytest.fixture
def model(adapter):
    return ReviewEditModel(adapter, signals=SignalEmitter("test_session"))


@pytest.fixture
def draft():
    return _draft()


@pytest.fixture
def borehole_grid():
    return Grid.from_values(
        [
            ["Depth (ft)", "Material"],
            [0, "Clay"],
            [5, "Sand"],
            [10, "Gravel"],
        ]
    )
