"""Tests for the review session signal emitter."""

import pytest

from strata.signals.emitter import SignalEmitter
from strata.signals.types import SignalType


@pytest.fixture
def tmp_ledger(tmp_path):
    return tmp_path / "review_session" / "signals.jsonl"


@pytest.fixture
def emitter(tmp_ledger):
    return SignalEmitter(session_id="review_001", ledger_path=tmp_ledger)


class TestSignalEmitter:
    """Test signal emission, persistence, and broadcasting."""

    def test_emit_creates_signal(self, emitter):
        signal = emitter.emit(SignalType.DRAFT_OPENED, {"filename": "bore.xlsx"})
        assert signal.sequence == 1
        assert signal.signal_type == SignalType.DRAFT_OPENED
        assert signal.session_id == "review_001"
        assert signal.payload["filename"] == "bore.xlsx"

    def test_monotonic_sequence(self, emitter):
        s1 = emitter.emit(SignalType.DRAFT_OPENED)
        s2 = emitter.emit(SignalType.LAYERS_CHANGED)
        s3 = emitter.emit(SignalType.DRAFT_SAVED)
        assert [s1.sequence, s2.sequence, s3.sequence] == [1, 2, 3]

    def test_signals_are_immutable(self, emitter):
        signal = emitter.emit(SignalType.LAYERS_CHANGED, {"operation": "merge_layers"})
        with pytest.raises(Exception):
            signal.payload = {"modified": True}

    def test_ledger_created_and_appended(self, emitter, tmp_ledger):
        emitter.emit(SignalType.DRAFT_OPENED)
        emitter.emit(SignalType.DRAFT_CANCELLED)

        assert tmp_ledger.exists()
        lines = tmp_ledger.read_text().strip().split("\n")
        assert len(lines) == 2

    def test_load_ledger(self, emitter, tmp_ledger):
        emitter.emit(SignalType.DRAFT_OPENED, {"layer_count": 3})
        emitter.emit(SignalType.DRAFT_SAVED, {"record_id": "f_0001"})

        loaded = SignalEmitter.load_ledger(tmp_ledger)
        assert [s.signal_type for s in loaded] == [SignalType.DRAFT_OPENED, SignalType.DRAFT_SAVED]
        assert loaded[1].payload["record_id"] == "f_0001"

    def test_load_missing_ledger(self, tmp_path):
        assert SignalEmitter.load_ledger(tmp_path / "absent.jsonl") == []

    def test_no_ledger_keeps_signals_in_memory(self):
        emitter = SignalEmitter("memory_only")
        emitter.emit(SignalType.DRAFT_OPENED)
        assert len(emitter.signals) == 1

    def test_subscriber_receives_signals(self, emitter):
        received = []
        emitter.subscribe(received.append)
        emitter.emit(SignalType.DRAFT_OPENED)
        emitter.emit(SignalType.LAYERS_CHANGED)
        assert [s.sequence for s in received] == [1, 2]

    def test_unsubscribe(self, emitter):
        received = []

        def on_signal(signal):
            received.append(signal)

        emitter.subscribe(on_signal)
        emitter.emit(SignalType.DRAFT_OPENED)
        emitter.unsubscribe(on_signal)
        emitter.emit(SignalType.LAYERS_CHANGED)

        assert len(received) == 1

    def test_subscriber_error_does_not_break_emission(self, emitter, caplog):
        def bad_subscriber(signal):
            raise RuntimeError("Subscriber failure")

        received = []
        emitter.subscribe(bad_subscriber)
        emitter.subscribe(received.append)

        signal = emitter.emit(SignalType.DRAFT_OPENED)
        assert signal.sequence == 1
        assert len(received) == 1
        assert any(
            getattr(r, "error_code", None) == "SIGNAL_SUBSCRIBER_FAILURE" for r in caplog.records
        )

    def test_signals_property_returns_copy(self, emitter):
        emitter.emit(SignalType.DRAFT_OPENED)
        signals = emitter.signals
        signals.clear()
        assert len(emitter.signals) == 1

    def test_emit_phase_transition_convenience(self, emitter):
        signal = emitter.emit_phase_transition("DISPLAYING", "EDITING", {"reason": "edit"})
        assert signal.signal_type == SignalType.PHASE_TRANSITION
        assert signal.payload == {
            "from_phase": "DISPLAYING",
            "to_phase": "EDITING",
            "reason": "edit",
        }

    def test_emit_save_rejected_convenience(self, emitter):
        signal = emitter.emit_save_rejected(
            "Layer validation failed", ["Layer 1: material is required"]
        )
        assert signal.signal_type == SignalType.SAVE_REJECTED
        assert signal.payload["errors"] == ["Layer 1: material is required"]
        assert emitter.emit_save_rejected("storage").payload["errors"] == []

    def test_of_type_filters_history(self, emitter):
        emitter.emit(SignalType.DRAFT_OPENED)
        emitter.emit(SignalType.LAYERS_CHANGED, {"operation": "delete_layer"})
        emitter.emit(SignalType.LAYERS_CHANGED, {"operation": "merge_layers"})
        changed = emitter.of_type(SignalType.LAYERS_CHANGED)
        assert [s.payload["operation"] for s in changed] == ["delete_layer", "merge_layers"]
