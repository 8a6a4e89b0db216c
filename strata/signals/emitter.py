"""Signal emitter for review sessions.

Review edits are synchronous, so emission is too: every signal is sequenced,
appended to the optional JSONL ledger and handed to subscribers before
``emit`` returns.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from strata.signals.types import Signal, SignalType
from strata.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

Subscriber = Callable[[Signal], Any]


class SignalEmitter:
    """Sequenced, append-only record of what happened in one review session.

    A session's ledger can be replayed with ``load_ledger`` to reconstruct
    every phase change and edit in order.
    """

    def __init__(self, session_id: str, ledger_path: Path | None = None) -> None:
        self._session_id = session_id
        self._ledger_path = ledger_path
        self._sequence = 0
        self._history: list[Signal] = []
        self._subscribers: list[Subscriber] = []

        if ledger_path is not None:
            ledger_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def signals(self) -> list[Signal]:
        """Every signal emitted so far, oldest first (a copy)."""
        return list(self._history)

    def of_type(self, signal_type: SignalType) -> list[Signal]:
        return [s for s in self._history if s.signal_type == signal_type]

    def subscribe(self, callback: Subscriber) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        self._subscribers = [s for s in self._subscribers if s is not callback]

    def emit(self, signal_type: SignalType, payload: dict[str, Any] | None = None) -> Signal:
        """Create, record and deliver one signal."""
        self._sequence += 1
        signal = Signal(
            sequence=self._sequence,
            signal_type=signal_type,
            timestamp=datetime.now(timezone.utc),
            session_id=self._session_id,
            payload=payload or {},
        )
        self._history.append(signal)
        if self._ledger_path is not None:
            with open(self._ledger_path, "a") as ledger:
                ledger.write(signal.model_dump_json() + "\n")
        self._deliver(signal)
        return signal

    def _deliver(self, signal: Signal) -> None:
        for subscriber in list(self._subscribers):
            try:
                subscriber(signal)
            except Exception as exc:
                emit_structured_error(
                    logger,
                    code=ErrorCode.SIGNAL_SUBSCRIBER_FAILURE,
                    message=str(exc),
                    suppressed=True,
                    session_id=self._session_id,
                    details={
                        "signal_type": signal.signal_type.value,
                        "sequence": signal.sequence,
                    },
                )

    def emit_phase_transition(
        self, from_phase: str, to_phase: str, context: dict[str, Any] | None = None
    ) -> Signal:
        return self.emit(
            SignalType.PHASE_TRANSITION,
            {"from_phase": from_phase, "to_phase": to_phase, **(context or {})},
        )

    def emit_save_rejected(self, reason: str, errors: list[str] | None = None) -> Signal:
        return self.emit(SignalType.SAVE_REJECTED, {"reason": reason, "errors": errors or []})

    @staticmethod
    def load_ledger(ledger_path: Path) -> list[Signal]:
        """Read a session ledger back; a missing file is an empty session."""
        if not ledger_path.exists():
            return []
        with open(ledger_path) as ledger:
            return [Signal.model_validate_json(line) for line in ledger if line.strip()]
