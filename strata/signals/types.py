"""Signal type definitions for review session observability."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SignalType(str, Enum):
    """All signal types emitted by a review session."""

    PHASE_TRANSITION = "PHASE_TRANSITION"
    DRAFT_OPENED = "DRAFT_OPENED"
    LAYERS_CHANGED = "LAYERS_CHANGED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    SAVE_REJECTED = "SAVE_REJECTED"
    DRAFT_SAVED = "DRAFT_SAVED"
    DRAFT_CANCELLED = "DRAFT_CANCELLED"


class Signal(BaseModel):
    """An immutable signal emitted during a review session.

    Signals are append-only and cannot be modified after emission.
    """

    sequence: int = Field(description="Monotonic sequence number within the session")
    signal_type: SignalType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    session_id: str
    payload: dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True}
