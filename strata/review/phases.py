"""Review phase definitions — the states a draft moves through before it is saved."""

from __future__ import annotations

from enum import Enum


class ReviewPhase(str, Enum):
    """All valid review phases. A review session is a finite state machine
    that owns at most one draft at a time."""

    IDLE = "IDLE"
    DISPLAYING = "DISPLAYING"
    EDITING = "EDITING"
    VALIDATING = "VALIDATING"
    REJECTED = "REJECTED"
    SAVED = "SAVED"
    CANCELLED = "CANCELLED"


# Valid phase transitions. Each key maps to a set of phases it can transition to.
VALID_TRANSITIONS: dict[ReviewPhase, set[ReviewPhase]] = {
    ReviewPhase.IDLE: {ReviewPhase.DISPLAYING},
    ReviewPhase.DISPLAYING: {ReviewPhase.EDITING, ReviewPhase.VALIDATING, ReviewPhase.CANCELLED},
    ReviewPhase.EDITING: {ReviewPhase.EDITING, ReviewPhase.VALIDATING, ReviewPhase.CANCELLED},
    ReviewPhase.VALIDATING: {ReviewPhase.SAVED, ReviewPhase.REJECTED},
    ReviewPhase.REJECTED: {ReviewPhase.EDITING, ReviewPhase.VALIDATING, ReviewPhase.CANCELLED},
    ReviewPhase.SAVED: {ReviewPhase.DISPLAYING},
    ReviewPhase.CANCELLED: {ReviewPhase.DISPLAYING},
}

# Phases in which no draft is open and a new one may be opened.
TERMINAL_PHASES = {ReviewPhase.SAVED, ReviewPhase.CANCELLED}
OPENABLE_PHASES = {ReviewPhase.IDLE, *TERMINAL_PHASES}

# Phases in which the working layer list may be edited.
EDITABLE_PHASES = {ReviewPhase.DISPLAYING, ReviewPhase.EDITING, ReviewPhase.REJECTED}
