"""Tests for review phase definitions and transition rules."""

from strata.review.phases import (
    EDITABLE_PHASES,
    OPENABLE_PHASES,
    TERMINAL_PHASES,
    VALID_TRANSITIONS,
    ReviewPhase,
)


class TestPhaseDefinitions:
    def test_all_phases_exist(self):
        expected = {
            "IDLE", "DISPLAYING", "EDITING", "VALIDATING", "REJECTED", "SAVED", "CANCELLED",
        }
        assert {p.value for p in ReviewPhase} == expected

    def test_every_phase_has_transition_entry(self):
        for phase in ReviewPhase:
            assert phase in VALID_TRANSITIONS

    def test_terminal_phases(self):
        assert TERMINAL_PHASES == {ReviewPhase.SAVED, ReviewPhase.CANCELLED}

    def test_terminal_phases_only_reopen(self):
        for phase in TERMINAL_PHASES:
            assert VALID_TRANSITIONS[phase] == {ReviewPhase.DISPLAYING}

    def test_rejected_is_not_terminal(self):
        assert ReviewPhase.REJECTED not in TERMINAL_PHASES
        assert ReviewPhase.EDITING in VALID_TRANSITIONS[ReviewPhase.REJECTED]
        assert ReviewPhase.VALIDATING in VALID_TRANSITIONS[ReviewPhase.REJECTED]

    def test_validating_resolves_to_saved_or_rejected(self):
        assert VALID_TRANSITIONS[ReviewPhase.VALIDATING] == {
            ReviewPhase.SAVED,
            ReviewPhase.REJECTED,
        }

    def test_saved_only_reachable_from_validating(self):
        sources = {p for p, targets in VALID_TRANSITIONS.items() if ReviewPhase.SAVED in targets}
        assert sources == {ReviewPhase.VALIDATING}

    def test_no_transitions_to_idle(self):
        for targets in VALID_TRANSITIONS.values():
            assert ReviewPhase.IDLE not in targets

    def test_openable_and_editable(self):
        assert OPENABLE_PHASES == {ReviewPhase.IDLE, ReviewPhase.SAVED, ReviewPhase.CANCELLED}
        assert ReviewPhase.VALIDATING not in EDITABLE_PHASES
        assert OPENABLE_PHASES.isdisjoint(EDITABLE_PHASES)
