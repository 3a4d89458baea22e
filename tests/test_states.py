"""Tests for the challenge and participant status transition rules."""

from __future__ import annotations

import pytest

from challenge_app.core.errors import AlreadyFinalized, InvalidState
from challenge_app.core.states import (
    ChallengeStatus,
    ParticipantStatus,
    transition_challenge,
    transition_participant,
)


class TestParticipantTransitions:
    @pytest.mark.parametrize(
        "current,target",
        [
            (ParticipantStatus.PENDING, ParticipantStatus.ACCEPTED),
            (ParticipantStatus.PENDING, ParticipantStatus.REJECTED),
            (ParticipantStatus.ACCEPTED, ParticipantStatus.COMPLETED),
        ],
    )
    def test_forward_edges_are_allowed(self, current, target):
        assert transition_participant(current, target) == target

    def test_repeating_accept_is_a_no_op(self):
        assert transition_participant(ParticipantStatus.ACCEPTED, ParticipantStatus.ACCEPTED) == ParticipantStatus.ACCEPTED

    def test_repeating_reject_is_a_no_op(self):
        assert transition_participant(ParticipantStatus.REJECTED, ParticipantStatus.REJECTED) == ParticipantStatus.REJECTED

    @pytest.mark.parametrize("target", [ParticipantStatus.ACCEPTED, ParticipantStatus.COMPLETED])
    def test_rejected_is_final(self, target):
        with pytest.raises(AlreadyFinalized):
            transition_participant(ParticipantStatus.REJECTED, target)

    @pytest.mark.parametrize(
        "target",
        [ParticipantStatus.ACCEPTED, ParticipantStatus.REJECTED, ParticipantStatus.COMPLETED],
    )
    def test_completed_is_final(self, target):
        with pytest.raises(AlreadyFinalized):
            transition_participant(ParticipantStatus.COMPLETED, target)

    def test_accepted_cannot_fall_back_to_rejected(self):
        with pytest.raises(InvalidState):
            transition_participant(ParticipantStatus.ACCEPTED, ParticipantStatus.REJECTED)

    def test_pending_cannot_jump_to_completed(self):
        with pytest.raises(InvalidState) as excinfo:
            transition_participant(ParticipantStatus.PENDING, ParticipantStatus.COMPLETED)
        assert not isinstance(excinfo.value, AlreadyFinalized)


class TestChallengeTransitions:
    def test_waiting_to_started(self):
        assert transition_challenge(ChallengeStatus.WAITING, ChallengeStatus.STARTED) == ChallengeStatus.STARTED

    def test_any_open_state_can_expire(self):
        assert ChallengeStatus.WAITING.can_transition_to(ChallengeStatus.EXPIRED)
        assert ChallengeStatus.STARTED.can_transition_to(ChallengeStatus.EXPIRED)

    def test_waiting_cannot_complete_directly(self):
        with pytest.raises(InvalidState):
            transition_challenge(ChallengeStatus.WAITING, ChallengeStatus.COMPLETED)

    @pytest.mark.parametrize("terminal", [ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED])
    def test_terminal_states_have_no_exits(self, terminal):
        assert terminal.is_terminal()
        with pytest.raises(InvalidState):
            transition_challenge(terminal, ChallengeStatus.STARTED)

    def test_completed_cannot_be_overwritten_by_expired(self):
        with pytest.raises(InvalidState):
            transition_challenge(ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED)
