"""Status enums and the transition rules for challenges and participants."""

from __future__ import annotations

from enum import Enum

from challenge_app.core.errors import AlreadyFinalized, InvalidState


class ChallengeStatus(str, Enum):
    """Lifecycle of a whole challenge."""

    WAITING = "waiting"
    STARTED = "started"
    COMPLETED = "completed"
    EXPIRED = "expired"

    def is_terminal(self) -> bool:
        return self in _TERMINAL_CHALLENGE

    def can_transition_to(self, new_status: ChallengeStatus) -> bool:
        return new_status in _CHALLENGE_EDGES[self]


class ParticipantStatus(str, Enum):
    """Per-participant progress within a challenge."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"

    def is_terminal(self) -> bool:
        return self in _TERMINAL_PARTICIPANT

    def can_transition_to(self, new_status: ParticipantStatus) -> bool:
        return new_status in _PARTICIPANT_EDGES[self]


_CHALLENGE_EDGES: dict[ChallengeStatus, frozenset[ChallengeStatus]] = {
    ChallengeStatus.WAITING: frozenset({ChallengeStatus.STARTED, ChallengeStatus.EXPIRED}),
    ChallengeStatus.STARTED: frozenset({ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED}),
    ChallengeStatus.COMPLETED: frozenset(),
    ChallengeStatus.EXPIRED: frozenset(),
}

_PARTICIPANT_EDGES: dict[ParticipantStatus, frozenset[ParticipantStatus]] = {
    ParticipantStatus.PENDING: frozenset({ParticipantStatus.ACCEPTED, ParticipantStatus.REJECTED}),
    ParticipantStatus.ACCEPTED: frozenset({ParticipantStatus.COMPLETED}),
    ParticipantStatus.REJECTED: frozenset(),
    ParticipantStatus.COMPLETED: frozenset(),
}

_TERMINAL_CHALLENGE = frozenset({ChallengeStatus.COMPLETED, ChallengeStatus.EXPIRED})
_TERMINAL_PARTICIPANT = frozenset({ParticipantStatus.REJECTED, ParticipantStatus.COMPLETED})


def transition_challenge(current: ChallengeStatus, target: ChallengeStatus) -> ChallengeStatus:
    """Return ``target`` if the edge is legal, otherwise raise ``InvalidState``."""
    if current == target:
        return current
    if not current.can_transition_to(target):
        raise InvalidState(f"Challenge cannot move from '{current.value}' to '{target.value}'.")
    return target


def transition_participant(current: ParticipantStatus, target: ParticipantStatus) -> ParticipantStatus:
    """Return ``target`` if the edge is legal.

    Repeating the current status is a no-op. Leaving a terminal status raises
    ``AlreadyFinalized``; any other illegal edge raises ``InvalidState``.
    """
    if current == target:
        if current == ParticipantStatus.COMPLETED:
            raise AlreadyFinalized("Participant has already submitted this challenge.")
        return current
    if current.is_terminal():
        raise AlreadyFinalized(f"Participant status '{current.value}' is final.")
    if not current.can_transition_to(target):
        raise InvalidState(f"Participant cannot move from '{current.value}' to '{target.value}'.")
    return target
