"""Error types raised by the challenge core."""

from __future__ import annotations


class ChallengeError(Exception):
    """Base class for expected, domain-level rejections."""

    code = "challenge_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ChallengeError):
    """Raised when a challenge code or participant does not exist."""

    code = "not_found"


class Expired(ChallengeError):
    """Raised when the challenge deadline has passed."""

    code = "expired"


class Unauthorized(ChallengeError):
    """Raised when a user attempts an action reserved for the creator."""

    code = "unauthorized"


class InvalidState(ChallengeError):
    """Raised when an operation does not fit the current lifecycle state."""

    code = "invalid_state"


class AlreadyFinalized(InvalidState):
    """Raised when a participant in a terminal status tries to act again."""

    code = "already_finalized"


class InsufficientQuestions(ChallengeError):
    """Raised when the question pool is smaller than the requested count."""

    code = "insufficient_questions"


class PersistenceFailure(Exception):
    """Raised when a store cannot read or write a record.

    Not a ``ChallengeError``; the manager lets it propagate to the caller.
    """

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key
