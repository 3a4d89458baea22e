"""Typed outcomes returned by the challenge manager."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from challenge_app.core.errors import ChallengeError
from challenge_app.core.models import Challenge
from challenge_app.core.services.scoreboard import RankedRow, ScoreBreakdown

T = TypeVar("T")


@dataclass(slots=True)
class OperationResult(Generic[T]):
    """Either a value or the domain error that prevented the operation."""

    ok: bool
    value: T | None = None
    error_code: str | None = None
    message: str | None = None

    @classmethod
    def success(cls, value: T) -> OperationResult[T]:
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ChallengeError) -> OperationResult[T]:
        return cls(ok=False, error_code=error.code, message=error.message)


@dataclass(slots=True)
class SubmissionOutcome:
    challenge: Challenge
    breakdown: ScoreBreakdown
    points_awarded: int = 0


@dataclass(slots=True)
class ChallengeResults:
    """Challenge view with ranks applied, plus the standings table."""

    challenge: Challenge
    standings: list[RankedRow] = field(default_factory=list)
