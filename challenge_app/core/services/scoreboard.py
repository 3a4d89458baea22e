"""Scoring of submitted answers and ranking of finished participants."""

from __future__ import annotations

from dataclasses import dataclass, replace
import math

from challenge_app.core.models import Participant, TestQuestion, UserAnswer
from challenge_app.core.states import ParticipantStatus


@dataclass(slots=True)
class ScoreBreakdown:
    """Outcome of scoring one participant's answers."""

    score: int
    correct: int
    incorrect: int
    unanswered: int


@dataclass(slots=True)
class RankedRow:
    """Immutable snapshot returned to consumers."""

    rank: int
    user_id: str
    name: str | None
    score: int
    time_taken: int | None


def score_answers(questions: list[TestQuestion], answers: list[UserAnswer]) -> ScoreBreakdown:
    """Sum the marks of every question whose selected option matches the key.

    No partial credit and no negative marking. Answers are matched by question
    id; a positional ``q-<index>`` id is accepted as a fallback.
    """
    by_id: dict[str, UserAnswer] = {}
    for answer in answers:
        by_id.setdefault(answer.question_id, answer)

    score = correct = incorrect = unanswered = 0
    for index, question in enumerate(questions):
        answer = by_id.get(question.id) or by_id.get(f"q-{index}")
        if answer is None or not answer.selected_option:
            unanswered += 1
        elif answer.selected_option == question.answer:
            score += question.marks
            correct += 1
        else:
            incorrect += 1
    return ScoreBreakdown(score=score, correct=correct, incorrect=incorrect, unanswered=unanswered)


def _sort_key(participant: Participant) -> tuple[int, float]:
    score = participant.score if participant.score is not None else -1
    time_taken = participant.time_taken if participant.time_taken is not None else math.inf
    return (-score, time_taken)


def rank_participants(participants: list[Participant]) -> list[Participant]:
    """Return ranked copies of the completed participants.

    Order is descending score, then ascending time taken with unknown times
    last. Ranks are assigned 1..n in that order. Inputs are not mutated.
    """
    finished = [p for p in participants if p.status == ParticipantStatus.COMPLETED]
    ordered = sorted(finished, key=_sort_key)
    return [replace(p, rank=index) for index, p in enumerate(ordered, start=1)]


def build_rows(participants: list[Participant]) -> list[RankedRow]:
    return [
        RankedRow(
            rank=p.rank or 0,
            user_id=p.user_id,
            name=p.name,
            score=p.score or 0,
            time_taken=p.time_taken,
        )
        for p in rank_participants(participants)
    ]
