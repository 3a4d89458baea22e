"""Question bank items and their conversion into frozen challenge questions.

Bank item format (one JSON file per question):

    {
      "id": "Q_1700000000000",
      "subject": "Physics",
      "lesson": "Kinematics",
      "examType": "JEE Main",
      "difficulty": "Medium",
      "type": "text",
      "question": {"text": "A body moves ...", "image": null},
      "options": {"A": "...", "B": "...", "C": "...", "D": "..."},
      "correct": "B",
      "marks": 4,
      "explanation": {"text": "...", "image": "expl.png"}
    }

Images are referenced by file name and resolved into a URL under the
lesson's ``images`` folder at freeze time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

from challenge_app.constants.challenge_constants import (
    DEFAULT_QUESTION_MARKS,
    OPTION_KEYS,
    QUESTION_IMAGE_URL_ROOT,
)
from challenge_app.core.models import TestQuestion


class QuestionBankError(Exception):
    """Raised when a bank item cannot be parsed."""


@dataclass(slots=True)
class QuestionBankItem:
    """Live question as stored in the bank."""

    id: str
    subject: str
    lesson: str
    options: dict[str, str]
    correct: str
    type: str = "text"
    exam_type: str | None = None
    difficulty: str | None = None
    question_text: str | None = None
    question_image: str | None = None
    explanation_text: str | None = None
    explanation_image: str | None = None
    marks: int | None = None


def parse_bank_item(data: Any) -> QuestionBankItem:
    if not isinstance(data, dict):
        raise QuestionBankError("Question item must be a JSON object.")
    for required in ("id", "subject", "lesson"):
        if not data.get(required):
            raise QuestionBankError(f"Question item missing '{required}'.")

    options = data.get("options")
    if not isinstance(options, dict):
        raise QuestionBankError("Question 'options' must be an object keyed A-D.")

    correct = str(data.get("correct", "")).strip().upper()
    if correct not in OPTION_KEYS:
        raise QuestionBankError("Question 'correct' must be one of A, B, C, or D.")

    question = data.get("question") or {}
    explanation = data.get("explanation") or {}
    if not isinstance(question, dict):
        raise QuestionBankError("Question 'question' must be an object with text and image.")
    if not isinstance(explanation, dict):
        raise QuestionBankError("Question 'explanation' must be an object with text and image.")
    if not question.get("text") and not question.get("image"):
        raise QuestionBankError("Question needs text or an image.")

    marks = data.get("marks")
    if marks is not None:
        try:
            marks = int(marks)
        except (TypeError, ValueError) as exc:
            raise QuestionBankError("Question 'marks' must be an integer.") from exc

    return QuestionBankItem(
        id=str(data["id"]),
        subject=str(data["subject"]),
        lesson=str(data["lesson"]),
        options={key: str(value) for key, value in options.items()},
        correct=correct,
        type=data.get("type", "text"),
        exam_type=data.get("examType"),
        difficulty=data.get("difficulty"),
        question_text=question.get("text"),
        question_image=question.get("image"),
        explanation_text=explanation.get("text"),
        explanation_image=explanation.get("image"),
        marks=marks,
    )


def image_url(subject: str, lesson: str, filename: str | None) -> str | None:
    if not filename:
        return None
    return (
        f"{QUESTION_IMAGE_URL_ROOT}/{quote(subject, safe='')}/{quote(lesson, safe='')}"
        f"/images/{quote(filename, safe='')}"
    )


def freeze_question(item: QuestionBankItem) -> TestQuestion:
    """Snapshot a bank item so later bank edits cannot reach an in-flight challenge."""
    return TestQuestion(
        id=item.id,
        type=item.type,
        question_text=item.question_text or None,
        question_image_url=image_url(item.subject, item.lesson, item.question_image),
        options=_normalize_options(item.options),
        answer=item.correct,
        marks=item.marks if item.marks else DEFAULT_QUESTION_MARKS,
        explanation_text=item.explanation_text or None,
        explanation_image_url=image_url(item.subject, item.lesson, item.explanation_image),
    )


def _normalize_options(options: dict[str, str]) -> list[str]:
    return [options.get(key, "").strip() for key in OPTION_KEYS]
