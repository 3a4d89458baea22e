"""Shared pytest fixtures for the challenge core and API tests."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from challenge_app.core.challenge_manager import ChallengeManager
from challenge_app.core.question_bank import QuestionBankItem
from challenge_app.core.services.challenge_repository import ChallengeRepository
from challenge_app.core.services.collaborators import UserSummary
from challenge_app.core.services.history_log import HistoryLog
from challenge_app.core.services.invite_book import InviteBook

START_MS = 1_700_000_000_000
EXPIRY_WINDOW_MS = 15 * 60 * 1000


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, millis: int) -> None:
        self.now += millis


class FakeQuestionSource:
    def __init__(self, items: list[QuestionBankItem]) -> None:
        self.items = items
        self.calls: list[tuple] = []

    def select_questions(self, subject, lesson, exam_filter=None, difficulty=None):
        self.calls.append((subject, lesson, exam_filter, difficulty))
        return list(self.items)


class FakeUserDirectory:
    def __init__(self, users: dict[str, UserSummary] | None = None, fail: bool = False) -> None:
        self.users = users or {}
        self.fail = fail

    def resolve_user(self, user_id):
        if self.fail:
            raise RuntimeError("directory offline")
        return self.users.get(user_id)


class FakePointsLedger:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.deltas: list[tuple[str, int]] = []

    def apply_points_delta(self, user_id, delta):
        if self.fail:
            raise OSError("ledger unavailable")
        self.deltas.append((user_id, delta))


def make_bank_items(count: int, marks: int | None = 1, correct: str = "A") -> list[QuestionBankItem]:
    return [
        QuestionBankItem(
            id=f"Q_{index}",
            subject="Physics",
            lesson="Kinematics",
            options={"A": f"a{index}", "B": f"b{index}", "C": f"c{index}", "D": f"d{index}"},
            correct=correct,
            question_text=f"Question {index}",
            marks=marks,
        )
        for index in range(count)
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def question_source() -> FakeQuestionSource:
    return FakeQuestionSource(make_bank_items(10))


@pytest.fixture
def user_directory() -> FakeUserDirectory:
    return FakeUserDirectory(
        {
            "creator": UserSummary(name="Asha", avatar_url="/avatars/asha.png"),
            "bob": UserSummary(name="Bob"),
            "cara": UserSummary(name="Cara"),
        }
    )


@pytest.fixture
def points_ledger() -> FakePointsLedger:
    return FakePointsLedger()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def manager(data_dir, question_source, user_directory, points_ledger, clock) -> ChallengeManager:
    return ChallengeManager(
        ChallengeRepository(data_dir / "user-challenges"),
        InviteBook(data_dir / "user-challenge-invites"),
        HistoryLog(data_dir / "user-challenge-history"),
        question_source,
        user_directory,
        points_ledger,
        expiry_window_ms=EXPIRY_WINDOW_MS,
        clock=clock,
        rng=random.Random(7),
    )
