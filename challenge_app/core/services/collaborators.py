"""Interfaces to the services the challenge core consumes, plus file-backed defaults."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from threading import Lock
from typing import Protocol

from challenge_app.core.question_bank import QuestionBankError, QuestionBankItem, parse_bank_item
from challenge_app.core.services.json_store import JsonRecordStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class UserSummary:
    name: str | None
    avatar_url: str | None = None


class QuestionSource(Protocol):
    def select_questions(
        self,
        subject: str,
        lesson: str,
        exam_filter: str | None = None,
        difficulty: str | None = None,
    ) -> list[QuestionBankItem]: ...


class UserDirectory(Protocol):
    def resolve_user(self, user_id: str) -> UserSummary | None: ...


class PointsLedger(Protocol):
    def apply_points_delta(self, user_id: str, delta: int) -> None: ...


def _is_safe_segment(name: str) -> bool:
    """Bank folder names may hold spaces but never separators or a leading dot."""
    return bool(name) and not name.startswith(".") and not any(ch in name for ch in "/\\\x00")


class JsonQuestionBank:
    """Reads ``<root>/<subject>/<lesson>/questions/Q_*.json`` bank items."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    def select_questions(
        self,
        subject: str,
        lesson: str,
        exam_filter: str | None = None,
        difficulty: str | None = None,
    ) -> list[QuestionBankItem]:
        if not subject or not lesson:
            logger.warning("Subject and lesson are required to select questions.")
            return []
        if not _is_safe_segment(subject) or not _is_safe_segment(lesson):
            logger.warning("Refusing bank lookup outside the bank root: %r / %r", subject, lesson)
            return []
        questions_dir = self._root / subject / lesson / "questions"
        if not questions_dir.is_dir():
            logger.warning("Questions directory not found: %s", questions_dir)
            return []

        items: list[QuestionBankItem] = []
        for path in sorted(questions_dir.glob("Q_*.json")):
            try:
                item = parse_bank_item(json.loads(path.read_text(encoding="utf-8")))
            except (OSError, json.JSONDecodeError, QuestionBankError) as exc:
                logger.warning("Skipping unreadable question file %s: %s", path, exc)
                continue
            items.append(item)

        if exam_filter and exam_filter != "all":
            items = [item for item in items if item.exam_type == exam_filter]
        if difficulty and difficulty != "all":
            items = [item for item in items if item.difficulty == difficulty]
        return items


class JsonUserDirectory:
    """Resolves users from a ``users.json`` array of profiles."""

    def __init__(self, users_file: Path) -> None:
        self._users_file = Path(users_file)

    def resolve_user(self, user_id: str) -> UserSummary | None:
        try:
            users = json.loads(self._users_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Could not read users file %s: %s", self._users_file, exc)
            return None
        for user in users if isinstance(users, list) else []:
            if isinstance(user, dict) and str(user.get("id")) == str(user_id):
                return UserSummary(name=user.get("name"), avatar_url=user.get("avatarUrl"))
        return None


class JsonPointsLedger:
    """Keeps a running point total per user; totals never drop below zero."""

    def __init__(self, directory: Path) -> None:
        self._store = JsonRecordStore(directory)
        self._lock = Lock()

    def get_total(self, user_id: str) -> int:
        data = self._store.read(user_id) or {}
        return int(data.get("totalPoints", 0))

    def apply_points_delta(self, user_id: str, delta: int) -> None:
        with self._lock:
            total = max(0, self.get_total(user_id) + int(delta))
            self._store.write(
                user_id,
                {
                    "userId": user_id,
                    "totalPoints": total,
                    "lastUpdated": datetime.now(timezone.utc).isoformat(),
                },
            )
        logger.info("Updated points for user %s. Added: %s, new total: %s", user_id, delta, total)
