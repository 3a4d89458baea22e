"""Per-user history of completed challenges."""

from __future__ import annotations

import logging
from pathlib import Path

from challenge_app.core.errors import PersistenceFailure
from challenge_app.core.models import HistoryItem, UserHistory
from challenge_app.core.services.json_store import JsonRecordStore, KeyedLocks, is_valid_key

logger = logging.getLogger(__name__)


class HistoryLog:
    """Stores one ``UserHistory`` document per user."""

    def __init__(self, directory: Path) -> None:
        self._store = JsonRecordStore(directory)
        self._locks = KeyedLocks()

    def get(self, user_id: str) -> UserHistory:
        if not is_valid_key(user_id):
            return UserHistory(user_id=user_id)
        data = self._store.read(user_id)
        if data is None:
            return UserHistory(user_id=user_id)
        try:
            return UserHistory.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("History record for %s is malformed: %s", user_id, exc)
            raise PersistenceFailure(f"History record '{user_id}' is malformed.", key=user_id) from exc

    def record(self, user_id: str, item: HistoryItem) -> None:
        """Insert ``item`` as the newest entry, or overwrite the entry for the same challenge."""
        with self._locks.hold(user_id):
            history = self.get(user_id)
            entries = history.completed_challenges
            index = next(
                (i for i, entry in enumerate(entries) if entry.challenge_code == item.challenge_code),
                -1,
            )
            if index >= 0:
                entries[index] = item
            else:
                entries.insert(0, item)
            self._store.write(user_id, history.to_dict())

    def list_for(self, user_id: str) -> list[HistoryItem]:
        return sorted(self.get(user_id).completed_challenges, key=lambda e: e.completed_at, reverse=True)
