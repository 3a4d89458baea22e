"""Durable storage of challenge records keyed by challenge code."""

from __future__ import annotations

import logging
from pathlib import Path

from challenge_app.core.errors import PersistenceFailure
from challenge_app.core.models import Challenge
from challenge_app.core.services.json_store import JsonRecordStore

logger = logging.getLogger(__name__)


class ChallengeRepository:
    """Whole-record read/write of challenges; no partial updates."""

    def __init__(self, directory: Path) -> None:
        self._store = JsonRecordStore(directory)

    def get(self, challenge_code: str) -> Challenge | None:
        try:
            data = self._store.read(challenge_code)
        except ValueError:
            return None
        if data is None:
            return None
        try:
            return Challenge.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Challenge record %s is malformed: %s", challenge_code, exc)
            raise PersistenceFailure(
                f"Challenge record '{challenge_code}' is malformed.", key=challenge_code
            ) from exc

    def exists(self, challenge_code: str) -> bool:
        return self._store.exists(challenge_code)

    def save(self, challenge: Challenge) -> None:
        self._store.write(challenge.challenge_code, challenge.to_dict())

    def delete(self, challenge_code: str) -> None:
        self._store.delete(challenge_code)
