"""File-per-key JSON document storage with per-key write serialization."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
import json
import logging
import os
from pathlib import Path
import re
import tempfile
from threading import Lock
from typing import Any

from challenge_app.core.errors import PersistenceFailure

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.@-]+$")


def is_valid_key(key: str) -> bool:
    return bool(key) and not key.startswith(".") and _SAFE_KEY.match(key) is not None


@dataclass(slots=True)
class _LockEntry:
    lock: Lock = field(default_factory=Lock)
    holders: int = 0


class KeyedLocks:
    """Hands out one lock per key so unrelated keys never block each other.

    An entry lives only while some thread holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _LockEntry()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._entries[key]


class JsonRecordStore:
    """Reads and overwrites whole JSON documents, one file per key."""

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def path_for(self, key: str) -> Path:
        if not is_valid_key(key):
            raise ValueError(f"Invalid record key: {key!r}")
        return self._directory / f"{key}.json"

    def exists(self, key: str) -> bool:
        return self.path_for(key).exists()

    def read(self, key: str) -> dict[str, Any] | None:
        """Return the stored document, ``None`` if absent.

        Unreadable or malformed documents raise ``PersistenceFailure``.
        """
        path = self.path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as exc:
            logger.error("Failed to read record %s: %s", path, exc)
            raise PersistenceFailure(f"Could not read record '{key}'.", key=key) from exc
        if not isinstance(data, dict):
            logger.error("Record %s does not contain a JSON object", path)
            raise PersistenceFailure(f"Record '{key}' is malformed.", key=key)
        return data

    def write(self, key: str, document: dict[str, Any]) -> None:
        """Atomically replace the document stored under ``key``."""
        path = self.path_for(key)
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=self._directory, suffix=".tmp", delete=False
            ) as handle:
                tmp_name = handle.name
                json.dump(document, handle, indent=2)
            os.replace(tmp_name, path)
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Failed to write record %s: %s", path, exc)
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceFailure(f"Could not write record '{key}'.", key=key) from exc

    def delete(self, key: str) -> None:
        path = self.path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.error("Failed to delete record %s: %s", path, exc)
            raise PersistenceFailure(f"Could not delete record '{key}'.", key=key) from exc
