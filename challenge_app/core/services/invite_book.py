"""Per-user invite lists mirroring each invited participant's response."""

from __future__ import annotations

import logging
from pathlib import Path

from challenge_app.core.errors import PersistenceFailure
from challenge_app.core.models import Invite, UserInvites
from challenge_app.core.services.json_store import JsonRecordStore, KeyedLocks, is_valid_key
from challenge_app.core.states import ParticipantStatus

logger = logging.getLogger(__name__)


class InviteBook:
    """Stores one ``UserInvites`` document per invited user."""

    def __init__(self, directory: Path) -> None:
        self._store = JsonRecordStore(directory)
        self._locks = KeyedLocks()

    def get(self, user_id: str) -> UserInvites:
        if not is_valid_key(user_id):
            return UserInvites(user_id=user_id)
        data = self._store.read(user_id)
        if data is None:
            return UserInvites(user_id=user_id)
        try:
            return UserInvites.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error("Invite record for %s is malformed: %s", user_id, exc)
            raise PersistenceFailure(f"Invite record '{user_id}' is malformed.", key=user_id) from exc

    def add(self, user_id: str, invite: Invite) -> None:
        """Append ``invite``, replacing any earlier entry for the same challenge."""
        with self._locks.hold(user_id):
            record = self.get(user_id)
            record.invites = [i for i in record.invites if i.challenge_code != invite.challenge_code]
            record.invites.append(invite)
            self._store.write(user_id, record.to_dict())

    def remove(self, user_id: str, challenge_code: str) -> None:
        with self._locks.hold(user_id):
            record = self.get(user_id)
            remaining = [i for i in record.invites if i.challenge_code != challenge_code]
            if len(remaining) != len(record.invites):
                record.invites = remaining
                self._store.write(user_id, record.to_dict())

    def set_status(self, user_id: str, challenge_code: str, status: ParticipantStatus) -> bool:
        """Mirror a participant status into the user's invite; ``False`` if there is none."""
        with self._locks.hold(user_id):
            record = self.get(user_id)
            invite = record.find(challenge_code)
            if invite is None:
                return False
            if invite.status != status:
                invite.status = status
                self._store.write(user_id, record.to_dict())
            return True

    def list_for(self, user_id: str, *, pending_only: bool = False, now_ms: int | None = None) -> list[Invite]:
        """Invites newest first; ``pending_only`` drops answered and expired ones."""
        invites = self.get(user_id).invites
        if pending_only:
            invites = [
                i for i in invites
                if i.status == ParticipantStatus.PENDING and (now_ms is None or i.expires_at > now_ms)
            ]
        return sorted(invites, key=lambda i: i.created_at, reverse=True)
