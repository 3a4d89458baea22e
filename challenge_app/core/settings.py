"""Runtime configuration, overridable through ``CHALLENGE_*`` environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

from challenge_app.constants.challenge_constants import DEFAULT_EXPIRY_MINUTES, DEFAULT_POINTS_PER_MARK
from challenge_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT


class ChallengeSettings(BaseSettings):
    """Settings for the challenge service."""

    model_config = {"env_prefix": "CHALLENGE_", "case_sensitive": False}

    data_dir: Path = Field(
        default=Path("data"),
        description="Root directory for challenge, invite, history and points records",
    )
    question_bank_dir: Path = Field(
        default=Path("data/question_bank"),
        description="Root of the <subject>/<lesson>/questions bank layout",
    )
    users_file: Path = Field(
        default=Path("data/users.json"),
        description="JSON array of user profiles",
    )
    expiry_minutes: int = Field(
        default=DEFAULT_EXPIRY_MINUTES,
        gt=0,
        description="Minutes between creation and a challenge's deadline",
    )
    points_per_mark: int = Field(
        default=DEFAULT_POINTS_PER_MARK,
        ge=0,
        description="Leaderboard points awarded per mark scored in a challenge",
    )
    host: str = Field(default=DEFAULT_HOST)
    port: int = Field(default=DEFAULT_PORT)
    log_level: str = Field(default="INFO")

    @property
    def challenges_dir(self) -> Path:
        return self.data_dir / "user-challenges"

    @property
    def invites_dir(self) -> Path:
        return self.data_dir / "user-challenge-invites"

    @property
    def history_dir(self) -> Path:
        return self.data_dir / "user-challenge-history"

    @property
    def points_dir(self) -> Path:
        return self.data_dir / "user-points"

    @property
    def expiry_window_ms(self) -> int:
        return self.expiry_minutes * 60 * 1000


@lru_cache
def get_settings() -> ChallengeSettings:
    return ChallengeSettings()
