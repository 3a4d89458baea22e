"""Generation of human-shareable challenge codes such as ``CHL-4821-9043-K7``."""

from __future__ import annotations

import random
import string

from challenge_app.constants.challenge_constants import (
    CHALLENGE_CODE_PREFIX,
    CHALLENGE_CODE_SUFFIX_LENGTH,
)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


class ChallengeCodeGenerator:
    """Produces random codes; uniqueness is checked by the caller."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.SystemRandom()

    def next_code(self) -> str:
        first = self._rng.randint(1000, 9999)
        second = self._rng.randint(1000, 9999)
        suffix = "".join(self._rng.choice(_SUFFIX_ALPHABET) for _ in range(CHALLENGE_CODE_SUFFIX_LENGTH))
        return f"{CHALLENGE_CODE_PREFIX}-{first}-{second}-{suffix}"
