"""Challenge-related constants shared across the core and server layers."""

DEFAULT_EXPIRY_MINUTES: int = 180
CHALLENGE_CODE_PREFIX: str = "CHL"
CHALLENGE_CODE_SUFFIX_LENGTH: int = 2
CHALLENGE_CODE_MAX_ATTEMPTS: int = 5
DEFAULT_QUESTION_MARKS: int = 1
DEFAULT_POINTS_PER_MARK: int = 1
OPTION_KEYS: tuple[str, ...] = ("A", "B", "C", "D")
QUESTION_IMAGE_URL_ROOT: str = "/question_bank_images"
