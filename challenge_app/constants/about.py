"""Static metadata describing the challenge service."""

APP_NAME = "QuizChallenge"
APP_VERSION = "0.1"
APP_ABOUT_TEXT = (
    "QuizChallenge runs timed peer quiz matches: invite friends, start once "
    "everyone has answered the invite, and compare scores when the dust settles."
)
