"""Application entry point for the challenge service."""

from __future__ import annotations

from challenge_app.constants.about import APP_NAME
from challenge_app.core.challenge_manager import ChallengeManager
from challenge_app.core.settings import get_settings
from challenge_app.server.api_server import run_api_server
from challenge_app.utils.logging_config import configure_logging


def main() -> None:
    """Initialize logging, build the challenge manager and serve the API."""
    settings = get_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting %s with data directory %s", APP_NAME, settings.data_dir.resolve())

    manager = ChallengeManager.from_settings(settings)
    run_api_server(manager, host=settings.host, port=settings.port, log_level=settings.log_level)


if __name__ == "__main__":
    main()
