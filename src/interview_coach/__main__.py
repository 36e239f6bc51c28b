"""Main application entry point."""

from __future__ import annotations

import logging

import uvicorn

from interview_coach.api.app import create_app
from interview_coach.config import CoachConfig

logger = logging.getLogger(__name__)


def main() -> None:
    config = CoachConfig()  # pydantic-settings loads from env
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    logger.info("Starting interview coach on %s:%d", config.host, config.port)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)


if __name__ == "__main__":
    main()
