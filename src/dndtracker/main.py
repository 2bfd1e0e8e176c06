"""Application entry point for the D&D Tracker backend server."""

import structlog

from dndtracker.app import App
from dndtracker.config import Config
from dndtracker.logging import setup_logging
from dndtracker.web.runner import run_server

logger = structlog.get_logger(__name__)


def main() -> None:
    config = Config()
    setup_logging(config.debug)
    logger.info(
        "starting_server",
        host=config.host,
        port=config.port,
        production=config.production,
        gate_strategy=config.session_gate_strategy,
    )
    app = App(config)
    run_server(app, config)


if __name__ == "__main__":
    main()
