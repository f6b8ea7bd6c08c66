"""Console logging configuration."""
from __future__ import annotations

import logging

from studybank.config import LOG_LEVEL


def setup_console_logging(level: int = LOG_LEVEL) -> None:
    """
    Call once at startup. Routes bank logs to the console.
    """
    root = logging.getLogger()
    # SQL echo stays off unless explicitly enabled
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    if root.handlers:
        # already configured (avoid duplicates)
        root.setLevel(level)
        return

    root.setLevel(level)
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(handler)
