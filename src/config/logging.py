"""Logging configuration for the search bot and the DB tools."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Third-party loggers that are chatty at INFO.
NOISY_LOGGERS: tuple[str, ...] = ("aiogram.event", "psycopg.pool")


def configure_logging(level: str | None = None) -> None:
    """Configure process-wide logging.

    The level comes from `level`, then `LOG_LEVEL`, then INFO. Log lines are for operators only;
    handlers never echo them (or raw errors) back to buyers.
    """

    log_level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
