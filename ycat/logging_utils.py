"""Operational logging for the command line."""

from __future__ import annotations

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_logger(level: int = logging.WARNING, *, name: str = "ycat", stream=None) -> logging.Logger:
    """
    Configure the `ycat` logger to write to stderr.

    Library modules log through `logging.getLogger(__name__)`, so every
    `ycat.*` logger (and the `streamkit` stage recorder, when passed this
    logger) ends up here. Calling it again replaces the previous handler.
    """

    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(handler)
    logger.propagate = False

    logger.debug("Logging initialized at %s", logging.getLevelName(level))
    return logger
