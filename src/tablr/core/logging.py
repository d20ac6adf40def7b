"""Logging helpers for tablr.

Library modules only create named loggers; handlers are configured by the application
shell via setup_logging().
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(level: str = "WARNING") -> logging.Logger:
    """Configure the ``tablr`` logger hierarchy and return it."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level}")

    logger = logging.getLogger("tablr")
    logger.setLevel(numeric_level)

    formatter = logging.Formatter(LOG_FORMAT)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    else:
        for handler in logger.handlers:
            handler.setFormatter(formatter)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a named logger."""
    if not name.strip():
        raise ValueError("Logger name cannot be empty.")
    return logging.getLogger(name)
