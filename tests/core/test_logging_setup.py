from __future__ import annotations

import logging

import pytest

from tablr.core.logging import LOG_FORMAT, get_logger, setup_logging


def test_setup_logging_configures_tablr_logger_once() -> None:
    logger = setup_logging("debug")
    try:
        assert logger.name == "tablr"
        assert logger.level == logging.DEBUG
        handlers = list(logger.handlers)
        assert handlers and handlers[0].formatter._fmt == LOG_FORMAT

        # A second call reuses the handler instead of stacking another one
        setup_logging("INFO")
        assert logger.handlers == handlers
        assert logger.level == logging.INFO
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
        logger.setLevel(logging.NOTSET)


def test_setup_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError):
        setup_logging("chatty")


def test_get_logger_requires_name() -> None:
    assert get_logger("tablr.io.fetch").name == "tablr.io.fetch"
    with pytest.raises(ValueError):
        get_logger("  ")
