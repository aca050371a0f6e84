from __future__ import annotations

import logging

from agent_import.logging.init import (
    LOGGER_NAME,
    get_logger,
    log_summary,
    reset_logging,
    setup_logging,
)


def setup_function():
    reset_logging()


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1


def test_labeled_prefixes(capsys):
    logger = setup_logging()
    logger.info("hello")
    logger.warning("careful")
    logger.error("broken")
    log_summary("rows=1 success=1")
    out = capsys.readouterr().out.splitlines()
    assert out == ["INFO hello", "WARN careful", "ERROR broken", "SUMMARY rows=1 success=1"]


def test_module_loggers_share_the_handler(capsys):
    setup_logging()
    logging.getLogger("agent_import.services.orchestrator").info("batch done")
    assert "INFO batch done" in capsys.readouterr().out


def test_debug_mode(capsys):
    logger = setup_logging(debug=True)
    logger.debug("details")
    assert logger.level == logging.DEBUG
    assert "DEBUG details" in capsys.readouterr().out


def test_debug_enabled_after_first_setup():
    setup_logging()
    assert get_logger().level == logging.INFO
    setup_logging(debug=True)
    assert get_logger().level == logging.DEBUG
