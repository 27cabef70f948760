from __future__ import annotations

import logging
from io import StringIO

from ods_importer.logging.init import (
    APP_LOGGER_NAME,
    LabeledFormatter,
    SUMMARY_LEVEL,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)
    assert logger.propagate is False


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1


def test_logging_labeled_prefixes():
    captured_output = StringIO()
    logger = logging.getLogger("test_ods_importer_labels")
    logger.setLevel(logging.INFO)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    handler = logging.StreamHandler(captured_output)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(SUMMARY_LEVEL, "Test summary message")

    lines = captured_output.getvalue().strip().split('\n')
    assert lines == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_module_loggers_propagate_to_app_logger(capsys):
    setup_logging()
    logging.getLogger("ods_importer.ods.extractor").warning("stray text")
    assert "WARN stray text" in capsys.readouterr().out


def test_log_summary_and_debug_switch(capsys):
    reset_logging()
    log_summary("file=x.ods rows=1")
    get_logger().debug("hidden")
    set_debug(True)
    get_logger().debug("shown")
    out = capsys.readouterr().out
    assert "SUMMARY file=x.ods rows=1" in out
    assert "hidden" not in out
    assert "DEBUG shown" in out
