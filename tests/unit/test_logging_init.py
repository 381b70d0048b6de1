from __future__ import annotations

import logging
from io import StringIO

import water_report.logging.init
from water_report.logging.init import (
    APP_LOGGER_NAME,
    LabeledFormatter,
    get_logger,
    log_summary,
    reset_logging,
    set_debug,
    setup_logging,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    captured_output = StringIO()
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
    handler = logging.StreamHandler(captured_output)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger, captured_output


def test_setup_logging_creates_logger_with_labeled_formatter():
    reset_logging()
    logger = setup_logging()
    assert logger.name == APP_LOGGER_NAME
    assert logger.level == logging.INFO
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, LabeledFormatter)


def test_logging_labeled_prefixes():
    logging.addLevelName(25, "SUMMARY")
    logger, out = _capture("test_water_report")
    logger.info("Test info message")
    logger.warning("Test warning message")
    logger.error("Test error message")
    logger.log(25, "Test summary message")
    lines = out.getvalue().strip().split("\n")
    assert lines == [
        "INFO Test info message",
        "WARN Test warning message",
        "ERROR Test error message",
        "SUMMARY Test summary message",
    ]


def test_setup_logging_idempotent():
    reset_logging()
    logger1 = setup_logging()
    logger2 = setup_logging()
    assert logger1 is logger2
    assert get_logger() is logger1
    assert len(logger1.handlers) == 1


def test_module_loggers_propagate_to_app_logger():
    reset_logging()
    app_logger = setup_logging()
    out = StringIO()
    app_logger.handlers[0].setStream(out)
    logging.getLogger("water_report.services.form_controller").error("Error submitting report: boom")
    assert out.getvalue() == "ERROR Error submitting report: boom\n"


def test_set_debug_toggles_level():
    reset_logging()
    logger = setup_logging()
    set_debug(True)
    assert logger.level == logging.DEBUG
    assert all(h.level == logging.DEBUG for h in logger.handlers)
    set_debug(False)
    assert logger.level == logging.INFO


def test_log_summary_convenience_function():
    logger, out = _capture(APP_LOGGER_NAME)
    water_report.logging.init._logger = logger
    try:
        log_summary("op=save status=ok collections=4/4 documents=9 failed=- elapsed_sec=0.5")
    finally:
        reset_logging()
    assert out.getvalue().strip() == "SUMMARY op=save status=ok collections=4/4 documents=9 failed=- elapsed_sec=0.5"
