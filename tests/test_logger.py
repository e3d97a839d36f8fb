from __future__ import annotations

import logging
import sys
import warnings

from diffsmith.logger import (
    LogManager,
    configure_logging,
    get_log_manager,
    init_log_manager,
    logger,
)
from diffsmith.settings import LoggingSettings, LogLevel


def _has_tty_handler(log: logging.Logger) -> bool:
    for handler in log.handlers:
        if isinstance(handler, logging.StreamHandler):
            stream = getattr(handler, "stream", None)
            if stream in (sys.stdout, sys.stderr):
                return True
    return False


def test_log_manager_disables_tty_and_captures() -> None:
    root_logger = logging.getLogger()
    root_stream_handler = logging.StreamHandler(sys.stdout)
    root_logger.addHandler(root_stream_handler)

    manager = init_log_manager(max_entries=None)
    assert isinstance(manager, LogManager)
    assert get_log_manager() is manager
    manager.clear()

    assert not _has_tty_handler(root_logger)

    root_logger.warning("root warning message")

    messages = [record.message for record in manager.get_records()]
    assert "root warning message" in messages


def test_log_manager_captures_warnings() -> None:
    manager = init_log_manager(max_entries=None)
    manager.clear()
    warnings.warn("warning from warnings module", UserWarning)

    messages = [record.message for record in manager.get_records()]
    assert any("warning from warnings module" in message for message in messages)


def test_log_manager_max_entries_drops_oldest() -> None:
    manager = LogManager(max_entries=2)
    for i in range(3):
        manager.add_record(
            logging.LogRecord("x", logging.INFO, __file__, 1, f"msg {i}", None, None)
        )

    assert [r.message for r in manager.get_records()] == ["msg 1", "msg 2"]


def test_configure_logging_applies_levels_to_structlog_logger() -> None:
    manager = init_log_manager(max_entries=None)
    manager.clear()

    configure_logging(
        LoggingSettings(
            default_level=LogLevel.debug,
            enabled_loggers={"some.lib": LogLevel.error},
        )
    )
    try:
        assert logging.getLogger("diffsmith").level == logging.DEBUG
        assert logging.getLogger("some.lib").level == logging.ERROR

        logger.debug("hunk applied", path="a.py", hunk=1)

        messages = [r.message for r in manager.get_records() if r.logger_name == "diffsmith"]
        assert any("hunk applied" in m and "path=a.py" in m for m in messages)
    finally:
        logging.getLogger("diffsmith").setLevel(logging.NOTSET)
        logging.getLogger("some.lib").setLevel(logging.NOTSET)
