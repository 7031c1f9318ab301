import logging
from logging.handlers import RotatingFileHandler
from unittest.mock import MagicMock, patch

import pytest

from modvote.util import logger as logger_module


def test_get_logger_is_idempotent() -> None:
    first = logger_module.get_logger("modvote.tests.idempotent")
    second = logger_module.get_logger("modvote.tests.idempotent")

    assert first is second
    assert len(first.handlers) == 2
    assert any(isinstance(h, RotatingFileHandler) for h in first.handlers)
    assert first.propagate is False


def test_color_formatter_wraps_level_color() -> None:
    formatter = logger_module.ColorFormatter("%(message)s")
    record = logging.LogRecord("x", logging.WARNING, __file__, 1, "careful", None, None)

    assert formatter.format(record) == f"{logger_module.LOG_COLORS['WARNING']}careful{logger_module.RESET_COLOR}"


def test_should_use_color_respects_no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NO_COLOR", "1")

    assert logger_module.should_use_color() is False


def test_handle_exception_logs_uncaught_errors() -> None:
    fake_logger = MagicMock()
    with patch.object(logger_module, "get_logger", return_value=fake_logger):
        error = ValueError("boom")
        logger_module.handle_exception(ValueError, error, None)

    fake_logger.error.assert_called_once()
    assert fake_logger.error.call_args.kwargs["exc_info"][1] is error


def test_handle_exception_defers_keyboard_interrupt() -> None:
    with patch.object(logger_module.sys, "__excepthook__") as default_hook, \
            patch.object(logger_module, "get_logger") as get_logger:
        logger_module.handle_exception(KeyboardInterrupt, KeyboardInterrupt(), None)

    default_hook.assert_called_once()
    get_logger.assert_not_called()


def test_noisy_library_loggers_are_quiet() -> None:
    for name in logger_module.NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.ERROR
