#!/usr/bin/env python3
"""Tests for logging configuration."""
import logging
from unittest.mock import patch

from mclipsync.config import LogConfig
from mclipsync.main_logging import (
    FATAL,
    LEVELS,
    SENSITIVE_LOGGER,
    TRACE,
    SensitiveFilter,
    configure_logging,
    sensitive_logger,
)


def make_record(name: str) -> logging.LogRecord:
    return logging.LogRecord(name, logging.DEBUG, __file__, 1, "msg", None, None)


class TestSensitiveFilter:
    """Tests for hiding clipboard contents."""

    def test_sensitive_records_dropped_by_default(self) -> None:
        """Test contents are not logged unless allowed."""
        assert not SensitiveFilter(False).filter(make_record(SENSITIVE_LOGGER))

    def test_sensitive_records_kept_when_allowed(self) -> None:
        """Test contents are logged when explicitly allowed."""
        assert SensitiveFilter(True).filter(make_record(SENSITIVE_LOGGER))

    def test_other_records_always_kept(self) -> None:
        """Test ordinary loggers are unaffected."""
        assert SensitiveFilter(False).filter(make_record("mclipsync.sync_loop"))
        assert SensitiveFilter(False).filter(make_record("mclipsync.sensitiveness"))


def test_level_names() -> None:
    """Test every level name maps to a logging level."""
    assert LEVELS["trace"] == TRACE < logging.DEBUG
    assert LEVELS["fatal"] == FATAL
    assert LEVELS["warn"] == logging.WARNING
    assert logging.getLevelName(TRACE) == "TRACE"


def test_sensitive_logger_name() -> None:
    """Test contents go through the dedicated logger."""
    assert sensitive_logger().name == SENSITIVE_LOGGER


class TestConfigureLogging:
    """Tests for basicConfig arguments."""

    def test_timestamps(self) -> None:
        """Test the default format carries a timestamp."""
        with patch("mclipsync.main_logging.logging.basicConfig") as mock_config:
            configure_logging(LogConfig(level=logging.DEBUG))
        kwargs = mock_config.call_args[1]
        assert kwargs["level"] == logging.DEBUG
        assert kwargs["format"] == "%(asctime)s - %(levelname)s - %(message)s"
        assert kwargs["datefmt"] == "%Y-%m-%d %H:%M:%S"

    def test_hidden_timestamps(self) -> None:
        """Test timestamps can be left to the service manager."""
        with patch("mclipsync.main_logging.logging.basicConfig") as mock_config:
            configure_logging(LogConfig(timestamps=False))
        assert mock_config.call_args[1]["format"] == "%(levelname)s - %(message)s"

    def test_handler_filters_contents(self) -> None:
        """Test the handler drops contents unless sensitive logging is on."""
        with patch("mclipsync.main_logging.logging.basicConfig") as mock_config:
            configure_logging(LogConfig(sensitive=False))
        handler = mock_config.call_args[1]["handlers"][0]
        assert handler.filter(make_record(SENSITIVE_LOGGER)) is False
