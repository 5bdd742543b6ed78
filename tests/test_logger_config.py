"""Tests for logger_config module."""

import logging
import logging.handlers
import os
from pathlib import Path
from unittest import mock

import pytest

from chatvault.logger_config import (
    DEFAULT_FORMAT,
    QUIET_LOGGERS,
    build_logging_config,
    get_log_level,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way the test found it."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestGetLogLevel:
    """Tests for get_log_level function."""

    def test_default_is_info(self):
        """Test that default log level is INFO when env vars are not set."""
        with mock.patch.dict(os.environ, {}, clear=True):
            assert get_log_level() == logging.INFO

    def test_generic_level(self):
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "WARNING"}, clear=True):
            assert get_log_level() == logging.WARNING

    def test_chatvault_level_wins(self):
        env = {"LOG_LEVEL": "WARNING", "CHATVAULT_LOG_LEVEL": "DEBUG"}
        with mock.patch.dict(os.environ, env, clear=True):
            assert get_log_level() == logging.DEBUG

    def test_case_insensitive(self):
        with mock.patch.dict(os.environ, {"CHATVAULT_LOG_LEVEL": "error"}, clear=True):
            assert get_log_level() == logging.ERROR

    def test_invalid_falls_back_to_info(self):
        with mock.patch.dict(os.environ, {"CHATVAULT_LOG_LEVEL": "LOUD"}, clear=True):
            assert get_log_level() == logging.INFO

    def test_non_level_attribute_falls_back(self):
        """BASIC_FORMAT exists on logging but is not a level."""
        with mock.patch.dict(os.environ, {"LOG_LEVEL": "basic_format"}, clear=True):
            assert get_log_level() == logging.INFO


class TestBuildLoggingConfig:
    """Tests for build_logging_config function."""

    def test_console_only(self):
        config = build_logging_config(logging.INFO)
        assert config["root"]["handlers"] == ["console"]
        assert config["formatters"]["standard"]["format"] == DEFAULT_FORMAT
        assert config["disable_existing_loggers"] is False

    def test_quiet_loggers(self):
        config = build_logging_config(logging.DEBUG)
        for name, level in QUIET_LOGGERS.items():
            assert config["loggers"][name]["level"] == level

    def test_file_handler(self, tmp_path: Path):
        config = build_logging_config(logging.INFO, log_file=str(tmp_path / "app.log"))
        assert config["root"]["handlers"] == ["console", "file"]
        assert config["handlers"]["file"]["filename"] == str(tmp_path / "app.log")


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_sets_level(self, restore_root_logger):
        with mock.patch.dict(os.environ, {}, clear=True):
            setup_logging(level=logging.WARNING)
        assert restore_root_logger.level == logging.WARNING

    def test_reconfigure_does_not_stack_handlers(self, restore_root_logger):
        with mock.patch.dict(os.environ, {}, clear=True):
            setup_logging(level=logging.INFO)
            setup_logging(level=logging.DEBUG)
        stream_handlers = [
            h for h in restore_root_logger.handlers if type(h) is logging.StreamHandler
        ]
        assert len(stream_handlers) == 1

    def test_log_file_from_env(self, restore_root_logger, tmp_path: Path):
        log_file = tmp_path / "chatvault.log"
        with mock.patch.dict(os.environ, {"CHATVAULT_LOG_FILE": str(log_file)}, clear=True):
            setup_logging(level=logging.INFO)

        logging.getLogger("chatvault.test").info("hello file")
        for handler in restore_root_logger.handlers:
            handler.flush()

        assert "hello file" in log_file.read_text()

    def test_custom_format(self, restore_root_logger):
        with mock.patch.dict(os.environ, {}, clear=True):
            setup_logging(level=logging.INFO, format_string="%(message)s")
        formatter = restore_root_logger.handlers[0].formatter
        assert formatter._fmt == "%(message)s"
