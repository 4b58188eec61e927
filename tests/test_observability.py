"""
Tests for logging setup.
"""

import logging

import pytest

from vapi_gitops.core.observability.logging_config import resolve_level, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_flag_precedence(self):
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"

    def test_default(self):
        assert resolve_level() == "WARNING"

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("VAPI_LOG_LEVEL", "INFO")
        assert resolve_level() == "INFO"
        assert resolve_level(quiet=True) == "ERROR"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging(level="INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_other_loggers_left_alone(self):
        other = logging.getLogger("some.library")
        other.setLevel(logging.NOTSET)

        setup_logging(level="INFO")

        assert other.level == logging.NOTSET
        assert other.getEffectiveLevel() == logging.INFO

    def test_unknown_level_falls_back(self):
        setup_logging(level="LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "vapi.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")

        logging.getLogger("vapi_gitops.test").debug("to the file only")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert logging.getLogger().level == logging.DEBUG
        assert "to the file only" in log_file.read_text()
