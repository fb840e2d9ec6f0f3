"""
Tests for the logging presets.
"""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from album_reviews.utils.logging_config import configure_api_logging, configure_script_logging


@pytest.fixture
def restore_root_logging():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestLoggingPresets:
    """Tests for configure_api_logging and configure_script_logging."""

    def test_api_logging_writes_rotating_file(self, tmp_path, monkeypatch, restore_root_logging):
        """The API preset logs to logs/api.log as well as the console."""
        monkeypatch.chdir(tmp_path)
        configure_api_logging(level="WARNING")
        
        root = restore_root_logging
        assert root.level == logging.WARNING
        assert any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        
        logging.getLogger("album_reviews.test").warning("cover update retried")
        for handler in root.handlers:
            handler.flush()
        assert "cover update retried" in (tmp_path / "logs" / "api.log").read_text()

    def test_script_logging_is_console_only(self, tmp_path, monkeypatch, restore_root_logging):
        """The script preset adds no file handler and honours --debug."""
        monkeypatch.chdir(tmp_path)
        configure_script_logging(debug=True)
        
        root = restore_root_logging
        assert root.level == logging.DEBUG
        assert not any(isinstance(h, RotatingFileHandler) for h in root.handlers)
        assert not (tmp_path / "logs").exists()
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
