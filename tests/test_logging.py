"""Tests for logging configuration."""

import tempfile
from pathlib import Path
from unittest.mock import MagicMock, patch

from decision_layer.logging import get_logger
from loguru._logger import Logger


def test_get_logger_returns_logger() -> None:
    """Test that get_logger returns a Logger instance."""
    logger = get_logger("test_module")
    assert isinstance(logger, Logger)


def test_get_logger_with_different_names() -> None:
    logger1 = get_logger("module1")
    logger2 = get_logger("module2")

    assert isinstance(logger1, Logger)
    assert isinstance(logger2, Logger)


@patch("decision_layer.logging.settings")
def test_get_logger_creates_log_directory(mock_settings: MagicMock) -> None:
    """Test that get_logger creates the log directory when file logging is on."""
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = Path(temp_dir) / "test_logs"
        mock_settings.log_dir = str(log_dir)
        mock_settings.log_level = "INFO"
        mock_settings.LOG_TO_FILE = True

        assert not log_dir.exists()

        get_logger("test_module")

        assert log_dir.exists()
        assert log_dir.is_dir()

        # Release file handles before the directory is removed
        from loguru import logger as loguru_logger

        loguru_logger.remove()


@patch("decision_layer.logging.settings")
def test_get_logger_skips_files_by_default(mock_settings: MagicMock) -> None:
    with tempfile.TemporaryDirectory() as temp_dir:
        log_dir = Path(temp_dir) / "unused"
        mock_settings.log_dir = str(log_dir)
        mock_settings.log_level = "DEBUG"
        mock_settings.LOG_TO_FILE = False

        logger = get_logger("test_module")

        assert isinstance(logger, Logger)
        assert not log_dir.exists()
