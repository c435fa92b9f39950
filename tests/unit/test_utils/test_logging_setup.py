"""Tests for logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from wheelaway.config.settings import LoggingConfig
from wheelaway.utils.logging import setup_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("wheelaway")
    level = logger.level
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(level)


class TestSetupLogging:
    def test_repeated_setup_does_not_stack_handlers(self, package_logger) -> None:
        setup_logging()
        setup_logging(LoggingConfig(level="debug"))
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

    def test_file_handler(self, package_logger, tmp_path: Path) -> None:
        log_file = tmp_path / "wheelaway.log"
        setup_logging(LoggingConfig(file=str(log_file)))
        assert len(package_logger.handlers) == 2
        assert "Logging initialized" in log_file.read_text()
