"""Logging setup utilities for wheelaway.

Configures the ``wheelaway`` package logger from the logging section of
the settings.
"""

from __future__ import annotations

import logging
import sys

from wheelaway.config.settings import LoggingConfig


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure logging for the wheelaway application.

    Calling it again replaces the handlers installed earlier instead of
    stacking duplicates.

    Args:
        config: Logging configuration. Defaults to INFO on stderr.
    """
    config = config or LoggingConfig()

    package_logger = logging.getLogger("wheelaway")
    package_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    for old in list(package_logger.handlers):
        package_logger.removeHandler(old)
        old.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        handlers.append(logging.FileHandler(config.file))

    formatter = logging.Formatter(config.format)
    for handler in handlers:
        handler.setFormatter(formatter)
        package_logger.addHandler(handler)

    package_logger.info("Logging initialized at %s level", config.level)
