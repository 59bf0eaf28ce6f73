"""
Logging configuration for the hrv_snapshot package.

Library modules log through ``logging.getLogger(__name__)``; the package
logger only gets handlers when an entry point calls setup_logging().
"""

import logging
import sys
from pathlib import Path

from hrv_snapshot.utils.parameters import LoggingConfig

PACKAGE_LOGGER = "hrv_snapshot"


def setup_logging(config: LoggingConfig, logger_name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Attach console and file handlers to the package logger.

    Calling it again replaces the handlers from the previous call, so each
    CLI command can reconfigure logging without duplicating output.

    Args:
        config: Logging configuration.
        logger_name: Logger to configure, the package logger by default.

    Returns:
        Configured logger instance.
    """
    level = getattr(logging, config.level.upper())
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = []

    if config.console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if config.file:
        log_file = Path(config.file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    if not handlers:
        handlers.append(logging.NullHandler())

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
