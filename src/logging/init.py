from __future__ import annotations

import logging
import sys

"""Logging initialization with labeled prefixes.

Every line written by the service carries one of the INFO|WARN|ERROR|SUMMARY
labels. The application logger (``transmittal_log``) and the ``src`` package
logger share one stdout handler, so ``logging.getLogger(__name__)`` inside
``src.*`` lands on the same stream once setup_logging() has run.
"""

__all__ = [
    "setup_logging",
    "get_logger",
    "set_debug",
    "log_summary",
    "reset_logging",
    "LabeledFormatter",
    "LOGGER_NAME",
]

LOGGER_NAME = "transmittal_log"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25

# Global logger instance
_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """Custom formatter that adds labeled prefixes to log messages.

    - INFO: for informational messages
    - WARN: for warning messages
    - ERROR: for error messages
    - SUMMARY: for the confirmation line of a command
    """

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        return f"{level_label} {record.getMessage()}"


def setup_logging() -> logging.Logger:
    """Setup logging with labeled prefixes for the application.

    Output goes to stdout so that command results and log lines share one
    stream, as the CLI contract expects.

    Returns:
        Configured logger instance for the application
    """
    global _logger

    # Return existing logger if already configured (idempotent)
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)

    # Clear any existing handlers to avoid duplication
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate output
    logger.propagate = False

    # src.* のモジュールロガーをアプリロガー配下に流す
    package_logger = logging.getLogger("src")
    package_logger.handlers = [handler]
    package_logger.setLevel(logging.INFO)
    package_logger.propagate = False

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """Get the configured application logger.

    Returns:
        The configured logger instance. Calls setup_logging() if not already configured.
    """
    if _logger is None:
        return setup_logging()
    return _logger


def set_debug() -> None:
    """Lower the application and package loggers (and their handlers) to DEBUG."""
    logger = get_logger()
    for name in (LOGGER_NAME, "src"):
        lg = logging.getLogger(name)
        lg.setLevel(logging.DEBUG)
        for h in lg.handlers:
            h.setLevel(logging.DEBUG)
    logger.debug("debug mode enabled")


def log_summary(message: str) -> None:
    """Log a message at SUMMARY level."""
    logger = get_logger()
    logger.log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Reset the global logger state. Mainly for testing purposes."""
    global _logger
    _logger = None
