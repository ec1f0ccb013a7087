"""Leveled console logging for the deployer.

Records below ERROR go to stdout, ERROR and above go to stderr. The minimum
level is set once at startup.
"""
import logging
import sys
from typing import Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
PACKAGE_LOGGER = "nginx_deployer"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

logger = logging.getLogger(PACKAGE_LOGGER)


class _BestEffortStreamHandler(logging.StreamHandler):
    """Stream handler that never raises on a broken stream."""

    def handleError(self, record):
        pass


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int):
        super().__init__()
        self.max_level = max_level

    def filter(self, record):
        return record.levelno < self.max_level


def resolve_level(level: Union[str, int]) -> int:
    """Map debug/info/warn/error (or a logging constant) to a logging level."""
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}. Use one of {sorted(LEVELS)}")


def configure_logging(level: Union[str, int] = "info") -> logging.Logger:
    """Install stdout/stderr handlers on the package logger.

    Calling it again replaces the handlers installed by a previous call.
    """
    numeric_level = resolve_level(level)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    for handler in list(logger.handlers):
        if getattr(handler, "_nginx_deployer", False):
            logger.removeHandler(handler)

    stdout_handler = _BestEffortStreamHandler(sys.stdout)
    stdout_handler.addFilter(_MaxLevelFilter(logging.ERROR))
    stderr_handler = _BestEffortStreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)

    for handler in (stdout_handler, stderr_handler):
        handler.setFormatter(formatter)
        handler._nginx_deployer = True
        logger.addHandler(handler)

    logger.setLevel(numeric_level)
    return logger


def log(level: Union[str, int], message: str) -> None:
    """Emit ``message`` on the package logger at ``level``."""
    logger.log(resolve_level(level), message)
