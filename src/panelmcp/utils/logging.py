"""Logging helpers shared by every module."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
_ROOT_LOGGER = "panelmcp"


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the package namespace."""
    if name != _ROOT_LOGGER and not name.startswith(f"{_ROOT_LOGGER}."):
        name = f"{_ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(level: str = "INFO") -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    stdout is reserved for the MCP stdio transport, so log records must never
    be written there. Calling this twice replaces the handler instead of
    stacking a second one.
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
