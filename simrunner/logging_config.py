"""Logging setup for the runner."""

import logging
import sys

LOGGER_NAME = "simrunner"


def setup_logging(log_level: str = "INFO") -> logging.Logger:
    """Configure and return the package logger.

    Safe to call more than once (worker processes call it on startup).
    """
    logger = logging.getLogger(LOGGER_NAME)

    level = getattr(logging, str(log_level).upper(), logging.INFO)
    logger.setLevel(level)

    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    logger.propagate = False

    return logger


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)
