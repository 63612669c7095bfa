"""Logging setup for the school_inventory package."""
import logging
import sys

_LOGGER_NAME = "school_inventory"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level="INFO") -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Safe to call more than once; the handler is installed only the first time.
    """
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    if not any(getattr(h, "_school_inventory", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._school_inventory = True
        logger.addHandler(handler)
    return logger
