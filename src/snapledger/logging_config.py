"""Logging setup shared by the CLI and embedding applications.

Usage:
    from snapledger.logging_config import setup_logging
    setup_logging("INFO")
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str | int = logging.WARNING) -> logging.Logger:
    """Configure the ``snapledger`` logger to write to stderr.

    Existing handlers on the logger are replaced, so calling it again only
    changes the level and the target stream.

    Args:
        level: Level name ("DEBUG", "INFO", ...) or numeric level

    Returns:
        The configured ``snapledger`` logger
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: '{level}'")
        level = numeric

    logger = logging.getLogger("snapledger")
    logger.setLevel(level)

    # Remove existing handlers (avoid duplicates)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    logger.addHandler(handler)

    return logger
