"""Logging configuration for Ledgerly.

Every module logs through ``get_logger("<area>")``, which hands out children
of the ``ledgerly`` logger. The API and the batch CLI call ``setup_logging``
once at start-up; library code never configures handlers itself.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# HTTP and Google client libraries log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google.auth", "google.api_core")


def setup_logging(log_level: Optional[str] = None) -> logging.Logger:
    """Configure stdout logging for the process.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR. Defaults to the LOG_LEVEL
            environment variable, then INFO.

    Returns:
        The ``ledgerly`` logger
    """
    level_name = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    root = logging.getLogger("ledgerly")
    root.setLevel(level)
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger named ``ledgerly.<name>``, e.g. ``get_logger("billing")``."""
    return logging.getLogger(f"ledgerly.{name}")
