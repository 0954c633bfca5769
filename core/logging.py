"""
Logging configuration for the API process and the batch scripts
"""

import logging
import sys
from typing import Optional
from core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers kept at WARNING unless explicitly enabled
QUIET_LOGGERS = ("sqlalchemy.pool", "httpx", "httpcore", "apscheduler", "aiosqlite")


def setup_logging(level: Optional[str] = None):
    """
    Configure root logging to stdout.

    Args:
        level: Overrides settings.LOG_LEVEL (scripts pass --log-level)
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # SQL_ECHO already routes statements through sqlalchemy.engine
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.SQL_ECHO else logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured at {level_name} level")
