"""Logging setup

Log lines carry a bracketed component prefix ("[Scraper] ...", "[Sync] ...").
ComponentFilter lifts that prefix into ``record.component`` so the formatter
can align it in its own column.
"""
import logging
import os
import re
import sys
from typing import Optional

from alko_catalog.core.config import settings

LOGGER_NAME = "alko_catalog"

IS_PRODUCTION = os.getenv("ENVIRONMENT", "development") == "production"

_COMPONENT_PREFIX = re.compile(r"^\[([A-Za-z][\w.-]*)\]\s*")

PRODUCTION_FORMAT = "%(asctime)s %(levelname)-7s %(component)-14s %(message)s"
DEVELOPMENT_FORMAT = (
    "%(asctime)s %(levelname)-7s %(component)-14s %(message)s (%(module)s.%(funcName)s:%(lineno)d)"
)

# chatty libraries that log at INFO on every request or job tick
QUIET_LOGGERS = ("apscheduler", "httpx", "asyncio")


class ComponentFilter(logging.Filter):
    """Moves a leading "[Component]" tag from the message to record.component"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        match = _COMPONENT_PREFIX.match(message)
        if match:
            record.component = f"[{match.group(1)}]"
            record.msg = message[match.end():]
            record.args = None
        else:
            record.component = "-"
        return True


def setup_logging(level: Optional[str] = None, production: bool = IS_PRODUCTION) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    log_level = (level or settings.log_level).upper()
    if production and log_level == "DEBUG":
        log_level = "INFO"
    logger.setLevel(log_level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.addFilter(ComponentFilter())
        handler.setFormatter(logging.Formatter(
            fmt=PRODUCTION_FORMAT if production else DEVELOPMENT_FORMAT,
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


logger = setup_logging()


def sanitize_for_log(value: str, max_length: int = 100) -> str:
    """Return a log-safe version of a caller supplied string.

    Args:
        value: text to log (search query, item name, URL)
        max_length: truncate beyond this length

    Returns:
        the string with newlines flattened and length capped
    """
    if not value:
        return "[empty]"

    result = " ".join(str(value).split())

    if len(result) > max_length:
        result = result[:max_length] + "..."

    return result
