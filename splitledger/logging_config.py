"""Logging configuration.

An explicit level wins; otherwise LOG_LEVEL is read, then INFO. The API
passes ``Settings.log_level`` (SPLITLEDGER_LOG_LEVEL) explicitly.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOG_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_handler: Optional[logging.Handler] = None


def get_log_level(level: Optional[str] = None) -> int:
    level_str = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    return LOG_LEVEL_MAP.get(level_str, logging.INFO)


def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger with a single stdout handler.

    Safe to call more than once; the handler installed by the previous call is replaced.
    """
    global _handler

    root_logger = logging.getLogger()
    root_logger.setLevel(get_log_level(level))

    if _handler is not None:
        root_logger.removeHandler(_handler)

    _handler = logging.StreamHandler(sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(_handler)
