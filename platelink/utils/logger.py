# platelink/utils/logger.py
"""
Logging setup shared by the API, the services and the scripts.

Console plus a rotating platelink.log under LOG_DIR. Ledger and referral
lines carry a [LEDGER] / [REFERRAL] / [SEARCH] / [REVEAL] / [NOTIFY] tag so
one grep pulls a whole money trail out of the file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from platelink.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_FILE_NAME = "platelink.log"

# Libraries that are chatty at INFO
_QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "urllib3")

_configured = False


def _log_dir() -> str:
    if os.path.isabs(settings.LOG_DIR):
        return settings.LOG_DIR
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(__file__)))
    return os.path.join(project_root, settings.LOG_DIR)


def configure_logging(level: str = None, log_dir: str = None):
    """Attach console + rotating file handlers to the root logger. Runs once."""
    global _configured
    if _configured:
        return
    _configured = True

    level = (level or settings.LOG_LEVEL).upper()
    log_dir = log_dir or _log_dir()
    os.makedirs(log_dir, exist_ok=True)
    fmt = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(fmt)

    # 10 × 5MB, oldest dropped
    file_handler = RotatingFileHandler(
        filename=os.path.join(log_dir, LOG_FILE_NAME),
        maxBytes=5 * 1024 * 1024,
        backupCount=10,
        encoding="utf-8",
    )
    file_handler.setFormatter(fmt)

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Named logger for a module; call at import time."""
    configure_logging()
    return logging.getLogger(name)
