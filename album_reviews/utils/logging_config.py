"""
Logging presets for the API server and the maintenance scripts.

Records carry the thread name: review transactions run on FastAPI worker
threads and watch refreshes on ``album-watch`` pool threads, and telling them
apart is most of what debugging this service takes.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-8s [%(threadName)s] %(name)s: %(message)s"
LOG_DIR = Path("logs")

# Chatty at INFO; SQL echo is controlled by DatabaseManager(echo=...)
QUIET_LOGGERS = ("sqlalchemy.engine", "uvicorn.access")


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace root handlers with a console handler and, optionally, a rotating file.

    Args:
        level: Logging level name
        log_file: File name under ``logs/``; console only when None
    """
    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(LOG_DIR / log_file, maxBytes=5 * 1024 * 1024, backupCount=3))

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, handlers=handlers, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_api_logging(level: str = "INFO", debug: bool = False):
    """Console plus logs/api.log for the uvicorn process."""
    setup_logging(level="DEBUG" if debug else level, log_file="api.log")


def configure_script_logging(debug: bool = False):
    """Console only, for scripts/seed_albums.py."""
    setup_logging(level="DEBUG" if debug else "INFO")
