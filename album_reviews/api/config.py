"""
API configuration loaded from environment or defaults.
"""

import os
from pathlib import Path


def get_database_path() -> str:
    """Get database file path (or full SQLAlchemy URL) from env or default."""
    url = os.getenv("DATABASE_URL", "")
    if url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "")
    return url or str(Path(__file__).resolve().parents[2] / "data" / "albums.db")


def get_log_level() -> str:
    """Get log level from env or default."""
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_api_host() -> str:
    """Get API host for binding."""
    return os.getenv("API_HOST", "0.0.0.0")


def get_api_port() -> int:
    """Get API port."""
    return int(os.getenv("API_PORT", "8000"))


def get_review_max_attempts() -> int:
    """Attempts the review transaction makes before reporting a conflict."""
    return int(os.getenv("REVIEW_TX_MAX_ATTEMPTS", "10"))


def get_review_base_delay() -> float:
    """First retry delay (seconds) of the review transaction."""
    return float(os.getenv("REVIEW_TX_BASE_DELAY", "0.01"))


def get_watch_workers() -> int:
    """Threads used to refresh realtime watches."""
    return int(os.getenv("WATCH_WORKERS", "4"))
