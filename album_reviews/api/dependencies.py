"""
FastAPI dependency injection for the store handle, sessions, watches and caller identity.

The DatabaseManager and ChangeHub are created once by the application
lifespan and kept on ``app.state``; nothing here builds its own client.
"""

from typing import Generator, Optional
from fastapi import Header, Request
from sqlalchemy.orm import Session

from album_reviews.database.connection import DatabaseManager
from album_reviews.realtime.hub import ChangeHub


def get_db_manager(request: Request) -> DatabaseManager:
    """Return the process-wide DatabaseManager."""
    return request.app.state.db_manager


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield database session for FastAPI Depends()."""
    with request.app.state.db_manager.session_scope() as session:
        yield session


def get_change_hub(request: Request) -> ChangeHub:
    """Return the process-wide ChangeHub."""
    return request.app.state.change_hub


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    """
    Resolve the caller identity supplied by the auth layer.
    
    Returns:
        The user id, or None for anonymous callers
    """
    if x_user_id is None or not x_user_id.strip():
        return None
    return x_user_id.strip()
