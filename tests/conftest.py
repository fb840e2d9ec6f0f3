"""
Shared fixtures: a file-backed SQLite database per test.

A file (rather than :memory:) lets several threads hold their own
connections, which the concurrency and realtime tests rely on.
"""

import pytest

from album_reviews.database import crud
from album_reviews.database.connection import DatabaseManager


@pytest.fixture
def db_manager(tmp_path):
    """Create a fresh database with all tables."""
    manager = DatabaseManager(db_path=str(tmp_path / "albums.db"))
    manager.create_tables()
    yield manager
    manager.close()


@pytest.fixture
def session(db_manager):
    """Create a new database session for testing."""
    session = db_manager.get_session()
    yield session
    session.close()


@pytest.fixture
def album_id(db_manager):
    """Create an album with no ratings and return its ID."""
    with db_manager.session_scope() as session:
        album = crud.create_album(
            session,
            name="Paper Lanterns",
            genre="Rock",
            year=1999,
            cover_art="https://example.com/paper-lanterns.png"
        )
        return album.id
