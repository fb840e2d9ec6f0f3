"""
Database connection management using SQLAlchemy.

This module handles database engine creation, session management, and
provides the explicit store handle (DatabaseManager) that every component
receives instead of reaching for a process-wide client.
"""

import os
from contextlib import contextmanager
from typing import Generator
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from album_reviews.database.models import Base


# Default database path
DEFAULT_DB_PATH = "data/albums.db"

# Seconds a writer waits for SQLite's write lock before giving up
SQLITE_BUSY_TIMEOUT = 30


def get_database_url(db_path: str = DEFAULT_DB_PATH) -> str:
    """
    Get a database URL from a SQLite path or pass a full URL through.
    
    Args:
        db_path: Path to SQLite database file, ":memory:", or a SQLAlchemy URL
        
    Returns:
        SQLAlchemy database URL
    """
    if "://" in db_path:
        return db_path
    if db_path == ":memory:":
        return "sqlite://"
    
    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    
    abs_path = os.path.abspath(db_path)
    return f"sqlite:///{abs_path}"


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """
    Enable foreign key constraints for SQLite.
    
    SQLite disables foreign key constraints by default, which would let
    reviews outlive their album.
    """
    if dbapi_conn.__class__.__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class DatabaseManager:
    """
    Database connection manager.
    
    Handles engine creation, session management, and database initialization.
    Create one per process at startup, share it, and close it at shutdown.
    """
    
    def __init__(self, db_path: str = DEFAULT_DB_PATH, echo: bool = False):
        """
        Initialize database manager.
        
        Args:
            db_path: Path to SQLite database file, ":memory:", or a SQLAlchemy URL
            echo: If True, log all SQL statements (useful for debugging)
        """
        self.db_path = db_path
        self.database_url = get_database_url(db_path)
        
        engine_kwargs = {"echo": echo}
        if self.database_url.startswith("sqlite"):
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": SQLITE_BUSY_TIMEOUT,
            }
            # An in-memory database only exists on its one connection
            if self.database_url == "sqlite://":
                engine_kwargs["poolclass"] = StaticPool
        
        self.engine = create_engine(self.database_url, **engine_kwargs)
        
        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine
        )
    
    @property
    def is_shared_connection(self) -> bool:
        """True when every session shares one connection (in-memory SQLite)."""
        return self.database_url == "sqlite://"
    
    def create_tables(self):
        """
        Create all tables defined in the models.
        
        This creates tables if they don't exist. Existing tables are not modified.
        """
        Base.metadata.create_all(bind=self.engine)
    
    def drop_tables(self):
        """
        Drop all tables defined in the models.
        
        WARNING: This will delete all data in the database!
        """
        Base.metadata.drop_all(bind=self.engine)
    
    def reset_database(self):
        """
        Drop and recreate all tables.
        
        WARNING: This will delete all data in the database!
        """
        self.drop_tables()
        self.create_tables()
    
    def get_session(self) -> Session:
        """
        Get a new database session.
        
        Returns:
            SQLAlchemy Session object
            
        Note:
            Prefer session_scope(); a bare session must be closed by the caller.
        """
        return self.SessionLocal()
    
    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Context manager for database sessions.
        
        Automatically commits on success and rolls back on failure.
        
        Usage:
            with db_manager.session_scope() as session:
                session.add(album)
        
        Yields:
            SQLAlchemy Session object
        """
        session = self.SessionLocal()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
    
    def close(self):
        """Close the database engine and all connections."""
        self.engine.dispose()
