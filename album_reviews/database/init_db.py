"""
Database initialization and schema creation.
"""

import logging

from sqlalchemy import inspect

from album_reviews.database.connection import DatabaseManager, DEFAULT_DB_PATH
from album_reviews.database.models import Base

logger = logging.getLogger(__name__)


def init_database(db_path: str = DEFAULT_DB_PATH, reset: bool = False) -> DatabaseManager:
    """
    Initialize the database and create all tables.
    
    Args:
        db_path: Path to SQLite database file or SQLAlchemy URL
        reset: If True, drop existing tables before creating new ones
        
    Returns:
        DatabaseManager instance
    """
    db_manager = DatabaseManager(db_path=db_path)
    
    if reset:
        logger.info("Resetting database (dropping all tables)...")
        db_manager.reset_database()
    else:
        db_manager.create_tables()
    logger.info(f"Database tables ready at {db_manager.database_url}")
    
    return db_manager


def verify_schema(db_manager: DatabaseManager) -> bool:
    """
    Verify that all tables exist in the database.
    
    Args:
        db_manager: DatabaseManager instance
        
    Returns:
        True if every model table exists
    """
    existing = set(inspect(db_manager.engine).get_table_names())
    missing = [name for name in Base.metadata.tables if name not in existing]
    if missing:
        logger.warning(f"Missing tables: {missing}")
        return False
    return True
