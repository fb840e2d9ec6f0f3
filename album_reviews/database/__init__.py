"""
Database module for the album reviews service.

This module provides database models, connection management, and CRUD operations
for the SQLite database using SQLAlchemy ORM.
"""

from album_reviews.database.models import Base, Album, Review
from album_reviews.database.connection import DatabaseManager
from album_reviews.database.init_db import init_database, verify_schema
from album_reviews.database import crud

__all__ = [
    # Models
    'Base',
    'Album',
    'Review',
    # Connection
    'DatabaseManager',
    # Initialization
    'init_database',
    'verify_schema',
    # CRUD module
    'crud',
]
