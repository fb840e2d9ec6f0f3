#!/usr/bin/env python
"""
Database initialization and sample data seeding.

Creates the album/review schema and, unless --schema-only is given, writes
generated albums with 0-5 reviews each. Seeded aggregates are computed from
the seeded reviews.

Usage:
    # Fresh database with 20 sample albums
    python scripts/seed_albums.py --reset --albums 20

    # Reproducible data
    python scripts/seed_albums.py --reset --albums 10 --seed 42

    # Only create tables
    python scripts/seed_albums.py --schema-only
"""

import sys
import logging
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from album_reviews.database import init_database, verify_schema
from album_reviews.database.connection import DEFAULT_DB_PATH
from album_reviews.database.seed import generate_fake_albums_and_reviews, seed_albums
from album_reviews.utils.logging_config import configure_script_logging

logger = logging.getLogger(__name__)


def main():
    """Main entry point for database seeding."""
    
    parser = argparse.ArgumentParser(
        description="Initialize the album reviews database and add sample data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        '--reset',
        action='store_true',
        help='Drop and recreate database tables (WARNING: deletes all data)'
    )
    parser.add_argument(
        '--schema-only',
        action='store_true',
        help='Create tables without adding sample data'
    )
    parser.add_argument(
        '--db-path',
        type=str,
        default=DEFAULT_DB_PATH,
        help=f'Path to SQLite database file (default: {DEFAULT_DB_PATH})'
    )
    parser.add_argument(
        '--albums',
        type=int,
        default=5,
        help='Number of sample albums to generate (default: 5)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for reproducible sample data'
    )
    parser.add_argument(
        '--debug',
        action='store_true',
        help='Enable debug logging'
    )
    
    args = parser.parse_args()
    configure_script_logging(debug=args.debug)
    
    db_manager = init_database(db_path=args.db_path, reset=args.reset)
    try:
        if not verify_schema(db_manager):
            logger.error("Database schema is incomplete")
            return 1
        
        if args.schema_only:
            return 0
        
        data = generate_fake_albums_and_reviews(count=args.albums, seed=args.seed)
        album_ids = seed_albums(db_manager, data)
        review_total = sum(len(entry["reviews"]) for entry in data)
        logger.info(f"Added {len(album_ids)} albums and {review_total} reviews to {args.db_path}")
        return 0
    finally:
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
