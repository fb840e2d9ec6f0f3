"""
CRUD operations for Album and Review models.

Reviews are append-only: they are created by the aggregation transaction
(album_reviews.core.aggregation) and there is no update or delete here.
Album rating aggregates are never written from this module either.
"""

import logging
from typing import List, Optional
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from album_reviews.database.models import Album, Review

logger = logging.getLogger(__name__)

# A review committing between our read and write bumps the album version
COVER_UPDATE_ATTEMPTS = 2


# ==================== ALBUM CRUD OPERATIONS ====================

def create_album(
    session: Session,
    name: str,
    genre: str,
    year: Optional[int] = None,
    cover_art: Optional[str] = None
) -> Album:
    """
    Create a new album with no ratings.
    
    Args:
        session: Database session
        name: Album name
        genre: Genre label
        year: Release year
        cover_art: Cover image URL
        
    Returns:
        Created Album object
        
    Raises:
        ValueError: If name or genre is empty
    """
    if not name or not name.strip():
        raise ValueError("Album name must not be empty")
    if not genre or not genre.strip():
        raise ValueError("Album genre must not be empty")
    
    album = Album(
        name=name,
        genre=genre,
        year=year,
        cover_art=cover_art
    )
    session.add(album)
    session.commit()
    session.refresh(album)
    return album


def get_album(session: Session, album_id: str) -> Optional[Album]:
    """
    Get an album by ID.
    
    Args:
        session: Database session
        album_id: Album ID
        
    Returns:
        Album object or None if not found (or the id is empty)
    """
    if not album_id:
        return None
    return session.get(Album, album_id)


def get_albums(session: Session, album_query, limit: Optional[int] = None) -> List[Album]:
    """
    Execute a composed album query.
    
    Args:
        session: Database session
        album_query: AlbumQuery from album_reviews.core.query.compose_album_query
        limit: Maximum number of records to return
        
    Returns:
        List of Album objects in the query's order
    """
    stmt = album_query.to_select()
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def get_album_count(session: Session) -> int:
    """
    Get total count of albums.
    
    Args:
        session: Database session
        
    Returns:
        Total number of albums
    """
    return session.scalar(select(func.count(Album.id)))


def update_album_cover_art(
    session: Session,
    album_id: str,
    cover_art: str
) -> Optional[Album]:
    """
    Replace an album's cover image reference.
    
    The URL comes from the image uploader and is stored as-is. If a review
    lands on the album first, the row is re-read and the write tried again;
    a second conflict raises StaleDataError.
    
    Args:
        session: Database session
        album_id: Album ID
        cover_art: Public URL of the new cover image
        
    Returns:
        Updated Album object or None if not found
    """
    for attempt in range(1, COVER_UPDATE_ATTEMPTS + 1):
        album = get_album(session, album_id)
        if not album:
            return None
        album.cover_art = cover_art
        try:
            session.commit()
        except StaleDataError:
            session.rollback()
            if attempt == COVER_UPDATE_ATTEMPTS:
                logger.error(f"Cover update for album {album_id} lost {attempt} races with reviews")
                raise
            logger.info(f"Album {album_id} changed during cover update; retrying")
            continue
        session.refresh(album)
        return album


# ==================== REVIEW READ OPERATIONS ====================

def get_review(session: Session, review_id: str) -> Optional[Review]:
    """
    Get a review by ID.
    
    Args:
        session: Database session
        review_id: Review ID
        
    Returns:
        Review object or None if not found
    """
    if not review_id:
        return None
    return session.get(Review, review_id)


def get_reviews_by_album(
    session: Session,
    album_id: str,
    skip: int = 0,
    limit: Optional[int] = None
) -> List[Review]:
    """
    Get the reviews of an album, newest first.
    
    Args:
        session: Database session
        album_id: Album ID
        skip: Number of records to skip
        limit: Maximum number of records to return
        
    Returns:
        List of Review objects (empty when the album has none or does not exist)
    """
    stmt = (
        select(Review)
        .where(Review.album_id == album_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
        .offset(skip)
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def get_review_count(session: Session, album_id: Optional[str] = None) -> int:
    """
    Count reviews, optionally for one album.
    
    Args:
        session: Database session
        album_id: Restrict the count to this album
        
    Returns:
        Number of reviews
    """
    stmt = select(func.count(Review.id))
    if album_id is not None:
        stmt = stmt.where(Review.album_id == album_id)
    return session.scalar(stmt)
