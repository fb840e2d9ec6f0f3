"""
SQLAlchemy ORM models for the album reviews database.

This module defines the Album and Review tables. Albums carry denormalized
rating aggregates; reviews live under exactly one album and are append-only.
"""

import uuid
from datetime import datetime, timezone
from typing import List
from sqlalchemy import (
    String, Integer, Float, Text, ForeignKey, DateTime,
    CheckConstraint, Index, event, inspect
)
from sqlalchemy.orm import DeclarativeBase, relationship, Mapped, mapped_column, object_session

from album_reviews.core.exceptions import ImmutableFieldError
from album_reviews.core.ratings import rating_range_for


# Session.info flags that unlock aggregate writes
AGGREGATE_WRITER = "aggregate_writer"
BULK_SEED = "bulk_seed"

AGGREGATE_FIELDS = ("num_ratings", "sum_rating", "avg_rating", "rating_range")


def new_id() -> str:
    """Generate an opaque document id."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class Album(Base):
    """
    Album table storing catalog metadata and rating aggregates.
    
    Attributes:
        id: Opaque primary key, assigned at creation
        name: Album name
        genre: Genre label used for filtering
        year: Release year used for filtering
        cover_art: Public URL of the cover image
        num_ratings: Number of reviews
        sum_rating: Sum of all review ratings
        avg_rating: sum_rating / num_ratings, 0 when there are no reviews
        rating_range: Bucket label derived from avg_rating
        version: Optimistic concurrency counter
        created_at: Timestamp when record was created
    """
    __tablename__ = 'albums'
    
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    genre: Mapped[str] = mapped_column(String(50), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=True)
    cover_art: Mapped[str] = mapped_column(Text, nullable=True)
    num_ratings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sum_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    avg_rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    rating_range: Mapped[str] = mapped_column(String(20), nullable=False, default="Underrated")
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    # Relationships
    reviews: Mapped[List["Review"]] = relationship(
        "Review",
        back_populates="album",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Review.created_at.desc()"
    )
    
    __mapper_args__ = {"version_id_col": version}
    
    # Constraints and indexes for the listing filters and sort keys
    __table_args__ = (
        CheckConstraint("num_ratings >= 0", name='check_num_ratings'),
        CheckConstraint("sum_rating >= 0", name='check_sum_rating'),
        Index('idx_albums_genre', 'genre'),
        Index('idx_albums_year', 'year'),
        Index('idx_albums_rating_range', 'rating_range'),
        Index('idx_albums_avg_rating', 'avg_rating'),
        Index('idx_albums_num_ratings', 'num_ratings'),
    )
    
    def __repr__(self) -> str:
        return f"<Album(id='{self.id}', name='{self.name}', avg_rating={self.avg_rating}, num_ratings={self.num_ratings})>"


class Review(Base):
    """
    Review table storing one user's rating of an album.
    
    Attributes:
        id: Opaque primary key
        album_id: Foreign key to albums table
        rating: Rating value (1.0 to 5.0)
        text: Free-text body (may be empty)
        user_id: Author identity, possibly a placeholder
        created_at: Server-assigned timestamp
    """
    __tablename__ = 'reviews'
    
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    album_id: Mapped[str] = mapped_column(
        String(32),
        ForeignKey('albums.id', ondelete='CASCADE'),
        nullable=False
    )
    rating: Mapped[float] = mapped_column(Float, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    
    album: Mapped["Album"] = relationship("Album", back_populates="reviews")
    
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name='check_rating_range'),
        Index('idx_reviews_album_created', 'album_id', 'created_at'),
    )
    
    def __repr__(self) -> str:
        return f"<Review(id='{self.id}', album_id='{self.album_id}', rating={self.rating})>"


def _session_flag(target, flag: str) -> bool:
    session = object_session(target)
    return session is not None and bool(session.info.get(flag))


@event.listens_for(Album, "before_insert")
def check_new_album_aggregates(mapper, connection, target):
    """New albums start with empty aggregates unless bulk seeding."""
    if _session_flag(target, BULK_SEED):
        return
    if target.num_ratings or target.sum_rating or target.avg_rating:
        raise ImmutableFieldError(
            "New albums must start with zero ratings; use the review transaction"
        )
    if target.rating_range is not None and target.rating_range != rating_range_for(0.0):
        raise ImmutableFieldError(
            f"New albums start as {rating_range_for(0.0)!r}, not {target.rating_range!r}"
        )


@event.listens_for(Album, "before_update")
def check_aggregate_writer(mapper, connection, target):
    """Only the aggregation transaction may change rating aggregates."""
    if _session_flag(target, AGGREGATE_WRITER) or _session_flag(target, BULK_SEED):
        return
    state = inspect(target)
    changed = [
        name for name in AGGREGATE_FIELDS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        raise ImmutableFieldError(
            f"Aggregate fields {changed} of album {target.id} can only be "
            "changed by adding a review"
        )


@event.listens_for(Review, "before_insert")
def check_review_writer(mapper, connection, target):
    """Reviews are only added together with their album's aggregates."""
    if _session_flag(target, AGGREGATE_WRITER) or _session_flag(target, BULK_SEED):
        return
    raise ImmutableFieldError(
        f"Review for album {target.album_id} must be added through the review transaction"
    )


@event.listens_for(Review, "before_update")
def reject_review_update(mapper, connection, target):
    """Reviews are immutable once written."""
    raise ImmutableFieldError(f"Review {target.id} cannot be modified")
