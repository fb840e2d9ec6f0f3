"""
Plain, session-independent views of albums and reviews.

Watches and the aggregation transaction hand these to callers instead of ORM
instances so results stay valid after the session that loaded them is closed.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class AlbumSnapshot:
    """Materialized album row."""

    id: str
    name: str
    genre: str
    year: Optional[int]
    cover_art: Optional[str]
    num_ratings: int
    sum_rating: float
    avg_rating: float
    rating_range: str
    created_at: datetime

    @classmethod
    def from_model(cls, album) -> "AlbumSnapshot":
        return cls(
            id=album.id,
            name=album.name,
            genre=album.genre,
            year=album.year,
            cover_art=album.cover_art,
            num_ratings=album.num_ratings,
            sum_rating=album.sum_rating,
            avg_rating=album.avg_rating,
            rating_range=album.rating_range,
            created_at=album.created_at,
        )


@dataclass(frozen=True)
class ReviewSnapshot:
    """Materialized review row."""

    id: str
    album_id: str
    rating: float
    text: str
    user_id: str
    created_at: datetime

    @classmethod
    def from_model(cls, review) -> "ReviewSnapshot":
        return cls(
            id=review.id,
            album_id=review.album_id,
            rating=review.rating,
            text=review.text,
            user_id=review.user_id,
            created_at=review.created_at,
        )
