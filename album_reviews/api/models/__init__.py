"""
Pydantic schemas for API request/response validation.
"""

from album_reviews.api.models.album import AlbumCreate, AlbumResponse, AlbumList, CoverArtUpdate
from album_reviews.api.models.review import ReviewCreate, ReviewResponse, ReviewList

__all__ = [
    "AlbumCreate",
    "AlbumResponse",
    "AlbumList",
    "CoverArtUpdate",
    "ReviewCreate",
    "ReviewResponse",
    "ReviewList",
]
