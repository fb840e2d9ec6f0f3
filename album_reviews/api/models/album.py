"""
Pydantic schemas for Album API.

Responses use the camelCase field names clients already know
(numRatings, avgRating, ratingRange, coverArt, timestamp).
"""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, Field


class AlbumCreate(BaseModel):
    """Request body for creating an album. Aggregates always start at zero."""

    name: str = Field(..., min_length=1, max_length=200)
    genre: str = Field(..., min_length=1, max_length=50)
    year: int | None = Field(None, ge=1000, le=3000)
    cover_art: str | None = Field(None, validation_alias=AliasChoices("coverArt", "cover_art"))


class CoverArtUpdate(BaseModel):
    """Request body carrying the public URL produced by the image uploader."""

    cover_art: str = Field(..., min_length=1, validation_alias=AliasChoices("coverArt", "cover_art"))


class AlbumResponse(BaseModel):
    """Response model for a single album."""

    id: str
    name: str
    genre: str
    year: int | None
    cover_art: str | None = Field(serialization_alias="coverArt")
    num_ratings: int = Field(serialization_alias="numRatings")
    sum_rating: float = Field(serialization_alias="sumRating")
    avg_rating: float = Field(serialization_alias="avgRating")
    rating_range: str = Field(serialization_alias="ratingRange")
    created_at: datetime = Field(serialization_alias="timestamp")

    class Config:
        from_attributes = True


class AlbumList(BaseModel):
    """Response model for a filtered album listing."""

    albums: list[AlbumResponse]
    total: int
