"""
Pydantic schemas for Review API.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    """Request body for submitting a review. The author comes from the X-User-Id header."""

    rating: float = Field(..., ge=1.0, le=5.0)
    text: str = Field("", max_length=5000)


class ReviewResponse(BaseModel):
    """Response model for review."""

    id: str
    album_id: str = Field(serialization_alias="albumId")
    rating: float
    text: str
    user_id: str = Field(serialization_alias="userId")
    created_at: datetime = Field(serialization_alias="timestamp")

    class Config:
        from_attributes = True


class ReviewList(BaseModel):
    """Response model for an album's reviews, newest first."""

    album_id: str = Field(serialization_alias="albumId")
    reviews: list[ReviewResponse]
