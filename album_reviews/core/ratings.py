"""
Rating math shared by the aggregation transaction and bulk seeding.

An album's aggregates are derived state: ``avg_rating`` and ``rating_range``
are always computed from ``num_ratings`` and ``sum_rating`` here, never
supplied by callers.
"""

import math
from dataclasses import dataclass
from numbers import Real
from typing import Iterable

from album_reviews.core.exceptions import InvalidReviewError

MIN_RATING = 1.0
MAX_RATING = 5.0

HIGHLY_RATED = "Highly Rated"
POPULAR = "Popular"
EMERGING = "Emerging"
UNDERRATED = "Underrated"

# (lower bound, label), checked from the top down
RATING_RANGES = (
    (4.5, HIGHLY_RATED),
    (3.5, POPULAR),
    (2.5, EMERGING),
)

RATING_RANGE_LABELS = (HIGHLY_RATED, POPULAR, EMERGING, UNDERRATED)


@dataclass(frozen=True)
class RatingAggregates:
    """A consistent set of aggregate fields for one album."""

    num_ratings: int
    sum_rating: float
    avg_rating: float
    rating_range: str


def rating_range_for(avg_rating: float) -> str:
    """
    Map an average rating to its bucket label.

    Boundary values belong to the higher bucket, so 4.5 is "Highly Rated".
    """
    for lower_bound, label in RATING_RANGES:
        if avg_rating >= lower_bound:
            return label
    return UNDERRATED


def validate_rating(value) -> float:
    """
    Validate a submitted rating and return it as a float.
    
    Args:
        value: Rating from the caller
        
    Returns:
        The rating as a float
        
    Raises:
        InvalidReviewError: If the value is not a finite number between 1 and 5
    """
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidReviewError(f"Rating must be a number, got {value!r}")
    rating = float(value)
    if not math.isfinite(rating) or not (MIN_RATING <= rating <= MAX_RATING):
        raise InvalidReviewError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {value!r}"
        )
    return rating


def aggregates_for(num_ratings: int, sum_rating: float) -> RatingAggregates:
    """Build aggregates from a count and a sum; an empty album averages 0."""
    avg_rating = sum_rating / num_ratings if num_ratings else 0.0
    return RatingAggregates(
        num_ratings=num_ratings,
        sum_rating=sum_rating,
        avg_rating=avg_rating,
        rating_range=rating_range_for(avg_rating),
    )


def add_rating(num_ratings, sum_rating, rating: float) -> RatingAggregates:
    """Fold one more rating into existing aggregates. Missing values count as 0."""
    return aggregates_for((num_ratings or 0) + 1, (sum_rating or 0.0) + rating)


def aggregates_from_ratings(ratings: Iterable[float]) -> RatingAggregates:
    """Compute aggregates for a full list of ratings (used by bulk seeding)."""
    values = [float(r) for r in ratings]
    return aggregates_for(len(values), sum(values))
