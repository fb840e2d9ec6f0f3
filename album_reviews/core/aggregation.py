"""
Rating aggregation transaction.

Adding a review is a single read-modify-write: read the album's count and
sum, fold in the new rating, write the new aggregates (average and rating
range included) and insert the review, all in one database transaction.

Concurrent submissions for the same album are serialized optimistically. The
album row is versioned (``version_id_col``), so the UPDATE of a transaction
that read a stale row matches nothing and SQLAlchemy raises StaleDataError.
The attempt is rolled back and replayed from a fresh read, with exponential
backoff, until it commits or runs out of attempts.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from album_reviews.core.exceptions import (
    AlbumNotFoundError,
    InvalidReviewError,
    TransactionConflictError,
)
from album_reviews.core.ratings import add_rating, validate_rating
from album_reviews.core.snapshots import ReviewSnapshot
from album_reviews.database.models import AGGREGATE_WRITER, Album, Review, new_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_BASE_DELAY = 0.01  # seconds
DEFAULT_MAX_DELAY = 0.5

ANONYMOUS_USER = "anonymous"

# Driver messages that mean "another transaction holds the row/lock"
_CONFLICT_MARKERS = ("database is locked", "database table is locked", "busy", "deadlock", "could not serialize")


@dataclass(frozen=True)
class ReviewPayload:
    """Validated review submission."""

    rating: float
    text: str
    user_id: str


def parse_review(review: Mapping[str, Any]) -> ReviewPayload:
    """
    Validate a review submission.
    
    Args:
        review: Mapping with a required ``rating`` and optional ``text`` and
            ``user_id`` (``userId`` is accepted too)
        
    Returns:
        ReviewPayload
        
    Raises:
        InvalidReviewError: If the payload is empty, lacks a rating, or the
            rating is outside 1 to 5
    """
    if not review:
        raise InvalidReviewError("A valid review has not been provided.")
    if "rating" not in review or review["rating"] is None:
        raise InvalidReviewError("A review must include a rating.")
    rating = validate_rating(review["rating"])
    
    text = review.get("text") or ""
    if not isinstance(text, str):
        raise InvalidReviewError("Review text must be a string.")
    
    user_id = review.get("user_id") or review.get("userId") or ANONYMOUS_USER
    return ReviewPayload(rating=rating, text=text, user_id=str(user_id))


def _is_conflict(error: Exception) -> bool:
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, OperationalError):
        message = str(error.orig if error.orig is not None else error).lower()
        return any(marker in message for marker in _CONFLICT_MARKERS)
    return False


def _backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Exponential backoff with full jitter."""
    return random.uniform(0, min(max_delay, base_delay * (2 ** (attempt - 1))))


def _apply_review(db_manager, album_id: str, payload: ReviewPayload) -> ReviewSnapshot:
    """Run one attempt of the transaction in a fresh session."""
    with db_manager.session_scope() as session:
        session.info[AGGREGATE_WRITER] = True
        
        album = session.get(Album, album_id)
        if album is None:
            raise AlbumNotFoundError(album_id)
        
        aggregates = add_rating(album.num_ratings, album.sum_rating, payload.rating)
        album.num_ratings = aggregates.num_ratings
        album.sum_rating = aggregates.sum_rating
        album.avg_rating = aggregates.avg_rating
        album.rating_range = aggregates.rating_range
        
        review = Review(
            id=new_id(),
            album_id=album_id,
            rating=payload.rating,
            text=payload.text,
            user_id=payload.user_id,
            created_at=utcnow(),
        )
        session.add(review)
        session.flush()
        snapshot = ReviewSnapshot.from_model(review)
    return snapshot


def add_review_to_album(
    db_manager,
    album_id: str,
    review: Mapping[str, Any],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> ReviewSnapshot:
    """
    Add a review to an album and update the album's aggregates atomically.
    
    Args:
        db_manager: DatabaseManager for the store
        album_id: ID of the album being reviewed
        review: Review data; must include ``rating``
        max_attempts: Attempts before giving up on a conflicting album
        base_delay: First backoff delay in seconds
        max_delay: Cap on a single backoff delay in seconds
        
    Returns:
        ReviewSnapshot of the stored review
        
    Raises:
        InvalidReviewError: Missing album id, missing payload, or bad rating
        AlbumNotFoundError: The album does not exist
        TransactionConflictError: Still conflicting after max_attempts
    """
    if not album_id:
        logger.error("Rejected review: no album ID has been provided")
        raise InvalidReviewError("No album ID has been provided.")
    try:
        payload = parse_review(review)
    except InvalidReviewError as e:
        logger.error(f"Rejected review for album {album_id}: {e}")
        raise
    
    for attempt in range(1, max_attempts + 1):
        try:
            snapshot = _apply_review(db_manager, album_id, payload)
        except AlbumNotFoundError:
            logger.error(f"There was an error adding the rating to album {album_id}: album does not exist")
            raise
        except (StaleDataError, OperationalError) as e:
            if not _is_conflict(e):
                logger.exception(f"There was an error adding the rating to album {album_id}")
                raise
            if attempt == max_attempts:
                logger.error(
                    f"There was an error adding the rating to album {album_id}: "
                    f"conflict persisted after {attempt} attempts ({e})"
                )
                raise TransactionConflictError(album_id, attempt) from e
            delay = _backoff_delay(attempt, base_delay, max_delay)
            logger.debug(f"Conflict adding rating to album {album_id} (attempt {attempt}), retrying in {delay:.3f}s")
            time.sleep(delay)
        except Exception:
            logger.exception(f"There was an error adding the rating to album {album_id}")
            raise
        else:
            logger.info(
                f"Added review {snapshot.id} to album {album_id} "
                f"(rating={snapshot.rating}, attempt={attempt})"
            )
            return snapshot
