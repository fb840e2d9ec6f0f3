"""
Review API endpoints.

Reviews can be listed and added; there is no route to edit or
delete one.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from album_reviews.api.config import get_review_base_delay, get_review_max_attempts
from album_reviews.api.dependencies import get_current_user_id, get_db, get_db_manager
from album_reviews.api.models.review import ReviewCreate, ReviewList, ReviewResponse
from album_reviews.core.aggregation import add_review_to_album
from album_reviews.core.exceptions import AlbumNotFoundError, InvalidReviewError, TransactionConflictError
from album_reviews.database import crud
from album_reviews.database.connection import DatabaseManager

router = APIRouter(prefix="/api/albums/{album_id}/reviews", tags=["reviews"])


@router.get("", response_model=ReviewList)
def list_reviews(album_id: str, db: Session = Depends(get_db)):
    """Get an album's reviews, newest first."""
    if not crud.get_album(db, album_id):
        raise HTTPException(status_code=404, detail="Album not found")
    reviews = crud.get_reviews_by_album(db, album_id)
    return ReviewList(
        album_id=album_id,
        reviews=[ReviewResponse.model_validate(r) for r in reviews],
    )


@router.post("", response_model=ReviewResponse)
def create_review(
    album_id: str,
    review_in: ReviewCreate,
    user_id: str | None = Depends(get_current_user_id),
    db_manager: DatabaseManager = Depends(get_db_manager),
):
    """Add a review and update the album's rating aggregates."""
    if user_id is None:
        raise HTTPException(status_code=401, detail="Sign in to leave a review")
    try:
        review = add_review_to_album(
            db_manager,
            album_id,
            {"rating": review_in.rating, "text": review_in.text, "user_id": user_id},
            max_attempts=get_review_max_attempts(),
            base_delay=get_review_base_delay(),
        )
    except AlbumNotFoundError:
        raise HTTPException(status_code=404, detail="Album not found")
    except InvalidReviewError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except TransactionConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ReviewResponse.model_validate(review)
