"""
System API endpoints (health).
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from album_reviews.api.dependencies import get_change_hub, get_db
from album_reviews.database import crud
from album_reviews.realtime.hub import ChangeHub

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["system"])


@router.get("/health")
def health_check(
    db: Session = Depends(get_db),
    hub: ChangeHub = Depends(get_change_hub),
):
    """Health check: database reachable and number of live watches."""
    try:
        album_count = crud.get_album_count(db)
        review_count = crud.get_review_count(db)
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return {"status": "unhealthy", "database": str(e), "watches": hub.watch_count}
    return {
        "status": "healthy",
        "database": "connected",
        "albums": album_count,
        "reviews": review_count,
        "watches": hub.watch_count,
    }
