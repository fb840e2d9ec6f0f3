"""
Album API endpoints.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from album_reviews.api.dependencies import get_db
from album_reviews.api.models.album import AlbumCreate, AlbumResponse, AlbumList, CoverArtUpdate
from album_reviews.core.query import AlbumFilter, compose_album_query
from album_reviews.database import crud

router = APIRouter(prefix="/api/albums", tags=["albums"])


def album_filter_params(
    genre: str | None = Query(None),
    year: int | None = Query(None),
    rating_range: str | None = Query(None, alias="ratingRange"),
    sort: str | None = Query(None),
) -> AlbumFilter:
    """Collect listing filters from the query string."""
    return AlbumFilter(genre=genre, year=year, rating_range=rating_range, sort=sort)


@router.get("", response_model=AlbumList)
def list_albums(
    filters: AlbumFilter = Depends(album_filter_params),
    limit: int | None = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    """List albums matching the filters, best rated (or most reviewed) first."""
    albums = crud.get_albums(db, compose_album_query(filters), limit=limit)
    return AlbumList(
        albums=[AlbumResponse.model_validate(a) for a in albums],
        total=len(albums),
    )


@router.post("", response_model=AlbumResponse)
def create_album(album_in: AlbumCreate, db: Session = Depends(get_db)):
    """Add an album to the catalog with no ratings."""
    try:
        return crud.create_album(
            db,
            name=album_in.name,
            genre=album_in.genre,
            year=album_in.year,
            cover_art=album_in.cover_art,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/{album_id}", response_model=AlbumResponse)
def get_album(album_id: str, db: Session = Depends(get_db)):
    """Get album details by ID."""
    album = crud.get_album(db, album_id)
    if not album:
        raise HTTPException(status_code=404, detail="Album not found")
    return album


@router.put("/{album_id}/cover", response_model=AlbumResponse)
def update_cover_art(album_id: str, cover_in: CoverArtUpdate, db: Session = Depends(get_db)):
    """Store the public URL of a newly uploaded cover image."""
    try:
        album = crud.update_album_cover_art(db, album_id, cover_in.cover_art)
    except StaleDataError:
        raise HTTPException(status_code=409, detail="Album is being updated, try again")
    if not album:
        raise HTTPException(status_code=404, detail="Album not found")
    return album
