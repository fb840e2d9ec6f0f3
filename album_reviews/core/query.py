"""
Album query composition.

Folds the optional listing criteria (genre, year, rating range, sort) into an
immutable query description. Composition is pure; executing the query is up
to the caller, either as a one-shot fetch (``crud.get_albums``) or as a live
watch (``ChangeHub.watch_albums``).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

from sqlalchemy import Select, select

from album_reviews.database.models import Album

logger = logging.getLogger(__name__)

SORT_BY_RATING = "Rating"
SORT_BY_REVIEWS = "Review"

# sort selector -> ordering column
SORT_COLUMNS = {
    SORT_BY_RATING: "avg_rating",
    SORT_BY_REVIEWS: "num_ratings",
}

# Filter keys in the order their predicates are applied
FILTER_FIELDS = ("genre", "year", "rating_range")

# Wire names accepted in filter mappings
_FILTER_ALIASES = {"ratingRange": "rating_range"}


@dataclass(frozen=True)
class AlbumFilter:
    """Optional listing criteria supplied by a caller."""

    genre: Optional[str] = None
    year: Optional[int] = None
    rating_range: Optional[str] = None
    sort: Optional[str] = None

    @classmethod
    def from_mapping(cls, filters: Optional[Mapping[str, Any]]) -> "AlbumFilter":
        """
        Build a filter from a plain mapping such as URL search params.
        
        Unknown keys are ignored. ``ratingRange`` is accepted as an alias of
        ``rating_range`` and numeric year strings are converted to int.
        
        Raises:
            ValueError: If year is present but not an integer
        """
        if not filters:
            return cls()
        values = {}
        for key, value in filters.items():
            key = _FILTER_ALIASES.get(key, key)
            if key in FILTER_FIELDS or key == "sort":
                values[key] = value
        year = values.get("year")
        if isinstance(year, str) and year.strip():
            try:
                values["year"] = int(year.strip())
            except ValueError:
                raise ValueError(f"Year must be an integer, got {year!r}")
        return cls(**values)


@dataclass(frozen=True)
class Predicate:
    """Equality test on one album column."""

    field: str
    value: Any


@dataclass(frozen=True)
class Ordering:
    """Single ordering clause."""

    field: str
    descending: bool = True


@dataclass(frozen=True)
class AlbumQuery:
    """Immutable description of a read over the albums table."""

    predicates: Tuple[Predicate, ...] = ()
    ordering: Ordering = field(default_factory=lambda: Ordering(SORT_COLUMNS[SORT_BY_RATING]))

    def to_select(self) -> Select:
        """
        Render the query as a SQLAlchemy SELECT over Album.
        
        Album.id is appended as a tie-breaker so equal sort keys come back in
        the same order on every execution.
        """
        stmt = select(Album)
        for predicate in self.predicates:
            stmt = stmt.where(getattr(Album, predicate.field) == predicate.value)
        column = getattr(Album, self.ordering.field)
        order = column.desc() if self.ordering.descending else column.asc()
        return stmt.order_by(order, Album.id)

    def matches(self, album: Album) -> bool:
        """Check whether a loaded album satisfies every predicate."""
        return all(
            getattr(album, predicate.field) == predicate.value
            for predicate in self.predicates
        )


def _is_present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def compose_album_query(
    filters: Union[AlbumFilter, Mapping[str, Any], None] = None
) -> AlbumQuery:
    """
    Compose an album query from optional listing criteria.
    
    Args:
        filters: AlbumFilter or mapping with keys genre, year, ratingRange/rating_range, sort
        
    Returns:
        AlbumQuery with one equality predicate per present filter value, applied
        in the order genre, year, rating range, and exactly one ordering clause
        (avg_rating desc for "Rating" or no sort, num_ratings desc for "Review")
    """
    if not isinstance(filters, AlbumFilter):
        filters = AlbumFilter.from_mapping(filters)
    
    predicates = []
    for name in FILTER_FIELDS:
        value = getattr(filters, name)
        if _is_present(value):
            predicates.append(Predicate(name, value))
    
    sort = filters.sort or SORT_BY_RATING
    if sort not in SORT_COLUMNS:
        logger.debug(f"Unrecognized sort {sort!r}, falling back to {SORT_BY_RATING!r}")
        sort = SORT_BY_RATING
    
    return AlbumQuery(
        predicates=tuple(predicates),
        ordering=Ordering(SORT_COLUMNS[sort], descending=True),
    )
