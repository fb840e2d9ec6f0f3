"""
Sample data generation and bulk seeding.

Seeding is the one path that writes album aggregates without going through
the review transaction: each album is inserted together with its reviews and
aggregates computed from exactly those reviews, inside a session flagged as a
bulk seed. Real traffic must use album_reviews.core.aggregation.
"""

import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from album_reviews.core.ratings import aggregates_from_ratings
from album_reviews.database.models import BULK_SEED, Album, Review

logger = logging.getLogger(__name__)

ALBUM_NAMES = [
    "Midnight Static", "Paper Lanterns", "Low Tide Radio", "Glass Orchard",
    "The Long Exposure", "Northern Lights Motel", "Velvet Machinery",
    "Slow Burn Summer", "Hollow Cathedral", "Neon Pastoral", "Saltwater Hymns",
    "Concrete Garden",
]

ALBUM_GENRES = ["Rock", "Pop", "Jazz", "Hip-Hop", "Electronic", "Folk", "Classical", "Metal"]

ALBUM_YEARS = list(range(1965, 2025))

ALBUM_REVIEWS = [
    {"rating": 5, "text": "An instant classic, no skips."},
    {"rating": 5, "text": "The production is stunning from start to finish."},
    {"rating": 4, "text": "Great record, a couple of tracks drag."},
    {"rating": 4, "text": "Grows on you with every listen."},
    {"rating": 3, "text": "Solid but safe."},
    {"rating": 3, "text": "Some highlights, lots of filler."},
    {"rating": 2, "text": "Didn't live up to the singles."},
    {"rating": 1, "text": "Not for me at all."},
]

COVER_ART_URL = "https://storage.googleapis.com/firestorequickstarts.appspot.com/food_{}.png"


def _random_date_before(rng: random.Random, before: datetime, max_days: int = 365) -> datetime:
    return before - timedelta(days=rng.randint(1, max_days), seconds=rng.randint(0, 86399))


def _random_date_after(rng: random.Random, after: datetime, now: datetime) -> datetime:
    span = max(int((now - after).total_seconds()), 1)
    return after + timedelta(seconds=rng.randint(1, span))


def generate_fake_albums_and_reviews(
    count: int = 5,
    max_reviews: int = 5,
    seed: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Generate sample albums, each with 0 to max_reviews reviews.
    
    Args:
        count: Number of albums to generate
        max_reviews: Upper bound on reviews per album
        seed: Random seed for reproducible data
        
    Returns:
        List of {"album": {...}, "reviews": [...]} dictionaries. Album
        aggregates are computed from the generated reviews.
    """
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    data = []
    
    for _ in range(count):
        album_created = _random_date_before(rng, now)
        
        reviews = []
        for _ in range(rng.randint(0, max_reviews)):
            sample = rng.choice(ALBUM_REVIEWS)
            reviews.append({
                "rating": float(sample["rating"]),
                "text": rng.choice(ALBUM_REVIEWS)["text"],
                "user_id": f"User #{rng.randint(1, 10000)}",
                "created_at": _random_date_after(rng, album_created, now),
            })
        
        aggregates = aggregates_from_ratings(r["rating"] for r in reviews)
        album = {
            "name": rng.choice(ALBUM_NAMES),
            "genre": rng.choice(ALBUM_GENRES),
            "year": rng.choice(ALBUM_YEARS),
            "cover_art": COVER_ART_URL.format(rng.randint(1, 22)),
            "num_ratings": aggregates.num_ratings,
            "sum_rating": aggregates.sum_rating,
            "avg_rating": aggregates.avg_rating,
            "rating_range": aggregates.rating_range,
            "created_at": album_created,
        }
        data.append({"album": album, "reviews": reviews})
    
    return data


def seed_albums(db_manager, data: List[Dict[str, Any]]) -> List[str]:
    """
    Write generated albums and their reviews.
    
    Aggregates are recomputed from the reviews being written, so a seeded
    album satisfies the same invariant as one built through the transaction.
    
    Args:
        db_manager: DatabaseManager instance
        data: Output of generate_fake_albums_and_reviews
        
    Returns:
        IDs of the created albums
    """
    album_ids = []
    for entry in data:
        reviews = entry.get("reviews", [])
        aggregates = aggregates_from_ratings(r["rating"] for r in reviews)
        fields = {
            key: value for key, value in entry["album"].items()
            if key in ("name", "genre", "year", "cover_art", "created_at")
        }
        try:
            with db_manager.session_scope() as session:
                session.info[BULK_SEED] = True
                album = Album(
                    num_ratings=aggregates.num_ratings,
                    sum_rating=aggregates.sum_rating,
                    avg_rating=aggregates.avg_rating,
                    rating_range=aggregates.rating_range,
                    **fields
                )
                album.reviews = [
                    Review(
                        rating=float(r["rating"]),
                        text=r.get("text", ""),
                        user_id=r.get("user_id", "anonymous"),
                        **({"created_at": r["created_at"]} if r.get("created_at") else {})
                    )
                    for r in reviews
                ]
                session.add(album)
                session.flush()
                album_ids.append(album.id)
        except Exception:
            logger.exception(f"There was an error adding album {fields.get('name')!r}")
            raise
    
    logger.info(f"Seeded {len(album_ids)} albums")
    return album_ids
