"""
Tests for the review aggregation transaction.

Covers the aggregate invariant, concurrent submissions to one album,
not-found and invalid-input failures, and the retry policy.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy.orm.exc import StaleDataError

from album_reviews.core import aggregation
from album_reviews.core.aggregation import add_review_to_album
from album_reviews.core.exceptions import (
    AlbumNotFoundError,
    ImmutableFieldError,
    InvalidReviewError,
    TransactionConflictError,
)
from album_reviews.database import crud


def load_album(db_manager, album_id):
    with db_manager.session_scope() as session:
        return crud.get_album(session, album_id)


class TestAddReview:
    """Tests for single-threaded review submission."""

    def test_first_review(self, db_manager, album_id):
        """The first review sets count, sum, average and range."""
        review = add_review_to_album(db_manager, album_id, {"rating": 5, "text": "Great", "user_id": "u1"})
        
        album = load_album(db_manager, album_id)
        assert album.num_ratings == 1
        assert album.sum_rating == 5.0
        assert album.avg_rating == 5.0
        assert album.rating_range == "Highly Rated"
        assert review.album_id == album_id
        assert review.rating == 5.0
        assert review.text == "Great"
        assert review.user_id == "u1"
        assert review.created_at is not None

    def test_aggregate_invariant(self, db_manager, album_id):
        """After N reviews the aggregates match the N ratings exactly."""
        ratings = [5, 4, 3, 2, 1, 4.5, 3.5]
        for rating in ratings:
            add_review_to_album(db_manager, album_id, {"rating": rating})
        
        album = load_album(db_manager, album_id)
        assert album.num_ratings == len(ratings)
        assert math.isclose(album.sum_rating, sum(ratings))
        assert math.isclose(album.avg_rating, album.sum_rating / album.num_ratings)
        assert album.rating_range == "Emerging"
        
        with db_manager.session_scope() as session:
            assert crud.get_review_count(session, album_id) == len(ratings)

    def test_defaults_for_optional_fields(self, db_manager, album_id):
        """Text defaults to empty and a missing author is anonymous."""
        review = add_review_to_album(db_manager, album_id, {"rating": 3})
        assert review.text == ""
        assert review.user_id == "anonymous"

    def test_user_id_camel_case(self, db_manager, album_id):
        """userId is accepted as the author key."""
        review = add_review_to_album(db_manager, album_id, {"rating": 3, "userId": "User #7"})
        assert review.user_id == "User #7"


class TestAddReviewFailures:
    """Tests for rejected and failed submissions."""

    @pytest.mark.parametrize("album_id", [None, ""])
    def test_missing_album_id(self, album_id):
        """A missing album id is rejected without touching the store."""
        with pytest.raises(InvalidReviewError):
            add_review_to_album(object(), album_id, {"rating": 4})

    @pytest.mark.parametrize("review", [None, {}, {"text": "no rating"}, {"rating": None}])
    def test_missing_payload_or_rating(self, review):
        """An empty payload or one without a rating is rejected."""
        with pytest.raises(InvalidReviewError):
            add_review_to_album(object(), "some-album", review)

    @pytest.mark.parametrize("rating", [0, 5.5, 10, -3, "five"])
    def test_out_of_range_rating(self, db_manager, album_id, rating):
        """Out-of-range ratings are rejected and nothing is written."""
        with pytest.raises(InvalidReviewError):
            add_review_to_album(db_manager, album_id, {"rating": rating})
        
        album = load_album(db_manager, album_id)
        assert album.num_ratings == 0

    def test_album_not_found(self, db_manager, caplog):
        """Reviewing a missing album fails loudly and writes no orphan review."""
        with caplog.at_level(logging.ERROR, logger="album_reviews.core.aggregation"):
            with pytest.raises(AlbumNotFoundError) as exc_info:
                add_review_to_album(db_manager, "does-not-exist", {"rating": 4})
        
        assert exc_info.value.album_id == "does-not-exist"
        assert "does-not-exist" in caplog.text
        with db_manager.session_scope() as session:
            assert crud.get_review_count(session) == 0

    def test_not_found_is_not_retried(self, db_manager, monkeypatch):
        """A missing album fails on the first attempt."""
        calls = []
        real_apply = aggregation._apply_review
        
        def counting_apply(*args):
            calls.append(args)
            return real_apply(*args)
        
        monkeypatch.setattr(aggregation, "_apply_review", counting_apply)
        with pytest.raises(AlbumNotFoundError):
            add_review_to_album(db_manager, "does-not-exist", {"rating": 4})
        assert len(calls) == 1


class TestRetry:
    """Tests for the optimistic retry loop."""

    def test_conflict_is_retried(self, db_manager, album_id, monkeypatch):
        """A stale read is replayed and counted exactly once."""
        real_apply = aggregation._apply_review
        attempts = []
        
        def flaky_apply(*args):
            attempts.append(args)
            if len(attempts) == 1:
                raise StaleDataError("album row changed underneath")
            return real_apply(*args)
        
        monkeypatch.setattr(aggregation, "_apply_review", flaky_apply)
        add_review_to_album(db_manager, album_id, {"rating": 4}, base_delay=0)
        
        assert len(attempts) == 2
        album = load_album(db_manager, album_id)
        assert album.num_ratings == 1
        assert album.sum_rating == 4.0

    def test_retry_exhaustion(self, db_manager, album_id, monkeypatch, caplog):
        """Persistent conflicts surface as TransactionConflictError after max_attempts."""
        attempts = []
        
        def always_stale(*args):
            attempts.append(args)
            raise StaleDataError("album row changed underneath")
        
        monkeypatch.setattr(aggregation, "_apply_review", always_stale)
        with caplog.at_level(logging.ERROR, logger="album_reviews.core.aggregation"):
            with pytest.raises(TransactionConflictError) as exc_info:
                add_review_to_album(db_manager, album_id, {"rating": 4}, max_attempts=3, base_delay=0)
        
        assert len(attempts) == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, StaleDataError)
        assert album_id in caplog.text

    def test_unexpected_errors_propagate(self, db_manager, album_id, monkeypatch):
        """Errors that are not conflicts are re-raised unchanged."""
        def broken(*args):
            raise RuntimeError("disk on fire")
        
        monkeypatch.setattr(aggregation, "_apply_review", broken)
        with pytest.raises(RuntimeError, match="disk on fire"):
            add_review_to_album(db_manager, album_id, {"rating": 4})


class TestConcurrency:
    """Tests for concurrent submissions to the same album."""

    def test_concurrent_reviews_same_album(self, db_manager, album_id):
        """K concurrent reviews give exactly K more ratings, no lost updates."""
        ratings = [1, 2, 3, 4, 5, 5, 4, 3, 2, 1]
        
        def submit(rating):
            return add_review_to_album(
                db_manager,
                album_id,
                {"rating": rating, "user_id": f"user-{rating}"},
                max_attempts=200,
                base_delay=0.001,
                max_delay=0.05,
            )
        
        with ThreadPoolExecutor(max_workers=len(ratings)) as pool:
            reviews = list(pool.map(submit, ratings))
        
        assert len({r.id for r in reviews}) == len(ratings)
        album = load_album(db_manager, album_id)
        assert album.num_ratings == len(ratings)
        assert math.isclose(album.sum_rating, sum(ratings))
        assert math.isclose(album.avg_rating, sum(ratings) / len(ratings))
        assert album.rating_range == "Emerging"
        with db_manager.session_scope() as session:
            assert crud.get_review_count(session, album_id) == len(ratings)

    def test_concurrent_reviews_different_albums(self, db_manager):
        """Albums are independent of each other."""
        with db_manager.session_scope() as session:
            ids = [crud.create_album(session, name=f"Album {i}", genre="Pop").id for i in range(3)]
        
        jobs = [(album_id, rating) for album_id in ids for rating in (2, 4)]
        with ThreadPoolExecutor(max_workers=len(jobs)) as pool:
            list(pool.map(
                lambda job: add_review_to_album(db_manager, job[0], {"rating": job[1]}, max_attempts=200, base_delay=0.001),
                jobs,
            ))
        
        for album_id in ids:
            album = load_album(db_manager, album_id)
            assert album.num_ratings == 2
            assert album.avg_rating == 3.0


class TestSoleWriter:
    """Tests that aggregates and reviews cannot be written around the transaction."""

    def test_direct_aggregate_update_rejected(self, db_manager, album_id):
        """Writing aggregate fields directly is refused."""
        session = db_manager.get_session()
        try:
            album = crud.get_album(session, album_id)
            album.num_ratings = 42
            album.avg_rating = 5.0
            with pytest.raises(ImmutableFieldError):
                session.commit()
            session.rollback()
        finally:
            session.close()
        
        assert load_album(db_manager, album_id).num_ratings == 0

    def test_review_update_rejected(self, db_manager, album_id):
        """A stored review's rating cannot be changed."""
        review = add_review_to_album(db_manager, album_id, {"rating": 2})
        
        session = db_manager.get_session()
        try:
            stored = crud.get_review(session, review.id)
            stored.rating = 5.0
            with pytest.raises(ImmutableFieldError):
                session.commit()
            session.rollback()
        finally:
            session.close()
        
        with db_manager.session_scope() as session:
            assert crud.get_review(session, review.id).rating == 2.0
        assert load_album(db_manager, album_id).sum_rating == 2.0

    def test_new_album_with_aggregates_rejected(self, db_manager):
        """Albums cannot be created with pre-filled aggregates outside seeding."""
        from album_reviews.database.models import Album
        
        with pytest.raises(ImmutableFieldError):
            with db_manager.session_scope() as session:
                session.add(Album(name="Fake", genre="Pop", num_ratings=10, sum_rating=50.0, avg_rating=5.0))

    def test_new_album_with_rating_range_rejected(self, db_manager):
        """A new album cannot claim a bucket its empty aggregates don't earn."""
        from album_reviews.database.models import Album
        
        with pytest.raises(ImmutableFieldError):
            with db_manager.session_scope() as session:
                session.add(Album(name="Fake", genre="Pop", rating_range="Highly Rated"))
        
        with db_manager.session_scope() as session:
            assert crud.get_album_count(session) == 0

    def test_direct_review_insert_rejected(self, db_manager, album_id):
        """A review added outside the transaction would leave aggregates behind."""
        from album_reviews.database.models import Review, new_id, utcnow
        
        with pytest.raises(ImmutableFieldError):
            with db_manager.session_scope() as session:
                session.add(Review(
                    id=new_id(), album_id=album_id, rating=5.0,
                    text="", user_id="u1", created_at=utcnow(),
                ))
        
        with db_manager.session_scope() as session:
            assert crud.get_review_count(session, album_id=album_id) == 0
        assert load_album(db_manager, album_id).num_ratings == 0

    def test_transaction_still_adds_reviews(self, db_manager, album_id):
        """The review transaction is allowed past the insert guard."""
        add_review_to_album(db_manager, album_id, {"rating": 5})
        
        with db_manager.session_scope() as session:
            assert crud.get_review_count(session, album_id=album_id) == 1
        assert load_album(db_manager, album_id).num_ratings == 1
