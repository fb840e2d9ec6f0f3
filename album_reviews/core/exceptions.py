"""
Exception types raised by the album reviews core.
"""


class AlbumReviewsError(Exception):
    """Base class for all album reviews errors."""


class InvalidReviewError(AlbumReviewsError, ValueError):
    """Raised when a review submission is rejected before touching the store."""


class AlbumNotFoundError(AlbumReviewsError, LookupError):
    """Raised when a write targets an album that does not exist."""

    def __init__(self, album_id: str):
        super().__init__(f"Album not found: {album_id}")
        self.album_id = album_id


class TransactionConflictError(AlbumReviewsError):
    """Raised when the aggregation transaction keeps conflicting after all retries."""

    def __init__(self, album_id: str, attempts: int):
        super().__init__(
            f"Could not add review to album {album_id} after {attempts} attempts"
        )
        self.album_id = album_id
        self.attempts = attempts


class ImmutableFieldError(AlbumReviewsError):
    """Raised when a write bypasses the aggregation path or edits a review."""
