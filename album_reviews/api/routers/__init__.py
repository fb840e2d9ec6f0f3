"""
API route handlers.
"""

from album_reviews.api.routers import albums, reviews, realtime, system

__all__ = ["albums", "reviews", "realtime", "system"]
