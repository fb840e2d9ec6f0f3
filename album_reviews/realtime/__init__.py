"""
Realtime watches over albums and reviews.

This package contains:
- ChangeHub, which listens to committed sessions and re-evaluates watches
- Unsubscribe, the cancellation handle returned for every watch
"""

from album_reviews.realtime.hub import ChangeHub, Unsubscribe

__all__ = ['ChangeHub', 'Unsubscribe']
