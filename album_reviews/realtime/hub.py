"""
Change hub: live watches over album queries, single albums and reviews.

The hub hooks the SQLAlchemy session factory of a DatabaseManager. Every flush
records which albums were touched (an album row itself, or a review under it);
when the session commits, each watch interested in one of those albums is
scheduled for a refresh. A refresh re-reads the full result in its own session
and hands the callback a complete materialized view, never a diff.

Per watch, refresh and delivery run under one lock, so deliveries are strictly
ordered and each one reflects a read taken after the previous one. Cancelling
takes the same lock, which is why no callback can run once cancel() returns.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable, Iterable, List, Optional, Set

from sqlalchemy import event

from album_reviews.core.query import compose_album_query
from album_reviews.core.snapshots import AlbumSnapshot, ReviewSnapshot
from album_reviews.database import crud
from album_reviews.database.models import Album, Review

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

# session.info key holding album ids touched by the current transaction
_CHANGED_KEY = "album_reviews.changed_album_ids"

_UNSET = object()


class _Watch:
    """One registered watch: a loader, a relevance test and a callback."""

    def __init__(
        self,
        hub: "ChangeHub",
        description: str,
        load: Callable[[], Any],
        callback: Callable[[Any], None],
        is_relevant: Callable[[Set[str]], bool],
    ):
        self.hub = hub
        self.description = description
        self._load = load
        self._callback = callback
        self.is_relevant = is_relevant
        self._lock = threading.RLock()
        self._pending_lock = threading.Lock()
        self._pending = False
        self._cancelled = False
        self._last = _UNSET

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def mark_pending(self) -> bool:
        """Flag a refresh as scheduled; False if one is already waiting."""
        with self._pending_lock:
            if self._pending:
                return False
            self._pending = True
            return True

    def clear_pending(self):
        with self._pending_lock:
            self._pending = False

    def refresh(self, raise_errors: bool = False):
        """Re-read the result and deliver it if it changed."""
        with self._lock:
            if self._cancelled:
                return
            try:
                result = self._load()
            except Exception:
                if raise_errors:
                    raise
                logger.exception(f"Failed to refresh watch {self.description}")
                return
            if self._last is not _UNSET and result == self._last:
                return
            self._last = result
            try:
                self._callback(result)
            except Exception:
                logger.exception(f"Callback for watch {self.description} raised")

    def cancel(self):
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
        self.hub._discard(self)
        logger.debug(f"Cancelled watch {self.description}")


class Unsubscribe:
    """
    Cancellation handle for a watch.
    
    Call it (or leave its ``with`` block) to detach the watch. Once the call
    returns the callback is never invoked again; calling it twice is a no-op.
    """

    def __init__(self, watch: _Watch):
        self._watch = watch

    def __call__(self) -> None:
        self._watch.cancel()

    @property
    def cancelled(self) -> bool:
        return self._watch.cancelled

    def __enter__(self) -> "Unsubscribe":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"<Unsubscribe({self._watch.description}, {state})>"


class ChangeHub:
    """
    Registry of live watches bound to one DatabaseManager.
    
    Usage:
        hub = ChangeHub(db_manager)
        unsubscribe = hub.watch_album(album_id, print)
        ...
        unsubscribe()
        hub.close()
    """

    def __init__(self, db_manager, max_workers: int = DEFAULT_MAX_WORKERS, inline: Optional[bool] = None):
        """
        Initialize the hub and attach it to the manager's sessions.
        
        Args:
            db_manager: DatabaseManager whose commits drive the watches
            max_workers: Threads used to refresh watches after a commit
            inline: Refresh in the committing thread instead of the pool.
                Defaults to True for in-memory databases, where every
                session shares one connection.
        """
        self.db_manager = db_manager
        self.inline = db_manager.is_shared_connection if inline is None else inline
        self._executor = None if self.inline else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="album-watch"
        )
        self._watches: List[_Watch] = []
        self._futures: Set[Future] = set()
        self._lock = threading.Lock()
        self._closed = False
        
        self._session_factory = db_manager.SessionLocal
        event.listen(self._session_factory, "after_flush", self._after_flush)
        event.listen(self._session_factory, "after_commit", self._after_commit)
        event.listen(self._session_factory, "after_rollback", self._after_rollback)
        logger.info(f"ChangeHub attached to {db_manager.database_url} (inline={self.inline})")

    # ==================== SESSION EVENTS ====================

    def _after_flush(self, session, flush_context):
        changed = session.info.setdefault(_CHANGED_KEY, set())
        for obj in list(session.new) + list(session.dirty) + list(session.deleted):
            if isinstance(obj, Album):
                changed.add(obj.id)
            elif isinstance(obj, Review):
                changed.add(obj.album_id)

    def _after_commit(self, session):
        changed = session.info.pop(_CHANGED_KEY, None)
        if changed:
            self.notify(changed)

    def _after_rollback(self, session):
        session.info.pop(_CHANGED_KEY, None)

    # ==================== DISPATCH ====================

    def notify(self, album_ids: Iterable[str]):
        """
        Schedule a refresh of every watch interested in the given albums.
        
        Called automatically after each commit; exposed for writers that go
        around the ORM session.
        """
        changed = set(album_ids)
        with self._lock:
            if self._closed:
                return
            watches = [w for w in self._watches if w.is_relevant(changed)]
        logger.debug(f"Commit touched albums {sorted(changed)}: refreshing {len(watches)} watches")
        for watch in watches:
            self._schedule(watch)

    def _schedule(self, watch: _Watch):
        if self.inline:
            watch.refresh()
            return
        if not watch.mark_pending():
            return
        with self._lock:
            if self._closed:
                watch.clear_pending()
                return
            future = self._executor.submit(self._run, watch)
            self._futures.add(future)
        future.add_done_callback(self._forget)

    def _run(self, watch: _Watch):
        # Cleared first so a commit landing during this read schedules another pass
        watch.clear_pending()
        watch.refresh()

    def _forget(self, future: Future):
        with self._lock:
            self._futures.discard(future)

    def drain(self, timeout: Optional[float] = 5.0) -> bool:
        """
        Wait until no refresh is scheduled or running.
        
        Returns:
            True if the hub went idle before the timeout
        """
        if self.inline:
            return True
        while True:
            with self._lock:
                pending = set(self._futures)
            if not pending:
                return True
            done, not_done = wait(pending, timeout=timeout)
            if not_done:
                return False

    # ==================== REGISTRATION ====================

    def _register(self, description, load, callback, is_relevant) -> Optional[Unsubscribe]:
        with self._lock:
            if self._closed:
                logger.error(f"Cannot watch {description}: hub is closed")
                return None
            watch = _Watch(self, description, load, callback, is_relevant)
            self._watches.append(watch)
        try:
            watch.refresh(raise_errors=True)
        except Exception:
            logger.exception(f"Failed to set up watch {description}")
            watch.cancel()
            return None
        logger.debug(f"Watching {description}")
        return Unsubscribe(watch)

    def _discard(self, watch: _Watch):
        with self._lock:
            if watch in self._watches:
                self._watches.remove(watch)

    @property
    def watch_count(self) -> int:
        with self._lock:
            return len(self._watches)

    def watch_albums(self, callback, filters=None) -> Optional[Unsubscribe]:
        """
        Watch the list of albums matching a filter.
        
        Args:
            callback: Called with the full ordered list of AlbumSnapshot on
                registration and whenever the list changes
            filters: AlbumFilter or mapping accepted by compose_album_query
            
        Returns:
            Unsubscribe handle, or None if the watch could not be set up
        """
        if not callable(callback):
            logger.error("Error: The callback parameter is not a function")
            return None
        try:
            album_query = compose_album_query(filters)
        except ValueError as e:
            logger.error(f"Error: Invalid album filters {filters!r}: {e}")
            return None
        
        def load():
            with self.db_manager.session_scope() as session:
                return [AlbumSnapshot.from_model(a) for a in crud.get_albums(session, album_query)]
        
        # Any album change can move an album into, out of, or around the list
        return self._register(f"albums{list(album_query.predicates)}", load, callback, lambda changed: True)

    def watch_album(self, album_id: str, callback) -> Optional[Unsubscribe]:
        """
        Watch a single album.
        
        Args:
            album_id: Album ID
            callback: Called with an AlbumSnapshot, or None when the album does
                not exist or has been deleted
            
        Returns:
            Unsubscribe handle, or None if the watch could not be set up
        """
        if not album_id:
            logger.error(f"Error: Invalid albumId received: {album_id!r}")
            return None
        if not callable(callback):
            logger.error("Error: The callback parameter is not a function")
            return None
        
        def load():
            with self.db_manager.session_scope() as session:
                album = crud.get_album(session, album_id)
                return AlbumSnapshot.from_model(album) if album is not None else None
        
        return self._register(f"album {album_id}", load, callback, lambda changed: album_id in changed)

    def watch_reviews(self, album_id: str, callback) -> Optional[Unsubscribe]:
        """
        Watch the reviews of an album, newest first.
        
        Args:
            album_id: Album ID
            callback: Called with the full list of ReviewSnapshot
            
        Returns:
            Unsubscribe handle, or None if the watch could not be set up
        """
        if not album_id:
            logger.error(f"Error: Invalid albumId received: {album_id!r}")
            return None
        if not callable(callback):
            logger.error("Error: The callback parameter is not a function")
            return None
        
        def load():
            with self.db_manager.session_scope() as session:
                return [ReviewSnapshot.from_model(r) for r in crud.get_reviews_by_album(session, album_id)]
        
        return self._register(f"reviews of album {album_id}", load, callback, lambda changed: album_id in changed)

    # ==================== LIFECYCLE ====================

    def close(self):
        """Detach from the session factory, cancel all watches and stop the pool."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            watches = list(self._watches)
        for watch in watches:
            watch.cancel()
        event.remove(self._session_factory, "after_flush", self._after_flush)
        event.remove(self._session_factory, "after_commit", self._after_commit)
        event.remove(self._session_factory, "after_rollback", self._after_rollback)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        logger.info("ChangeHub closed")
