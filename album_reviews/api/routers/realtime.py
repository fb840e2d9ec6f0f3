"""
WebSocket endpoints bridging ChangeHub watches to clients.

Each connection opens one watch. The hub calls back from its worker threads,
so deliveries are handed to the event loop with call_soon_threadsafe and sent
from there in order. The watch is always released when the socket closes.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from album_reviews.api.models.album import AlbumResponse
from album_reviews.api.models.review import ReviewResponse
from album_reviews.core.query import AlbumFilter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["realtime"])


def _album_payload(snapshot) -> Optional[dict]:
    if snapshot is None:
        return None
    return AlbumResponse.model_validate(snapshot).model_dump(mode="json", by_alias=True)


def _review_payload(snapshot) -> dict:
    return ReviewResponse.model_validate(snapshot).model_dump(mode="json", by_alias=True)


async def _stream(websocket: WebSocket, subscribe: Callable, to_message: Callable[[Any], dict]):
    """Run one watch for the lifetime of the socket."""
    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    
    def deliver(result):
        loop.call_soon_threadsafe(queue.put_nowait, to_message(result))
    
    unsubscribe = await run_in_threadpool(subscribe, deliver)
    if unsubscribe is None:
        await websocket.close(code=1011, reason="Could not start watch")
        return
    
    async def pump():
        while True:
            message = await queue.get()
            await websocket.send_json(message)
    
    sender = asyncio.create_task(pump())
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        # cancel() waits for an in-flight refresh, which must not block the loop
        await run_in_threadpool(unsubscribe)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception(f"Sending to WebSocket {websocket.url.path} failed")
        logger.debug(f"WebSocket {websocket.url.path} closed")


@router.websocket("/albums")
async def watch_albums(
    websocket: WebSocket,
    genre: str | None = None,
    year: int | None = None,
    sort: str | None = None,
):
    """Stream the filtered album listing; ratingRange is read from the query string."""
    hub = websocket.app.state.change_hub
    filters = AlbumFilter(
        genre=genre,
        year=year,
        rating_range=websocket.query_params.get("ratingRange"),
        sort=sort,
    )
    await _stream(
        websocket,
        lambda deliver: hub.watch_albums(deliver, filters),
        lambda albums: {"type": "albums", "data": [_album_payload(a) for a in albums]},
    )


@router.websocket("/albums/{album_id}")
async def watch_album(websocket: WebSocket, album_id: str):
    """Stream one album; data is null when it does not exist."""
    hub = websocket.app.state.change_hub
    await _stream(
        websocket,
        lambda deliver: hub.watch_album(album_id, deliver),
        lambda album: {"type": "album", "data": _album_payload(album)},
    )


@router.websocket("/albums/{album_id}/reviews")
async def watch_reviews(websocket: WebSocket, album_id: str):
    """Stream an album's reviews, newest first."""
    hub = websocket.app.state.change_hub
    await _stream(
        websocket,
        lambda deliver: hub.watch_reviews(album_id, deliver),
        lambda reviews: {"type": "reviews", "data": [_review_payload(r) for r in reviews]},
    )
