"""Live broadcast endpoints.

- WS  /v1/live         WebSocket observer
- GET /v1/live/stream  Server-Sent Events observer

Both register with the same LiveBroadcastService. Each observer gets a
bounded queue; an observer that falls behind is dropped by the
broadcaster and its connection is closed here.
"""

import asyncio
import json
from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from sse_starlette.sse import EventSourceResponse
from structlog import get_logger

from votegate.api.dependencies.pipeline import get_broadcaster
from votegate.application.services.live_broadcast_service import (
    LiveBroadcastService,
    LiveObserver,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/v1/live", tags=["live"])

KEEPALIVE_SECONDS = 30.0

# Close code sent when the broadcaster drops a slow observer
CLOSE_CODE_DROPPED = 1013


async def _send_events(websocket: WebSocket, observer: LiveObserver) -> None:
    while True:
        event = await observer.queue.get()
        if event is None:
            await websocket.close(code=CLOSE_CODE_DROPPED)
            return
        await websocket.send_text(event.to_json())


async def _receive_messages(websocket: WebSocket) -> None:
    # Observers only listen; "ping" is answered so clients can check liveness
    while True:
        message = await websocket.receive_text()
        if message.strip().lower() == "ping":
            await websocket.send_text(json.dumps({"type": "pong"}))


@router.websocket("")
async def live_websocket(websocket: WebSocket) -> None:
    """Stream pipeline events over a WebSocket."""
    broadcaster: LiveBroadcastService = get_broadcaster()
    await websocket.accept()
    observer = broadcaster.register(channel="websocket")
    log = logger.bind(observer_id=str(observer.observer_id), channel="websocket")

    tasks: list[asyncio.Task[None]] = []
    try:
        await websocket.send_text(
            json.dumps(
                {"type": "connected", "observer_id": str(observer.observer_id)}
            )
        )
        tasks = [
            asyncio.create_task(_send_events(websocket, observer)),
            asyncio.create_task(_receive_messages(websocket)),
        ]
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                log.warning(
                    "live_observer_connection_error",
                    error_type=type(exc).__name__,
                )
    except WebSocketDisconnect:
        pass
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        broadcaster.unregister(observer.observer_id)
        log.info("live_observer_disconnected")


@router.get("/stream")
async def live_stream(
    request: Request,
    broadcaster: Annotated[LiveBroadcastService, Depends(get_broadcaster)],
) -> EventSourceResponse:
    """Stream pipeline events via Server-Sent Events.

    Sends keepalive comments every 30 seconds.
    """
    observer = broadcaster.register(channel="sse")

    async def event_generator() -> AsyncIterator[dict[str, str]]:
        try:
            while True:
                try:
                    event = await asyncio.wait_for(
                        observer.queue.get(), timeout=KEEPALIVE_SECONDS
                    )
                except asyncio.TimeoutError:
                    yield {"comment": "keepalive"}
                    continue
                if event is None:
                    return
                yield {
                    "event": event.type.value,
                    "data": event.to_json(),
                    "id": str(event.event_id),
                }
        finally:
            broadcaster.unregister(observer.observer_id)

    return EventSourceResponse(
        event_generator(),
        headers={
            "X-Accel-Buffering": "no",
            "Cache-Control": "no-cache",
        },
    )
