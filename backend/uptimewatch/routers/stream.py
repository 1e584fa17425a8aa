"""Live update streams: Server-Sent Events and WebSocket."""
import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from ..dependencies import get_publisher
from ..services.publisher import UpdatePublisher, WebSocketSubscriber

logger = logging.getLogger(__name__)

router = APIRouter(tags=["stream"])


def format_event(snapshot) -> str:
    """One text/event-stream frame carrying a collection snapshot."""
    return f"data: {json.dumps(snapshot, default=str)}\n\n"


@router.get("/api/stream")
async def stream_updates(request: Request, publisher: UpdatePublisher = Depends(get_publisher)):
    """Push the monitor collection after every check pass.

    The current state is sent as soon as the client connects.
    """

    async def events():
        # Subscribe only once the body is being sent, so the finally below always runs
        subscription = await publisher.subscribe()
        try:
            yield "\n"
            async for snapshot in subscription:
                if await request.is_disconnected():
                    break
                yield format_event(snapshot)
        finally:
            await publisher.unsubscribe(subscription)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.websocket("/ws")
async def websocket_updates(websocket: WebSocket):
    """Same updates as /api/stream, as JSON text messages."""
    publisher: UpdatePublisher = websocket.app.state.publisher
    await websocket.accept()
    subscriber = WebSocketSubscriber(websocket)
    sender = asyncio.create_task(subscriber.pump())
    try:
        await publisher.attach(subscriber, send_initial=True)
        # Incoming messages are ignored; receiving detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected")
    finally:
        await publisher.unsubscribe(subscriber)
        sender.cancel()
        try:
            await sender
        except asyncio.CancelledError:
            pass
