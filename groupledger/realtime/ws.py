import asyncio
import contextlib
import json

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from groupledger.realtime.broadcaster import Broadcaster, Observer, get_broadcaster

router = APIRouter(tags=["realtime"])


async def _pump(websocket: WebSocket, observer: Observer) -> None:
    while True:
        msg = await observer.get()
        await websocket.send_text(json.dumps(msg, ensure_ascii=False))


@router.websocket("/ws")
async def websocket_events(websocket: WebSocket, broadcaster: Broadcaster = Depends(get_broadcaster)):
    await websocket.accept()
    observer = broadcaster.connect()
    sender = asyncio.create_task(_pump(websocket, observer))

    try:
        # inbound frames are ignored; reading is how we notice the close
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(observer)
        sender.cancel()
        # a send on a broken socket surfaces here; the client is already gone
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, RuntimeError):
            await sender
