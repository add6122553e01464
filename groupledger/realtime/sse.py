import asyncio
import json
from typing import Any, AsyncIterator, Dict

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from groupledger.realtime.broadcaster import Broadcaster, get_broadcaster

router = APIRouter(tags=["realtime"])


async def observer_events(broadcaster: Broadcaster) -> AsyncIterator[Dict[str, Any]]:
    # registered on first iteration, so a client that never starts reading never holds a queue
    observer = broadcaster.connect()
    try:
        while True:
            msg = await observer.get()
            yield {
                "event": msg["event"],
                "data": json.dumps(msg, ensure_ascii=False),
            }
    except asyncio.CancelledError:
        pass
    finally:
        broadcaster.disconnect(observer)


@router.get("/events")
async def sse_events(broadcaster: Broadcaster = Depends(get_broadcaster)):
    return EventSourceResponse(observer_events(broadcaster))
