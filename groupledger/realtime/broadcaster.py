"""
Best-effort fan-out of mutation events to connected observers.

Events are cache-invalidation hints: an observer that connects late or drops
mid-push simply misses them and refetches through the REST API. Nothing is
queued for absent observers and nothing is acknowledged.
"""

import asyncio
import enum
import threading
from typing import Any, Dict, Optional, Set

import structlog
from fastapi.encoders import jsonable_encoder
from fastapi.requests import HTTPConnection

from groupledger.core.clock import utc_now_iso

logger = structlog.get_logger(__name__)

CONNECTED_MESSAGE = "Connected to real-time updates"


class ObserverState(enum.Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


def make_envelope(event: str, data: Any) -> Dict[str, Any]:
    return {"event": event, "data": jsonable_encoder(data), "timestamp": utc_now_iso()}


class Observer:
    """One connected client. Messages are handed to its event loop, never awaited."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()
        self.state = ObserverState.CONNECTING

    @property
    def is_open(self) -> bool:
        return self.state is ObserverState.OPEN

    def open(self) -> None:
        self.state = ObserverState.OPEN
        self.push(make_envelope("connected", {"message": CONNECTED_MESSAGE}))

    def close(self) -> None:
        self.state = ObserverState.CLOSED

    def push(self, message: Dict[str, Any]) -> bool:
        if not self.is_open:
            return False
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, message)
        except RuntimeError:
            # loop already closed: the client is gone
            self.close()
            return False
        return True

    async def get(self) -> Dict[str, Any]:
        return await self._queue.get()


class Broadcaster:
    def __init__(self) -> None:
        self._observers: Set[Observer] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._observers)

    def connect(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> Observer:
        observer = Observer(loop or asyncio.get_running_loop())
        # open before registering so "connected" is always the first message
        observer.open()
        with self._lock:
            self._observers.add(observer)
        logger.info("observer_connected", observers=len(self))
        return observer

    def disconnect(self, observer: Observer) -> None:
        observer.close()
        with self._lock:
            self._observers.discard(observer)
        logger.info("observer_disconnected", observers=len(self))

    def publish(self, event: str, data: Any) -> int:
        """Push {event, data, timestamp} to every open observer; prune the closed ones."""
        message = make_envelope(event, data)

        with self._lock:
            observers = list(self._observers)

        delivered = 0
        dead = []
        for observer in observers:
            if observer.push(message):
                delivered += 1
            else:
                dead.append(observer)

        if dead:
            with self._lock:
                for observer in dead:
                    self._observers.discard(observer)

        logger.debug("broadcast_sent", broadcast_event=event, delivered=delivered, pruned=len(dead))
        return delivered


def get_broadcaster(conn: HTTPConnection) -> Broadcaster:
    return conn.app.state.broadcaster
