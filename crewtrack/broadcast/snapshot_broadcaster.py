"""
In-memory fan-out broadcaster.

One bounded asyncio.Queue per live subscriber. Each publish is serialised once
and the same JSON text is queued for every subscriber; the connection handlers
in main.py drain their own queue and apply the wire framing (SSE or WebSocket).
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from crewtrack.config import SUBSCRIBER_QUEUE_SIZE
from crewtrack.models import Snapshot
from crewtrack.store import SnapshotStore

log = logging.getLogger(__name__)


class Subscription:
    """Receiving end of one live channel: a stream of serialised snapshots."""

    def __init__(self, broadcaster: "SnapshotBroadcaster", maxsize: int = SUBSCRIBER_QUEUE_SIZE) -> None:
        self._broadcaster = broadcaster
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def deliver(self, message: str) -> None:
        """Queue ``message``; a full queue loses its oldest pending message."""
        if self.queue.full():
            self.queue.get_nowait()
            log.warning("Subscriber queue full, dropped oldest pending snapshot")
        self.queue.put_nowait(message)

    async def next(self, timeout: Optional[float] = None) -> Optional[str]:
        """Next message, or None if ``timeout`` expires first."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return None

    def close(self) -> None:
        self._broadcaster.unsubscribe(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> str:
        if self.closed:
            raise StopAsyncIteration
        return await self.queue.get()


class SnapshotBroadcaster:
    def __init__(self, store: SnapshotStore) -> None:
        self._store = store
        self._subscribers: list[Subscription] = []

    def subscribe(self) -> Subscription:
        """Register a subscriber; the current snapshot is already queued on return."""
        sub = Subscription(self)
        sub.deliver(self._store.current().model_dump_json())
        self._subscribers.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.closed = True
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass

    async def push(self, snapshot: Snapshot) -> int:
        """Send ``snapshot`` to every subscriber. Returns how many received it."""
        message = snapshot.model_dump_json()
        delivered = 0
        for sub in list(self._subscribers):
            try:
                sub.deliver(message)
            except Exception:
                log.exception("Delivery to subscriber failed; continuing with the rest")
                continue
            delivered += 1
        return delivered

    def subscriber_count(self) -> int:
        return len(self._subscribers)
