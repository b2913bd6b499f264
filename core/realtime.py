"""
In-process change feed.

Stores publish row events (new notification, new message) for a user; the
/notifications/stream endpoint awaits a per-connection asyncio queue and
writes the events out as server-sent events. Only subscribers connected to
this process see an event.

Stores run in worker threads, so publish hands events to the subscriber's
event loop with call_soon_threadsafe instead of touching the queue directly.
"""
from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import AsyncIterator, Dict, List, Optional

log = logging.getLogger("realtime")

QUEUE_SIZE = 100
KEEPALIVE_SECONDS = 25


@dataclass
class Event:
    event: str
    payload: Dict

    def to_sse(self) -> str:
        return f"event: {self.event}\ndata: {json.dumps(self.payload, default=str)}\n\n"


def _current_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass
class Subscription:
    user_id: int
    loop: asyncio.AbstractEventLoop
    queue: "asyncio.Queue[Event]" = field(default_factory=lambda: asyncio.Queue(maxsize=QUEUE_SIZE))

    def offer(self, evt: Event) -> bool:
        """Hand `evt` to this subscriber. False when its queue is full or its loop is gone."""
        if self.queue.full():
            return False
        if _current_loop() is self.loop:
            self.queue.put_nowait(evt)
            return True
        try:
            self.loop.call_soon_threadsafe(self._put, evt)
        except RuntimeError:
            log.warning("Subscriber loop closed", extra={"user_id": self.user_id})
            return False
        return True

    def _put(self, evt: Event) -> None:
        try:
            self.queue.put_nowait(evt)
        except asyncio.QueueFull:
            log.warning("Dropping event for slow subscriber", extra={"user_id": self.user_id, "event": evt.event})

    async def get(self, timeout: float | None = None) -> Optional[Event]:
        """Next event, or None when nothing arrived within `timeout` seconds."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout)
        except asyncio.TimeoutError:
            return None


class ChangeFeed:
    def __init__(self):
        self._lock = threading.Lock()
        self._subs: Dict[int, List[Subscription]] = {}

    def subscribe(self, user_id: int) -> Subscription:
        """Register a subscriber on the running event loop."""
        sub = Subscription(user_id=int(user_id), loop=asyncio.get_running_loop())
        with self._lock:
            self._subs.setdefault(sub.user_id, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.user_id, [])
            if sub in subs:
                subs.remove(sub)
            if not subs:
                self._subs.pop(sub.user_id, None)

    def subscriber_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._subs.get(int(user_id), []))

    def publish(self, user_id: int, event: str, payload: Dict) -> int:
        """Queue an event for every subscriber of `user_id`. Returns how many got it."""
        with self._lock:
            subs = list(self._subs.get(int(user_id), []))
        delivered = 0
        for sub in subs:
            if sub.offer(Event(event, payload)):
                delivered += 1
            else:
                # Slow client; it will catch up from the notifications page.
                log.warning("Dropping event for slow subscriber", extra={"user_id": user_id, "event": event})
        return delivered

    async def stream(self, sub: Subscription, request=None, keepalive: float = KEEPALIVE_SECONDS) -> AsyncIterator[str]:
        """Yield SSE frames for `sub` until the client disconnects."""
        try:
            yield ": connected\n\n"
            while True:
                if request is not None and await request.is_disconnected():
                    break
                evt = await sub.get(timeout=keepalive)
                if evt is None:
                    yield ": keepalive\n\n"
                    continue
                yield evt.to_sse()
        finally:
            self.unsubscribe(sub)


feed = ChangeFeed()


__all__ = [
    "Event",
    "Subscription",
    "ChangeFeed",
    "feed",
    "KEEPALIVE_SECONDS",
]
