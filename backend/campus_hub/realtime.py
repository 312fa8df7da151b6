"""In-process change feed for chat messages.

A `ChannelHub` fans out row-change events to the websocket connections
subscribed to a channel (one channel per conversation, `chat_<id>`).
Subscriptions are created when a conversation view connects and removed
when it disconnects. Events are delivered in arrival order into an
unbounded per-subscriber queue; there is no replay, dedup or
backpressure.

Publishing usually happens from a request worker thread while the
subscriber's websocket runs on an event loop, so delivery is handed to
the subscriber's loop with `call_soon_threadsafe`.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from collections import defaultdict
from typing import Any, Optional

_LOGGER = logging.getLogger("campus_hub.realtime")


def chat_channel(chat_id: int) -> str:
    return f"chat_{chat_id}"


def insert_event(table: str, row: dict) -> dict:
    """Build the payload pushed to subscribers for an inserted row."""
    return {"event": "INSERT", "table": table, "new": row}


class Subscription:
    """One subscriber's view of a channel."""

    def __init__(self, channel: str, loop: asyncio.AbstractEventLoop):
        self.id = uuid.uuid4().hex
        self.channel = channel
        self._loop = loop
        self._queue: asyncio.Queue = asyncio.Queue()

    def deliver(self, event: dict) -> bool:
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
        except RuntimeError:
            # loop already closed; the websocket is gone
            return False
        return True

    async def get(self) -> dict:
        return await self._queue.get()

    def pending(self) -> int:
        return self._queue.qsize()


class ChannelHub:
    """Registry of live subscriptions keyed by channel name."""

    def __init__(self):
        self._subs: dict[str, dict[str, Subscription]] = defaultdict(dict)
        self._lock = threading.Lock()

    def subscribe(self, channel: str, loop: Optional[asyncio.AbstractEventLoop] = None) -> Subscription:
        """Open a subscription bound to `loop` (default: the running loop)."""
        sub = Subscription(channel, loop or asyncio.get_running_loop())
        with self._lock:
            self._subs[channel][sub.id] = sub
        _LOGGER.debug("subscribed %s to %s", sub.id, channel)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subs.get(sub.channel)
            if subs is None:
                return
            subs.pop(sub.id, None)
            if not subs:
                del self._subs[sub.channel]
        _LOGGER.debug("unsubscribed %s from %s", sub.id, sub.channel)

    def publish(self, channel: str, event: dict) -> int:
        """Push `event` to every subscriber of `channel`.

        Returns the number of subscribers the event was handed to.
        """
        with self._lock:
            targets = list(self._subs.get(channel, {}).values())
        delivered = 0
        for sub in targets:
            if sub.deliver(event):
                delivered += 1
            else:
                self.unsubscribe(sub)
        _LOGGER.debug("published %s to %d subscriber(s) on %s", event.get("event"), delivered, channel)
        return delivered

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subs.get(channel, {}))


def row_to_dict(row: Any) -> dict:
    """Serialise a SQLModel row into JSON-friendly primitives."""
    out = {}
    for key, value in row.model_dump().items():
        out[key] = value.isoformat() if hasattr(value, "isoformat") else value
    return out


hub = ChannelHub()
