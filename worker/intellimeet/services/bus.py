"""In-process fanout of transcript events to connected subscribers.

Each subscriber owns a bounded asyncio queue. ``publish`` never waits: a full
queue drops the event for that subscriber only. Late subscribers get no replay.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Set


class Subscription:
    def __init__(self, maxsize: int) -> None:
        self.queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def get(self) -> Dict[str, Any]:
        return await self.queue.get()


class EventBus:
    def __init__(self, queue_size: int = 256) -> None:
        self.queue_size = queue_size
        self._subs: Set[Subscription] = set()
        self.logger = logging.getLogger("app.bus")

    def subscribe(self) -> Subscription:
        sub = Subscription(self.queue_size)
        self._subs.add(sub)
        self.logger.info("subscriber added (total=%s)", len(self._subs))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        self._subs.discard(sub)
        self.logger.info("subscriber removed (total=%s)", len(self._subs))

    @property
    def subscriber_count(self) -> int:
        return len(self._subs)

    def publish(self, event: str, data: Dict[str, Any]) -> int:
        """Queue ``{event, data}`` for every subscriber; returns deliveries made."""
        message = {"event": event, "data": data}
        delivered = 0
        for sub in list(self._subs):
            try:
                sub.queue.put_nowait(message)
                delivered += 1
            except asyncio.QueueFull:
                sub.dropped += 1
                self.logger.warning("subscriber queue full; dropped %s event (dropped=%s)", event, sub.dropped)
        return delivered
