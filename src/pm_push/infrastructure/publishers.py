"""EventPublisher implementations.

``InMemoryPublisher`` is the default: it records every event and fans out to
per-room ``asyncio.Queue`` subscribers in the same process.
``RedisPublisher`` publishes JSON to ``"<prefix>:<room>"`` channels for a
transport layer running elsewhere.
"""

import asyncio
import json
import logging
from collections import defaultdict

from redis.asyncio import Redis

from src.pm_push.domain.events import PushEvent

logger = logging.getLogger(__name__)


class InMemoryPublisher:
    def __init__(self, history_limit: int = 1000) -> None:
        self.events: list[PushEvent] = []
        self._history_limit = history_limit
        self._subscribers: dict[str, list[asyncio.Queue[PushEvent]]] = defaultdict(list)

    def subscribe(self, room: str) -> asyncio.Queue[PushEvent]:
        queue: asyncio.Queue[PushEvent] = asyncio.Queue()
        self._subscribers[room].append(queue)
        return queue

    def unsubscribe(self, room: str, queue: asyncio.Queue[PushEvent]) -> None:
        queues = self._subscribers.get(room, [])
        if queue in queues:
            queues.remove(queue)

    async def publish(self, event: PushEvent) -> None:
        self.events.append(event)
        if len(self.events) > self._history_limit:
            del self.events[: len(self.events) - self._history_limit]
        for queue in self._subscribers.get(event.room, []):
            queue.put_nowait(event)

    def events_named(self, name: str, room: str | None = None) -> list[PushEvent]:
        return [e for e in self.events if e.name == name and (room is None or e.room == room)]


class RedisPublisher:
    def __init__(self, redis: Redis, channel_prefix: str = "yesno") -> None:
        self._redis = redis
        self._prefix = channel_prefix

    def channel(self, room: str) -> str:
        return f"{self._prefix}:{room}"

    async def publish(self, event: PushEvent) -> None:
        message = json.dumps({"event": event.name, "data": event.payload}, default=str)
        try:
            await self._redis.publish(self.channel(event.room), message)
        except Exception:
            # Push is best-effort; the engine state is already committed
            logger.exception("failed to publish %s to %s", event.name, event.room)
