import json
import logging
from unittest.mock import AsyncMock

from src.pm_push.domain.events import PushEvent, match_room, user_room
from src.pm_push.infrastructure.publishers import InMemoryPublisher, RedisPublisher


class TestInMemoryPublisher:
    async def test_fans_out_to_room_subscribers(self) -> None:
        publisher = InMemoryPublisher()
        mine = publisher.subscribe(user_room("u1"))
        other = publisher.subscribe(user_room("u2"))

        event = PushEvent(user_room("u1"), "trade:confirmed", {"amount": 10})
        await publisher.publish(event)

        assert mine.get_nowait() == event
        assert other.empty()
        assert publisher.events == [event]

    async def test_unsubscribe(self) -> None:
        publisher = InMemoryPublisher()
        queue = publisher.subscribe(match_room(7))
        publisher.unsubscribe(match_room(7), queue)
        publisher.unsubscribe(match_room(7), queue)

        await publisher.publish(PushEvent(match_room(7), "markets:update"))

        assert queue.empty()

    async def test_history_is_capped(self) -> None:
        publisher = InMemoryPublisher(history_limit=3)
        for i in range(5):
            await publisher.publish(PushEvent("broadcast", "matches:update", {"i": i}))
        assert [e.payload["i"] for e in publisher.events] == [2, 3, 4]

    async def test_events_named_filters_by_room(self) -> None:
        publisher = InMemoryPublisher()
        await publisher.publish(PushEvent("admin", "admin:audit"))
        await publisher.publish(PushEvent("broadcast", "admin:audit"))
        assert len(publisher.events_named("admin:audit")) == 2
        assert len(publisher.events_named("admin:audit", "admin")) == 1


class TestRedisPublisher:
    async def test_publishes_json_to_prefixed_channel(self) -> None:
        redis = AsyncMock()
        publisher = RedisPublisher(redis, "yesno")

        await publisher.publish(PushEvent(match_room(101), "markets:update", {"matchId": 101}))

        channel, message = redis.publish.await_args.args
        assert channel == "yesno:match:101"
        assert json.loads(message) == {"event": "markets:update", "data": {"matchId": 101}}

    async def test_redis_failure_is_logged(self, caplog) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")
        publisher = RedisPublisher(redis)

        with caplog.at_level(logging.ERROR):
            await publisher.publish(PushEvent("broadcast", "matches:update"))

        assert "failed to publish matches:update" in caplog.text
