"""Tests for the Redis event relay."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import orjson
from redis.exceptions import ConnectionError as RedisConnectionError

from earnpulse.core.constants import EVENT_RELAY_CHANNEL
from earnpulse.core.events import EventBus, EventType
from earnpulse.live.relay import RedisEventRelay


async def _settle(relay: RedisEventRelay, count: int) -> None:
    for _ in range(200):
        if relay.relayed >= count:
            return
        await asyncio.sleep(0.005)
    raise AssertionError(f"relayed {relay.relayed} of {count} events")


class TestRedisEventRelay:
    async def test_publishes_events_as_json(self) -> None:
        bus = EventBus()
        redis = AsyncMock()
        relay = RedisEventRelay(bus, redis)
        relay.start()

        event = bus.publish(EventType.CHANGE, {"status": "released"}, "Acme")
        await _settle(relay, 1)
        await relay.stop()

        channel, data = redis.publish.await_args.args
        assert channel == EVENT_RELAY_CHANNEL
        assert orjson.loads(data) == event.to_dict()

    async def test_stop_unsubscribes(self) -> None:
        bus = EventBus()
        relay = RedisEventRelay(bus, AsyncMock(), channel="test:events")
        relay.start()
        assert relay.running
        assert bus.subscriber_count == 1

        await relay.stop()

        assert not relay.running
        assert bus.subscriber_count == 0

    async def test_start_twice_keeps_one_subscription(self) -> None:
        bus = EventBus()
        relay = RedisEventRelay(bus, AsyncMock())
        relay.start()
        relay.start()

        assert bus.subscriber_count == 1
        await relay.stop()

    async def test_publish_failure_does_not_stop_relay(self) -> None:
        bus = EventBus()
        redis = AsyncMock()
        redis.publish.side_effect = [RedisConnectionError("down"), 1]
        relay = RedisEventRelay(bus, redis)
        relay.start()

        bus.publish(EventType.UPDATE, {"n": 1})
        bus.publish(EventType.UPDATE, {"n": 2})
        await _settle(relay, 1)
        await relay.stop()

        assert redis.publish.await_count == 2
        assert relay.relayed == 1

    async def test_stop_before_start(self) -> None:
        relay = RedisEventRelay(EventBus(), AsyncMock())
        await relay.stop()
        assert not relay.running
