"""Server-sent events gateway between the event bus and one stream connection."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import orjson

from earnpulse.core.constants import HEARTBEAT_INTERVAL_SECONDS
from earnpulse.core.events import EventBus, Subscription
from earnpulse.core.logging import get_logger

logger = get_logger(__name__)


class GatewayState(StrEnum):
    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


def format_sse(event: str, data: Any, event_id: int | None = None) -> str:
    """Format one SSE frame. orjson output never contains newlines."""
    lines = []
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"event: {event}")
    lines.append(f"data: {orjson.dumps(data).decode()}")
    return "\n".join(lines) + "\n\n"


def _timestamp() -> dict[str, str]:
    return {"timestamp": datetime.now(UTC).isoformat()}


class StreamGateway:
    """Binds one streaming connection to the event bus.

    The bus subscription lives exactly as long as ``stream()`` runs. Whether
    the generator finishes, is cancelled by the transport, or the client is
    reported gone by ``is_disconnected``, the gateway ends ``closed`` and the
    subscription is released.

    Usage:
        gateway = StreamGateway(bus, heartbeat_interval=30.0)
        async for frame in gateway.stream():
            await send(frame)
    """

    def __init__(
        self,
        bus: EventBus,
        heartbeat_interval: float = HEARTBEAT_INTERVAL_SECONDS,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        if heartbeat_interval <= 0:
            raise ValueError("heartbeat_interval must be positive")
        self._bus = bus
        self._heartbeat_interval = heartbeat_interval
        self._is_disconnected = is_disconnected
        self._subscription: Subscription | None = None
        self._state = GatewayState.CONNECTING
        self.frames_sent = 0

    @property
    def state(self) -> GatewayState:
        return self._state

    @property
    def subscription(self) -> Subscription | None:
        return self._subscription

    async def stream(self) -> AsyncIterator[str]:
        """Yield SSE frames until the connection goes away."""
        if self._state is not GatewayState.CONNECTING:
            raise RuntimeError(f"Gateway cannot stream from state {self._state.value}")

        subscription = self._bus.subscribe()
        self._subscription = subscription
        self._state = GatewayState.STREAMING
        logger.info("Stream client connected", subscription_id=subscription.subscription_id)

        loop = asyncio.get_running_loop()
        try:
            yield self._frame("connected", _timestamp())
            next_heartbeat = loop.time() + self._heartbeat_interval

            while self._state is GatewayState.STREAMING:
                if self._is_disconnected is not None and await self._is_disconnected():
                    logger.debug(
                        "Stream client went away",
                        subscription_id=subscription.subscription_id,
                    )
                    break

                timeout = max(0.0, next_heartbeat - loop.time())
                try:
                    event = await asyncio.wait_for(subscription.get(), timeout=timeout)
                except TimeoutError:
                    # Fixed cadence; skip missed beats rather than bursting
                    next_heartbeat = max(
                        next_heartbeat + self._heartbeat_interval,
                        loop.time() + self._heartbeat_interval / 2,
                    )
                    yield self._frame("heartbeat", _timestamp())
                    continue

                yield self._frame(event.event_type.value, event.payload, event_id=event.sequence)
        finally:
            self.close()

    def close(self) -> None:
        """Release the bus subscription. Safe to call more than once."""
        if self._state is GatewayState.CLOSED:
            return
        self._state = GatewayState.CLOSED
        if self._subscription is not None:
            self._bus.unsubscribe(self._subscription)
            logger.info(
                "Stream client disconnected",
                subscription_id=self._subscription.subscription_id,
                frames_sent=self.frames_sent,
                dropped=self._subscription.dropped,
            )

    def _frame(self, event: str, data: Any, event_id: int | None = None) -> str:
        self.frames_sent += 1
        return format_sse(event, data, event_id)
