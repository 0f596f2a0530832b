"""Message bus bridge — Redis SUBSCRIBE → gateway rooms.

Learn: Each gateway process holds exactly one Redis subscriber connection,
subscribed to all three channels. Every message is parsed into a typed
event and routed by channel:

    notifications → "notification"  to every connection
    chat          → "chat-message"  to room chat:{moduleId}
    conflicts     → "task-conflict" to room user:{userId}

A message that fails to parse is logged and dropped; it never stops the
listener.

Connection states:

    DISCONNECTED ──connect()──▶ CONNECTED ──connection lost──▶ RECONNECTING
                                    ▲                              │
                                    └──────── reconnected ─────────┤
                                                                   ▼
                                              attempts exhausted: FAILED

If the broker is unreachable at startup, connect() raises and the process
should not start. Events published while the bridge is reconnecting are
lost — pub/sub has no replay.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError

from managemate.events.schemas import EventParseError, parse_event
from managemate.events.types import BUS_CHANNELS
from managemate.realtime.gateway import Gateway

logger = structlog.get_logger()

ClientFactory = Callable[[str], aioredis.Redis]
Sleep = Callable[[float], Awaitable[Any]]

# Errors that mean "the broker connection is gone", as opposed to a bug.
_CONNECTION_ERRORS = (RedisError, OSError)


class BridgeState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    FAILED = "failed"
    CLOSED = "closed"


class BridgeConnectError(RuntimeError):
    """The broker could not be reached when the bridge started."""


@dataclass
class BridgeStats:
    """Runtime counters for the health endpoint."""
    received: int = 0
    dropped: int = 0
    delivered: int = 0
    reconnects: int = 0


def _default_client(redis_url: str) -> aioredis.Redis:
    return aioredis.from_url(redis_url, encoding="utf-8", decode_responses=True)


class MessageBusBridge:
    """One Redis subscriber per process, feeding the gateway."""

    def __init__(
        self,
        gateway: Gateway,
        redis_url: str,
        channels: tuple[str, ...] = BUS_CHANNELS,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        max_attempts: int = 10,
        client_factory: ClientFactory = _default_client,
        sleep: Sleep = asyncio.sleep,
    ):
        self.gateway = gateway
        self.redis_url = redis_url
        self.channels = channels
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.max_attempts = max_attempts
        self.stats = BridgeStats()
        self._client_factory = client_factory
        self._sleep = sleep
        self._redis: Optional[aioredis.Redis] = None
        self._pubsub = None
        self._task: Optional[asyncio.Task] = None
        self._state = BridgeState.DISCONNECTED

    @property
    def state(self) -> BridgeState:
        return self._state

    # ─── Lifecycle ────────────────────────────────────────

    async def connect(self) -> None:
        """Open the subscriber connection. Raises BridgeConnectError on failure."""
        try:
            await self._open()
        except _CONNECTION_ERRORS as e:
            await self._teardown()
            self._state = BridgeState.FAILED
            logger.error("bridge.connect_failed", url=self.redis_url, error=str(e))
            raise BridgeConnectError(f"Cannot subscribe to {self.redis_url}: {e}") from e
        logger.info("bridge.connected", channels=list(self.channels))

    def start(self) -> asyncio.Task:
        """Run the listen loop as a background task on the current loop."""
        self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self) -> None:
        """Stop listening and release the connection."""
        self._state = BridgeState.CLOSED
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        await self._teardown()
        logger.info("bridge.closed", **vars(self.stats))

    # ─── Listen loop ──────────────────────────────────────

    async def run(self) -> None:
        """Forward messages until closed or until reconnecting gives up."""
        while self._state == BridgeState.CONNECTED:
            try:
                await self._listen()
            except _CONNECTION_ERRORS as e:
                if self._state != BridgeState.CONNECTED:
                    break
                logger.warning("bridge.connection_lost", error=str(e))
                if not await self._reconnect():
                    return
            else:
                # listen() only returns once nothing is subscribed any more
                break

    async def _listen(self) -> None:
        async for message in self._pubsub.listen():
            if message.get("type") != "message":
                continue
            await self.on_message(message["channel"], message["data"])

    async def on_message(self, channel: str, raw: Union[str, bytes]) -> None:
        """Parse one bus message and hand it to the gateway. Never raises."""
        self.stats.received += 1
        if isinstance(channel, bytes):
            channel = channel.decode()
        try:
            event = parse_event(channel, raw)
        except EventParseError as e:
            self.stats.dropped += 1
            logger.error("bridge.message_dropped", channel=channel, error=e.reason)
            return

        route = event.route()
        try:
            if route.room is None:
                sent = await self.gateway.broadcast(route.event_name, event.payload())
            else:
                sent = await self.gateway.deliver(route.room, route.event_name, event.payload())
        except Exception:
            logger.exception("bridge.delivery_error", channel=channel, room=route.room)
            return
        self.stats.delivered += sent

    # ─── Connection management ────────────────────────────

    async def _open(self) -> None:
        self._redis = self._client_factory(self.redis_url)
        await self._redis.ping()
        self._pubsub = self._redis.pubsub(ignore_subscribe_messages=True)
        await self._pubsub.subscribe(*self.channels)
        self._state = BridgeState.CONNECTED

    async def _reconnect(self) -> bool:
        """Retry with exponential backoff. Returns False once attempts run out."""
        delay = self.initial_delay
        for attempt in range(1, self.max_attempts + 1):
            self._state = BridgeState.RECONNECTING
            await self._teardown()
            logger.info("bridge.reconnecting", attempt=attempt, delay=delay)
            await self._sleep(delay)
            if self._state == BridgeState.CLOSED:
                return False
            try:
                await self._open()
            except _CONNECTION_ERRORS as e:
                logger.warning("bridge.reconnect_failed", attempt=attempt, error=str(e))
                delay = min(delay * 2, self.max_delay)
                continue
            self.stats.reconnects += 1
            logger.info("bridge.reconnected", attempt=attempt)
            return True

        await self._teardown()
        self._state = BridgeState.FAILED
        logger.error("bridge.failed", attempts=self.max_attempts)
        return False

    async def _teardown(self) -> None:
        pubsub, client = self._pubsub, self._redis
        self._pubsub = None
        self._redis = None
        for resource in (pubsub, client):
            if resource is None:
                continue
            try:
                await resource.aclose()
            except _CONNECTION_ERRORS as e:
                logger.debug("bridge.teardown_error", error=str(e))
