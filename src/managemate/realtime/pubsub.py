"""Redis pub/sub publisher — how producers put events on the bus.

Learn: Redis pub/sub is fire-and-forget. If no gateway is subscribed at the
moment of PUBLISH, the message is gone. That's fine for live UI hints:
notifications and chat messages are stored in the database first, and the
client can always re-fetch them over HTTP.

One EventPublisher is built in the app lifespan and handed to request
handlers and jobs through app.state — there is no module-level client.
"""

import json
from typing import Any, Optional, Union

import redis.asyncio as aioredis
import structlog

from managemate.events.schemas import (
    BaseEvent,
    ChatMessageEvent,
    ConflictEvent,
    NotificationEvent,
)
from managemate.events.types import (
    CHAT_CHANNEL,
    CONFLICTS_CHANNEL,
    NOTIFICATIONS_CHANNEL,
)

logger = structlog.get_logger()


class PublisherNotInitialized(RuntimeError):
    """publish() was called before init() (or after close())."""


class EventPublisher:
    """Publishes JSON events onto the fixed bus channels."""

    def __init__(self, redis_url: str, client: Optional[aioredis.Redis] = None):
        self.redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = client

    async def init(self) -> aioredis.Redis:
        """Create the Redis connection pool and verify it answers."""
        if self._redis is None:
            self._redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        await self._redis.ping()
        return self._redis

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @property
    def redis(self) -> aioredis.Redis:
        if self._redis is None:
            raise PublisherNotInitialized("EventPublisher not initialized. Call init() first.")
        return self._redis

    async def publish(
        self,
        channel: str,
        event: Union[BaseEvent, Any],
    ) -> int:
        """Publish an event. Returns how many subscribers Redis delivered to."""
        data = event.payload() if isinstance(event, BaseEvent) else event
        receivers = await self.redis.publish(channel, json.dumps(data, default=str))
        logger.debug("pubsub.published", channel=channel, receivers=receivers)
        return receivers

    async def publish_notification(self, notification: dict[str, Any]) -> int:
        return await self.publish(
            NOTIFICATIONS_CHANNEL, NotificationEvent.from_data(notification)
        )

    async def publish_chat_message(self, message: dict[str, Any]) -> int:
        return await self.publish(CHAT_CHANNEL, ChatMessageEvent.from_data(message))

    async def publish_conflict(self, conflict: dict[str, Any]) -> int:
        return await self.publish(CONFLICTS_CHANNEL, ConflictEvent.from_data(conflict))
