"""Chat service — store a module chat message, then publish it to chat:{moduleId}."""

import structlog
from redis.exceptions import RedisError

from managemate.db.repositories import ChatMessageRecord, ChatRepository
from managemate.realtime.pubsub import EventPublisher, PublisherNotInitialized

logger = structlog.get_logger()


class ChatService:
    def __init__(self, messages: ChatRepository, publisher: EventPublisher):
        self.messages = messages
        self.publisher = publisher

    async def post_message(
        self, module_id: str, user_id: str, user_name: str, content: str
    ) -> ChatMessageRecord:
        message = await self.messages.create(
            module_id=module_id,
            user_id=user_id,
            user_name=user_name,
            content=content,
        )
        try:
            await self.publisher.publish_chat_message(message.to_event())
        except (RedisError, OSError, PublisherNotInitialized) as e:
            logger.warning("chat.publish_failed", message_id=message.id, error=str(e))
        return message

    async def history(self, module_id: str, limit: int = 50) -> list[ChatMessageRecord]:
        return await self.messages.list_for_module(module_id, limit=limit)
