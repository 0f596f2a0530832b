"""Notification service — store a notification, then announce it live.

Learn: The database row is the source of truth; the Redis publish is only
a hint for whoever is online. So the row is written first, and a failed
publish is logged rather than raised: the caller still gets the stored
notification and the client will see it on its next fetch.
"""

import structlog
from redis.exceptions import RedisError

from managemate.db.repositories import NotificationRecord, NotificationRepository
from managemate.events.types import NOTIFICATION_TYPES
from managemate.realtime.pubsub import EventPublisher, PublisherNotInitialized

logger = structlog.get_logger()


class InvalidNotificationType(ValueError):
    pass


class NotificationService:
    def __init__(self, notifications: NotificationRepository, publisher: EventPublisher):
        self.notifications = notifications
        self.publisher = publisher

    async def create_notification(
        self,
        recipient_id: str,
        message: str,
        type: str,
        link: str,
    ) -> NotificationRecord:
        """Persist a notification and publish it on the notifications channel."""
        if type not in NOTIFICATION_TYPES:
            raise InvalidNotificationType(f"Unknown notification type: {type}")

        notification = await self.notifications.create(
            recipient_id=recipient_id,
            message=message,
            type=type,
            link=link,
        )
        try:
            await self.publisher.publish_notification(notification.to_event())
        except (RedisError, OSError, PublisherNotInitialized) as e:
            logger.warning(
                "notification.publish_failed",
                notification_id=notification.id,
                error=str(e),
            )
        else:
            logger.info(
                "notification.created",
                notification_id=notification.id,
                recipient_id=recipient_id,
                type=type,
            )
        return notification
