"""Hourly email digest of unread critical notifications.

Learn: Critical means TaskAssigned or ConflictDetected. Notifications are
grouped by recipient and each recipient gets one summary email. A missing
address or a failed send only affects that recipient.
"""

from collections import defaultdict
from html import escape
from typing import Optional, Protocol

import structlog

from managemate.db.repositories import (
    NotificationRecord,
    NotificationRepository,
    UserRepository,
)
from managemate.events.types import CRITICAL_NOTIFICATION_TYPES

logger = structlog.get_logger()


class EmailSender(Protocol):
    async def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        ...


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def digest_subject(count: int) -> str:
    return f"ManageMate: {count} Important Notification{_plural(count)}"


def digest_text(notifications: list[NotificationRecord]) -> str:
    count = len(notifications)
    lines = "\n".join(f"- {n.message}" for n in notifications)
    return (
        f"You have {count} important notification{_plural(count)}:\n\n"
        f"{lines}\n\n"
        "Please log in to ManageMate to view details.\n"
    )


def digest_html(notifications: list[NotificationRecord], base_url: str) -> str:
    count = len(notifications)
    items = "".join(f"<li>{escape(n.message)}</li>" for n in notifications)
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h2>ManageMate Notifications</h2>"
        f"<p>You have {count} important notification{_plural(count)}:</p>"
        f"<ul>{items}</ul>"
        f'<p><a href="{escape(base_url, quote=True)}">View Notifications</a></p>'
        '<hr style="margin: 20px 0;">'
        '<p style="font-size: 12px; color: #666;">'
        "This is an automated message from ManageMate. Please do not reply to this email."
        "</p></div>"
    )


class NotificationDigest:
    def __init__(
        self,
        notifications: NotificationRepository,
        users: UserRepository,
        sender: EmailSender,
        base_url: str,
    ):
        self.notifications = notifications
        self.users = users
        self.sender = sender
        self.base_url = base_url

    async def run(self) -> int:
        """Send one digest per recipient. Returns the number of emails sent."""
        unread = await self.notifications.find_unread(CRITICAL_NOTIFICATION_TYPES)

        by_recipient: dict[str, list[NotificationRecord]] = defaultdict(list)
        for notification in unread:
            by_recipient[notification.recipient_id].append(notification)

        sent = 0
        for recipient_id, items in by_recipient.items():
            try:
                email = await self.users.get_email(recipient_id)
                if not email:
                    logger.info("digest.no_email", recipient_id=recipient_id)
                    continue
                ok = await self.sender.send(
                    email,
                    digest_subject(len(items)),
                    digest_text(items),
                    digest_html(items, self.base_url),
                )
            except Exception:
                logger.exception("digest.recipient_failed", recipient_id=recipient_id)
                continue
            if ok:
                sent += 1

        logger.info(
            "digest.run_completed",
            notifications=len(unread),
            recipients=len(by_recipient),
            sent=sent,
        )
        return sent
