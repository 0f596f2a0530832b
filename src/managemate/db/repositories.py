"""Repositories — the persistence interface the realtime layer depends on.

Learn: The conflict detector, the email digest and the HTTP producers only
see the small Protocols below (find tasks by assignee, update a task, store
a notification...). The Sql* classes implement them on top of SQLAlchemy;
tests implement them with plain dicts. Records are frozen dataclasses with
string ids, so nothing outside this module handles ORM objects or UUIDs.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from sqlalchemy import Select, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from managemate.db.models import ChatMessage, Notification, Task, User, utcnow


# ─── Records ─────────────────────────────────────────────


@dataclass(frozen=True)
class TaskRecord:
    id: str
    assignee_id: Optional[str]
    title: str = ""
    start_date: Optional[datetime] = None
    deadline: Optional[datetime] = None
    status: str = "To Do"
    has_conflict: bool = False


@dataclass(frozen=True)
class NotificationRecord:
    id: str
    recipient_id: str
    message: str
    type: str
    link: str
    is_read: bool = False
    created_at: datetime = field(default_factory=utcnow)

    def to_event(self) -> dict[str, Any]:
        """Wire shape published on the notifications channel."""
        return {
            "id": self.id,
            "recipientId": self.recipient_id,
            "message": self.message,
            "type": self.type,
            "link": self.link,
            "isRead": self.is_read,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ChatMessageRecord:
    id: str
    module_id: str
    user_id: str
    user_name: str
    content: str
    timestamp: datetime = field(default_factory=utcnow)

    def to_event(self) -> dict[str, Any]:
        """Wire shape published on the chat channel."""
        return {
            "id": self.id,
            "moduleId": self.module_id,
            "userId": self.user_id,
            "userName": self.user_name,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


# ─── Interfaces ──────────────────────────────────────────


class TaskRepository(Protocol):
    async def list_assignee_ids(self, after: Optional[str], limit: int) -> list[str]:
        """Distinct assignee ids greater than ``after``, ascending."""
        ...

    async def find_tasks_by_assignee(self, assignee_id: str) -> list[TaskRecord]:
        ...

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> Optional[TaskRecord]:
        ...

    async def clear_unassigned_conflicts(self) -> list[str]:
        """Unflag tasks that have no assignee. Returns the ids cleared."""
        ...


class NotificationRepository(Protocol):
    async def create(
        self, recipient_id: str, message: str, type: str, link: str
    ) -> NotificationRecord:
        ...

    async def find_unread(self, types: Sequence[str]) -> list[NotificationRecord]:
        ...

    async def list_for_recipient(
        self, recipient_id: str, limit: int = 50
    ) -> list[NotificationRecord]:
        ...

    async def mark_read(self, notification_id: str) -> Optional[NotificationRecord]:
        ...

    async def mark_all_read(self, recipient_id: str) -> int:
        ...


class UserRepository(Protocol):
    async def get_email(self, user_id: str) -> Optional[str]:
        ...


class ChatRepository(Protocol):
    async def create(
        self, module_id: str, user_id: str, user_name: str, content: str
    ) -> ChatMessageRecord:
        ...

    async def list_for_module(self, module_id: str, limit: int = 50) -> list[ChatMessageRecord]:
        ...


# ─── SQLAlchemy implementations ──────────────────────────


def _uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _task_record(task: Task) -> TaskRecord:
    return TaskRecord(
        id=str(task.id),
        assignee_id=str(task.assignee_id) if task.assignee_id else None,
        title=task.title,
        start_date=task.start_date,
        deadline=task.deadline,
        status=task.status,
        has_conflict=task.has_conflict,
    )


def _notification_record(n: Notification) -> NotificationRecord:
    return NotificationRecord(
        id=str(n.id),
        recipient_id=str(n.recipient_id),
        message=n.message,
        type=n.type,
        link=n.link,
        is_read=n.is_read,
        created_at=n.created_at,
    )


def _chat_record(m: ChatMessage) -> ChatMessageRecord:
    return ChatMessageRecord(
        id=str(m.id),
        module_id=str(m.module_id),
        user_id=str(m.user_id),
        user_name=m.user_name,
        content=m.content,
        timestamp=m.timestamp,
    )


def assignee_page_query(after: Optional[str], limit: int) -> Select:
    """Keyset page of distinct assignee ids, ascending, strictly after ``after``."""
    q = select(Task.assignee_id).where(Task.assignee_id.is_not(None))
    if after is not None:
        q = q.where(Task.assignee_id > _uuid(after))
    return q.distinct().order_by(Task.assignee_id).limit(limit)


class _SqlRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory


class SqlTaskRepository(_SqlRepository):
    _PATCHABLE = {"has_conflict", "status", "start_date", "deadline", "title"}

    async def list_assignee_ids(self, after: Optional[str], limit: int) -> list[str]:
        async with self.session_factory() as db:
            result = await db.execute(assignee_page_query(after, limit))
            return [str(row) for row in result.scalars().all()]

    async def find_tasks_by_assignee(self, assignee_id: str) -> list[TaskRecord]:
        key = _uuid(assignee_id)
        if key is None:
            return []
        async with self.session_factory() as db:
            result = await db.execute(
                select(Task).where(Task.assignee_id == key).order_by(Task.id)
            )
            return [_task_record(t) for t in result.scalars().all()]

    async def update_task(self, task_id: str, patch: dict[str, Any]) -> Optional[TaskRecord]:
        unknown = set(patch) - self._PATCHABLE
        if unknown:
            raise ValueError(f"Cannot patch task fields: {sorted(unknown)}")
        key = _uuid(task_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            result = await db.execute(
                update(Task).where(Task.id == key).values(**patch).returning(Task)
            )
            task = result.scalars().first()
            await db.commit()
            return _task_record(task) if task else None

    async def clear_unassigned_conflicts(self) -> list[str]:
        async with self.session_factory() as db:
            result = await db.execute(
                update(Task)
                .where(Task.assignee_id.is_(None), Task.has_conflict.is_(True))
                .values(has_conflict=False)
                .returning(Task.id)
            )
            cleared = [str(task_id) for task_id in result.scalars().all()]
            await db.commit()
            return cleared


class SqlNotificationRepository(_SqlRepository):
    async def create(
        self, recipient_id: str, message: str, type: str, link: str
    ) -> NotificationRecord:
        notification = Notification(
            recipient_id=uuid.UUID(str(recipient_id)),
            message=message,
            type=type,
            link=link,
            is_read=False,
            created_at=utcnow(),
        )
        async with self.session_factory() as db:
            db.add(notification)
            await db.commit()
            return _notification_record(notification)

    async def find_unread(self, types: Sequence[str]) -> list[NotificationRecord]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.is_read.is_(False), Notification.type.in_(list(types)))
                .order_by(Notification.created_at)
            )
            return [_notification_record(n) for n in result.scalars().all()]

    async def list_for_recipient(
        self, recipient_id: str, limit: int = 50
    ) -> list[NotificationRecord]:
        key = _uuid(recipient_id)
        if key is None:
            return []
        async with self.session_factory() as db:
            result = await db.execute(
                select(Notification)
                .where(Notification.recipient_id == key)
                .order_by(Notification.created_at.desc())
                .limit(limit)
            )
            return [_notification_record(n) for n in result.scalars().all()]

    async def mark_read(self, notification_id: str) -> Optional[NotificationRecord]:
        key = _uuid(notification_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            notification = await db.get(Notification, key)
            if notification is None:
                return None
            notification.is_read = True
            await db.commit()
            return _notification_record(notification)

    async def mark_all_read(self, recipient_id: str) -> int:
        key = _uuid(recipient_id)
        if key is None:
            return 0
        async with self.session_factory() as db:
            result = await db.execute(
                update(Notification)
                .where(Notification.recipient_id == key, Notification.is_read.is_(False))
                .values(is_read=True)
            )
            await db.commit()
            return result.rowcount or 0


class SqlUserRepository(_SqlRepository):
    async def get_email(self, user_id: str) -> Optional[str]:
        key = _uuid(user_id)
        if key is None:
            return None
        async with self.session_factory() as db:
            user = await db.get(User, key)
            return user.email if user else None


class SqlChatRepository(_SqlRepository):
    async def create(
        self, module_id: str, user_id: str, user_name: str, content: str
    ) -> ChatMessageRecord:
        message = ChatMessage(
            module_id=uuid.UUID(str(module_id)),
            user_id=uuid.UUID(str(user_id)),
            user_name=user_name,
            content=content,
            timestamp=utcnow(),
        )
        async with self.session_factory() as db:
            db.add(message)
            await db.commit()
            return _chat_record(message)

    async def list_for_module(self, module_id: str, limit: int = 50) -> list[ChatMessageRecord]:
        key = _uuid(module_id)
        if key is None:
            return []
        async with self.session_factory() as db:
            result = await db.execute(
                select(ChatMessage)
                .where(ChatMessage.module_id == key)
                .order_by(ChatMessage.timestamp.desc())
                .limit(limit)
            )
            return [_chat_record(m) for m in reversed(result.scalars().all())]
