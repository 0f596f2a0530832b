"""Test fixtures — in-memory stand-ins for Redis, the database and clients.

Learn: The realtime layer only talks to its collaborators through small
interfaces (a Redis client with publish/ping, repositories, Connection.send),
so tests plug in in-memory versions and run without Postgres or Redis:

- FakeConnection records every event the gateway sends it
- FakeBus is a Redis client whose publish() hands the message straight to
  the bridge, so publisher → bus → bridge → gateway runs end to end
- InMemory*Repository keep rows in dicts

The HTTP client uses httpx's ASGITransport, which does not run the app
lifespan, so each test wires the components it needs onto app.state.
"""

import dataclasses
import itertools
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from managemate.db.repositories import (
    ChatMessageRecord,
    NotificationRecord,
    TaskRecord,
)
from managemate.realtime.bridge import MessageBusBridge
from managemate.realtime.gateway import Connection, Gateway
from managemate.realtime.pubsub import EventPublisher
from managemate.scheduler.runner import JobScheduler
from managemate.services.chat_service import ChatService
from managemate.services.notification_service import NotificationService


# ─── Connections and bus ─────────────────────────────────


class FakeConnection(Connection):
    """Records (event, data) pairs instead of writing to a socket."""

    def __init__(self, user_id: Optional[str] = None, fail: bool = False):
        super().__init__(user_id=user_id)
        self.received: list[tuple[str, Any]] = []
        self.fail = fail

    async def send(self, event: str, data: Any) -> None:
        if self.fail:
            raise ConnectionResetError("socket closed")
        self.received.append((event, data))

    def events(self, name: str) -> list[Any]:
        return [data for event, data in self.received if event == name]


class FakeBus:
    """Minimal redis.asyncio.Redis stand-in used by EventPublisher."""

    def __init__(self):
        self.published: list[tuple[str, str]] = []
        self.bridges: list[MessageBusBridge] = []
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def publish(self, channel: str, data: str) -> int:
        self.published.append((channel, data))
        for bridge in self.bridges:
            await bridge.on_message(channel, data)
        return len(self.bridges)

    async def aclose(self) -> None:
        self.closed = True


# ─── Repositories ────────────────────────────────────────


class InMemoryTaskRepository:
    def __init__(self, tasks: Sequence[TaskRecord] = ()):
        self.tasks: dict[str, TaskRecord] = {t.id: t for t in tasks}
        self.updates: list[tuple[str, dict]] = []
        self.page_requests: list[tuple[Optional[str], int]] = []

    def add(self, task: TaskRecord) -> None:
        self.tasks[task.id] = task

    async def list_assignee_ids(self, after: Optional[str], limit: int) -> list[str]:
        self.page_requests.append((after, limit))
        ids = sorted({t.assignee_id for t in self.tasks.values() if t.assignee_id})
        if after is not None:
            ids = [i for i in ids if i > after]
        return ids[:limit]

    async def find_tasks_by_assignee(self, assignee_id: str) -> list[TaskRecord]:
        return sorted(
            (t for t in self.tasks.values() if t.assignee_id == assignee_id),
            key=lambda t: t.id,
        )

    async def update_task(self, task_id: str, patch: dict) -> Optional[TaskRecord]:
        task = self.tasks.get(task_id)
        if task is None:
            return None
        self.updates.append((task_id, patch))
        updated = dataclasses.replace(task, **patch)
        self.tasks[task_id] = updated
        return updated

    async def clear_unassigned_conflicts(self) -> list[str]:
        cleared = [t.id for t in self.tasks.values() if t.assignee_id is None and t.has_conflict]
        for task_id in cleared:
            await self.update_task(task_id, {"has_conflict": False})
        return cleared


class InMemoryNotificationRepository:
    def __init__(self):
        self.rows: dict[str, NotificationRecord] = {}

    async def create(self, recipient_id: str, message: str, type: str, link: str) -> NotificationRecord:
        record = NotificationRecord(
            id=str(uuid.uuid4()),
            recipient_id=recipient_id,
            message=message,
            type=type,
            link=link,
        )
        self.rows[record.id] = record
        return record

    async def find_unread(self, types: Sequence[str]) -> list[NotificationRecord]:
        return [n for n in self.rows.values() if not n.is_read and n.type in types]

    async def list_for_recipient(self, recipient_id: str, limit: int = 50) -> list[NotificationRecord]:
        return [n for n in self.rows.values() if n.recipient_id == recipient_id][:limit]

    async def mark_read(self, notification_id: str) -> Optional[NotificationRecord]:
        record = self.rows.get(notification_id)
        if record is None:
            return None
        updated = dataclasses.replace(record, is_read=True)
        self.rows[notification_id] = updated
        return updated

    async def mark_all_read(self, recipient_id: str) -> int:
        count = 0
        for record in list(self.rows.values()):
            if record.recipient_id == recipient_id and not record.is_read:
                await self.mark_read(record.id)
                count += 1
        return count


class InMemoryUserRepository:
    def __init__(self, emails: Optional[dict[str, str]] = None):
        self.emails = emails or {}

    async def get_email(self, user_id: str) -> Optional[str]:
        return self.emails.get(user_id)


class InMemoryChatRepository:
    def __init__(self):
        self.rows: list[ChatMessageRecord] = []
        self._ids = itertools.count(1)

    async def create(self, module_id: str, user_id: str, user_name: str, content: str) -> ChatMessageRecord:
        record = ChatMessageRecord(
            id=f"msg-{next(self._ids)}",
            module_id=module_id,
            user_id=user_id,
            user_name=user_name,
            content=content,
            timestamp=datetime(2026, 1, 5, 9, 30, tzinfo=timezone.utc),
        )
        self.rows.append(record)
        return record

    async def list_for_module(self, module_id: str, limit: int = 50) -> list[ChatMessageRecord]:
        return [m for m in self.rows if m.module_id == module_id][-limit:]


# ─── Fixtures ────────────────────────────────────────────


@pytest.fixture
def gateway():
    return Gateway()


@pytest.fixture
def bus():
    return FakeBus()


@pytest.fixture
def bridge(gateway, bus):
    """A bridge wired to the fake bus (no Redis connection needed)."""
    bridge = MessageBusBridge(gateway, "redis://test")
    bus.bridges.append(bridge)
    return bridge


@pytest.fixture
def publisher(bus):
    return EventPublisher("redis://test", client=bus)


@pytest.fixture
def notification_repo():
    return InMemoryNotificationRepository()


@pytest.fixture
def notification_service(notification_repo, publisher):
    return NotificationService(notification_repo, publisher)


@pytest.fixture
def chat_repo():
    return InMemoryChatRepository()


@pytest.fixture
def app(gateway, bridge, publisher, notification_service, chat_repo):
    """App whose state holds in-memory components instead of the lifespan-built ones."""
    from managemate.main import create_app

    app = create_app()
    app.state.gateway = gateway
    app.state.bridge = bridge
    app.state.publisher = publisher
    app.state.notification_service = notification_service
    app.state.chat_service = ChatService(chat_repo, publisher)
    app.state.scheduler = JobScheduler()

    return app


@pytest_asyncio.fixture()
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
