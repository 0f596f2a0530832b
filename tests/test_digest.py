"""Email digest tests — grouping, per-recipient isolation."""

from unittest.mock import AsyncMock

import pytest

from conftest import InMemoryNotificationRepository, InMemoryUserRepository
from managemate.scheduler.digest import NotificationDigest, digest_subject


@pytest.fixture
def repo():
    return InMemoryNotificationRepository()


async def _seed(repo):
    await repo.create("u1", "Task 'Login page' assigned to you", "TaskAssigned", "/tasks/1")
    await repo.create("u1", "You have 2 conflicting tasks", "ConflictDetected", "/dashboard")
    await repo.create("u1", "Status changed", "StatusUpdate", "/tasks/1")
    await repo.create("u2", "Task 'API' assigned to you", "TaskAssigned", "/tasks/2")
    read = await repo.create("u3", "Already seen", "TaskAssigned", "/tasks/3")
    await repo.mark_read(read.id)


def test_subject_pluralises():
    assert digest_subject(1) == "ManageMate: 1 Important Notification"
    assert digest_subject(3) == "ManageMate: 3 Important Notifications"


@pytest.mark.asyncio
async def test_one_email_per_recipient(repo):
    await _seed(repo)
    sender = AsyncMock()
    sender.send.return_value = True
    users = InMemoryUserRepository({"u1": "ana@example.com", "u2": "raj@example.com", "u3": "x@example.com"})

    sent = await NotificationDigest(repo, users, sender, "http://localhost:3000").run()

    assert sent == 2
    calls = {c.args[0]: c.args for c in sender.send.await_args_list}
    assert set(calls) == {"ana@example.com", "raj@example.com"}
    to, subject, text, html = calls["ana@example.com"]
    assert subject == "ManageMate: 2 Important Notifications"
    assert "- Task 'Login page' assigned to you" in text
    assert "Status changed" not in text
    assert "Task &#x27;Login page&#x27; assigned to you" in html
    assert 'href="http://localhost:3000"' in html


@pytest.mark.asyncio
async def test_failure_for_one_recipient_does_not_stop_others(repo):
    await _seed(repo)
    sender = AsyncMock()
    sender.send.side_effect = [ConnectionRefusedError("smtp down"), True]
    users = InMemoryUserRepository({"u1": "ana@example.com", "u2": "raj@example.com"})

    sent = await NotificationDigest(repo, users, sender, "http://localhost:3000").run()

    assert sent == 1
    assert sender.send.await_count == 2


@pytest.mark.asyncio
async def test_recipient_without_email_is_skipped(repo):
    await _seed(repo)
    sender = AsyncMock()
    sender.send.return_value = True

    sent = await NotificationDigest(
        repo, InMemoryUserRepository({"u2": "raj@example.com"}), sender, "http://x"
    ).run()

    assert sent == 1
    assert sender.send.await_args.args[0] == "raj@example.com"
