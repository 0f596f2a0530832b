"""Task conflict detection — flag overlapping tasks per assignee.

Learn: Two tasks conflict when they belong to the same assignee and their
windows overlap:

    startA < endB  and  startB < endA

(touching windows — one ends exactly when the other starts — do not
conflict). Only active tasks with both dates set take part.

The detector only acts on transitions. For each task it compares the
computed state with the stored has_conflict flag:

    False → True   persist, publish a task-conflict event (hasConflict: true)
    True  → False  persist, publish a task-conflict event (hasConflict: false)
    unchanged      nothing

So running it twice on the same data publishes nothing the second time.

Assignees are scanned a page at a time so one run never loads the whole
task table and the event loop gets a turn between pages. One malformed
task is skipped; one failing assignee is logged and the scan moves on.

A flagged task that loses its assignee drops out of the per-assignee scan,
so each run also clears the flag on every unassigned task. Those clears are
not published: there is no user room to send them to.
"""

import asyncio
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

import structlog
from redis.exceptions import RedisError

from managemate.db.repositories import TaskRecord, TaskRepository
from managemate.events.types import CONFLICT_DETECTED
from managemate.realtime.pubsub import EventPublisher, PublisherNotInitialized
from managemate.services.notification_service import NotificationService

logger = structlog.get_logger()

CLOSED_STATUSES = frozenset({"completed", "done", "cancelled", "canceled", "closed"})

Window = tuple[datetime, datetime]


class MalformedTaskError(ValueError):
    pass


@dataclass
class ConflictScanResult:
    assignees: int = 0
    tasks: int = 0
    flagged: int = 0
    cleared: int = 0
    skipped: int = 0
    errors: int = 0


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def task_window(task: TaskRecord) -> Optional[Window]:
    """The task's (start, end) window, or None if it does not take part.

    Raises MalformedTaskError for dates that are not datetimes or a
    deadline before the start date.
    """
    if (task.status or "").strip().lower() in CLOSED_STATUSES:
        return None
    if task.start_date is None or task.deadline is None:
        return None
    if not isinstance(task.start_date, datetime) or not isinstance(task.deadline, datetime):
        raise MalformedTaskError(f"task {task.id} has non-datetime dates")
    start, end = _aware(task.start_date), _aware(task.deadline)
    if end < start:
        raise MalformedTaskError(f"task {task.id} ends before it starts")
    return start, end


def overlaps(a: Window, b: Window) -> bool:
    return a[0] < b[1] and b[0] < a[1]


def find_overlaps(windows: dict[str, Window]) -> dict[str, list[str]]:
    """Map each task id to the ids of tasks whose windows overlap it.

    Tasks without any overlap are absent from the result.
    """
    ordered = sorted(windows.items(), key=lambda item: item[1][0])
    result: dict[str, list[str]] = {}
    for i, (task_id, window) in enumerate(ordered):
        for other_id, other in ordered[i + 1:]:
            if other[0] >= window[1]:
                break
            if overlaps(window, other):
                result.setdefault(task_id, []).append(other_id)
                result.setdefault(other_id, []).append(task_id)
    return result


class ConflictDetector:
    """One conflict scan per call to run()."""

    def __init__(
        self,
        tasks: TaskRepository,
        publisher: EventPublisher,
        notifications: Optional[NotificationService] = None,
        page_size: int = 100,
        notification_link: str = "/dashboard",
    ):
        self.tasks = tasks
        self.publisher = publisher
        self.notifications = notifications
        self.page_size = page_size
        self.notification_link = notification_link

    async def run(self) -> ConflictScanResult:
        result = ConflictScanResult()
        after: Optional[str] = None
        while True:
            assignee_ids = await self.tasks.list_assignee_ids(after, self.page_size)
            for assignee_id in assignee_ids:
                try:
                    await self._check_assignee(assignee_id, result)
                except Exception:
                    result.errors += 1
                    logger.exception("conflicts.assignee_failed", assignee_id=assignee_id)
            if len(assignee_ids) < self.page_size:
                break
            after = assignee_ids[-1]
            await asyncio.sleep(0)

        await self._clear_unassigned(result)

        logger.info("conflicts.run_completed", **asdict(result))
        return result

    async def _clear_unassigned(self, result: ConflictScanResult) -> None:
        try:
            cleared = await self.tasks.clear_unassigned_conflicts()
        except Exception:
            result.errors += 1
            logger.exception("conflicts.unassigned_clear_failed")
            return
        result.cleared += len(cleared)
        if cleared:
            logger.info("conflicts.unassigned_cleared", task_ids=cleared)

    async def _check_assignee(self, assignee_id: str, result: ConflictScanResult) -> None:
        tasks = await self.tasks.find_tasks_by_assignee(assignee_id)
        result.assignees += 1
        result.tasks += len(tasks)

        windows: dict[str, Optional[Window]] = {}
        for task in tasks:
            try:
                windows[task.id] = task_window(task)
            except MalformedTaskError as e:
                result.skipped += 1
                logger.warning("conflicts.task_skipped", task_id=task.id, reason=str(e))

        conflicts = find_overlaps({tid: w for tid, w in windows.items() if w is not None})

        newly_flagged: list[TaskRecord] = []
        for task in tasks:
            if task.id not in windows:
                continue
            overlapping = conflicts.get(task.id, [])
            in_conflict = bool(overlapping)
            if in_conflict == task.has_conflict:
                continue

            await self.tasks.update_task(task.id, {"has_conflict": in_conflict})
            await self._publish(assignee_id, task, overlapping, in_conflict)
            if in_conflict:
                result.flagged += 1
                newly_flagged.append(task)
            else:
                result.cleared += 1

        if newly_flagged:
            await self._notify(assignee_id, len(conflicts))

    async def _publish(
        self,
        assignee_id: str,
        task: TaskRecord,
        overlapping: list[str],
        in_conflict: bool,
    ) -> None:
        event = {
            "userId": assignee_id,
            "taskId": task.id,
            "taskTitle": task.title,
            "conflictingTaskIds": sorted(overlapping),
            "hasConflict": in_conflict,
            "message": "Task conflict detected" if in_conflict else "Task conflict resolved",
        }
        try:
            await self.publisher.publish_conflict(event)
        except (RedisError, OSError, PublisherNotInitialized) as e:
            logger.warning("conflicts.publish_failed", task_id=task.id, error=str(e))

    async def _notify(self, assignee_id: str, conflicting: int) -> None:
        if self.notifications is None:
            return
        await self.notifications.create_notification(
            recipient_id=assignee_id,
            message=f"You have {conflicting} conflicting tasks that overlap in schedule.",
            type=CONFLICT_DETECTED,
            link=self.notification_link,
        )
