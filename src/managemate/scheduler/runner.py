"""Periodic job runner — asyncio tasks on the shared event loop.

Learn: Same shape as a polling worker: sleep, run, catch everything, loop.
The catch is the important part — one bad run (DB timeout, broker down)
must never kill the loop, otherwise the job silently stops forever.

A job never overlaps with itself: if a manual trigger arrives while the
scheduled run is still going, the trigger is skipped.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

import structlog

logger = structlog.get_logger()


class UnknownJobError(KeyError):
    pass


@dataclass
class JobStats:
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    last_run_at: Optional[datetime] = None
    last_error: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "runs": self.runs,
            "failures": self.failures,
            "skipped": self.skipped,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }


@dataclass
class PeriodicJob:
    name: str
    func: Callable[[], Awaitable[Any]]
    interval: float
    stats: JobStats = field(default_factory=JobStats)
    running: bool = False


class JobScheduler:
    """Runs each registered job every ``interval`` seconds."""

    def __init__(self, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep):
        self._sleep = sleep
        self._jobs: dict[str, PeriodicJob] = {}
        self._tasks: list[asyncio.Task] = []
        self._running = False

    def add(self, name: str, func: Callable[[], Awaitable[Any]], interval: float) -> PeriodicJob:
        if interval <= 0:
            raise ValueError(f"Job '{name}' needs a positive interval")
        job = PeriodicJob(name=name, func=func, interval=interval)
        self._jobs[name] = job
        return job

    @property
    def jobs(self) -> dict[str, PeriodicJob]:
        return dict(self._jobs)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self._jobs.values():
            self._tasks.append(asyncio.create_task(self._loop(job), name=f"job:{job.name}"))
        logger.info("scheduler.started", jobs={j.name: j.interval for j in self._jobs.values()})

    async def stop(self) -> None:
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("scheduler.stopped")

    async def run_once(self, name: str) -> Any:
        """Run a job now. Returns its result, or None if it failed or was skipped."""
        job = self._jobs.get(name)
        if job is None:
            raise UnknownJobError(name)
        return await self._run(job)

    async def _loop(self, job: PeriodicJob) -> None:
        while self._running:
            await self._sleep(job.interval)
            if not self._running:
                break
            await self._run(job)

    async def _run(self, job: PeriodicJob) -> Any:
        if job.running:
            job.stats.skipped += 1
            logger.info("scheduler.job_skipped", job=job.name, reason="already running")
            return None

        job.running = True
        job.stats.runs += 1
        job.stats.last_run_at = datetime.now(timezone.utc)
        logger.info("scheduler.job_started", job=job.name)
        try:
            result = await job.func()
        except Exception as e:
            job.stats.failures += 1
            job.stats.last_error = str(e)
            logger.exception("scheduler.job_failed", job=job.name)
            return None
        finally:
            job.running = False

        job.stats.last_error = None
        logger.info("scheduler.job_completed", job=job.name)
        return result

    def stats(self) -> dict[str, dict]:
        return {name: job.stats.as_dict() for name, job in self._jobs.items()}
