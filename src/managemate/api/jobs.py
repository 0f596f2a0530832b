"""Manual trigger for scheduled jobs (conflict scan, email digest)."""

from dataclasses import asdict, is_dataclass

from fastapi import APIRouter, Depends, HTTPException

from managemate.api.deps import get_scheduler
from managemate.scheduler.runner import JobScheduler, UnknownJobError

router = APIRouter()


@router.get("/jobs")
async def list_jobs(scheduler: JobScheduler = Depends(get_scheduler)):
    return {
        name: {"interval": job.interval, **job.stats.as_dict()}
        for name, job in scheduler.jobs.items()
    }


@router.post("/jobs/{name}/run")
async def run_job(name: str, scheduler: JobScheduler = Depends(get_scheduler)):
    """Run a job now, outside its schedule. Errors are reported in the stats."""
    try:
        result = await scheduler.run_once(name)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {name}")
    if is_dataclass(result):
        result = asdict(result)
    job = scheduler.jobs[name]
    return {"job": name, "result": result, **job.stats.as_dict()}
