"""
APScheduler integration.

Runs the batch jobs in-process on cron triggers (UTC, from config.yml):
- Priority recompute: re-tiers Mountain Project routes (03:00)
- Kaya sync: incremental sync of configured destinations (04:00)
- Matching: links Kaya climbs to Mountain Project routes (06:00)

Every run is also recorded by the job tracker, so the scheduler itself only
logs outcomes.
"""

from typing import Any

from apscheduler import AsyncScheduler, ConflictPolicy, JobOutcome, JobReleased
from apscheduler.datastores.memory import MemoryDataStore
from apscheduler.triggers.cron import CronTrigger

from cragsync.config import get_config, get_settings
from cragsync.core.logging import get_logger

logger = get_logger(__name__)

# Global scheduler instance
scheduler: AsyncScheduler | None = None


def _parse_time(value: str) -> tuple[int, int]:
    """'HH:MM' -> (hour, minute)"""
    hour, minute = value.split(":", 1)
    return int(hour), int(minute)


async def priority_recompute_job() -> None:
    from cragsync.jobs.priorities import run_priority_recompute

    logger.info("scheduled_priority_job_started")
    try:
        stats = await run_priority_recompute()
        logger.bind(**stats).info("scheduled_priority_job_completed")
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_priority_job_failed")
        raise  # Re-raise so APScheduler records the failure


async def kaya_sync_job() -> None:
    """Incremental sync; resumes an interrupted run from its checkpoint."""
    from cragsync.jobs.sync_kaya import run_kaya_sync

    logger.info("scheduled_kaya_sync_started")
    try:
        stats = await run_kaya_sync(incremental=True)
        logger.bind(**stats).info("scheduled_kaya_sync_completed")
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_kaya_sync_failed")
        raise


async def matching_job() -> None:
    from cragsync.jobs.match_routes import run_matching

    if not get_config().schedule.matching_enabled:
        logger.debug("scheduled_matching_disabled")
        return

    logger.info("scheduled_matching_started")
    try:
        stats = await run_matching()
        logger.bind(**stats).info("scheduled_matching_completed")
    except Exception as e:
        logger.bind(error=str(e)).error("scheduled_matching_failed")
        raise


SCHEDULED_JOBS = {
    "priority_recompute": (priority_recompute_job, "priority_recompute_time_utc"),
    "kaya_sync": (kaya_sync_job, "kaya_sync_time_utc"),
    "kaya_mp_matching": (matching_job, "matching_time_utc"),
}


async def start_scheduler() -> AsyncScheduler | None:
    """Initialize and start the scheduler with in-memory schedules."""
    global scheduler

    settings = get_settings()
    if not settings.scheduler_enabled:
        logger.info("scheduler_disabled_by_config")
        return None

    schedule_config = get_config().schedule
    scheduler = AsyncScheduler(data_store=MemoryDataStore())

    # Must be entered before any other call in APScheduler 4.x
    await scheduler.__aenter__()
    scheduler.subscribe(_on_job_released, {JobReleased})

    for schedule_id, (func, time_attr) in SCHEDULED_JOBS.items():
        hour, minute = _parse_time(getattr(schedule_config, time_attr))
        await scheduler.add_schedule(
            func,
            CronTrigger(hour=hour, minute=minute, timezone="UTC"),
            id=schedule_id,
            conflict_policy=ConflictPolicy.replace,
            max_running_jobs=1,
        )

    await scheduler.start_in_background()

    logger.bind(jobs=list(SCHEDULED_JOBS)).info("scheduler_started")
    return scheduler


async def _on_job_released(event: Any) -> None:
    if not isinstance(event, JobReleased):
        return
    if event.outcome == JobOutcome.error:
        exception = getattr(event, "exception", None)
        logger.bind(schedule_id=event.schedule_id, error=str(exception) if exception else None).error(
            "scheduled_job_errored"
        )
    else:
        logger.bind(schedule_id=event.schedule_id, outcome=event.outcome.name).debug(
            "scheduled_job_released"
        )


async def stop_scheduler() -> None:
    """Gracefully stop the scheduler."""
    global scheduler
    if scheduler:
        await scheduler.__aexit__(None, None, None)
        logger.info("scheduler_stopped")
        scheduler = None

