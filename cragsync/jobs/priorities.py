"""
Route priority recompute job.

Run with: python -m cragsync.jobs.priorities

Recomputes tick metrics and sync tiers for every Mountain Project route not
attached to a tracked location, in one transaction.
"""

import asyncio
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.config import get_config
from cragsync.core.database import AsyncSessionLocal
from cragsync.core.logging import get_logger, setup_logging
from cragsync.monitoring.job_tracker import JobTracker, best_effort
from cragsync.pipeline.priority import get_priority_distribution, recompute_priorities

logger = get_logger(__name__)

JOB_NAME = "priority_calc"


async def run_priority_recompute(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Recompute route tiers under a tracked job and return the counts."""
    session_factory = session_factory or AsyncSessionLocal
    tracker = JobTracker(session_factory)
    job = await tracker.start_job(JOB_NAME, "full")

    try:
        async with session_factory() as db:
            result = await recompute_priorities(db, get_config().priority)
            await db.commit()
            distribution = await get_priority_distribution(db)
    except Exception as e:
        logger.bind(job_id=job.id, error=str(e)).error("priority_job_failed")
        await tracker.fail_job(job.id, str(e))
        raise

    await best_effort(
        tracker.update_metadata(job.id, {"result": result.to_dict(), "distribution": distribution}),
        "priority_job_metadata_failed",
        job_id=job.id,
    )
    await tracker.complete_job(job.id)

    stats = {"job_id": job.id, **result.to_dict()}
    logger.bind(**stats).info("priority_job_completed")
    return stats


async def main() -> None:
    """Run the priority recompute job."""
    setup_logging()
    logger.info("priority_job_started")
    await run_priority_recompute()


if __name__ == "__main__":
    asyncio.run(main())
