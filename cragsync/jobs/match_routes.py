"""
Kaya to Mountain Project matching job.

Run with: python -m cragsync.jobs.match_routes
Dry run:  python -m cragsync.jobs.match_routes --dry-run

Runs the route matcher over every area listed under matching.areas in
config.yml, tracked as one kaya_mp_matching job with an item per area.
"""

import argparse
import asyncio
from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.config import get_config
from cragsync.core.database import AsyncSessionLocal
from cragsync.core.logging import get_logger, setup_logging
from cragsync.monitoring.job_tracker import JobTracker, best_effort
from cragsync.monitoring.progress import ProgressReporter
from cragsync.pipeline.matcher import RouteMatcher

logger = get_logger(__name__)

JOB_NAME = "kaya_mp_matching"


async def run_matching(
    area_ids: Sequence[int] | None = None,
    min_confidence: float | None = None,
    dry_run: bool = False,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> dict[str, Any]:
    """Match Kaya climbs against the routes of each configured area.

    An area that errors is counted as failed; the others still run.
    """
    config = get_config()
    session_factory = session_factory or AsyncSessionLocal
    areas = list(config.matching.areas if area_ids is None else area_ids)
    threshold = config.matching.min_confidence if min_confidence is None else min_confidence

    tracker = JobTracker(session_factory)
    job = await tracker.start_job(
        JOB_NAME,
        "dry_run" if dry_run else "full",
        total_items=len(areas),
        metadata={"min_confidence": threshold, "areas": areas},
    )
    reporter = ProgressReporter(
        tracker,
        job.id,
        total_items=len(areas),
        update_every=config.monitoring.progress_update_every,
        min_interval_seconds=config.monitoring.progress_min_interval_seconds,
    )
    matcher = RouteMatcher(session_factory, config.matching)

    stats: dict[str, Any] = {
        "job_id": job.id,
        "areas": len(areas),
        "areas_failed": 0,
        "routes_scanned": 0,
        "matches": 0,
        "high_confidence": 0,
        "persisted": 0,
    }

    try:
        for mp_area_id in areas:
            await best_effort(
                tracker.update_current_item(job.id, {"mp_area_id": mp_area_id}),
                "matching_current_item_failed",
                job_id=job.id,
            )
            try:
                result = await matcher.match_area(mp_area_id, min_confidence=threshold, dry_run=dry_run)
            except Exception as e:
                logger.bind(mp_area_id=mp_area_id, error=str(e)).error("area_matching_failed")
                stats["areas_failed"] += 1
                await reporter.increment(success=False)
                continue

            summary = result.to_dict()
            for key in ("routes_scanned", "matches", "high_confidence", "persisted"):
                stats[key] += summary[key]
            await reporter.increment(success=True)

        await best_effort(reporter.flush(), "progress_flush_failed", job_id=job.id)
    except (asyncio.CancelledError, KeyboardInterrupt):
        await tracker.cancel_job(job.id, "interrupted")
        raise
    except Exception as e:
        await tracker.fail_job(job.id, str(e))
        raise

    if areas and stats["areas_failed"] == len(areas):
        await tracker.fail_job(job.id, "All areas failed to match")
        logger.bind(**stats).error("matching_job_failed")
    else:
        await tracker.complete_job(job.id)
        logger.bind(**stats).info("matching_job_completed")

    return stats


async def main(dry_run: bool = False) -> None:
    """Run the matching job."""
    setup_logging()
    logger.bind(dry_run=dry_run).info("matching_job_started")
    await run_matching(dry_run=dry_run)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Match Kaya climbs to Mountain Project routes")
    parser.add_argument("--dry-run", action="store_true", help="Score matches without saving them")
    args = parser.parse_args()

    asyncio.run(main(dry_run=args.dry_run))
