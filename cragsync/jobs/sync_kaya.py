"""
Kaya destination sync job.

Run with: python -m cragsync.jobs.sync_kaya
Full:     python -m cragsync.jobs.sync_kaya --full
Test:     python -m cragsync.jobs.sync_kaya --test

This job:
1. Resumes an interrupted kaya_sync run from its checkpoint (within
   monitoring.recovery_window_hours), or starts a new one
2. Syncs each configured destination, skipping ones synced recently
   when incremental
3. Reports progress and saves a checkpoint after every destination
4. Fails the run only if every attempted destination failed
"""

import argparse
import asyncio
from collections.abc import Sequence
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.config import get_config
from cragsync.core.database import AsyncSessionLocal
from cragsync.core.logging import get_logger, setup_logging
from cragsync.kaya.client import BaseKayaClient, KayaClient
from cragsync.kaya.sync import KayaSyncService, SyncError, SyncInProgressError
from cragsync.models.job_execution import JobExecution, JobStatus
from cragsync.monitoring.checkpoint import KayaSyncCheckpoint
from cragsync.monitoring.job_tracker import JobTracker, best_effort
from cragsync.monitoring.progress import ProgressReporter

logger = get_logger(__name__)

JOB_NAME = "kaya_sync"
TEST_MODE_DESTINATIONS = 3

# Held for a whole run, across destinations
_job_lock = asyncio.Lock()


async def _resumable_job(
    tracker: JobTracker,
    sync_mode: str,
    total: int,
) -> tuple[JobExecution, KayaSyncCheckpoint] | None:
    """Interrupted run that can pick up where it stopped, if any.

    A run whose checkpoint is missing, from another version, or for a
    different mode or destination list is cancelled instead.
    """
    job = await tracker.get_interrupted_job(JOB_NAME)
    if job is None:
        return None

    checkpoint = tracker.load_checkpoint(job, KayaSyncCheckpoint)
    if checkpoint is None or checkpoint.sync_mode != sync_mode or job.total_items != total:
        logger.bind(job_id=job.id).warning("kaya_sync_checkpoint_unusable")
        await tracker.cancel_job(job.id, "superseded by a new run")
        return None

    if job.status == JobStatus.PAUSED:
        await tracker.resume_job(job.id)
    return job, checkpoint


async def _sync_destinations(
    service: KayaSyncService,
    destinations: Sequence[str],
    checkpoint: KayaSyncCheckpoint,
    tracker: JobTracker,
    reporter: ProgressReporter,
    incremental: bool,
    delay_seconds: float,
) -> None:
    total = len(destinations)

    for index in range(checkpoint.next_index, total):
        slug = destinations[index]
        logger.bind(index=index + 1, total=total, slug=slug).info("kaya_destination_started")

        due = True
        if incremental:
            try:
                due = await service.is_location_due(slug)
            except Exception as e:
                logger.bind(slug=slug, error=str(e)).warning("kaya_due_check_failed")

        if not due:
            logger.bind(slug=slug).info("kaya_destination_skipped")
            checkpoint.locations_skipped += 1
            success = True
        else:
            try:
                result = await service.sync_location_by_slug(slug, recursive=True)
            except SyncError as e:
                logger.bind(slug=slug, error=str(e)).error("kaya_destination_failed")
                success = False
            else:
                success = result.succeeded
                checkpoint.climbs_synced += result.climbs_synced + result.sub_location_climbs_synced
                checkpoint.ascents_synced += result.ascents_synced + result.sub_location_ascents_synced
                if not success:
                    logger.bind(slug=slug, error=str(result.error)).warning("kaya_destination_partial")

            if success:
                checkpoint.locations_succeeded += 1
            else:
                checkpoint.locations_failed += 1

        checkpoint.last_completed_index = index
        checkpoint.last_completed_slug = slug
        await best_effort(
            tracker.save_checkpoint(reporter.job_id, checkpoint),
            "kaya_sync_checkpoint_save_failed",
            job_id=reporter.job_id,
        )
        await reporter.increment(success)

        if due and delay_seconds > 0 and index < total - 1:
            await asyncio.sleep(delay_seconds)


async def run_kaya_sync(
    destinations: Sequence[str] | None = None,
    incremental: bool = True,
    test_mode: bool = False,
    delay_seconds: float | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client: BaseKayaClient | None = None,
) -> dict[str, Any]:
    """Sync every configured Kaya destination under a tracked job.

    Args:
        destinations: Location slugs (defaults to config.yml kaya.destinations)
        incremental: Skip destinations whose last sync is not yet due
        test_mode: Only sync the first three destinations
        delay_seconds: Pause between destinations (defaults to config)
        session_factory: Session factory (defaults to the app database)
        client: Kaya client (a KayaClient is created and closed if omitted)

    Returns:
        Summary stats for the run

    Raises:
        SyncInProgressError: If another run is already in progress in this process
        asyncio.CancelledError: After marking the job paused
    """
    if _job_lock.locked():
        logger.warning("kaya_sync_job_already_running")
        raise SyncInProgressError("kaya sync job already running")

    async with _job_lock:
        return await _run_tracked(
            destinations, incremental, test_mode, delay_seconds, session_factory, client
        )


async def _run_tracked(
    destinations: Sequence[str] | None,
    incremental: bool,
    test_mode: bool,
    delay_seconds: float | None,
    session_factory: async_sessionmaker[AsyncSession] | None,
    client: BaseKayaClient | None,
) -> dict[str, Any]:
    config = get_config()
    session_factory = session_factory or AsyncSessionLocal
    slugs = list(config.kaya.destinations if destinations is None else destinations)
    if test_mode:
        slugs = slugs[:TEST_MODE_DESTINATIONS]
    delay = config.kaya.delay_between_locations if delay_seconds is None else delay_seconds
    sync_mode = "incremental" if incremental else "full"

    tracker = JobTracker(session_factory, config.monitoring.recovery_window)
    resumed = await _resumable_job(tracker, sync_mode, len(slugs))
    if resumed:
        job, checkpoint = resumed
        logger.bind(job_id=job.id, next_index=checkpoint.next_index).info("kaya_sync_job_resumed")
    else:
        job = await tracker.start_job(
            JOB_NAME,
            sync_mode,
            total_items=len(slugs),
            metadata={"incremental": incremental, "test_mode": test_mode, "delay": delay},
        )
        checkpoint = KayaSyncCheckpoint(sync_mode=sync_mode)

    monitoring = config.monitoring
    reporter = ProgressReporter(
        tracker,
        job.id,
        total_items=len(slugs),
        update_every=monitoring.progress_update_every,
        min_interval_seconds=monitoring.progress_min_interval_seconds,
    )
    reporter.set_initial_progress(
        checkpoint.next_index,
        checkpoint.locations_succeeded + checkpoint.locations_skipped,
        checkpoint.locations_failed,
    )

    owns_client = client is None
    kaya_client = client or KayaClient(config.kaya)
    service = KayaSyncService(kaya_client, session_factory, config.kaya)

    try:
        await _sync_destinations(service, slugs, checkpoint, tracker, reporter, incremental, delay)
        await best_effort(reporter.flush(), "progress_flush_failed", job_id=job.id)
    except (asyncio.CancelledError, KeyboardInterrupt):
        logger.bind(job_id=job.id, next_index=checkpoint.next_index).warning("kaya_sync_job_interrupted")
        await tracker.mark_job_paused(job.id)
        raise
    except Exception as e:
        logger.bind(job_id=job.id, error=str(e)).error("kaya_sync_job_failed")
        await tracker.fail_job(job.id, str(e))
        raise
    finally:
        if owns_client:
            await kaya_client.close()

    stats = {
        "job_id": job.id,
        "resumed": resumed is not None,
        "total": len(slugs),
        **checkpoint.model_dump(include={
            "locations_succeeded",
            "locations_failed",
            "locations_skipped",
            "climbs_synced",
            "ascents_synced",
        }),
    }

    if checkpoint.locations_failed > 0 and checkpoint.locations_succeeded == 0:
        await tracker.fail_job(job.id, "All destinations failed to sync")
        logger.bind(**stats).error("kaya_sync_job_failed")
    else:
        await tracker.complete_job(job.id)
        logger.bind(**stats).info("kaya_sync_job_completed")

    return stats


async def main(incremental: bool = True, test_mode: bool = False) -> None:
    """Run the Kaya sync job."""
    setup_logging()
    logger.bind(incremental=incremental, test_mode=test_mode).info("kaya_sync_job_started")
    await run_kaya_sync(incremental=incremental, test_mode=test_mode)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Sync configured Kaya destinations")
    parser.add_argument("--full", action="store_true", help="Sync every destination, even if recently synced")
    parser.add_argument("--test", action="store_true", help="Only sync the first three destinations")
    args = parser.parse_args()

    asyncio.run(main(incremental=not args.full, test_mode=args.test))
