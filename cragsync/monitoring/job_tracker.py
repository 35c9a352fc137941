"""Durable job execution tracking.

Every tracker operation runs in its own short transaction, so progress and
checkpoints survive a crash of the work being tracked.

Usage:
    tracker = JobTracker(AsyncSessionLocal)
    job = await tracker.start_job("kaya_sync", "incremental", total_items=12)
    await tracker.update_progress(job.id, processed=3, succeeded=3, failed=0)
    await tracker.save_checkpoint(job.id, KayaSyncCheckpoint(last_completed_index=2))
    await tracker.complete_job(job.id)
"""

from collections.abc import Awaitable
from datetime import timedelta
from typing import Any, TypeVar

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.core.datetime_utils import utc_now
from cragsync.core.logging import get_logger
from cragsync.models.job_execution import RESUMABLE_STATUSES, JobExecution, JobStatus
from cragsync.monitoring.checkpoint import Checkpoint

logger = get_logger(__name__)

C = TypeVar("C", bound=Checkpoint)

# Interrupted jobs older than this are not resumed
RECOVERY_WINDOW = timedelta(hours=24)


async def best_effort(write: Awaitable[Any], event: str, **fields: Any) -> None:
    """Await a progress, metadata or checkpoint write; log a failure instead of raising."""
    try:
        await write
    except Exception as e:
        logger.bind(error=str(e), **fields).warning(event)


class JobTrackerError(Exception):
    """Base error for job tracking."""


class JobNotFoundError(JobTrackerError):
    """No job execution with the given id."""


class JobNotRunningError(JobTrackerError):
    """Job is missing or not in a state that accepts the write."""


class JobTracker:
    """Records the lifecycle of long-running batch jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        recovery_window: timedelta = RECOVERY_WINDOW,
    ) -> None:
        self._session_factory = session_factory
        self.recovery_window = recovery_window

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start_job(
        self,
        job_name: str,
        job_type: str,
        total_items: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> JobExecution:
        now = utc_now()
        job = JobExecution(
            job_name=job_name,
            job_type=job_type,
            status=JobStatus.RUNNING,
            total_items=total_items,
            items_processed=0,
            items_succeeded=0,
            items_failed=0,
            started_at=now,
            updated_at=now,
            metadata_json=dict(metadata or {}),
        )
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()

        logger.bind(
            job_id=job.id, job_name=job_name, job_type=job_type, total_items=total_items
        ).info("job_started")
        return job

    async def update_progress(
        self,
        job_id: int,
        processed: int,
        succeeded: int,
        failed: int,
    ) -> None:
        """Write progress counters for a running job.

        Raises:
            JobNotRunningError: If the job is missing or no longer running
            ValueError: If processed exceeds the job's known total
        """
        async with self._session_factory() as session:
            result = await session.execute(
                update(JobExecution)
                .where(
                    JobExecution.id == job_id,
                    JobExecution.status == JobStatus.RUNNING,
                    (JobExecution.total_items == 0) | (JobExecution.total_items >= processed),
                )
                .values(
                    items_processed=processed,
                    items_succeeded=succeeded,
                    items_failed=failed,
                    updated_at=utc_now(),
                )
                .execution_options(synchronize_session=False)
            )
            await session.commit()

            if result.rowcount:
                return

            job = await session.get(JobExecution, job_id)

        if job is None or job.status != JobStatus.RUNNING:
            raise JobNotRunningError(f"job {job_id} not found or not running")
        raise ValueError(
            f"job {job_id}: processed={processed} exceeds total_items={job.total_items}"
        )

    async def update_metadata(self, job_id: int, metadata: dict[str, Any]) -> None:
        """Replace the job's metadata."""
        async with self._session_factory() as session:
            job = await self._get_or_raise(session, job_id)
            job.metadata_json = dict(metadata)
            job.updated_at = utc_now()
            await session.commit()

    async def update_current_item(self, job_id: int, info: dict[str, Any]) -> None:
        """Merge keys describing the item being processed into the metadata."""
        await self._merge_metadata(job_id, info)

    async def complete_job(self, job_id: int) -> None:
        await self._finish(job_id, JobStatus.COMPLETED)
        logger.bind(job_id=job_id).info("job_completed")

    async def fail_job(self, job_id: int, error: str) -> None:
        await self._finish(job_id, JobStatus.FAILED, error)
        logger.bind(job_id=job_id, error=error).error("job_failed")

    async def cancel_job(self, job_id: int, reason: str | None = None) -> None:
        await self._finish(job_id, JobStatus.CANCELLED, reason)
        logger.bind(job_id=job_id, reason=reason).warning("job_cancelled")

    async def mark_job_paused(self, job_id: int) -> None:
        """Pause a running job so it can be resumed later.

        Raises:
            JobNotRunningError: If the job is missing or not running
        """
        await self._transition(job_id, (JobStatus.RUNNING,), JobStatus.PAUSED)
        logger.bind(job_id=job_id).info("job_paused")

    async def resume_job(self, job_id: int) -> None:
        """Put an interrupted (running or paused) job back to running."""
        await self._transition(job_id, RESUMABLE_STATUSES, JobStatus.RUNNING)
        logger.bind(job_id=job_id).info("job_resumed")

    # ------------------------------------------------------------------
    # Checkpoints and recovery
    # ------------------------------------------------------------------

    async def save_checkpoint(self, job_id: int, checkpoint: Checkpoint | dict[str, Any]) -> None:
        data = checkpoint.to_metadata() if isinstance(checkpoint, Checkpoint) else dict(checkpoint)
        await self._merge_metadata(
            job_id,
            {"checkpoint": data, "last_checkpoint_time": utc_now().isoformat()},
        )
        logger.bind(job_id=job_id).debug("job_checkpoint_saved")

    @staticmethod
    def load_checkpoint(job: JobExecution, model: type[C]) -> C | None:
        """Typed checkpoint of a job, or None if absent or incompatible."""
        return model.from_metadata((job.metadata_json or {}).get("checkpoint"))

    async def get_interrupted_job(
        self,
        job_name: str,
        within: timedelta | None = None,
    ) -> JobExecution | None:
        """Most recent running or paused execution started within the window.

        The window defaults to the tracker's ``recovery_window``.
        """
        within = self.recovery_window if within is None else within
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .where(
                    JobExecution.job_name == job_name,
                    JobExecution.status.in_(RESUMABLE_STATUSES),
                    JobExecution.started_at > utc_now() - within,
                )
                .order_by(JobExecution.started_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def recover_interrupted_jobs(self, max_age: timedelta | None = None) -> list[JobExecution]:
        """All running or paused executions newer than max_age, newest first."""
        max_age = self.recovery_window if max_age is None else max_age
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .where(
                    JobExecution.status.in_(RESUMABLE_STATUSES),
                    JobExecution.started_at > utc_now() - max_age,
                )
                .order_by(JobExecution.started_at.desc())
            )
            jobs = list(result.scalars().all())

        if jobs:
            logger.bind(count=len(jobs), job_ids=[j.id for j in jobs]).info(
                "interrupted_jobs_found"
            )
        return jobs

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_job(self, job_id: int) -> JobExecution | None:
        async with self._session_factory() as session:
            return await session.get(JobExecution, job_id)

    async def get_latest_job(self, job_name: str) -> JobExecution | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .where(JobExecution.job_name == job_name)
                .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def get_active_jobs(self) -> list[JobExecution]:
        """Most recent running execution of each job name."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .where(JobExecution.status == JobStatus.RUNNING)
                .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
            )
            jobs = result.scalars().all()

        latest: dict[str, JobExecution] = {}
        for job in jobs:
            latest.setdefault(job.job_name, job)
        return list(latest.values())

    async def get_job_history(self, job_name: str, limit: int = 20) -> list[JobExecution]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .where(JobExecution.job_name == job_name)
                .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def get_all_job_history(self, limit: int = 50) -> list[JobExecution]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(JobExecution)
                .order_by(JobExecution.started_at.desc(), JobExecution.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    async def _get_or_raise(session: AsyncSession, job_id: int) -> JobExecution:
        job = await session.get(JobExecution, job_id)
        if job is None:
            raise JobNotFoundError(f"job {job_id} not found")
        return job

    async def _merge_metadata(self, job_id: int, patch: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            job = await self._get_or_raise(session, job_id)
            # Reassign so the JSON column is marked dirty
            job.metadata_json = {**(job.metadata_json or {}), **patch}
            job.updated_at = utc_now()
            await session.commit()

    async def _transition(
        self,
        job_id: int,
        from_statuses: tuple[JobStatus, ...],
        to_status: JobStatus,
    ) -> None:
        async with self._session_factory() as session:
            result = await session.execute(
                update(JobExecution)
                .where(JobExecution.id == job_id, JobExecution.status.in_(from_statuses))
                .values(status=to_status, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if not result.rowcount:
            raise JobNotRunningError(f"job {job_id} not found or not {from_statuses[0].value}")

    async def _finish(self, job_id: int, status: JobStatus, error: str | None = None) -> None:
        now = utc_now()
        async with self._session_factory() as session:
            result = await session.execute(
                update(JobExecution)
                .where(JobExecution.id == job_id, JobExecution.status.in_(RESUMABLE_STATUSES))
                .values(status=status, error_message=error, completed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

        if not result.rowcount:
            raise JobNotRunningError(f"job {job_id} not found or already finished")
