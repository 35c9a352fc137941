"""Tests for job execution tracking and recovery."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update

from cragsync.config import MonitoringConfig
from cragsync.core.datetime_utils import utc_now
from cragsync.models.job_execution import JobExecution, JobStatus
from cragsync.monitoring.checkpoint import KayaSyncCheckpoint
from cragsync.monitoring.job_tracker import JobNotFoundError, JobNotRunningError, JobTracker, best_effort

pytestmark = pytest.mark.asyncio


async def _backdate(session_factory, job_id: int, hours: float) -> None:
    async with session_factory() as session:
        await session.execute(
            update(JobExecution)
            .where(JobExecution.id == job_id)
            .values(started_at=utc_now() - timedelta(hours=hours))
        )
        await session.commit()


class TestJobLifecycle:
    """Tests for start/progress/finish transitions."""

    async def test_start_job_is_running_with_zero_counters(self, session_factory):
        """Should create a running job with the declared total."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job(
            "kaya_sync", "incremental", total_items=12, metadata={"test_mode": True}
        )

        stored = await tracker.get_job(job.id)
        assert stored.status == JobStatus.RUNNING
        assert stored.total_items == 12
        assert stored.items_processed == 0
        assert stored.metadata_json == {"test_mode": True}
        assert stored.completed_at is None

    async def test_update_progress_writes_counters(self, session_factory):
        """Should persist processed/succeeded/failed."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full", total_items=10)

        await tracker.update_progress(job.id, processed=4, succeeded=3, failed=1)

        stored = await tracker.get_job(job.id)
        assert (stored.items_processed, stored.items_succeeded, stored.items_failed) == (4, 3, 1)
        assert stored.progress_percent == 40.0

    async def test_update_progress_rejects_processed_over_total(self, session_factory):
        """Should refuse to record more processed items than the total."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full", total_items=2)

        with pytest.raises(ValueError):
            await tracker.update_progress(job.id, processed=3, succeeded=3, failed=0)

    async def test_update_progress_unbounded_when_total_unknown(self, session_factory):
        """A total of zero means the count is open-ended."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("priority_calc", "full")

        await tracker.update_progress(job.id, processed=500, succeeded=500, failed=0)

        stored = await tracker.get_job(job.id)
        assert stored.items_processed == 500

    async def test_update_progress_on_completed_job_raises(self, session_factory):
        """Should not touch a job that already finished."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full", total_items=5)
        await tracker.complete_job(job.id)

        with pytest.raises(JobNotRunningError):
            await tracker.update_progress(job.id, processed=1, succeeded=1, failed=0)

    async def test_complete_sets_terminal_status_and_timestamp(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")

        await tracker.complete_job(job.id)

        stored = await tracker.get_job(job.id)
        assert stored.status == JobStatus.COMPLETED
        assert stored.completed_at is not None
        assert stored.is_terminal

    async def test_fail_records_error_message(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")

        await tracker.fail_job(job.id, "All destinations failed to sync")

        stored = await tracker.get_job(job.id)
        assert stored.status == JobStatus.FAILED
        assert stored.error_message == "All destinations failed to sync"

    async def test_terminal_job_cannot_finish_twice(self, session_factory):
        """Should raise when finishing a job that is already terminal."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")
        await tracker.fail_job(job.id, "boom")

        with pytest.raises(JobNotRunningError):
            await tracker.complete_job(job.id)

        stored = await tracker.get_job(job.id)
        assert stored.status == JobStatus.FAILED

    async def test_pause_and_resume(self, session_factory):
        """Should move running -> paused -> running."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")

        await tracker.mark_job_paused(job.id)
        assert (await tracker.get_job(job.id)).status == JobStatus.PAUSED

        await tracker.resume_job(job.id)
        assert (await tracker.get_job(job.id)).status == JobStatus.RUNNING

    async def test_pause_requires_running(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")
        await tracker.complete_job(job.id)

        with pytest.raises(JobNotRunningError):
            await tracker.mark_job_paused(job.id)

    async def test_paused_job_can_be_completed(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "full")
        await tracker.mark_job_paused(job.id)

        await tracker.cancel_job(job.id, "operator request")

        stored = await tracker.get_job(job.id)
        assert stored.status == JobStatus.CANCELLED
        assert stored.error_message == "operator request"


class TestMetadataAndCheckpoints:
    """Tests for metadata writes and typed checkpoints."""

    async def test_update_current_item_merges(self, session_factory):
        """Should keep existing keys when adding current-item info."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_mp_matching", "full", metadata={"areas": [1, 2]})

        await tracker.update_current_item(job.id, {"mp_area_id": 2})

        stored = await tracker.get_job(job.id)
        assert stored.metadata_json == {"areas": [1, 2], "mp_area_id": 2}

    async def test_update_metadata_replaces(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("priority_calc", "full", metadata={"old": True})

        await tracker.update_metadata(job.id, {"result": {"high": 3}})

        stored = await tracker.get_job(job.id)
        assert stored.metadata_json == {"result": {"high": 3}}

    async def test_update_metadata_missing_job_raises(self, session_factory):
        tracker = JobTracker(session_factory)

        with pytest.raises(JobNotFoundError):
            await tracker.update_metadata(999, {})

    async def test_checkpoint_round_trip(self, session_factory):
        """Should load the same typed checkpoint that was saved."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental", total_items=5)
        checkpoint = KayaSyncCheckpoint(
            last_completed_index=2,
            last_completed_slug="index-344939",
            locations_succeeded=2,
            locations_failed=1,
        )

        await tracker.save_checkpoint(job.id, checkpoint)

        stored = await tracker.get_job(job.id)
        loaded = tracker.load_checkpoint(stored, KayaSyncCheckpoint)
        assert loaded == checkpoint
        assert loaded.next_index == 3
        assert "last_checkpoint_time" in stored.metadata_json

    async def test_checkpoint_from_other_version_is_ignored(self, session_factory):
        """Should discard a checkpoint whose version does not match."""
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")
        await tracker.save_checkpoint(job.id, {"version": 0, "last_completed_index": 4})

        stored = await tracker.get_job(job.id)
        assert tracker.load_checkpoint(stored, KayaSyncCheckpoint) is None

    async def test_missing_checkpoint_loads_none(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")

        stored = await tracker.get_job(job.id)
        assert tracker.load_checkpoint(stored, KayaSyncCheckpoint) is None


class TestRecovery:
    """Tests for the 24 hour recovery window."""

    async def test_running_job_from_23_hours_ago_is_recoverable(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")
        await _backdate(session_factory, job.id, hours=23)

        interrupted = await tracker.get_interrupted_job("kaya_sync")

        assert interrupted is not None
        assert interrupted.id == job.id

    async def test_running_job_from_25_hours_ago_is_not_recoverable(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")
        await _backdate(session_factory, job.id, hours=25)

        assert await tracker.get_interrupted_job("kaya_sync") is None
        assert await tracker.recover_interrupted_jobs() == []

    async def test_paused_job_is_recoverable(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")
        await tracker.mark_job_paused(job.id)

        interrupted = await tracker.get_interrupted_job("kaya_sync")

        assert interrupted.id == job.id
        assert interrupted.status == JobStatus.PAUSED

    async def test_finished_jobs_are_not_recoverable(self, session_factory):
        tracker = JobTracker(session_factory)
        job = await tracker.start_job("kaya_sync", "incremental")
        await tracker.complete_job(job.id)

        assert await tracker.get_interrupted_job("kaya_sync") is None

    async def test_recover_returns_newest_first_across_jobs(self, session_factory):
        tracker = JobTracker(session_factory)
        older = await tracker.start_job("kaya_sync", "incremental")
        newer = await tracker.start_job("kaya_mp_matching", "full")
        await _backdate(session_factory, older.id, hours=2)

        jobs = await tracker.recover_interrupted_jobs()

        assert [j.id for j in jobs] == [newer.id, older.id]

    async def test_window_comes_from_the_tracker(self, session_factory):
        """A tracker built with a 1 hour window ignores a job from 2 hours ago."""
        tracker = JobTracker(session_factory, recovery_window=timedelta(hours=1))
        job = await tracker.start_job("kaya_sync", "incremental")
        await _backdate(session_factory, job.id, hours=2)

        assert await tracker.get_interrupted_job("kaya_sync") is None
        assert await tracker.recover_interrupted_jobs() == []
        assert [j.id for j in await tracker.recover_interrupted_jobs(timedelta(hours=3))] == [job.id]

    async def test_window_from_config(self, session_factory):
        monitoring = MonitoringConfig({"recovery_window_hours": 6})
        tracker = JobTracker(session_factory, monitoring.recovery_window)
        job = await tracker.start_job("kaya_sync", "incremental")
        await _backdate(session_factory, job.id, hours=5)

        assert (await tracker.get_interrupted_job("kaya_sync")).id == job.id


class TestQueries:
    """Tests for history and active job queries."""

    async def test_active_jobs_keep_latest_per_name(self, session_factory):
        tracker = JobTracker(session_factory)
        stale = await tracker.start_job("kaya_sync", "incremental")
        await _backdate(session_factory, stale.id, hours=1)
        latest = await tracker.start_job("kaya_sync", "incremental")
        other = await tracker.start_job("priority_calc", "full")

        active = await tracker.get_active_jobs()

        assert {j.id for j in active} == {latest.id, other.id}

    async def test_job_history_is_newest_first_and_limited(self, session_factory):
        tracker = JobTracker(session_factory)
        ids = []
        for hours_ago in (3, 2, 1):
            job = await tracker.start_job("kaya_sync", "full")
            await _backdate(session_factory, job.id, hours=hours_ago)
            ids.append(job.id)

        history = await tracker.get_job_history("kaya_sync", limit=2)

        assert [j.id for j in history] == [ids[2], ids[1]]
        latest = await tracker.get_latest_job("kaya_sync")
        assert latest.id == ids[2]


class TestBestEffort:
    async def test_failed_write_is_swallowed(self):
        write = AsyncMock(side_effect=ConnectionError("db blip"))

        await best_effort(write(), "progress_flush_failed", job_id=1)

        write.assert_awaited_once()

    async def test_successful_write_is_awaited(self):
        write = AsyncMock(return_value=None)

        await best_effort(write(), "progress_flush_failed")

        write.assert_awaited_once()
