"""Tests for the priority recompute and matching jobs."""

from unittest.mock import AsyncMock, patch

import pytest

from cragsync.jobs.match_routes import run_matching
from cragsync.jobs.priorities import run_priority_recompute
from cragsync.models.job_execution import JobStatus
from cragsync.monitoring.job_tracker import JobTracker

pytestmark = pytest.mark.asyncio


class TestPriorityJob:
    async def test_records_result_and_distribution(self, session_factory, mp_area_factory, mp_route_factory):
        await mp_area_factory(10)
        await mp_route_factory(1, 10, route_type="Ice")
        await mp_route_factory(2, 10)

        stats = await run_priority_recompute(session_factory)

        assert stats["routes_updated"] == 2
        assert stats["high"] == 1
        assert stats["low"] == 1
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.COMPLETED
        assert job.metadata_json["distribution"] == {"high": 1, "medium": 0, "low": 1}

    async def test_failure_marks_job_failed(self, session_factory):
        with patch(
            "cragsync.jobs.priorities.recompute_priorities",
            new=AsyncMock(side_effect=RuntimeError("db gone")),
        ):
            with pytest.raises(RuntimeError):
                await run_priority_recompute(session_factory)

        [job] = await JobTracker(session_factory).get_all_job_history()
        assert job.status == JobStatus.FAILED
        assert job.error_message == "db gone"


    async def test_metadata_write_failure_still_completes(
        self, session_factory, mp_area_factory, mp_route_factory
    ):
        await mp_area_factory(10)
        await mp_route_factory(1, 10)

        failing = AsyncMock(side_effect=ConnectionError("db blip"))
        with patch.object(JobTracker, "update_metadata", new=failing):
            stats = await run_priority_recompute(session_factory)

        assert stats["routes_updated"] == 1
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.COMPLETED


class TestMatchingJob:
    """Tests for run_matching."""

    async def test_matches_each_area(
        self, session_factory, mp_area_factory, mp_route_factory, kaya_location_factory, kaya_climb_factory
    ):
        await mp_area_factory(10, name="Leavenworth")
        await mp_route_factory(1, 10, "The Nose")
        await kaya_location_factory("344933", "Leavenworth")
        await kaya_climb_factory("the-nose", "The Nose", kaya_location_id="344933")

        stats = await run_matching(area_ids=[10, 20], session_factory=session_factory)

        assert stats["areas"] == 2
        assert stats["areas_failed"] == 0
        assert stats["routes_scanned"] == 1
        assert stats["matches"] == 1
        assert stats["persisted"] == 1
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.COMPLETED
        assert job.items_processed == 2
        assert job.metadata_json["mp_area_id"] == 20

    async def test_dry_run_persists_nothing(
        self, session_factory, mp_area_factory, mp_route_factory, kaya_climb_factory
    ):
        await mp_area_factory(10, name="Leavenworth")
        await mp_route_factory(1, 10, "The Nose")
        await kaya_climb_factory("the-nose", "The Nose")

        stats = await run_matching(area_ids=[10], dry_run=True, session_factory=session_factory)

        assert stats["matches"] == 1
        assert stats["persisted"] == 0
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.job_type == "dry_run"

    async def test_area_errors_are_counted(self, session_factory):
        """Every area erroring fails the job without raising."""
        with patch(
            "cragsync.jobs.match_routes.RouteMatcher.match_area",
            new=AsyncMock(side_effect=RuntimeError("boom")),
        ):
            stats = await run_matching(area_ids=[10, 20], session_factory=session_factory)

        assert stats["areas_failed"] == 2
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.FAILED
        assert job.error_message == "All areas failed to match"

    async def test_bookkeeping_failures_still_complete(self, session_factory):
        """Current-item and progress writes failing do not fail the run."""
        failing = AsyncMock(side_effect=ConnectionError("db blip"))
        with (
            patch.object(JobTracker, "update_current_item", new=failing),
            patch.object(JobTracker, "update_progress", new=failing),
        ):
            stats = await run_matching(area_ids=[10, 20], session_factory=session_factory)

        assert stats["areas_failed"] == 0
        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.COMPLETED

    async def test_no_areas_completes(self, session_factory):
        stats = await run_matching(area_ids=[], session_factory=session_factory)

        job = await JobTracker(session_factory).get_job(stats["job_id"])
        assert job.status == JobStatus.COMPLETED
