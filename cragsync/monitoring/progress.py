"""Batched progress reporting on top of the job tracker."""

import time
from collections.abc import Callable

from cragsync.monitoring.job_tracker import JobTracker, best_effort


class ProgressReporter:
    """Counts processed items and writes them to the tracker in batches.

    A write happens when the processed count hits a multiple of
    ``update_every``, when ``min_interval_seconds`` have passed since the
    last write, or when the declared total is reached. Failed writes are
    logged and never interrupt the job.
    """

    def __init__(
        self,
        tracker: JobTracker,
        job_id: int,
        total_items: int = 0,
        update_every: int = 10,
        min_interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if update_every < 1:
            raise ValueError("update_every must be at least 1")

        self.tracker = tracker
        self.job_id = job_id
        self.total_items = total_items
        self.update_every = update_every
        self.min_interval_seconds = min_interval_seconds
        self._clock = clock

        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self._last_flush = clock()

    @property
    def progress(self) -> tuple[int, int, int]:
        """(processed, succeeded, failed)"""
        return self.processed, self.succeeded, self.failed

    def set_initial_progress(self, processed: int, succeeded: int, failed: int) -> None:
        """Seed counters when resuming from a checkpoint."""
        self.processed = processed
        self.succeeded = succeeded
        self.failed = failed

    async def increment(self, success: bool = True) -> None:
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1

        if self._should_flush():
            await best_effort(
                self.flush(), "progress_flush_failed", job_id=self.job_id, processed=self.processed
            )

    async def flush(self) -> None:
        """Write current counters to the tracker now."""
        await self.tracker.update_progress(self.job_id, self.processed, self.succeeded, self.failed)
        self._last_flush = self._clock()

    def _should_flush(self) -> bool:
        if self.processed % self.update_every == 0:
            return True
        if self._clock() - self._last_flush >= self.min_interval_seconds:
            return True
        return self.total_items > 0 and self.processed >= self.total_items
