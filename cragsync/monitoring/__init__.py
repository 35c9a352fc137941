from cragsync.monitoring.checkpoint import Checkpoint, KayaSyncCheckpoint
from cragsync.monitoring.job_tracker import (
    RECOVERY_WINDOW,
    JobNotFoundError,
    JobNotRunningError,
    JobTracker,
    JobTrackerError,
    best_effort,
)
from cragsync.monitoring.progress import ProgressReporter

__all__ = [
    "Checkpoint",
    "KayaSyncCheckpoint",
    "JobTracker",
    "JobTrackerError",
    "JobNotFoundError",
    "JobNotRunningError",
    "RECOVERY_WINDOW",
    "best_effort",
    "ProgressReporter",
]
