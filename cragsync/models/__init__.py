from cragsync.models.base import Base
from cragsync.models.job_execution import JobExecution, JobStatus
from cragsync.models.kaya import (
    KayaAscent,
    KayaClimb,
    KayaLocation,
    KayaSyncProgress,
    KayaUser,
    SyncStatus,
)
from cragsync.models.mountain_project import MPArea, MPRoute, MPTick, SyncPriority
from cragsync.models.route_match import KayaMPRouteMatch, MatchType

__all__ = [
    "Base",
    "JobExecution",
    "JobStatus",
    "KayaUser",
    "KayaLocation",
    "KayaClimb",
    "KayaAscent",
    "KayaSyncProgress",
    "SyncStatus",
    "MPArea",
    "MPRoute",
    "MPTick",
    "SyncPriority",
    "KayaMPRouteMatch",
    "MatchType",
]
