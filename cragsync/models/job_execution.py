"""Durable record of a long-running batch job."""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Enum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cragsync.core.datetime_utils import utc_now
from cragsync.models.base import Base


class JobStatus(str, enum.Enum):
    """Lifecycle states of a job execution."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"
    CANCELLED = "cancelled"


# Statuses a job can be resumed from
RESUMABLE_STATUSES = (JobStatus.RUNNING, JobStatus.PAUSED)


class JobExecution(Base):
    """Records each execution of a sync, matching or priority job."""

    __tablename__ = "job_executions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_name: Mapped[str] = mapped_column(String(100), index=True)
    job_type: Mapped[str] = mapped_column(String(50))
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=20,
            name="jobstatus",
        ),
        default=JobStatus.RUNNING,
        index=True,
    )
    total_items: Mapped[int] = mapped_column(default=0)
    items_processed: Mapped[int] = mapped_column(default=0)
    items_succeeded: Mapped[int] = mapped_column(default=0)
    items_failed: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(default=utc_now, index=True)
    completed_at: Mapped[datetime | None]
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
    # "metadata" is reserved on declarative classes
    metadata_json: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)

    @property
    def progress_percent(self) -> float:
        if not self.total_items:
            return 0.0
        return round(self.items_processed / self.total_items * 100, 1)

    @property
    def is_terminal(self) -> bool:
        return self.status in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED)

    def __repr__(self) -> str:
        return f"<JobExecution {self.id} {self.job_name} [{self.status.value}]>"
