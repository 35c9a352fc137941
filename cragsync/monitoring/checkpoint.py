"""Versioned, typed checkpoints stored in a job's metadata.

A checkpoint written by an older (or newer) build carries a different
``version`` and is discarded on load rather than misread.
"""

from typing import Any, ClassVar, Self

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from cragsync.core.logging import get_logger

logger = get_logger(__name__)


class Checkpoint(BaseModel):
    """Base class for resumable job state."""

    model_config = ConfigDict(extra="ignore")

    VERSION: ClassVar[int] = 1

    version: int

    @model_validator(mode="before")
    @classmethod
    def _default_version(cls, data: Any) -> Any:
        if isinstance(data, dict) and "version" not in data:
            return {**data, "version": cls.VERSION}
        return data

    def to_metadata(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

    @classmethod
    def from_metadata(cls, data: dict[str, Any] | None) -> Self | None:
        """Rebuild a checkpoint from stored metadata.

        Returns None when nothing was stored, the stored version differs
        from ``VERSION``, or the payload no longer validates.
        """
        if not data:
            return None

        stored_version = data.get("version")
        if stored_version != cls.VERSION:
            logger.bind(
                checkpoint=cls.__name__,
                stored_version=stored_version,
                expected_version=cls.VERSION,
            ).warning("checkpoint_version_mismatch")
            return None

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            logger.bind(checkpoint=cls.__name__, error=str(e)).warning("checkpoint_invalid")
            return None


class KayaSyncCheckpoint(Checkpoint):
    """Position of a multi-destination Kaya sync."""

    VERSION: ClassVar[int] = 1

    sync_mode: str = "incremental"
    last_completed_index: int = -1
    last_completed_slug: str | None = None
    locations_succeeded: int = 0
    locations_failed: int = 0
    locations_skipped: int = 0
    climbs_synced: int = 0
    ascents_synced: int = 0

    @property
    def next_index(self) -> int:
        return self.last_completed_index + 1
