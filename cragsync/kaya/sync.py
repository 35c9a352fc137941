"""Kaya location sync.

Walks a location, its climbs and recent ascents, then its sub-locations,
persisting everything with idempotent upserts. Only one sync runs at a time
per process: every service shares one in-process lock, so a deployment must
run a single sync worker (multiple workers would need an external lock).
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.config import KayaConfig, get_config
from cragsync.core.datetime_utils import get_expiry, utc_now
from cragsync.core.logging import get_logger
from cragsync.kaya.client import BaseKayaClient
from cragsync.kaya.persistence import (
    get_sync_progress,
    save_sync_progress,
    upsert_ascent,
    upsert_climb,
    upsert_location,
    upsert_user,
)
from cragsync.kaya.schemas import WebAscent, WebClimb, WebLocation, WebUser
from cragsync.models.kaya import KayaAscent, KayaClimb, KayaLocation, SyncStatus

logger = get_logger(__name__)

# Shared by every KayaSyncService in the process
_sync_lock = asyncio.Lock()


class SyncError(Exception):
    """Base error for Kaya sync."""


class SyncInProgressError(SyncError):
    """Another sync is already running on this service."""


class LocationFetchError(SyncError):
    """The root location could not be fetched or does not exist."""


class SyncCancelledError(SyncError):
    """Sync stopped at a page boundary after cancellation was requested."""


@dataclass
class SyncResult:
    """Outcome of syncing one location."""

    slug: str
    kaya_location_id: str | None = None
    location_name: str | None = None
    climbs_synced: int = 0
    ascents_synced: int = 0
    sub_locations_synced: int = 0
    sub_location_climbs_synced: int = 0
    sub_location_ascents_synced: int = 0
    error: Exception | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def status(self) -> SyncStatus:
        return SyncStatus.COMPLETED if self.succeeded else SyncStatus.FAILED

    def record_error(self, error: Exception) -> None:
        """Keep the first error; remember the rest for logging."""
        if self.error is None:
            self.error = error
        self.errors.append(str(error))

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "status": self.status.value,
            "climbs_synced": self.climbs_synced,
            "ascents_synced": self.ascents_synced,
            "sub_locations_synced": self.sub_locations_synced,
            "sub_location_climbs_synced": self.sub_location_climbs_synced,
            "sub_location_ascents_synced": self.sub_location_ascents_synced,
            "error": str(self.error) if self.error else None,
        }


class KayaSyncService:
    """Synchronizes Kaya locations into the local database."""

    def __init__(
        self,
        client: BaseKayaClient,
        session_factory: async_sessionmaker[AsyncSession],
        config: KayaConfig | None = None,
        lock: asyncio.Lock | None = None,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.config = config or get_config().kaya
        self._lock = _sync_lock if lock is None else lock
        self._cancel_requested = asyncio.Event()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def request_cancel(self) -> None:
        """Ask the running sync to stop at the next page boundary."""
        if self.is_syncing:
            logger.info("kaya_sync_cancel_requested")
        self._cancel_requested.set()

    async def sync_location_by_slug(
        self,
        slug: str,
        recursive: bool = True,
        max_depth: int | None = None,
    ) -> SyncResult:
        """Sync one location and, if recursive, its sub-locations.

        Args:
            slug: Kaya location slug
            recursive: Whether to walk sub-locations at all
            max_depth: Sub-location levels to walk (defaults to config, 1).
                Level 1 syncs direct children's climbs and ascents only.

        Returns:
            SyncResult with per-phase counts and the first phase error, if any

        Raises:
            SyncInProgressError: If a sync is already running
            LocationFetchError: If the location can't be fetched or doesn't exist
        """
        if self._lock.locked():
            raise SyncInProgressError("sync already in progress")

        async with self._lock:
            self._cancel_requested.clear()
            depth = 0
            if recursive:
                depth = self.config.sub_location_depth if max_depth is None else max_depth
            return await self._sync_location(slug, depth)

    async def is_location_due(self, slug: str) -> bool:
        """False only if the location's last sync completed and isn't due yet."""
        async with self.session_factory() as session:
            location = await self._location_by_slug(session, slug)
            if location is None:
                return True
            progress = await get_sync_progress(session, location.kaya_location_id)

        if progress is None or progress.status != SyncStatus.COMPLETED:
            return True
        return progress.next_sync_at is None or progress.next_sync_at <= utc_now()

    # ------------------------------------------------------------------
    # Read helpers
    # ------------------------------------------------------------------

    async def get_location_by_slug(self, slug: str) -> KayaLocation | None:
        async with self.session_factory() as session:
            return await self._location_by_slug(session, slug)

    async def get_climbs_by_location(self, kaya_location_id: str) -> list[KayaClimb]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(KayaClimb)
                .where(KayaClimb.kaya_location_id == kaya_location_id)
                .order_by(KayaClimb.name)
            )
            return list(result.scalars().all())

    async def get_recent_ascents(self, limit: int = 50) -> list[KayaAscent]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(KayaAscent).order_by(KayaAscent.date.desc()).limit(limit)
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Sync phases
    # ------------------------------------------------------------------

    async def _sync_location(self, slug: str, depth: int) -> SyncResult:
        logger.bind(slug=slug, max_depth=depth).info("kaya_sync_started")

        try:
            location = await self.client.get_location(slug)
        except Exception as e:
            raise LocationFetchError(f"failed to fetch location {slug}: {e}") from e
        if location is None:
            raise LocationFetchError(f"location not found: {slug}")

        try:
            async with self.session_factory() as session:
                await upsert_location(session, location)
                await session.commit()
        except Exception as e:
            raise SyncError(f"failed to save location {slug}: {e}") from e

        result = SyncResult(slug=slug, kaya_location_id=location.id, location_name=location.name)
        await self._save_progress(location, SyncStatus.IN_PROGRESS, last_sync_at=utc_now())

        phases: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("climbs", lambda: self._sync_climbs(location.id, result, sub_location=False)),
            ("ascents", lambda: self._sync_ascents(location.id, result, sub_location=False)),
        ]
        if depth > 0:
            phases.append(("sub_locations", lambda: self._sync_sub_locations(location.id, depth, result)))

        for phase, run in phases:
            try:
                self._check_cancelled()
                await run()
            except SyncCancelledError as e:
                logger.bind(slug=slug, phase=phase).info("kaya_sync_cancelled")
                result.record_error(e)
                break
            except Exception as e:
                logger.bind(slug=slug, phase=phase, error=str(e)).warning("kaya_sync_phase_failed")
                result.record_error(e)

        await self._save_progress(
            location,
            result.status,
            last_sync_at=utc_now(),
            next_sync_at=get_expiry(hours=self.config.resync_interval_hours),
            sync_error=str(result.error) if result.error else None,
            climbs_synced=result.climbs_synced,
            ascents_synced=result.ascents_synced,
            sub_locations_synced=result.sub_locations_synced,
        )

        logger.bind(**result.to_dict()).info("kaya_sync_completed")
        return result

    async def _sync_climbs(self, location_id: str, result: SyncResult, sub_location: bool) -> None:
        page_size = self.config.climb_page_size

        for climb_type_id in self.config.climb_type_ids:
            offset = 0
            while True:
                self._check_cancelled()
                try:
                    climbs = await self.client.get_climbs(location_id, climb_type_id, offset, page_size)
                except Exception as e:
                    raise SyncError(
                        f"failed to fetch climbs (type {climb_type_id}, offset {offset}): {e}"
                    ) from e

                if not climbs:
                    break

                for climb in climbs:
                    if await self._persist_climb(climb, location_id):
                        if sub_location:
                            result.sub_location_climbs_synced += 1
                        else:
                            result.climbs_synced += 1

                logger.bind(
                    location_id=location_id, climb_type_id=climb_type_id, count=len(climbs)
                ).debug("kaya_climbs_page_synced")

                if len(climbs) < page_size:
                    break
                offset += page_size

    async def _sync_ascents(self, location_id: str, result: SyncResult, sub_location: bool) -> None:
        page_size = self.config.ascent_page_size
        max_ascents = self.config.max_ascents_per_location
        offset = 0
        synced = 0

        while synced < max_ascents:
            self._check_cancelled()
            try:
                ascents = await self.client.get_ascents(location_id, offset, page_size)
            except Exception as e:
                raise SyncError(f"failed to fetch ascents (offset {offset}): {e}") from e

            if not ascents:
                break

            for ascent in ascents[: max_ascents - synced]:
                if await self._persist_ascent(ascent):
                    synced += 1

            logger.bind(location_id=location_id, count=len(ascents), total=synced).debug(
                "kaya_ascents_page_synced"
            )

            if len(ascents) < page_size:
                break
            offset += page_size

        if sub_location:
            result.sub_location_ascents_synced += synced
        else:
            result.ascents_synced += synced

    async def _sync_sub_locations(self, location_id: str, depth: int, result: SyncResult) -> None:
        page_size = self.config.sub_location_page_size
        offset = 0

        while True:
            self._check_cancelled()
            try:
                sub_locations = await self.client.get_sub_locations(location_id, None, offset, page_size)
            except Exception as e:
                raise SyncError(f"failed to fetch sub-locations (offset {offset}): {e}") from e

            if not sub_locations:
                break

            for sub_location in sub_locations:
                await self._sync_sub_location(sub_location, depth, result)

            if len(sub_locations) < page_size:
                break
            offset += page_size

    async def _sync_sub_location(self, sub_location: WebLocation, depth: int, result: SyncResult) -> None:
        try:
            async with self.session_factory() as session:
                await upsert_location(session, sub_location)
                await session.commit()
        except Exception as e:
            logger.bind(slug=sub_location.slug, error=str(e)).warning("kaya_sub_location_save_failed")
            return
        result.sub_locations_synced += 1

        logger.bind(slug=sub_location.slug, name=sub_location.name).info("kaya_sub_location_syncing")

        # Errors below a sub-location are logged, never retained
        steps: list[tuple[str, Callable[[], Awaitable[None]]]] = [
            ("climbs", lambda: self._sync_climbs(sub_location.id, result, sub_location=True)),
            ("ascents", lambda: self._sync_ascents(sub_location.id, result, sub_location=True)),
        ]
        if depth > 1:
            steps.append(
                ("sub_locations", lambda: self._sync_sub_locations(sub_location.id, depth - 1, result))
            )

        for step, run in steps:
            try:
                await run()
            except SyncCancelledError:
                raise
            except Exception as e:
                logger.bind(slug=sub_location.slug, phase=step, error=str(e)).warning(
                    "kaya_sub_location_phase_failed"
                )

    # ------------------------------------------------------------------
    # Per-item writes
    # ------------------------------------------------------------------

    async def _persist_climb(self, climb: WebClimb, location_id: str | None) -> bool:
        try:
            async with self.session_factory() as session:
                await upsert_climb(session, climb, kaya_location_id=location_id)
                await session.commit()
        except Exception as e:
            logger.bind(slug=climb.slug, error=str(e)).warning("kaya_climb_save_failed")
            return False
        return True

    async def _persist_user(self, user: WebUser) -> None:
        try:
            async with self.session_factory() as session:
                await upsert_user(session, user)
                await session.commit()
        except Exception as e:
            logger.bind(kaya_user_id=user.id, error=str(e)).warning("kaya_user_save_failed")

    async def _persist_ascent(self, ascent: WebAscent) -> bool:
        if ascent.user is not None:
            await self._persist_user(ascent.user)
        if ascent.climb is not None:
            await self._persist_climb(ascent.climb, location_id=None)

        try:
            async with self.session_factory() as session:
                await upsert_ascent(session, ascent)
                await session.commit()
        except Exception as e:
            logger.bind(kaya_ascent_id=ascent.id, error=str(e)).warning("kaya_ascent_save_failed")
            return False
        return True

    async def _save_progress(self, location: WebLocation, status: SyncStatus, **fields: Any) -> None:
        try:
            async with self.session_factory() as session:
                await save_sync_progress(session, location.id, location.name, status, **fields)
                await session.commit()
        except Exception as e:
            logger.bind(
                kaya_location_id=location.id, status=status.value, error=str(e)
            ).warning("kaya_sync_progress_save_failed")

    def _check_cancelled(self) -> None:
        if self._cancel_requested.is_set():
            raise SyncCancelledError("sync cancelled")

    @staticmethod
    async def _location_by_slug(session: AsyncSession, slug: str) -> KayaLocation | None:
        result = await session.execute(select(KayaLocation).where(KayaLocation.slug == slug))
        return result.scalar_one_or_none()
