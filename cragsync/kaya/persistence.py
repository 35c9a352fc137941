"""Idempotent writes of Kaya payloads, keyed on Kaya's natural identifiers."""

from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cragsync.core.datetime_utils import parse_api_datetime, utc_now
from cragsync.core.logging import get_logger
from cragsync.kaya.schemas import WebAscent, WebClimb, WebLocation, WebUser
from cragsync.models.kaya import (
    KayaAscent,
    KayaClimb,
    KayaLocation,
    KayaSyncProgress,
    KayaUser,
    SyncStatus,
)

logger = get_logger(__name__)

# A location with no progress row may only start at pending or in_progress,
# and a finished attempt may only be followed by a new in_progress one.
ALLOWED_TRANSITIONS: dict[SyncStatus | None, set[SyncStatus]] = {
    None: {SyncStatus.PENDING, SyncStatus.IN_PROGRESS},
    SyncStatus.PENDING: {SyncStatus.PENDING, SyncStatus.IN_PROGRESS},
    SyncStatus.IN_PROGRESS: {SyncStatus.IN_PROGRESS, SyncStatus.COMPLETED, SyncStatus.FAILED},
    SyncStatus.COMPLETED: {SyncStatus.PENDING, SyncStatus.IN_PROGRESS},
    SyncStatus.FAILED: {SyncStatus.PENDING, SyncStatus.IN_PROGRESS},
}


class InvalidSyncTransitionError(ValueError):
    """Sync progress status change that skips in_progress."""


def parse_coordinate(value: str | None) -> float | None:
    """Kaya sends coordinates as strings; unparseable values become None."""
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _apply(obj: Any, values: dict[str, Any]) -> None:
    for key, value in values.items():
        setattr(obj, key, value)


async def upsert_location(session: AsyncSession, location: WebLocation) -> KayaLocation:
    """Insert or update a location by its Kaya id."""
    closed_date: datetime | None = None
    if location.closed_date:
        try:
            closed_date = parse_api_datetime(location.closed_date)
        except ValueError:
            logger.bind(slug=location.slug, value=location.closed_date).debug(
                "kaya_closed_date_unparseable"
            )

    values: dict[str, Any] = {
        "slug": location.slug,
        "name": location.name,
        "latitude": parse_coordinate(location.latitude),
        "longitude": parse_coordinate(location.longitude),
        "photo_url": location.photo_url,
        "description": location.description,
        "location_type_id": location.location_type.id if location.location_type else None,
        "location_type_name": location.location_type.name if location.location_type else None,
        "parent_location_id": location.parent_location.id if location.parent_location else None,
        "parent_location_slug": location.parent_location.slug if location.parent_location else None,
        "parent_location_name": location.parent_location.name if location.parent_location else None,
        "climb_count": location.climb_count,
        "boulder_count": location.boulder_count,
        "route_count": location.route_count,
        "ascent_count": location.ascent_count,
        "is_gb_moderated_bouldering": location.is_gb_moderated_bouldering,
        "is_gb_moderated_routes": location.is_gb_moderated_routes,
        "is_access_sensitive": location.is_access_sensitive,
        "is_closed": location.is_closed,
        "has_maps_disabled": location.has_maps_disabled,
        "closed_date": closed_date,
        "description_bouldering": location.description_bouldering,
        "description_routes": location.description_routes,
        "access_description_bouldering": location.access_description_bouldering,
        "access_description_routes": location.access_description_routes,
        "climb_type_id": location.climb_type_id,
        "last_synced_at": utc_now(),
    }

    result = await session.execute(
        select(KayaLocation).where(KayaLocation.kaya_location_id == location.id)
    )
    existing = result.scalar_one_or_none()
    if existing:
        _apply(existing, values)
        await session.flush()
        return existing

    row = KayaLocation(kaya_location_id=location.id, **values)
    session.add(row)
    await session.flush()
    logger.bind(slug=location.slug, kaya_location_id=location.id).debug("kaya_location_created")
    return row


async def upsert_climb(
    session: AsyncSession,
    climb: WebClimb,
    kaya_location_id: str | None = None,
) -> KayaClimb:
    """Insert or update a climb by slug.

    ``kaya_location_id`` records where the climb was fetched; climbs seen only
    embedded in an ascent keep whatever location they already have.
    """
    values: dict[str, Any] = {
        "name": climb.name,
        "rating": climb.rating,
        "ascent_count": climb.ascent_count,
        "grade_id": climb.grade.id if climb.grade else None,
        "grade_name": climb.grade.name if climb.grade else None,
        "grade_ordering": climb.grade.ordering if climb.grade else None,
        "grade_climb_type_id": climb.grade.climb_type_id if climb.grade else None,
        "climb_type_name": climb.climb_type.name if climb.climb_type else None,
        "kaya_destination_name": climb.destination.name if climb.destination else None,
        "kaya_area_name": climb.area.name if climb.area else None,
        "color_name": climb.color.name if climb.color else None,
        "gym_name": climb.gym.name if climb.gym else None,
        "board_name": climb.board.name if climb.board else None,
        "is_gb_moderated": climb.is_gb_moderated,
        "is_access_sensitive": climb.is_access_sensitive,
        "is_closed": climb.is_closed,
        "is_offensive": climb.is_offensive,
        "last_synced_at": utc_now(),
    }
    if kaya_location_id is not None:
        values["kaya_location_id"] = kaya_location_id

    result = await session.execute(select(KayaClimb).where(KayaClimb.slug == climb.slug))
    existing = result.scalar_one_or_none()
    if existing:
        _apply(existing, values)
        await session.flush()
        return existing

    row = KayaClimb(slug=climb.slug, **values)
    session.add(row)
    await session.flush()
    return row


async def upsert_user(session: AsyncSession, user: WebUser) -> KayaUser:
    values: dict[str, Any] = {
        "username": user.username,
        "fname": user.fname,
        "lname": user.lname,
        "photo_url": user.photo_url,
        "bio": user.bio,
        "height": user.height,
        "ape_index": user.ape_index,
        "limit_grade_bouldering_id": user.limit_grade_bouldering.id if user.limit_grade_bouldering else None,
        "limit_grade_bouldering_name": (
            user.limit_grade_bouldering.name if user.limit_grade_bouldering else None
        ),
        "limit_grade_routes_id": user.limit_grade_routes.id if user.limit_grade_routes else None,
        "limit_grade_routes_name": user.limit_grade_routes.name if user.limit_grade_routes else None,
        "is_private": user.is_private,
        "is_premium": user.is_premium,
    }

    result = await session.execute(select(KayaUser).where(KayaUser.kaya_user_id == user.id))
    existing = result.scalar_one_or_none()
    if existing:
        _apply(existing, values)
        await session.flush()
        return existing

    row = KayaUser(kaya_user_id=user.id, **values)
    session.add(row)
    await session.flush()
    return row


async def upsert_ascent(session: AsyncSession, ascent: WebAscent) -> KayaAscent:
    """Insert or update an ascent by Kaya id.

    Callers write the embedded user and climb first so the references exist.

    Raises:
        ValueError: If the ascent has no climb or an unparseable date
    """
    if ascent.climb is None:
        raise ValueError(f"ascent {ascent.id} has no climb")

    ascent_date = parse_api_datetime(ascent.date)
    if ascent_date is None:
        raise ValueError(f"ascent {ascent.id} has no date")

    values: dict[str, Any] = {
        "kaya_climb_slug": ascent.climb.slug,
        "kaya_user_id": ascent.user.id if ascent.user else None,
        "date": ascent_date,
        "comment": ascent.comment,
        "rating": ascent.rating,
        "stiffness": ascent.stiffness,
        "grade_id": ascent.grade.id if ascent.grade else None,
        "grade_name": ascent.grade.name if ascent.grade else None,
        "photo_url": ascent.photo.photo_url if ascent.photo else None,
        "photo_thumb_url": ascent.photo.thumb_url if ascent.photo else None,
        "video_url": ascent.video.video_url if ascent.video else None,
        "video_thumb_url": ascent.video.thumb_url if ascent.video else None,
    }

    result = await session.execute(
        select(KayaAscent).where(KayaAscent.kaya_ascent_id == ascent.id)
    )
    existing = result.scalar_one_or_none()
    if existing:
        _apply(existing, values)
        await session.flush()
        return existing

    row = KayaAscent(kaya_ascent_id=ascent.id, **values)
    session.add(row)
    await session.flush()
    return row


async def get_sync_progress(session: AsyncSession, kaya_location_id: str) -> KayaSyncProgress | None:
    result = await session.execute(
        select(KayaSyncProgress).where(KayaSyncProgress.kaya_location_id == kaya_location_id)
    )
    return result.scalar_one_or_none()


async def save_sync_progress(
    session: AsyncSession,
    kaya_location_id: str,
    location_name: str,
    status: SyncStatus,
    *,
    last_sync_at: datetime | None = None,
    next_sync_at: datetime | None = None,
    sync_error: str | None = None,
    climbs_synced: int = 0,
    ascents_synced: int = 0,
    sub_locations_synced: int = 0,
) -> KayaSyncProgress:
    """Upsert a location's sync progress, enforcing status transitions.

    Raises:
        InvalidSyncTransitionError: If the change would skip in_progress
    """
    existing = await get_sync_progress(session, kaya_location_id)
    current = existing.status if existing else None
    if status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidSyncTransitionError(
            f"{kaya_location_id}: cannot move sync status from "
            f"{current.value if current else 'none'} to {status.value}"
        )

    values: dict[str, Any] = {
        "location_name": location_name,
        "status": status,
        "last_sync_at": last_sync_at,
        "next_sync_at": next_sync_at,
        "sync_error": sync_error,
        "climbs_synced": climbs_synced,
        "ascents_synced": ascents_synced,
        "sub_locations_synced": sub_locations_synced,
    }
    if existing:
        _apply(existing, values)
        await session.flush()
        return existing

    row = KayaSyncProgress(kaya_location_id=kaya_location_id, **values)
    session.add(row)
    await session.flush()
    return row
