"""Entities mirrored from the Kaya climbing platform."""

import enum
from datetime import datetime

from sqlalchemy import Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cragsync.models.base import Base, TimestampMixin


class SyncStatus(str, enum.Enum):
    """Per-location sync lifecycle."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class KayaUser(TimestampMixin, Base):
    """Kaya user profile, written through from ascents."""

    __tablename__ = "kaya_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kaya_user_id: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    username: Mapped[str] = mapped_column(String(255))
    fname: Mapped[str | None] = mapped_column(String(255))
    lname: Mapped[str | None] = mapped_column(String(255))
    photo_url: Mapped[str | None] = mapped_column(Text)
    bio: Mapped[str | None] = mapped_column(Text)
    height: Mapped[float | None]
    ape_index: Mapped[float | None]
    limit_grade_bouldering_id: Mapped[str | None] = mapped_column(String(50))
    limit_grade_bouldering_name: Mapped[str | None] = mapped_column(String(50))
    limit_grade_routes_id: Mapped[str | None] = mapped_column(String(50))
    limit_grade_routes_name: Mapped[str | None] = mapped_column(String(50))
    is_private: Mapped[bool] = mapped_column(default=False)
    is_premium: Mapped[bool] = mapped_column(default=False)

    def __repr__(self) -> str:
        return f"<KayaUser {self.username}>"


class KayaLocation(TimestampMixin, Base):
    """Kaya destination or area in the location hierarchy."""

    __tablename__ = "kaya_locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kaya_location_id: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    latitude: Mapped[float | None]
    longitude: Mapped[float | None]
    photo_url: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    location_type_id: Mapped[str | None] = mapped_column(String(50))
    location_type_name: Mapped[str | None] = mapped_column(String(100))
    parent_location_id: Mapped[str | None] = mapped_column(String(50), index=True)
    parent_location_slug: Mapped[str | None] = mapped_column(String(255))
    parent_location_name: Mapped[str | None] = mapped_column(String(255))
    climb_count: Mapped[int] = mapped_column(default=0)
    boulder_count: Mapped[int] = mapped_column(default=0)
    route_count: Mapped[int] = mapped_column(default=0)
    ascent_count: Mapped[int] = mapped_column(default=0)
    is_gb_moderated_bouldering: Mapped[bool] = mapped_column(default=False)
    is_gb_moderated_routes: Mapped[bool] = mapped_column(default=False)
    is_access_sensitive: Mapped[bool] = mapped_column(default=False)
    is_closed: Mapped[bool] = mapped_column(default=False)
    has_maps_disabled: Mapped[bool] = mapped_column(default=False)
    closed_date: Mapped[datetime | None]
    description_bouldering: Mapped[str | None] = mapped_column(Text)
    description_routes: Mapped[str | None] = mapped_column(Text)
    access_description_bouldering: Mapped[str | None] = mapped_column(Text)
    access_description_routes: Mapped[str | None] = mapped_column(Text)
    climb_type_id: Mapped[str | None] = mapped_column(String(50))
    last_synced_at: Mapped[datetime | None]

    def __repr__(self) -> str:
        return f"<KayaLocation {self.slug}>"


class KayaClimb(TimestampMixin, Base):
    """Kaya climb (boulder or route)."""

    __tablename__ = "kaya_climbs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    grade_id: Mapped[str | None] = mapped_column(String(50))
    grade_name: Mapped[str | None] = mapped_column(String(50))
    grade_ordering: Mapped[int | None]
    grade_climb_type_id: Mapped[str | None] = mapped_column(String(50))
    climb_type_name: Mapped[str | None] = mapped_column(String(50))
    rating: Mapped[float | None]
    ascent_count: Mapped[int] = mapped_column(default=0)
    # Location the climb was fetched under; provides GPS for matching
    kaya_location_id: Mapped[str | None] = mapped_column(String(50), index=True)
    kaya_destination_name: Mapped[str | None] = mapped_column(String(255))
    kaya_area_name: Mapped[str | None] = mapped_column(String(255))
    color_name: Mapped[str | None] = mapped_column(String(50))
    gym_name: Mapped[str | None] = mapped_column(String(255))
    board_name: Mapped[str | None] = mapped_column(String(255))
    is_gb_moderated: Mapped[bool] = mapped_column(default=False)
    is_access_sensitive: Mapped[bool] = mapped_column(default=False)
    is_closed: Mapped[bool] = mapped_column(default=False)
    is_offensive: Mapped[bool] = mapped_column(default=False)
    last_synced_at: Mapped[datetime | None]

    def __repr__(self) -> str:
        return f"<KayaClimb {self.slug}: {self.name}>"


class KayaAscent(TimestampMixin, Base):
    """A user's logged ascent (tick) of a Kaya climb."""

    __tablename__ = "kaya_ascents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kaya_ascent_id: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    kaya_climb_slug: Mapped[str] = mapped_column(
        String(255), ForeignKey("kaya_climbs.slug", ondelete="CASCADE"), index=True
    )
    kaya_user_id: Mapped[str | None] = mapped_column(
        String(50), ForeignKey("kaya_users.kaya_user_id", ondelete="SET NULL"), index=True
    )
    date: Mapped[datetime] = mapped_column(index=True)
    comment: Mapped[str | None] = mapped_column(Text)
    rating: Mapped[int | None]
    stiffness: Mapped[int | None]
    grade_id: Mapped[str | None] = mapped_column(String(50))
    grade_name: Mapped[str | None] = mapped_column(String(50))
    photo_url: Mapped[str | None] = mapped_column(Text)
    photo_thumb_url: Mapped[str | None] = mapped_column(Text)
    video_url: Mapped[str | None] = mapped_column(Text)
    video_thumb_url: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<KayaAscent {self.kaya_ascent_id} on {self.kaya_climb_slug}>"


class KayaSyncProgress(TimestampMixin, Base):
    """Sync status for one Kaya location."""

    __tablename__ = "kaya_sync_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kaya_location_id: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    location_name: Mapped[str] = mapped_column(String(255))
    status: Mapped[SyncStatus] = mapped_column(
        Enum(
            SyncStatus,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=20,
            name="syncstatus",
        ),
        default=SyncStatus.PENDING,
        index=True,
    )
    last_sync_at: Mapped[datetime | None]
    next_sync_at: Mapped[datetime | None] = mapped_column(index=True)
    sync_error: Mapped[str | None] = mapped_column(Text)
    climbs_synced: Mapped[int] = mapped_column(default=0)
    ascents_synced: Mapped[int] = mapped_column(default=0)
    sub_locations_synced: Mapped[int] = mapped_column(default=0)

    def __repr__(self) -> str:
        return f"<KayaSyncProgress {self.kaya_location_id} [{self.status.value}]>"
