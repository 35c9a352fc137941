"""Mountain Project areas, routes and ticks (the canonical dataset)."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cragsync.models.base import Base, TimestampMixin


class SyncPriority(str, enum.Enum):
    """How often a route's ticks and comments are re-synced."""

    HIGH = "high"  # daily
    MEDIUM = "medium"  # weekly
    LOW = "low"  # monthly


class MPArea(TimestampMixin, Base):
    """Mountain Project area (crag, wall or region)."""

    __tablename__ = "mp_areas"

    mp_area_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(255))
    parent_mp_area_id: Mapped[int | None] = mapped_column(BigInteger, index=True)
    latitude: Mapped[float | None]
    longitude: Mapped[float | None]

    routes: Mapped[list["MPRoute"]] = relationship(back_populates="area")

    def __repr__(self) -> str:
        return f"<MPArea {self.mp_area_id}: {self.name}>"


class MPRoute(TimestampMixin, Base):
    """Mountain Project route with rolling activity metrics."""

    __tablename__ = "mp_routes"

    mp_route_id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    mp_area_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("mp_areas.mp_area_id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), index=True)
    route_type: Mapped[str | None] = mapped_column(String(100), index=True)
    rating: Mapped[str | None] = mapped_column(String(50))
    # Routes attached to a tracked location always sync daily
    location_id: Mapped[int | None] = mapped_column(Integer, index=True)
    latitude: Mapped[float | None]
    longitude: Mapped[float | None]

    sync_priority: Mapped[SyncPriority] = mapped_column(
        Enum(
            SyncPriority,
            values_callable=lambda e: [x.value for x in e],
            native_enum=False,
            length=10,
            name="syncpriority",
        ),
        default=SyncPriority.MEDIUM,
        index=True,
    )
    last_tick_sync_at: Mapped[datetime | None]
    last_comment_sync_at: Mapped[datetime | None]
    tick_count_14d: Mapped[int] = mapped_column(default=0)
    tick_count_90d: Mapped[int] = mapped_column(default=0)
    total_tick_count: Mapped[int] = mapped_column(default=0)
    days_since_last_tick: Mapped[int | None]
    area_percentile: Mapped[float | None]

    area: Mapped["MPArea"] = relationship(back_populates="routes")

    def __repr__(self) -> str:
        return f"<MPRoute {self.mp_route_id}: {self.name}>"


class MPTick(Base):
    """A single logged ascent of a Mountain Project route."""

    __tablename__ = "mp_ticks"
    __table_args__ = (
        UniqueConstraint("mp_route_id", "user_name", "climbed_at", name="uq_mp_ticks_route_user_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mp_route_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("mp_routes.mp_route_id", ondelete="CASCADE"), index=True
    )
    user_name: Mapped[str] = mapped_column(String(255))
    climbed_at: Mapped[datetime] = mapped_column(index=True)
    style: Mapped[str | None] = mapped_column(String(50))
    comment: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<MPTick {self.mp_route_id} by {self.user_name}>"
