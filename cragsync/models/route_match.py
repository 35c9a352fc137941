"""Links between Kaya climbs and Mountain Project routes."""

import enum
from datetime import datetime

from sqlalchemy import BigInteger, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cragsync.models.base import Base, TimestampMixin


class MatchType(str, enum.Enum):
    """Which signals carried a match, strongest first."""

    EXACT_NAME = "exact_name"
    FUZZY_NAME_LOCATION = "fuzzy_name_location"
    FUZZY_NAME = "fuzzy_name"
    LOCATION_GPS_PROXIMITY = "location_gps_proximity"
    LOCATION_NAME = "location_name"
    LOW_CONFIDENCE = "low_confidence"


class KayaMPRouteMatch(TimestampMixin, Base):
    """Scored candidate pairing of a Kaya climb with a Mountain Project route.

    ``match_confidence`` is derived from the stored component signals and is
    rewritten whenever they are.
    """

    __tablename__ = "kaya_mp_route_matches"
    __table_args__ = (
        UniqueConstraint("kaya_climb_id", "mp_route_id", name="uq_kaya_mp_route_match"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kaya_climb_id: Mapped[str] = mapped_column(String(255), index=True)
    mp_route_id: Mapped[int] = mapped_column(BigInteger, index=True)
    match_confidence: Mapped[float] = mapped_column(index=True)
    match_type: Mapped[str] = mapped_column(String(50))

    # Denormalized for auditing matches without joins
    kaya_climb_name: Mapped[str] = mapped_column(String(255))
    kaya_location_name: Mapped[str | None] = mapped_column(String(255))
    kaya_latitude: Mapped[float | None]
    kaya_longitude: Mapped[float | None]
    mp_route_name: Mapped[str] = mapped_column(String(255))
    mp_area_name: Mapped[str | None] = mapped_column(String(255))
    mp_latitude: Mapped[float | None]
    mp_longitude: Mapped[float | None]

    # Component signals
    name_similarity: Mapped[float]
    location_distance_km: Mapped[float | None]
    location_name_match: Mapped[bool] = mapped_column(default=False)

    is_verified: Mapped[bool] = mapped_column(default=False)
    verified_by: Mapped[str | None] = mapped_column(String(100))
    verified_at: Mapped[datetime | None]
    match_notes: Mapped[str | None] = mapped_column(Text)

    def __repr__(self) -> str:
        return (
            f"<KayaMPRouteMatch {self.kaya_climb_id} -> {self.mp_route_id} "
            f"({self.match_confidence:.2f} {self.match_type})>"
        )
