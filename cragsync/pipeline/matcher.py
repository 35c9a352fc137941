"""Match Kaya climbs to Mountain Project routes and persist the links.

Candidates are pre-filtered in SQL by case-insensitive name containment
(either direction) and then scored in Python with ``score_pair``. Pairs at
or above the confidence threshold are upserted on (kaya_climb_id,
mp_route_id), so re-running over the same data converges.
"""

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cragsync.config import MatchingConfig, get_config
from cragsync.core.datetime_utils import utc_now
from cragsync.core.logging import get_logger
from cragsync.models.kaya import KayaClimb, KayaLocation
from cragsync.models.mountain_project import MPArea, MPRoute
from cragsync.models.route_match import KayaMPRouteMatch
from cragsync.pipeline.matching import MatchSignals, score_pair

logger = get_logger(__name__)


class MatchNotFoundError(Exception):
    """No stored match for the given climb/route pair."""


@dataclass
class KayaSide:
    climb_id: str
    name: str
    location_name: str | None
    latitude: float | None
    longitude: float | None

    @property
    def coords(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


@dataclass
class MPSide:
    route_id: int
    name: str
    area_name: str | None
    latitude: float | None
    longitude: float | None

    @property
    def coords(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return self.latitude, self.longitude


@dataclass
class ProposedMatch:
    """A scored pair that cleared the confidence threshold."""

    kaya: KayaSide
    mp: MPSide
    signals: MatchSignals

    def to_dict(self) -> dict[str, Any]:
        return {
            "kaya_climb_id": self.kaya.climb_id,
            "kaya_climb_name": self.kaya.name,
            "mp_route_id": self.mp.route_id,
            "mp_route_name": self.mp.name,
            "confidence": round(self.signals.confidence, 3),
            "match_type": self.signals.match_type.value,
        }


@dataclass
class MatchRunResult:
    routes_scanned: int = 0
    candidates_scored: int = 0
    matches: list[ProposedMatch] = field(default_factory=list)
    persisted: int = 0
    high_confidence_threshold: float = 0.90

    @property
    def high_confidence(self) -> int:
        return sum(1 for m in self.matches if m.signals.confidence >= self.high_confidence_threshold)

    def to_dict(self) -> dict[str, int]:
        return {
            "routes_scanned": self.routes_scanned,
            "candidates_scored": self.candidates_scored,
            "matches": len(self.matches),
            "high_confidence": self.high_confidence,
            "persisted": self.persisted,
        }


def _contains_either_way(column, value: str):
    """SQL for ``value in column or column in value``, case-insensitive."""
    lowered = value.lower()
    return or_(
        func.lower(column).contains(lowered, autoescape=True),
        literal(lowered).contains(func.lower(column)),
    )


def _kaya_location_name(climb: KayaClimb) -> str | None:
    return climb.kaya_area_name or climb.kaya_destination_name


class RouteMatcher:
    """Links persisted Kaya climbs to Mountain Project routes."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: MatchingConfig | None = None,
    ) -> None:
        self.session_factory = session_factory
        self.config = config or get_config().matching

    async def match_area(
        self,
        mp_area_id: int,
        min_confidence: float | None = None,
        dry_run: bool = False,
        limit: int = 0,
    ) -> MatchRunResult:
        """Score Kaya candidates for every route in a Mountain Project area.

        Args:
            mp_area_id: Area whose routes are matched
            min_confidence: Threshold for keeping a pair (defaults to config)
            dry_run: Score without writing
            limit: Max routes to scan (0 for all)

        Returns:
            MatchRunResult with the kept pairs and how many were written
        """
        threshold = self.config.min_confidence if min_confidence is None else min_confidence
        result = MatchRunResult(high_confidence_threshold=self.config.high_confidence)

        logger.bind(mp_area_id=mp_area_id, min_confidence=threshold, dry_run=dry_run).info(
            "route_matching_started"
        )

        async with self.session_factory() as session:
            stmt = (
                select(MPRoute, MPArea)
                .join(MPArea, MPArea.mp_area_id == MPRoute.mp_area_id)
                .where(MPRoute.mp_area_id == mp_area_id)
                .order_by(MPRoute.mp_route_id)
            )
            if limit:
                stmt = stmt.limit(limit)
            rows = (await session.execute(stmt)).all()

            for route, area in rows:
                result.routes_scanned += 1
                mp = MPSide(
                    route_id=route.mp_route_id,
                    name=route.name,
                    area_name=area.name,
                    latitude=route.latitude if route.latitude is not None else area.latitude,
                    longitude=route.longitude if route.longitude is not None else area.longitude,
                )
                for kaya in await self._kaya_candidates(session, route.name):
                    self._score(kaya, mp, threshold, result)

            if not dry_run:
                await self._persist(session, result)

        logger.bind(mp_area_id=mp_area_id, **result.to_dict()).info("route_matching_completed")
        return result

    async def match_location(
        self,
        location_name: str,
        min_confidence: float | None = None,
        dry_run: bool = False,
        limit: int = 0,
    ) -> MatchRunResult:
        """Score Mountain Project candidates for Kaya climbs in a named location.

        Climbs are selected by destination or area label containing
        ``location_name``; ``limit`` caps the climbs scanned.
        """
        threshold = self.config.min_confidence if min_confidence is None else min_confidence
        result = MatchRunResult(high_confidence_threshold=self.config.high_confidence)
        pattern = location_name.lower()

        logger.bind(location_name=location_name, min_confidence=threshold, dry_run=dry_run).info(
            "location_matching_started"
        )

        async with self.session_factory() as session:
            stmt = (
                select(KayaClimb, KayaLocation.latitude, KayaLocation.longitude)
                .outerjoin(KayaLocation, KayaLocation.kaya_location_id == KayaClimb.kaya_location_id)
                .where(
                    or_(
                        func.lower(KayaClimb.kaya_destination_name).contains(pattern, autoescape=True),
                        func.lower(KayaClimb.kaya_area_name).contains(pattern, autoescape=True),
                    )
                )
                .order_by(KayaClimb.slug)
            )
            if limit:
                stmt = stmt.limit(limit)
            rows = (await session.execute(stmt)).all()

            for climb, latitude, longitude in rows:
                result.routes_scanned += 1
                kaya = KayaSide(
                    climb_id=climb.slug,
                    name=climb.name,
                    location_name=_kaya_location_name(climb),
                    latitude=latitude,
                    longitude=longitude,
                )
                for mp in await self._mp_candidates(session, climb.name):
                    self._score(kaya, mp, threshold, result)

            if not dry_run:
                await self._persist(session, result)

        logger.bind(location_name=location_name, **result.to_dict()).info(
            "location_matching_completed"
        )
        return result

    async def verify_match(
        self,
        kaya_climb_id: str,
        mp_route_id: int,
        verified_by: str,
        notes: str | None = None,
    ) -> KayaMPRouteMatch:
        """Mark a stored match as human-verified; the score is left as is.

        Raises:
            MatchNotFoundError: If the pair has no stored match
        """
        async with self.session_factory() as session:
            match = await self._get_match(session, kaya_climb_id, mp_route_id)
            if match is None:
                raise MatchNotFoundError(f"no match for {kaya_climb_id} -> {mp_route_id}")

            match.is_verified = True
            match.verified_by = verified_by
            match.verified_at = utc_now()
            if notes is not None:
                match.match_notes = notes
            await session.commit()

        logger.bind(kaya_climb_id=kaya_climb_id, mp_route_id=mp_route_id, verified_by=verified_by).info(
            "route_match_verified"
        )
        return match

    async def get_matches_for_route(self, mp_route_id: int) -> list[KayaMPRouteMatch]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(KayaMPRouteMatch)
                .where(KayaMPRouteMatch.mp_route_id == mp_route_id)
                .order_by(KayaMPRouteMatch.match_confidence.desc())
            )
            return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _kaya_candidates(self, session: AsyncSession, route_name: str) -> list[KayaSide]:
        result = await session.execute(
            select(KayaClimb, KayaLocation.latitude, KayaLocation.longitude)
            .outerjoin(KayaLocation, KayaLocation.kaya_location_id == KayaClimb.kaya_location_id)
            .where(_contains_either_way(KayaClimb.name, route_name))
            .order_by(KayaClimb.slug)
            .limit(self.config.max_candidates_per_route)
        )
        return [
            KayaSide(
                climb_id=climb.slug,
                name=climb.name,
                location_name=_kaya_location_name(climb),
                latitude=latitude,
                longitude=longitude,
            )
            for climb, latitude, longitude in result.all()
        ]

    async def _mp_candidates(self, session: AsyncSession, climb_name: str) -> list[MPSide]:
        result = await session.execute(
            select(MPRoute, MPArea)
            .join(MPArea, MPArea.mp_area_id == MPRoute.mp_area_id)
            .where(_contains_either_way(MPRoute.name, climb_name))
            .order_by(MPRoute.mp_route_id)
            .limit(self.config.max_candidates_per_route)
        )
        return [
            MPSide(
                route_id=route.mp_route_id,
                name=route.name,
                area_name=area.name,
                latitude=route.latitude if route.latitude is not None else area.latitude,
                longitude=route.longitude if route.longitude is not None else area.longitude,
            )
            for route, area in result.all()
        ]

    @staticmethod
    def _score(kaya: KayaSide, mp: MPSide, threshold: float, result: MatchRunResult) -> None:
        signals = score_pair(
            kaya.name,
            mp.name,
            kaya_location_name=kaya.location_name,
            mp_area_name=mp.area_name,
            kaya_coords=kaya.coords,
            mp_coords=mp.coords,
        )
        result.candidates_scored += 1
        if signals.confidence >= threshold:
            result.matches.append(ProposedMatch(kaya=kaya, mp=mp, signals=signals))

    async def _persist(self, session: AsyncSession, result: MatchRunResult) -> None:
        for match in result.matches:
            await self._upsert_match(session, match)
            result.persisted += 1
        await session.commit()

    @staticmethod
    async def _get_match(
        session: AsyncSession, kaya_climb_id: str, mp_route_id: int
    ) -> KayaMPRouteMatch | None:
        result = await session.execute(
            select(KayaMPRouteMatch).where(
                KayaMPRouteMatch.kaya_climb_id == kaya_climb_id,
                KayaMPRouteMatch.mp_route_id == mp_route_id,
            )
        )
        return result.scalar_one_or_none()

    async def _upsert_match(self, session: AsyncSession, match: ProposedMatch) -> KayaMPRouteMatch:
        values: dict[str, Any] = {
            "match_confidence": match.signals.confidence,
            "match_type": match.signals.match_type.value,
            "kaya_climb_name": match.kaya.name,
            "kaya_location_name": match.kaya.location_name,
            "kaya_latitude": match.kaya.latitude,
            "kaya_longitude": match.kaya.longitude,
            "mp_route_name": match.mp.name,
            "mp_area_name": match.mp.area_name,
            "mp_latitude": match.mp.latitude,
            "mp_longitude": match.mp.longitude,
            "name_similarity": match.signals.name_similarity,
            "location_distance_km": match.signals.location_distance_km,
            "location_name_match": match.signals.location_name_match,
        }

        existing = await self._get_match(session, match.kaya.climb_id, match.mp.route_id)
        if existing:
            for key, value in values.items():
                setattr(existing, key, value)
            await session.flush()
            return existing

        row = KayaMPRouteMatch(
            kaya_climb_id=match.kaya.climb_id,
            mp_route_id=match.mp.route_id,
            **values,
        )
        session.add(row)
        await session.flush()
        return row
