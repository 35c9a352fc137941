"""
Pytest configuration and fixtures for cragsync tests.

Provides:
- Async test database with SQLite (shared in-memory connection)
- Session factory passed to services the way AsyncSessionLocal is in production
- In-memory Kaya client with paginated responses
- Factory fixtures for creating test data
"""

from collections.abc import AsyncGenerator
from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cragsync.config import KayaConfig, MatchingConfig, PriorityConfig, Settings
from cragsync.core.datetime_utils import utc_now
from cragsync.kaya.client import BaseKayaClient, KayaAPIError
from cragsync.kaya.schemas import Grade, Named, WebAscent, WebClimb, WebLocation, WebUser
from cragsync.models import Base
from cragsync.models.kaya import KayaClimb, KayaLocation
from cragsync.models.mountain_project import MPArea, MPRoute, MPTick

# Test database URL (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# ============================================================================
# Config fixtures
# ============================================================================


@pytest.fixture
def kaya_config() -> KayaConfig:
    """Kaya config with no delays and default page sizes."""
    return KayaConfig(
        {"request_delay_seconds": 0, "delay_between_locations": 0, "max_retries": 2},
        Settings(),
    )


@pytest.fixture
def priority_config() -> PriorityConfig:
    return PriorityConfig({})


@pytest.fixture
def matching_config() -> MatchingConfig:
    return MatchingConfig({})


# ============================================================================
# Fake Kaya client
# ============================================================================


def make_location(
    location_id: str,
    slug: str | None = None,
    name: str | None = None,
    latitude: str | None = "47.5962",
    longitude: str | None = "-120.6615",
) -> WebLocation:
    return WebLocation(
        id=location_id,
        slug=slug or f"location-{location_id}",
        name=name or f"Location {location_id}",
        latitude=latitude,
        longitude=longitude,
    )


def make_climb(
    slug: str,
    name: str | None = None,
    destination: str | None = "Leavenworth",
    area: str | None = None,
    grade: str = "V4",
) -> WebClimb:
    return WebClimb(
        slug=slug,
        name=name or slug.replace("-", " ").title(),
        grade=Grade(id=f"g-{grade}", name=grade),
        destination=Named(name=destination) if destination else None,
        area=Named(name=area) if area else None,
    )


def make_ascent(
    ascent_id: str,
    climb: WebClimb,
    user_id: str = "user-1",
    date: str = "2026-05-01T12:00:00Z",
) -> WebAscent:
    return WebAscent(
        id=ascent_id,
        climb=climb,
        user=WebUser(id=user_id, username=f"climber_{user_id}"),
        date=date,
    )


class FakeKayaClient(BaseKayaClient):
    """In-memory Kaya API that paginates like the real one.

    Every call is recorded in ``calls`` as (method, location_id, type, offset, count).
    Methods listed in ``failures`` raise KayaAPIError for the given location id.
    """

    def __init__(self) -> None:
        self.locations: dict[str, WebLocation] = {}
        self.climbs: dict[tuple[str, str | None], list[WebClimb]] = {}
        self.ascents: dict[str, list[WebAscent]] = {}
        self.sub_locations: dict[str, list[WebLocation]] = {}
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple] = []
        self.on_call = None

    def add_location(self, location: WebLocation) -> WebLocation:
        self.locations[location.slug] = location
        return location

    def calls_for(self, method: str, location_id: str | None = None) -> list[tuple]:
        return [
            c for c in self.calls if c[0] == method and (location_id is None or c[1] == location_id)
        ]

    def _record(self, call: tuple) -> None:
        self.calls.append(call)
        if self.on_call:
            self.on_call(call)
        if (call[0], call[1]) in self.failures:
            raise KayaAPIError(f"{call[0]} failed for {call[1]}")

    async def get_location(self, slug: str) -> WebLocation | None:
        self._record(("get_location", slug, None, 0, 0))
        return self.locations.get(slug)

    async def get_sub_locations(self, location_id, climb_type_id, offset, count):
        self._record(("get_sub_locations", location_id, climb_type_id, offset, count))
        return self.sub_locations.get(location_id, [])[offset : offset + count]

    async def get_climbs(self, location_id, climb_type_id, offset, count):
        self._record(("get_climbs", location_id, climb_type_id, offset, count))
        return self.climbs.get((location_id, climb_type_id), [])[offset : offset + count]

    async def get_ascents(self, location_id, offset, count):
        self._record(("get_ascents", location_id, None, offset, count))
        return self.ascents.get(location_id, [])[offset : offset + count]


@pytest.fixture
def fake_kaya() -> FakeKayaClient:
    return FakeKayaClient()


# ============================================================================
# Factory Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def mp_area_factory(session_factory):
    """Factory for creating Mountain Project areas."""

    async def _create_area(
        mp_area_id: int,
        name: str = "Test Area",
        latitude: float | None = 47.5962,
        longitude: float | None = -120.6615,
    ) -> MPArea:
        area = MPArea(mp_area_id=mp_area_id, name=name, latitude=latitude, longitude=longitude)
        async with session_factory() as session:
            session.add(area)
            await session.commit()
        return area

    return _create_area


@pytest_asyncio.fixture
async def mp_route_factory(session_factory):
    """Factory for creating Mountain Project routes."""

    async def _create_route(
        mp_route_id: int,
        mp_area_id: int,
        name: str = "Test Route",
        route_type: str | None = "Boulder",
        location_id: int | None = None,
        latitude: float | None = None,
        longitude: float | None = None,
        **fields,
    ) -> MPRoute:
        route = MPRoute(
            mp_route_id=mp_route_id,
            mp_area_id=mp_area_id,
            name=name,
            route_type=route_type,
            location_id=location_id,
            latitude=latitude,
            longitude=longitude,
            **fields,
        )
        async with session_factory() as session:
            session.add(route)
            await session.commit()
        return route

    return _create_route


@pytest_asyncio.fixture
async def mp_tick_factory(session_factory):
    """Factory for creating ticks on a route at given times."""

    async def _create_ticks(mp_route_id: int, climbed_at: list[datetime]) -> None:
        async with session_factory() as session:
            for i, when in enumerate(climbed_at):
                session.add(MPTick(mp_route_id=mp_route_id, user_name=f"user{i}", climbed_at=when))
            await session.commit()

    return _create_ticks


@pytest_asyncio.fixture
async def kaya_location_factory(session_factory):
    """Factory for stored Kaya locations."""

    async def _create_location(
        kaya_location_id: str,
        name: str = "Leavenworth",
        latitude: float | None = 47.5962,
        longitude: float | None = -120.6615,
    ) -> KayaLocation:
        location = KayaLocation(
            kaya_location_id=kaya_location_id,
            slug=f"{name.lower().replace(' ', '-')}-{kaya_location_id}",
            name=name,
            latitude=latitude,
            longitude=longitude,
            last_synced_at=utc_now(),
        )
        async with session_factory() as session:
            session.add(location)
            await session.commit()
        return location

    return _create_location


@pytest_asyncio.fixture
async def kaya_climb_factory(session_factory):
    """Factory for stored Kaya climbs."""

    async def _create_climb(
        slug: str,
        name: str,
        kaya_location_id: str | None = None,
        destination: str | None = "Leavenworth",
        area: str | None = None,
    ) -> KayaClimb:
        climb = KayaClimb(
            slug=slug,
            name=name,
            kaya_location_id=kaya_location_id,
            kaya_destination_name=destination,
            kaya_area_name=area,
        )
        async with session_factory() as session:
            session.add(climb)
            await session.commit()
        return climb

    return _create_climb
