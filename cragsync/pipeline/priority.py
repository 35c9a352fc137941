"""Adaptive sync priority for Mountain Project routes.

Each route not attached to a tracked location is placed in a tier from its
recent tick activity; the tier decides how often its ticks and comments are
re-synced (high daily, medium weekly, low monthly). Location routes always
sync daily and are never re-tiered.

Tier cascade, first match wins:
    1. seasonal route type (ice, alpine, snow, mixed)         -> high
    2. ticked in the last 14 days after 90+ quiet days        -> high
    3. top 15% of its area by 90-day ticks                    -> high
    4. 5+ ticks in 90 days                                    -> high
    5. any tick in 90 days, or top 40% of its area            -> medium
    6. otherwise                                              -> low
"""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from sqlalchemy import Float, case, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cragsync.config import PriorityConfig, get_config
from cragsync.core.datetime_utils import utc_now
from cragsync.core.logging import get_logger
from cragsync.models.mountain_project import MPRoute, MPTick, SyncPriority

logger = get_logger(__name__)

SyncKind = Literal["ticks", "comments"]


@dataclass
class RouteMetrics:
    """Rolling activity for one route."""

    mp_route_id: int
    mp_area_id: int
    route_type: str | None
    tick_count_14d: int
    tick_count_90d: int
    total_tick_count: int
    days_since_last_tick: int | None
    # Days between now and the latest tick older than 14 days
    days_since_prior_tick: int | None
    area_percentile: float


@dataclass
class PriorityRecomputeResult:
    routes_updated: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "routes_updated": self.routes_updated,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


def assign_priority(metrics: RouteMetrics, config: PriorityConfig | None = None) -> SyncPriority:
    """Pick a route's tier; deterministic for a given metrics snapshot."""
    config = config or get_config().priority

    if metrics.route_type and metrics.route_type in config.seasonal_route_types:
        return SyncPriority.HIGH

    if (
        metrics.tick_count_14d >= 1
        and metrics.days_since_prior_tick is not None
        and metrics.days_since_prior_tick > config.surge_dormant_days
    ):
        return SyncPriority.HIGH

    if metrics.area_percentile >= config.high_percentile:
        return SyncPriority.HIGH

    if metrics.tick_count_90d >= config.high_ticks_90d:
        return SyncPriority.HIGH

    if metrics.tick_count_90d >= 1 or metrics.area_percentile >= config.medium_percentile:
        return SyncPriority.MEDIUM

    return SyncPriority.LOW


def _days_since(now: datetime, then: datetime | None) -> int | None:
    if then is None:
        return None
    return (now - then).days


async def calculate_route_metrics(session: AsyncSession, now: datetime | None = None) -> list[RouteMetrics]:
    """Aggregate tick activity for every non-location route in one query."""
    now = now or utc_now()
    cutoff_14d = now - timedelta(days=14)
    cutoff_90d = now - timedelta(days=90)

    tick_stats = (
        select(
            MPTick.mp_route_id,
            func.count(case((MPTick.climbed_at >= cutoff_14d, 1))).label("tick_count_14d"),
            func.count(case((MPTick.climbed_at >= cutoff_90d, 1))).label("tick_count_90d"),
            func.count(MPTick.id).label("total_tick_count"),
            func.max(MPTick.climbed_at).label("last_tick_at"),
            func.max(case((MPTick.climbed_at < cutoff_14d, MPTick.climbed_at))).label("prior_tick_at"),
        )
        .group_by(MPTick.mp_route_id)
        .subquery()
    )

    route_metrics = (
        select(
            MPRoute.mp_route_id,
            MPRoute.mp_area_id,
            MPRoute.route_type,
            func.coalesce(tick_stats.c.tick_count_14d, 0).label("tick_count_14d"),
            func.coalesce(tick_stats.c.tick_count_90d, 0).label("tick_count_90d"),
            func.coalesce(tick_stats.c.total_tick_count, 0).label("total_tick_count"),
            tick_stats.c.last_tick_at,
            tick_stats.c.prior_tick_at,
        )
        .outerjoin(tick_stats, tick_stats.c.mp_route_id == MPRoute.mp_route_id)
        .where(MPRoute.location_id.is_(None))
        .subquery()
    )

    ranked = select(
        route_metrics,
        func.percent_rank(type_=Float)
        .over(partition_by=route_metrics.c.mp_area_id, order_by=route_metrics.c.tick_count_90d)
        .label("area_percentile"),
    )

    rows = (await session.execute(ranked)).all()
    return [
        RouteMetrics(
            mp_route_id=row.mp_route_id,
            mp_area_id=row.mp_area_id,
            route_type=row.route_type,
            tick_count_14d=row.tick_count_14d,
            tick_count_90d=row.tick_count_90d,
            total_tick_count=row.total_tick_count,
            days_since_last_tick=_days_since(now, row.last_tick_at),
            days_since_prior_tick=_days_since(now, row.prior_tick_at),
            area_percentile=float(row.area_percentile or 0.0),
        )
        for row in rows
    ]


async def recompute_priorities(
    session: AsyncSession,
    config: PriorityConfig | None = None,
    now: datetime | None = None,
) -> PriorityRecomputeResult:
    """Recompute metrics and tiers for all non-location routes.

    Writes are flushed, not committed; the caller owns the transaction.
    """
    config = config or get_config().priority
    metrics = await calculate_route_metrics(session, now=now)

    result = PriorityRecomputeResult()
    if not metrics:
        logger.info("priority_recompute_no_routes")
        return result

    updates = []
    tiers: Counter[SyncPriority] = Counter()
    for m in metrics:
        tier = assign_priority(m, config)
        tiers[tier] += 1
        updates.append(
            {
                "mp_route_id": m.mp_route_id,
                "sync_priority": tier,
                "tick_count_14d": m.tick_count_14d,
                "tick_count_90d": m.tick_count_90d,
                "total_tick_count": m.total_tick_count,
                "days_since_last_tick": m.days_since_last_tick,
                "area_percentile": m.area_percentile,
            }
        )

    # ORM bulk UPDATE by primary key
    await session.execute(update(MPRoute), updates)
    await session.flush()

    result.routes_updated = len(updates)
    result.high = tiers[SyncPriority.HIGH]
    result.medium = tiers[SyncPriority.MEDIUM]
    result.low = tiers[SyncPriority.LOW]

    logger.bind(**result.to_dict()).info("priority_recompute_completed")
    return result


def _sync_column(kind: SyncKind):
    if kind == "ticks":
        return MPRoute.last_tick_sync_at
    if kind == "comments":
        return MPRoute.last_comment_sync_at
    raise ValueError(f"unknown sync kind: {kind}")


def tier_interval(tier: SyncPriority, config: PriorityConfig | None = None) -> timedelta:
    config = config or get_config().priority
    return {
        SyncPriority.HIGH: timedelta(hours=config.high_interval_hours),
        SyncPriority.MEDIUM: timedelta(days=config.medium_interval_days),
        SyncPriority.LOW: timedelta(days=config.low_interval_days),
    }[tier]


async def get_routes_due(
    session: AsyncSession,
    tier: SyncPriority,
    kind: SyncKind = "ticks",
    limit: int | None = None,
    config: PriorityConfig | None = None,
) -> list[int]:
    """Route ids in a tier whose last sync is missing or older than the tier interval.

    Never-synced routes come first, then oldest sync first.
    """
    column = _sync_column(kind)
    cutoff = utc_now() - tier_interval(tier, config)

    stmt = (
        select(MPRoute.mp_route_id)
        .where(
            MPRoute.location_id.is_(None),
            MPRoute.sync_priority == tier,
            or_(column.is_(None), column < cutoff),
        )
        .order_by(column.asc().nulls_first(), MPRoute.mp_route_id)
    )
    if limit:
        stmt = stmt.limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def get_location_routes_due(
    session: AsyncSession,
    kind: SyncKind = "ticks",
    limit: int | None = None,
    config: PriorityConfig | None = None,
) -> list[int]:
    """Route ids attached to a tracked location and due for their daily sync."""
    config = config or get_config().priority
    column = _sync_column(kind)
    cutoff = utc_now() - timedelta(hours=config.location_interval_hours)

    stmt = (
        select(MPRoute.mp_route_id)
        .where(
            MPRoute.location_id.is_not(None),
            or_(column.is_(None), column < cutoff),
        )
        .order_by(column.asc().nulls_first(), MPRoute.mp_route_id)
    )
    if limit:
        stmt = stmt.limit(limit)
    return list((await session.execute(stmt)).scalars().all())


async def mark_routes_synced(
    session: AsyncSession,
    route_ids: list[int],
    kind: SyncKind = "ticks",
    synced_at: datetime | None = None,
) -> None:
    if not route_ids:
        return
    column = _sync_column(kind)
    await session.execute(
        update(MPRoute)
        .where(MPRoute.mp_route_id.in_(route_ids))
        .values({column.key: synced_at or utc_now()})
        .execution_options(synchronize_session=False)
    )


async def get_priority_distribution(session: AsyncSession) -> dict[str, int]:
    """Count of non-location routes per tier (every tier present)."""
    result = await session.execute(
        select(MPRoute.sync_priority, func.count())
        .where(MPRoute.location_id.is_(None))
        .group_by(MPRoute.sync_priority)
    )
    distribution = {tier.value: 0 for tier in SyncPriority}
    for tier, count in result.all():
        distribution[tier.value] = count
    return distribution
