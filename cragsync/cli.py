"""
cragsync CLI - Command line interface for running jobs.

Usage:
    cragsync --help                  Show all commands
    cragsync sync <slug>             Sync one Kaya location
    cragsync sync-all                Sync all configured destinations
    cragsync match --area <id>       Match Kaya climbs to an MP area
    cragsync verify <climb> <route>  Mark a stored match as verified
    cragsync priorities              Recompute route sync tiers
    cragsync due                     List routes due for a sync
    cragsync jobs-recover            List interrupted jobs
    cragsync jobs-history            Show recent job executions
    cragsync scheduler               Run scheduled jobs in the foreground
    cragsync migrate                 Apply database migrations
"""

import asyncio

import typer

app = typer.Typer(
    name="cragsync",
    help="cragsync CLI - Kaya and Mountain Project sync jobs",
    no_args_is_help=True,
)


# --- Step printer helpers ---


def _print_success(message: str) -> None:
    """Print a success message."""
    typer.echo(f"  ✅ {message}")


def _print_warning(message: str) -> None:
    """Print a warning message."""
    typer.echo(f"  ⚠️ {message}")


def _print_skipped(message: str) -> None:
    """Print a skipped step message."""
    typer.echo(f"  ⏭️ {message}")


def _print_error(message: str) -> None:
    """Print an error message to stderr."""
    typer.echo(f"❌ {message}", err=True)


@app.command()
def sync(
    slug: str = typer.Argument(..., help="Kaya location slug, e.g. leavenworth-344933"),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="Also sync sub-locations"),
    depth: int | None = typer.Option(None, "--depth", "-d", help="Sub-location levels to walk"),
):
    """Sync a single Kaya location with its climbs, ascents and sub-locations."""
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.core.logging import setup_logging
    from cragsync.kaya.client import KayaClient
    from cragsync.kaya.sync import KayaSyncService, SyncError

    setup_logging()

    async def run():
        async with KayaClient() as client:
            service = KayaSyncService(client, AsyncSessionLocal)
            return await service.sync_location_by_slug(slug, recursive=recursive, max_depth=depth)

    typer.echo(f"\n🧗 Syncing {slug}")
    try:
        result = asyncio.run(run())
    except SyncError as e:
        _print_error(str(e))
        raise typer.Exit(1)

    _print_success(f"Climbs: {result.climbs_synced}, ascents: {result.ascents_synced}")
    if result.sub_locations_synced:
        _print_success(
            f"Sub-locations: {result.sub_locations_synced} "
            f"({result.sub_location_climbs_synced} climbs, {result.sub_location_ascents_synced} ascents)"
        )
    if result.error:
        _print_warning(f"Finished with errors: {result.error}")
        raise typer.Exit(1)


@app.command()
def sync_all(
    full: bool = typer.Option(False, "--full", help="Sync every destination, even if recently synced"),
    test: bool = typer.Option(False, "--test", help="Only sync the first three destinations"),
):
    """Sync all configured Kaya destinations as a tracked job."""
    from cragsync.core.logging import setup_logging
    from cragsync.jobs.sync_kaya import run_kaya_sync

    setup_logging()
    stats = asyncio.run(run_kaya_sync(incremental=not full, test_mode=test))

    typer.echo(f"\nJob {stats['job_id']}{' (resumed)' if stats['resumed'] else ''}")
    _print_success(f"Succeeded: {stats['locations_succeeded']}")
    if stats["locations_skipped"]:
        _print_skipped(f"Skipped (recently synced): {stats['locations_skipped']}")
    if stats["locations_failed"]:
        _print_warning(f"Failed: {stats['locations_failed']}")


@app.command()
def match(
    area: int | None = typer.Option(None, "--area", "-a", help="Mountain Project area id"),
    location: str | None = typer.Option(None, "--location", "-l", help="Kaya location name"),
    min_confidence: float | None = typer.Option(None, "--min-confidence", "-c", help="Confidence threshold"),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Preview matches without saving"),
    limit: int = typer.Option(0, "--limit", help="Max routes (or climbs) to scan, 0 for all"),
):
    """Match Kaya climbs to Mountain Project routes for an area or location."""
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.core.logging import setup_logging
    from cragsync.pipeline.matcher import RouteMatcher

    if (area is None) == (location is None):
        _print_error("Pass exactly one of --area or --location")
        raise typer.Exit(1)

    setup_logging()
    matcher = RouteMatcher(AsyncSessionLocal)

    if area is not None:
        coro = matcher.match_area(area, min_confidence=min_confidence, dry_run=dry_run, limit=limit)
    else:
        coro = matcher.match_location(location, min_confidence=min_confidence, dry_run=dry_run, limit=limit)
    result = asyncio.run(coro)

    for proposed in result.matches:
        signals = proposed.signals
        typer.echo(
            f"  {signals.confidence:.2f} {signals.match_type.value:<24} "
            f"{proposed.kaya.name} -> {proposed.mp.name} ({proposed.mp.route_id})"
        )

    typer.echo("")
    _print_success(
        f"Scanned {result.routes_scanned}, scored {result.candidates_scored}, "
        f"matched {len(result.matches)} ({result.high_confidence} high confidence)"
    )
    if dry_run:
        _print_skipped("Dry run, nothing saved")
    else:
        _print_success(f"Saved {result.persisted} matches")


@app.command()
def verify(
    kaya_climb_id: str = typer.Argument(..., help="Kaya climb slug"),
    mp_route_id: int = typer.Argument(..., help="Mountain Project route id"),
    verified_by: str = typer.Option(..., "--by", help="Who verified the match"),
    notes: str | None = typer.Option(None, "--notes", help="Optional notes"),
):
    """Mark a stored match as verified."""
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.core.logging import setup_logging
    from cragsync.pipeline.matcher import MatchNotFoundError, RouteMatcher

    setup_logging()
    matcher = RouteMatcher(AsyncSessionLocal)
    try:
        asyncio.run(matcher.verify_match(kaya_climb_id, mp_route_id, verified_by, notes))
    except MatchNotFoundError as e:
        _print_error(str(e))
        raise typer.Exit(1)
    _print_success(f"Verified {kaya_climb_id} -> {mp_route_id}")


@app.command()
def priorities():
    """Recompute Mountain Project route sync tiers."""
    from cragsync.core.logging import setup_logging
    from cragsync.jobs.priorities import run_priority_recompute

    setup_logging()
    stats = asyncio.run(run_priority_recompute())

    _print_success(f"Updated {stats['routes_updated']} routes")
    typer.echo(f"     high: {stats['high']}  medium: {stats['medium']}  low: {stats['low']}")


@app.command()
def due(
    tier: str = typer.Option("high", "--tier", "-t", help="high, medium, low or location"),
    kind: str = typer.Option("ticks", "--kind", "-k", help="ticks or comments"),
    limit: int = typer.Option(50, "--limit", help="Max route ids to list"),
):
    """List route ids due for a tick or comment sync."""
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.models.mountain_project import SyncPriority
    from cragsync.pipeline.priority import get_location_routes_due, get_routes_due

    if kind not in ("ticks", "comments"):
        _print_error(f"Unknown kind: {kind}")
        raise typer.Exit(1)

    async def run():
        async with AsyncSessionLocal() as db:
            if tier == "location":
                return await get_location_routes_due(db, kind, limit)
            return await get_routes_due(db, SyncPriority(tier), kind, limit)

    try:
        route_ids = asyncio.run(run())
    except ValueError:
        _print_error(f"Unknown tier: {tier}")
        raise typer.Exit(1)

    typer.echo(f"\n{len(route_ids)} {tier} routes due for {kind} sync")
    for route_id in route_ids:
        typer.echo(f"  {route_id}")


@app.command()
def jobs_recover(
    hours: int | None = typer.Option(
        None, "--hours", help="Look back this many hours (defaults to monitoring.recovery_window_hours)"
    ),
):
    """List running or paused jobs that can be resumed."""
    from datetime import timedelta

    from cragsync.config import get_config
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.monitoring.job_tracker import JobTracker

    tracker = JobTracker(AsyncSessionLocal, get_config().monitoring.recovery_window)
    max_age = timedelta(hours=hours) if hours is not None else None
    jobs = asyncio.run(tracker.recover_interrupted_jobs(max_age))

    if not jobs:
        _print_success("No interrupted jobs")
        return

    for job in jobs:
        typer.echo(
            f"  #{job.id} {job.job_name} [{job.status.value}] "
            f"{job.items_processed}/{job.total_items} ({job.progress_percent:.0f}%) "
            f"started {job.started_at:%Y-%m-%d %H:%M}"
        )


@app.command()
def jobs_history(
    job_name: str | None = typer.Option(None, "--job", "-j", help="Filter by job name"),
    limit: int = typer.Option(20, "--limit", help="Number of executions to show"),
):
    """Show recent job executions."""
    from cragsync.core.database import AsyncSessionLocal
    from cragsync.monitoring.job_tracker import JobTracker

    tracker = JobTracker(AsyncSessionLocal)
    if job_name:
        jobs = asyncio.run(tracker.get_job_history(job_name, limit))
    else:
        jobs = asyncio.run(tracker.get_all_job_history(limit))

    for job in jobs:
        line = (
            f"  #{job.id} {job.job_name:<18} {job.status.value:<10} "
            f"{job.items_succeeded} ok / {job.items_failed} failed of {job.total_items}"
        )
        if job.error_message:
            line += f"  ({job.error_message})"
        typer.echo(line)


@app.command()
def scheduler():
    """Run the in-process job scheduler until interrupted."""
    from cragsync.core.logging import setup_logging
    from cragsync.core.scheduler import start_scheduler, stop_scheduler

    setup_logging()

    async def run():
        started = await start_scheduler()
        if started is None:
            _print_warning("Scheduler disabled (SCHEDULER_ENABLED=false)")
            return
        try:
            await asyncio.Event().wait()
        finally:
            await stop_scheduler()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        typer.echo("\nScheduler stopped")


@app.command()
def migrate():
    """Run database migrations (alembic upgrade head)."""
    import subprocess

    result = subprocess.run(["alembic", "upgrade", "head"], check=False)
    raise typer.Exit(result.returncode)


if __name__ == "__main__":
    app()
