"""
Command-line interface for hub-relay.

Provides commands to run the webhook API and the background worker,
manage hub subscriptions, initialize the database, and run
maintenance and diagnostic checks.

Usage:
    hubrelay serve                 # Run the webhook/admin API
    hubrelay worker                # Run queue consumers + renewal + retention
    hubrelay subscribe UCxxxx      # Subscribe one channel with the hub
    hubrelay renew                 # Run one renewal sweep
    hubrelay init-db               # Initialize database
    hubrelay cleanup --dry-run     # Preview the retention sweep
    hubrelay failed                # List failed jobs kept for inspection
    hubrelay health                # Check service health
"""

import asyncio
import signal
import sys

import click

from hubrelay.config.settings import get_settings
from hubrelay.observability.logging import setup_logging
from hubrelay.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Hub Relay - WebSub new-video notifications to Telegram."""
    setup_logging(level="DEBUG" if debug else None)


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(
    host: str | None,
    port: int | None,
    reload: bool,
    metrics: bool,
    metrics_port: int | None,
) -> None:
    """Start the webhook and admin API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    if metrics:
        get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"Hub callback: {settings.callback_url}")

    uvicorn.run(
        "hubrelay.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command()
@click.option("--concurrency", default=None, type=int, help="Concurrent job slots")
@click.option("--no-renewal", is_flag=True, help="Do not run the renewal scheduler")
@click.option("--no-retention", is_flag=True, help="Do not run the retention sweep")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def worker(
    concurrency: int | None,
    no_renewal: bool,
    no_retention: bool,
    metrics: bool,
    metrics_port: int | None,
) -> None:
    """Run the event worker, renewal scheduler and retention sweep."""
    from hubrelay.services.worker_service import WorkerService

    async def run():
        service = WorkerService(
            concurrency=concurrency,
            enable_renewal=not no_renewal,
            enable_retention=not no_retention,
        )

        if metrics:
            get_metrics().start_server(port=metrics_port)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(service.stop()))

        await service.start()

    asyncio.run(run())


def _subscription_manager(db):
    from hubrelay.subscriptions.manager import SubscriptionManager
    from hubrelay.subscriptions.repository import SubscriptionRepository

    settings = get_settings()
    return SubscriptionManager(
        SubscriptionRepository(db),
        hub_url=settings.hub_url,
        callback_url=settings.callback_url,
    )


@main.command()
@click.argument("source_id")
def subscribe(source_id: str) -> None:
    """Subscribe (or renew) one channel with the hub."""
    from hubrelay.storage.database import Database

    async def run() -> bool:
        async with Database() as db:
            result = await _subscription_manager(db).subscribe(source_id)

        if result.ok:
            click.echo(click.style(
                f"Subscribed {source_id} (HTTP {result.status_code}, "
                f"{result.attempts} attempt(s)), lease until {result.expires_at:%Y-%m-%d %H:%M} UTC",
                fg="green",
            ))
        else:
            click.echo(click.style(
                f"Subscription for {source_id} failed after {result.attempts} attempt(s): {result.error}",
                fg="red",
            ))
        return result.ok

    sys.exit(0 if asyncio.run(run()) else 1)


@main.command()
def renew() -> None:
    """Run one renewal sweep over subscriptions nearing expiry."""
    from hubrelay.storage.database import Database

    async def run():
        async with Database() as db:
            results = await _subscription_manager(db).renew_due()

        if not results:
            click.echo("No subscriptions due for renewal")
            return

        for result in results:
            icon = "✓" if result.ok else "✗"
            color = "green" if result.ok else "red"
            detail = "" if result.ok else f" ({result.error})"
            click.echo(click.style(f"  {icon} {result.source_id}{detail}", fg=color))

        renewed = sum(1 for r in results if r.ok)
        click.echo(f"\nRenewed {renewed}/{len(results)} subscriptions")

    asyncio.run(run())


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from hubrelay.events.repository import ItemRepository
    from hubrelay.storage.database import Database
    from hubrelay.subscriptions.repository import SubscriptionRepository

    async def run():
        async with Database() as db:
            await ItemRepository(db).create_tables()
            await SubscriptionRepository(db).create_table()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option("--days", default=None, type=int, help="Days of items to keep (default RETENTION_DAYS)")
@click.option("--failed-days", default=None, type=int, help="Days of failed jobs to keep")
@click.option("--dry-run", is_flag=True, help="Show counts without deleting")
def cleanup(days: int | None, failed_days: int | None, dry_run: bool) -> None:
    """Remove old items and old failed jobs.

    Example:
        hubrelay cleanup --days 7              # Delete items older than 7 days
        hubrelay cleanup --days 7 --dry-run    # Preview without deleting
    """
    from hubrelay.events.queue import EventQueue
    from hubrelay.events.repository import ItemRepository
    from hubrelay.services.retention import RetentionService
    from hubrelay.storage.database import Database

    settings = get_settings()

    async def run():
        async with Database() as db, EventQueue() as queue:
            service = RetentionService(
                ItemRepository(db),
                queue,
                retention_days=days or settings.retention_days,
                failed_retention_days=failed_days,
            )
            report = await service.run_once(dry_run=dry_run)

        if dry_run:
            click.echo(
                f"\nDry run - would delete {report.items} items "
                f"and {report.failed_jobs} failed jobs"
            )
            click.echo("\nRun without --dry-run to actually delete.")
        else:
            click.echo(
                f"\nDeleted {report.items} items and {report.failed_jobs} failed jobs"
            )

    asyncio.run(run())


@main.command()
@click.option("--limit", default=20, type=int, help="Number of failed jobs to show")
def failed(limit: int) -> None:
    """List the most recent failed jobs, newest first."""
    from hubrelay.events.queue import EventQueue

    async def run():
        async with EventQueue() as queue:
            total = await queue.get_failed_count()
            entries = await queue.list_failed(count=limit)

        click.echo(f"\nFailed jobs: {total} retained")
        click.echo("-" * 40)
        for entry in entries:
            click.echo(
                f"  {entry['id']}  {entry.get('key', '?')}  "
                f"attempts={entry.get('attempt', '?')}  {entry.get('error', '')}"
            )

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}
        queue_stats: dict[str, int] = {}

        # Check Redis
        try:
            from hubrelay.events.queue import EventQueue
            async with EventQueue() as queue:
                results["redis"] = await queue.health_check()
                queue_stats = {
                    "queued": await queue.get_stream_length(),
                    "in_flight": await queue.get_pending_count(),
                    "delayed": await queue.get_delayed_count(),
                    "failed": await queue.get_failed_count(),
                }
        except Exception as e:
            results["redis"] = False
            logger.error("Redis health check failed", error=str(e))

        # Check PostgreSQL
        try:
            from hubrelay.storage.database import Database
            async with Database() as db:
                results["postgres"] = await db.health_check()
        except Exception as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))

        settings = get_settings()
        results["youtube_api_configured"] = bool(settings.youtube_api_key)
        results["telegram_configured"] = bool(settings.telegram_bot_token)

        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("redis", "postgres") and not status:
                all_healthy = False

        for name, value in queue_stats.items():
            click.echo(f"  - {name} jobs: {value}")

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
