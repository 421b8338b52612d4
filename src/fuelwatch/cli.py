"""Click-based CLI for fuelwatch.

Thin wrapper around library modules. Every command delegates to the price
service or the analytics functions and only formats their output.
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import UTC, datetime

import click
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

console = Console(stderr=True)

_FUEL_CHOICES = click.Choice(["E10", "B7", "E5", "SDV"], case_sensitive=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from fuelwatch.core import ConfigError, load_config
        from fuelwatch.core.logging_config import configure_logging

        try:
            config = load_config(config_path=ctx.obj.get("config_path"))
        except ConfigError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e
        configure_logging(config.logging, verbose=ctx.obj.get("verbose", False), console=console)
        ctx.obj["config"] = config
    return ctx.obj["config"]


def _create_service(config):
    """Build a one-shot price service (no background refresh)."""
    from fuelwatch.service import create_service

    return create_service(config, background_refresh=False)


def _fuel_type(value: str | None):
    from fuelwatch.core import FuelType

    return FuelType(value.upper()) if value else None


def _fmt_price(price: float | None) -> str:
    return f"{price:.1f}p" if price is not None else "-"


def _fmt_epoch(ts: float | None) -> str:
    if ts is None:
        return "N/A"
    return datetime.fromtimestamp(ts, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")


def _station_table(title: str, ranked, show_distance: bool = False) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Site", style="bold")
    table.add_column("Brand")
    table.add_column("Postcode")
    table.add_column("Price", justify="right")
    if show_distance:
        table.add_column("Distance", justify="right")

    for i, r in enumerate(ranked, start=1):
        row = [str(i), r.station.site_id, r.station.brand, r.station.postcode, _fmt_price(r.price)]
        if show_distance:
            row.append(f"{r.distance_km:.1f} km")
        table.add_row(*row)
    return table


async def _current_stations(service, force: bool = False, show_progress: bool = True):
    """Fetch through the service, drawing a progress bar when sources are hit."""
    from fuelwatch.core.exceptions import AggregationError

    try:
        return await _fetch_with_progress(service, force, show_progress)
    except AggregationError as e:
        raise click.ClickException(f"Could not fetch fuel prices: {e}") from e


async def _fetch_with_progress(service, force: bool, show_progress: bool):
    if not show_progress:
        return await service.fetch_fuel_prices(force_refresh=force)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Fetching fuel prices...", total=1.0)
        return await service.fetch_fuel_prices(
            on_progress=lambda fraction: progress.update(task, completed=fraction),
            force_refresh=force,
        )


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="FUELWATCH_CONFIG",
    default=None,
    help="Path to fuelwatch.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="fuelwatch")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Fuelwatch: UK forecourt fuel prices from every major retailer."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# fetch
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--force", is_flag=True, default=False, help="Ignore the cache and refetch.")
@click.option("--brand", "-b", type=str, default=None, help="Only show this retailer.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def fetch(ctx: click.Context, force: bool, brand: str | None, output_format: str) -> None:
    """Fetch current prices (from cache when fresh)."""
    config = _load_config(ctx)

    async def _run():
        async with _create_service(config) as service:
            stations = await _current_stations(
                service, force=force, show_progress=output_format == "table"
            )
            return stations, service.get_last_updated(), service.last_result

    stations, last_updated, result = _run_async(_run())

    if brand:
        stations = [s for s in stations if s.brand.lower() == brand.lower()]

    if output_format == "json":
        output = {
            "last_updated": last_updated,
            "stations": [s.model_dump(mode="json") for s in stations],
        }
        click.echo(json.dumps(output, indent=2, default=str))
        return

    from fuelwatch.core import FuelType

    table = Table(title=f"Fuel Prices ({len(stations)} stations)")
    table.add_column("Site", style="bold")
    table.add_column("Brand")
    table.add_column("Postcode")
    for ft in FuelType:
        table.add_column(ft.value, justify="right")
    for s in stations:
        table.add_row(
            s.site_id, s.brand, s.postcode, *(_fmt_price(s.price(ft)) for ft in FuelType)
        )
    console.print(table)
    console.print(f"Last updated: [bold]{last_updated or 'N/A'}[/bold]")

    if result is not None and result.failed_sources:
        console.print(
            f"[yellow]Unavailable sources: {', '.join(result.failed_sources)}[/yellow]"
        )


# ---------------------------------------------------------------------------
# stats
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--fuel-type", "-f", type=_FUEL_CHOICES, default=None, help="Limit to one fuel.")
@click.pass_context
def stats(ctx: click.Context, fuel_type: str | None) -> None:
    """National averages and cheapest price per region."""
    from fuelwatch.analytics import cheapest_by_region, price_summary
    from fuelwatch.core import FuelType

    config = _load_config(ctx)
    wanted = [_fuel_type(fuel_type)] if fuel_type else list(FuelType)

    async def _run():
        async with _create_service(config) as service:
            return await _current_stations(service)

    stations = _run_async(_run())
    summary = price_summary(stations)

    national = Table(title=f"National Summary ({summary.station_count} stations)")
    national.add_column("Fuel", style="bold")
    national.add_column("Stations", justify="right")
    national.add_column("Average", justify="right")
    national.add_column("Cheapest", justify="right")
    national.add_column("Where")
    for ft in wanted:
        avg = summary.average[ft]
        best = summary.cheapest[ft]
        national.add_row(
            ft.value,
            str(summary.reporting[ft]),
            f"{avg}p" if avg is not None else "-",
            _fmt_price(best.price) if best else "-",
            f"{best.station.brand} {best.station.postcode}" if best else "-",
        )
    console.print(national)

    regions = Table(title="Cheapest by Region")
    regions.add_column("Region", style="bold")
    regions.add_column("Stations", justify="right")
    for ft in wanted:
        regions.add_column(ft.value, justify="right")
    for r in cheapest_by_region(stations, wanted):
        regions.add_row(
            r.region, str(r.station_count), *(_fmt_price(r.cheapest.get(ft)) for ft in wanted)
        )
    console.print(regions)


# ---------------------------------------------------------------------------
# cheapest
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--fuel-type", "-f", type=_FUEL_CHOICES, default="E10", help="Fuel type.")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=10, help="Stations to show.")
@click.pass_context
def cheapest(ctx: click.Context, fuel_type: str, limit: int) -> None:
    """Cheapest stations nationally for one fuel type."""
    from fuelwatch.analytics import top_n_cheapest

    config = _load_config(ctx)
    ft = _fuel_type(fuel_type)

    async def _run():
        async with _create_service(config) as service:
            return await _current_stations(service)

    stations = _run_async(_run())
    ranked = top_n_cheapest(stations, ft, limit)
    if not ranked:
        console.print(f"[yellow]No stations report {ft.value} prices.[/yellow]")
        return
    console.print(_station_table(f"Cheapest {ft.value}", ranked))


# ---------------------------------------------------------------------------
# nearby
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--lat", type=float, required=True, help="Latitude in decimal degrees.")
@click.option("--lon", type=float, required=True, help="Longitude in decimal degrees.")
@click.option("--radius-km", "-r", type=float, default=10.0, help="Search radius in km.")
@click.option("--fuel-type", "-f", type=_FUEL_CHOICES, default="E10", help="Fuel type.")
@click.option("--limit", "-n", type=click.IntRange(min=1), default=10, help="Stations to show.")
@click.pass_context
def nearby(
    ctx: click.Context,
    lat: float,
    lon: float,
    radius_km: float,
    fuel_type: str,
    limit: int,
) -> None:
    """Cheapest stations within a radius of a point."""
    from fuelwatch.analytics import nearby_stations

    config = _load_config(ctx)
    ft = _fuel_type(fuel_type)

    async def _run():
        async with _create_service(config) as service:
            return await _current_stations(service)

    stations = _run_async(_run())
    ranked = nearby_stations(stations, lat, lon, radius_km, ft, limit)
    if not ranked:
        console.print(f"[yellow]No {ft.value} stations within {radius_km:g} km.[/yellow]")
        return
    console.print(_station_table(f"{ft.value} within {radius_km:g} km", ranked, show_distance=True))


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("site_id")
@click.option("--fuel-type", "-f", type=_FUEL_CHOICES, default=None, help="Limit to one fuel.")
@click.option("--days", "-d", type=click.IntRange(min=1), default=None, help="Window in days.")
@click.pass_context
def history(ctx: click.Context, site_id: str, fuel_type: str | None, days: int | None) -> None:
    """Recorded price changes for one station."""
    from fuelwatch.core import FuelType

    config = _load_config(ctx)
    if not config.history.enabled:
        console.print("[yellow]Price history is disabled in config.[/yellow]")
        raise SystemExit(1)

    window = days or config.history.default_days
    ft = _fuel_type(fuel_type)

    async def _run():
        async with _create_service(config) as service:
            return await service.get_historical_prices(site_id, fuel_type=ft, days=window)

    result = _run_async(_run())
    if result.is_empty():
        console.print(f"[yellow]No price history for {site_id} in the last {window} days.[/yellow]")
        return

    table = Table(title=f"Price History: {site_id} (last {window} days)")
    table.add_column("Fuel", style="bold")
    table.add_column("Recorded at")
    table.add_column("Price", justify="right")
    for bucket_type in [ft] if ft else list(FuelType):
        for point in result.bucket(bucket_type):
            table.add_row(
                bucket_type.value,
                point.recorded_at.strftime("%Y-%m-%d %H:%M"),
                _fmt_price(point.price),
            )
    console.print(table)


# ---------------------------------------------------------------------------
# sources
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def sources(ctx: click.Context) -> None:
    """List configured retailer feeds."""
    config = _load_config(ctx)

    table = Table(title="Configured Sources")
    table.add_column("Brand", style="bold")
    table.add_column("Prefix")
    table.add_column("URL")
    for source in config.fetch.sources:
        table.add_row(source.brand, source.prefix, source.url)
    console.print(table)


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address (default from config).")
@click.option("--port", "-p", type=int, default=None, help="Port number (default from config).")
@click.option("--reload", is_flag=True, default=False, help="Auto-reload on code changes.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None, reload: bool) -> None:
    """Start the REST API server."""
    import uvicorn

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    # The app factory reloads config itself; point it at the same file.
    if ctx.obj.get("config_path"):
        os.environ["FUELWATCH_CONFIG"] = ctx.obj["config_path"]

    console.print(f"Starting fuelwatch API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(
        "fuelwatch.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show cache and history status without fetching."""
    config = _load_config(ctx)

    async def _run():
        from fuelwatch.storage import SqliteCacheStore, SqliteHistoryStore

        cache = SqliteCacheStore(config.cache)
        await cache.initialize()
        try:
            entry = await cache.read()
            valid = entry is not None and cache.is_valid(entry)
        finally:
            await cache.close()

        history_ok = None
        if config.history.enabled:
            store = SqliteHistoryStore(config.history)
            await store.initialize()
            try:
                history_ok = await store.health_check()
            finally:
                await store.close()
        return entry, valid, history_ok

    entry, valid, history_ok = _run_async(_run())

    table = Table(title="Fuelwatch Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Configured sources", str(len(config.fetch.sources)))
    table.add_row("Cache path", config.cache.sqlite_path)
    table.add_row("Cache TTL", f"{config.cache.ttl_seconds:.0f}s")
    table.add_section()
    table.add_row("Cached stations", str(len(entry.data)) if entry else "0")
    table.add_row("Fetched at", _fmt_epoch(entry.fetched_at if entry else None))
    table.add_row("Source last updated", (entry.source_last_updated if entry else None) or "N/A")
    table.add_row("Cache fresh", "yes" if valid else "no")
    table.add_section()
    table.add_row("History", "disabled" if history_ok is None else config.history.sqlite_path)
    if history_ok is not None:
        table.add_row("History healthy", "yes" if history_ok else "no")

    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
