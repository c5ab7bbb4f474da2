"""Command-line interface for the KayakNav trip planner."""

import asyncio
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from kayaknav.core.config import Settings, get_settings
from kayaknav.core.errors import KayakNavError

app = typer.Typer(
    name="kayaknav",
    help="Plan kayak trips through tidal currents",
    add_completion=False,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _load_settings(use_api_proxy: bool | None) -> Settings:
    settings = get_settings()
    if use_api_proxy is not None:
        settings.data_sources.use_api_proxy = use_api_proxy
    return settings


def load_waypoints(path: Path) -> list:
    """Read waypoints from a JSON list of {"lat", "lon", "kind"} objects."""
    from kayaknav.models.waypoint import Waypoint, WaypointKind

    with open(path) as f:
        items = json.load(f)

    return [
        Waypoint.from_lat_lon(
            float(item["lat"]),
            float(item["lon"]),
            WaypointKind(item.get("kind", WaypointKind.MOVE.value)),
        )
        for item in items
    ]


def _format_duration(seconds: float) -> str:
    minutes = int(round(seconds / 60))
    return f"{minutes // 60}h {minutes % 60:02d}m"


@app.command()
def stations(
    use_api_proxy: Annotated[
        Optional[bool], typer.Option("--use-api-proxy/--no-api-proxy", help="Route requests through the API proxy")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """List current prediction stations in the study area."""
    from kayaknav.data.noaa import fetch_stations_in_area

    _configure_logging(verbose)
    settings = _load_settings(use_api_proxy)
    area = settings.area

    try:
        found = asyncio.run(
            fetch_stations_in_area(area.lat_range, area.lon_range, settings.data_sources)
        )
    except KayakNavError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Current stations ({len(found)})")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Lat", justify="right")
    table.add_column("Lon", justify="right")
    for station in sorted(found, key=lambda s: (-s.lat, s.lon)):
        table.add_row(
            station.id,
            station.name,
            station.type.name.lower(),
            f"{station.lat:.4f}",
            f"{station.lon:.4f}",
        )
    console.print(table)


@app.command()
def plan(
    waypoints: Annotated[Path, typer.Argument(help="JSON file of waypoints", exists=True, dir_okay=False)],
    speed: Annotated[Optional[float], typer.Option(help="Paddling speed in knots")] = None,
    weekdays: Annotated[str, typer.Option(help="Allowed start days, e.g. 'sat,sun' or 'weekdays'")] = "all",
    daytime: Annotated[bool, typer.Option(help="Only leave after 8:00 and arrive before 21:00")] = False,
    start_date: Annotated[
        Optional[datetime], typer.Option(formats=["%Y-%m-%d"], help="First forecast day (default: 1st of this month)")
    ] = None,
    hours: Annotated[Optional[int], typer.Option(help="Forecast horizon in hours")] = None,
    top: Annotated[int, typer.Option(help="Departure windows to show")] = 10,
    use_api_proxy: Annotated[
        Optional[bool], typer.Option("--use-api-proxy/--no-api-proxy", help="Route requests through the API proxy")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
):
    """Simulate a trip and rank departure times by duration."""
    from kayaknav.core.constants import MS_TO_KNOTS, NAUTICAL_MILE_M
    from kayaknav.data.noaa import (
        fetch_current_predictions,
        fetch_stations_in_area,
        fetch_tide_prediction,
    )
    from kayaknav.simulation.trip import Trip, WeekdayFlags

    _configure_logging(verbose)
    settings = _load_settings(use_api_proxy)
    area = settings.area

    try:
        weekday_flags = WeekdayFlags.parse(weekdays)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--weekdays")

    route = load_waypoints(waypoints)
    if len(route) < 2:
        console.print("[yellow]Need at least two waypoints to plan a trip.[/yellow]")
        raise typer.Exit(code=1)

    today = date.today()
    begin = start_date.date() if start_date else today.replace(day=1)
    horizon = hours or area.horizon_hours

    async def _fetch():
        data_sources = settings.data_sources
        coarse_minutes = settings.trip.coarse_resolution_minutes
        tides = await fetch_tide_prediction(
            area.reference_station_id,
            begin,
            horizon,
            data_sources,
            resolution_minutes=coarse_minutes,
        )
        found = await fetch_stations_in_area(area.lat_range, area.lon_range, data_sources)
        predictions = await fetch_current_predictions(
            found, begin, horizon, data_sources, resolution_minutes=coarse_minutes
        )
        return tides, predictions

    console.print("[bold]Fetching predictions...[/bold]")
    try:
        tides, predictions = asyncio.run(_fetch())
        predictions = [p.since(tides.time[0]) for p in predictions]
        trip = Trip(speed or settings.trip.base_speed_knots, predictions, settings.trip)
    except KayakNavError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1)

    for waypoint in route:
        trip.add_waypoint(waypoint)
    trip.set_weekdays(weekday_flags)
    trip.set_daytime(daytime)

    # First departure in detail
    first = trip.calculate(0)
    if first is None:
        console.print("[yellow]Trip exceeded fetched data.[/yellow]")
    else:
        table = Table(title=f"Departing {trip.time_at(0):%a %Y-%m-%d %H:%M}")
        table.add_column("Leg", justify="right")
        table.add_column("Distance (nm)", justify="right")
        table.add_column("Time", justify="right")
        table.add_column("Speed (kt)", justify="right")
        for i, step in enumerate(first.steps[1:], start=1):
            table.add_row(
                str(i),
                f"{step.distance_m / NAUTICAL_MILE_M:.2f}",
                _format_duration(step.time_s),
                f"{step.speed_ms * MS_TO_KNOTS:.2f}",
            )
        console.print(table)
        console.print(
            f"Total: {first.distance_m / NAUTICAL_MILE_M:.2f} nm in {_format_duration(first.time_s)}"
        )

    sweep = trip.sweep()
    if len(sweep) == 0:
        console.print("[yellow]No departures complete within the forecast.[/yellow]")
        return

    console.print(Panel.fit(
        f"[bold]Fastest departures[/bold]\n"
        f"{len(sweep)} of {sweep.n_candidates} departures at or under "
        f"{_format_duration(sweep.percentile_s)}"
    ))
    order = sweep.duration_s.argsort(kind="stable")[:top]
    table = Table()
    table.add_column("Departure")
    table.add_column("Duration", justify="right")
    table.add_column("Tide")
    for i in sorted(order, key=lambda i: int(sweep.idx[i])):
        idx = int(sweep.idx[i])
        departs = trip.time_at(idx)
        table.add_row(
            f"{departs:%a %Y-%m-%d %H:%M}",
            _format_duration(float(sweep.duration_s[i])),
            tides.label_at(trip.reference_prediction.time[idx]) or "",
        )
    console.print(table)


@app.command()
def version():
    """Show version information."""
    from kayaknav import __version__
    console.print(f"kayaknav v{__version__}")


if __name__ == "__main__":
    app()
