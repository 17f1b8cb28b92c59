"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import InvalidTimeRange, LookupFailure, OverlappingAvailability
from ..domain.models import Commitment, Recommendation, TimeRange
from ..domain.selection import SelectionMode
from ..services.booking_service import BookingService
from ..services.outcomes import Assigned, Invalid, NoMatch

app = typer.Typer(
    name="slotmatch",
    help="Match booking requests to available providers",
    add_completion=False
)

console = Console()


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Book providers and find alternative slots."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _load(config_file: Optional[Path], data_file: Optional[Path]):
    """Load configuration and the data store, exiting with a message on failure."""
    try:
        if config_file is not None:
            config = AppConfig.load(config_file, required=True)
        else:
            config = AppConfig.load(get_default_config_path())
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Config error:[/bold red] {e}")
        raise typer.Exit(1)

    path = data_file or config.data_file
    try:
        store = InMemoryBookingStore.load_json(path, timezone=config.timezone)
    except LookupFailure as e:
        console.print(f"[bold red]Data error:[/bold red] {e}")
        raise typer.Exit(1)

    return config, store, path


def _parse_range(start: str, end: str, tz: str) -> TimeRange:
    """Parse two ISO 8601 strings into a range, exiting on bad input."""
    try:
        start_dt = pendulum.parse(start, tz=tz)
        end_dt = pendulum.parse(end, tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse date: {e}[/red]")
        raise typer.Exit(1)

    if start_dt >= end_dt:
        console.print("[red]Start time must be before end time[/red]")
        raise typer.Exit(1)

    return TimeRange(start=start_dt, end=end_dt)


def _recommendation_table(recommendations: List[Recommendation]) -> Table:
    table = Table(title="Closest alternatives", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Provider", style="cyan")
    table.add_column("Free range")
    table.add_column("Duration", justify="right")
    table.add_column("Distance", justify="right")

    for idx, rec in enumerate(recommendations, 1):
        table.add_row(
            str(idx),
            rec.display_name or rec.provider_id,
            str(rec.range),
            f"{int(rec.duration.total_seconds() // 60)} min",
            f"{int(rec.distance.total_seconds() // 60)} min",
        )
    return table


def _bookings_table(title: str, bookings: List[Commitment], store: InMemoryBookingStore) -> Table:
    table = Table(title=title)
    table.add_column("Booking", style="dim")
    table.add_column("Provider", style="cyan")
    table.add_column("Requester")
    table.add_column("Time")
    table.add_column("Status")

    for booking in bookings:
        table.add_row(
            booking.id,
            store.provider_name(booking.provider_id) or booking.provider_id,
            booking.requester_id,
            str(booking.range),
            booking.status.value,
        )
    return table


@app.command()
def book(
    requester: Annotated[str, typer.Argument(help="Id of the requesting customer")],
    start: Annotated[str, typer.Option("--start", help="Start time (ISO 8601)")],
    end: Annotated[str, typer.Option("--end", help="End time (ISO 8601)")],
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./slotmatch.yaml")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", "-d", help="JSON data file. Defaults to the configured data_file")] = None,
    strategy: Annotated[Optional[SelectionMode], typer.Option("--strategy", help="Prefer providers with the most or least bookings")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print the response payload as JSON.")] = False,
):
    """
    Request a booking and assign the best available provider.

    Examples:

        slotmatch book cust-1 --start 2025-03-03T10:00 --end 2025-03-03T12:00

        slotmatch book cust-1 --start ... --end ... --strategy least --json
    """
    config, store, path = _load(config_file, data_file)

    matching = config.matching
    if strategy is not None:
        matching = matching.model_copy(update={"selection_strategy": strategy})

    service = BookingService.from_store(store, matching)
    payload = {"startTime": start, "endTime": end}

    try:
        outcome = asyncio.run(service.handle_request(requester, payload, timezone=config.timezone))
    except LookupFailure as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(1)

    if isinstance(outcome, Assigned):
        try:
            store.save_json(path)
        except LookupFailure as e:
            console.print(f"[bold red]Storage error:[/bold red] {e}")
            raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(outcome.to_payload()))
        if not isinstance(outcome, Assigned):
            raise typer.Exit(1)
        return

    if isinstance(outcome, Assigned):
        console.print(Panel(
            f"[bold]{outcome.provider.display_name or outcome.provider.provider_id}[/bold]\n"
            f"{outcome.commitment.range}\n"
            f"Booking: {outcome.commitment.id}",
            title="[green]✓ Booking confirmed[/green]",
        ))
    elif isinstance(outcome, NoMatch):
        console.print(f"[yellow]{outcome.message}[/yellow]")
        if outcome.recommendations:
            console.print(_recommendation_table(list(outcome.recommendations)))
        else:
            console.print("[dim]No alternatives found in the search window.[/dim]")
        raise typer.Exit(1)
    elif isinstance(outcome, Invalid):
        console.print(f"[bold red]Error:[/bold red] {outcome.reason}")
        raise typer.Exit(1)


@app.command()
def recommend(
    start: Annotated[str, typer.Option("--start", help="Start time (ISO 8601)")],
    end: Annotated[str, typer.Option("--end", help="End time (ISO 8601)")],
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", "-d", help="JSON data file")] = None,
):
    """Show the free ranges closest to a requested time without booking."""
    config, store, _ = _load(config_file, data_file)
    time_range = _parse_range(start, end, config.timezone)

    service = BookingService.from_store(store, config.matching)
    recommendations = asyncio.run(service.recommend(time_range))

    if not recommendations:
        console.print("[yellow]No free ranges found in the search window.[/yellow]")
        return

    console.print(_recommendation_table(recommendations))


@app.command()
def bookings(
    requester: Annotated[Optional[str], typer.Option("--requester", help="List a customer's bookings")] = None,
    provider: Annotated[Optional[str], typer.Option("--provider", help="List a provider's assigned bookings")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", "-d", help="JSON data file")] = None,
):
    """List bookings for a requester or a provider, latest first."""
    if bool(requester) == bool(provider):
        console.print("[red]Error: pass exactly one of --requester or --provider.[/red]")
        raise typer.Exit(1)

    _, store, _ = _load(config_file, data_file)

    if requester:
        rows = asyncio.run(store.bookings_for_requester(requester))
        title = f"Bookings of {requester}"
    else:
        rows = asyncio.run(store.bookings_for_provider(provider))
        title = f"Bookings assigned to {store.provider_name(provider) or provider}"

    if not rows:
        console.print("[yellow]No bookings found.[/yellow]")
        return

    console.print(_bookings_table(title, rows, store))


@app.command()
def availability(
    provider: Annotated[str, typer.Option("--provider", help="Provider id")],
    page: Annotated[int, typer.Option("--page", min=1, help="Page number, starting at 1")] = 1,
    limit: Annotated[int, typer.Option("--limit", min=1, help="Windows per page")] = 5,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", "-d", help="JSON data file")] = None,
):
    """Page through a provider's availability windows with the bookings inside them."""
    _, store, _ = _load(config_file, data_file)

    result = asyncio.run(store.availability_for_provider(provider, page=page, limit=limit))

    if not result.items:
        console.print("[yellow]No availability found.[/yellow]")
        return

    table = Table(title=f"Availability of {store.provider_name(provider) or provider}")
    table.add_column("Window")
    table.add_column("Bookings", justify="right")
    table.add_column("Booked ranges")

    for window, commitments in result.items:
        table.add_row(
            str(window.range),
            str(len(commitments)),
            "\n".join(f"{c.range} ({c.status.value})" for c in commitments),
        )

    console.print(table)
    console.print(f"[dim]Page {result.page} of {result.total_pages} ({result.total} windows)[/dim]")


@app.command("add-availability")
def add_availability(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    start: Annotated[str, typer.Option("--start", help="Start time (ISO 8601)")],
    end: Annotated[str, typer.Option("--end", help="End time (ISO 8601)")],
    name: Annotated[Optional[str], typer.Option("--name", help="Display name when registering a new provider")] = None,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file")] = None,
    data_file: Annotated[Optional[Path], typer.Option("--data", "-d", help="JSON data file")] = None,
):
    """Declare a window during which a provider can take bookings."""
    config, store, path = _load(config_file, data_file)
    time_range = _parse_range(start, end, config.timezone)

    if name:
        store.add_provider(provider, name)

    try:
        window = store.add_availability(provider, time_range)
    except KeyError:
        console.print(f"[red]Unknown provider '{provider}'. Pass --name to register it.[/red]")
        raise typer.Exit(1)
    except (InvalidTimeRange, OverlappingAvailability) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    try:
        store.save_json(path)
    except LookupFailure as e:
        console.print(f"[bold red]Storage error:[/bold red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Availability {window.id} added:[/green] {window.range}")


if __name__ == "__main__":
    app()
