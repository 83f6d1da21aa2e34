"""
Main CLI application using Typer.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.memory_store import InMemoryBookingStore
from ..adapters.rows import parse_datetime
from ..adapters.supabase_store import SupabaseBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotNoLongerAvailable, StudioSlotsError
from ..domain.models import Booking
from ..domain.slot_calculator import SlotCalculator
from ..services.booking_service import BookingService

app = typer.Typer(
    name="studioslots",
    help="Find and book open studio time slots",
    add_completion=False
)

console = Console()

EXIT_SLOT_TAKEN = 2

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use the bundled mock studio data instead of Supabase."),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Studio availability and booking tool.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    """
    Load the config file, falling back to defaults in mock mode.
    """
    config_path = config_file or get_default_config_path()

    if mock and config_file is None and not config_path.exists():
        return AppConfig()

    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool):
    """
    Wire the booking store and slot calculator for the chosen mode.

    Returns:
        (BookingService, store timezone)
    """
    if mock:
        store = InMemoryBookingStore.from_json(config.mock_data_file)
    else:
        supabase = config.require_supabase()
        store = SupabaseBookingStore(
            url=supabase.url,
            api_key=supabase.api_key,
            timezone=config.timezone,
            timeout=supabase.timeout_seconds,
        )

    calculator = SlotCalculator(buffer_minutes=config.buffer_minutes)
    return BookingService(booking_store=store, slot_calculator=calculator), store.timezone


def _parse_date(value: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD").date()
    except ValueError as e:
        console.print(f"[red]Invalid date {value!r}, expected YYYY-MM-DD: {e}[/red]")
        raise typer.Exit(1)


def _parse_start(value: str, tz: str):
    try:
        return parse_datetime(value, tz)
    except ValueError as e:
        console.print(f"[red]Invalid start time {value!r}: {e}[/red]")
        raise typer.Exit(1)


def _print_booking(booking: Booking, title: str) -> None:
    console.print(Panel.fit(
        f"[bold]Booking:[/bold] {booking.id}\n"
        f"[bold]Time:[/bold] {booking.time_range}\n"
        f"[bold]Client:[/bold] {booking.client_name} <{booking.client_email}>\n"
        f"[bold]Status:[/bold] {booking.status.value}",
        title=title
    ))


def _fail(error: Exception) -> None:
    if isinstance(error, SlotNoLongerAvailable):
        console.print(f"[bold yellow]Slot taken:[/bold yellow] {error}")
        console.print("Fetch the slot list again and choose another time.")
        raise typer.Exit(EXIT_SLOT_TAKEN)

    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(
    studio_id: Annotated[str, typer.Argument(help="Studio identifier")],
    service_id: Annotated[str, typer.Argument(help="Service identifier")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print ISO-8601 start times as JSON.")] = False,
):
    """
    List the open slots of a studio service on one day.

    Examples:

        studioslots slots studio-1 svc-mixing --date 2024-11-25 --mock

        studioslots slots studio-1 svc-mixing --date 2024-11-25 --json
    """
    day = _parse_date(date)

    try:
        config = _load_config(config_file, mock)
        service, _ = _build_service(config, mock)
        found = asyncio.run(service.find_slots(studio_id, service_id, day))
    except (StudioSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps([slot.to_iso8601() for slot in found]))
        return

    console.print()
    if not found:
        console.print(
            "[yellow]⚠ No open slots on this day.[/yellow]\n"
            "The studio may be closed or fully booked; try another date."
        )
    else:
        table = Table(
            title=f"Open slots for {service_id} on {day.isoformat()}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("#", style="dim")
        table.add_column("Slot", style="bold")
        table.add_column("Start (UTC)", style="dim")

        for idx, slot in enumerate(found, 1):
            table.add_row(str(idx), slot.format_display(), slot.to_iso8601())

        console.print(table)
    console.print()


@app.command()
def book(
    studio_id: Annotated[str, typer.Argument(help="Studio identifier")],
    service_id: Annotated[str, typer.Argument(help="Service identifier")],
    start: Annotated[str, typer.Option("--start", "-s", help="Start time (ISO-8601)")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    email: Annotated[str, typer.Option("--email", help="Client email")],
    phone: Annotated[Optional[str], typer.Option("--phone", help="Client phone")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the studio")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book a slot, re-checking it for conflicts right before saving.
    """
    try:
        config = _load_config(config_file, mock)
        service, tz = _build_service(config, mock)
        start_time = _parse_start(start, tz)
        booking = asyncio.run(service.commit_booking(
            studio_id=studio_id,
            service_id=service_id,
            start_time=start_time,
            client_name=name,
            client_email=email,
            client_phone=phone,
            notes=notes,
        ))
    except (StudioSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_booking(booking, "✓ Booking created")


@app.command()
def reschedule(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    start: Annotated[str, typer.Option("--start", "-s", help="New start time (ISO-8601)")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Move a booking to a new start time.
    """
    try:
        config = _load_config(config_file, mock)
        service, tz = _build_service(config, mock)
        booking = asyncio.run(service.reschedule_booking(booking_id, _parse_start(start, tz)))
    except (StudioSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_booking(booking, "✓ Booking rescheduled")


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Booking identifier")],
    reason: Annotated[Optional[str], typer.Option("--reason", help="Internal cancellation note")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Cancel a booking and free its slot.
    """
    try:
        config = _load_config(config_file, mock)
        service, _ = _build_service(config, mock)
        booking = asyncio.run(service.cancel_booking(booking_id, reason))
    except (StudioSlotsError, FileNotFoundError, ValueError) as e:
        _fail(e)

    _print_booking(booking, "✓ Booking cancelled")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]studioslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
