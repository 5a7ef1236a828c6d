"""CLI commands for SRO Appointments."""

import asyncio
from datetime import date
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from sro_appointments.config import get_settings
from sro_appointments.scheduling import errors
from sro_appointments.scheduling.models import AppointmentSettings
from sro_appointments.scheduling.policy import (
    bookable_dates as compute_bookable_dates,
    date_rejection_reason,
    max_booking_date,
    sunday_based_weekday,
)
from sro_appointments.scheduling.slots import generate_slots

app = typer.Typer(
    name="sro-appointments",
    help="Appointment slot allocation for the Student Affairs office",
    add_completion=False,
)
console = Console()

_WEEKDAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def _parse_weekdays(value: str) -> set[int]:
    try:
        return {int(part) for part in value.split(",") if part.strip()}
    except ValueError:
        console.print(f"[red]Invalid weekdays: {value}. Use numbers 0 (Sun) to 6 (Sat), comma separated[/red]")
        raise typer.Exit(1)


def _build_settings(advance: int, weekdays: str) -> AppointmentSettings:
    try:
        return AppointmentSettings(
            advance_business_days=advance,
            allowed_weekdays=_parse_weekdays(weekdays),
        )
    except PydanticValidationError as e:
        console.print(f"[red]Invalid settings: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)


@app.command()
def slots(
    start: str = typer.Option("08:00", "--start", "-s", help="Opening time (HH:MM or 08:00 AM)"),
    end: str = typer.Option("16:00", "--end", "-e", help="Closing time"),
    interval: int = typer.Option(30, "--interval", "-i", help="Slot length in minutes"),
):
    """Print the slot grid for a working day."""
    try:
        labels = generate_slots(start, end, interval)
    except errors.ValidationError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Slots {start}-{end} every {interval} min")
    table.add_column("#", justify="right")
    table.add_column("Time")
    for i, label in enumerate(labels, start=1):
        table.add_row(str(i), label)
    console.print(table)
    console.print(f"{len(labels)} slots")


@app.command()
def check_date(
    day: str = typer.Argument(..., help="Date to check (YYYY-MM-DD)"),
    today: Optional[str] = typer.Option(None, "--today", help="Override today's date"),
    advance: int = typer.Option(14, "--advance", "-a", help="Advance window in business days"),
    weekdays: str = typer.Option("1,2,3,4,5", "--weekdays", "-w", help="Allowed weekdays, 0=Sun..6=Sat"),
    blocked: Optional[list[str]] = typer.Option(None, "--blocked", "-b", help="Blocked date (repeatable)"),
):
    """Check whether a date can be booked."""
    target = _parse_date(day)
    reference = _parse_date(today) if today else date.today()
    settings = _build_settings(advance, weekdays)
    blocked_dates = {_parse_date(b) for b in blocked or []}

    rejection = date_rejection_reason(target, reference, settings, blocked_dates)
    weekday = _WEEKDAY_NAMES[sunday_based_weekday(target)]
    if rejection is None:
        console.print(f"[green]{target.isoformat()} ({weekday}) is bookable[/green]")
        return

    console.print(f"[red]{target.isoformat()} ({weekday}) is not bookable: {rejection.value}[/red]")
    raise typer.Exit(1)


@app.command()
def bookable_dates(
    today: Optional[str] = typer.Option(None, "--today", help="Override today's date"),
    advance: int = typer.Option(14, "--advance", "-a", help="Advance window in business days"),
    weekdays: str = typer.Option("1,2,3,4,5", "--weekdays", "-w", help="Allowed weekdays, 0=Sun..6=Sat"),
    blocked: Optional[list[str]] = typer.Option(None, "--blocked", "-b", help="Blocked date (repeatable)"),
):
    """List every bookable date in the advance window."""
    reference = _parse_date(today) if today else date.today()
    settings = _build_settings(advance, weekdays)
    blocked_dates = {_parse_date(b) for b in blocked or []}

    days = compute_bookable_dates(reference, settings, blocked_dates)
    last = max_booking_date(reference, settings.advance_business_days)

    table = Table(title=f"Bookable dates from {reference.isoformat()} (window ends {last.isoformat()})")
    table.add_column("Date")
    table.add_column("Day")
    for d in days:
        table.add_row(d.isoformat(), _WEEKDAY_NAMES[sunday_based_weekday(d)])
    console.print(table)
    console.print(f"{len(days)} bookable dates")


@app.command()
def events(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of events to show"),
    appointment_id: Optional[str] = typer.Option(None, "--appointment", help="Only this appointment"),
):
    """Show recent appointment status-change events."""
    from sro_appointments.observability import get_event_log

    event_log = get_event_log()
    if appointment_id:
        entries = event_log.get_history(appointment_id)[-limit:]
    else:
        entries = event_log.get_recent_events(limit=limit)

    if not entries:
        console.print("[yellow]No events logged.[/yellow]")
        return

    table = Table(title="Appointment Events")
    table.add_column("When")
    table.add_column("Appointment")
    table.add_column("Action")
    table.add_column("From")
    table.add_column("To")
    for e in entries:
        table.add_row(
            str(e.get("occurred_at", ""))[:19],
            str(e.get("appointment_id", "")),
            str(e.get("action") or ""),
            str(e.get("previous_status") or "new"),
            str(e.get("new_status", "")),
        )
    console.print(table)


@app.command()
def init_db():
    """Create the appointments tables."""
    from sro_appointments.core.database import describe_database, get_database_url, init_db as create_tables

    console.print(f"Creating tables on {describe_database(get_database_url())}")
    asyncio.run(create_tables())
    console.print("[green]Database initialized.[/green]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload"),
):
    """Start the REST API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(f"Starting SRO Appointments API server on {host}:{port}")
    uvicorn.run(
        "sro_appointments.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version():
    """Show version information."""
    from sro_appointments import __version__

    console.print(f"SRO Appointments v{__version__}")


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print(f"[red]Invalid date: {value}. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)
