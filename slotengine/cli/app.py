"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Annotated, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.ical import render_ical
from ..adapters.sqlite import SQLiteStore
from ..config import AppConfig, load_config
from ..domain.events import BookingEvent, InMemoryEventBus
from ..domain.exceptions import ConflictError, SlotEngineError
from ..domain.models import Booking, BookingStatus, Slot, Weekday, format_time
from ..services.booking_service import BookingService

app = typer.Typer(
    name="slotengine",
    help="Resolve bookable slots and manage bookings for service professionals",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]

STATUS_STYLES = {
    BookingStatus.PENDING: "yellow",
    BookingStatus.CONFIRMED: "green",
    BookingStatus.COMPLETED: "blue",
    BookingStatus.CANCELLED: "dim",
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _print_event(event: BookingEvent) -> None:
    console.print(f"[dim]→ {type(event).__name__} ({event.booking.id})[/dim]")


def _build_service(config_file: Optional[Path]) -> Tuple[AppConfig, BookingService]:
    """Load config, open the database and wire the booking service."""
    config = load_config(config_file)
    _configure_logging(config.log_level)

    store = SQLiteStore(config.database_path)
    bus = InMemoryEventBus()
    bus.subscribe(_print_event)

    service = BookingService(
        availability_store=store,
        ledger=store,
        publisher=bus,
        horizon_days=config.defaults.horizon_days,
    )
    return config, service


def _fail(error: Exception) -> None:
    """Print an error and exit with status 1."""
    if isinstance(error, ConflictError):
        console.print(f"[bold red]Conflict:[/bold red] {error}")
        console.print("Please list the available slots again and choose another one.")
    else:
        console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _print_slots(slots: Tuple[Slot, ...]) -> None:
    if not slots:
        console.print(
            "[yellow]⚠ No available slots found.[/yellow]\n"
            "Try a longer period or check the schedule, vacation and blocked dates."
        )
        return

    console.print(f"[bold green]✓ {len(slots)} available slot(s):[/bold green]\n")
    for slot in slots:
        console.print(f"  {slot.format_display()}")


def _print_booking(booking: Booking, title: str) -> None:
    style = STATUS_STYLES[booking.status]
    body = (
        f"[bold]Booking:[/bold] {booking.id}\n"
        f"[bold]Professional:[/bold] {booking.professional_id}\n"
        f"[bold]Customer:[/bold] {booking.customer_id}\n"
        f"[bold]Date:[/bold] {booking.date.isoformat()} "
        f"{format_time(booking.start_time)} - {format_time(booking.end_time)}\n"
        f"[bold]Status:[/bold] [{style}]{booking.status.value}[/{style}]"
    )
    if booking.cancellation_reason:
        body += f"\n[bold]Reason:[/bold] {booking.cancellation_reason}"
    console.print(Panel.fit(body, title=title))


@app.command()
def init(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    config_file: ConfigOption = None,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing profile")] = False,
):
    """
    Register a professional with the default weekday schedule.
    """
    try:
        config, service = _build_service(config_file)

        try:
            service.get_profile(professional_id)
            exists = True
        except SlotEngineError:
            exists = False

        if exists and not force:
            console.print(f"[yellow]Professional {professional_id} already exists (use --force).[/yellow]")
            raise typer.Exit(1)

        service.register_professional(config.build_profile(professional_id))
        console.print(f"[green]✓ Registered {professional_id}[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def schedule(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    config_file: ConfigOption = None,
):
    """
    Show a professional's weekly schedule and availability settings.
    """
    try:
        _, service = _build_service(config_file)
        profile = service.get_profile(professional_id)

        table = Table(
            title=f"Weekly schedule - {professional_id}",
            show_header=True,
            header_style="bold cyan"
        )
        table.add_column("Weekday", style="bold yellow")
        table.add_column("Open")
        table.add_column("Hours", style="dim")

        for weekday in Weekday:
            day = profile.weekly_schedule.days.get(weekday)
            if day is None or not day.enabled:
                table.add_row(weekday.value.capitalize(), "[red]no[/red]", "-")
            else:
                table.add_row(
                    weekday.value.capitalize(),
                    "[green]yes[/green]",
                    f"{format_time(day.start_time)} - {format_time(day.end_time)}",
                )

        console.print()
        console.print(table)

        vacation = "none"
        if profile.vacation:
            state = "on" if profile.vacation_mode else "off"
            vacation = f"{profile.vacation.start_date.isoformat()} - {profile.vacation.end_date.isoformat()} ({state})"
        blocked = ", ".join(sorted(day.isoformat() for day in profile.blocked_dates)) or "none"

        console.print(f"   Timezone: {profile.timezone}")
        console.print(f"   Slot interval: {profile.interval_minutes} min, service duration: {profile.duration_minutes} min")
        console.print(f"   Buffer: {profile.buffer_minutes} min")
        console.print(f"   Vacation: {vacation}")
        console.print(f"   Blocked dates: {blocked}")
        console.print(f"   Auto-decline: {'on' if profile.auto_decline else 'off'}")
        console.print()

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("set-day")
def set_day(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    weekday: Annotated[str, typer.Argument(help="Weekday, e.g. monday or mon")],
    start: Annotated[str, typer.Option("--start", help="Opening time (HH:MM)")] = "09:00",
    end: Annotated[str, typer.Option("--end", help="Closing time (HH:MM)")] = "17:00",
    off: Annotated[bool, typer.Option("--off", help="Close this weekday")] = False,
    config_file: ConfigOption = None,
):
    """
    Open or close one weekday in the weekly schedule.
    """
    try:
        _, service = _build_service(config_file)
        service.set_day_schedule(professional_id, weekday, enabled=not off, start_time=start, end_time=end)
        state = "closed" if off else f"open {start} - {end}"
        console.print(f"[green]✓ {weekday.capitalize()} is now {state}[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def block(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    day: Annotated[str, typer.Argument(help="Date to block (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Block a single date.
    """
    try:
        _, service = _build_service(config_file)
        service.block_date(professional_id, day)
        console.print(f"[green]✓ {day} blocked[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def unblock(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    day: Annotated[str, typer.Argument(help="Date to unblock (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Remove a date from the blocked dates.
    """
    try:
        _, service = _build_service(config_file)
        service.unblock_date(professional_id, day)
        console.print(f"[green]✓ {day} unblocked[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def vacation(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    start: Annotated[Optional[str], typer.Option("--start", help="First vacation day (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="Last vacation day (YYYY-MM-DD)")] = None,
    off: Annotated[bool, typer.Option("--off", help="Store the dates but keep vacation mode off")] = False,
    clear: Annotated[bool, typer.Option("--clear", help="Remove the vacation period")] = False,
    config_file: ConfigOption = None,
):
    """
    Set or clear the vacation period.
    """
    try:
        _, service = _build_service(config_file)

        if clear:
            service.clear_vacation(professional_id)
            console.print("[green]✓ Vacation cleared[/green]")
            return

        if not start or not end:
            console.print("[red]Error: --start and --end are required unless --clear is given.[/red]")
            raise typer.Exit(1)

        service.set_vacation(professional_id, start, end, enabled=not off)
        state = "off" if off else "on"
        console.print(f"[green]✓ Vacation {start} - {end} ({state})[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def buffer(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    minutes: Annotated[int, typer.Argument(help="Buffer before and after each booking")],
    config_file: ConfigOption = None,
):
    """
    Set the buffer time between jobs.
    """
    try:
        _, service = _build_service(config_file)
        service.set_buffer_minutes(professional_id, minutes)
        console.print(f"[green]✓ Buffer set to {minutes} minutes[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("auto-decline")
def auto_decline(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    enable: Annotated[bool, typer.Option("--enable/--disable", help="Turn auto-decline on or off")] = True,
    config_file: ConfigOption = None,
):
    """
    Auto-decline Pending bookings on dates that get blocked or fall into a vacation.
    """
    try:
        _, service = _build_service(config_file)
        service.set_auto_decline(professional_id, enable)
        console.print(f"[green]✓ Auto-decline {'on' if enable else 'off'}[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def slots(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD), defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    days: Annotated[Optional[int], typer.Option("--days", "-d", help="Number of days when --end is omitted")] = None,
    config_file: ConfigOption = None,
):
    """
    List available slots.

    Examples:

        slotengine slots anna
        slotengine slots anna --start 2024-11-25 --end 2024-11-29
        slotengine slots anna --days 7
    """
    try:
        config, service = _build_service(config_file)
        profile = service.get_profile(professional_id)

        today = pendulum.now(profile.timezone).date()
        start_date = start or today.isoformat()

        if end:
            end_date = end
        else:
            horizon = days or config.defaults.horizon_days
            end_date = pendulum.from_format(start_date, "YYYY-MM-DD").date().add(days=horizon - 1).isoformat()

        console.print(f"\n[bold cyan]🗓️  Available slots for {professional_id}[/bold cyan] ({start_date} - {end_date})\n")
        _print_slots(service.list_available_slots(professional_id, start_date, end_date))
        console.print()

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def reserve(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    customer_id: Annotated[str, typer.Argument(help="Customer id")],
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start_time: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    config_file: ConfigOption = None,
):
    """
    Reserve a slot. The booking starts out Pending.
    """
    try:
        _, service = _build_service(config_file)
        booking = service.reserve_slot(professional_id, customer_id, day, start_time)
        _print_booking(booking, "✓ Reserved")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def confirm(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    config_file: ConfigOption = None,
):
    """
    Confirm a Pending booking.
    """
    try:
        _, service = _build_service(config_file)
        _print_booking(service.confirm_booking(booking_id), "✓ Confirmed")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def cancel(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    reason: Annotated[Optional[str], typer.Option("--reason", "-r", help="Cancellation reason")] = None,
    config_file: ConfigOption = None,
):
    """
    Cancel or decline a booking and free its slot.
    """
    try:
        _, service = _build_service(config_file)
        _print_booking(service.cancel_booking(booking_id, reason), "✓ Cancelled")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def complete(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    config_file: ConfigOption = None,
):
    """
    Mark a booking as completed.
    """
    try:
        _, service = _build_service(config_file)
        _print_booking(service.complete_booking(booking_id), "✓ Completed")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def reschedule(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    day: Annotated[Optional[str], typer.Option("--date", help="New date (YYYY-MM-DD)")] = None,
    start_time: Annotated[Optional[str], typer.Option("--time", help="New start time (HH:MM)")] = None,
    config_file: ConfigOption = None,
):
    """
    Show the slots a booking can move to, or move it with --date and --time.
    """
    try:
        _, service = _build_service(config_file)

        if day is None and start_time is None:
            console.print(f"\n[bold cyan]🔁 Reschedule options for {booking_id}[/bold cyan]\n")
            _print_slots(service.propose_reschedule(booking_id))
            console.print()
            return

        if day is None or start_time is None:
            console.print("[red]Error: --date and --time must be given together.[/red]")
            raise typer.Exit(1)

        _print_booking(service.confirm_reschedule(booking_id, day, start_time), "✓ Rescheduled")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def bookings(
    professional_id: Annotated[str, typer.Argument(help="Professional id")],
    show_all: Annotated[bool, typer.Option("--all", help="Include completed and cancelled bookings")] = False,
    config_file: ConfigOption = None,
):
    """
    List a professional's bookings.
    """
    try:
        _, service = _build_service(config_file)
        found: List[Booking] = [
            booking for booking in service.list_bookings(professional_id)
            if show_all or booking.status.is_active
        ]

        if not found:
            console.print("[yellow]No bookings found.[/yellow]")
            return

        table = Table(title=f"Bookings - {professional_id}", show_header=True, header_style="bold cyan")
        table.add_column("Id", style="dim")
        table.add_column("Date")
        table.add_column("Time")
        table.add_column("Customer", style="bold yellow")
        table.add_column("Status")

        for booking in found:
            style = STATUS_STYLES[booking.status]
            table.add_row(
                booking.id,
                booking.date.isoformat(),
                f"{format_time(booking.start_time)} - {format_time(booking.end_time)}",
                booking.customer_id,
                f"[{style}]{booking.status.value}[/{style}]",
            )

        console.print()
        console.print(table)
        console.print()

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command("export-ical")
def export_ical(
    booking_id: Annotated[str, typer.Argument(help="Booking id")],
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Write to this .ics file instead of stdout")] = None,
    summary: Annotated[str, typer.Option("--summary", help="Event title")] = "Service Booking",
    config_file: ConfigOption = None,
):
    """
    Export a booking as an iCalendar event.
    """
    try:
        _, service = _build_service(config_file)
        booking = service.get_booking(booking_id)
        profile = service.get_profile(booking.professional_id)
        content = render_ical(booking, timezone=profile.timezone, summary=summary)

        if output is None:
            typer.echo(content, nl=False)
            return

        output.write_text(content, encoding="utf-8", newline="")
        console.print(f"[green]✓ Written to {output}[/green]")

    except (SlotEngineError, FileNotFoundError, ValueError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
