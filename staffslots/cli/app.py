"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.mock_bookings_client import MockBookingsClient
from ..adapters.supabase_authenticator import SupabaseAuthenticator
from ..adapters.supabase_client import SupabaseClient
from ..config import AppConfig, get_default_config_path
from ..domain.availability_calculator import AvailabilityCalculator, to_date
from ..domain.exceptions import AuthenticationError, StaffSlotsError
from ..domain.models import DAYS_OF_WEEK, DateStatus, StaffMember
from ..services.availability_service import AvailabilityService

app = typer.Typer(
    name="staffslots",
    help="Show staff availability and bookable time slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled sample data instead of Supabase."),
]

STATUS_STYLES = {
    DateStatus.AVAILABLE: "green",
    DateStatus.UNAVAILABLE: "dim",
    DateStatus.LEAVE: "red",
}


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """Configure logging for all commands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_config(config_file: Optional[Path], mock: bool = False) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig(supabase_url="http://localhost", supabase_anon_key="mock")
    return AppConfig.load_from_yaml(config_path)


def _build_service(config: AppConfig, mock: bool) -> AvailabilityService:
    calculator = AvailabilityCalculator(
        slot_interval_minutes=config.slot_interval_minutes,
        missing_data_policy=config.missing_schedule_policy,
        timezone=config.timezone,
    )

    if mock:
        return AvailabilityService(bookings_client=MockBookingsClient(), calculator=calculator)

    authenticator = SupabaseAuthenticator(
        auth_url=config.get_auth_url(),
        api_key=config.supabase_anon_key,
    )
    try:
        access_token = authenticator.get_access_token()
    except AuthenticationError as e:
        logging.getLogger(__name__).info("Using anonymous access: %s", e)
        access_token = None

    client = SupabaseClient(
        rest_url=config.get_rest_url(),
        api_key=config.supabase_anon_key,
        access_token=access_token,
    )
    return AvailabilityService(bookings_client=client, calculator=calculator)


def _require_staff(service: AvailabilityService, staff_id: str) -> StaffMember:
    if staff_id == "any":
        return StaffMember.any_available()
    staff = asyncio.run(service.get_staff(staff_id))
    if staff is None:
        console.print(f"[bold red]Error:[/bold red] Staff member '{staff_id}' not found.")
        raise typer.Exit(1)
    return staff


@app.command()
def slots(
    staff_id: Annotated[str, typer.Argument(help="Staff member id, or 'any'.")],
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Service duration in minutes")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List the time slots of a staff member on a date.

    Examples:

        staffslots slots staff-anna 2024-11-25 --duration 60 --mock
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)

        day = to_date(date)
        if day is None:
            console.print(f"[bold red]Error:[/bold red] Invalid date '{date}'. Use YYYY-MM-DD.")
            raise typer.Exit(1)

        staff = _require_staff(service, staff_id)
        minutes = duration if duration is not None else config.defaults.service_duration_minutes

        availability = service.get_availability(staff, day)
        if not availability.is_available:
            console.print(f"[yellow]⚠ {staff.name} is not available: {availability.reason}[/yellow]")
            return
        if availability.reason:
            console.print(f"[yellow]⚠ {availability.reason}[/yellow]")

        found = asyncio.run(
            service.find_slots(staff=staff, date=day, service_duration_minutes=minutes)
        )

        if not found:
            console.print("[yellow]⚠ No time slots on this date.[/yellow]")
            return

        table = Table(
            title=f"{staff.name} · {day.format('dddd, DD.MM.YYYY')} · {minutes} min",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Time", style="bold")
        table.add_column("Status")

        for slot in found:
            status = "[green]available[/green]" if slot.available else "[red]booked[/red]"
            table.add_row(slot.format_display(), status)

        console.print()
        console.print(table)
        free = sum(1 for slot in found if slot.available)
        console.print(f"\n[bold green]✓ {free} of {len(found)} slot(s) available[/bold green]\n")

    except (FileNotFoundError, ValueError, StaffSlotsError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def calendar(
    staff_id: Annotated[str, typer.Argument(help="Staff member id, or 'any'.")],
    days: Annotated[Optional[int], typer.Option("--days", min=0, help="Number of days to show")] = None,
    start: Annotated[Optional[str], typer.Option("--start", help="First date (YYYY-MM-DD), defaults to today")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show which upcoming dates a staff member can be booked on.
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)

        first = None
        if start is not None:
            first = to_date(start)
            if first is None:
                console.print(f"[bold red]Error:[/bold red] Invalid date '{start}'. Use YYYY-MM-DD.")
                raise typer.Exit(1)

        staff = _require_staff(service, staff_id)

        marks = service.calendar(
            staff,
            start_date=first,
            days_ahead=days if days is not None else config.calendar_days_ahead,
        )

        table = Table(title=f"Calendar · {staff.name}", show_header=True, header_style="bold cyan")
        table.add_column("Date", style="bold")
        table.add_column("Day")
        table.add_column("Status")

        for date_str, mark in marks.items():
            style = STATUS_STYLES[mark.status]
            table.add_row(
                date_str,
                pendulum.parse(date_str).format("ddd"),
                f"[{style}]{mark.status.value}[/{style}]",
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, ValueError, StaffSlotsError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def staff(
    staff_id: Annotated[str, typer.Argument(help="Staff member id.")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show the weekly schedule and leave dates of a staff member.
    """
    try:
        config = _load_config(config_file, mock)
        service = _build_service(config, mock)
        member = _require_staff(service, staff_id)

        if member.schedule is None:
            console.print(f"[yellow]⚠ {member.name} has no work schedule on record.[/yellow]")
        else:
            table = Table(title=f"Schedule · {member.name}", show_header=True, header_style="bold cyan")
            table.add_column("Day", style="bold yellow")
            table.add_column("Hours")
            for name in DAYS_OF_WEEK:
                day = member.schedule.for_day(name)
                if day is None:
                    hours = "[dim]no data[/dim]"
                elif day.is_working:
                    hours = f"{day.start_time} - {day.end_time}"
                else:
                    hours = "[dim]off[/dim]"
                table.add_row(name.capitalize(), hours)
            console.print()
            console.print(table)

        if member.leaves:
            console.print("\n[bold]Leave:[/bold]")
            for leave in member.leaves:
                console.print(
                    f"  {leave.start_date.to_date_string()} - {leave.end_date.to_date_string()}"
                    f"  {leave.title} ({leave.type})"
                )
        console.print()

    except (FileNotFoundError, ValueError, StaffSlotsError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def login(
    email: Annotated[str, typer.Option("--email", prompt=True, help="Account email")],
    password: Annotated[str, typer.Option("--password", prompt=True, hide_input=True, help="Account password")],
    config_file: ConfigOption = None,
):
    """
    Sign in to Supabase and cache the session.
    """
    try:
        config = _load_config(config_file)
        authenticator = SupabaseAuthenticator(
            auth_url=config.get_auth_url(),
            api_key=config.supabase_anon_key,
        )
        authenticator.sign_in(email, password)

        if authenticator.insecure_storage_warning:
            console.print(f"[yellow]⚠ {authenticator.insecure_storage_warning}[/yellow]")

        console.print(Panel.fit(
            f"[bold green]✓ Signed in[/bold green]\n\n"
            f"[bold]Email:[/bold] {email}\n"
            f"[bold]Session storage:[/bold] {authenticator.cache_backend}",
            title="Supabase"
        ))

    except (FileNotFoundError, ValueError, StaffSlotsError) as e:
        console.print(f"\n[bold red]✗ Error:[/bold red] {e}\n")
        raise typer.Exit(1)


@app.command()
def logout(config_file: ConfigOption = None):
    """
    Forget the cached Supabase session.
    """
    try:
        config = _load_config(config_file)
        authenticator = SupabaseAuthenticator(
            auth_url=config.get_auth_url(),
            api_key=config.supabase_anon_key,
        )
        authenticator.sign_out()
        console.print("\n[green]✓ Session cleared.[/green]\n")

    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]staffslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
