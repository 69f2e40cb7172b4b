"""
Command-line interface for EDS Birthday Sync.
"""

import logging
import signal
import sqlite3
import threading
import time
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Annotated
from typing import Callable

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from eds_birthday_sync.calendar import managed_calendar_for
from eds_birthday_sync.calendar import resolve_calendar
from eds_birthday_sync.config import build_sync_config
from eds_birthday_sync.config import load_config_file
from eds_birthday_sync.db import StateDatabase
from eds_birthday_sync.db import query_recent_runs
from eds_birthday_sync.guard import run_lock
from eds_birthday_sync.models import DEFAULT_CONFIG
from eds_birthday_sync.models import DEFAULT_LOCK_FILE
from eds_birthday_sync.models import DEFAULT_STATE_DB
from eds_birthday_sync.models import DISABLED_REMINDER
from eds_birthday_sync.models import REMINDER_SLOTS
from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import ConfigError
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.models import SyncInProgressError
from eds_birthday_sync.models import SyncState
from eds_birthday_sync.models import SyncStats
from eds_birthday_sync.reminders import ReminderPolicy
from eds_birthday_sync.reminders import regenerate_all
from eds_birthday_sync.sync import BirthdaySynchronizer
from eds_birthday_sync.sync.purge import perform_purge

# ---------------------------------------------------------------------------
# Typer app
# ---------------------------------------------------------------------------

app = typer.Typer(
    no_args_is_help=True,
    rich_markup_mode="rich",
    help="Mirror contact birthdays and anniversaries into an EDS calendar.",
)

console = Console()
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Global state shared across subcommands
# ---------------------------------------------------------------------------


@dataclass
class _State:
    config_path: Path = field(default_factory=lambda: DEFAULT_CONFIG)
    state_db: Path = field(default_factory=lambda: DEFAULT_STATE_DB)
    lock_file: Path = field(default_factory=lambda: DEFAULT_LOCK_FILE)
    verbose: bool = False


state = _State()


@app.callback()
def _global(
    config: Annotated[
        Path,
        typer.Option("--config", "-c", help=f"Config file path (default: {DEFAULT_CONFIG})"),
    ] = DEFAULT_CONFIG,
    state_db: Annotated[
        Path,
        typer.Option("--state-db", help=f"State DB path (default: {DEFAULT_STATE_DB})"),
    ] = DEFAULT_STATE_DB,
    lock_file: Annotated[
        Path,
        typer.Option("--lock-file", help=f"Run lock path (default: {DEFAULT_LOCK_FILE})"),
    ] = DEFAULT_LOCK_FILE,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose debug output"),
    ] = False,
) -> None:
    state.config_path = config
    state.state_db = state_db
    state.lock_file = lock_file
    state.verbose = verbose
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False, console=console)],
    )


def _build_config(dry_run: bool = False, yes: bool = False) -> SyncConfig:
    try:
        return build_sync_config(
            load_config_file(state.config_path),
            state_db_path=state.state_db,
            dry_run=dry_run,
            verbose=state.verbose,
            yes=yes,
        )
    except ConfigError as e:
        console.print(f"[bold red]Config error:[/] {e} [dim]({state.config_path})[/dim]")
        raise typer.Exit(1) from None


def _format_reminders(minutes: tuple[int, ...]) -> str:
    enabled = [f"{m} min" for m in minutes if m != DISABLED_REMINDER]
    return ", ".join(enabled) if enabled else "none"


def _show_panel(cfg: SyncConfig, operation: Text) -> None:
    calendar = managed_calendar_for(cfg)

    info = Text()
    info.append("  Calendar:  ", style="bold")
    info.append(f"{calendar.display_name}\n")
    info.append(f"             {calendar.scope_uid}\n", style="dim")
    info.append("  Contacts:  ", style="bold")
    info.append(", ".join(cfg.address_books) if cfg.address_books else "all address books")
    info.append("\n  Reminders: ", style="bold")
    info.append(_format_reminders(cfg.reminder_minutes))
    info.append("\n  Dates:     ", style="bold")
    info.append("DD/MM first" if cfg.prefer_day_before_month else "MM/DD first")
    info.append("\n  Operation: ")
    info.append_text(operation)
    if cfg.dry_run:
        info.append("\n  Mode:      ")
        info.append("DRY RUN", style="bold magenta")

    console.print(Panel(info, title="[bold]EDS Birthday Sync[/bold]"))

    if not cfg.yes and not cfg.dry_run:
        typer.confirm("Proceed?", abort=True)


def _record(cfg: SyncConfig, command: str, started_at: int, stats: SyncStats, error=None):
    if cfg.dry_run:
        return
    calendar_id = managed_calendar_for(cfg).scope_uid
    try:
        with StateDatabase(cfg.state_db_path, calendar_id) as db:
            db.record_run(command, started_at, stats, error)
    except (OSError, sqlite3.Error) as e:
        logger.warning(f"Could not record run in {cfg.state_db_path}: {e}")


def _execute(cfg: SyncConfig, command: str, action: Callable) -> SyncStats:
    """Run ``action(event_store)`` under the run lock, recording the outcome."""
    from eds_birthday_sync.eds_client import EDSEventStore

    started_at = int(time.time())
    try:
        with run_lock(state.lock_file), EDSEventStore() as store:
            stats = action(store)
    except SyncInProgressError as e:
        console.print(f"[bold yellow]Skipped:[/] {e}")
        raise typer.Exit(1) from None
    except BirthdaySyncError as e:
        stats = e.stats or SyncStats(state=SyncState.FAILED)
        _record(cfg, command, started_at, stats, str(e))
        console.print(f"[bold red]{command.capitalize()} failed:[/] {e}")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted by user[/]")
        raise typer.Exit(130) from None
    except Exception as e:
        console.print_exception()
        console.print(f"[bold red]Unexpected error:[/] {e}")
        raise typer.Exit(1) from e

    _record(cfg, command, started_at, stats)
    return stats


def _show_results(stats: SyncStats) -> None:
    results = Table.grid(padding=(0, 2))
    results.add_column(style="bold")
    results.add_column(justify="right")
    results.add_row("Contact events", str(stats.source_events))
    results.add_row("Events added", str(stats.events_added))
    results.add_row("Reminders added", str(stats.reminders_added))
    if stats.reminders_deleted:
        results.add_row("Reminders removed", str(stats.reminders_deleted))
    results.add_row("Deleted", str(stats.deleted))
    results.add_row("Unparseable", str(stats.skipped))
    failed_val = Text(str(stats.batches_failed))
    if stats.batches_failed == 0:
        failed_val.append(" ✓", style="green")
    else:
        failed_val.stylize("bold red")
    results.add_row("Failed batches", failed_val)
    if stats.cancelled:
        results.add_row("Cancelled", Text("yes", style="yellow"))

    console.print(Panel(results, title="[bold]Results[/bold]", expand=False))

    if stats.batches_failed:
        raise typer.Exit(1)


_DRY_RUN = Annotated[bool, typer.Option("--dry-run", "-n", help="Preview changes without applying")]
_YES = Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation prompt")]


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


@app.command()
def sync(dry_run: _DRY_RUN = False, yes: _YES = False) -> None:
    """Delete all birthday events and regenerate them from the address books."""
    from eds_birthday_sync.eds_client import EDSContactSource

    cfg = _build_config(dry_run, yes)
    _show_panel(cfg, Text("SYNC (remove generated events then regenerate)", style="bold green"))

    # systemd stops the unit with SIGTERM; stop between contacts, keep flushed chunks.
    cancel = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: cancel.set())

    def action(store):
        with EDSContactSource(cfg.address_books, registry=store.registry) as contacts:
            return BirthdaySynchronizer(cfg, store, contacts).run(cancel)

    _show_results(_execute(cfg, "sync", action))


@app.command()
def clear(dry_run: _DRY_RUN = False, yes: _YES = False) -> None:
    """Remove every generated event without regenerating."""
    cfg = _build_config(dry_run, yes)
    _show_panel(cfg, Text("CLEAR (remove generated events, no resync)", style="bold red"))

    def action(store):
        stats = SyncStats()
        calendar_id = store.find_calendar(managed_calendar_for(cfg))
        if calendar_id is None:
            console.print("[yellow]No birthday calendar found, nothing to clear.[/]")
        else:
            perform_purge(cfg, stats, logger, store, calendar_id)
        stats.state = SyncState.DONE
        return stats

    _show_results(_execute(cfg, "clear", action))


@app.command()
def reminders(
    slot: Annotated[
        int | None,
        typer.Option("--slot", min=1, max=REMINDER_SLOTS, help="Reminder slot to override (1-3)"),
    ] = None,
    minutes: Annotated[
        int | None,
        typer.Option("--minutes", help="New offset in minutes for --slot (-1 disables it)"),
    ] = None,
    dry_run: _DRY_RUN = False,
) -> None:
    """Delete and recreate the reminders of every birthday event.

    Uses the reminder settings from the config file; [cyan]--slot[/] and
    [cyan]--minutes[/] override one of them for this run.
    """
    if (slot is None) != (minutes is None):
        raise typer.BadParameter("--slot and --minutes must be given together")

    cfg = _build_config(dry_run, yes=True)
    try:
        policy = ReminderPolicy.from_config(cfg).with_override(
            slot - 1 if slot is not None else None, minutes
        )
    except ConfigError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    console.print(f"[bold]Reminders:[/] {_format_reminders(policy.slots)}")

    def action(store):
        calendar_id = resolve_calendar(store, managed_calendar_for(cfg), create=False)
        stats = regenerate_all(store, calendar_id, policy, dry_run=cfg.dry_run)
        stats.state = SyncState.DONE
        return stats

    _show_results(_execute(cfg, "reminders", action))


@app.command()
def contacts() -> None:
    """List dated contact events and how their dates parse."""
    from eds_birthday_sync.dates import parse_event_date
    from eds_birthday_sync.eds_client import EDSContactSource

    cfg = _build_config()

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Raw date")
    table.add_column("Parsed")

    count = 0
    try:
        with EDSContactSource(cfg.address_books) as source:
            for event in source.iter_events():
                parsed = parse_event_date(event.raw_date, cfg.prefer_day_before_month)
                if parsed is None:
                    parsed_cell = Text("unparseable", style="bold red")
                elif parsed.has_year:
                    parsed_cell = Text(f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}")
                else:
                    parsed_cell = Text(f"--{parsed.month:02d}-{parsed.day:02d}", style="dim")
                kind = event.event_type.value
                if event.custom_label:
                    kind += f" ({event.custom_label})"
                table.add_row(event.display_name or "(no name)", kind, event.raw_date, parsed_cell)
                count += 1
    except BirthdaySyncError as e:
        console.print(f"[bold red]Error:[/] {e}")
        raise typer.Exit(1) from None

    console.print(table)
    console.print(f"\n[bold]{count} dated event(s)[/bold]")


@app.command()
def status() -> None:
    """Show configuration and recent sync runs."""
    from datetime import datetime

    config_exists = state.config_path.exists()
    db_exists = state.state_db.exists()
    cfg = _build_config()
    calendar = managed_calendar_for(cfg)

    cfg_info = Text()
    cfg_info.append("  Config:    ", style="bold")
    cfg_info.append(str(state.config_path) + " ")
    cfg_info.append(
        "✓" if config_exists else "(not found, using defaults)",
        style="green" if config_exists else "yellow",
    )
    cfg_info.append("\n  State DB:  ", style="bold")
    cfg_info.append(str(state.state_db) + " ")
    cfg_info.append("✓" if db_exists else "(not found)", style="green" if db_exists else "yellow")
    cfg_info.append("\n\n  Calendar:  ", style="bold")
    cfg_info.append(f"{calendar.display_name}\n")
    cfg_info.append(f"             {calendar.scope_uid}", style="dim")
    cfg_info.append("\n  Reminders: ", style="bold")
    cfg_info.append(_format_reminders(cfg.reminder_minutes))

    console.print(Panel(cfg_info, title="[bold]EDS Birthday Sync: Status[/bold]"))

    rows = query_recent_runs(state.state_db)
    if not rows:
        console.print(
            "[yellow]No runs recorded yet. Run[/] [cyan]eds-birthday-sync sync[/] "
            "[yellow]to create the calendar.[/]"
        )
        return

    table = Table(show_header=True, header_style="bold cyan", box=None, padding=(0, 2))
    table.add_column("Finished")
    table.add_column("Command")
    table.add_column("State")
    table.add_column("Events", justify="right")
    table.add_column("Reminders", justify="right")
    table.add_column("Unparseable", justify="right")
    table.add_column("Failed batches", justify="right")

    for row in rows:
        finished = datetime.fromtimestamp(row["finished_at"]).strftime("%Y-%m-%d %H:%M:%S")
        run_state = row["state"] + (" (cancelled)" if row["cancelled"] else "")
        state_style = "green" if row["state"] == SyncState.DONE.value else "bold red"
        failed = Text(str(row["batches_failed"]))
        if row["batches_failed"]:
            failed.stylize("bold red")
        table.add_row(
            finished,
            row["command"],
            Text(run_state, style=state_style),
            str(row["events_added"]),
            str(row["reminders_added"]),
            str(row["skipped"]),
            failed,
        )

    console.print(Panel(table, title="[bold]Recent runs[/bold]", expand=False))


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    app()
