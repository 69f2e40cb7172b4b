"""
Pure data models, no EDS or sqlite imports.
"""

import enum
from dataclasses import dataclass
from datetime import date
from datetime import datetime
from pathlib import Path

DEFAULT_STATE_DB = Path.home() / ".local/share/eds-birthday-sync-state.db"
DEFAULT_LOCK_FILE = Path.home() / ".local/share/eds-birthday-sync.lock"
DEFAULT_CONFIG = Path.home() / ".config/eds-birthday-sync.conf"

DEFAULT_ACCOUNT_NAME = "birthdays"
DEFAULT_ACCOUNT_TYPE = "eds-birthday-sync"
DEFAULT_COLOR = "#4E9A06"

# Placeholder year for dates stored without one. Anything below
# REAL_YEAR_THRESHOLD is treated as "no year" (iCloud uses 1604).
SENTINEL_YEAR = 1700
REAL_YEAR_THRESHOLD = 1800

YEARS_BACK = 3
YEARS_FORWARD = 5

# Upper bound on operations per applied batch.
BATCH_SIZE = 200

REMINDER_SLOTS = 3
DISABLED_REMINDER = -1


class BirthdaySyncError(Exception):
    """Base exception for birthday sync errors."""

    # SyncStats of the aborted run, set by the synchronizer.
    stats = None


class ConfigError(BirthdaySyncError):
    """Invalid configuration value."""


class CalendarCreationError(BirthdaySyncError):
    """The managed calendar could not be found or created."""


class BatchApplyError(BirthdaySyncError):
    """A batch of operations was rejected by the event store."""


class SyncInProgressError(BirthdaySyncError):
    """Another sync run already holds the run lock."""


class EventType(enum.Enum):
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"
    CUSTOM = "custom"
    OTHER = "other"


class SyncState(enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    PURGING = "purging"
    GENERATING = "generating"
    FLUSHING = "flushing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceEvent:
    """One dated fact attached to a contact."""

    display_name: str | None
    lookup_key: str | None
    raw_date: str | None
    event_type: EventType
    custom_label: str | None = None


@dataclass(frozen=True)
class ParsedDate:
    """Calendar day recovered from a raw contact date.

    ``year`` is always set: dates without a year carry SENTINEL_YEAR and
    ``has_year=False``.
    """

    month: int
    day: int
    year: int = SENTINEL_YEAR
    has_year: bool = False

    def in_year(self, year: int) -> date:
        """Return this month/day in ``year``; Feb 29 rolls over to Mar 1 in non-leap years."""
        try:
            return date(year, self.month, self.day)
        except ValueError:
            if self.month == 2 and self.day == 29:
                return date(year, 3, 1)
            raise


@dataclass(frozen=True)
class GeneratedEvent:
    """All-day calendar entry for one (source event, projected year) pair."""

    calendar_id: str
    title: str
    start: datetime  # UTC midnight
    end: datetime  # start + 24h
    contact_lookup_key: str | None = None
    all_day: bool = True


@dataclass(frozen=True)
class ReminderSpec:
    """Reminder to attach to an event.

    Exactly one of ``target_index`` (back-reference into the current pending
    batch) or ``event_id`` (durable id of a stored event) is set.
    """

    offset_minutes: int
    target_index: int | None = None
    event_id: str | None = None


@dataclass
class ManagedCalendar:
    """The single calendar owned by this tool within an account scope."""

    account_name: str
    account_type: str
    display_name: str
    color: str
    name: str = "eds_birthday_sync"
    access_level: str = "read"
    owner: str | None = None
    sync_enabled: bool = True
    visible: bool = True
    id: str | None = None

    @property
    def scope_uid(self) -> str:
        """Deterministic source UID for the (account-name, account-type) scope."""
        return f"{self.account_type}--{self.account_name}"


@dataclass
class SyncConfig:
    """Configuration for a birthday sync run."""

    account_name: str = DEFAULT_ACCOUNT_NAME
    account_type: str = DEFAULT_ACCOUNT_TYPE
    calendar_name: str | None = None
    color: str = DEFAULT_COLOR
    reminder_minutes: tuple[int, int, int] = (1440, DISABLED_REMINDER, DISABLED_REMINDER)
    prefer_day_before_month: bool = False
    address_books: tuple[str, ...] = ()
    state_db_path: Path = DEFAULT_STATE_DB
    dry_run: bool = False
    verbose: bool = False
    yes: bool = False  # Auto-confirm without prompting


@dataclass
class SyncStats:
    """Statistics for sync operation."""

    state: SyncState = SyncState.IDLE
    source_events: int = 0
    skipped: int = 0
    events_added: int = 0
    reminders_added: int = 0
    reminders_deleted: int = 0
    deleted: int = 0
    batches_applied: int = 0
    batches_failed: int = 0
    cancelled: bool = False
