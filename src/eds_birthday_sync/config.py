"""
Config file loading.
"""

import re
from configparser import ConfigParser
from pathlib import Path

from eds_birthday_sync.models import DEFAULT_STATE_DB
from eds_birthday_sync.models import DISABLED_REMINDER
from eds_birthday_sync.models import REMINDER_SLOTS
from eds_birthday_sync.models import ConfigError
from eds_birthday_sync.models import SyncConfig

SECTION = "birthday-sync"

_DISABLED_WORDS = frozenset({"", "disabled", "off", "none", "-1"})
_COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}")

# ConfigParser.getboolean() vocabulary
_BOOLEANS = ConfigParser.BOOLEAN_STATES


def load_config_file(config_path: Path) -> dict[str, str]:
    if not config_path.exists():
        return {}
    parser = ConfigParser()
    parser.read(config_path)
    if SECTION not in parser:
        return {}
    return dict(parser[SECTION])


def parse_reminder(value: str | None, default: int) -> int:
    """Minutes before the event, or DISABLED_REMINDER."""
    if value is None:
        return default
    value = value.strip().lower()
    if value in _DISABLED_WORDS:
        return DISABLED_REMINDER
    try:
        minutes = int(value)
    except ValueError:
        raise ConfigError(f"Invalid reminder value: {value!r}") from None
    if minutes < 0:
        raise ConfigError(f"Reminder minutes must not be negative: {minutes}")
    return minutes


def _parse_bool(key: str, value: str) -> bool:
    try:
        return _BOOLEANS[value.strip().lower()]
    except KeyError:
        raise ConfigError(f"Invalid boolean for {key}: {value!r}") from None


def build_sync_config(
    values: dict[str, str],
    state_db_path: Path = DEFAULT_STATE_DB,
    dry_run: bool = False,
    verbose: bool = False,
    yes: bool = False,
) -> SyncConfig:
    """Build a SyncConfig from config-file values, falling back to defaults."""
    defaults = SyncConfig()

    reminders = tuple(
        parse_reminder(values.get(f"reminder_{i + 1}"), defaults.reminder_minutes[i])
        for i in range(REMINDER_SLOTS)
    )

    prefer_day_first = defaults.prefer_day_before_month
    if "prefer_day_before_month" in values:
        prefer_day_first = _parse_bool("prefer_day_before_month", values["prefer_day_before_month"])

    color = values.get("color", defaults.color).strip()
    if not _COLOR_RE.fullmatch(color):
        raise ConfigError(f"Invalid color {color!r}, expected #RRGGBB")

    address_books = tuple(
        uid.strip() for uid in values.get("address_books", "").split(",") if uid.strip()
    )

    return SyncConfig(
        account_name=values.get("account_name", defaults.account_name).strip(),
        account_type=values.get("account_type", defaults.account_type).strip(),
        calendar_name=values.get("calendar_name") or None,
        color=color,
        reminder_minutes=reminders,
        prefer_day_before_month=prefer_day_first,
        address_books=address_books,
        state_db_path=state_db_path,
        dry_run=dry_run,
        verbose=verbose,
        yes=yes,
    )
