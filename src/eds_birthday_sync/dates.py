"""
Heuristic parsing of contact event dates.

Address books do not agree on how a date is written (see
http://dmfs.org/carddav/?date_format), so a raw value is tried against an
ordered list of interpretations and the first one that yields a real
calendar day wins.  There is no scoring and no locale detection: the order
below *is* the behaviour.

    1. YYYY-MM-DD
    2. --MM-DD                 (no year)
    3. YYYYMMDD                (only for exactly 8 digits)
    4. Unix timestamp in milliseconds
    5. DD.MM.YYYY
    6. YYYY.MM.DD
    7. DD/MM/YYYY, DD/MM       (prefer_day_before_month)
       MM/DD/YYYY, MM/DD       (otherwise)
"""

import logging
import re
from datetime import date
from datetime import datetime
from datetime import timezone
from typing import Callable

from eds_birthday_sync.models import SENTINEL_YEAR
from eds_birthday_sync.models import ParsedDate

logger = logging.getLogger(__name__)

Strategy = Callable[[str], ParsedDate | None]

_ISO_RE = re.compile(r"(\d{4})-(\d{1,2})-(\d{1,2})(?:T.*)?")
_NO_YEAR_RE = re.compile(r"--(\d{1,2})-(\d{1,2})")
_COMPACT_RE = re.compile(r"(\d{4})(\d{2})(\d{2})")
_TIMESTAMP_RE = re.compile(r"-?\d+")
_DOTTED_DMY_RE = re.compile(r"(\d{1,2})\.(\d{1,2})\.(\d{1,4})")
_DOTTED_YMD_RE = re.compile(r"(\d{4})\.(\d{1,2})\.(\d{1,2})")
_SLASH_WITH_YEAR_RE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{1,4})")
_SLASH_NO_YEAR_RE = re.compile(r"(\d{1,2})/(\d{1,2})")

# Any leap year works for validating Feb 29 on a date that has no year.
_LEAP_YEAR = 2000


def _dated(year: int, month: int, day: int) -> ParsedDate | None:
    try:
        date(year, month, day)
    except ValueError:
        return None
    return ParsedDate(month=month, day=day, year=year, has_year=True)


def _yearless(month: int, day: int) -> ParsedDate | None:
    try:
        date(_LEAP_YEAR, month, day)
    except ValueError:
        return None
    return ParsedDate(month=month, day=day, year=SENTINEL_YEAR, has_year=False)


def parse_iso(raw: str) -> ParsedDate | None:
    """YYYY-MM-DD, optionally followed by a time part."""
    m = _ISO_RE.fullmatch(raw)
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_no_year(raw: str) -> ParsedDate | None:
    """--MM-DD, the vCard marker for "year unknown"."""
    m = _NO_YEAR_RE.fullmatch(raw)
    if not m:
        return None
    month, day = (int(g) for g in m.groups())
    return _yearless(month, day)


def parse_compact(raw: str) -> ParsedDate | None:
    """YYYYMMDD; any other length is left to the timestamp strategy."""
    if len(raw) != 8:
        return None
    m = _COMPACT_RE.fullmatch(raw)
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_timestamp(raw: str) -> ParsedDate | None:
    """Milliseconds since the epoch, read as a local calendar day."""
    if not _TIMESTAMP_RE.fullmatch(raw):
        return None
    try:
        moment = datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc).astimezone()
    except (OverflowError, OSError, ValueError):
        return None
    return ParsedDate(month=moment.month, day=moment.day, year=moment.year, has_year=True)


def parse_dotted_dmy(raw: str) -> ParsedDate | None:
    """DD.MM.YYYY"""
    m = _DOTTED_DMY_RE.fullmatch(raw)
    if not m:
        return None
    day, month, year = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_dotted_ymd(raw: str) -> ParsedDate | None:
    """YYYY.MM.DD"""
    m = _DOTTED_YMD_RE.fullmatch(raw)
    if not m:
        return None
    year, month, day = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_slash_dmy(raw: str) -> ParsedDate | None:
    """DD/MM/YYYY"""
    m = _SLASH_WITH_YEAR_RE.fullmatch(raw)
    if not m:
        return None
    day, month, year = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_slash_dm(raw: str) -> ParsedDate | None:
    """DD/MM"""
    m = _SLASH_NO_YEAR_RE.fullmatch(raw)
    if not m:
        return None
    day, month = (int(g) for g in m.groups())
    return _yearless(month, day)


def parse_slash_mdy(raw: str) -> ParsedDate | None:
    """MM/DD/YYYY (Facebook exports)"""
    m = _SLASH_WITH_YEAR_RE.fullmatch(raw)
    if not m:
        return None
    month, day, year = (int(g) for g in m.groups())
    return _dated(year, month, day)


def parse_slash_md(raw: str) -> ParsedDate | None:
    """MM/DD (Facebook exports)"""
    m = _SLASH_NO_YEAR_RE.fullmatch(raw)
    if not m:
        return None
    month, day = (int(g) for g in m.groups())
    return _yearless(month, day)


_COMMON_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("yyyy-MM-dd", parse_iso),
    ("--MM-dd", parse_no_year),
    ("yyyyMMdd", parse_compact),
    ("unix timestamp", parse_timestamp),
    ("dd.MM.yyyy", parse_dotted_dmy),
    ("yyyy.MM.dd", parse_dotted_ymd),
)

_DAY_FIRST_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("dd/MM/yyyy", parse_slash_dmy),
    ("dd/MM", parse_slash_dm),
)

_MONTH_FIRST_STRATEGIES: tuple[tuple[str, Strategy], ...] = (
    ("MM/dd/yyyy", parse_slash_mdy),
    ("MM/dd", parse_slash_md),
)


def strategies(prefer_day_before_month: bool) -> tuple[tuple[str, Strategy], ...]:
    """Return the ordered (label, parser) chain for the given date-order preference."""
    if prefer_day_before_month:
        return _COMMON_STRATEGIES + _DAY_FIRST_STRATEGIES
    return _COMMON_STRATEGIES + _MONTH_FIRST_STRATEGIES


def parse_event_date(raw: str | None, prefer_day_before_month: bool = False) -> ParsedDate | None:
    """
    Parse a raw contact date string.

    Returns:
        ParsedDate for the first matching format, or None when the value
        is empty or matches none of them.
    """
    if raw is None:
        logger.debug("Event date string is empty")
        return None

    value = raw.strip()
    if not value:
        logger.debug("Event date string is empty")
        return None

    for label, strategy in strategies(prefer_day_before_month):
        logger.debug(f"Trying to parse {value!r} with {label}")
        parsed = strategy(value)
        if parsed is not None:
            logger.debug(f"Parsed {value!r} as {parsed}")
            return parsed

    logger.warning(f"Could not parse event date {value!r}")
    return None
