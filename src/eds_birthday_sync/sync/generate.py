"""
Expansion of one source event into per-year calendar entries.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from eds_birthday_sync.models import REAL_YEAR_THRESHOLD
from eds_birthday_sync.models import YEARS_BACK
from eds_birthday_sync.models import YEARS_FORWARD
from eds_birthday_sync.models import GeneratedEvent
from eds_birthday_sync.models import ParsedDate
from eds_birthday_sync.models import SourceEvent
from eds_birthday_sync.titles import generate_title


def projection_years(current_year: int) -> range:
    """Years an event is written for: 3 back through 5 ahead, inclusive."""
    return range(current_year - YEARS_BACK, current_year + YEARS_FORWARD + 1)


def age_in(parsed: ParsedDate, year: int) -> tuple[int, bool]:
    """
    Return (age, include_age) for the occurrence in ``year``.

    Years below REAL_YEAR_THRESHOLD are placeholders (our 1700, iCloud's
    1604, ...) and never produce an age.
    """
    age = year - parsed.year
    include_age = parsed.year >= REAL_YEAR_THRESHOLD and age >= 0
    return age, include_age


def utc_day_bounds(parsed: ParsedDate, year: int) -> tuple[datetime, datetime]:
    """All-day events are stored as UTC midnight to the following UTC midnight."""
    day = parsed.in_year(year)
    start = datetime(day.year, day.month, day.day, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def project_event(
    source: SourceEvent,
    parsed: ParsedDate,
    calendar_id: str,
    current_year: int,
) -> list[GeneratedEvent]:
    """
    Build the calendar entries for ``source`` across the projection window.

    Projections whose title comes out empty (no display name) are left out.
    Events are not written as recurring series so each year can carry its
    own age in the title.
    """
    events = []
    for year in projection_years(current_year):
        age, include_age = age_in(parsed, year)
        title = generate_title(
            source.event_type,
            source.custom_label,
            source.display_name,
            include_age,
            age,
        )
        if title is None:
            continue

        start, end = utc_day_bounds(parsed, year)
        events.append(
            GeneratedEvent(
                calendar_id=calendar_id,
                title=title,
                start=start,
                end=end,
                contact_lookup_key=source.lookup_key,
            )
        )
    return events
