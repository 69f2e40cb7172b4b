"""
Get-or-create of the managed calendar.
"""

import logging

from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import CalendarCreationError
from eds_birthday_sync.models import ManagedCalendar
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.titles import CALENDAR_DISPLAY_NAME

logger = logging.getLogger(__name__)


def managed_calendar_for(config: SyncConfig) -> ManagedCalendar:
    """Describe the managed calendar for this configuration."""
    return ManagedCalendar(
        account_name=config.account_name,
        account_type=config.account_type,
        display_name=config.calendar_name or CALENDAR_DISPLAY_NAME,
        color=config.color,
        owner=config.account_name,
    )


def resolve_calendar(store, calendar: ManagedCalendar, create: bool = True) -> str:
    """
    Return the id of the managed calendar, creating it on first use.

    The store is queried, and only when nothing matches the account scope is
    a single creation request issued, followed by one more query to pick up
    the assigned id.  A calendar that appears between the two queries (another
    process won the race) is simply picked up by the second query.

    Raises:
        CalendarCreationError: creation failed, or the calendar is still
            missing afterwards (or ``create`` is False and none exists)
    """
    calendar_id = store.find_calendar(calendar)
    if calendar_id:
        logger.debug(f"Using existing calendar {calendar_id}")
        calendar.id = calendar_id
        return calendar_id

    if not create:
        raise CalendarCreationError(
            f"Calendar for account {calendar.account_name!r} ({calendar.account_type}) not found"
        )

    logger.info(f"Creating calendar {calendar.display_name!r}...")
    try:
        store.create_calendar(calendar)
    except BirthdaySyncError as e:
        raise CalendarCreationError(f"Unable to create calendar: {e}") from e

    calendar_id = store.find_calendar(calendar)
    if not calendar_id:
        raise CalendarCreationError(
            f"Calendar {calendar.scope_uid!r} was created but cannot be found"
        )

    calendar.id = calendar_id
    return calendar_id
