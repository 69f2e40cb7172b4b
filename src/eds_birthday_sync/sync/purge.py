"""
Purge of generated events from the managed calendar.
"""

from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.models import SyncStats


def perform_purge(
    config: SyncConfig,
    stats: SyncStats,
    logger,
    event_store,
    calendar_id: str,
):
    """Delete every event in the managed calendar, reminders included."""
    if config.dry_run:
        count = len(event_store.list_event_ids(calendar_id))
        logger.info(f"[DRY RUN] Would delete {count} events from the birthday calendar")
        return

    try:
        deleted = event_store.delete_events(calendar_id)
    except BirthdaySyncError as e:
        # Continuing would duplicate every event that survived the purge.
        logger.error(f"Failed to empty the birthday calendar: {e}")
        raise

    stats.deleted += deleted
    logger.info(f"Birthday calendar is now empty, deleted {deleted} events")
