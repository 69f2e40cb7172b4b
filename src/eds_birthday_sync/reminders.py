"""
Reminder preferences and the full delete + regenerate pass.
"""

import logging
from dataclasses import dataclass

from eds_birthday_sync.batch import DeleteReminder
from eds_birthday_sync.batch import InsertReminder
from eds_birthday_sync.batch import PendingBatch
from eds_birthday_sync.models import BATCH_SIZE
from eds_birthday_sync.models import DISABLED_REMINDER
from eds_birthday_sync.models import REMINDER_SLOTS
from eds_birthday_sync.models import ConfigError
from eds_birthday_sync.models import ReminderSpec
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.models import SyncStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReminderPolicy:
    """Three reminder slots, each minutes-before-event or DISABLED_REMINDER."""

    slots: tuple[int, int, int] = (DISABLED_REMINDER, DISABLED_REMINDER, DISABLED_REMINDER)

    def __post_init__(self):
        if len(self.slots) != REMINDER_SLOTS:
            raise ConfigError(f"Expected {REMINDER_SLOTS} reminder slots, got {len(self.slots)}")
        for minutes in self.slots:
            if minutes != DISABLED_REMINDER and minutes < 0:
                raise ConfigError(f"Invalid reminder offset: {minutes}")

    @classmethod
    def from_config(cls, config: SyncConfig) -> "ReminderPolicy":
        return cls(tuple(config.reminder_minutes))

    def with_override(self, slot: int | None, minutes: int | None) -> "ReminderPolicy":
        """Return a copy with ``slot`` (0-based) set to ``minutes``."""
        if slot is None or minutes is None:
            return self
        if not 0 <= slot < REMINDER_SLOTS:
            raise ConfigError(f"Reminder slot must be between 1 and {REMINDER_SLOTS}")
        slots = list(self.slots)
        slots[slot] = minutes
        return ReminderPolicy(tuple(slots))

    @property
    def offsets(self) -> list[int]:
        """Enabled offsets, in slot order."""
        return [m for m in self.slots if m != DISABLED_REMINDER]


def regenerate_all(
    store,
    calendar_id: str,
    policy: ReminderPolicy,
    stats: SyncStats | None = None,
    max_size: int = BATCH_SIZE,
    dry_run: bool = False,
) -> SyncStats:
    """
    Delete every reminder in the managed calendar, then recreate them from ``policy``.

    Used when reminder preferences change between full syncs.  Walks all
    events and, per event, all reminders; both passes go through chunked
    batches.
    """
    stats = stats or SyncStats()
    event_ids = store.list_event_ids(calendar_id)
    logger.info(f"Regenerating reminders for {len(event_ids)} events...")

    batch = PendingBatch(store, calendar_id, stats, max_size=max_size, dry_run=dry_run)
    for event_id in event_ids:
        for reminder_id in store.list_reminder_ids(calendar_id, event_id):
            logger.debug(f"Delete reminder {reminder_id} of event {event_id}")
            batch.reserve(1)
            batch.add(DeleteReminder(event_id=event_id, reminder_id=reminder_id))
    batch.flush()

    offsets = policy.offsets
    for event_id in event_ids:
        batch.reserve(len(offsets))
        for minutes in offsets:
            batch.add(InsertReminder(ReminderSpec(offset_minutes=minutes, event_id=event_id)))
    batch.flush()

    logger.info(
        f"Reminders regenerated: removed {stats.reminders_deleted}, added {stats.reminders_added}"
    )
    return stats
