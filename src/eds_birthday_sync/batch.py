"""
Pending operation batches with back-references.

Reminders for a freshly generated event have to point at that event before
the store has assigned it an id.  They do so by position: ``target_index``
is the index of the InsertEvent operation within the *current* batch.  The
store resolves those indexes when the batch is applied, which is why the
counter restarts at zero after every flush.
"""

import logging
from dataclasses import dataclass

from eds_birthday_sync.models import BATCH_SIZE
from eds_birthday_sync.models import BatchApplyError
from eds_birthday_sync.models import GeneratedEvent
from eds_birthday_sync.models import ReminderSpec
from eds_birthday_sync.models import SyncStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InsertEvent:
    event: GeneratedEvent


@dataclass(frozen=True)
class InsertReminder:
    reminder: ReminderSpec


@dataclass(frozen=True)
class DeleteReminder:
    event_id: str
    reminder_id: str


Operation = InsertEvent | InsertReminder | DeleteReminder


class PendingBatch:
    """Accumulates operations and flushes them to the store in bounded chunks."""

    def __init__(
        self,
        store,
        calendar_id: str,
        stats: SyncStats,
        max_size: int = BATCH_SIZE,
        dry_run: bool = False,
    ):
        self.store = store
        self.calendar_id = calendar_id
        self.stats = stats
        self.max_size = max_size
        self.dry_run = dry_run
        self.operations: list[Operation] = []
        self.back_ref = 0
        self.flush_count = 0

    def __len__(self) -> int:
        return len(self.operations)

    def add(self, operation: Operation) -> int:
        """Append an operation and return its back-reference index."""
        index = self.back_ref
        self.operations.append(operation)
        self.back_ref += 1
        return index

    def add_event(self, event: GeneratedEvent, reminder_minutes: list[int]) -> int:
        """
        Queue an event and one reminder per offset, all in the same chunk.

        The group is never split across a flush boundary, otherwise the
        reminders would reference an index in a batch that no longer exists.
        """
        self.reserve(1 + len(reminder_minutes))
        index = self.add(InsertEvent(event))
        for minutes in reminder_minutes:
            self.add(InsertReminder(ReminderSpec(offset_minutes=minutes, target_index=index)))
        return index

    def reserve(self, count: int):
        """
        Flush first if ``count`` more operations would exceed the chunk ceiling.

        When the group size does not divide ``max_size`` a chunk is cut at the
        last whole group, so N operations may take one flush more than
        ceil(N / max_size).
        """
        if self.operations and len(self.operations) + count > self.max_size:
            self.flush()

    def discard(self) -> int:
        """Drop pending operations without applying them; returns how many were dropped."""
        dropped = len(self.operations)
        self.operations = []
        self.back_ref = 0
        return dropped

    def flush(self) -> bool:
        """
        Apply the pending operations as one store call.

        A rejected batch is logged and discarded; earlier chunks stay applied.
        Returns True when the batch was applied (or there was nothing to do).
        """
        if not self.operations:
            return True

        operations = self.operations
        self.operations = []
        self.back_ref = 0
        self.flush_count += 1

        events = sum(1 for op in operations if isinstance(op, InsertEvent))
        reminders = sum(1 for op in operations if isinstance(op, InsertReminder))
        deletes = len(operations) - events - reminders

        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would apply batch of {len(operations)} operations "
                f"({events} events, {reminders} reminders, {deletes} reminder deletions)"
            )
            self._count(events, reminders, deletes)
            return True

        logger.debug(f"Applying batch of {len(operations)} operations...")
        try:
            self.store.apply_batch(self.calendar_id, operations)
        except BatchApplyError as e:
            logger.error(f"Applying batch of {len(operations)} operations failed: {e}")
            self.stats.batches_failed += 1
            return False

        logger.debug("Applying the batch was successful")
        self._count(events, reminders, deletes)
        return True

    def _count(self, events: int, reminders: int, deletes: int):
        self.stats.batches_applied += 1
        self.stats.events_added += events
        self.stats.reminders_added += reminders
        self.stats.reminders_deleted += deletes
