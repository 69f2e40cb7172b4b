"""
BirthdaySynchronizer: full-refresh sync from contacts into the birthday calendar.
"""

import logging
import threading
from contextlib import closing
from datetime import date

from eds_birthday_sync.batch import PendingBatch
from eds_birthday_sync.calendar import managed_calendar_for
from eds_birthday_sync.calendar import resolve_calendar
from eds_birthday_sync.dates import parse_event_date
from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.models import SyncState
from eds_birthday_sync.models import SyncStats
from eds_birthday_sync.reminders import ReminderPolicy
from eds_birthday_sync.sync.generate import project_event
from eds_birthday_sync.sync.purge import perform_purge


class BirthdaySynchronizer:
    """
    Main synchronization engine.

    Each ``run`` goes Resolving → Purging → Generating → Flushing → Done.
    A calendar that cannot be resolved (or emptied) or a contact store that
    breaks mid-stream fails the run, and the stats gathered so far travel on
    the exception as ``error.stats``.  Rejected batches are counted in the
    returned stats and skipped.

    The synchronizer keeps no state between runs, but it is not reentrant:
    callers serialize runs (see ``eds_birthday_sync.guard``).
    """

    def __init__(self, config: SyncConfig, event_store, contact_source, today: date | None = None):
        self.config = config
        self.event_store = event_store
        self.contact_source = contact_source
        self.today = today
        self.logger = logging.getLogger(__name__)

    def run(self, cancel: threading.Event | None = None) -> SyncStats:
        """Execute the synchronization process."""
        stats = SyncStats()
        self.logger.info("Starting sync...")

        self._transition(stats, SyncState.RESOLVING)
        try:
            calendar_id = self._resolve()
        except BirthdaySyncError as e:
            self._fail(stats, e)
            raise

        self._transition(stats, SyncState.PURGING)
        if calendar_id is not None:
            try:
                perform_purge(self.config, stats, self.logger, self.event_store, calendar_id)
            except BirthdaySyncError as e:
                self._fail(stats, e)
                raise
        else:
            calendar_id = managed_calendar_for(self.config).scope_uid

        self._transition(stats, SyncState.GENERATING)
        batch = PendingBatch(self.event_store, calendar_id, stats, dry_run=self.config.dry_run)
        try:
            self._generate(stats, batch, calendar_id, cancel)
        except BirthdaySyncError as e:
            dropped = batch.discard()
            self.logger.error(f"Reading contacts failed, discarded {dropped} pending operations")
            self._fail(stats, e)
            raise

        if stats.cancelled:
            dropped = batch.discard()
            self.logger.warning(f"Sync cancelled, discarded {dropped} pending operations")
        else:
            self._transition(stats, SyncState.FLUSHING)
            batch.flush()

        self._transition(stats, SyncState.DONE)
        self.logger.info(
            f"Sync complete: {stats.events_added} events, {stats.reminders_added} reminders, "
            f"{stats.skipped} unparseable dates, {stats.batches_failed} failed batches"
        )
        return stats

    def _resolve(self) -> str | None:
        """Return the calendar id; None only in dry-run mode when it does not exist yet."""
        calendar = managed_calendar_for(self.config)
        if self.config.dry_run:
            calendar_id = self.event_store.find_calendar(calendar)
            if calendar_id is None:
                self.logger.info(f"[DRY RUN] Would create calendar {calendar.display_name!r}")
            return calendar_id
        return resolve_calendar(self.event_store, calendar)

    def _generate(
        self,
        stats: SyncStats,
        batch: PendingBatch,
        calendar_id: str,
        cancel: threading.Event | None,
    ):
        current_year = (self.today or date.today()).year
        offsets = ReminderPolicy.from_config(self.config).offsets
        prefer_day_first = self.config.prefer_day_before_month

        with closing(self.contact_source.iter_events()) as events:
            for source in events:
                if cancel is not None and cancel.is_set():
                    stats.cancelled = True
                    break

                stats.source_events += 1
                parsed = parse_event_date(source.raw_date, prefer_day_first)
                if parsed is None:
                    self.logger.warning(
                        f"Skipping {source.event_type.value} of {source.display_name!r}: "
                        f"unparseable date {source.raw_date!r}"
                    )
                    stats.skipped += 1
                    continue

                for event in project_event(source, parsed, calendar_id, current_year):
                    self.logger.debug(f"Title: {event.title} ({event.start.date()})")
                    batch.add_event(event, offsets)

    def _transition(self, stats: SyncStats, state: SyncState):
        self.logger.debug(f"Sync state: {stats.state.value} -> {state.value}")
        stats.state = state

    def _fail(self, stats: SyncStats, error: BirthdaySyncError):
        self._transition(stats, SyncState.FAILED)
        error.stats = stats
