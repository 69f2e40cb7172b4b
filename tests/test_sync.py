"""
End-to-end tests for BirthdaySynchronizer against the in-memory fakes.
"""

import threading
from datetime import datetime
from datetime import timezone

import pytest

from eds_birthday_sync.models import BATCH_SIZE
from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import CalendarCreationError
from eds_birthday_sync.models import EventType
from eds_birthday_sync.models import SyncState
from eds_birthday_sync.sync import BirthdaySynchronizer
from tests.conftest import TODAY
from tests.conftest import make_source
from tests.fake_client import FakeContactSource
from tests.fake_client import FakeEventStore


def _run(config, store, sources, cancel=None):
    contacts = FakeContactSource(sources)
    stats = BirthdaySynchronizer(config, store, contacts, today=TODAY).run(cancel)
    return stats, contacts


class TestFullRefresh:
    def test_birthday_with_year(self, sync_config, event_store):
        stats, _ = _run(sync_config, event_store, [make_source()])

        assert stats.state is SyncState.DONE
        events = sorted(event_store.stored_events(), key=lambda e: e.start)
        assert [e.start.year for e in events] == list(range(2021, 2030))
        assert [e.title for e in events] == [f"Ada's Birthday ({age})" for age in range(31, 40)]
        assert events[0].start == datetime(2021, 5, 20, tzinfo=timezone.utc)
        assert events[0].end == datetime(2021, 5, 21, tzinfo=timezone.utc)

    def test_reminders_per_enabled_slot(self, sync_config, event_store):
        stats, _ = _run(sync_config, event_store, [make_source()])

        assert stats.events_added == 9
        assert stats.reminders_added == 18
        for entry in event_store.events.values():
            assert sorted(entry["reminders"].values()) == [60, 1440]

    def test_birthday_without_year(self, sync_config, event_store):
        _run(sync_config, event_store, [make_source(name="Bea", raw_date="--07-04")])

        events = event_store.stored_events()
        assert len(events) == 9
        assert {e.title for e in events} == {"Bea's Birthday"}
        assert {(e.start.month, e.start.day) for e in events} == {(7, 4)}

    def test_unparseable_dates_are_skipped(self, sync_config, event_store):
        sources = [make_source(name="Cy", raw_date="sometime in May"), make_source()]
        stats, _ = _run(sync_config, event_store, sources)

        assert stats.source_events == 2
        assert stats.skipped == 1
        assert event_store.event_count == 9
        assert all(e.title.startswith("Ada") for e in event_store.stored_events())

    def test_missing_name_writes_nothing(self, sync_config, event_store):
        stats, _ = _run(sync_config, event_store, [make_source(name=None)])

        assert stats.state is SyncState.DONE
        assert event_store.event_count == 0
        assert event_store.reminder_count == 0
        assert event_store.batches == []

    def test_mixed_event_types(self, sync_config, event_store):
        sources = [
            make_source(name="Dee", raw_date="2010-06-12", event_type=EventType.ANNIVERSARY),
            make_source(
                name="Eve", raw_date="2015-09-01", event_type=EventType.CUSTOM, label="Name Day"
            ),
        ]
        _run(sync_config, event_store, sources)

        titles = {e.title for e in event_store.stored_events() if e.start.year == 2024}
        assert titles == {"Dee's Anniversary (14)", "Eve's Name Day (9)"}

    def test_rerun_is_idempotent(self, sync_config, event_store):
        sources = [make_source(), make_source(name="Bea", raw_date="--07-04")]
        _run(sync_config, event_store, sources)
        first = event_store.snapshot()

        stats, _ = _run(sync_config, event_store, sources)

        assert event_store.snapshot() == first
        assert stats.deleted == 18
        assert event_store.create_calls == 1

    def test_purge_removes_events_of_deleted_contacts(self, sync_config, event_store):
        _run(sync_config, event_store, [make_source(), make_source(name="Bea")])
        _run(sync_config, event_store, [make_source()])

        assert event_store.event_count == 9
        assert {e.title[:3] for e in event_store.stored_events()} == {"Ada"}

    def test_no_reminders_when_all_slots_disabled(self, sync_config, event_store):
        sync_config.reminder_minutes = (-1, -1, -1)
        _run(sync_config, event_store, [make_source()])
        assert event_store.event_count == 9
        assert event_store.reminder_count == 0


class TestChunking:
    def test_large_refresh_is_chunked(self, sync_config, event_store):
        sync_config.reminder_minutes = (1440, 60, 10)
        # 9 events x 4 operations per contact
        sources = [make_source(name=f"C{n}", raw_date="1985-01-15") for n in range(50)]
        stats, _ = _run(sync_config, event_store, sources)

        total = 50 * 9 * 4
        assert len(event_store.batches) == -(-total // BATCH_SIZE)
        assert all(len(ops) <= BATCH_SIZE for ops in event_store.batches)
        assert stats.batches_applied == len(event_store.batches)
        assert event_store.event_count == 450
        assert event_store.reminder_count == 1350


class TestFailures:
    def test_failed_batch_does_not_stop_the_run(self, sync_config):
        sync_config.reminder_minutes = (1440, 60, 10)
        store = FakeEventStore(fail_batches={2})
        sources = [make_source(name=f"C{n}", raw_date="1985-01-15") for n in range(30)]

        stats, _ = _run(sync_config, store, sources)

        assert stats.state is SyncState.DONE
        assert stats.batches_failed == 1
        assert stats.batches_applied == len(store.batches) - 1
        assert store.event_count == 270 - 50
        assert store.event_count == stats.events_added

    def test_calendar_creation_failure(self, sync_config):
        store = FakeEventStore(fail_create=True)
        contacts = FakeContactSource([make_source()])
        synchronizer = BirthdaySynchronizer(sync_config, store, contacts, today=TODAY)

        with pytest.raises(CalendarCreationError) as excinfo:
            synchronizer.run()
        assert excinfo.value.stats.state is SyncState.FAILED
        assert contacts.yielded == 0
        assert store.batches == []

    def test_contact_store_failure_keeps_partial_stats(self, sync_config, event_store):
        sources = [make_source(name=f"C{n}", raw_date="1985-01-15") for n in range(30)]
        contacts = FakeContactSource(sources)

        def broken_stream():
            yield from sources
            raise BirthdaySyncError("address book went away")

        contacts.iter_events = broken_stream
        synchronizer = BirthdaySynchronizer(sync_config, event_store, contacts, today=TODAY)

        with pytest.raises(BirthdaySyncError, match="went away") as excinfo:
            synchronizer.run()

        stats = excinfo.value.stats
        assert stats.state is SyncState.FAILED
        assert stats.source_events == 30
        assert stats.batches_applied == len(event_store.batches) > 0
        assert stats.events_added == event_store.event_count
        assert event_store.event_count < 270

    def test_purge_failure_aborts_before_generating(self, sync_config, event_store):
        _run(sync_config, event_store, [make_source()])

        def refuse(calendar_id):
            raise BirthdaySyncError("backend offline")

        event_store.delete_events = refuse
        contacts = FakeContactSource([make_source()])
        with pytest.raises(BirthdaySyncError, match="backend offline"):
            BirthdaySynchronizer(sync_config, event_store, contacts, today=TODAY).run()

        assert contacts.yielded == 0
        assert event_store.event_count == 9


class TestCancellation:
    def test_cancel_before_start_writes_nothing(self, sync_config, event_store):
        cancel = threading.Event()
        cancel.set()
        stats, contacts = _run(sync_config, event_store, [make_source()], cancel)

        assert stats.cancelled is True
        assert stats.state is SyncState.DONE
        assert event_store.event_count == 0
        assert contacts.closed is True

    def test_cancel_mid_stream_discards_pending_batch(self, sync_config, event_store):
        cancel = threading.Event()
        sources = [make_source(name=f"C{n}") for n in range(5)]
        contacts = FakeContactSource(sources)
        synchronizer = BirthdaySynchronizer(sync_config, event_store, contacts, today=TODAY)

        original = contacts.iter_events

        def cancelling_stream():
            stream = original()
            try:
                for n, source in enumerate(stream):
                    if n == 2:
                        cancel.set()
                    yield source
            finally:
                stream.close()

        contacts.iter_events = cancelling_stream
        stats = synchronizer.run(cancel)

        assert stats.cancelled is True
        assert stats.source_events == 2
        assert event_store.batches == []
        assert contacts.closed is True


class TestDryRun:
    def test_dry_run_writes_nothing(self, sync_config, event_store):
        sync_config.dry_run = True
        stats, _ = _run(sync_config, event_store, [make_source()])

        assert stats.state is SyncState.DONE
        assert event_store.create_calls == 0
        assert event_store.calendars == {}
        assert event_store.batches == []
        assert stats.events_added == 9

    def test_dry_run_keeps_existing_events(self, sync_config, event_store):
        _run(sync_config, event_store, [make_source()])
        sync_config.dry_run = True

        stats, _ = _run(sync_config, event_store, [make_source(name="Bea")])

        assert stats.deleted == 0
        assert {e.title[:3] for e in event_store.stored_events()} == {"Ada"}
