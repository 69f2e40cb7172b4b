"""
In-memory fakes for the EDS event store and contact source.

Duck-type-compatible stand-ins for EDSEventStore and EDSContactSource.  No EDS
daemon is required; calendars, events and reminders live in plain dicts.
"""

import itertools

from eds_birthday_sync.batch import DeleteReminder
from eds_birthday_sync.batch import InsertEvent
from eds_birthday_sync.batch import InsertReminder
from eds_birthday_sync.models import BatchApplyError
from eds_birthday_sync.models import BirthdaySyncError


class FakeEventStore:
    """In-memory store that resolves back-references and applies batches atomically."""

    def __init__(self, fail_batches: set[int] | None = None, fail_create: bool = False):
        self.calendars: dict[str, object] = {}
        # event id → {"calendar_id", "event", "reminders": {reminder id → minutes}}
        self.events: dict[str, dict] = {}
        self.batches: list[list] = []
        self.fail_batches = set(fail_batches or ())
        self.fail_create = fail_create
        self.create_calls = 0
        self.lose_created_calendar = False
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------ #
    # EDSEventStore interface                                              #
    # ------------------------------------------------------------------ #

    def find_calendar(self, calendar) -> str | None:
        return calendar.scope_uid if calendar.scope_uid in self.calendars else None

    def create_calendar(self, calendar):
        self.create_calls += 1
        if self.fail_create:
            raise BirthdaySyncError("calendar backend refused the new source")
        if not self.lose_created_calendar:
            self.calendars[calendar.scope_uid] = calendar

    def list_event_ids(self, calendar_id: str) -> list[str]:
        return [eid for eid, e in self.events.items() if e["calendar_id"] == calendar_id]

    def list_reminder_ids(self, calendar_id: str, event_id: str) -> list[str]:
        return list(self.events[event_id]["reminders"])

    def delete_events(self, calendar_id: str) -> int:
        ids = self.list_event_ids(calendar_id)
        for event_id in ids:
            del self.events[event_id]
        return len(ids)

    def apply_batch(self, calendar_id: str, operations: list) -> list[str]:
        self.batches.append(list(operations))
        if len(self.batches) in self.fail_batches:
            raise BatchApplyError(f"batch {len(self.batches)} rejected")

        created = {}  # operation index → event id
        staged = {eid: {**e, "reminders": dict(e["reminders"])} for eid, e in self.events.items()}
        for index, op in enumerate(operations):
            if isinstance(op, InsertEvent):
                event_id = f"event-{next(self._ids)}"
                staged[event_id] = {"calendar_id": calendar_id, "event": op.event, "reminders": {}}
                created[index] = event_id
            elif isinstance(op, InsertReminder):
                reminder = op.reminder
                if reminder.target_index is not None:
                    if reminder.target_index not in created:
                        raise BatchApplyError(f"dangling back-reference {reminder.target_index}")
                    event_id = created[reminder.target_index]
                else:
                    event_id = reminder.event_id
                staged[event_id]["reminders"][f"alarm-{next(self._ids)}"] = reminder.offset_minutes
            elif isinstance(op, DeleteReminder):
                staged[op.event_id]["reminders"].pop(op.reminder_id)

        self.events = staged
        return list(created.values())

    # ------------------------------------------------------------------ #
    # Test helpers                                                         #
    # ------------------------------------------------------------------ #

    @property
    def event_count(self) -> int:
        return len(self.events)

    @property
    def reminder_count(self) -> int:
        return sum(len(e["reminders"]) for e in self.events.values())

    def stored_events(self) -> list:
        return [e["event"] for e in self.events.values()]

    def snapshot(self) -> list[tuple]:
        """Sorted (title, start, end, sorted reminder minutes) for every stored event."""
        rows = []
        for entry in self.events.values():
            event = entry["event"]
            minutes = tuple(sorted(entry["reminders"].values()))
            rows.append((event.title, event.start, event.end, minutes))
        return sorted(rows)


class FakeContactSource:
    """Yields a fixed list of SourceEvents and records whether the stream was closed."""

    def __init__(self, events: list):
        self.events = list(events)
        self.closed = False
        self.yielded = 0

    def iter_events(self):
        try:
            for event in self.events:
                self.yielded += 1
                yield event
        finally:
            self.closed = True
