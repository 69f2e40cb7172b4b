"""
Evolution Data Server wrappers: address books in, birthday calendar out.
"""

import logging
import uuid
from typing import Iterator

import gi

gi.require_version("EDataServer", "1.2")
gi.require_version("EBook", "1.2")
gi.require_version("EBookContacts", "1.2")
gi.require_version("ECal", "2.0")
gi.require_version("ICalGLib", "3.0")
from gi.repository import EBook
from gi.repository import EBookContacts  # noqa: F401 (EContact type registration)
from gi.repository import ECal
from gi.repository import EDataServer
from gi.repository import GLib

from eds_birthday_sync.batch import DeleteReminder
from eds_birthday_sync.batch import InsertEvent
from eds_birthday_sync.batch import InsertReminder
from eds_birthday_sync.batch import Operation
from eds_birthday_sync.components import add_alarm
from eds_birthday_sync.components import build_event
from eds_birthday_sync.components import list_alarm_uids
from eds_birthday_sync.components import parse_component
from eds_birthday_sync.components import remove_alarm
from eds_birthday_sync.contacts import events_from_attributes
from eds_birthday_sync.models import BatchApplyError
from eds_birthday_sync.models import BirthdaySyncError
from eds_birthday_sync.models import ManagedCalendar
from eds_birthday_sync.models import SourceEvent

logger = logging.getLogger(__name__)

# Every contact; event attributes are filtered client-side because
# X-ABDATE is not a queryable field.
_ALL_CONTACTS = '(contains "x-evolution-any-field" "")'

# "#t" (boolean true) is the correct sexp for "all events".
_ALL_EVENTS = "#t"

_LOCAL_PARENT = "local-stub"
_LOCAL_BACKEND = "local"


def open_registry() -> EDataServer.SourceRegistry:
    """Connect to the EDS source registry."""
    try:
        return EDataServer.SourceRegistry.new_sync(None)
    except GLib.Error as e:
        raise BirthdaySyncError(f"EDS registry unreachable: {e.message}") from e


class EDSContactSource:
    """Reads dated events from EDS address books."""

    def __init__(self, address_books: tuple[str, ...] = (), registry=None, timeout: int = 10):
        self.address_books = address_books
        self.registry = registry
        self.timeout = timeout

    def __enter__(self):
        if self.registry is None:
            self.registry = open_registry()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.registry = None

    def _sources(self) -> list:
        if not self.address_books:
            return self.registry.list_enabled(EDataServer.SOURCE_EXTENSION_ADDRESS_BOOK)

        sources = []
        for uid in self.address_books:
            source = self.registry.ref_source(uid)
            if not source:
                raise BirthdaySyncError(f"Address book with UID '{uid}' not found in EDS")
            sources.append(source)
        return sources

    def iter_events(self) -> Iterator[SourceEvent]:
        """Yield SourceEvents from every configured address book."""
        for source in self._sources():
            logger.debug(f"Reading contacts from {source.get_display_name()} ({source.get_uid()})")
            try:
                client = EBook.BookClient.connect_sync(source, self.timeout, None)
                _, contacts = client.get_contacts_sync(_ALL_CONTACTS, None)
            except GLib.Error as e:
                raise BirthdaySyncError(
                    f"Failed to read address book {source.get_uid()}: {e.message}"
                ) from e

            try:
                for contact in contacts:
                    attributes = [
                        (attr.get_group(), attr.get_name(), attr.get_value())
                        for attr in contact.get_attributes()
                    ]
                    yield from events_from_attributes(
                        contact.get_property("full-name"),
                        contact.get_property("id"),
                        attributes,
                    )
            finally:
                del client, contacts


class EDSEventStore:
    """The birthday calendar in EDS: one calendar source, events with VALARM reminders."""

    def __init__(self, registry=None, timeout: int = 10):
        self.registry = registry
        self.timeout = timeout
        self._clients: dict[str, ECal.Client] = {}

    def __enter__(self):
        if self.registry is None:
            self.registry = open_registry()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._clients.clear()

    # ------------------------------------------------------------------ #
    # Calendar resource                                                    #
    # ------------------------------------------------------------------ #

    def find_calendar(self, calendar: ManagedCalendar) -> str | None:
        """Return the UID of the calendar source owned by this account scope, if any."""
        for source in self.registry.list_sources(EDataServer.SOURCE_EXTENSION_CALENDAR):
            if source.get_uid() == calendar.scope_uid:
                return source.get_uid()
        return None

    def create_calendar(self, calendar: ManagedCalendar):
        """Register a new local calendar source for the account scope."""
        try:
            source = EDataServer.Source.new_with_uid(calendar.scope_uid, None)
            source.set_parent(_LOCAL_PARENT)
            source.set_display_name(calendar.display_name)
            source.set_enabled(calendar.sync_enabled)

            extension = source.get_extension(EDataServer.SOURCE_EXTENSION_CALENDAR)
            extension.set_backend_name(_LOCAL_BACKEND)
            extension.set_color(calendar.color)
            extension.set_selected(calendar.visible)

            self.registry.commit_source_sync(source, None)
        except GLib.Error as e:
            raise BirthdaySyncError(f"Failed to create calendar source: {e.message}") from e

    def _client(self, calendar_id: str) -> ECal.Client:
        client = self._clients.get(calendar_id)
        if client is not None:
            return client

        source = self.registry.ref_source(calendar_id)
        if not source:
            raise BirthdaySyncError(f"Calendar with UID '{calendar_id}' not found in EDS")
        try:
            client = ECal.Client.connect_sync(
                source, ECal.ClientSourceType.EVENTS, self.timeout, None
            )
        except GLib.Error as e:
            raise BirthdaySyncError(
                f"Failed to connect to calendar {calendar_id}: {e.message}"
            ) from e
        self._clients[calendar_id] = client
        return client

    # ------------------------------------------------------------------ #
    # Events and reminders                                                 #
    # ------------------------------------------------------------------ #

    def _get_objects(self, calendar_id: str) -> list:
        try:
            _, objects = self._client(calendar_id).get_object_list_sync(_ALL_EVENTS, None)
        except GLib.Error as e:
            raise BirthdaySyncError(f"Failed to fetch events: {e.message}") from e
        return [parse_component(obj) for obj in objects]

    def _get_event(self, calendar_id: str, event_id: str):
        try:
            _, comp = self._client(calendar_id).get_object_sync(event_id, None, None)
        except GLib.Error as e:
            raise BirthdaySyncError(f"Failed to fetch event {event_id}: {e.message}") from e
        return parse_component(comp)

    def list_event_ids(self, calendar_id: str) -> list[str]:
        return [comp.get_uid() for comp in self._get_objects(calendar_id)]

    def list_reminder_ids(self, calendar_id: str, event_id: str) -> list[str]:
        return list_alarm_uids(self._get_event(calendar_id, event_id))

    def delete_events(self, calendar_id: str) -> int:
        """Remove every event; VALARMs are part of the event and go with it."""
        ids = [ECal.ComponentId.new(uid, None) for uid in self.list_event_ids(calendar_id)]
        if not ids:
            return 0
        try:
            self._client(calendar_id).remove_objects_sync(
                ids, ECal.ObjModType.ALL, ECal.OperationFlags.NONE, None
            )
        except GLib.Error as e:
            raise BirthdaySyncError(f"Failed to remove events: {e.message}") from e
        return len(ids)

    def apply_batch(self, calendar_id: str, operations: list[Operation]) -> list[str]:
        """
        Apply a batch in at most two client calls (create + modify).

        InsertReminder.target_index refers to an InsertEvent earlier in the
        same batch; its VALARM is folded into that event before creation.

        Returns:
            UIDs assigned to the inserted events, in operation order
        """
        created = {}  # operation index -> component
        modified = {}  # event uid -> component

        def existing(event_id: str):
            if event_id not in modified:
                modified[event_id] = self._get_event(calendar_id, event_id)
            return modified[event_id]

        try:
            for index, op in enumerate(operations):
                if isinstance(op, InsertEvent):
                    created[index] = build_event(op.event, str(uuid.uuid4()))
                elif isinstance(op, InsertReminder):
                    reminder = op.reminder
                    if reminder.target_index is not None:
                        target = created.get(reminder.target_index)
                        if target is None:
                            raise BatchApplyError(
                                f"Operation {index} references {reminder.target_index}, "
                                f"which is not an event in this batch"
                            )
                    else:
                        target = existing(reminder.event_id)
                    add_alarm(target, reminder.offset_minutes)
                elif isinstance(op, DeleteReminder):
                    remove_alarm(existing(op.event_id), op.reminder_id)
            client = self._client(calendar_id)
        except BirthdaySyncError as e:
            raise BatchApplyError(str(e)) from e

        uids = []
        try:
            if created:
                _, uids = client.create_objects_sync(
                    list(created.values()), ECal.OperationFlags.NONE, None
                )
            if modified:
                client.modify_objects_sync(
                    list(modified.values()),
                    ECal.ObjModType.THIS,
                    ECal.OperationFlags.NONE,
                    None,
                )
        except GLib.Error as e:
            raise BatchApplyError(e.message) from e
        return list(uids or [])
