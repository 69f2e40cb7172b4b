"""
iCalendar component building for generated events and their reminders.
"""

import uuid

import gi

gi.require_version("ICalGLib", "3.0")
from gi.repository import ICalGLib

from eds_birthday_sync.models import GeneratedEvent

# Links a generated event back to its contact (EDS contact UID).
CONTACT_PROPERTY = "X-EDS-BIRTHDAY-SYNC-CONTACT"
ALARM_UID_PROPERTY = "X-EVOLUTION-ALARM-UID"


def _date_value(year: int, month: int, day: int) -> ICalGLib.Time:
    value = ICalGLib.Time.new_null_time()
    value.set_date(year, month, day)
    value.set_is_date(True)
    return value


def _x_property(name: str, value: str) -> ICalGLib.Property:
    prop = ICalGLib.Property.new_x(value)
    prop.set_x_name(name)
    return prop


def build_event(event: GeneratedEvent, uid: str | None = None) -> ICalGLib.Component:
    """
    Build an all-day VEVENT for a generated event.

    DTSTART/DTEND are DATE values spanning the whole day, so calendars that
    ignore all-day flags still render a full day instead of a zero-length
    event.  TRANSP:TRANSPARENT keeps birthdays from showing as busy time.
    """
    comp = ICalGLib.Component.new_vevent()
    comp.set_uid(uid or str(uuid.uuid4()))
    comp.set_summary(event.title)
    comp.set_dtstart(_date_value(event.start.year, event.start.month, event.start.day))
    comp.set_dtend(_date_value(event.end.year, event.end.month, event.end.day))
    comp.set_status(ICalGLib.PropertyStatus.CONFIRMED)
    comp.add_property(ICalGLib.Property.new_transp(ICalGLib.PropertyTransp.TRANSPARENT))
    comp.add_property(
        ICalGLib.Property.new_dtstamp(
            ICalGLib.Time.new_current_with_zone(ICalGLib.Timezone.get_utc_timezone())
        )
    )
    if event.contact_lookup_key:
        comp.add_property(_x_property(CONTACT_PROPERTY, event.contact_lookup_key))
    return comp


def add_alarm(comp: ICalGLib.Component, minutes: int) -> str:
    """Attach a display VALARM firing ``minutes`` before the event; returns its alarm UID."""
    alarm_uid = str(uuid.uuid4())
    alarm = ICalGLib.Component.new_valarm()
    alarm.add_property(ICalGLib.Property.new_action(ICalGLib.PropertyAction.DISPLAY))
    trigger = ICalGLib.Trigger.new_relativetrigger(ICalGLib.Duration.new_from_int(-minutes * 60))
    alarm.add_property(ICalGLib.Property.new_trigger(trigger))
    alarm.add_property(ICalGLib.Property.new_description(comp.get_summary() or ""))
    alarm.add_property(_x_property(ALARM_UID_PROPERTY, alarm_uid))
    comp.add_component(alarm)
    return alarm_uid


def _alarm_uid(alarm: ICalGLib.Component) -> str | None:
    prop = alarm.get_first_property(ICalGLib.PropertyKind.X_PROPERTY)
    while prop:
        if prop.get_x_name() == ALARM_UID_PROPERTY:
            return prop.get_x()
        prop = alarm.get_next_property(ICalGLib.PropertyKind.X_PROPERTY)
    return None


def list_alarm_uids(comp: ICalGLib.Component) -> list[str]:
    """Return the alarm UIDs of every VALARM on the event."""
    uids = []
    alarm = comp.get_first_component(ICalGLib.ComponentKind.VALARM_COMPONENT)
    while alarm:
        alarm_uid = _alarm_uid(alarm)
        if alarm_uid:
            uids.append(alarm_uid)
        alarm = comp.get_next_component(ICalGLib.ComponentKind.VALARM_COMPONENT)
    return uids


def remove_alarm(comp: ICalGLib.Component, alarm_uid: str) -> bool:
    """Remove the VALARM with ``alarm_uid``; returns False when it is not there."""
    alarm = comp.get_first_component(ICalGLib.ComponentKind.VALARM_COMPONENT)
    while alarm:
        if _alarm_uid(alarm) == alarm_uid:
            comp.remove_component(alarm)
            return True
        alarm = comp.get_next_component(ICalGLib.ComponentKind.VALARM_COMPONENT)
    return False


def parse_component(obj) -> ICalGLib.Component:
    """Handle both string and native Component objects from EDS API."""
    if isinstance(obj, str):
        return ICalGLib.Component.new_from_string(obj)
    return obj
