"""
Extraction of dated events from vCard attributes.

Kept free of EBook imports: the EDS adapter flattens each contact into
(group, name, value) triples and hands them to ``events_from_attributes``.
"""

from typing import Iterable

from eds_birthday_sync.models import EventType
from eds_birthday_sync.models import SourceEvent

_TYPED_ATTRIBUTES = {
    "BDAY": EventType.BIRTHDAY,
    "ANNIVERSARY": EventType.ANNIVERSARY,
    "X-ANNIVERSARY": EventType.ANNIVERSARY,
    "X-EVOLUTION-ANNIVERSARY": EventType.ANNIVERSARY,
}

# Apple stores extra dates as grouped pairs:
#   item1.X-ABDATE:2010-06-12
#   item1.X-ABLabel:_$!<Anniversary>!$_
_LABELED_DATE = "X-ABDATE"
_LABEL = "X-ABLABEL"

_APPLE_LABELS = {
    "_$!<Anniversary>!$_": EventType.ANNIVERSARY,
    "_$!<Other>!$_": EventType.OTHER,
}

Attribute = tuple[str | None, str, str | None]


def events_from_attributes(
    display_name: str | None,
    lookup_key: str | None,
    attributes: Iterable[Attribute],
) -> list[SourceEvent]:
    """
    Turn a contact's vCard attributes into SourceEvents.

    Args:
        display_name: The contact's FN, or None
        lookup_key: Stable contact identifier (EDS contact UID)
        attributes: (group, name, value) triples; names are case-insensitive

    Returns:
        One SourceEvent per non-empty date attribute, in attribute order
    """
    attributes = [
        (group.lower() if group else None, name.upper(), value)
        for group, name, value in attributes
    ]
    labels = {
        group: value.strip()
        for group, name, value in attributes
        if name == _LABEL and group and value and value.strip()
    }

    events = []
    for group, name, value in attributes:
        if not value or not value.strip():
            continue

        if name in _TYPED_ATTRIBUTES:
            event_type = _TYPED_ATTRIBUTES[name]
            label = None
        elif name == _LABELED_DATE:
            label = labels.get(group) if group else None
            event_type = _APPLE_LABELS.get(label, EventType.CUSTOM)
            if event_type is not EventType.CUSTOM:
                label = None
        else:
            continue

        events.append(
            SourceEvent(
                display_name=display_name,
                lookup_key=lookup_key,
                raw_date=value.strip(),
                event_type=event_type,
                custom_label=label,
            )
        )
    return events
