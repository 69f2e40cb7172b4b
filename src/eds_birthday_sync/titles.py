"""
Localized event titles.
"""

import gettext

from eds_birthday_sync.models import EventType

_translation = gettext.translation("eds-birthday-sync", fallback=True)
_ = _translation.gettext

# (without age, with age) per template; {name}, {label} and {age} are filled in.
_BIRTHDAY = (_("{name}'s Birthday"), _("{name}'s Birthday ({age})"))
_ANNIVERSARY = (_("{name}'s Anniversary"), _("{name}'s Anniversary ({age})"))
_OTHER = (_("{name}'s Event"), _("{name}'s Event ({age})"))
_CUSTOM = (_("{name}'s {label}"), _("{name}'s {label} ({age})"))

_TEMPLATES = {
    EventType.BIRTHDAY: _BIRTHDAY,
    EventType.ANNIVERSARY: _ANNIVERSARY,
    EventType.OTHER: _OTHER,
}

CALENDAR_DISPLAY_NAME = _("Birthdays")


def generate_title(
    event_type: EventType,
    custom_label: str | None,
    display_name: str | None,
    include_age: bool,
    age: int,
) -> str | None:
    """
    Build the title for one projected event.

    Returns None when the display name is missing or empty; the caller
    must then skip the projection. No date math happens here: ``age`` is
    used verbatim when ``include_age`` is set.
    """
    if not display_name:
        return None

    if event_type is EventType.CUSTOM and custom_label is not None:
        without_age, with_age = _CUSTOM
    else:
        without_age, with_age = _TEMPLATES.get(event_type, _OTHER)

    template = with_age if include_age else without_age
    return template.format(name=display_name, label=custom_label, age=age)
