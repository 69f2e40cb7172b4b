"""
Unit tests for projecting one source event across the year window.
"""

from datetime import datetime
from datetime import timedelta
from datetime import timezone

from eds_birthday_sync.models import EventType
from eds_birthday_sync.models import ParsedDate
from eds_birthday_sync.sync.generate import age_in
from eds_birthday_sync.sync.generate import project_event
from eds_birthday_sync.sync.generate import projection_years
from eds_birthday_sync.sync.generate import utc_day_bounds
from tests.conftest import make_source

CALENDAR = "cal-1"


class TestWindow:
    def test_nine_years_around_current(self):
        assert list(projection_years(2024)) == list(range(2021, 2030))

    def test_one_event_per_year(self):
        events = project_event(make_source(), ParsedDate(5, 20, 1990, True), CALENDAR, 2024)
        assert [e.start.year for e in events] == list(range(2021, 2030))
        assert all(e.calendar_id == CALENDAR for e in events)
        assert all(e.all_day for e in events)
        assert all(e.contact_lookup_key == "contact-ada" for e in events)


class TestAge:
    def test_age_included_for_real_years(self):
        assert age_in(ParsedDate(5, 20, 1990, True), 2024) == (34, True)

    def test_birth_year_itself_is_age_zero(self):
        assert age_in(ParsedDate(5, 20, 2022, True), 2022) == (0, True)

    def test_future_birth_year_omits_age(self):
        _, include_age = age_in(ParsedDate(5, 20, 2023, True), 2021)
        assert include_age is False

    def test_placeholder_years_omit_age(self):
        assert age_in(ParsedDate(5, 20), 2024)[1] is False
        assert age_in(ParsedDate(5, 20, 1604, True), 2024)[1] is False
        assert age_in(ParsedDate(5, 20, 1799, True), 2024)[1] is False

    def test_threshold_year_counts_as_real(self):
        assert age_in(ParsedDate(5, 20, 1800, True), 2024) == (224, True)

    def test_titles_carry_year_specific_age(self):
        events = project_event(make_source(), ParsedDate(5, 20, 1990, True), CALENDAR, 2024)
        assert [e.title for e in events] == [f"Ada's Birthday ({age})" for age in range(31, 40)]

    def test_yearless_titles(self):
        source = make_source(name="Bea", raw_date="--07-04")
        events = project_event(source, ParsedDate(7, 4), CALENDAR, 2024)
        assert {e.title for e in events} == {"Bea's Birthday"}

    def test_recent_birth_mixes_with_and_without_age(self):
        events = project_event(make_source(), ParsedDate(5, 20, 2023, True), CALENDAR, 2024)
        titles = [e.title for e in events]
        assert titles[:2] == ["Ada's Birthday", "Ada's Birthday"]
        assert titles[2] == "Ada's Birthday (0)"
        assert titles[-1] == "Ada's Birthday (6)"


class TestDayBounds:
    def test_utc_midnight_to_midnight(self):
        start, end = utc_day_bounds(ParsedDate(5, 20, 1990, True), 2024)
        assert start == datetime(2024, 5, 20, tzinfo=timezone.utc)
        assert end - start == timedelta(days=1)
        assert start.tzinfo is timezone.utc

    def test_year_end_rolls_into_next_year(self):
        start, end = utc_day_bounds(ParsedDate(12, 31), 2024)
        assert end == datetime(2025, 1, 1, tzinfo=timezone.utc)

    def test_leap_day_in_leap_year(self):
        start, _ = utc_day_bounds(ParsedDate(2, 29, 2000, True), 2024)
        assert (start.month, start.day) == (2, 29)

    def test_leap_day_in_common_year_is_march_first(self):
        start, end = utc_day_bounds(ParsedDate(2, 29, 2000, True), 2023)
        assert (start.month, start.day) == (3, 1)
        assert end == datetime(2023, 3, 2, tzinfo=timezone.utc)


class TestUntitled:
    def test_no_name_gives_no_events(self):
        source = make_source(name=None)
        assert project_event(source, ParsedDate(5, 20, 1990, True), CALENDAR, 2024) == []

    def test_custom_label_in_every_projection(self):
        source = make_source(raw_date="2015-09-01", event_type=EventType.CUSTOM, label="Name Day")
        events = project_event(source, ParsedDate(9, 1, 2015, True), CALENDAR, 2024)
        assert events[0].title == "Ada's Name Day (6)"
        assert len(events) == 9

    def test_empty_name_gives_no_events(self):
        source = make_source(name="", lookup_key="contact-empty")
        assert project_event(source, ParsedDate(5, 20, 1990, True), CALENDAR, 2024) == []
