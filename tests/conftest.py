"""
Shared pytest fixtures and source-event helpers.
"""

import logging
from datetime import date

import pytest

from eds_birthday_sync.models import DISABLED_REMINDER
from eds_birthday_sync.models import EventType
from eds_birthday_sync.models import SourceEvent
from eds_birthday_sync.models import SyncConfig
from eds_birthday_sync.models import SyncStats
from tests.fake_client import FakeEventStore

TODAY = date(2024, 3, 15)


def make_source(
    name: str | None = "Ada",
    raw_date: str | None = "1990-05-20",
    event_type: EventType = EventType.BIRTHDAY,
    label: str | None = None,
    lookup_key: str | None = None,
) -> SourceEvent:
    return SourceEvent(
        display_name=name,
        lookup_key=lookup_key or (f"contact-{name.lower()}" if name else "contact-anon"),
        raw_date=raw_date,
        event_type=event_type,
        custom_label=label,
    )


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "test_state.db"


@pytest.fixture
def sync_config(db_path):
    return SyncConfig(
        reminder_minutes=(1440, 60, DISABLED_REMINDER),
        state_db_path=db_path,
        dry_run=False,
        verbose=False,
    )


@pytest.fixture
def event_store():
    return FakeEventStore()



@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")


@pytest.fixture
def sync_stats():
    return SyncStats()
