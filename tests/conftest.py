"""Shared fixtures for calendar tests."""
from concurrent.futures import Executor, Future
from datetime import datetime, timezone

import pytest

from processor.configuration import AllowList, Configuration
from processor.models import (
    Datacenter, ESRBRatingInfo, EventCategoryInfo, EventTimeframe, RPEvent,
    World, WorldDCRegion
)
from storage.world_lookup import WorldLookup

API_URL = "https://api.example.test/api"

CRYSTAL = 8
AETHER = 4
CHAOS = 6

BALMUNG = 91
MATEUS = 37
GILGAMESH = 63
OMEGA = 39


class ImmediateExecutor(Executor):
    """Runs submitted work on the calling thread."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def make_event(**overrides) -> RPEvent:
    """Create an RPEvent with sensible defaults."""
    values = dict(
        datacenter='Crystal',
        server='Balmung',
        server_id=BALMUNG,
        event_name='Phoenix Lounge Weekly Open Night',
        location='Mist Ward 19, Plot 2',
        event_url='https://xiv.fyi/oZYi',
        esrb_rating='Teen',
        description='Weekly bar open night.',
        event_category='Bar/Tavern',
        contacts='Akane Sakai',
        start_time_utc=datetime(2021, 10, 10, 19, 0, tzinfo=timezone.utc),
        end_time_utc=datetime(2021, 10, 10, 22, 0, tzinfo=timezone.utc),
        is_recurring=True,
    )
    values.update(overrides)
    return RPEvent(**values)


@pytest.fixture
def worlds():
    return [
        World(BALMUNG, 'Balmung', CRYSTAL),
        World(MATEUS, 'Mateus', CRYSTAL),
        World(GILGAMESH, 'Gilgamesh', AETHER),
        World(OMEGA, 'Omega', CHAOS),
        World(3, 'Hidden', 99, is_public=False),
    ]


@pytest.fixture
def datacenters():
    return [
        Datacenter(CRYSTAL, 'Crystal', int(WorldDCRegion.NORTH_AMERICA)),
        Datacenter(AETHER, 'Aether', int(WorldDCRegion.NORTH_AMERICA)),
        Datacenter(CHAOS, 'Chaos', int(WorldDCRegion.EUROPEAN)),
        Datacenter(99, 'Internal', int(WorldDCRegion.NON_PUBLIC)),
    ]


@pytest.fixture
def world_lookup(worlds, datacenters):
    return WorldLookup(lambda: worlds, lambda: datacenters)


@pytest.fixture
def categories():
    return [
        EventCategoryInfo('Bar/Tavern', 'Drinks and company', 1),
        EventCategoryInfo('Eatery', 'Food', 2),
    ]


@pytest.fixture
def ratings():
    return [
        ESRBRatingInfo('Teen', 'Ages 13+', 1, 'T', False),
        ESRBRatingInfo('Mature', 'Ages 17+', 2, 'M', False),
        ESRBRatingInfo('Adults Only', 'Ages 18+', 3, 'AO', True),
    ]


@pytest.fixture
def utc_configuration():
    """Configuration pinned to UTC with the default filters."""
    return Configuration(
        api_address=API_URL,
        use_local_timezone=False,
        timezone='UTC',
        categories=AllowList.all(),
        ratings=AllowList.of(['Teen']),
        one_time_only=False,
        event_timeframe=EventTimeframe.TODAY,
    )


@pytest.fixture
def event_records():
    """Two events as returned by the calendar API."""
    return [
        {
            "datacenter": "Crystal",
            "server": "Balmung",
            "serverId": 91,
            "eventName": "Voss Cafe",
            "location": "Shirogane Ward 7, Plot 54",
            "eventURL": "https://xiv.fyi/GvvR",
            "esrbRating": "Teen",
            "description": "A coffee shop with an upstairs cafe.",
            "eventCategory": "Eatery",
            "contacts": "Frederick Voss, Rena Jesal",
            "startTimeUTC": "2021-10-10T21:00:00Z",
            "endTimeUTC": "2021-10-11T00:00:00Z",
            "isRecurring": True,
            "lastValidated": None
        },
        {
            "datacenter": "Crystal",
            "server": "Balmung",
            "serverId": 91,
            "eventName": "Phoenix Lounge Weekly Open Night",
            "location": "Mist Ward 19, Plot 2",
            "eventURL": "https://xiv.fyi/oZYi",
            "esrbRating": "Teen",
            "description": "Weekly EU bar open night of the Phoenix Lounge.",
            "eventCategory": "Bar/Tavern",
            "contacts": "Akane Sakai",
            "startTimeUTC": "2021-10-10T19:00:00Z",
            "endTimeUTC": "2021-10-10T22:00:00Z",
            "isRecurring": True,
            "lastValidated": None
        }
    ]


@pytest.fixture
def category_records():
    return [
        {"categoryName": "Eatery", "description": "Food", "sortOrder": 2},
        {"categoryName": "Bar/Tavern", "description": "Drinks and company", "sortOrder": 1},
    ]


@pytest.fixture
def rating_records():
    return [
        {"ratingName": "Teen", "description": "Ages 13+", "sortOrder": 1,
         "prefix": "T", "requiresAgeValidation": False},
        {"ratingName": "Adults Only", "description": "Ages 18+", "sortOrder": 3,
         "prefix": "AO", "requiresAgeValidation": True},
    ]
