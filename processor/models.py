"""Data models for roleplay event processing."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import List, Optional


class EventTimeframe(IntEnum):
    """Symbolic timeframe selector for the event list."""
    NOW = 0
    NEXT_HOURS = 1
    TODAY = 2
    THIS_WEEK = 3
    NEXT_WEEK = 4

    @property
    def description(self) -> str:
        return _TIMEFRAME_DESCRIPTIONS[self]


_TIMEFRAME_DESCRIPTIONS = {
    EventTimeframe.NOW: "Happening now",
    EventTimeframe.NEXT_HOURS: "Events opening in the next hour",
    EventTimeframe.TODAY: "Today's events",
    EventTimeframe.THIS_WEEK: "This week's events",
    EventTimeframe.NEXT_WEEK: "Next week's events",
}


class WorldDCRegion(IntEnum):
    """Physical region a datacenter belongs to."""
    NON_PUBLIC = 0
    JAPANESE = 1
    NORTH_AMERICA = 2
    EUROPEAN = 3
    OCEANIAN = 4

    @property
    def description(self) -> str:
        return _REGION_DESCRIPTIONS[self]


_REGION_DESCRIPTIONS = {
    WorldDCRegion.NON_PUBLIC: "Non-Public Data Center",
    WorldDCRegion.JAPANESE: "Japanese Data Center",
    WorldDCRegion.NORTH_AMERICA: "North American Data Center",
    WorldDCRegion.EUROPEAN: "European Data Center",
    WorldDCRegion.OCEANIAN: "Oceanian Data Center",
}


@dataclass
class RPEvent:
    """Roleplay event from the calendar API."""
    datacenter: str
    server: str
    server_id: int
    event_name: str
    location: str
    event_url: Optional[str]
    esrb_rating: str
    description: str
    event_category: str
    contacts: str
    start_time_utc: datetime
    end_time_utc: datetime
    is_recurring: bool
    last_validated: Optional[datetime] = None
    uid: Optional[str] = None
    short_description: str = ''
    # Derived by the filter on every pass
    local_start_time: Optional[datetime] = None
    local_end_time: Optional[datetime] = None


@dataclass
class EventCategoryInfo:
    """Event category reference row."""
    category_name: str
    description: Optional[str]
    sort_order: int


@dataclass
class ESRBRatingInfo:
    """ESRB-style rating reference row."""
    rating_name: str
    description: Optional[str]
    sort_order: int
    prefix: Optional[str] = None
    requires_age_validation: bool = False


@dataclass(frozen=True)
class World:
    """Game world (server) row from the host's static data."""
    world_id: int
    name: str
    datacenter_id: int
    is_public: bool = True


@dataclass(frozen=True)
class Datacenter:
    """Datacenter row from the host's static data."""
    datacenter_id: int
    name: str
    region: int


@dataclass(frozen=True)
class DateRange:
    """UTC interval, inclusive on both ends."""
    start_utc: datetime
    end_utc: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start_utc <= instant <= self.end_utc


@dataclass
class FilteredEvents:
    """
    Result of one filter pass.

    The partitions are None when the player's world could not be resolved,
    which is different from an empty list (no matching events).
    """
    events: List[RPEvent] = field(default_factory=list)
    server_events: Optional[List[RPEvent]] = None
    datacenter_events: Optional[List[RPEvent]] = None
    region_events: Optional[List[RPEvent]] = None

    @property
    def partitions_available(self) -> bool:
        return self.server_events is not None


@dataclass
class FetchResult:
    """Outcome of one background fetch."""
    generation: int
    fetched_at: datetime
    events: Optional[List[RPEvent]] = None
    error: Optional[str] = None
    categories: Optional[List[EventCategoryInfo]] = None
    ratings: Optional[List[ESRBRatingInfo]] = None
    reference_errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.events is not None
