"""Event filtering and partitioning by player location."""
import logging
from datetime import datetime
from typing import FrozenSet, List, Optional, Sequence

from processor.configuration import AllowList, Configuration
from processor.models import (
    ESRBRatingInfo, EventCategoryInfo, EventTimeframe, FilteredEvents, RPEvent
)
from processor.time_window import compute_window, ensure_utc
from storage.world_lookup import WorldLookup

logger = logging.getLogger(__name__)


class EventFilter:
    """Filters the cached event list against the user configuration."""

    def __init__(self, world_lookup: WorldLookup):
        """
        Initialize the filter.

        Args:
            world_lookup: World/datacenter/region membership tables
        """
        self.world_lookup = world_lookup

    def filter_events(
        self,
        events: Optional[Sequence[RPEvent]],
        configuration: Configuration,
        current_world_id: Optional[int],
        now_utc: datetime,
        categories: Optional[Sequence[EventCategoryInfo]] = None,
        ratings: Optional[Sequence[ESRBRatingInfo]] = None
    ) -> FilteredEvents:
        """
        Build the flat filtered list and the location partitions.

        Passing events get their local start/end times recomputed in the
        configured display timezone. Input order is preserved.

        Args:
            events: Cached events sorted by start time (None if never fetched)
            configuration: User configuration, may be updated in place when an
                allow-list is empty
            current_world_id: Player's current world, None if unknown
            now_utc: Current instant
            categories: Category reference list, None if not loaded
            ratings: Rating reference list, None if not loaded

        Returns:
            FilteredEvents with partitions set to None when the player's
            world cannot be resolved
        """
        self._heal_allow_lists(configuration, categories, ratings)

        if not events:
            return FilteredEvents(events=[], **self._partitions([], current_world_id))

        restricted = self._age_restricted_ratings(ratings)
        if restricted is None:
            # Without the rating list only an explicit subset says what is safe to show
            if configuration.ratings.is_all:
                logger.warning("Rating list not loaded yet, holding back all events")
                return FilteredEvents(events=[], **self._partitions([], current_world_id))
            restricted = frozenset()

        now_utc = ensure_utc(now_utc)
        zone = configuration.display_timezone()
        window = compute_window(configuration.event_timeframe, now_utc, zone)

        filtered = []
        for event in events:
            if event.esrb_rating in restricted:
                continue
            if not self._matches(event, configuration, now_utc, window):
                continue

            event.local_start_time = event.start_time_utc.astimezone(zone)
            event.local_end_time = event.end_time_utc.astimezone(zone)
            filtered.append(event)

        logger.debug(f"Filtered {len(filtered)} of {len(events)} events")
        return FilteredEvents(events=filtered, **self._partitions(filtered, current_world_id))

    def _matches(self, event: RPEvent, configuration: Configuration, now_utc: datetime, window) -> bool:
        if not configuration.categories.allows(event.event_category):
            return False
        if not configuration.ratings.allows(event.esrb_rating):
            return False
        if configuration.one_time_only and event.is_recurring:
            return False

        if configuration.event_timeframe == EventTimeframe.NOW:
            return event.start_time_utc <= now_utc <= event.end_time_utc
        return window.contains(event.start_time_utc)

    def _partitions(self, filtered: List[RPEvent], current_world_id: Optional[int]) -> dict:
        """
        Split the filtered list by the player's server, datacenter and region.

        The partitions nest: server within datacenter within region.
        """
        unavailable = {'server_events': None, 'datacenter_events': None, 'region_events': None}

        world = self.world_lookup.get_world(current_world_id)
        if world is None:
            return unavailable

        datacenter_world_ids = self.world_lookup.get_datacenter_world_ids(world.datacenter_id)

        region_events = None
        datacenter = self.world_lookup.get_datacenter(world.datacenter_id)
        if datacenter is not None:
            region_world_ids = self.world_lookup.get_region_world_ids(datacenter.region)
            region_events = self._in_worlds(filtered, region_world_ids)

        return {
            'server_events': [e for e in filtered if e.server_id == world.world_id],
            'datacenter_events': self._in_worlds(filtered, datacenter_world_ids),
            'region_events': region_events,
        }

    @staticmethod
    def _in_worlds(events: List[RPEvent], world_ids: FrozenSet[int]) -> List[RPEvent]:
        return [e for e in events if e.server_id in world_ids]

    @staticmethod
    def _age_restricted_ratings(ratings: Optional[Sequence[ESRBRatingInfo]]) -> Optional[FrozenSet[str]]:
        if ratings is None:
            return None
        return frozenset(r.rating_name for r in ratings if r.requires_age_validation)

    @staticmethod
    def _heal_allow_lists(
        configuration: Configuration,
        categories: Optional[Sequence[EventCategoryInfo]],
        ratings: Optional[Sequence[ESRBRatingInfo]]
    ) -> None:
        """Replace empty allow-lists with every known name."""
        changed = False

        if configuration.categories.is_empty and categories:
            configuration.categories = AllowList.of(c.category_name for c in categories)
            logger.info(
                f"Category filter was empty, selected all {len(categories)} categories"
            )
            changed = True

        if configuration.ratings.is_empty and ratings:
            configuration.ratings = AllowList.of(r.rating_name for r in ratings)
            logger.info(f"Rating filter was empty, selected all {len(ratings)} ratings")
            changed = True

        if changed:
            configuration.save()
