"""In-memory caches for fetched events and reference lists."""
import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from processor.models import ESRBRatingInfo, EventCategoryInfo, RPEvent
from processor.time_window import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = timedelta(minutes=15)


class CacheState(Enum):
    EMPTY = 'empty'
    FRESH = 'fresh'
    STALE = 'stale'


class EventCache:
    """
    Holds the last complete event snapshot and when it was fetched.

    The snapshot is only ever replaced as a whole. Readers may keep the list
    they got; a refresh swaps in a new list instead of changing the old one.
    """

    def __init__(self, refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL):
        """
        Initialize an empty cache.

        Args:
            refresh_interval: Age after which the snapshot is stale
        """
        self.refresh_interval = refresh_interval
        self.lock = threading.RLock()
        self._events: Optional[List[RPEvent]] = None
        self._last_refresh: Optional[datetime] = None
        self._generation = 0
        logger.debug(f"Initialized event cache with {refresh_interval} refresh interval")

    @property
    def events(self) -> Optional[List[RPEvent]]:
        """Current snapshot, or None if nothing was fetched yet."""
        with self.lock:
            return self._events

    @property
    def last_refresh(self) -> Optional[datetime]:
        with self.lock:
            return self._last_refresh

    @property
    def generation(self) -> int:
        with self.lock:
            return self._generation

    def is_stale(self, now: datetime) -> bool:
        """
        Check whether a fetch is due.

        Args:
            now: Current instant

        Returns:
            True if never fetched or the snapshot is at least refresh_interval old
        """
        with self.lock:
            if self._last_refresh is None:
                return True
            return ensure_utc(now) - self._last_refresh >= self.refresh_interval

    def state(self, now: datetime) -> CacheState:
        with self.lock:
            if self._last_refresh is None:
                return CacheState.EMPTY
            return CacheState.STALE if self.is_stale(now) else CacheState.FRESH

    def replace(self, events: List[RPEvent], fetched_at: datetime, generation: int) -> bool:
        """
        Swap in a new snapshot.

        A snapshot from a fetch that started before the one already applied
        is discarded.

        Args:
            events: Complete event list from one fetch
            fetched_at: When that fetch started
            generation: Sequence number of that fetch

        Returns:
            True if the snapshot was applied, False if it was outdated
        """
        with self.lock:
            if generation <= self._generation:
                logger.warning(
                    f"Discarding outdated event snapshot (generation {generation}, "
                    f"current {self._generation})"
                )
                return False

            self._events = list(events)
            self._last_refresh = ensure_utc(fetched_at)
            self._generation = generation

        logger.info(f"Event cache updated with {len(events)} events (generation {generation})")
        return True


class ReferenceListCache:
    """
    Category and rating lists, fetched once per process.

    There is no expiry. A list stays None until a fetch succeeds.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self._categories: Optional[List[EventCategoryInfo]] = None
        self._ratings: Optional[List[ESRBRatingInfo]] = None

    @property
    def categories(self) -> Optional[List[EventCategoryInfo]]:
        with self.lock:
            return self._categories

    @property
    def ratings(self) -> Optional[List[ESRBRatingInfo]]:
        with self.lock:
            return self._ratings

    def set_categories(self, categories: List[EventCategoryInfo]) -> None:
        with self.lock:
            if self._categories is None:
                self._categories = list(categories)
                logger.info(f"Cached {len(categories)} event categories")

    def set_ratings(self, ratings: List[ESRBRatingInfo]) -> None:
        with self.lock:
            if self._ratings is None:
                self._ratings = list(ratings)
                logger.info(f"Cached {len(ratings)} event ratings")
