"""Refresh controller for the roleplay event calendar."""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from client.calendar_client import CalendarApiError, RPCalendarClient
from processor.configuration import Configuration
from processor.event_filter import EventFilter
from processor.models import (
    ESRBRatingInfo, EventCategoryInfo, FetchResult, FilteredEvents, RPEvent
)
from processor.time_window import ensure_utc
from storage.event_cache import (
    DEFAULT_REFRESH_INTERVAL, CacheState, EventCache, ReferenceListCache
)
from storage.world_lookup import WorldLookup

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventsService:
    """
    Decides when to fetch and when to re-filter the event list.

    The host calls refresh_events() once per frame. Fetches run on a worker
    thread and hand back a FetchResult through a future; the result is
    applied on a later refresh_events() call, so only this service ever
    changes the caches. At most one fetch is in flight.
    """

    def __init__(
        self,
        configuration: Configuration,
        client: RPCalendarClient,
        world_lookup: WorldLookup,
        player_world: Callable[[], Optional[int]],
        clock: Callable[[], datetime] = utc_now,
        error_sink: Optional[Callable[[str], None]] = None,
        world_changed=None,
        executor: Optional[Executor] = None,
        refresh_interval: timedelta = DEFAULT_REFRESH_INTERVAL
    ):
        """
        Initialize the service and subscribe to world changes.

        Args:
            configuration: User configuration
            client: Calendar API client
            world_lookup: World/datacenter/region lookup tables
            player_world: Host callable returning the player's world id or None
            clock: Callable returning the current UTC instant
            error_sink: Host callable that shows an error message to the user
            world_changed: Host signal with subscribe()/unsubscribe()
            executor: Executor for fetches (a single worker thread by default)
            refresh_interval: Minimum time between scheduled fetches
        """
        self.configuration = configuration
        self.client = client
        self.world_lookup = world_lookup
        self.player_world = player_world
        self.clock = clock
        self.error_sink = error_sink
        self.world_changed = world_changed
        self.refresh_interval = refresh_interval

        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix='rp-calendar-fetch'
        )

        self.cache = EventCache(refresh_interval)
        self.reference_cache = ReferenceListCache()
        self.event_filter = EventFilter(world_lookup)

        self.lock = threading.RLock()
        self._pending: Optional[Future] = None
        self._generation = 0
        self._last_attempt: Optional[datetime] = None
        self._last_world_id: Optional[int] = None
        self._result: Optional[FilteredEvents] = None
        self._closed = False

        self.last_error: Optional[str] = None
        self.last_refresh_local_time: Optional[datetime] = None

        if self.world_changed is not None:
            self.world_changed.subscribe(self.on_world_changed)

    def __enter__(self) -> 'EventsService':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Unsubscribe from host notifications and stop the worker."""
        with self.lock:
            if self._closed:
                return
            self._closed = True

        if self.world_changed is not None:
            self.world_changed.unsubscribe(self.on_world_changed)
        if self._owns_executor:
            self.executor.shutdown(wait=False)
        logger.info("Events service closed")

    def refresh_events(self, force_refresh: bool = False) -> None:
        """
        Drive one refresh tick.

        Applies a finished fetch, starts a new one when the interval has
        elapsed or a refresh is forced, and otherwise re-filters if the
        player changed worlds.

        Args:
            force_refresh: Fetch even if the cached list is still fresh
        """
        self._apply_completed_fetch()

        now = ensure_utc(self.clock())
        with self.lock:
            if self._closed:
                return

            if self._fetch_due(now, force_refresh):
                if self._pending is None:
                    self._start_fetch(now)
                    return
                logger.debug("Fetch already in progress, not starting another")

        if self._check_for_world_change():
            self.filter_events()

    def filter_events(self) -> Optional[FilteredEvents]:
        """
        Re-run the filter over the cached events without fetching.

        Returns:
            The new FilteredEvents, or None if nothing was fetched yet
        """
        with self.lock:
            events = self.cache.events
            world_id = self.player_world()
            self._last_world_id = world_id

            if events is None:
                return None

            self._result = self.event_filter.filter_events(
                events,
                self.configuration,
                world_id,
                ensure_utc(self.clock()),
                categories=self.reference_cache.categories,
                ratings=self.reference_cache.ratings
            )
            return self._result

    def on_world_changed(self, *args) -> None:
        """Host callback for world/territory changes."""
        if self._check_for_world_change():
            world_id = self.player_world()
            logger.info(f"Player world changed to {world_id}, re-filtering", extra={'world_id': world_id})
            self.filter_events()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the in-flight fetch finishes and apply it.

        Args:
            timeout: Seconds to wait, None to wait indefinitely

        Returns:
            True if a fetch result was applied
        """
        with self.lock:
            future = self._pending
        if future is None:
            return False

        wait([future], timeout=timeout)
        return self._apply_completed_fetch()

    @property
    def is_loading(self) -> bool:
        with self.lock:
            return self._pending is not None

    @property
    def cache_state(self) -> CacheState:
        return self.cache.state(self.clock())

    @property
    def events(self) -> Optional[List[RPEvent]]:
        return self.cache.events

    @property
    def filtered_events(self) -> Optional[List[RPEvent]]:
        result = self._result
        return None if result is None else result.events

    @property
    def server_events(self) -> Optional[List[RPEvent]]:
        result = self._result
        return None if result is None else result.server_events

    @property
    def datacenter_events(self) -> Optional[List[RPEvent]]:
        result = self._result
        return None if result is None else result.datacenter_events

    @property
    def region_events(self) -> Optional[List[RPEvent]]:
        result = self._result
        return None if result is None else result.region_events

    @property
    def categories(self) -> Optional[List[EventCategoryInfo]]:
        return self.reference_cache.categories

    @property
    def ratings(self) -> Optional[List[ESRBRatingInfo]]:
        return self.reference_cache.ratings

    @property
    def selectable_ratings(self) -> List[ESRBRatingInfo]:
        """Ratings a user may pick; age-restricted ones are never offered."""
        return [r for r in self.ratings or [] if not r.requires_age_validation]

    def _fetch_due(self, now: datetime, force_refresh: bool) -> bool:
        if force_refresh or self._last_attempt is None:
            return True
        return now - self._last_attempt >= self.refresh_interval

    def _start_fetch(self, now: datetime) -> None:
        self._generation += 1
        self._last_attempt = now
        generation = self._generation
        api_address = self.configuration.api_address

        logger.info(f"Starting event fetch (generation {generation})", extra={'generation': generation})
        self._pending = self.executor.submit(self._fetch, generation, now, api_address)

    def _fetch(self, generation: int, started_at: datetime, api_address: str) -> FetchResult:
        """Worker-thread body; returns everything it fetched without touching caches."""
        result = FetchResult(generation=generation, fetched_at=started_at)

        if self.reference_cache.categories is None:
            try:
                result.categories = self.client.fetch_categories(api_address)
            except CalendarApiError as e:
                result.reference_errors.append(f"Error getting Event Categories: {e}")

        if self.reference_cache.ratings is None:
            try:
                result.ratings = self.client.fetch_ratings(api_address)
            except CalendarApiError as e:
                result.reference_errors.append(f"Error getting Event Ratings: {e}")

        try:
            result.events = self.client.fetch_events(api_address)
        except CalendarApiError as e:
            result.error = str(e)

        return result

    def _apply_completed_fetch(self) -> bool:
        """Apply a finished fetch exactly once."""
        with self.lock:
            future = self._pending
            if future is None or not future.done():
                return False
            self._pending = None

        try:
            result = future.result()
        except Exception as e:
            logger.error(f"Event fetch failed unexpectedly: {e}", exc_info=True)
            self._record_error(f"error fetching events: {e}")
            return True

        self._apply_result(result)
        return True

    def _apply_result(self, result: FetchResult) -> None:
        if result.categories is not None:
            self.reference_cache.set_categories(result.categories)
        if result.ratings is not None:
            self.reference_cache.set_ratings(result.ratings)

        if result.succeeded:
            if self.cache.replace(result.events, result.fetched_at, result.generation):
                self.last_error = None
                self.last_refresh_local_time = result.fetched_at.astimezone(
                    self.configuration.display_timezone()
                )
        else:
            self._record_error(result.error or "error fetching events.")

        for message in result.reference_errors:
            self._record_error(message)

        self.filter_events()

    def _record_error(self, message: str) -> None:
        logger.error(message)
        self.last_error = message
        if self.error_sink is not None:
            self.error_sink(message)

    def _check_for_world_change(self) -> bool:
        with self.lock:
            return self.player_world() != self._last_world_id
