"""User configuration consumed by the event filter."""
import logging
from dataclasses import dataclass, field
from datetime import timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dateutil import tz

from processor.models import EventTimeframe

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.ffxiv-rp.org/api"
DEFAULT_RATINGS = ("Teen",)


@dataclass(frozen=True)
class AllowList:
    """
    Filter criterion that either allows everything or a named subset.

    A subset can be empty; the filter treats an empty subset as not yet
    initialized and fills it from the reference data.
    """
    names: Optional[Tuple[str, ...]] = None

    @classmethod
    def all(cls) -> 'AllowList':
        return cls(None)

    @classmethod
    def of(cls, names: Iterable[str]) -> 'AllowList':
        # Keep first occurrence order, drop duplicates
        return cls(tuple(dict.fromkeys(names)))

    @property
    def is_all(self) -> bool:
        return self.names is None

    @property
    def is_empty(self) -> bool:
        return self.names is not None and len(self.names) == 0

    def allows(self, name: str) -> bool:
        return self.names is None or name in self.names

    def to_list(self) -> Optional[list]:
        return None if self.names is None else list(self.names)

    @classmethod
    def from_list(cls, names: Optional[Iterable[str]]) -> 'AllowList':
        return cls.all() if names is None else cls.of(names)


def resolve_timezone(name: Optional[str]) -> tzinfo:
    """
    Get a timezone object for an IANA name.

    Falls back to UTC if the name is unknown.
    """
    if not name:
        return timezone.utc
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.warning(f"Invalid timezone '{name}', falling back to UTC: {e}")
        return timezone.utc


@dataclass
class Configuration:
    """Mutable plugin settings owned by the host's persistence layer."""
    api_address: str = DEFAULT_API_URL
    use_local_timezone: bool = True
    timezone: Optional[str] = None
    categories: AllowList = field(default_factory=AllowList.all)
    ratings: AllowList = field(default_factory=lambda: AllowList.of(DEFAULT_RATINGS))
    one_time_only: bool = False
    event_timeframe: EventTimeframe = EventTimeframe.TODAY
    on_save: Optional[Callable[['Configuration'], None]] = field(
        default=None, repr=False, compare=False
    )

    def display_timezone(self) -> tzinfo:
        """Timezone used for local times and day/week windows."""
        if self.use_local_timezone or not self.timezone:
            return tz.tzlocal()
        return resolve_timezone(self.timezone)

    def set_timezone(self, name: str) -> None:
        """
        Record an IANA timezone as the display timezone.

        Raises:
            ValueError: If the name is not a known timezone
        """
        name = name.replace('\0', '').strip()
        try:
            ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone '{name}': {e}") from e

        self.timezone = name
        self.use_local_timezone = False
        self.save()

    def reset(self, api_address: str = DEFAULT_API_URL) -> None:
        """Restore filter, timezone and API defaults."""
        self.categories = AllowList.all()
        self.ratings = AllowList.of(DEFAULT_RATINGS)
        self.use_local_timezone = True
        self.timezone = None
        self.api_address = api_address
        logger.info("Configuration reset to defaults")

    def save(self) -> None:
        if self.on_save is None:
            logger.debug("No save handler registered, configuration kept in memory")
            return
        self.on_save(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dict for the host's settings store."""
        return {
            'api_address': self.api_address,
            'use_local_timezone': self.use_local_timezone,
            'timezone': self.timezone,
            'categories': self.categories.to_list(),
            'ratings': self.ratings.to_list(),
            'one_time_only': self.one_time_only,
            'event_timeframe': int(self.event_timeframe),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Configuration':
        """Build from a dict written by to_dict, filling gaps with defaults."""
        config = cls()
        config.api_address = data.get('api_address') or DEFAULT_API_URL
        config.use_local_timezone = bool(data.get('use_local_timezone', True))
        config.timezone = data.get('timezone')
        config.categories = AllowList.from_list(data.get('categories'))
        if 'ratings' in data:
            config.ratings = AllowList.from_list(data['ratings'])
        config.one_time_only = bool(data.get('one_time_only', False))

        try:
            config.event_timeframe = EventTimeframe(
                int(data.get('event_timeframe', EventTimeframe.TODAY))
            )
        except ValueError:
            logger.warning(
                f"Unknown event timeframe {data.get('event_timeframe')!r}, using Today"
            )
            config.event_timeframe = EventTimeframe.TODAY

        return config
