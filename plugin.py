"""Host entry point for the RP Event Calendar plugin."""
import json
import logging
import os
from datetime import timedelta
from typing import Any, Callable, Dict, Optional

from client.calendar_client import RPCalendarClient
from processor.configuration import DEFAULT_API_URL, Configuration
from service.events_service import EventsService
from storage.world_lookup import DatacenterSource, WorldLookup, WorldSource

logger = logging.getLogger(__name__)


# Fields callers attach with logger.x(..., extra={...}) that end up in the JSON line
CONTEXT_FIELDS = ('api_address', 'refresh_interval_minutes', 'generation', 'world_id', 'url')


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying calendar context passed through ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        for field_name in CONTEXT_FIELDS:
            value = getattr(record, field_name, None)
            if value is not None:
                log_data[field_name] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Route all plugin logging through a single JSON stream handler.

    Args:
        log_level: Level name from LOG_LEVEL; unknown names mean INFO
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    stream = logging.StreamHandler()
    stream.setFormatter(JsonFormatter())
    root_logger.addHandler(stream)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # urllib3 logs every connection at DEBUG; one line per fetch is enough
    logging.getLogger('urllib3').setLevel(max(root_logger.level, logging.INFO))


def load_settings() -> Dict[str, Any]:
    """
    Read process settings from environment variables.

    Returns:
        Dict with api_url, log_level, refresh_interval_minutes, timeout_seconds
    """
    return {
        'api_url': os.environ.get('RP_CALENDAR_API_URL', DEFAULT_API_URL),
        'log_level': os.environ.get('LOG_LEVEL', 'INFO'),
        'refresh_interval_minutes': int(os.environ.get('REFRESH_INTERVAL_MINUTES', '15')),
        'timeout_seconds': int(os.environ.get('TIMEOUT_SECONDS', '30')),
    }


class CalendarPlugin:
    """Wires the calendar services to the host's collaborators."""

    COMMANDS = ('/events', '/resetcalendar', '/eventsdebug')

    def __init__(
        self,
        world_source: WorldSource,
        datacenter_source: DatacenterSource,
        player_world: Callable[[], Optional[int]],
        saved_settings: Optional[Dict[str, Any]] = None,
        on_save: Optional[Callable[[Dict[str, Any]], None]] = None,
        error_sink: Optional[Callable[[str], None]] = None,
        world_changed=None,
        **service_options
    ):
        """
        Build the plugin from host collaborators.

        Args:
            world_source: Host callable returning World rows or None
            datacenter_source: Host callable returning Datacenter rows or None
            player_world: Host callable returning the player's world id or None
            saved_settings: Configuration dict previously written through on_save
            on_save: Host callable persisting the configuration dict
            error_sink: Host callable showing an error message to the user
            world_changed: Host signal with subscribe()/unsubscribe()
            **service_options: Extra EventsService arguments (clock, executor)
        """
        self.settings = load_settings()
        setup_logging(self.settings['log_level'])

        if saved_settings:
            self.configuration = Configuration.from_dict(saved_settings)
        else:
            self.configuration = Configuration(api_address=self.settings['api_url'])
        if on_save is not None:
            self.configuration.on_save = lambda config: on_save(config.to_dict())

        self.client = RPCalendarClient(timeout=self.settings['timeout_seconds'])
        self.world_lookup = WorldLookup(world_source, datacenter_source)
        self.events_service = EventsService(
            self.configuration,
            self.client,
            self.world_lookup,
            player_world,
            error_sink=error_sink,
            world_changed=world_changed,
            refresh_interval=timedelta(minutes=self.settings['refresh_interval_minutes']),
            **service_options
        )

        logger.info(
            "Calendar plugin loaded",
            extra={
                'api_address': self.configuration.api_address,
                'refresh_interval_minutes': self.settings['refresh_interval_minutes']
            }
        )

    def close(self) -> None:
        self.events_service.close()

    def tick(self) -> None:
        """Per-frame hook for the host's render loop."""
        self.events_service.refresh_events()

    def handle_command(self, command: str, args: str = '') -> Dict[str, Any]:
        """
        Handle a chat command registered with the host.

        Args:
            command: Command name including the leading slash
            args: Raw argument string

        Returns:
            Result dict with status and command-specific data
        """
        if command == '/events':
            self.events_service.refresh_events()
            return {'status': 'ok', 'command': command, 'events': self._summary()}

        if command == '/resetcalendar':
            self.configuration.reset(api_address=self.settings['api_url'])
            self.configuration.save()
            self.events_service.refresh_events(force_refresh=True)
            return {
                'status': 'ok',
                'command': command,
                'configuration': self.configuration.to_dict()
            }

        if command == '/eventsdebug':
            return {'status': 'ok', 'command': command, 'debug': self.debug_info()}

        logger.warning(f"Unknown command: {command}")
        return {'status': 'error', 'command': command, 'error': f"Unknown command {command}"}

    def debug_info(self) -> Dict[str, Any]:
        service = self.events_service
        last_refresh = service.last_refresh_local_time
        return {
            'cache_state': service.cache_state.value,
            'is_loading': service.is_loading,
            'last_error': service.last_error,
            'last_refresh_local_time': last_refresh.isoformat() if last_refresh else None,
            'cached_events': len(service.events or []),
            'worlds': len(self.world_lookup.worlds),
            'public_worlds': len(self.world_lookup.public_worlds()),
            'datacenters': len(self.world_lookup.datacenters),
        }

    def _summary(self) -> Dict[str, Optional[int]]:
        service = self.events_service

        def count(events):
            return None if events is None else len(events)

        return {
            'filtered': count(service.filtered_events),
            'server': count(service.server_events),
            'datacenter': count(service.datacenter_events),
            'region': count(service.region_events),
        }
