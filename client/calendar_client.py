"""HTTP client for the roleplay event calendar API."""
import logging
from typing import Any, List

import requests

from processor.event_processor import EventProcessor
from processor.models import ESRBRatingInfo, EventCategoryInfo, RPEvent

logger = logging.getLogger(__name__)


class CalendarApiError(Exception):
    """Raised when a calendar API request or its payload fails."""

    def __init__(self, url: str, message: str):
        super().__init__(f"URL: {url}: {message}")
        self.url = url
        self.message = message


def sanitize_url(base_url: str) -> str:
    """Remove embedded null characters and surrounding whitespace."""
    return (base_url or '').replace('\0', '').strip()


class RPCalendarClient:
    """Client for the roleplay event calendar API."""

    EVENTS_PATH = "/Events/GetWeekTranslatableEvents"
    CATEGORIES_PATH = "/Calendar/Categories"
    RATINGS_PATH = "/Calendar/Ratings"

    def __init__(self, timeout: int = 30, session: requests.Session = None):
        """
        Initialize the calendar client.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.timeout = timeout
        self.session = session or requests.Session()
        self.processor = EventProcessor()

    def fetch_events(self, base_url: str) -> List[RPEvent]:
        """
        Fetch this week's events from the calendar API.

        Args:
            base_url: API base address from the configuration

        Returns:
            List of RPEvent objects sorted by UTC start time

        Raises:
            CalendarApiError: If the request or JSON parsing fails
        """
        url = sanitize_url(base_url) + self.EVENTS_PATH
        logger.info(f"Fetching events from {url}", extra={'url': url})

        records = self._get_json_array(url)
        events = self.processor.process_events(records)

        logger.info(f"Successfully fetched {len(events)} events")
        return events

    def fetch_categories(self, base_url: str) -> List[EventCategoryInfo]:
        """
        Fetch the event category reference list.

        Raises:
            CalendarApiError: If the request or JSON parsing fails
        """
        url = sanitize_url(base_url) + self.CATEGORIES_PATH
        logger.info(f"Fetching event categories from {url}", extra={'url': url})
        return self.processor.process_categories(self._get_json_array(url))

    def fetch_ratings(self, base_url: str) -> List[ESRBRatingInfo]:
        """
        Fetch the ESRB rating reference list.

        Raises:
            CalendarApiError: If the request or JSON parsing fails
        """
        url = sanitize_url(base_url) + self.RATINGS_PATH
        logger.info(f"Fetching event ratings from {url}", extra={'url': url})
        return self.processor.process_ratings(self._get_json_array(url))

    def _get_json_array(self, url: str) -> List[Any]:
        """
        GET a URL and decode its body as a JSON array.

        A JSON null body is treated as an empty array. There is no retry
        here; the caller decides when to try again.

        Args:
            url: Fully built request URL

        Returns:
            Decoded list

        Raises:
            CalendarApiError: On transport errors, non-2xx status or bad JSON
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Request to {url} failed: {e}")
            raise CalendarApiError(url, str(e)) from e

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON returned by {url}: {e}")
            raise CalendarApiError(url, f"invalid JSON: {e}") from e

        if payload is None:
            return []
        if not isinstance(payload, list):
            logger.error(f"Expected a JSON array from {url}, got {type(payload).__name__}")
            raise CalendarApiError(
                url, f"expected a JSON array, got {type(payload).__name__}"
            )

        return payload
