"""Event processor for validating and normalizing calendar API records."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from dateutil.parser import isoparse

from processor.models import ESRBRatingInfo, EventCategoryInfo, RPEvent
from processor.time_window import ensure_utc

logger = logging.getLogger(__name__)


class EventProcessor:
    """Processor for validating and normalizing calendar API payloads."""

    MAX_SHORT_DESCRIPTION_LENGTH = 500
    REQUIRED_FIELDS = ('eventName', 'startTimeUTC', 'endTimeUTC')

    def process_events(self, records: Optional[List[Dict[str, Any]]]) -> List[RPEvent]:
        """
        Process raw event records from the calendar API.

        Args:
            records: Deserialized JSON array (None is treated as empty)

        Returns:
            List of RPEvent objects sorted by UTC start time
        """
        if not records:
            return []

        processed_events = []

        for record in records:
            try:
                processed_event = self._process_single_event(record)
                if processed_event:
                    processed_events.append(processed_event)
            except (TypeError, ValueError, OverflowError) as e:
                logger.warning(
                    f"Failed to process event '{self._record_name(record)}': {e}"
                )
                continue

        # sorted() is stable, so events sharing a start time keep API order
        processed_events = sorted(processed_events, key=lambda e: e.start_time_utc)

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(records)} total events"
        )
        return processed_events

    def process_categories(self, records: Optional[List[Dict[str, Any]]]) -> List[EventCategoryInfo]:
        """
        Process category reference rows.

        Args:
            records: Deserialized JSON array (None is treated as empty)

        Returns:
            Categories ordered by sort order
        """
        categories = []
        for record in records or []:
            if not isinstance(record, dict) or not record.get('categoryName'):
                logger.warning(f"Skipping category row without a name: {record!r}")
                continue
            try:
                categories.append(EventCategoryInfo(
                    category_name=record['categoryName'],
                    description=record.get('description'),
                    sort_order=self._sort_order(record)
                ))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping category '{record['categoryName']}': {e}")
        return sorted(categories, key=lambda c: c.sort_order)

    def process_ratings(self, records: Optional[List[Dict[str, Any]]]) -> List[ESRBRatingInfo]:
        """
        Process rating reference rows.

        Args:
            records: Deserialized JSON array (None is treated as empty)

        Returns:
            Ratings ordered by sort order
        """
        ratings = []
        for record in records or []:
            if not isinstance(record, dict) or not record.get('ratingName'):
                logger.warning(f"Skipping rating row without a name: {record!r}")
                continue
            try:
                ratings.append(ESRBRatingInfo(
                    rating_name=record['ratingName'],
                    description=record.get('description'),
                    sort_order=self._sort_order(record),
                    prefix=record.get('prefix'),
                    requires_age_validation=self._flag(record.get('requiresAgeValidation'))
                ))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping rating '{record['ratingName']}': {e}")
        return sorted(ratings, key=lambda r: r.sort_order)

    def _process_single_event(self, record: Dict[str, Any]) -> Optional[RPEvent]:
        """
        Process a single event record.

        Args:
            record: Raw event dict with camelCase keys

        Returns:
            RPEvent object or None if validation fails
        """
        if not self._validate_required_fields(record):
            return None

        start_time_utc = self._parse_timestamp(record['startTimeUTC'])
        end_time_utc = self._parse_timestamp(record['endTimeUTC'])

        last_validated = None
        if record.get('lastValidated'):
            last_validated = self._parse_timestamp(record['lastValidated'])

        description = record.get('description') or ''

        return RPEvent(
            datacenter=record.get('datacenter') or '',
            server=record.get('server') or '',
            server_id=int(record.get('serverId') or 0),
            event_name=record['eventName'].strip(),
            location=record.get('location') or '',
            event_url=record.get('eventURL'),
            esrb_rating=record.get('esrbRating') or '',
            description=description,
            event_category=record.get('eventCategory') or '',
            contacts=record.get('contacts') or '',
            start_time_utc=start_time_utc,
            end_time_utc=end_time_utc,
            is_recurring=self._flag(record.get('isRecurring')),
            last_validated=last_validated,
            uid=record.get('uId'),
            short_description=self.make_short_description(description)
        )

    def _validate_required_fields(self, record: Any) -> bool:
        """
        Validate that required fields are present and non-empty.

        Args:
            record: Raw event record

        Returns:
            True if valid, False otherwise
        """
        if not isinstance(record, dict):
            logger.warning(f"Event record is not an object: {record!r}")
            return False

        for field_name in self.REQUIRED_FIELDS:
            value = record.get(field_name)
            if not isinstance(value, str) or not value.strip():
                logger.warning(
                    f"Event '{self._record_name(record)}' missing required field: {field_name}"
                )
                return False

        return True

    def _parse_timestamp(self, value: str) -> datetime:
        """
        Parse an ISO 8601 timestamp into an aware UTC datetime.

        Naive timestamps from the API are already UTC.
        """
        return ensure_utc(isoparse(value))

    def make_short_description(self, description: str) -> str:
        """
        Strip markup from a description and truncate it for list display.

        Args:
            description: Free-text event description, possibly with HTML

        Returns:
            Plain text of at most MAX_SHORT_DESCRIPTION_LENGTH characters
        """
        if not description:
            return ''

        text = BeautifulSoup(description, 'html.parser').get_text()
        text = text.strip()
        if len(text) > self.MAX_SHORT_DESCRIPTION_LENGTH:
            text = text[:self.MAX_SHORT_DESCRIPTION_LENGTH - 3].rstrip() + '...'
        return text

    @staticmethod
    def _record_name(record: Any) -> str:
        if isinstance(record, dict):
            return str(record.get('eventName') or '<unnamed>')
        return '<invalid>'

    @staticmethod
    def _sort_order(record: Dict[str, Any]) -> int:
        return int(record.get('sortOrder') or 0)

    @staticmethod
    def _flag(value: Any) -> bool:
        """JSON booleans, tolerating the string forms some rows carry."""
        if isinstance(value, str):
            return value.strip().lower() == 'true'
        return value is True
