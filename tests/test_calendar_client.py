"""Unit tests for RPCalendarClient."""
from datetime import datetime, timezone

import pytest
import requests
import responses

from client.calendar_client import CalendarApiError, RPCalendarClient, sanitize_url
from conftest import API_URL

EVENTS_URL = API_URL + "/Events/GetWeekTranslatableEvents"
CATEGORIES_URL = API_URL + "/Calendar/Categories"
RATINGS_URL = API_URL + "/Calendar/Ratings"


class TestSanitizeUrl:
    """Test cases for base URL sanitation."""

    def test_strips_whitespace_and_nulls(self):
        assert sanitize_url("  https://api.example.test/api\0\0  ") == API_URL

    def test_strips_embedded_nulls(self):
        assert sanitize_url("https://api.exa\0mple.test/api") == API_URL

    def test_none_becomes_empty(self):
        assert sanitize_url(None) == ''


class TestRPCalendarClient:
    """Test cases for RPCalendarClient class."""

    @responses.activate
    def test_fetch_events_success(self, event_records):
        """Test successful event fetching and parsing."""
        responses.add(responses.GET, EVENTS_URL, json=event_records, status=200)

        client = RPCalendarClient(timeout=30)
        events = client.fetch_events(API_URL)

        assert len(events) == 2

        # Sorted by start time, not API order
        assert events[0].event_name == "Phoenix Lounge Weekly Open Night"
        assert events[0].start_time_utc == datetime(2021, 10, 10, 19, 0, tzinfo=timezone.utc)
        assert events[0].end_time_utc == datetime(2021, 10, 10, 22, 0, tzinfo=timezone.utc)
        assert events[0].server_id == 91
        assert events[0].esrb_rating == "Teen"
        assert events[0].event_category == "Bar/Tavern"
        assert events[0].is_recurring is True
        assert events[0].local_start_time is None

        assert events[1].event_name == "Voss Cafe"
        assert events[1].contacts == "Frederick Voss, Rena Jesal"

    @responses.activate
    def test_fetch_events_sanitizes_base_url(self, event_records):
        responses.add(responses.GET, EVENTS_URL, json=event_records, status=200)

        client = RPCalendarClient()
        client.fetch_events(" " + API_URL + "\0\0 ")

        assert len(responses.calls) == 1
        assert responses.calls[0].request.url == EVENTS_URL

    @responses.activate
    def test_fetch_events_empty_array(self):
        responses.add(responses.GET, EVENTS_URL, json=[], status=200)

        assert RPCalendarClient().fetch_events(API_URL) == []

    @responses.activate
    def test_fetch_events_null_body(self):
        """A JSON null is zero events, not an error."""
        responses.add(responses.GET, EVENTS_URL, body="null", status=200,
                      content_type="application/json")

        assert RPCalendarClient().fetch_events(API_URL) == []

    @responses.activate
    def test_fetch_events_server_error(self):
        """Test that a non-2xx status raises without retrying."""
        responses.add(responses.GET, EVENTS_URL, body="Server Error", status=500)

        client = RPCalendarClient()

        with pytest.raises(CalendarApiError) as exc_info:
            client.fetch_events(API_URL)

        assert exc_info.value.url == EVENTS_URL
        assert "500" in exc_info.value.message
        assert EVENTS_URL in str(exc_info.value)
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_events_connection_error(self):
        responses.add(
            responses.GET,
            EVENTS_URL,
            body=requests.exceptions.ConnectionError("connection refused")
        )

        with pytest.raises(CalendarApiError) as exc_info:
            RPCalendarClient().fetch_events(API_URL)

        assert "connection refused" in exc_info.value.message
        assert len(responses.calls) == 1

    @responses.activate
    def test_fetch_events_timeout(self):
        responses.add(
            responses.GET,
            EVENTS_URL,
            body=requests.exceptions.Timeout("Request timed out")
        )

        with pytest.raises(CalendarApiError):
            RPCalendarClient(timeout=5).fetch_events(API_URL)

    @responses.activate
    def test_fetch_events_malformed_json(self):
        responses.add(responses.GET, EVENTS_URL, body="[{not json", status=200)

        with pytest.raises(CalendarApiError) as exc_info:
            RPCalendarClient().fetch_events(API_URL)

        assert "invalid JSON" in exc_info.value.message

    @responses.activate
    def test_fetch_events_object_instead_of_array(self):
        responses.add(responses.GET, EVENTS_URL, json={"events": []}, status=200)

        with pytest.raises(CalendarApiError) as exc_info:
            RPCalendarClient().fetch_events(API_URL)

        assert "JSON array" in exc_info.value.message

    @responses.activate
    def test_fetch_events_skips_invalid_records(self, event_records):
        """Test that invalid records are skipped and valid ones kept."""
        broken = dict(event_records[0], startTimeUTC="not a date", eventName="Broken")
        responses.add(
            responses.GET,
            EVENTS_URL,
            json=[broken, event_records[1], "garbage"],
            status=200
        )

        events = RPCalendarClient().fetch_events(API_URL)

        assert [e.event_name for e in events] == ["Phoenix Lounge Weekly Open Night"]

    @responses.activate
    def test_fetch_categories(self, category_records):
        responses.add(responses.GET, CATEGORIES_URL, json=category_records, status=200)

        categories = RPCalendarClient().fetch_categories(API_URL)

        assert [c.category_name for c in categories] == ["Bar/Tavern", "Eatery"]
        assert categories[0].description == "Drinks and company"

    @responses.activate
    def test_fetch_ratings(self, rating_records):
        responses.add(responses.GET, RATINGS_URL, json=rating_records, status=200)

        ratings = RPCalendarClient().fetch_ratings(API_URL)

        assert [r.rating_name for r in ratings] == ["Teen", "Adults Only"]
        assert ratings[0].requires_age_validation is False
        assert ratings[1].requires_age_validation is True
        assert ratings[1].prefix == "AO"

    @responses.activate
    def test_fetch_ratings_error_carries_url(self):
        responses.add(responses.GET, RATINGS_URL, status=404)

        with pytest.raises(CalendarApiError) as exc_info:
            RPCalendarClient().fetch_ratings(API_URL)

        assert exc_info.value.url == RATINGS_URL
