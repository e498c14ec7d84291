"""Timeframe to UTC window conversion."""
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from processor.models import DateRange, EventTimeframe


def ensure_utc(instant: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def local_midnight_utc(day: date, zone: tzinfo) -> datetime:
    """UTC instant of 00:00 local time on the given civil date."""
    return datetime.combine(day, time.min, tzinfo=zone).astimezone(timezone.utc)


def compute_window(timeframe: EventTimeframe, now_utc: datetime, zone: tzinfo) -> DateRange:
    """
    Resolve a timeframe selector to a concrete UTC interval.

    Day and week boundaries are local midnights in ``zone``, converted with
    the offset in effect at each boundary so DST changes are respected.

    Args:
        timeframe: Timeframe selector
        now_utc: Current instant
        zone: Display timezone

    Returns:
        DateRange in UTC
    """
    now_utc = ensure_utc(now_utc)

    if timeframe == EventTimeframe.NOW:
        return DateRange(now_utc, now_utc)
    if timeframe == EventTimeframe.NEXT_HOURS:
        return DateRange(now_utc, now_utc + timedelta(hours=1))
    if timeframe == EventTimeframe.THIS_WEEK:
        return week_window(now_utc, zone)
    if timeframe == EventTimeframe.NEXT_WEEK:
        return week_window(now_utc + timedelta(days=7), zone)
    return day_window(now_utc, zone)


def day_window(now_utc: datetime, zone: tzinfo) -> DateRange:
    today = now_utc.astimezone(zone).date()
    return DateRange(
        local_midnight_utc(today, zone),
        local_midnight_utc(today + timedelta(days=1), zone),
    )


def week_window(now_utc: datetime, zone: tzinfo) -> DateRange:
    # Weeks start on Monday; Sunday closes the week that began six days earlier
    today = now_utc.astimezone(zone).date()
    monday = today - timedelta(days=today.weekday())
    return DateRange(
        local_midnight_utc(monday, zone),
        local_midnight_utc(monday + timedelta(days=7), zone),
    )
