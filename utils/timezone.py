"""Venue clock helpers.

The database stores naive UTC datetimes. Anything that reasons about the
venue's day or hour (start of day, slot hours, operating hours) goes through
these helpers so there is exactly one place that knows the venue zone.
"""
from datetime import date, datetime, time

import pytz
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = "America/Mexico_City"


def venue_tz():
    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get("VENUE_TIMEZONE", DEFAULT_TIMEZONE)
    return pytz.timezone(name)


def localize(naive: datetime) -> datetime:
    """Attach the venue zone to a naive venue wall-clock time."""
    return venue_tz().localize(naive)


def venue_now() -> datetime:
    return datetime.now(venue_tz())


def to_venue(dt: datetime) -> datetime:
    """Localize a datetime to the venue zone. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = pytz.utc.localize(dt)
    return dt.astimezone(venue_tz())


def to_utc_naive(dt: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC form used in the database."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(pytz.utc).replace(tzinfo=None)


def venue_day_bounds(day: date):
    """Start and end of a venue calendar day, both inclusive, as naive UTC."""
    start = localize(datetime.combine(day, time.min))
    end = localize(datetime.combine(day, time.max))
    return to_utc_naive(start), to_utc_naive(end)


def parse_day(value: str) -> date:
    # Expect "YYYY-MM-DD"
    return date.fromisoformat(value)
