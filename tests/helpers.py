from datetime import date, datetime, timedelta

from utils.timezone import localize, to_utc_naive, venue_now


def venue_dt(day: date, hour: int, minute: int = 0) -> datetime:
    """Naive UTC datetime for a venue-local day and hour, as stored in the database."""
    return to_utc_naive(localize(datetime(day.year, day.month, day.day, hour, minute)))


def venue_day(days_ahead: int = 2) -> date:
    return venue_now().date() + timedelta(days=days_ahead)
