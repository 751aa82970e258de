from datetime import date, datetime, timedelta
from typing import Iterable

from flask import current_app, has_app_context

from services.availability import SlotRules, is_time_slot_available
from utils.timezone import to_venue

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

COURT_TYPE_DISABLED = "COURT_TYPE_DISABLED"
MAX_ACTIVE_BOOKINGS = "MAX_ACTIVE_BOOKINGS"
TOO_FAR_AHEAD = "TOO_FAR_AHEAD"
CLOSED_DAY = "CLOSED_DAY"
SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"


class BookingRejected(Exception):
    def __init__(self, code: str, message: str, status: int = 403):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status

    def to_dict(self):
        return {"error": self.message, "code": self.code}


def _config_default(key, fallback):
    if has_app_context():
        return current_app.config.get(key, fallback)
    return fallback


def max_active_for(rule) -> int:
    if rule is not None:
        return rule.max_active_bookings
    return _config_default("DEFAULT_MAX_ACTIVE_BOOKINGS", 2)


def max_days_ahead_for(rule, settings) -> int:
    # court type settings take precedence over the general rule
    if settings is not None and settings.advance_booking_days is not None:
        return settings.advance_booking_days
    if rule is not None:
        return rule.max_days_ahead
    return _config_default("DEFAULT_MAX_DAYS_AHEAD", 7)


def check_booking_allowed(
    *,
    court_type: str,
    day: date,
    time_str: str,
    court_type_enabled: bool,
    rule,
    settings,
    active_count: int,
    taken: Iterable,
    now: datetime,
) -> None:
    """Raise ``BookingRejected`` unless a new booking may be submitted.

    ``taken`` holds the intervals already occupied on the chosen court
    (bookings and maintenance windows) for ``day``.
    """
    if not court_type_enabled:
        raise BookingRejected(COURT_TYPE_DISABLED, f"Bookings for {court_type} courts are disabled")

    limit = max_active_for(rule)
    if active_count >= limit:
        raise BookingRejected(
            MAX_ACTIVE_BOOKINGS,
            f"You already have the maximum of {limit} active {court_type} bookings",
        )

    days_ahead = max_days_ahead_for(rule, settings)
    today = to_venue(now).date()
    if day > today + timedelta(days=days_ahead):
        raise BookingRejected(
            TOO_FAR_AHEAD,
            f"{court_type} courts can only be booked up to {days_ahead} days ahead",
        )

    if settings is not None:
        open_days = settings.operating_day_names
        if open_days and WEEKDAYS[day.weekday()] not in open_days:
            raise BookingRejected(CLOSED_DAY, f"{court_type} courts are closed on {WEEKDAYS[day.weekday()]}")

    if not is_time_slot_available(day, time_str, taken, now=now, rules=SlotRules.from_settings(settings)):
        raise BookingRejected(SLOT_UNAVAILABLE, "Selected time slot is not available", status=409)
