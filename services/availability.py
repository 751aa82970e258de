"""Slot availability checking.

A slot is one hour, aligned to the hour, on one court. Whether it can be
booked is a pure function of the candidate day and hour, the current time,
the court type's slot rules and the intervals already taken on that court
(bookings and maintenance windows). Every interval is half-open
``[start, end)``, so back-to-back bookings do not conflict.
"""
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterable, List, Optional, Tuple

from flask import current_app, has_app_context

from utils.timezone import localize, to_venue, venue_now

SLOT_LENGTH = timedelta(hours=1)

_SLOT_RE = re.compile(r"^([0-9]{1,2})(?::([0-9]{2}))?(?::([0-9]{2}))?$")


class InvalidSlotTime(ValueError):
    """The time string is not a whole hour between 00 and 23."""


@dataclass(frozen=True)
class SlotRules:
    open_hour: int = 8
    close_hour: int = 22
    min_lead: timedelta = timedelta(hours=2)

    @classmethod
    def defaults(cls) -> "SlotRules":
        if not has_app_context():
            return cls()
        cfg = current_app.config
        return cls(
            open_hour=cfg.get("DEFAULT_OPERATING_START", 8),
            close_hour=cfg.get("DEFAULT_OPERATING_END", 22),
            min_lead=timedelta(hours=cfg.get("MIN_LEAD_HOURS", 2)),
        )

    @classmethod
    def from_settings(cls, settings) -> "SlotRules":
        """Operating hours from a court type's settings row, when there is one."""
        base = cls.defaults()
        if settings is None:
            return base
        return cls(
            open_hour=settings.operating_hours_start,
            close_hour=settings.operating_hours_end,
            min_lead=base.min_lead,
        )


def parse_slot_hour(time_str) -> int:
    if not isinstance(time_str, str):
        raise InvalidSlotTime(f"Slot time must be a string, got {type(time_str).__name__}")
    match = _SLOT_RE.match(time_str.strip())
    if not match:
        raise InvalidSlotTime(f"Unparseable slot time: {time_str!r}")
    hour = int(match.group(1))
    minutes, seconds = match.group(2), match.group(3)
    if hour > 23:
        raise InvalidSlotTime(f"Hour out of range: {time_str!r}")
    if (minutes and minutes != "00") or (seconds and seconds != "00"):
        raise InvalidSlotTime(f"Slots start on the hour: {time_str!r}")
    return hour


def format_slot(hour: int) -> str:
    return f"{hour:02d}:00"


def slot_bounds(day: date, hour: int) -> Tuple[datetime, datetime]:
    start = localize(datetime.combine(day, time(hour=hour)))
    return start, start.tzinfo.normalize(start + SLOT_LENGTH)


def day_slots(rules: Optional[SlotRules] = None) -> List[str]:
    rules = rules or SlotRules.defaults()
    return [format_slot(h) for h in range(rules.open_hour, rules.close_hour)]


def intervals_overlap(start, end, other_start, other_end) -> bool:
    start_inside = other_start < start < other_end
    end_inside = other_start < end < other_end
    contains = start <= other_start and other_end <= end
    return start_inside or end_inside or contains


def _interval(item):
    if isinstance(item, dict):
        return item["start_time"], item["end_time"]
    return item.start_time, item.end_time


def is_time_slot_available(
    day: date,
    time_str: str,
    bookings: Iterable,
    now: Optional[datetime] = None,
    rules: Optional[SlotRules] = None,
) -> bool:
    """True when the one-hour slot at ``time_str`` on ``day`` can be booked.

    ``bookings`` holds anything with ``start_time``/``end_time`` (objects or
    dicts); naive datetimes are read as UTC. Raises ``InvalidSlotTime`` for a
    malformed or non hour-aligned ``time_str``.
    """
    hour = parse_slot_hour(time_str)
    rules = rules or SlotRules.defaults()
    now = to_venue(now) if now is not None else venue_now()

    start, end = slot_bounds(day, hour)

    if start < now:
        return False
    if start - now < rules.min_lead:
        return False
    if hour < rules.open_hour or hour >= rules.close_hour:
        return False

    for item in bookings:
        b_start, b_end = _interval(item)
        if intervals_overlap(start, end, to_venue(b_start), to_venue(b_end)):
            return False
    return True
