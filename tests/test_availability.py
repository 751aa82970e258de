from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from services.availability import (
    InvalidSlotTime,
    SlotRules,
    day_slots,
    intervals_overlap,
    is_time_slot_available,
    parse_slot_hour,
)
from tests.helpers import venue_dt

DAY = date(2030, 1, 7)  # a Monday
NINE_AM = venue_dt(DAY, 9)


def _booking(start_hour, end_hour, day=DAY):
    return {"start_time": venue_dt(day, start_hour), "end_time": venue_dt(day, end_hour)}


def test_existing_booking_blocks_its_hour_but_not_the_next():
    bookings = [_booking(10, 11)]

    assert is_time_slot_available(DAY, "10:00", bookings, now=NINE_AM) is False
    assert is_time_slot_available(DAY, "11:00", bookings, now=NINE_AM) is True


@pytest.mark.parametrize("value", ["09:30", "10:15:00", "11:00:30", "24:00", "ten", "", "1000", None, 10, "١٠:00", "１０:00"])
def test_malformed_or_unaligned_time_is_rejected(value):
    with pytest.raises(InvalidSlotTime):
        is_time_slot_available(DAY, value, [], now=NINE_AM)


def test_accepted_time_formats():
    assert parse_slot_hour("9") == 9
    assert parse_slot_hour("09:00") == 9
    assert parse_slot_hour("21:00:00") == 21
    assert parse_slot_hour(" 13:00 ") == 13


def test_only_ascii_digits_are_hours():
    with pytest.raises(InvalidSlotTime):
        parse_slot_hour("١٠:00")


def test_invalid_slot_time_is_a_value_error():
    with pytest.raises(ValueError):
        parse_slot_hour("7:45")


def test_slots_inside_minimum_lead_time_are_unavailable():
    # one hour away is inside the two hour lead
    assert is_time_slot_available(DAY, "10:00", [], now=NINE_AM) is False
    assert is_time_slot_available(DAY, "11:00", [], now=NINE_AM) is True


def test_past_slots_are_unavailable():
    noon = venue_dt(DAY, 12)
    assert is_time_slot_available(DAY, "10:00", [], now=noon) is False
    assert is_time_slot_available(DAY - timedelta(days=1), "20:00", [], now=noon) is False


@pytest.mark.parametrize("time_str,expected", [
    ("07:00", False),
    ("08:00", True),
    ("21:00", True),
    ("22:00", False),
    ("23:00", False),
])
def test_operating_hours_are_half_open(time_str, expected):
    evening_before = venue_dt(DAY - timedelta(days=1), 20)
    assert is_time_slot_available(DAY, time_str, [], now=evening_before) is expected


def test_custom_rules_narrow_the_day():
    rules = SlotRules(open_hour=10, close_hour=12, min_lead=timedelta(hours=0))
    evening_before = venue_dt(DAY - timedelta(days=1), 20)

    assert day_slots(rules) == ["10:00", "11:00"]
    assert is_time_slot_available(DAY, "09:00", [], now=evening_before, rules=rules) is False
    assert is_time_slot_available(DAY, "11:00", [], now=evening_before, rules=rules) is True
    assert is_time_slot_available(DAY, "12:00", [], now=evening_before, rules=rules) is False


def test_default_day_slots():
    slots = day_slots()
    assert slots[0] == "08:00"
    assert slots[-1] == "21:00"
    assert len(slots) == 14


@pytest.mark.parametrize("window,blocked", [
    ((venue_dt(DAY, 10), venue_dt(DAY, 12)), True),               # covers the slot
    ((venue_dt(DAY, 11), venue_dt(DAY, 12)), True),               # same interval
    ((venue_dt(DAY, 10, 30), venue_dt(DAY, 11, 30)), True),       # starts before, ends inside
    ((venue_dt(DAY, 11, 30), venue_dt(DAY, 12, 30)), True),       # starts inside
    ((venue_dt(DAY, 11, 15), venue_dt(DAY, 11, 45)), True),       # strictly inside
    ((venue_dt(DAY, 10), venue_dt(DAY, 11)), False),              # ends where the slot starts
    ((venue_dt(DAY, 12), venue_dt(DAY, 13)), False),              # starts where the slot ends
])
def test_overlap_with_half_open_intervals(window, blocked):
    taken = [SimpleNamespace(start_time=window[0], end_time=window[1])]
    assert is_time_slot_available(DAY, "11:00", taken, now=NINE_AM) is (not blocked)


def test_bookings_on_other_days_do_not_conflict():
    other_day = DAY + timedelta(days=1)
    assert is_time_slot_available(DAY, "11:00", [_booking(11, 12, day=other_day)], now=NINE_AM) is True


def test_two_bookings_block_only_their_own_slots():
    bookings = [_booking(12, 13), _booking(15, 17)]
    results = {
        label: is_time_slot_available(DAY, label, bookings, now=NINE_AM)
        for label in ["11:00", "12:00", "13:00", "14:00", "15:00", "16:00", "17:00"]
    }
    assert results == {
        "11:00": True,
        "12:00": False,
        "13:00": True,
        "14:00": True,
        "15:00": False,
        "16:00": False,
        "17:00": True,
    }


def test_evaluation_is_repeatable():
    bookings = [_booking(10, 11)]
    first = [is_time_slot_available(DAY, s, bookings, now=NINE_AM) for s in day_slots()]
    second = [is_time_slot_available(DAY, s, bookings, now=NINE_AM) for s in day_slots()]
    assert first == second


def test_intervals_overlap_is_symmetric_for_containment():
    a = (venue_dt(DAY, 10), venue_dt(DAY, 13))
    b = (venue_dt(DAY, 11), venue_dt(DAY, 12))
    assert intervals_overlap(*a, *b) is True
    assert intervals_overlap(*b, *a) is True
