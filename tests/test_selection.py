from datetime import date

import pytest

from services.availability import InvalidSlotTime
from services.selection import BookingSelection, SelectionError, SelectionStage

COURTS = {
    "tennis": [{"id": 1}, {"id": 2}],
    "padel": [{"id": 3}],
    "football": [],
}


def load_courts(court_type):
    return COURTS[court_type]


def _selection(**kwargs):
    return BookingSelection(["tennis", "padel", "football"], load_courts, **kwargs)


def test_starts_without_a_court_type():
    sel = _selection()
    assert sel.stage == SelectionStage.NO_TYPE
    assert sel.courts == []


def test_single_court_type_is_selected_automatically():
    sel = BookingSelection(["tennis"], load_courts)
    assert sel.court_type == "tennis"
    assert sel.stage == SelectionStage.TYPE_SELECTED
    assert sel.courts == [1, 2]


def test_single_court_is_selected_automatically():
    sel = _selection()
    sel.select_court_type("padel")
    assert sel.court_id == 3
    assert sel.stage == SelectionStage.COURT_SELECTED


def test_unknown_court_type_is_refused():
    sel = _selection()
    with pytest.raises(SelectionError):
        sel.select_court_type("squash")


def test_changing_court_type_clears_court_and_time():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("tennis")
    sel.select_court(2)
    sel.select_time("10:00")
    assert sel.stage == SelectionStage.TIME_SELECTED

    sel.select_court_type("football")
    assert sel.court_id is None
    assert sel.time is None
    assert sel.courts == []


def test_court_must_belong_to_selected_type():
    sel = _selection()
    with pytest.raises(SelectionError):
        sel.select_court(1)

    sel.select_court_type("tennis")
    with pytest.raises(SelectionError):
        sel.select_court(3)


def test_time_needs_court_and_date():
    sel = _selection()
    sel.select_court_type("tennis")
    with pytest.raises(SelectionError):
        sel.select_time("10:00")

    sel.select_court(1)
    with pytest.raises(SelectionError):
        sel.select_time("10:00")

    sel.select_date(date(2030, 1, 7))
    sel.select_time("10")
    assert sel.time == "10:00"


def test_unaligned_time_is_refused():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("padel")
    with pytest.raises(InvalidSlotTime):
        sel.select_time("10:30")


def test_changing_date_clears_time_and_occupied():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("padel")
    sel.select_time("10:00")
    sel.apply_occupied(sel.begin_refresh(), ["11:00"])

    sel.select_date(date(2030, 1, 7))
    assert sel.time == "10:00"

    sel.select_date(date(2030, 1, 8))
    assert sel.time is None
    assert sel.occupied == frozenset()
    assert sel.court_id == 3


def test_changing_court_clears_time():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("tennis")
    sel.select_court(1)
    sel.select_time("10:00")

    sel.select_court(1)
    assert sel.time == "10:00"
    sel.select_court(2)
    assert sel.time is None


def test_refresh_drops_a_court_that_disappeared():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("tennis")
    sel.select_court(2)
    sel.select_time("10:00")

    sel.refresh_courts([{"id": 1}])
    # the one remaining court is picked again
    assert sel.court_id == 1
    assert sel.time is None


def test_back_to_type_selection_resets_everything_but_date():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("padel")
    sel.select_time("10:00")

    sel.back_to_type_selection()
    assert sel.stage == SelectionStage.NO_TYPE
    assert sel.day == date(2030, 1, 7)
    assert sel.courts == []


def test_back_to_type_selection_with_a_single_type_keeps_it():
    sel = BookingSelection(["padel"], load_courts, day=date(2030, 1, 7))
    sel.select_time("10:00")

    sel.back_to_type_selection()
    assert sel.court_type == "padel"
    assert sel.court_id == 3
    assert sel.time is None
    assert sel.stage == SelectionStage.COURT_SELECTED

    restored = BookingSelection.from_dict(sel.to_dict(), ["padel"], load_courts)
    assert restored.to_dict() == sel.to_dict()


def test_stale_occupied_result_is_dropped():
    sel = _selection()
    sel.select_court_type("tennis")
    old = sel.begin_refresh()
    new = sel.begin_refresh()

    assert sel.apply_occupied(new, ["10:00"]) is True
    assert sel.apply_occupied(old, ["12:00", "13:00"]) is False
    assert sel.occupied == frozenset({"10:00"})


def test_round_trip_through_dict_keeps_valid_choices():
    sel = _selection(day=date(2030, 1, 7))
    sel.select_court_type("tennis")
    sel.select_court(2)
    sel.select_time("18:00")

    restored = BookingSelection.from_dict(sel.to_dict(), ["tennis", "padel", "football"], load_courts)
    assert restored.to_dict()["stage"] == "TIME_SELECTED"
    assert (restored.day, restored.court_type, restored.court_id, restored.time) == (
        date(2030, 1, 7), "tennis", 2, "18:00",
    )


def test_restore_drops_a_disabled_court_type():
    stored = {"date": "2030-01-07", "court_type": "football", "court_id": None, "time": None}
    restored = BookingSelection.from_dict(stored, ["tennis", "padel"], load_courts)
    assert restored.court_type is None
    assert restored.day == date(2030, 1, 7)
