"""Booking selection flow: date, court type, court, then time.

One ``BookingSelection`` lives for one user session. It keeps the
choices consistent with each other: a court always belongs to the
selected type, a time always belongs to the selected court and date, and
derived data (the courts of the type, the occupied slots) is rebuilt from
scratch whenever an input it depends on changes.
"""
import logging
from datetime import date
from enum import Enum
from typing import Callable, Iterable, List, Optional

from services.availability import format_slot, parse_slot_hour
from services.sequencing import RequestSequencer

logger = logging.getLogger(__name__)


class SelectionStage(str, Enum):
    NO_TYPE = "NO_TYPE"
    TYPE_SELECTED = "TYPE_SELECTED"
    COURT_SELECTED = "COURT_SELECTED"
    TIME_SELECTED = "TIME_SELECTED"


class SelectionError(ValueError):
    """A step was taken out of order or with a value that is not on offer."""


def _court_id(court) -> int:
    if isinstance(court, dict):
        return court["id"]
    return court.id


class BookingSelection:
    def __init__(
        self,
        court_types: Iterable[str],
        load_courts: Callable[[str], Iterable],
        initial_court_type: Optional[str] = None,
        day: Optional[date] = None,
    ):
        self.court_types: List[str] = list(court_types)
        self._load_courts = load_courts
        self._sequencer = RequestSequencer()

        self.day = day
        self.court_type: Optional[str] = None
        self.court_id: Optional[int] = None
        self.time: Optional[str] = None
        self.courts: List[int] = []
        self.occupied = frozenset()

        if initial_court_type:
            self.select_court_type(initial_court_type)
        else:
            self._auto_select_type()

    def _auto_select_type(self) -> None:
        if len(self.court_types) == 1:
            logger.debug("Auto-selecting only court type %s", self.court_types[0])
            self.select_court_type(self.court_types[0])

    @property
    def stage(self) -> SelectionStage:
        if self.court_type is None:
            return SelectionStage.NO_TYPE
        if self.court_id is None:
            return SelectionStage.TYPE_SELECTED
        if self.time is None:
            return SelectionStage.COURT_SELECTED
        return SelectionStage.TIME_SELECTED

    def select_date(self, day: date) -> None:
        if day != self.day:
            self.time = None
            self.occupied = frozenset()
        self.day = day

    def select_court_type(self, court_type: str) -> None:
        if court_type not in self.court_types:
            raise SelectionError(f"Court type not available: {court_type}")
        self.court_type = court_type
        self.court_id = None
        self.time = None
        self.occupied = frozenset()
        self.refresh_courts(self._load_courts(court_type))

    def refresh_courts(self, courts: Iterable) -> None:
        """Apply a new court list for the selected type."""
        ids = [_court_id(c) for c in courts]
        self.courts = ids

        if self.court_id is not None and self.court_id not in ids:
            self.court_id = None
            self.time = None
        if self.court_id is None and len(ids) == 1:
            logger.debug("Auto-selecting only court %s", ids[0])
            self.court_id = ids[0]

    def select_court(self, court_id: int) -> None:
        if self.court_type is None:
            raise SelectionError("Select a court type first")
        if court_id not in self.courts:
            raise SelectionError(f"Court {court_id} is not a {self.court_type} court")
        if court_id != self.court_id:
            self.time = None
        self.court_id = court_id

    def select_time(self, time_str: str) -> None:
        if self.court_id is None:
            raise SelectionError("Select a court first")
        if self.day is None:
            raise SelectionError("Select a date first")
        self.time = format_slot(parse_slot_hour(time_str))

    def back_to_type_selection(self) -> None:
        self.court_type = None
        self.court_id = None
        self.time = None
        self.courts = []
        self.occupied = frozenset()
        # with a single type there is nothing to go back to
        self._auto_select_type()

    def begin_refresh(self) -> int:
        return self._sequencer.issue()

    def apply_occupied(self, token: int, slots: Iterable[str]) -> bool:
        if not self._sequencer.accept(token):
            logger.debug("Dropping stale occupied-slot result %s (latest %s)", token, self._sequencer.latest)
            return False
        self.set_occupied(slots)
        return True

    def set_occupied(self, slots: Iterable[str]) -> None:
        self.occupied = frozenset(slots)

    def to_dict(self):
        return {
            "date": self.day.isoformat() if self.day else None,
            "court_type": self.court_type,
            "court_id": self.court_id,
            "time": self.time,
            "stage": self.stage.value,
            "courts": list(self.courts),
            "occupied": sorted(self.occupied),
        }

    @classmethod
    def from_dict(cls, data, court_types, load_courts) -> "BookingSelection":
        """Rebuild a stored selection, dropping parts that no longer hold."""
        data = data or {}
        day = date.fromisoformat(data["date"]) if data.get("date") else None
        court_type = data.get("court_type")

        if court_type and court_type in court_types:
            sel = cls(court_types, load_courts, day=day, initial_court_type=court_type)
            court_id = data.get("court_id")
            if court_id in sel.courts:
                sel.court_id = court_id
                if data.get("time") and day is not None:
                    sel.time = data["time"]
        else:
            sel = cls(court_types, load_courts, day=day)
        return sel
