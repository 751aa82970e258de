"""Read side of the booking flow.

Every function here degrades to a safe default (empty list, ``None`` or
``0``) when the database query fails: the failure is logged and the caller
sees "no data" instead of an error.
"""
import logging
from datetime import date, datetime
from typing import Callable, Iterable, List, Optional, Set

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from models import db
from models.booking import Booking, LIVE_STATUSES, STATUS_PAID, STATUS_PENDING_PAYMENT
from models.booking_rule import BookingRule
from models.court import Court
from models.court_maintenance import CourtMaintenance
from models.court_type import AvailableCourtType
from models.court_type_settings import CourtTypeSettings
from models.special_booking import SpecialBooking
from services.availability import SLOT_LENGTH, SlotRules, day_slots, format_slot, is_time_slot_available
from utils.timezone import to_venue, venue_day_bounds

logger = logging.getLogger(__name__)


def _rollback():
    try:
        db.session.rollback()
    except SQLAlchemyError:
        logger.debug("Rollback after failed query also failed", exc_info=True)


def bookings_for_date(
    day: date,
    now: Optional[datetime] = None,
    discard: Optional[Callable[[List[int]], None]] = None,
) -> List[Booking]:
    """Live bookings starting on the venue day ``day``, court loaded.

    Expired ``pending_payment`` holds are dropped from the result at once;
    their ids go to ``discard`` for best-effort deletion, whose outcome does
    not affect the result.
    """
    now = now or datetime.utcnow()
    start, end = venue_day_bounds(day)
    try:
        rows = (
            Booking.query
            .options(joinedload(Booking.court))
            .filter(
                Booking.start_time >= start,
                Booking.start_time <= end,
                Booking.status.in_(LIVE_STATUSES),
            )
            .order_by(Booking.start_time.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to fetch bookings for %s", day)
        _rollback()
        return []

    kept, expired = [], []
    for b in rows:
        if b.is_expired_hold(now):
            expired.append(b.id)
        else:
            kept.append(b)

    if expired:
        logger.info("Ignoring %s expired holds on %s: %s", len(expired), day, expired)
        if discard is not None:
            try:
                discard(expired)
            except Exception:
                logger.warning("Could not schedule discard of %s", expired, exc_info=True)
    return kept


def _covered_hours(start: datetime, end: datetime, day: Optional[date]):
    cursor = to_venue(start).replace(minute=0, second=0, microsecond=0)
    last = to_venue(end)
    while cursor < last:
        if day is None or cursor.date() == day:
            yield cursor.hour
        cursor = cursor.tzinfo.normalize(cursor + SLOT_LENGTH)


def occupied_slots(bookings: Iterable, court_type: Optional[str], day: Optional[date] = None) -> Set[str]:
    """Venue-local hours, as "HH:00", covered by bookings on ``court_type`` courts.

    Regular bookings cover one hour; special bookings may span several. With
    ``day``, hours that fall on another venue day are left out.
    """
    if not court_type:
        return set()
    slots = set()
    for b in bookings:
        court = b.court
        if court is not None and court.court_type == court_type:
            slots.update(format_slot(h) for h in _covered_hours(b.start_time, b.end_time, day))
    return slots


def bookings_on_court(bookings: Iterable, court_id: int) -> List:
    return [b for b in bookings if b.court_id == court_id]


def maintenance_for_date(day: date, court_id: Optional[int] = None) -> List[CourtMaintenance]:
    start, end = venue_day_bounds(day)
    try:
        q = CourtMaintenance.query.filter(
            CourtMaintenance.is_active.is_(True),
            CourtMaintenance.start_time <= end,
            CourtMaintenance.end_time > start,
        )
        if court_id is not None:
            q = q.filter(CourtMaintenance.court_id == court_id)
        return q.order_by(CourtMaintenance.start_time.asc()).all()
    except SQLAlchemyError:
        logger.exception("Failed to fetch maintenance windows for %s", day)
        _rollback()
        return []


def special_bookings_for_date(day: date, court_id: Optional[int] = None) -> List[SpecialBooking]:
    """Active special bookings overlapping the venue day ``day``, court loaded."""
    start, end = venue_day_bounds(day)
    try:
        q = (
            SpecialBooking.query
            .options(joinedload(SpecialBooking.court))
            .filter(
                SpecialBooking.is_active.is_(True),
                SpecialBooking.start_time <= end,
                SpecialBooking.end_time > start,
            )
        )
        if court_id is not None:
            q = q.filter(SpecialBooking.court_id == court_id)
        return q.order_by(SpecialBooking.start_time.asc()).all()
    except SQLAlchemyError:
        logger.exception("Failed to fetch special bookings for %s", day)
        _rollback()
        return []


def enabled_court_types() -> List[AvailableCourtType]:
    try:
        return (
            AvailableCourtType.query
            .filter_by(is_enabled=True)
            .order_by(AvailableCourtType.display_name.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to fetch court types")
        _rollback()
        return []


def enabled_court_type_names() -> List[str]:
    return [t.type_name for t in enabled_court_types()]


def courts_for_type(court_type: str) -> List[Court]:
    try:
        return (
            Court.query
            .filter_by(court_type=court_type, is_active=True)
            .order_by(Court.name.asc())
            .all()
        )
    except SQLAlchemyError:
        logger.exception("Failed to fetch courts for %s", court_type)
        _rollback()
        return []


def booking_rule_for(court_type: str) -> Optional[BookingRule]:
    try:
        return BookingRule.query.filter_by(court_type=court_type).first()
    except SQLAlchemyError:
        logger.exception("Failed to fetch booking rule for %s", court_type)
        _rollback()
        return None


def court_type_settings_for(court_type: str) -> Optional[CourtTypeSettings]:
    try:
        return CourtTypeSettings.query.filter_by(court_type=court_type).first()
    except SQLAlchemyError:
        logger.exception("Failed to fetch court type settings for %s", court_type)
        _rollback()
        return None


def count_active_bookings(user_id: int, court_type: Optional[str] = None, now: Optional[datetime] = None) -> int:
    """Paid bookings not yet over plus unpaid holds not yet expired."""
    now = now or datetime.utcnow()
    try:
        q = Booking.query.filter(
            Booking.user_id == user_id,
            or_(
                and_(Booking.status == STATUS_PAID, Booking.end_time >= now),
                and_(
                    Booking.status == STATUS_PENDING_PAYMENT,
                    or_(Booking.expires_at.is_(None), Booking.expires_at > now),
                ),
            ),
        )
        if court_type:
            q = q.join(Court, Booking.court_id == Court.id).filter(Court.court_type == court_type)
        return q.count()
    except SQLAlchemyError:
        logger.exception("Failed to count active bookings for user %s", user_id)
        _rollback()
        return 0


def day_availability(day: date, court_type: str, court_id: Optional[int] = None,
                     now: Optional[datetime] = None, discard=None):
    """Occupied slots for ``court_type`` and, with ``court_id``, per-slot availability."""
    now = now or datetime.utcnow()
    bookings = bookings_for_date(day, now=now, discard=discard)
    specials = special_bookings_for_date(day)
    rules = SlotRules.from_settings(court_type_settings_for(court_type))

    result = {
        "date": day.isoformat(),
        "court_type": court_type,
        "occupied": sorted(occupied_slots(bookings + specials, court_type, day=day)),
        "slots": [],
    }
    if court_id is not None:
        taken = (
            bookings_on_court(bookings, court_id)
            + bookings_on_court(specials, court_id)
            + maintenance_for_date(day, court_id)
        )
        result["court_id"] = court_id
        result["slots"] = [
            {"time": label, "available": is_time_slot_available(day, label, taken, now=now, rules=rules)}
            for label in day_slots(rules)
        ]
    return result
