import logging
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking, STATUS_PAID, STATUS_PENDING_PAYMENT
from models.court import Court
from services import booking_queries as queries
from services.availability import parse_slot_hour, slot_bounds
from services.booking_gate import BookingRejected, check_booking_allowed
from services.reaper import delete_expired_holds
from utils.auth_context import SessionContext
from utils.timezone import to_utc_naive

logger = logging.getLogger(__name__)


def submit_booking(
    ctx: SessionContext,
    court_id: int,
    day: date,
    time_str: str,
    now: Optional[datetime] = None,
    discard: Optional[Callable[[List[int]], None]] = None,
) -> Booking:
    """Create a ``pending_payment`` hold for one slot after the gate passes.

    The database unique constraint on (court, start) has the final word:
    losing a race surfaces as ``SLOT_TAKEN``.
    """
    hour = parse_slot_hour(time_str)
    now = now or datetime.utcnow()

    court = Court.query.get(court_id)
    if court is None or not court.is_active:
        raise BookingRejected("COURT_NOT_FOUND", "Court not found", status=404)

    rule = queries.booking_rule_for(court.court_type)
    settings = queries.court_type_settings_for(court.court_type)
    day_bookings = queries.bookings_for_date(day, now=now, discard=discard)
    taken = (
        queries.bookings_on_court(day_bookings, court.id)
        + queries.special_bookings_for_date(day, court.id)
        + queries.maintenance_for_date(day, court.id)
    )

    check_booking_allowed(
        court_type=court.court_type,
        day=day,
        time_str=time_str,
        court_type_enabled=court.court_type in queries.enabled_court_type_names(),
        rule=rule,
        settings=settings,
        active_count=queries.count_active_bookings(ctx.user_id, court.court_type, now=now),
        taken=taken,
        now=now,
    )

    start, end = slot_bounds(day, hour)
    start_utc, end_utc = to_utc_naive(start), to_utc_naive(end)

    # an expired hold may still occupy the unique key for this slot
    delete_expired_holds(court_id=court.id, start_time=start_utc, now=now)

    hold_minutes = current_app.config.get("PENDING_HOLD_MINUTES", 10)
    booking = Booking(
        user_id=ctx.user_id,
        court_id=court.id,
        start_time=start_utc,
        end_time=end_utc,
        status=STATUS_PENDING_PAYMENT,
        expires_at=now + timedelta(minutes=hold_minutes),
        amount=settings.price_per_hour if settings else 0,
        currency=current_app.config.get("PAYMENT_CURRENCY", "MXN"),
        booking_made_at=now,
    )
    db.session.add(booking)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info("Slot %s on court %s was taken concurrently", start_utc, court.id)
        raise BookingRejected("SLOT_TAKEN", "Slot already booked", status=409)

    logger.info("Hold %s created for user %s on court %s at %s", booking.id, ctx.user_id, court.id, start_utc)
    return booking


def cancel_booking(ctx: SessionContext, booking_id: int, now: Optional[datetime] = None) -> Booking:
    now = now or datetime.utcnow()
    booking = Booking.query.get(booking_id)
    if booking is None or booking.user_id != ctx.user_id:
        raise BookingRejected("NOT_FOUND", "Booking not found", status=404)

    if booking.status == STATUS_PAID:
        rule = queries.booking_rule_for(booking.court.court_type) if booking.court else None
        if rule is not None and not rule.allow_cancellation:
            raise BookingRejected("CANCELLATION_DISABLED", "Cancellations are disabled for this court type")
        cutoff_hours = rule.min_cancellation_hours if rule is not None else 0
        if (booking.start_time - now).total_seconds() < cutoff_hours * 3600:
            raise BookingRejected(
                "CANCELLATION_WINDOW",
                f"Cancellation not allowed within {cutoff_hours} hours of start",
            )

    db.session.delete(booking)
    db.session.commit()
    return booking


def confirm_payment(
    booking: Booking,
    gateway: str,
    payment_id: Optional[str] = None,
    processed_by: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Booking:
    """Promote a hold to ``paid``. Paying an expired hold is refused."""
    now = now or datetime.utcnow()
    if booking.status == STATUS_PAID:
        return booking
    if booking.is_expired_hold(now):
        raise BookingRejected("HOLD_EXPIRED", "Booking hold expired before payment", status=410)

    booking.status = STATUS_PAID
    booking.expires_at = None
    booking.payment_gateway = gateway
    booking.payment_id = payment_id
    booking.payment_completed_at = now
    booking.processed_by = processed_by
    db.session.commit()
    return booking
