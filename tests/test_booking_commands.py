from datetime import date, timedelta

import pytest

from models import db
from models.booking import Booking, STATUS_PAID, STATUS_PENDING_PAYMENT
from models.booking_rule import BookingRule
from models.court_type import AvailableCourtType
from models.court_type_settings import CourtTypeSettings
from models.special_booking import SpecialBooking
from services.availability import InvalidSlotTime
from services.booking_commands import cancel_booking, confirm_payment, submit_booking
from services.booking_gate import BookingRejected
from utils.auth_context import SessionContext
from tests.helpers import venue_dt

DAY = date(2030, 1, 7)
NOW = venue_dt(DAY, 9)


@pytest.fixture
def player(make_user):
    user = make_user()
    return user, SessionContext(user_id=user.id, roles=frozenset({"USER"}))


def test_submit_creates_pending_hold(player, make_court):
    user, ctx = player
    court = make_court()
    db.session.query(CourtTypeSettings).filter_by(court_type="tennis").update({"price_per_hour": 35000})
    db.session.commit()

    booking = submit_booking(ctx, court.id, DAY, "11:00", now=NOW)

    assert booking.status == STATUS_PENDING_PAYMENT
    assert booking.start_time == venue_dt(DAY, 11)
    assert booking.end_time == venue_dt(DAY, 12)
    assert booking.expires_at == NOW + timedelta(minutes=10)
    assert booking.amount == 35000
    assert booking.currency == "MXN"


def test_third_booking_is_blocked_before_insert(player, make_court, make_booking):
    user, ctx = player
    court = make_court()
    make_booking(user, court, venue_dt(DAY, 14))
    make_booking(user, court, venue_dt(DAY, 15), status=STATUS_PENDING_PAYMENT, expires_at=NOW + timedelta(minutes=5))

    with pytest.raises(BookingRejected) as exc:
        submit_booking(ctx, court.id, DAY, "17:00", now=NOW)
    assert exc.value.code == "MAX_ACTIVE_BOOKINGS"
    assert Booking.query.count() == 2


def test_limit_is_per_court_type(player, make_court, make_booking):
    user, ctx = player
    tennis = make_court()
    padel = make_court(name="Padel 1", court_type="padel")
    make_booking(user, tennis, venue_dt(DAY, 14))
    make_booking(user, tennis, venue_dt(DAY, 15))

    booking = submit_booking(ctx, padel.id, DAY, "17:00", now=NOW)
    assert booking.court_id == padel.id


def test_conflict_with_existing_booking(player, make_user, make_court, make_booking):
    _, ctx = player
    other = make_user(email="other@example.com")
    court = make_court()
    make_booking(other, court, venue_dt(DAY, 11))

    with pytest.raises(BookingRejected) as exc:
        submit_booking(ctx, court.id, DAY, "11:00", now=NOW)
    assert exc.value.code == "SLOT_UNAVAILABLE"
    assert exc.value.status == 409


def test_expired_hold_on_the_same_slot_is_replaced(player, make_user, make_court, make_booking):
    _, ctx = player
    other = make_user(email="other@example.com")
    court = make_court()
    stale = make_booking(other, court, venue_dt(DAY, 11), status=STATUS_PENDING_PAYMENT,
                         expires_at=NOW - timedelta(minutes=1))
    stale_id = stale.id

    booking = submit_booking(ctx, court.id, DAY, "11:00", now=NOW)

    assert booking.user_id == ctx.user_id
    assert Booking.query.filter_by(id=stale_id).first() is None
    assert Booking.query.count() == 1


def test_disabled_court_type(player, make_court):
    _, ctx = player
    court = make_court()
    AvailableCourtType.query.filter_by(type_name="tennis").update({"is_enabled": False})
    db.session.commit()

    with pytest.raises(BookingRejected) as exc:
        submit_booking(ctx, court.id, DAY, "11:00", now=NOW)
    assert exc.value.code == "COURT_TYPE_DISABLED"


def test_unknown_or_inactive_court(player, make_court):
    _, ctx = player
    court = make_court(is_active=False)
    with pytest.raises(BookingRejected) as exc:
        submit_booking(ctx, court.id, DAY, "11:00", now=NOW)
    assert exc.value.status == 404
    with pytest.raises(BookingRejected):
        submit_booking(ctx, 9999, DAY, "11:00", now=NOW)


def test_unaligned_time_is_rejected(player, make_court):
    _, ctx = player
    court = make_court()
    with pytest.raises(InvalidSlotTime):
        submit_booking(ctx, court.id, DAY, "11:30", now=NOW)


def test_cancel_hold_deletes_it(player, make_court):
    _, ctx = player
    court = make_court()
    booking = submit_booking(ctx, court.id, DAY, "11:00", now=NOW)
    booking_id = booking.id

    cancel_booking(ctx, booking_id, now=NOW)
    assert Booking.query.filter_by(id=booking_id).first() is None


def test_cancel_someone_elses_booking_is_not_found(player, make_user, make_court, make_booking):
    _, ctx = player
    other = make_user(email="other@example.com")
    booking = make_booking(other, make_court(), venue_dt(DAY, 11))

    with pytest.raises(BookingRejected) as exc:
        cancel_booking(ctx, booking.id, now=NOW)
    assert exc.value.status == 404


def test_cancel_paid_booking_respects_window(player, make_court, make_booking):
    user, ctx = player
    court = make_court()
    booking = make_booking(user, court, venue_dt(DAY, 20))

    # seeded rule: 24 hours notice
    with pytest.raises(BookingRejected) as exc:
        cancel_booking(ctx, booking.id, now=NOW)
    assert exc.value.code == "CANCELLATION_WINDOW"

    BookingRule.query.filter_by(court_type="tennis").update({"min_cancellation_hours": 2})
    db.session.commit()
    cancel_booking(ctx, booking.id, now=NOW)
    assert Booking.query.count() == 0


def test_cancel_paid_booking_when_disabled(player, make_court, make_booking):
    user, ctx = player
    booking = make_booking(user, make_court(), venue_dt(DAY + timedelta(days=5), 20))
    BookingRule.query.filter_by(court_type="tennis").update({"allow_cancellation": False})
    db.session.commit()

    with pytest.raises(BookingRejected) as exc:
        cancel_booking(ctx, booking.id, now=NOW)
    assert exc.value.code == "CANCELLATION_DISABLED"


def test_confirm_payment_marks_paid(player, make_court):
    _, ctx = player
    booking = submit_booking(ctx, make_court().id, DAY, "11:00", now=NOW)

    confirm_payment(booking, "stripe", payment_id="cs_test_1", now=NOW + timedelta(minutes=3))

    assert booking.status == STATUS_PAID
    assert booking.expires_at is None
    assert booking.payment_gateway == "stripe"
    assert booking.payment_id == "cs_test_1"


def test_confirm_payment_refuses_expired_hold(player, make_court):
    _, ctx = player
    booking = submit_booking(ctx, make_court().id, DAY, "11:00", now=NOW)

    with pytest.raises(BookingRejected) as exc:
        confirm_payment(booking, "stripe", now=NOW + timedelta(minutes=11))
    assert exc.value.code == "HOLD_EXPIRED"
    assert exc.value.status == 410


def test_confirm_payment_is_idempotent(player, make_court, make_booking):
    user, _ = player
    booking = make_booking(user, make_court(), venue_dt(DAY, 11))
    assert confirm_payment(booking, "cash", now=NOW) is booking
    assert booking.payment_gateway is None


def test_special_booking_blocks_submission(player, make_court):
    _, ctx = player
    court = make_court()
    db.session.add(SpecialBooking(court_id=court.id, event_type="clases", title="Junior clinic",
                                  start_time=venue_dt(DAY, 16), end_time=venue_dt(DAY, 18)))
    db.session.commit()

    with pytest.raises(BookingRejected) as exc:
        submit_booking(ctx, court.id, DAY, "17:00", now=NOW)
    assert exc.value.code == "SLOT_UNAVAILABLE"
    assert submit_booking(ctx, court.id, DAY, "18:00", now=NOW).start_time == venue_dt(DAY, 18)
