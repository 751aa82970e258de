from datetime import date, timedelta

from sqlalchemy.exc import OperationalError

from models.booking import Booking, STATUS_PENDING_PAYMENT
from services import reaper
from services.reaper import HoldDiscarder, delete_expired_holds, purge_expired_holds
from tests.helpers import venue_dt

DAY = date(2030, 1, 7)
NOW = venue_dt(DAY, 9)


def _holds(user, court, make_booking):
    expired = make_booking(user, court, venue_dt(DAY, 10), status=STATUS_PENDING_PAYMENT,
                           expires_at=NOW - timedelta(minutes=1))
    live = make_booking(user, court, venue_dt(DAY, 11), status=STATUS_PENDING_PAYMENT,
                        expires_at=NOW + timedelta(minutes=5))
    paid = make_booking(user, court, venue_dt(DAY, 12))
    return expired.id, live.id, paid.id


def test_purge_removes_only_expired_holds(make_user, make_court, make_booking):
    expired_id, live_id, paid_id = _holds(make_user(), make_court(), make_booking)

    assert purge_expired_holds(now=NOW) == 1
    assert {b.id for b in Booking.query.all()} == {live_id, paid_id}
    assert expired_id not in {b.id for b in Booking.query.all()}


def test_purge_is_idempotent(make_user, make_court, make_booking):
    _holds(make_user(), make_court(), make_booking)
    assert purge_expired_holds(now=NOW) == 1
    assert purge_expired_holds(now=NOW) == 0


def test_delete_by_ids_rechecks_expiry(make_user, make_court, make_booking):
    expired_id, live_id, paid_id = _holds(make_user(), make_court(), make_booking)

    # a hold that was paid or extended in the meantime survives
    assert delete_expired_holds([expired_id, live_id, paid_id], now=NOW) == 1
    assert delete_expired_holds([], now=NOW) == 0
    assert Booking.query.count() == 2


def test_discarder_swallows_database_errors(app, monkeypatch, caplog):
    class InlineExecutor:
        def submit(self, fn, *args):
            fn(*args)

    def boom(ids, now=None):
        raise OperationalError("DELETE", {}, Exception("database is locked"))

    monkeypatch.setattr(reaper, "delete_expired_holds", boom)
    discarder = HoldDiscarder(app, executor=InlineExecutor())

    discarder.discard([1, 2])
    assert "Failed to discard expired holds" in caplog.text


def test_discarder_skips_empty_batches(app):
    class RecordingExecutor:
        submitted = []

        def submit(self, fn, *args):
            self.submitted.append(args)

    executor = RecordingExecutor()
    HoldDiscarder(app, executor=executor).discard([])
    assert executor.submitted == []


def test_discarder_after_shutdown_does_not_raise(app):
    discarder = HoldDiscarder(app)
    discarder.shutdown()
    discarder.discard([1])
