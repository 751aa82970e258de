"""Removal of expired ``pending_payment`` holds.

Two paths share one idempotent delete:

* ``purge_expired_holds``: the scheduled/CLI reaper. It deletes every hold
  that is still unpaid and past its expiry. Rerunning it is always safe.
* ``HoldDiscarder``: the best-effort cleanup the read path fires after it
  has already filtered expired holds out of its result. It runs on a small
  thread pool; its outcome is logged and never reported back to the reader.

The delete re-checks status and expiry in the WHERE clause, so a hold that
was paid between the read and the delete survives.
"""
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.booking import Booking, STATUS_PENDING_PAYMENT

logger = logging.getLogger(__name__)


def _expired_holds_query(now: datetime):
    return Booking.query.filter(
        Booking.status == STATUS_PENDING_PAYMENT,
        Booking.expires_at.isnot(None),
        Booking.expires_at <= now,
    )


def delete_expired_holds(booking_ids: Optional[Iterable[int]] = None, now: Optional[datetime] = None,
                         court_id: Optional[int] = None, start_time: Optional[datetime] = None) -> int:
    """Delete expired unpaid holds, optionally narrowed to ids or one court slot. Commits."""
    now = now or datetime.utcnow()
    q = _expired_holds_query(now)
    if booking_ids is not None:
        ids = list(booking_ids)
        if not ids:
            return 0
        q = q.filter(Booking.id.in_(ids))
    if court_id is not None:
        q = q.filter(Booking.court_id == court_id)
    if start_time is not None:
        q = q.filter(Booking.start_time == start_time)

    deleted = q.delete(synchronize_session=False)
    db.session.commit()
    return deleted


def purge_expired_holds(now: Optional[datetime] = None) -> int:
    deleted = delete_expired_holds(now=now)
    logger.info("Purged %s expired pending_payment holds", deleted)
    return deleted


class HoldDiscarder:
    """Fire-and-forget deletion of holds the read path found expired."""

    def __init__(self, app, executor=None):
        self.app = app
        self.executor = executor or ThreadPoolExecutor(
            max_workers=app.config.get("HOLD_DISCARD_WORKERS", 2),
            thread_name_prefix="hold-discard",
        )

    def discard(self, booking_ids: Iterable[int]) -> None:
        ids = list(booking_ids)
        if not ids:
            return
        try:
            self.executor.submit(self._run, ids)
        except RuntimeError:
            # executor already shut down; the reaper will catch these later
            logger.warning("Hold discard not scheduled for %s", ids)

    def _run(self, ids):
        with self.app.app_context():
            try:
                deleted = delete_expired_holds(ids)
                logger.info("Discarded %s of %s expired holds %s", deleted, len(ids), ids)
            except SQLAlchemyError:
                db.session.rollback()
                logger.warning("Failed to discard expired holds %s", ids, exc_info=True)
            finally:
                db.session.remove()

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)


def get_discarder(app) -> HoldDiscarder:
    return app.extensions["hold_discarder"]
