from datetime import datetime
from models.db import db

PAYMENT_INIT = "INIT"
PAYMENT_PAID = "PAID"
PAYMENT_FAILED = "FAILED"

class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    # no FK: an unpaid hold may be deleted while its checkout is still open
    booking_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="stripe")  # stripe, cash
    amount = db.Column(db.Integer, nullable=False)   # smallest unit
    currency = db.Column(db.String(10), nullable=False, default="MXN")

    status = db.Column(db.String(20), nullable=False, default=PAYMENT_INIT)
    stripe_session_id = db.Column(db.String(255), nullable=True, unique=True, index=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)  # operator for cash
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    def belongs_to(self, booking) -> bool:
        """True when ``booking`` is the hold this payment was started for.

        Guards against a late provider event landing on a different row that
        happens to carry the same id.
        """
        return (
            booking is not None
            and booking.id == self.booking_id
            and booking.user_id == self.user_id
            and booking.booking_made_at <= self.created_at
        )

    def mark_failed(self):
        if self.status != PAYMENT_PAID:
            self.status = PAYMENT_FAILED

    def mark_paid(self, when: datetime):
        self.status = PAYMENT_PAID
        self.paid_at = when
