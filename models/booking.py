from datetime import datetime
from models.db import db

STATUS_PAID = "paid"
STATUS_PENDING_PAYMENT = "pending_payment"
LIVE_STATUSES = (STATUS_PAID, STATUS_PENDING_PAYMENT)

class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)

    # naive UTC
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING_PAYMENT)
    # status values: paid, pending_payment (cancelled/expired rows are deleted)
    expires_at = db.Column(db.DateTime, nullable=True)  # only for pending_payment holds

    amount = db.Column(db.Integer, nullable=True)  # smallest unit
    currency = db.Column(db.String(10), nullable=True)
    payment_gateway = db.Column(db.String(20), nullable=True)
    payment_id = db.Column(db.String(255), nullable=True)
    payment_completed_at = db.Column(db.DateTime, nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    booking_made_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    court = db.relationship("Court")

    __table_args__ = (
        # Hard business-rule: one live booking per court and start time (prevents double booking)
        db.UniqueConstraint("court_id", "start_time", name="uq_booking_court_start"),
        # never hand a reaped hold's id to a new booking
        {"sqlite_autoincrement": True},
    )

    def is_expired_hold(self, now_utc: datetime) -> bool:
        return (
            self.status == STATUS_PENDING_PAYMENT
            and self.expires_at is not None
            and self.expires_at <= now_utc
        )

    def to_dict(self):
        return {
            "id": self.id,
            "court_id": self.court_id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "status": self.status,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "amount": self.amount,
            "currency": self.currency,
            "payment_gateway": self.payment_gateway,
            "court": self.court.to_dict() if self.court else None,
        }
