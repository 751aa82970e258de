from datetime import datetime
from models.db import db

EVENT_TYPES = ("torneo", "clases", "eventos")
PRICE_TYPES = ("normal", "custom")

class SpecialBooking(db.Model):
    """Court time blocked by staff for a tournament, class or event."""
    __tablename__ = "special_bookings"

    id = db.Column(db.Integer, primary_key=True)
    court_id = db.Column(db.Integer, db.ForeignKey("courts.id"), nullable=False, index=True)

    event_type = db.Column(db.String(20), nullable=False)
    title = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # naive UTC, any whole-hour span
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)

    price_type = db.Column(db.String(10), nullable=False, default="normal")
    custom_price = db.Column(db.Integer, nullable=True)  # smallest unit, only for price_type=custom
    # comma separated weekday names; informational, not expanded into extra rows
    recurrence_pattern = db.Column(db.String(120), nullable=True)
    reference_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    court = db.relationship("Court")

    @property
    def recurrence_days(self):
        return [d for d in (self.recurrence_pattern or "").split(",") if d]

    def to_dict(self):
        return {
            "id": self.id,
            "court_id": self.court_id,
            "event_type": self.event_type,
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "price_type": self.price_type,
            "custom_price": self.custom_price,
            "is_recurring": bool(self.recurrence_days),
            "recurrence_pattern": self.recurrence_days,
            "reference_user_id": self.reference_user_id,
            "is_active": self.is_active,
            "court": self.court.to_dict() if self.court else None,
        }
