from datetime import datetime
from models.db import db

class BookingRule(db.Model):
    __tablename__ = "booking_rules"

    id = db.Column(db.Integer, primary_key=True)
    court_type = db.Column(db.String(30), unique=True, nullable=False)

    max_active_bookings = db.Column(db.Integer, nullable=False, default=2)
    max_days_ahead = db.Column(db.Integer, nullable=False, default=7)

    allow_cancellation = db.Column(db.Boolean, default=True, nullable=False)
    min_cancellation_hours = db.Column(db.Integer, nullable=False, default=24)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "court_type": self.court_type,
            "max_active_bookings": self.max_active_bookings,
            "max_days_ahead": self.max_days_ahead,
            "allow_cancellation": self.allow_cancellation,
            "min_cancellation_hours": self.min_cancellation_hours,
        }
