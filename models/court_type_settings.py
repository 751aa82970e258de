from datetime import datetime
from models.db import db

ALL_DAYS = "monday,tuesday,wednesday,thursday,friday,saturday,sunday"

class CourtTypeSettings(db.Model):
    __tablename__ = "court_type_settings"

    id = db.Column(db.Integer, primary_key=True)
    court_type = db.Column(db.String(30), unique=True, nullable=False)

    # whole hours, venue-local; end is exclusive
    operating_hours_start = db.Column(db.Integer, nullable=False, default=8)
    operating_hours_end = db.Column(db.Integer, nullable=False, default=22)

    price_per_hour = db.Column(db.Integer, nullable=False, default=0)  # smallest currency unit
    advance_booking_days = db.Column(db.Integer, nullable=True)

    # comma separated lowercase weekday names
    operating_days = db.Column(db.String(120), nullable=False, default=ALL_DAYS)

    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @property
    def operating_day_names(self):
        return [d.strip() for d in (self.operating_days or "").split(",") if d.strip()]

    def to_dict(self):
        return {
            "court_type": self.court_type,
            "operating_hours_start": self.operating_hours_start,
            "operating_hours_end": self.operating_hours_end,
            "price_per_hour": self.price_per_hour,
            "advance_booking_days": self.advance_booking_days,
            "operating_days": self.operating_day_names,
        }
