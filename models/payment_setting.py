from datetime import datetime
from models.db import db

GATEWAYS = ("stripe", "cash")

class PaymentGatewaySetting(db.Model):
    __tablename__ = "payment_gateway_settings"

    id = db.Column(db.Integer, primary_key=True)
    gateway = db.Column(db.String(20), unique=True, nullable=False)

    is_enabled = db.Column(db.Boolean, default=False, nullable=False)
    test_mode = db.Column(db.Boolean, default=True, nullable=False)

    updated_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "gateway": self.gateway,
            "is_enabled": self.is_enabled,
            "test_mode": self.test_mode,
        }
