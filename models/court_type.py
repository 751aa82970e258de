from datetime import datetime
from models.db import db

class AvailableCourtType(db.Model):
    __tablename__ = "available_court_types"

    id = db.Column(db.Integer, primary_key=True)
    type_name = db.Column(db.String(30), unique=True, nullable=False)  # tennis, padel, football
    display_name = db.Column(db.String(60), nullable=False)
    is_enabled = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "type_name": self.type_name,
            "display_name": self.display_name,
            "is_enabled": self.is_enabled,
        }
