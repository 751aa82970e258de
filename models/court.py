from datetime import datetime
from models.db import db

COURT_TYPES = ("tennis", "padel", "football")

class Court(db.Model):
    __tablename__ = "courts"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    court_type = db.Column(db.String(30), nullable=False, index=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("name", name="uq_courts_name"),
    )

    def to_dict(self):
        return {"id": self.id, "name": self.name, "court_type": self.court_type}
