from models.db import db
from utils.time_utils import utcnow

COACH_STATUSES = ("pending", "approved", "rejected")


class Coach(db.Model):
    __tablename__ = "coaches"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True, index=True)

    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    booking_cutoff_hours = db.Column(db.Integer, nullable=False, default=12)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    user = db.relationship("User", back_populates="coach_profile")

    @property
    def is_approved(self) -> bool:
        return self.status == "approved" and self.is_active
