from models.db import db
from utils.time_utils import utcnow

SLOT_STATUSES = ("available", "booked", "cancelled")


class TimeSlot(db.Model):
    __tablename__ = "time_slots"

    id = db.Column(db.Integer, primary_key=True)

    coach_id = db.Column(db.Integer, db.ForeignKey("coaches.id"), nullable=False, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    start_time = db.Column(db.String(5), nullable=False)  # HH:mm
    end_time = db.Column(db.String(5), nullable=False)    # HH:mm
    duration = db.Column(db.Integer, nullable=False)      # minutes

    status = db.Column(db.String(20), nullable=False, default="available")
    capacity = db.Column(db.Integer, nullable=False, default=1)
    booked_count = db.Column(db.Integer, nullable=False, default=0)
    booking_cutoff_hours = db.Column(db.Integer, nullable=False, default=12)

    # Set only for single-capacity slots; group slots are found through bookings.time_slot_id
    booking_id = db.Column(
        db.Integer,
        db.ForeignKey("bookings.id", use_alter=True, name="fk_time_slots_booking_id"),
        nullable=True,
    )
    cancellation_reason = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    coach = db.relationship("Coach")

    __table_args__ = (
        db.CheckConstraint("capacity >= 1", name="ck_time_slots_capacity"),
        db.CheckConstraint("booked_count >= 0 AND booked_count <= capacity", name="ck_time_slots_booked_count"),
        db.CheckConstraint("duration >= 15 AND duration <= 180", name="ck_time_slots_duration"),
        db.CheckConstraint("end_time > start_time", name="ck_time_slots_time_order"),
        db.Index("ix_time_slots_coach_date", "coach_id", "date"),
    )

    @property
    def remaining_spots(self) -> int:
        return max(0, self.capacity - self.booked_count)
