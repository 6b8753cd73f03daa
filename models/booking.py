from models.db import db
from utils.time_utils import utcnow

BOOKING_STATUSES = ("pending", "confirmed", "completed", "cancelled", "no-show")
PAYMENT_STATUSES = ("pending", "paid", "refunded", "failed")


class Booking(db.Model):
    __tablename__ = "bookings"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    coach_id = db.Column(db.Integer, db.ForeignKey("coaches.id"), nullable=False, index=True)
    time_slot_id = db.Column(db.Integer, db.ForeignKey("time_slots.id"), nullable=False, index=True)

    status = db.Column(db.String(20), nullable=False, default="pending")
    payment_status = db.Column(db.String(20), nullable=False, default="pending")
    # hourly_rate * duration / 60, fixed when the booking is made
    payment_amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_date = db.Column(db.DateTime, nullable=True)

    cancellation_reason = db.Column(db.String(255), nullable=True)
    cancellation_date = db.Column(db.DateTime, nullable=True)
    cancelled_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    feedback_rating = db.Column(db.Integer, nullable=True)
    feedback_comment = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = db.relationship("User", foreign_keys=[user_id])
    coach = db.relationship("Coach")
    time_slot = db.relationship("TimeSlot", foreign_keys=[time_slot_id])
    payment = db.relationship("Payment", back_populates="booking", uselist=False)

    __table_args__ = (
        db.CheckConstraint(
            "feedback_rating IS NULL OR (feedback_rating >= 1 AND feedback_rating <= 5)",
            name="ck_bookings_feedback_rating",
        ),
    )
