from models.db import db
from utils.time_utils import utcnow

PAYMENT_RECORD_STATUSES = ("pending", "succeeded", "failed", "refunded")


class Payment(db.Model):
    __tablename__ = "payments"

    id = db.Column(db.Integer, primary_key=True)
    # one payment record per booking
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), nullable=False, unique=True, index=True)

    provider = db.Column(db.String(20), nullable=False, default="STRIPE")
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(10), nullable=False, default="cad")

    status = db.Column(db.String(20), nullable=False, default="pending")
    gateway_payment_intent_id = db.Column(db.String(255), nullable=True, unique=True, index=True)
    gateway_client_secret = db.Column(db.String(255), nullable=True)

    refund_amount = db.Column(db.Numeric(10, 2), nullable=True)
    refund_reason = db.Column(db.String(255), nullable=True)
    refund_date = db.Column(db.DateTime, nullable=True)
    gateway_refund_id = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)

    booking = db.relationship("Booking", back_populates="payment")
