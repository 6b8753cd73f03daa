import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from flask import current_app
from sqlalchemy import case, update

from models import atomic, db
from models.booking import BOOKING_STATUSES, Booking
from models.coach import Coach
from models.time_slot import TimeSlot
from services import payments
from services.availability import is_bookable
from services.booking_state import apply_transition, plan_transition
from services.errors import (
    Conflict,
    Forbidden,
    GatewayError,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    ValidationError,
)
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

get_booking_or_404 = payments.get_booking_or_404


@dataclass
class BookingResult:
    booking: Booking
    payment: Optional[object] = None


@dataclass
class CancellationResult:
    booking: Booking
    refund_processed: bool = False
    refund_error: Optional[str] = None


def compute_payment_amount(hourly_rate, duration_minutes: int) -> Decimal:
    amount = Decimal(hourly_rate) * Decimal(duration_minutes) / Decimal(60)
    return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _coach_of(user):
    return Coach.query.filter_by(user_id=user.id).first()


def is_booking_coach(user, booking: Booking) -> bool:
    coach = _coach_of(user)
    return coach is not None and coach.id == booking.coach_id


def _can_view(user, booking: Booking) -> bool:
    return (
        user.has_role("ADMIN")
        or booking.user_id == user.id
        or is_booking_coach(user, booking)
    )


def claim_slot(slot_id: int, booking_id: int, now) -> bool:
    """
    Take one place on the slot if it is still open. The WHERE clause is the
    guard: of two racing requests only one sees rowcount == 1.
    """
    result = db.session.execute(
        update(TimeSlot)
        .where(
            TimeSlot.id == slot_id,
            TimeSlot.status == "available",
            TimeSlot.booked_count < TimeSlot.capacity,
        )
        .values(
            booked_count=TimeSlot.booked_count + 1,
            booking_id=case((TimeSlot.capacity == 1, booking_id), else_=TimeSlot.booking_id),
            status=case((TimeSlot.booked_count + 1 >= TimeSlot.capacity, "booked"), else_="available"),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def create_booking(user, coach_id: int, time_slot_id: int, now=None) -> BookingResult:
    now = now or utcnow()

    coach = db.session.get(Coach, coach_id)
    if not coach:
        raise NotFound("Coach not found")
    if not coach.is_approved:
        raise PreconditionFailed("Coach is not approved for bookings", code="coach_not_approved")

    slot = db.session.get(TimeSlot, time_slot_id)
    if not slot or slot.coach_id != coach.id:
        raise NotFound("Time slot not found")
    if slot.status != "available" or slot.booked_count >= slot.capacity:
        raise Conflict("Time slot is not available", code="slot_unavailable")
    if not is_bookable(slot, coach.booking_cutoff_hours, now):
        raise Conflict(
            f"Booking cutoff passed: sessions must be booked at least "
            f"{coach.booking_cutoff_hours} hours in advance",
            code="cutoff_passed",
        )

    booking = Booking(
        user_id=user.id,
        coach_id=coach.id,
        time_slot_id=slot.id,
        status="pending",
        payment_status="pending",
        payment_amount=compute_payment_amount(coach.hourly_rate, slot.duration),
        created_at=now,
        updated_at=now,
    )

    with atomic():
        db.session.add(booking)
        db.session.flush()
        if not claim_slot(slot.id, booking.id, now):
            raise Conflict("Time slot was just booked by someone else", code="slot_unavailable")
    db.session.refresh(slot)

    try:
        payment = payments.create_intent(booking)
    except GatewayError:
        # give the slot back rather than leave it held by an unpayable booking
        logger.exception("Payment intent failed for booking %s; releasing slot", booking.id)
        intent = plan_transition(booking, "cancelled", reason="Payment could not be initiated", now=now)
        with atomic():
            apply_transition(booking, intent)
        raise

    logger.info("Booking %s created for slot %s by user %s", booking.id, slot.id, user.id)
    return BookingResult(booking=booking, payment=payment)


def get_booking(booking_id: int, user) -> Booking:
    booking = get_booking_or_404(booking_id)
    if not _can_view(user, booking):
        raise Forbidden("You are not authorized to access this booking")
    return booking


def list_user_bookings(user, status=None):
    q = Booking.query.filter_by(user_id=user.id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Booking.created_at.desc()).all()


def list_coach_bookings(coach, status=None):
    q = Booking.query.filter_by(coach_id=coach.id)
    if status:
        q = q.filter_by(status=status)
    return q.order_by(Booking.created_at.desc()).all()


def cancel_booking(booking_id: int, user, reason=None, now=None) -> CancellationResult:
    now = now or utcnow()
    booking = get_booking_or_404(booking_id)

    if not (booking.user_id == user.id or is_booking_coach(user, booking) or user.has_role("ADMIN")):
        raise Forbidden("You are not authorized to cancel this booking")

    intent = plan_transition(booking, "cancelled", actor_id=user.id, reason=reason, now=now)
    with atomic():
        apply_transition(booking, intent)

    result = CancellationResult(booking=booking)
    if booking.payment_status == "paid" and current_app.config.get("REFUND_ON_CANCEL", True):
        try:
            payments.refund_booking(booking, reason=reason, actor_id=user.id, now=now)
            result.refund_processed = True
        except GatewayError as exc:
            # the cancellation stands; the refund can be retried by an admin
            logger.warning("Refund failed for cancelled booking %s: %s", booking.id, exc.message)
            result.refund_error = exc.message
    elif booking.payment_status == "pending":
        try:
            payments.void_intent(booking)
        except GatewayError as exc:
            # usually captured meanwhile; the capture event refunds it
            logger.warning("Could not void intent for cancelled booking %s: %s", booking.id, exc.message)
    return result


def update_status(booking_id: int, user, status: str, reason=None, now=None):
    """
    Coach (or admin) driven status change. Cancellation goes through
    cancel_booking so a paid booking is refunded.
    """
    booking = get_booking_or_404(booking_id)
    if not (is_booking_coach(user, booking) or user.has_role("ADMIN")):
        raise Forbidden("Only the booking's coach can change its status")

    if status not in BOOKING_STATUSES:
        raise InvalidTransition(booking.status, str(status))
    if status == "cancelled":
        return cancel_booking(booking_id, user, reason=reason, now=now).booking

    intent = plan_transition(booking, status, actor_id=user.id, reason=reason, now=now)
    with atomic():
        apply_transition(booking, intent)
    return booking


def leave_feedback(booking_id: int, user, rating, comment=None) -> Booking:
    booking = get_booking_or_404(booking_id)
    if booking.user_id != user.id:
        raise Forbidden("Only the client who booked can leave feedback")
    if booking.status != "completed":
        raise PreconditionFailed("Feedback is only accepted for completed sessions", code="not_completed")
    if booking.feedback_rating is not None:
        raise PreconditionFailed("Feedback already submitted", code="feedback_exists")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError("rating must be an integer from 1 to 5")
    if comment is not None and not isinstance(comment, str):
        raise ValidationError("comment must be text")

    with atomic():
        booking.feedback_rating = rating
        booking.feedback_comment = (comment or "").strip() or None
    return booking
