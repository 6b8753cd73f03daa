"""
Payment reconciliation: keeps Payment.status and Booking.payment_status in
line with what the gateway reports. Every status change is idempotent so
duplicated webhook deliveries are harmless.
"""
import logging

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import atomic, db
from models.booking import Booking
from models.payment import Payment
from services.booking_state import (
    apply_transition,
    can_transition,
    check_payment_transition,
    plan_transition,
)
from services.errors import (
    Forbidden,
    GatewayError,
    InvalidTransition,
    NotFound,
    PreconditionFailed,
    ValidationError,
)
from services.gateway import from_minor_units, get_gateway, to_minor_units
from utils.time_utils import utcnow

logger = logging.getLogger(__name__)

INTENT_SUCCEEDED = "payment_intent.succeeded"
INTENT_FAILED = "payment_intent.payment_failed"


def get_booking_or_404(booking_id: int) -> Booking:
    booking = db.session.get(Booking, booking_id)
    if not booking:
        raise NotFound("Booking not found")
    return booking


def payment_for(booking: Booking):
    return Payment.query.filter_by(booking_id=booking.id).first()


def _require_owner(booking: Booking, user) -> None:
    if booking.user_id != user.id:
        raise Forbidden("Unauthorized access to this booking")


def create_intent(booking: Booking) -> Payment:
    """
    Ask the gateway for a payment intent covering booking.payment_amount and
    persist the booking's single Payment row. An intent that is still pending
    is reused rather than replaced.
    """
    payment = payment_for(booking)
    if payment and payment.status == "pending" and payment.gateway_payment_intent_id:
        return payment

    if booking.payment_status != "pending":
        raise PreconditionFailed(f"Payment already {booking.payment_status}", code="payment_not_pending")
    if booking.status not in ("pending", "confirmed"):
        raise PreconditionFailed(f"Booking is {booking.status}", code="booking_not_payable")

    currency = current_app.config.get("PAYMENT_CURRENCY", "cad")
    intent = get_gateway().create_intent(
        amount=booking.payment_amount,
        currency=currency,
        metadata={
            "bookingId": str(booking.id),
            "coachId": str(booking.coach_id),
            "userId": str(booking.user_id),
        },
        idempotency_key=f"booking-{booking.id}-intent",
    )

    try:
        with atomic():
            if payment is None:
                payment = Payment(
                    booking_id=booking.id,
                    amount=booking.payment_amount,
                    currency=currency,
                    status="pending",
                )
                db.session.add(payment)
            payment.gateway_payment_intent_id = intent.id
            payment.gateway_client_secret = intent.client_secret
    except IntegrityError:
        # a concurrent request stored the row first; the idempotency key gave it the same intent
        payment = payment_for(booking)
        if payment is None:
            raise

    logger.info("Payment intent %s stored for booking %s", intent.id, booking.id)
    return payment


def _current(booking: Booking) -> Booking:
    """Re-read the booking row, locked until commit where the database supports it."""
    return db.session.get(Booking, booking.id, populate_existing=True, with_for_update=True)


def mark_succeeded(booking: Booking, payment=None, now=None) -> bool:
    """Returns False when the booking was already paid (duplicate delivery)."""
    now = now or utcnow()
    booking = _current(booking)
    if booking.payment_status == "paid":
        return False
    check_payment_transition(booking.payment_status, "paid")

    intent = None
    if booking.status == "pending":
        intent = plan_transition(booking, "confirmed", now=now)
    elif booking.status != "confirmed":
        logger.warning("Payment captured for booking %s in status %s", booking.id, booking.status)

    try:
        with atomic():
            if payment is not None:
                payment.status = "succeeded"
                payment.paid_at = now
            booking.payment_status = "paid"
            booking.payment_date = now
            if intent is not None:
                apply_transition(booking, intent)
    except InvalidTransition:
        # the other path (webhook or client confirmation) got there first
        if _current(booking).payment_status == "paid":
            return False
        raise

    if booking.status == "cancelled":
        _refund_late_capture(booking, now)
    return True


def mark_failed(booking: Booking, payment=None, now=None) -> bool:
    """Returns False when the failure was already recorded."""
    now = now or utcnow()
    booking = _current(booking)
    if booking.payment_status == "failed":
        return False
    check_payment_transition(booking.payment_status, "failed")

    intent = None
    if can_transition(booking.status, "cancelled"):
        intent = plan_transition(booking, "cancelled", reason="Payment failed", now=now)

    try:
        with atomic():
            if payment is not None:
                payment.status = "failed"
            booking.payment_status = "failed"
            if intent is not None:
                apply_transition(booking, intent)
    except InvalidTransition:
        if _current(booking).payment_status == "failed":
            return False
        raise
    return True


def _refund_late_capture(booking: Booking, now) -> None:
    if not current_app.config.get("REFUND_ON_CANCEL", True):
        logger.warning("Booking %s was paid after cancellation; refund it manually", booking.id)
        return
    try:
        refund_booking(booking, reason="Payment captured after cancellation", now=now)
    except GatewayError as exc:
        logger.warning("Automatic refund failed for booking %s: %s", booking.id, exc.message)


def void_intent(booking: Booking) -> bool:
    """
    Cancel the open gateway intent of a booking that was cancelled before
    payment, so a late card confirmation cannot capture it. Returns False
    when there is no open intent.
    """
    payment = payment_for(booking)
    if booking.payment_status != "pending" or payment is None or not payment.gateway_payment_intent_id:
        return False
    get_gateway().cancel_intent(payment.gateway_payment_intent_id, idempotency_key=f"booking-{booking.id}-void")
    logger.info("Payment intent %s voided for booking %s", payment.gateway_payment_intent_id, booking.id)
    return True


def refund_booking(booking: Booking, reason=None, actor_id=None, now=None) -> Payment:
    """
    Refund a paid booking through the gateway, then record the refund and
    cancel the booking (releasing its slot) in one transaction.
    """
    now = now or utcnow()
    check_payment_transition(booking.payment_status, "refunded")

    payment = payment_for(booking)
    if payment is None or not payment.gateway_payment_intent_id:
        raise PreconditionFailed("No captured payment to refund", code="no_payment")

    intent = None
    if booking.status != "cancelled":
        intent = plan_transition(booking, "cancelled", actor_id=actor_id, reason=reason, now=now)

    refund = get_gateway().refund(
        payment.gateway_payment_intent_id,
        payment.amount,
        idempotency_key=f"booking-{booking.id}-refund",
    )

    with atomic():
        payment.status = "refunded"
        payment.refund_amount = from_minor_units(refund.amount)
        payment.refund_reason = reason
        payment.refund_date = now
        payment.gateway_refund_id = refund.id
        booking.payment_status = "refunded"
        if intent is not None:
            apply_transition(booking, intent)

    logger.info("Booking %s refunded (%s)", booking.id, refund.id)
    return payment


def _check_amount(booking: Booking, gateway_amount) -> None:
    if gateway_amount is not None and gateway_amount != to_minor_units(booking.payment_amount):
        raise GatewayError(
            f"Gateway amount {gateway_amount} does not match booking {booking.id}",
            code="amount_mismatch",
        )


def confirm_payment(booking_id: int, user, payment_intent_id: str, now=None) -> Booking:
    booking = get_booking_or_404(booking_id)
    _require_owner(booking, user)

    if not payment_intent_id:
        raise ValidationError("paymentIntentId required")
    payment = payment_for(booking)
    if payment is None or payment.gateway_payment_intent_id != payment_intent_id:
        raise NotFound("Payment not found for this booking")

    intent = get_gateway().retrieve_intent(payment_intent_id)
    if intent.status != "succeeded":
        raise PreconditionFailed(f"Payment not successful. Status: {intent.status}", code="payment_not_succeeded")
    _check_amount(booking, intent.amount)

    mark_succeeded(booking, payment, now=now)
    return booking


def handle_gateway_event(event, now=None) -> str:
    """
    Apply a verified gateway event. Returns a short outcome label
    (applied, duplicate, ignored, unmatched) for logging.
    """
    event_type = event.get("type")
    if event_type not in (INTENT_SUCCEEDED, INTENT_FAILED):
        return "ignored"

    obj = event["data"]["object"]
    intent_id = obj.get("id")
    meta = obj.get("metadata") or {}

    payment = Payment.query.filter_by(gateway_payment_intent_id=intent_id).first() if intent_id else None
    booking = payment.booking if payment else None
    if booking is None and str(meta.get("bookingId") or "").isdigit():
        booking = db.session.get(Booking, int(meta["bookingId"]))
        payment = payment_for(booking) if booking else None
    if booking is None:
        logger.warning("Gateway event %s for unknown intent %s", event_type, intent_id)
        return "unmatched"

    if event_type == INTENT_SUCCEEDED:
        _check_amount(booking, obj.get("amount"))
        changed = mark_succeeded(booking, payment, now=now)
    else:
        changed = mark_failed(booking, payment, now=now)
    return "applied" if changed else "duplicate"


def payment_history(user):
    return (
        Payment.query
        .join(Booking, Payment.booking_id == Booking.id)
        .filter(Booking.user_id == user.id)
        .order_by(Payment.created_at.desc())
        .all()
    )


def coach_payments(coach):
    return (
        Payment.query
        .join(Booking, Payment.booking_id == Booking.id)
        .filter(Booking.coach_id == coach.id)
        .order_by(Payment.created_at.desc())
        .all()
    )
