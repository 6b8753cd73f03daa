from flask import Blueprint, g, jsonify, request

from security.rbac import login_required, require_roles
from services import payments as payment_service
from services.errors import Forbidden
from utils.audit import log_event
from utils.auth_context import current_coach
from utils.parsing import parse_id
from utils.serializers import booking_to_dict, payment_to_dict

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


@payments_bp.post("/create-payment-intent/<int:booking_id>")
@login_required
def create_payment_intent(booking_id: int):
    booking = payment_service.get_booking_or_404(booking_id)
    if booking.user_id != g.user.id:
        raise Forbidden("Unauthorized access to this booking")

    payment = payment_service.create_intent(booking)

    log_event("PAYMENT_INTENT_CREATED", user_id=g.user.id, entity="payment", entity_id=payment.id, metadata={"intent": payment.gateway_payment_intent_id})
    return jsonify(clientSecret=payment.gateway_client_secret, paymentId=payment.id), 200


@payments_bp.post("/confirm-payment/<int:booking_id>")
@login_required
def confirm_payment(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = payment_service.confirm_payment(booking_id, g.user, data.get("paymentIntentId"))

    log_event("PAYMENT_CONFIRMED", user_id=g.user.id, entity="booking", entity_id=booking.id)
    return jsonify(booking=booking_to_dict(booking)), 200


# ---------- ADMIN: refund ----------
@payments_bp.post("/refund")
@require_roles("ADMIN")
def refund_payment():
    data = request.get_json(silent=True) or {}
    booking = payment_service.get_booking_or_404(parse_id(data.get("bookingId"), "bookingId"))
    reason = (data.get("reason") or "").strip() or "Refunded by admin"

    payment = payment_service.refund_booking(booking, reason=reason, actor_id=g.user.id)

    log_event("PAYMENT_REFUNDED", user_id=g.user.id, entity="payment", entity_id=payment.id, metadata={"reason": reason, "refund": payment.gateway_refund_id})
    return jsonify(booking=booking_to_dict(booking), payment=payment_to_dict(payment)), 200


@payments_bp.get("/history")
@login_required
def payment_history():
    rows = payment_service.payment_history(g.user)
    return jsonify(payments=[payment_to_dict(p) for p in rows]), 200


@payments_bp.get("/coach")
@require_roles("COACH")
def coach_payments():
    rows = payment_service.coach_payments(current_coach())
    return jsonify(payments=[payment_to_dict(p) for p in rows]), 200
