from flask import Blueprint, g, jsonify, request

from models.booking import BOOKING_STATUSES
from security.rbac import login_required, require_roles
from services import bookings as booking_service
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import current_coach
from utils.parsing import parse_id
from utils.serializers import booking_to_dict

booking_bp = Blueprint("booking", __name__, url_prefix="/bookings")


def _status_filter():
    status = request.args.get("status")
    if status and status not in BOOKING_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(BOOKING_STATUSES)}")
    return status


def _reason(data):
    reason = data.get("reason")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be text")
    return (reason or "").strip() or None


# ---------- CLIENTS: book a slot ----------
@booking_bp.post("")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    if "status" in data and data["status"] != "pending":
        raise ValidationError("New bookings always start as pending")
    coach_id = parse_id(data.get("coachId"), "coachId")
    time_slot_id = parse_id(data.get("timeSlotId"), "timeSlotId")

    result = booking_service.create_booking(g.user, coach_id, time_slot_id)
    booking, payment = result.booking, result.payment

    log_event(
        "BOOKING_CREATE", user_id=g.user.id, entity="booking", entity_id=booking.id,
        metadata={"time_slot_id": time_slot_id, "payment_id": payment.id},
    )
    return jsonify(
        booking=booking_to_dict(booking),
        paymentIntent={"id": payment.gateway_payment_intent_id, "clientSecret": payment.gateway_client_secret},
    ), 201


@booking_bp.get("/me")
@login_required
def my_bookings():
    rows = booking_service.list_user_bookings(g.user, status=_status_filter())
    return jsonify(bookings=[booking_to_dict(b) for b in rows]), 200


# ---------- COACHES: bookings for my sessions ----------
@booking_bp.get("/coach")
@require_roles("COACH")
def coach_bookings():
    rows = booking_service.list_coach_bookings(current_coach(), status=_status_filter())
    return jsonify(bookings=[booking_to_dict(b) for b in rows]), 200


@booking_bp.get("/<int:booking_id>")
@login_required
def get_booking(booking_id: int):
    booking = booking_service.get_booking(booking_id, g.user)
    return jsonify(booking=booking_to_dict(booking)), 200


@booking_bp.patch("/<int:booking_id>/status")
@require_roles("COACH")
def update_booking_status(booking_id: int):
    data = request.get_json(silent=True) or {}
    status = data.get("status")
    if not isinstance(status, str) or not status:
        raise ValidationError("status required")

    booking = booking_service.update_status(booking_id, g.user, status, reason=_reason(data))

    log_event("BOOKING_STATUS", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata={"status": status})
    return jsonify(booking=booking_to_dict(booking)), 200


@booking_bp.patch("/cancel/<int:booking_id>")
@login_required
def cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = _reason(data)

    result = booking_service.cancel_booking(booking_id, g.user, reason=reason)

    log_event(
        "BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id,
        metadata={"reason": reason, "refunded": result.refund_processed, "refund_error": result.refund_error},
    )
    return jsonify(
        booking=booking_to_dict(result.booking),
        refundProcessed=result.refund_processed,
        refundError=result.refund_error,
    ), 200


@booking_bp.post("/<int:booking_id>/feedback")
@login_required
def leave_feedback(booking_id: int):
    data = request.get_json(silent=True) or {}
    booking = booking_service.leave_feedback(booking_id, g.user, data.get("rating"), data.get("comment"))

    log_event("BOOKING_FEEDBACK", user_id=g.user.id, entity="booking", entity_id=booking_id, metadata={"rating": booking.feedback_rating})
    return jsonify(booking=booking_to_dict(booking)), 200
