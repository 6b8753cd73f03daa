"""JSON shapes returned by the API (camelCase keys). Money goes out as a
decimal string with two places, e.g. "50.00".
"""
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def _iso(value):
    return value.isoformat() if value else None


def money(value):
    if value is None:
        return None
    return str(Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP))


def slot_to_dict(slot, hourly_rate=None):
    out = {
        "id": slot.id,
        "coachId": slot.coach_id,
        "date": slot.date.isoformat(),
        "startTime": slot.start_time,
        "endTime": slot.end_time,
        "duration": slot.duration,
        "status": slot.status,
        "capacity": slot.capacity,
        "bookedCount": slot.booked_count,
        "remainingSpots": slot.remaining_spots,
        "bookingCutoffHours": slot.booking_cutoff_hours,
        "bookingId": slot.booking_id,
        "cancellationReason": slot.cancellation_reason,
    }
    if hourly_rate is not None:
        out["hourlyRate"] = money(hourly_rate)
    return out


def coach_summary(coach):
    return {
        "id": coach.id,
        "name": coach.user.full_name if coach.user else None,
        "hourlyRate": money(coach.hourly_rate),
        "status": coach.status,
        "bookingCutoffHours": coach.booking_cutoff_hours,
    }


def booking_to_dict(booking):
    feedback = None
    if booking.feedback_rating is not None:
        feedback = {"rating": booking.feedback_rating, "comment": booking.feedback_comment}

    return {
        "id": booking.id,
        "userId": booking.user_id,
        "coach": coach_summary(booking.coach) if booking.coach else {"id": booking.coach_id},
        "timeSlot": slot_to_dict(booking.time_slot) if booking.time_slot else {"id": booking.time_slot_id},
        "status": booking.status,
        "paymentStatus": booking.payment_status,
        "paymentAmount": money(booking.payment_amount),
        "paymentDate": _iso(booking.payment_date),
        "cancellationReason": booking.cancellation_reason,
        "cancellationDate": _iso(booking.cancellation_date),
        "cancelledBy": booking.cancelled_by,
        "feedback": feedback,
        "createdAt": _iso(booking.created_at),
        "updatedAt": _iso(booking.updated_at),
    }


def payment_to_dict(payment):
    refund = None
    if payment.gateway_refund_id:
        refund = {
            "amount": money(payment.refund_amount),
            "reason": payment.refund_reason,
            "date": _iso(payment.refund_date),
            "gatewayRefundId": payment.gateway_refund_id,
        }
    return {
        "id": payment.id,
        "bookingId": payment.booking_id,
        "amount": money(payment.amount),
        "currency": payment.currency,
        "status": payment.status,
        "paymentIntentId": payment.gateway_payment_intent_id,
        "refundDetails": refund,
        "createdAt": _iso(payment.created_at),
        "paidAt": _iso(payment.paid_at),
    }
