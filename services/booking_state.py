"""
Booking and payment status rules.

A status change is planned first (pure, no I/O) and then applied. The plan
carries both the booking changes and the slot mutation they imply, so the two
writes always happen together inside one transaction.
"""
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy import case, null, update

from models import db
from models.booking import Booking
from models.time_slot import TimeSlot
from services.errors import InvalidTransition
from utils.time_utils import utcnow

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled", "no-show"},
    "completed": set(),
    "cancelled": set(),
    "no-show": set(),
}

PAYMENT_TRANSITIONS = {
    "pending": {"paid", "failed"},
    "paid": {"refunded"},
    "failed": {"paid"},  # manual retry
    "refunded": set(),
}

RELEASE = "release"
OCCUPY = "occupy"


@dataclass(frozen=True)
class SlotMutation:
    slot_id: int
    booking_id: int
    action: str  # RELEASE or OCCUPY


@dataclass(frozen=True)
class TransitionIntent:
    booking_id: int
    from_status: str
    to_status: str
    booking_fields: dict = field(default_factory=dict)
    slot: Optional[SlotMutation] = None


def can_transition(from_status: str, to_status: str) -> bool:
    return to_status in BOOKING_TRANSITIONS.get(from_status, ())


def check_payment_transition(from_status: str, to_status: str) -> None:
    if to_status not in PAYMENT_TRANSITIONS.get(from_status, ()):
        raise InvalidTransition(from_status, to_status, kind="payment")


def plan_transition(booking, to_status: str, actor_id=None, reason=None, now=None) -> TransitionIntent:
    from_status = booking.status
    if not can_transition(from_status, to_status):
        raise InvalidTransition(from_status, to_status)

    now = now or utcnow()
    fields = {"updated_at": now}
    slot = None

    if to_status == "cancelled":
        fields.update(
            cancellation_reason=reason,
            cancellation_date=now,
            cancelled_by=actor_id,
        )
        slot = SlotMutation(booking.time_slot_id, booking.id, RELEASE)
    elif to_status == "confirmed":
        slot = SlotMutation(booking.time_slot_id, booking.id, OCCUPY)

    return TransitionIntent(
        booking_id=booking.id,
        from_status=from_status,
        to_status=to_status,
        booking_fields=fields,
        slot=slot,
    )


def _release_slot(mutation: SlotMutation, now):
    # a blocked (cancelled) slot stays blocked, everything else reopens
    return db.session.execute(
        update(TimeSlot)
        .where(TimeSlot.id == mutation.slot_id, TimeSlot.booked_count > 0)
        .values(
            booked_count=TimeSlot.booked_count - 1,
            booking_id=case(
                (TimeSlot.booking_id == mutation.booking_id, null()),
                else_=TimeSlot.booking_id,
            ),
            status=case(
                (TimeSlot.status == "cancelled", "cancelled"),
                else_="available",
            ),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def _occupy_slot(mutation: SlotMutation, now):
    return db.session.execute(
        update(TimeSlot)
        .where(TimeSlot.id == mutation.slot_id, TimeSlot.status != "cancelled")
        .values(
            status=case(
                (TimeSlot.booked_count >= TimeSlot.capacity, "booked"),
                else_=TimeSlot.status,
            ),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )


def apply_transition(booking, intent: TransitionIntent) -> None:
    """
    Write a planned transition. Must run inside a transaction (see models.atomic);
    the booking row only moves if it is still in ``intent.from_status``.
    """
    result = db.session.execute(
        update(Booking)
        .where(Booking.id == intent.booking_id, Booking.status == intent.from_status)
        .values(status=intent.to_status, **intent.booking_fields)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.session.expire(booking)
        raise InvalidTransition(intent.from_status, intent.to_status)

    if intent.slot is not None:
        now = intent.booking_fields.get("updated_at") or utcnow()
        if intent.slot.action == RELEASE:
            _release_slot(intent.slot, now)
        else:
            _occupy_slot(intent.slot, now)
        # reload so callers see the new counters
        db.session.get(TimeSlot, intent.slot.slot_id, populate_existing=True)

    db.session.expire(booking)
