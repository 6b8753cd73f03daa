from datetime import timedelta

from flask import current_app

from models import db
from models.coach import Coach
from models.time_slot import TimeSlot
from services.errors import NotFound, ValidationError
from utils.time_utils import hours_until, slot_start, utcnow, week_bounds


def get_approved_coach(coach_id: int) -> Coach:
    coach = db.session.get(Coach, coach_id)
    if not coach or not coach.is_approved:
        raise NotFound("Coach not found or not approved")
    return coach


def resolve_window(start_date=None, end_date=None, today=None):
    """
    Default window is today through Sunday of the current week (weeks start on
    Monday). A start date alone runs to the end of that date's week.
    """
    if start_date is None:
        start_date = today
        end_date = end_date or week_bounds(today)[1]
    elif end_date is None:
        end_date = week_bounds(start_date)[1]

    if end_date < start_date:
        raise ValidationError("endDate must not be before startDate")

    max_days = current_app.config.get("MAX_AVAILABILITY_DAYS", 31)
    if (end_date - start_date) > timedelta(days=max_days):
        raise ValidationError(f"Date range may span at most {max_days} days")
    return start_date, end_date


def is_bookable(slot: TimeSlot, cutoff_hours: int, now) -> bool:
    return hours_until(slot_start(slot.date, slot.start_time), now) >= cutoff_hours


def available_slots(coach_id: int, start_date=None, end_date=None, now=None):
    """
    Slots a client can book right now for the coach, ordered by date then start.
    Returns (coach, slots).
    """
    now = now or utcnow()
    coach = get_approved_coach(coach_id)
    start_date, end_date = resolve_window(start_date, end_date, today=now.date())

    slots = (
        TimeSlot.query
        .filter(
            TimeSlot.coach_id == coach.id,
            TimeSlot.status == "available",
            TimeSlot.booked_count < TimeSlot.capacity,
            TimeSlot.date >= start_date,
            TimeSlot.date <= end_date,
        )
        .order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc())
        .all()
    )
    return coach, [s for s in slots if is_bookable(s, coach.booking_cutoff_hours, now)]
