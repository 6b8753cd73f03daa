"""Coach-side management of time slots and the weekly recurring template."""
import logging
from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from models import atomic, db
from models.booking import Booking
from models.schedule import ScheduleEntry
from models.time_slot import SLOT_STATUSES, TimeSlot
from services.errors import Forbidden, NotFound, PreconditionFailed, ValidationError
from utils.parsing import parse_date
from utils.time_utils import (
    WEEKDAY_NAMES,
    hhmm_to_minutes,
    hours_until,
    is_hhmm,
    ranges_overlap,
    slot_start,
    utcnow,
    week_bounds,
)

logger = logging.getLogger(__name__)

MIN_DURATION = 15
MAX_DURATION = 180
MAX_CUTOFF_HOURS = 7 * 24


def validate_window(start_time, end_time) -> int:
    """Check an HH:mm pair and return its length in minutes."""
    if not is_hhmm(start_time) or not is_hhmm(end_time):
        raise ValidationError("Times must use the HH:mm format")
    if end_time <= start_time:
        raise ValidationError("endTime must be after startTime")
    duration = hhmm_to_minutes(end_time) - hhmm_to_minutes(start_time)
    if not MIN_DURATION <= duration <= MAX_DURATION:
        raise ValidationError(f"Duration must be between {MIN_DURATION} and {MAX_DURATION} minutes")
    return duration


def parse_capacity(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("capacity must be an integer of at least 1")
    return value


def find_overlap(coach_id: int, day, start_time: str, end_time: str, exclude_id=None):
    q = TimeSlot.query.filter(
        TimeSlot.coach_id == coach_id,
        TimeSlot.date == day,
        TimeSlot.start_time < end_time,
        TimeSlot.end_time > start_time,
    )
    if exclude_id is not None:
        q = q.filter(TimeSlot.id != exclude_id)
    return q.first()


def _require_approved(coach) -> None:
    if not coach.is_approved:
        raise PreconditionFailed("Coach must be approved to manage time slots", code="coach_not_approved")


def _check_lead_time(coach, day, start_time: str, now) -> None:
    if hours_until(slot_start(day, start_time), now) < coach.booking_cutoff_hours:
        raise ValidationError(
            f"Slots must start at least {coach.booking_cutoff_hours} hours from now",
            code="inside_cutoff",
        )


def _settle_status(slot: TimeSlot) -> None:
    if slot.status != "cancelled":
        slot.status = "booked" if slot.booked_count >= slot.capacity else "available"


def get_owned_slot(coach, slot_id: int) -> TimeSlot:
    slot = db.session.get(TimeSlot, slot_id)
    if not slot:
        raise NotFound("Time slot not found")
    if slot.coach_id != coach.id:
        raise Forbidden("Not authorized to manage this time slot")
    return slot


def create_slot(coach, data: dict, now=None) -> TimeSlot:
    now = now or utcnow()
    _require_approved(coach)

    if not data.get("date") or not data.get("startTime") or not data.get("endTime"):
        raise ValidationError("date, startTime and endTime are required")
    day = parse_date(data["date"])
    start_time, end_time = data["startTime"], data["endTime"]
    duration = validate_window(start_time, end_time)
    if data.get("duration") is not None and data["duration"] != duration:
        raise ValidationError("duration does not match startTime and endTime")
    capacity = parse_capacity(data.get("capacity", 1))

    _check_lead_time(coach, day, start_time, now)
    if find_overlap(coach.id, day, start_time, end_time):
        raise ValidationError("Time slot overlaps with existing slots", code="slot_overlap")

    slot = TimeSlot(
        coach_id=coach.id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        duration=duration,
        capacity=capacity,
        status="available",
        booked_count=0,
        booking_cutoff_hours=coach.booking_cutoff_hours,
    )
    with atomic():
        db.session.add(slot)
    return slot


def update_slot(coach, slot_id: int, data: dict, now=None) -> TimeSlot:
    now = now or utcnow()
    slot = get_owned_slot(coach, slot_id)

    capacity = slot.capacity
    if "capacity" in data:
        capacity = parse_capacity(data["capacity"])
        if capacity < slot.booked_count:
            raise ValidationError(
                f"Capacity cannot be reduced below the {slot.booked_count} existing bookings",
                code="capacity_below_bookings",
            )

    day, start_time, end_time = slot.date, slot.start_time, slot.end_time
    duration = slot.duration
    if any(k in data for k in ("date", "startTime", "endTime")):
        if slot.booked_count > 0:
            raise PreconditionFailed("Cannot move a slot that already has bookings", code="slot_has_bookings")
        if "date" in data:
            day = parse_date(data["date"])
        start_time = data.get("startTime", start_time)
        end_time = data.get("endTime", end_time)
        duration = validate_window(start_time, end_time)
        _check_lead_time(coach, day, start_time, now)
        if find_overlap(coach.id, day, start_time, end_time, exclude_id=slot.id):
            raise ValidationError("Time slot overlaps with existing slots", code="slot_overlap")

    status = slot.status
    if "status" in data:
        status = data["status"]
        if status not in SLOT_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(SLOT_STATUSES)}")
        if status == "booked" and slot.status != "booked":
            raise ValidationError("Slots become booked only through bookings")
        if slot.status == "booked" and status == "available":
            raise ValidationError("A booked slot is released by cancelling its booking", code="slot_booked")
        if status == "cancelled" and slot.booked_count > 0:
            raise PreconditionFailed("Cancel the slot's bookings first", code="slot_has_bookings")

    try:
        with atomic():
            slot.date = day
            slot.start_time = start_time
            slot.end_time = end_time
            slot.duration = duration
            slot.capacity = capacity
            slot.status = status
            if status != "cancelled":
                slot.cancellation_reason = None
            _settle_status(slot)
    except IntegrityError:
        # a booking landed between the check above and the write
        raise ValidationError("Capacity cannot be reduced below existing bookings", code="capacity_below_bookings")
    return slot


def delete_slot(coach, slot_id: int, now=None) -> None:
    now = now or utcnow()
    slot = get_owned_slot(coach, slot_id)

    if slot.status != "available" or slot.booked_count > 0:
        raise PreconditionFailed("Only available slots without bookings can be deleted", code="slot_not_available")
    if hours_until(slot_start(slot.date, slot.start_time), now) < coach.booking_cutoff_hours:
        raise PreconditionFailed("Slot is inside the booking cutoff window", code="inside_cutoff")
    # cancelled bookings still reference the row
    if db.session.query(Booking.query.filter_by(time_slot_id=slot.id).exists()).scalar():
        raise PreconditionFailed(
            "Slot has booking history; set its status to cancelled instead",
            code="slot_has_history",
        )

    try:
        with atomic():
            db.session.delete(slot)
    except IntegrityError:
        # a booking referenced the slot between the check above and the delete
        raise PreconditionFailed("Slot has bookings", code="slot_has_history")


def list_coach_slots(coach, start_date=None, end_date=None, status=None):
    q = TimeSlot.query.filter(TimeSlot.coach_id == coach.id)
    if start_date:
        q = q.filter(TimeSlot.date >= start_date)
    if end_date:
        q = q.filter(TimeSlot.date <= end_date)
    if status:
        q = q.filter(TimeSlot.status == status)
    return q.order_by(TimeSlot.date.asc(), TimeSlot.start_time.asc()).all()


def block_date(coach, day, reason=None) -> int:
    """Close every open, unbooked slot on a date. Returns how many were closed."""
    slots = TimeSlot.query.filter_by(coach_id=coach.id, date=day, status="available", booked_count=0).all()
    with atomic():
        for slot in slots:
            slot.status = "cancelled"
            slot.cancellation_reason = reason or "Blocked by coach"
    return len(slots)


def update_settings(coach, data: dict):
    if "bookingCutoffHours" in data:
        hours = data["bookingCutoffHours"]
        if isinstance(hours, bool) or not isinstance(hours, int) or not 0 <= hours <= MAX_CUTOFF_HOURS:
            raise ValidationError(f"bookingCutoffHours must be an integer from 0 to {MAX_CUTOFF_HOURS}")
        with atomic():
            coach.booking_cutoff_hours = hours
    return coach


def get_weekly_schedule(coach) -> dict:
    schedule = {name: [] for name in WEEKDAY_NAMES}
    entries = (
        ScheduleEntry.query
        .filter_by(coach_id=coach.id)
        .order_by(ScheduleEntry.weekday.asc(), ScheduleEntry.start_time.asc())
        .all()
    )
    for e in entries:
        schedule[WEEKDAY_NAMES[e.weekday]].append({"startTime": e.start_time, "endTime": e.end_time})
    return schedule


def _parse_weekly(weekly) -> list:
    if not isinstance(weekly, dict):
        raise ValidationError("weeklySchedule must be an object keyed by weekday")
    unknown = sorted(set(weekly) - set(WEEKDAY_NAMES))
    if unknown:
        raise ValidationError(f"Unknown weekdays: {', '.join(unknown)}")

    rows = []
    for weekday, name in enumerate(WEEKDAY_NAMES):
        windows = weekly.get(name) or []
        if not isinstance(windows, list):
            raise ValidationError(f"{name} must be a list of windows")
        seen = []
        for w in windows:
            if not isinstance(w, dict):
                raise ValidationError(f"{name} windows must have startTime and endTime")
            start_time, end_time = w.get("startTime"), w.get("endTime")
            validate_window(start_time, end_time)
            if any(ranges_overlap(s, e, start_time, end_time) for s, e in seen):
                raise ValidationError(f"Overlapping windows on {name}", code="slot_overlap")
            seen.append((start_time, end_time))
            rows.append((weekday, start_time, end_time))
    return rows


def set_weekly_schedule(coach, weekly) -> dict:
    rows = _parse_weekly(weekly)
    with atomic():
        ScheduleEntry.query.filter_by(coach_id=coach.id).delete()
        for weekday, start_time, end_time in rows:
            db.session.add(ScheduleEntry(
                coach_id=coach.id,
                weekday=weekday,
                start_time=start_time,
                end_time=end_time,
            ))
    return get_weekly_schedule(coach)


def generate_slots_from_template(coach, weeks=None, now=None):
    """
    Materialise the weekly template from Monday of the current week onwards.
    Windows already inside the cutoff, or overlapping an existing slot, are
    skipped, so running this again for the same weeks creates nothing new.
    Returns (created, skipped).
    """
    now = now or utcnow()
    _require_approved(coach)
    weeks = weeks or current_app.config.get("SLOT_GENERATION_WEEKS", 4)
    entries = ScheduleEntry.query.filter_by(coach_id=coach.id).all()
    monday = week_bounds(now.date())[0]

    created, skipped = 0, 0
    with atomic():
        for week in range(weeks):
            for entry in entries:
                day = monday + timedelta(days=week * 7 + entry.weekday)
                if hours_until(slot_start(day, entry.start_time), now) < coach.booking_cutoff_hours:
                    skipped += 1
                    continue
                if find_overlap(coach.id, day, entry.start_time, entry.end_time):
                    skipped += 1
                    continue
                db.session.add(TimeSlot(
                    coach_id=coach.id,
                    date=day,
                    start_time=entry.start_time,
                    end_time=entry.end_time,
                    duration=validate_window(entry.start_time, entry.end_time),
                    capacity=1,
                    status="available",
                    booked_count=0,
                    booking_cutoff_hours=coach.booking_cutoff_hours,
                ))
                db.session.flush()
                created += 1

    logger.info("Generated %s slots for coach %s (%s skipped)", created, coach.id, skipped)
    return created, skipped
