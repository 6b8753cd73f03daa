from flask import Blueprint, g, jsonify, request

from models.time_slot import SLOT_STATUSES
from security.rbac import require_roles
from services import schedule as schedule_service
from services.errors import ValidationError
from utils.audit import log_event
from utils.auth_context import current_coach
from utils.parsing import parse_date, parse_optional_date, pick_fields
from utils.serializers import coach_summary, slot_to_dict

schedule_bp = Blueprint("schedule", __name__, url_prefix="/schedule")

SLOT_CREATE_FIELDS = ("date", "startTime", "endTime", "duration", "capacity")
SLOT_UPDATE_FIELDS = ("date", "startTime", "endTime", "capacity", "status")
SETTINGS_FIELDS = ("bookingCutoffHours",)


# ---------- COACHES: single slots ----------
@schedule_bp.post("/slot")
@require_roles("COACH")
def create_slot():
    data = pick_fields(request.get_json(silent=True) or {}, SLOT_CREATE_FIELDS)
    slot = schedule_service.create_slot(current_coach(), data)

    log_event("SLOT_CREATE", user_id=g.user.id, entity="time_slot", entity_id=slot.id)
    return jsonify(timeSlot=slot_to_dict(slot)), 201


@schedule_bp.put("/slot/<int:slot_id>")
@require_roles("COACH")
def update_slot(slot_id: int):
    data = pick_fields(request.get_json(silent=True) or {}, SLOT_UPDATE_FIELDS)
    if not data:
        raise ValidationError(f"Nothing to update. Allowed fields: {', '.join(SLOT_UPDATE_FIELDS)}")
    slot = schedule_service.update_slot(current_coach(), slot_id, data)

    log_event("SLOT_UPDATE", user_id=g.user.id, entity="time_slot", entity_id=slot_id, metadata=data)
    return jsonify(timeSlot=slot_to_dict(slot)), 200


@schedule_bp.delete("/slot/<int:slot_id>")
@require_roles("COACH")
def delete_slot(slot_id: int):
    schedule_service.delete_slot(current_coach(), slot_id)

    log_event("SLOT_DELETE", user_id=g.user.id, entity="time_slot", entity_id=slot_id)
    return jsonify(message="Time slot deleted successfully"), 200


@schedule_bp.get("/slots")
@require_roles("COACH")
def my_slots():
    status = request.args.get("status")
    if status and status not in SLOT_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(SLOT_STATUSES)}")
    slots = schedule_service.list_coach_slots(
        current_coach(),
        start_date=parse_optional_date(request.args.get("startDate"), "startDate"),
        end_date=parse_optional_date(request.args.get("endDate"), "endDate"),
        status=status,
    )
    return jsonify(timeSlots=[slot_to_dict(s) for s in slots]), 200


@schedule_bp.post("/block")
@require_roles("COACH")
def block_date():
    data = pick_fields(request.get_json(silent=True) or {}, ("date", "reason"))
    day = parse_date(data.get("date"))
    reason = (data.get("reason") or "").strip() or None
    count = schedule_service.block_date(current_coach(), day, reason)

    log_event("SLOT_BLOCK_DATE", user_id=g.user.id, entity="coach", entity_id=current_coach().id, metadata={"date": day, "blocked": count})
    return jsonify(message=f"Blocked {count} time slots for {day.isoformat()}", blocked=count), 200


@schedule_bp.patch("/settings")
@require_roles("COACH")
def update_settings():
    data = pick_fields(request.get_json(silent=True) or {}, SETTINGS_FIELDS)
    coach = schedule_service.update_settings(current_coach(), data)

    log_event("COACH_SETTINGS_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach.id, metadata=data)
    return jsonify(coach=coach_summary(coach)), 200


# ---------- COACHES: weekly template ----------
@schedule_bp.get("/weekly")
@require_roles("COACH")
def get_weekly():
    return jsonify(weeklySchedule=schedule_service.get_weekly_schedule(current_coach())), 200


@schedule_bp.put("/weekly")
@require_roles("COACH")
def put_weekly():
    data = pick_fields(request.get_json(silent=True) or {}, ("weeklySchedule", "generate"))
    coach = current_coach()
    weekly = schedule_service.set_weekly_schedule(coach, data.get("weeklySchedule"))

    created = skipped = 0
    if data.get("generate", True):
        created, skipped = schedule_service.generate_slots_from_template(coach)

    log_event("SCHEDULE_UPDATE", user_id=g.user.id, entity="coach", entity_id=coach.id, metadata={"created": created, "skipped": skipped})
    return jsonify(weeklySchedule=weekly, created=created, skipped=skipped), 200


@schedule_bp.post("/generate")
@require_roles("COACH")
def generate():
    data = pick_fields(request.get_json(silent=True) or {}, ("weeks",))
    weeks = data.get("weeks")
    if weeks is not None and (isinstance(weeks, bool) or not isinstance(weeks, int) or not 1 <= weeks <= 12):
        raise ValidationError("weeks must be an integer from 1 to 12")
    coach = current_coach()
    created, skipped = schedule_service.generate_slots_from_template(coach, weeks=weeks)

    log_event("SCHEDULE_GENERATE", user_id=g.user.id, entity="coach", entity_id=coach.id, metadata={"created": created, "skipped": skipped})
    return jsonify(created=created, skipped=skipped), 201
