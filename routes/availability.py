from flask import Blueprint, jsonify, request

from services.availability import available_slots
from utils.parsing import parse_id, parse_optional_date
from utils.serializers import money, slot_to_dict

availability_bp = Blueprint("availability", __name__)


@availability_bp.get("/availability")
def get_availability():
    coach_id = parse_id(request.args.get("coachId"), "coachId")
    start_date = parse_optional_date(request.args.get("startDate"), "startDate")
    end_date = parse_optional_date(request.args.get("endDate"), "endDate")

    coach, slots = available_slots(coach_id, start_date, end_date)

    grouped = {}
    for s in slots:
        grouped.setdefault(s.date.isoformat(), []).append(s.id)

    return jsonify(
        coachId=coach.id,
        hourlyRate=money(coach.hourly_rate),
        bookingCutoffHours=coach.booking_cutoff_hours,
        slots=[slot_to_dict(s, hourly_rate=coach.hourly_rate) for s in slots],
        byDate=grouped,
    ), 200
