from datetime import date, datetime, timedelta

import pytest

from models.time_slot import TimeSlot
from services import schedule
from services.bookings import cancel_booking, create_booking
from services.errors import PreconditionFailed, ValidationError
from conftest import client_for, make_coach, make_slot, make_user, reload

MONDAY = date(2030, 1, 7)


def _slot_body(day, **overrides):
    body = {"date": day.isoformat(), "startTime": "10:00", "endTime": "11:00"}
    body.update(overrides)
    return body


def test_coach_creates_slot(app, future_day):
    coach = make_coach(cutoff_hours=24)

    resp = client_for(app, coach.user).post("/schedule/slot", json=_slot_body(future_day, capacity=4))

    assert resp.status_code == 201
    slot = resp.get_json()["timeSlot"]
    assert slot["status"] == "available"
    assert slot["duration"] == 60
    assert slot["capacity"] == 4
    assert slot["bookedCount"] == 0
    assert slot["remainingSpots"] == 4
    assert slot["bookingCutoffHours"] == 24


@pytest.mark.parametrize("overrides", [
    {"startTime": "9:00"},
    {"endTime": "25:00"},
    {"startTime": "11:00", "endTime": "10:00"},
    {"startTime": "10:00", "endTime": "10:10"},
    {"startTime": "10:00", "endTime": "13:30"},
    {"duration": 45},
    {"capacity": 0},
    {"date": "07/01/2030"},
    {"court": 3},
])
def test_slot_creation_validation(app, future_day, overrides):
    coach = make_coach()

    resp = client_for(app, coach.user).post("/schedule/slot", json=_slot_body(future_day, **overrides))

    assert resp.status_code == 400
    assert resp.get_json()["status"] == "error"
    assert TimeSlot.query.count() == 0


def test_overlapping_slot_is_rejected(app, future_day):
    coach = make_coach()
    make_slot(coach, future_day, "10:00", "11:00")
    http = client_for(app, coach.user)

    resp = http.post("/schedule/slot", json=_slot_body(future_day, startTime="10:30", endTime="11:30"))
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "slot_overlap"

    # touching windows do not overlap
    resp = http.post("/schedule/slot", json=_slot_body(future_day, startTime="11:00", endTime="12:00"))
    assert resp.status_code == 201


def test_slot_inside_cutoff_cannot_be_created(app):
    coach = make_coach(cutoff_hours=12)

    with pytest.raises(ValidationError) as exc:
        schedule.create_slot(coach, _slot_body(MONDAY), now=datetime(2030, 1, 7, 0, 0))

    assert exc.value.code == "inside_cutoff"


def test_unapproved_coach_cannot_create_slots(app, future_day):
    coach = make_coach(status="pending")

    resp = client_for(app, coach.user).post("/schedule/slot", json=_slot_body(future_day))

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "coach_not_approved"


def test_clients_cannot_manage_slots(app, future_day):
    resp = client_for(app, make_user()).post("/schedule/slot", json=_slot_body(future_day))

    assert resp.status_code == 403


def test_capacity_cannot_drop_below_bookings(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day, capacity=3)
    create_booking(make_user("a@example.com"), coach.id, slot.id)
    create_booking(make_user("b@example.com"), coach.id, slot.id)

    resp = client_for(app, coach.user).put(f"/schedule/slot/{slot.id}", json={"capacity": 1})

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "capacity_below_bookings"
    slot = reload(slot)
    assert slot.capacity == 3
    assert slot.booked_count == 2


def test_capacity_down_to_booked_count_fills_slot(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day, capacity=3)
    create_booking(make_user("a@example.com"), coach.id, slot.id)
    create_booking(make_user("b@example.com"), coach.id, slot.id)

    resp = client_for(app, coach.user).put(f"/schedule/slot/{slot.id}", json={"capacity": 2})

    assert resp.status_code == 200
    assert resp.get_json()["timeSlot"]["status"] == "booked"


def test_raising_capacity_reopens_full_slot(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day)
    create_booking(make_user(), coach.id, slot.id)

    slot = schedule.update_slot(coach, slot.id, {"capacity": 2})

    assert slot.status == "available"
    assert slot.remaining_spots == 1


def test_booked_slot_cannot_be_forced_open(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day)
    create_booking(make_user(), coach.id, slot.id)

    resp = client_for(app, coach.user).put(f"/schedule/slot/{slot.id}", json={"status": "available"})

    assert resp.status_code == 400
    assert reload(slot).status == "booked"


def test_status_edits(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day)
    booked = make_slot(coach, future_day, "12:00", "13:00")
    create_booking(make_user(), coach.id, booked.id)

    with pytest.raises(ValidationError):
        schedule.update_slot(coach, slot.id, {"status": "booked"})
    with pytest.raises(ValidationError):
        schedule.update_slot(coach, slot.id, {"status": "closed"})
    with pytest.raises(PreconditionFailed):
        schedule.update_slot(coach, booked.id, {"status": "cancelled"})
    with pytest.raises(PreconditionFailed):
        schedule.update_slot(coach, booked.id, {"startTime": "14:00", "endTime": "15:00"})

    assert schedule.update_slot(coach, slot.id, {"status": "cancelled"}).status == "cancelled"
    assert schedule.update_slot(coach, slot.id, {"status": "available"}).status == "available"


def test_moving_an_empty_slot(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day)
    make_slot(coach, future_day, "14:00", "15:00")

    with pytest.raises(ValidationError):
        schedule.update_slot(coach, slot.id, {"startTime": "14:30", "endTime": "15:30"})

    slot = schedule.update_slot(coach, slot.id, {"startTime": "16:00", "endTime": "17:30"})
    assert slot.duration == 90


def test_empty_update_is_rejected(app, future_day):
    coach = make_coach()
    slot = make_slot(coach, future_day)

    resp = client_for(app, coach.user).put(f"/schedule/slot/{slot.id}", json={})

    assert resp.status_code == 400


def test_delete_rules(app, future_day):
    coach = make_coach()
    other = make_coach(email="other@example.com")
    free = make_slot(coach, future_day, "08:00", "09:00")
    free_id = free.id
    taken = make_slot(coach, future_day, "09:00", "10:00")
    create_booking(make_user(), coach.id, taken.id)
    http = client_for(app, coach.user)

    assert http.delete(f"/schedule/slot/{taken.id}").status_code == 400
    assert client_for(app, other.user).delete(f"/schedule/slot/{free_id}").status_code == 403
    assert http.delete("/schedule/slot/999").status_code == 404

    assert http.delete(f"/schedule/slot/{free_id}").status_code == 200
    assert TimeSlot.query.filter_by(id=free_id).first() is None


def test_slot_inside_cutoff_cannot_be_deleted(app):
    coach = make_coach(cutoff_hours=12)
    slot = make_slot(coach, MONDAY, "10:00", "11:00")

    with pytest.raises(PreconditionFailed) as exc:
        schedule.delete_slot(coach, slot.id, now=datetime(2030, 1, 7, 1, 0))

    assert exc.value.code == "inside_cutoff"


def test_slot_with_booking_history_is_not_deleted(app, future_day, foreign_keys):
    coach = make_coach()
    client = make_user()
    slot = make_slot(coach, future_day, "10:00", "11:00")
    never_booked = make_slot(coach, future_day, "12:00", "13:00")
    never_booked_id = never_booked.id
    booking = create_booking(client, coach.id, slot.id).booking
    cancel_booking(booking.id, client)
    assert reload(slot).status == "available"
    http = client_for(app, coach.user)

    resp = http.delete(f"/schedule/slot/{slot.id}")

    assert resp.status_code == 400
    assert resp.get_json()["code"] == "slot_has_history"
    assert TimeSlot.query.filter_by(id=slot.id).count() == 1

    assert http.put(f"/schedule/slot/{slot.id}", json={"status": "cancelled"}).status_code == 200
    assert reload(slot).status == "cancelled"

    assert http.delete(f"/schedule/slot/{never_booked_id}").status_code == 200
    assert TimeSlot.query.filter_by(id=never_booked_id).first() is None


def test_list_own_slots(app, future_day):
    coach = make_coach()
    make_slot(coach, future_day, "12:00", "13:00")
    make_slot(coach, future_day, "08:00", "09:00", status="cancelled")
    make_slot(make_coach(email="other@example.com"), future_day)
    http = client_for(app, coach.user)

    slots = http.get("/schedule/slots").get_json()["timeSlots"]
    assert [s["startTime"] for s in slots] == ["08:00", "12:00"]

    slots = http.get("/schedule/slots?status=available").get_json()["timeSlots"]
    assert [s["startTime"] for s in slots] == ["12:00"]


def test_block_date_closes_open_slots_only(app, future_day):
    coach = make_coach()
    make_slot(coach, future_day, "08:00", "09:00")
    make_slot(coach, future_day, "09:00", "10:00")
    taken = make_slot(coach, future_day, "10:00", "11:00")
    elsewhere = make_slot(coach, future_day + timedelta(days=1))
    create_booking(make_user(), coach.id, taken.id)

    resp = client_for(app, coach.user).post(
        "/schedule/block", json={"date": future_day.isoformat(), "reason": "Tournament"},
    )

    assert resp.status_code == 200
    assert resp.get_json()["blocked"] == 2
    blocked = TimeSlot.query.filter_by(date=future_day, status="cancelled").all()
    assert {s.cancellation_reason for s in blocked} == {"Tournament"}
    assert reload(taken).status == "booked"
    assert reload(elsewhere).status == "available"


def test_cutoff_setting(app):
    coach = make_coach()
    http = client_for(app, coach.user)

    resp = http.patch("/schedule/settings", json={"bookingCutoffHours": 24})
    assert resp.status_code == 200
    assert resp.get_json()["coach"]["bookingCutoffHours"] == 24

    assert http.patch("/schedule/settings", json={"bookingCutoffHours": 500}).status_code == 400
    assert http.patch("/schedule/settings", json={"bookingCutoffHours": "24"}).status_code == 400
    assert http.patch("/schedule/settings", json={"hourlyRate": 10}).status_code == 400
    assert reload(coach).booking_cutoff_hours == 24


WEEKLY = {
    "monday": [{"startTime": "10:00", "endTime": "11:00"}],
    "wednesday": [{"startTime": "18:00", "endTime": "19:30"}],
}


def test_weekly_template_round_trip(app):
    coach = make_coach()
    http = client_for(app, coach.user)

    resp = http.put("/schedule/weekly", json={"weeklySchedule": WEEKLY, "generate": False})

    assert resp.status_code == 200
    assert resp.get_json()["created"] == 0
    weekly = http.get("/schedule/weekly").get_json()["weeklySchedule"]
    assert weekly["monday"] == [{"startTime": "10:00", "endTime": "11:00"}]
    assert weekly["wednesday"] == [{"startTime": "18:00", "endTime": "19:30"}]
    assert weekly["sunday"] == []
    assert TimeSlot.query.count() == 0


@pytest.mark.parametrize("weekly", [
    {"funday": []},
    {"monday": [{"startTime": "10:00", "endTime": "11:00"}, {"startTime": "10:30", "endTime": "11:30"}]},
    {"monday": [{"startTime": "10:00"}]},
    {"monday": "10:00-11:00"},
    ["monday"],
])
def test_weekly_template_validation(app, weekly):
    coach = make_coach()

    with pytest.raises(ValidationError):
        schedule.set_weekly_schedule(coach, weekly)


def test_generation_is_idempotent(app):
    coach = make_coach(cutoff_hours=12)
    schedule.set_weekly_schedule(coach, WEEKLY)
    now = datetime(2030, 1, 7, 8, 0)  # Monday morning

    created, skipped = schedule.generate_slots_from_template(coach, weeks=2, now=now)

    # this Monday's 10:00 window is already inside the cutoff
    assert (created, skipped) == (3, 1)
    assert [(s.date, s.start_time) for s in schedule.list_coach_slots(coach)] == [
        (date(2030, 1, 9), "18:00"),
        (date(2030, 1, 14), "10:00"),
        (date(2030, 1, 16), "18:00"),
    ]

    assert schedule.generate_slots_from_template(coach, weeks=2, now=now) == (0, 4)
    assert TimeSlot.query.count() == 3


def test_generation_skips_manual_slots(app):
    coach = make_coach(cutoff_hours=0)
    schedule.set_weekly_schedule(coach, WEEKLY)
    make_slot(coach, date(2030, 1, 9), "19:00", "20:00")

    created, skipped = schedule.generate_slots_from_template(coach, weeks=1, now=datetime(2030, 1, 7, 0, 0))

    assert (created, skipped) == (1, 1)


def test_generation_requires_approval(app):
    coach = make_coach(status="pending")
    schedule.set_weekly_schedule(coach, WEEKLY)

    with pytest.raises(PreconditionFailed):
        schedule.generate_slots_from_template(coach, weeks=1)


def test_generate_endpoint_validates_weeks(app):
    coach = make_coach()
    http = client_for(app, coach.user)

    assert http.post("/schedule/generate", json={"weeks": 20}).status_code == 400
    resp = http.post("/schedule/generate", json={"weeks": 1})
    assert resp.status_code == 201
    assert resp.get_json() == {"created": 0, "skipped": 0}
