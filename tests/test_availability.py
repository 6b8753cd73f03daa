from datetime import date, datetime, timedelta

import pytest

from models import db
from services.availability import available_slots, resolve_window
from services.errors import NotFound, ValidationError
from conftest import make_coach, make_slot

MONDAY = date(2030, 1, 7)
MONDAY_MIDNIGHT = datetime(2030, 1, 7, 0, 0)


def _times(slots):
    return [(s.date, s.start_time) for s in slots]


def test_only_bookable_slots_are_listed(app):
    coach = make_coach(cutoff_hours=12)
    make_slot(coach, MONDAY, "11:00", "12:00")           # 11h away: inside cutoff
    make_slot(coach, MONDAY, "12:00", "13:00")           # exactly 12h away
    make_slot(coach, MONDAY + timedelta(days=1), "09:00", "10:00")
    make_slot(coach, MONDAY + timedelta(days=1), "10:00", "11:00", status="booked", booked_count=1)
    make_slot(coach, MONDAY + timedelta(days=2), "09:00", "10:00", status="cancelled")
    make_slot(coach, MONDAY + timedelta(days=6), "17:00", "18:00")
    make_slot(coach, MONDAY + timedelta(days=7), "09:00", "10:00")  # next week

    _, slots = available_slots(coach.id, now=MONDAY_MIDNIGHT)

    assert _times(slots) == [
        (MONDAY, "12:00"),
        (MONDAY + timedelta(days=1), "09:00"),
        (MONDAY + timedelta(days=6), "17:00"),
    ]


def test_listing_is_ordered_by_date_then_start(app):
    coach = make_coach(cutoff_hours=0)
    make_slot(coach, MONDAY + timedelta(days=2), "08:00", "09:00")
    make_slot(coach, MONDAY + timedelta(days=1), "15:00", "16:00")
    make_slot(coach, MONDAY + timedelta(days=1), "07:30", "08:30")

    _, slots = available_slots(coach.id, now=MONDAY_MIDNIGHT)

    assert _times(slots) == [
        (MONDAY + timedelta(days=1), "07:30"),
        (MONDAY + timedelta(days=1), "15:00"),
        (MONDAY + timedelta(days=2), "08:00"),
    ]


def test_partly_booked_group_slot_is_still_offered(app):
    coach = make_coach(cutoff_hours=0)
    make_slot(coach, MONDAY + timedelta(days=1), capacity=3, booked_count=2)

    _, slots = available_slots(coach.id, now=MONDAY_MIDNIGHT)

    assert len(slots) == 1
    assert slots[0].remaining_spots == 1


def test_unapproved_or_unknown_coach_is_not_found(app):
    pending = make_coach(status="pending")
    make_slot(pending, MONDAY + timedelta(days=1))

    with pytest.raises(NotFound):
        available_slots(pending.id, now=MONDAY_MIDNIGHT)
    with pytest.raises(NotFound):
        available_slots(999, now=MONDAY_MIDNIGHT)


def test_inactive_coach_is_not_listed(app):
    coach = make_coach()
    coach.is_active = False
    db.session.commit()

    with pytest.raises(NotFound):
        available_slots(coach.id, now=MONDAY_MIDNIGHT)


@pytest.mark.parametrize("start,end,today,expected", [
    (None, None, date(2030, 1, 9), (date(2030, 1, 9), date(2030, 1, 13))),
    (None, None, date(2030, 1, 13), (date(2030, 1, 13), date(2030, 1, 13))),
    (date(2030, 1, 15), None, date(2030, 1, 9), (date(2030, 1, 15), date(2030, 1, 20))),
    (date(2030, 1, 15), date(2030, 1, 16), date(2030, 1, 9), (date(2030, 1, 15), date(2030, 1, 16))),
])
def test_window_defaults(app, start, end, today, expected):
    assert resolve_window(start, end, today=today) == expected


def test_window_must_be_ordered_and_bounded(app):
    with pytest.raises(ValidationError):
        resolve_window(date(2030, 1, 10), date(2030, 1, 9), today=MONDAY)
    with pytest.raises(ValidationError):
        resolve_window(date(2030, 1, 1), date(2030, 3, 1), today=MONDAY)


def test_availability_endpoint(app, future_day):
    coach = make_coach(hourly_rate="60.00")
    make_slot(coach, future_day, "10:00", "11:30")
    make_slot(coach, future_day, "14:00", "15:00")
    make_slot(coach, future_day + timedelta(days=1), "10:00", "11:00")

    resp = app.test_client().get(
        f"/availability?coachId={coach.id}&startDate={future_day.isoformat()}"
        f"&endDate={(future_day + timedelta(days=1)).isoformat()}"
    )

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["coachId"] == coach.id
    assert body["hourlyRate"] == "60.00"
    assert body["bookingCutoffHours"] == 12
    assert [s["startTime"] for s in body["slots"]] == ["10:00", "14:00", "10:00"]
    assert body["slots"][0]["hourlyRate"] == "60.00"
    assert body["slots"][0]["duration"] == 90
    assert len(body["byDate"][future_day.isoformat()]) == 2


@pytest.mark.parametrize("query", [
    "",
    "coachId=abc",
    "coachId=1&startDate=2030-13-01",
])
def test_availability_endpoint_validation(app, query):
    make_coach()

    resp = app.test_client().get(f"/availability?{query}")

    assert resp.status_code == 400


def test_availability_for_pending_coach_is_404(app):
    coach = make_coach(status="pending")

    resp = app.test_client().get(f"/availability?coachId={coach.id}")

    assert resp.status_code == 404
    assert resp.get_json()["code"] == "not_found"
