"""
Shared fixtures: an app on in-memory SQLite, a fake payment gateway in place
of Stripe, and small factories for users, coaches and slots.
"""
import json
import secrets
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import text

from app import create_app
from models import db
from models.coach import Coach
from models.session import Session
from models.time_slot import TimeSlot
from models.user import User
from security.password import hash_password
from security.session import hash_token
from services.errors import GatewayError, InvalidSignature
from services.gateway import EXTENSION_KEY, GatewayIntent, GatewayRefund, to_minor_units
from utils.seed import ensure_role
from utils.time_utils import utcnow

VALID_SIGNATURE = "valid-signature"

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "AUTO_CREATE_TABLES": True,
    "BCRYPT_ROUNDS": 4,
    "STRIPE_SECRET_KEY": None,
    "STRIPE_WEBHOOK_SECRET": None,
    "LOG_LEVEL": "WARNING",
}


class FakeGateway:
    """In-memory stand-in for StripeGateway with the same method surface."""

    def __init__(self):
        self.intents = {}
        self.refunds = []
        self.fail_create = False
        self.fail_refund = False

    def _as_intent(self, intent_id):
        data = self.intents[intent_id]
        return GatewayIntent(
            id=intent_id,
            client_secret=f"{intent_id}_secret",
            status=data["status"],
            amount=data["amount"],
        )

    def create_intent(self, amount, currency, metadata, idempotency_key):
        if self.fail_create:
            raise GatewayError("Payment gateway error: unavailable")
        for intent_id, data in self.intents.items():
            if data["key"] == idempotency_key:
                return self._as_intent(intent_id)
        intent_id = f"pi_test_{len(self.intents) + 1}"
        self.intents[intent_id] = {
            "key": idempotency_key,
            "amount": to_minor_units(amount),
            "currency": currency,
            "metadata": metadata,
            "status": "requires_payment_method",
        }
        return self._as_intent(intent_id)

    def retrieve_intent(self, intent_id):
        if intent_id not in self.intents:
            raise GatewayError(f"No such payment_intent: {intent_id}")
        return self._as_intent(intent_id)

    def cancel_intent(self, intent_id, idempotency_key):
        if self.intents[intent_id]["status"] == "succeeded":
            raise GatewayError("This PaymentIntent's status is succeeded and cannot be canceled")
        self.intents[intent_id]["status"] = "canceled"
        return self._as_intent(intent_id)

    def refund(self, intent_id, amount, idempotency_key):
        if self.fail_refund:
            raise GatewayError("Refund failed: card issuer unavailable")
        refund = GatewayRefund(id=f"re_test_{len(self.refunds) + 1}", status="succeeded", amount=to_minor_units(amount))
        self.refunds.append((intent_id, refund, idempotency_key))
        return refund

    def construct_event(self, payload, signature):
        if signature != VALID_SIGNATURE:
            raise InvalidSignature("Invalid webhook signature")
        return json.loads(payload)

    # helpers for tests
    def succeed(self, intent_id):
        self.intents[intent_id]["status"] = "succeeded"

    def event(self, intent_id, event_type="payment_intent.succeeded", amount=None):
        data = self.intents[intent_id]
        return {
            "id": f"evt_{event_type}_{intent_id}",
            "type": event_type,
            "data": {"object": {
                "id": intent_id,
                "amount": data["amount"] if amount is None else amount,
                "metadata": data["metadata"],
            }},
        }


@pytest.fixture
def app():
    app = create_app(TEST_CONFIG)
    app.extensions[EXTENSION_KEY] = FakeGateway()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def foreign_keys(app):
    """SQLite leaves foreign keys unchecked unless asked; other databases always check."""
    with db.engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
    assert db.session.execute(text("PRAGMA foreign_keys")).scalar() == 1
    yield
    db.session.rollback()
    # the slot/booking reference cycle would block drop_all
    with db.engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")


@pytest.fixture
def gateway(app):
    return app.extensions[EXTENSION_KEY]


@pytest.fixture
def future_day():
    return (utcnow() + timedelta(days=7)).date()


def make_user(email="client@example.com", roles=("CLIENT",), full_name="Test Client"):
    user = User(email=email, password_hash=hash_password("password123"), full_name=full_name)
    for name in roles:
        user.roles.append(ensure_role(name))
    db.session.add(user)
    db.session.commit()
    return user


def make_coach(email="coach@example.com", hourly_rate="50.00", status="approved", cutoff_hours=12):
    user = make_user(email=email, roles=("COACH",), full_name="Test Coach")
    coach = Coach(user_id=user.id, hourly_rate=Decimal(hourly_rate), status=status, booking_cutoff_hours=cutoff_hours)
    db.session.add(coach)
    db.session.commit()
    return coach


def make_slot(coach, day, start_time="10:00", end_time="11:00", capacity=1, status="available", booked_count=0):
    slot = TimeSlot(
        coach_id=coach.id,
        date=day,
        start_time=start_time,
        end_time=end_time,
        duration=int(end_time[:2]) * 60 + int(end_time[3:]) - int(start_time[:2]) * 60 - int(start_time[3:]),
        capacity=capacity,
        status=status,
        booked_count=booked_count,
        booking_cutoff_hours=coach.booking_cutoff_hours,
    )
    db.session.add(slot)
    db.session.commit()
    return slot


def client_for(app, user):
    """A test client carrying a valid session cookie for ``user``."""
    token = secrets.token_urlsafe(16)
    db.session.add(Session(
        user_id=user.id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(hours=1),
    ))
    db.session.commit()
    client = app.test_client()
    client.set_cookie(app.config["AUTH_COOKIE_NAME"], token)
    return client


def reload(obj):
    return db.session.get(type(obj), obj.id, populate_existing=True)
