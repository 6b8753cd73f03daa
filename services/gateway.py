"""
Thin wrapper around Stripe PaymentIntents, Refunds and webhook verification.

The core only sees GatewayIntent/GatewayRefund values and our own error types;
a different gateway (or a fake in tests) can be installed in
app.extensions["payment_gateway"].
"""
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import stripe
from flask import current_app

from services.errors import GatewayError, InvalidSignature

logger = logging.getLogger(__name__)

EXTENSION_KEY = "payment_gateway"


@dataclass(frozen=True)
class GatewayIntent:
    id: str
    client_secret: Optional[str]
    status: str
    amount: int


@dataclass(frozen=True)
class GatewayRefund:
    id: str
    status: str
    amount: int


def to_minor_units(amount) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount) / 100).quantize(Decimal("0.01"))


def _intent_value(intent) -> GatewayIntent:
    return GatewayIntent(
        id=intent["id"],
        client_secret=intent["client_secret"],
        status=intent["status"],
        amount=intent["amount"],
    )


class StripeGateway:
    def __init__(self, api_key=None, webhook_secret=None, max_retries=3):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.max_retries = max_retries

    def _prepare(self):
        if not self.api_key:
            raise GatewayError("Stripe secret key missing (STRIPE_SECRET_KEY)", code="gateway_not_configured")
        stripe.api_key = self.api_key
        stripe.max_network_retries = self.max_retries

    def create_intent(self, amount, currency: str, metadata: dict, idempotency_key: str) -> GatewayIntent:
        self._prepare()
        try:
            intent = stripe.PaymentIntent.create(
                amount=to_minor_units(amount),
                currency=currency,
                metadata=metadata,
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe intent creation failed key=%s: %s", idempotency_key, exc)
            raise GatewayError(f"Payment gateway error: {exc.user_message or exc}")
        return _intent_value(intent)

    def retrieve_intent(self, intent_id: str) -> GatewayIntent:
        self._prepare()
        try:
            intent = stripe.PaymentIntent.retrieve(intent_id)
        except stripe.StripeError as exc:
            logger.warning("Stripe intent lookup failed id=%s: %s", intent_id, exc)
            raise GatewayError(f"Payment gateway error: {exc.user_message or exc}")
        return _intent_value(intent)

    def cancel_intent(self, intent_id: str, idempotency_key: str) -> GatewayIntent:
        """Void an uncaptured intent. Stripe refuses once the intent has succeeded."""
        self._prepare()
        try:
            intent = stripe.PaymentIntent.cancel(intent_id, idempotency_key=idempotency_key)
        except stripe.StripeError as exc:
            logger.warning("Stripe intent cancel failed id=%s: %s", intent_id, exc)
            raise GatewayError(f"Payment gateway error: {exc.user_message or exc}")
        return _intent_value(intent)

    def refund(self, intent_id: str, amount, idempotency_key: str) -> GatewayRefund:
        self._prepare()
        try:
            refund = stripe.Refund.create(
                payment_intent=intent_id,
                amount=to_minor_units(amount),
                reason="requested_by_customer",
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe refund failed intent=%s: %s", intent_id, exc)
            raise GatewayError(f"Refund failed: {exc.user_message or exc}")
        if refund["status"] not in ("succeeded", "pending"):
            raise GatewayError(f"Refund not accepted by gateway (status {refund['status']})")
        return GatewayRefund(id=refund["id"], status=refund["status"], amount=refund["amount"])

    def construct_event(self, payload: bytes, signature: str):
        if not self.webhook_secret:
            raise InvalidSignature("Webhook secret not configured")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as exc:
            raise InvalidSignature(f"Invalid webhook signature: {exc}")


def init_gateway(app):
    app.extensions[EXTENSION_KEY] = StripeGateway(
        api_key=app.config.get("STRIPE_SECRET_KEY"),
        webhook_secret=app.config.get("STRIPE_WEBHOOK_SECRET"),
        max_retries=app.config.get("GATEWAY_MAX_RETRIES", 3),
    )


def get_gateway():
    return current_app.extensions[EXTENSION_KEY]
