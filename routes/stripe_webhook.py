import logging

from flask import Blueprint, jsonify, request

from models import db
from services.errors import InvalidSignature
from services.gateway import get_gateway
from services.payments import handle_gateway_event
from utils.audit import log_event

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook_bp.post("/stripe")
def stripe_webhook():
    try:
        event = get_gateway().construct_event(request.get_data(), request.headers.get("Stripe-Signature"))
    except InvalidSignature as exc:
        logger.warning("Rejected webhook: %s", exc.message)
        return jsonify(status="error", message=exc.message), 400

    event_type = event.get("type")
    try:
        outcome = handle_gateway_event(event)
        log_event("WEBHOOK_" + outcome.upper(), entity="gateway_event", entity_id=event.get("id"), metadata={"type": event_type})
    except Exception:
        # the gateway only needs an acknowledgement; failures are ours to investigate
        db.session.rollback()
        logger.exception("Webhook %s (%s) could not be applied", event.get("id"), event_type)

    return jsonify(received=True), 200
