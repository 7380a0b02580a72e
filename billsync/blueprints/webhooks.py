"""Webhooks blueprint — /stripe/webhooks

Receives Stripe webhook events. The raw body is required for signature
verification, so nothing reads request.json here.

Response codes drive Stripe's redelivery:
- 400: signature verification failed (never processed)
- 200: applied, ignored, or failed in a way a redelivery can't fix
- 500: retryable failure, Stripe will redeliver
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from billsync.errors import VerificationError
from billsync.services.reconciliation import ApplyResult, apply_event
from billsync.services.signature import verify_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/stripe")


@webhooks_bp.route("/webhooks", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body bytes (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to apply_event (idempotent via stripe_events + last_event_id)
    4. Acknowledge unless the failure is worth a redelivery
    """
    payload = request.get_data()
    sig_header = request.headers.get("Stripe-Signature")

    # --- Verify signature ---
    try:
        event = verify_event(
            payload,
            sig_header,
            current_app.config["STRIPE_WEBHOOK_SECRET"],
            current_app.config["STRIPE_WEBHOOK_TOLERANCE"],
        )
    except VerificationError as e:
        logger.warning(f"Webhook signature verification failed: {e.message}")
        return jsonify({"error": "Invalid signature"}), 400

    # --- Process event (idempotent) ---
    try:
        result = apply_event(event)
    except Exception:
        logger.error(f"Unexpected error processing {event.id}", exc_info=True)
        return jsonify({"error": "processing failed"}), 500

    if result.outcome == ApplyResult.FAILED and result.retryable:
        logger.error(f"Webhook processing failed for {event.id}: {result.reason}")
        return jsonify({"error": "processing failed"}), 500

    return jsonify({"received": True, **result.to_dict()}), 200
