"""Webhooks blueprint - /api/webhook

Receives Stripe webhook events. Raw body is required for signature
verification, so nothing here may parse the request as JSON first.
"""

import logging

from flask import Blueprint, request, jsonify

from memora.services.stripe_service import verify_webhook_signature, handle_webhook_event

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api")


@webhooks_bp.route("/webhook", methods=["POST"])
def stripe_webhook():
    """Receive and process Stripe webhook events.

    1. Get raw body (required for signature verification)
    2. Verify signature with STRIPE_WEBHOOK_SECRET
    3. Pass to handle_webhook_event (idempotent via webhook_events_processed)
    4. Return 200 to acknowledge receipt
    """
    payload = request.get_data(as_text=True)
    sig_header = request.headers.get("Stripe-Signature")

    if not sig_header:
        logger.warning("Webhook received without Stripe-Signature header")
        return jsonify({"error": "Invalid signature"}), 400

    # --- Verify signature ---
    try:
        event = verify_webhook_signature(payload, sig_header)
    except Exception as e:
        logger.warning(f"Webhook signature verification failed: {e}")
        return jsonify({"error": "Invalid signature"}), 400

    # --- Process event (idempotent) ---
    success, message, status = handle_webhook_event(event)

    if success:
        if message == "duplicate":
            return jsonify({"received": True, "duplicate": True}), 200
        return jsonify({"received": True}), 200

    logger.error(f"Webhook processing failed: {message}")
    return jsonify({"error": message}), status
