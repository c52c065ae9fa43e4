"""Payments blueprint - /api/create-checkout, /api/verify-payment

Public routes used by guests contributing to a registry item. No login:
contributors don't need a Memora account.
"""

import logging

from flask import Blueprint, jsonify, request

from memora.extensions import db, limiter
from memora.models.item import Item
from memora.services.payment_service import create_checkout_session, verify_checkout_session

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__, url_prefix="/api")


@payments_bp.route("/create-checkout", methods=["POST"])
@limiter.limit("20 per minute")
def create_checkout():
    """Start a Stripe Checkout for a contribution.

    Body: {itemId, amount (cents), contributorName, contributorEmail}
    Returns: {sessionId, url}
    """
    data = request.get_json(silent=True) or {}
    item_id = data.get("itemId")
    amount = data.get("amount")

    if not item_id or amount is None:
        return jsonify({"error": "Missing required fields"}), 400

    item = db.session.get(Item, item_id)
    if item is None:
        return jsonify({"error": "Item not found"}), 404

    try:
        session = create_checkout_session(
            item,
            amount,
            contributor_name=(data.get("contributorName") or "").strip() or None,
            contributor_email=(data.get("contributorEmail") or "").strip() or None,
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception as e:
        logger.error(f"Checkout creation failed for item {item_id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to create checkout session"}), 500

    return jsonify({"sessionId": session.id, "url": session.url})


@payments_bp.route("/verify-payment", methods=["POST"])
@limiter.limit("30 per minute")
def verify_payment():
    """Report a checkout session's outcome and credit it if the webhook hasn't.

    Body: {sessionId}
    """
    data = request.get_json(silent=True) or {}
    payload, status = verify_checkout_session(data.get("sessionId"))
    return jsonify(payload), status
