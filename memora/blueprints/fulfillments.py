"""Fulfillments blueprint - /api/fulfillments

Owners cash out fully funded items through a Stripe transfer to their
Connect account.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required
from memora.models.fulfillment import Fulfillment
from memora.services.fulfillment_service import (
    FulfillmentError,
    create_fulfillment,
    list_fulfillments,
)

logger = logging.getLogger(__name__)

fulfillments_bp = Blueprint("fulfillments", __name__, url_prefix="/api/fulfillments")

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@fulfillments_bp.route("/create", methods=["POST"])
@api_login_required
def create():
    """Body: {itemId, eventId, idempotencyKey, fulfillmentMethod?, notes?}"""
    data = request.get_json(silent=True) or {}
    try:
        result = create_fulfillment(current_user.id, data)
    except FulfillmentError as e:
        return jsonify(e.payload), e.status_code
    except Exception as e:
        logger.error(f"Fulfillment creation failed for {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Internal server error"}), 500
    return jsonify(result), 201


def _int_arg(name, default):
    try:
        return int(request.args.get(name, default))
    except (TypeError, ValueError):
        return default


@fulfillments_bp.route("", methods=["GET"])
@api_login_required
def index():
    """List the caller's fulfillments. Query: status, limit (1..100), offset."""
    status = request.args.get("status")
    if status and status not in Fulfillment.STATUSES:
        return jsonify({"error": "Invalid status filter"}), 400

    limit = min(max(_int_arg("limit", DEFAULT_LIMIT), 1), MAX_LIMIT)
    offset = max(_int_arg("offset", 0), 0)

    rows, total = list_fulfillments(current_user.id, status, limit, offset)
    return jsonify({
        "fulfillments": [f.to_dict() for f in rows],
        "pagination": {
            "total": total,
            "limit": limit,
            "offset": offset,
            "hasMore": offset + len(rows) < total,
        },
    })
