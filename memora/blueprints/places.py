"""Places blueprint - /api/places/*

Thin proxy over Google Places so the API key never reaches the browser.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from memora.extensions import limiter
from memora.services.places_service import (
    PlacesError,
    PlacesNotConfigured,
    autocomplete as places_autocomplete,
    fetch_photo,
    place_details,
)

logger = logging.getLogger(__name__)

places_bp = Blueprint("places", __name__, url_prefix="/api/places")

MIN_QUERY_LENGTH = 3


def _places_error(e):
    body = {"error": e.message}
    if e.status:
        body["status"] = e.status
    return jsonify(body), 500


@places_bp.route("/autocomplete", methods=["GET"])
@limiter.limit("60 per minute")
def autocomplete():
    text = request.args.get("input", "")
    if len(text) < MIN_QUERY_LENGTH:
        return jsonify({
            "error": f"Search query must be at least {MIN_QUERY_LENGTH} characters"
        }), 400

    try:
        predictions, status = places_autocomplete(text)
    except PlacesNotConfigured as e:
        return jsonify({"error": str(e)}), 500
    except PlacesError as e:
        return _places_error(e)
    return jsonify({"predictions": predictions, "status": status})


@places_bp.route("/details", methods=["GET"])
def details():
    place_id = request.args.get("place_id")
    if not place_id:
        return jsonify({"error": "place_id is required"}), 400

    try:
        place = place_details(place_id)
    except PlacesNotConfigured as e:
        return jsonify({"error": str(e)}), 500
    except PlacesError as e:
        return _places_error(e)
    return jsonify({"place": place})


@places_bp.route("/photo", methods=["GET"])
def photo():
    photo_reference = request.args.get("photo_reference")
    if not photo_reference:
        return jsonify({"error": "photo_reference is required"}), 400

    try:
        data, content_type = fetch_photo(
            photo_reference, request.args.get("maxwidth") or "400"
        )
    except PlacesNotConfigured as e:
        return jsonify({"error": str(e)}), 500
    except PlacesError as e:
        return _places_error(e)

    return Response(
        data,
        mimetype=content_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
