"""Google Places proxy - keeps the API key on the server."""

import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
DETAIL_FIELDS = "name,formatted_address,geometry,photos,rating,types"
MAX_PREDICTIONS = 5
MAX_PHOTOS = 3


class PlacesNotConfigured(Exception):
    pass


class PlacesError(Exception):
    """Google answered with a non-OK status or could not be reached."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.message = message
        self.status = status


def _api_key():
    key = current_app.config.get("GOOGLE_PLACES_API_KEY")
    if not key:
        logger.error("GOOGLE_PLACES_API_KEY not configured")
        raise PlacesNotConfigured("Places API not configured")
    return key


def _get_json(endpoint, params):
    try:
        resp = requests.get(f"{PLACES_API_BASE}/{endpoint}/json", params=params, timeout=10)
        return resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Google Places {endpoint} request failed: {e}")
        raise PlacesError("Internal server error")


def autocomplete(text):
    """Return (predictions, google_status). At most five predictions."""
    data = _get_json("autocomplete", {"input": text, "key": _api_key()})
    status = data.get("status")
    if status not in ("OK", "ZERO_RESULTS"):
        logger.error(f"Google Places API error: {status} {data.get('error_message')}")
        raise PlacesError("Failed to fetch places", status)
    return (data.get("predictions") or [])[:MAX_PREDICTIONS], status


def place_details(place_id):
    data = _get_json(
        "details",
        {"place_id": place_id, "key": _api_key(), "fields": DETAIL_FIELDS},
    )
    status = data.get("status")
    if status != "OK":
        logger.error(f"Google Places Details error: {status} {data.get('error_message')}")
        raise PlacesError("Failed to fetch place details", status)

    place = data.get("result") or {}
    location = (place.get("geometry") or {}).get("location") or {}
    return {
        "place_id": place_id,
        "name": place.get("name"),
        "formatted_address": place.get("formatted_address"),
        "geometry": {"lat": location.get("lat"), "lng": location.get("lng")},
        "photos": [
            {
                "photo_reference": p.get("photo_reference"),
                "width": p.get("width"),
                "height": p.get("height"),
            }
            for p in (place.get("photos") or [])[:MAX_PHOTOS]
        ],
        "rating": place.get("rating"),
        "types": place.get("types"),
    }


def fetch_photo(photo_reference, max_width="400"):
    """Return (image_bytes, content_type)."""
    try:
        resp = requests.get(
            f"{PLACES_API_BASE}/photo",
            params={
                "photo_reference": photo_reference,
                "maxwidth": max_width,
                "key": _api_key(),
            },
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error(f"Google Places photo request failed: {e}")
        raise PlacesError("Internal server error")

    if not resp.ok:
        logger.error(f"Google Places Photo error: {resp.status_code}")
        raise PlacesError("Failed to fetch photo")
    return resp.content, resp.headers.get("Content-Type") or "image/jpeg"
