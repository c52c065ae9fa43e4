"""Calendar blueprint - /api/calendar/events

The calendar shows registry events and calendar-only entries
(registry_enabled=False). Only calendar-only entries can be edited or
deleted here.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required
from memora.extensions import db
from memora.models.event import Event
from memora.services.calendar_service import (
    create_calendar_event,
    get_events_in_range,
    parse_range,
    update_calendar_event,
)
from memora.utils.validation import is_valid_uuid

logger = logging.getLogger(__name__)

calendar_bp = Blueprint("calendar", __name__, url_prefix="/api/calendar")


@calendar_bp.route("/events", methods=["GET"])
@api_login_required
def index():
    """Query: startDate, endDate (YYYY-MM-DD, at most 366 days apart)."""
    try:
        start, end = parse_range(
            request.args.get("startDate"), request.args.get("endDate")
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    events = get_events_in_range(current_user.id, start, end)
    return jsonify({"events": events, "count": len(events)})


@calendar_bp.route("/events", methods=["POST"])
@api_login_required
def create():
    """Body: {title, event_date, event_type, is_recurring, description?}"""
    data = request.get_json(silent=True) or {}
    try:
        event = create_calendar_event(current_user.id, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "event": event.to_dict()}), 201


def _calendar_event_for_owner(event_id):
    """Return (event, error_response) for an owned calendar-only event."""
    if not is_valid_uuid(event_id):
        return None, (jsonify({"error": "Invalid event ID format"}), 400)

    event = Event.query.filter_by(id=event_id, registry_enabled=False).first()
    if event is None:
        return None, (jsonify({"error": "Event not found"}), 404)
    if event.user_id != current_user.id:
        return None, (jsonify({"error": "Forbidden: You do not own this event"}), 403)
    return event, None


@calendar_bp.route("/events/<event_id>", methods=["PUT"])
@api_login_required
def update(event_id):
    event, error = _calendar_event_for_owner(event_id)
    if error:
        return error

    data = request.get_json(silent=True) or {}
    try:
        event = update_calendar_event(event, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "event": event.to_dict()})


@calendar_bp.route("/events/<event_id>", methods=["DELETE"])
@api_login_required
def delete(event_id):
    event, error = _calendar_event_for_owner(event_id)
    if error:
        return error

    title = event.title
    db.session.delete(event)
    db.session.commit()
    logger.info(f"Calendar event {event_id} deleted by {current_user.id}")
    return jsonify({"success": True, "message": f'Event "{title}" deleted successfully'})
