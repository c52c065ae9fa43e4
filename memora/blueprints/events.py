"""Events blueprint - /api/events/*

Route Map:
  POST   /api/events                       - create a registry event
  PATCH  /api/events/<id>                  - update location / theme (owner)
  GET    /api/events/<id>/ics              - calendar download (public)
  GET    /api/events/<id>/members          - owner + members
  DELETE /api/events/<id>/members          - remove a member (owner, or self)
  GET    /api/events/join/<code>           - invite preview (public)
  POST   /api/events/join/<code>           - join by invite code
  GET    /api/events/<id>/reminders        - list reminders (owner)
  POST   /api/events/<id>/reminders        - schedule a reminder (owner)
  DELETE /api/events/<id>/reminders?reminder_id=...
"""

import logging

from flask import Blueprint, Response, current_app, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required, event_owner_required
from memora.extensions import db
from memora.models.event import Event, EventReminder
from memora.services.event_service import (
    create_event,
    list_members,
    remove_member,
    update_event_details,
)
from memora.services.ics_service import build_event_ics, safe_filename
from memora.services.invitation_service import (
    InvitationError,
    get_event_by_code,
    join_event,
    owner_name,
)
from memora.services.reminder_service import create_reminder

logger = logging.getLogger(__name__)

events_bp = Blueprint("events", __name__, url_prefix="/api/events")


# ──────────────────────────────────────────────
# Events
# ──────────────────────────────────────────────

@events_bp.route("", methods=["POST"])
@api_login_required
def create():
    data = request.get_json(silent=True) or {}
    try:
        event = create_event(current_user.id, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "event": event.to_dict()}), 201


@events_bp.route("/<event_id>", methods=["PATCH"])
@api_login_required
def update(event_id):
    """Update an event's location and/or theme. Owner only."""
    data = request.get_json(silent=True) or {}

    event = db.session.get(Event, event_id)
    if event is None or event.user_id != current_user.id:
        return jsonify({"error": "Permission denied or event not found."}), 403

    try:
        event = update_event_details(event, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "event": event.to_dict()})


@events_bp.route("/<event_id>/ics", methods=["GET"])
def download_ics(event_id):
    """All-day .ics file for adding the event to a calendar."""
    event = db.session.get(Event, event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404
    if not event.event_date:
        return jsonify({"error": "Event has no date set"}), 400

    event_url = None
    if event.slug:
        event_url = f"{current_app.config['APP_BASE_URL'].rstrip('/')}/event/{event.slug}"

    return Response(
        build_event_ics(event, event_url),
        mimetype="text/calendar",
        headers={
            "Content-Type": "text/calendar; charset=utf-8",
            "Content-Disposition": f'attachment; filename="{safe_filename(event.title)}.ics"',
        },
    )


# ──────────────────────────────────────────────
# Members
# ──────────────────────────────────────────────

@events_bp.route("/<event_id>/members", methods=["GET"])
def members(event_id):
    event = db.session.get(Event, event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404
    return jsonify(list_members(event))


@events_bp.route("/<event_id>/members", methods=["DELETE"])
@api_login_required
def delete_member(event_id):
    """Body: {memberUserId}. Owner removes anyone; members may leave."""
    data = request.get_json(silent=True) or {}
    member_user_id = data.get("memberUserId")
    if not member_user_id:
        return jsonify({"error": "Missing required fields"}), 400

    event = db.session.get(Event, event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404

    try:
        remove_member(event, current_user.id, member_user_id)
    except PermissionError as e:
        return jsonify({"error": str(e)}), 403
    except LookupError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"success": True, "message": "Member removed"})


@events_bp.route("/join/<code>", methods=["GET"])
def join_preview(code):
    try:
        event = get_event_by_code(code)
    except InvitationError as e:
        return jsonify(e.payload), e.status_code

    return jsonify({
        "event": {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "event_date": event.event_date.isoformat() if event.event_date else None,
            "slug": event.slug,
            "owner_name": owner_name(event),
        }
    })


@events_bp.route("/join/<code>", methods=["POST"])
@api_login_required
def join(code):
    try:
        event = join_event(code, current_user)
    except InvitationError as e:
        return jsonify(e.payload), e.status_code

    return jsonify({
        "success": True,
        "eventId": event.id,
        "eventTitle": event.title,
        "slug": event.slug,
        "message": "Successfully joined the event!",
    })


# ──────────────────────────────────────────────
# Reminders
# ──────────────────────────────────────────────

@events_bp.route("/<event_id>/reminders", methods=["GET"])
@event_owner_required
def list_reminders(event):
    reminders = event.reminders.order_by(EventReminder.scheduled_for.asc()).all()
    return jsonify({
        "reminders": [r.to_dict() for r in reminders],
        "eventDate": event.event_date.isoformat() if event.event_date else None,
    })


@events_bp.route("/<event_id>/reminders", methods=["POST"])
@event_owner_required
def add_reminder(event):
    """Body: {reminder_type, send_to_members?}"""
    data = request.get_json(silent=True) or {}
    try:
        reminder = create_reminder(
            event,
            current_user.id,
            data.get("reminder_type"),
            send_to_members=data.get("send_to_members", True),
        )
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"reminder": reminder.to_dict()}), 201


@events_bp.route("/<event_id>/reminders", methods=["DELETE"])
@event_owner_required
def delete_reminder(event):
    reminder_id = request.args.get("reminder_id")
    if not reminder_id:
        return jsonify({"error": "reminder_id is required"}), 400

    reminder = event.reminders.filter_by(id=reminder_id).first()
    if reminder is None:
        return jsonify({"error": "Reminder not found"}), 404

    db.session.delete(reminder)
    db.session.commit()
    return jsonify({"success": True})
