"""
Custom route decorators for access control.

- api_login_required: bearer-token auth for JSON routes. Distinguishes a
  missing Authorization header from a token Supabase refuses.
- event_owner_required: api_login_required + the <event_id> in the URL must
  belong to the caller. The loaded Event is passed as `event`.
"""

from functools import wraps

from flask import jsonify, request
from flask_login import current_user

from memora.extensions import db


def api_login_required(f):
    """Require a valid Supabase bearer token."""

    @wraps(f)
    def decorated(*args, **kwargs):
        if not request.headers.get("Authorization", "").startswith("Bearer "):
            return jsonify({"error": "Unauthorized"}), 401
        if not current_user.is_authenticated:
            return jsonify({"error": "Invalid or expired token"}), 401
        return f(*args, **kwargs)

    return decorated


def event_owner_required(f):
    """Require login + ownership of the event named by <event_id>."""

    @wraps(f)
    @api_login_required
    def decorated(event_id, *args, **kwargs):
        from memora.models.event import Event

        event = db.session.get(Event, event_id)
        if event is None:
            return jsonify({"error": "Event not found"}), 404
        if event.user_id != current_user.id:
            return jsonify({"error": "Only the event owner can do this"}), 403
        return f(event, *args, **kwargs)

    return decorated
