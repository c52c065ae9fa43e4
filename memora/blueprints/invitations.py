"""Invitations blueprint - event invitations by email, SMS and contacts.

Route Map:
  GET    /api/events/<id>/invite                - list invitations (owner)
  POST   /api/events/<id>/invite                - invite by email (owner)
  POST   /api/events/<id>/invite/resend         - re-send an email invite
  POST   /api/events/<id>/invite-sms            - invite by text message
  POST   /api/events/<id>/invite-from-contacts  - bulk invite contacts
  GET    /api/invitations                       - my pending invitations
  DELETE /api/invitations/<id>                  - delete (event owner)
  POST   /api/invitations/<id>/respond          - accept / decline
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required, event_owner_required
from memora.extensions import db
from memora.models.event import Event, EventInvitation
from memora.services.invitation_service import (
    InvitationError,
    delete_invitation,
    invite_by_email,
    invite_by_sms,
    invite_contacts,
    list_pending_for_user,
    resend_invitation,
    respond_to_invitation,
)

logger = logging.getLogger(__name__)

invitations_bp = Blueprint("invitations", __name__, url_prefix="/api")


def _error(e):
    return jsonify(e.payload), e.status_code


# ──────────────────────────────────────────────
# Owner side
# ──────────────────────────────────────────────

@invitations_bp.route("/events/<event_id>/invite", methods=["GET"])
@event_owner_required
def list_invitations(event):
    invitations = event.invitations.order_by(EventInvitation.created_at.desc()).all()
    return jsonify({"invitations": [i.to_dict() for i in invitations]})


@invitations_bp.route("/events/<event_id>/invite", methods=["POST"])
@event_owner_required
def invite(event):
    """Body: {email}"""
    data = request.get_json(silent=True) or {}
    try:
        invitation, email_sent = invite_by_email(event, data.get("email"))
    except InvitationError as e:
        return _error(e)

    return jsonify({
        "success": True,
        "invitation": invitation.to_dict(),
        "emailSent": email_sent,
        "message": (
            "Invitation sent successfully"
            if email_sent
            else "Invitation created but the email could not be sent"
        ),
    })


@invitations_bp.route("/events/<event_id>/invite/resend", methods=["POST"])
@event_owner_required
def resend(event):
    data = request.get_json(silent=True) or {}
    try:
        resend_invitation(event, data.get("email"))
    except InvitationError as e:
        return _error(e)
    return jsonify({"success": True, "message": "Reminder email sent successfully"})


@invitations_bp.route("/events/<event_id>/invite-sms", methods=["POST"])
@event_owner_required
def invite_sms(event):
    """Body: {phone}"""
    data = request.get_json(silent=True) or {}
    try:
        result = invite_by_sms(event, data.get("phone"))
    except InvitationError as e:
        return _error(e)
    return jsonify(result)


@invitations_bp.route("/events/<event_id>/invite-from-contacts", methods=["POST"])
@api_login_required
def invite_from_contacts(event_id):
    """Body: {contact_ids: [...]}"""
    data = request.get_json(silent=True) or {}
    contact_ids = data.get("contact_ids")
    if not isinstance(contact_ids, list) or not contact_ids:
        return jsonify({"error": "contact_ids array is required"}), 400

    event = db.session.get(Event, event_id)
    if event is None:
        return jsonify({"error": "Event not found"}), 404
    if event.user_id != current_user.id:
        return jsonify({"error": "Only event owner can invite contacts"}), 403

    try:
        results = invite_contacts(event, current_user, contact_ids)
    except InvitationError as e:
        return _error(e)
    return jsonify({"success": True, "results": results})


# ──────────────────────────────────────────────
# Invitee side
# ──────────────────────────────────────────────

@invitations_bp.route("/invitations", methods=["GET"])
@api_login_required
def my_invitations():
    return jsonify({"invitations": list_pending_for_user(current_user)})


@invitations_bp.route("/invitations/<invitation_id>", methods=["DELETE"])
@api_login_required
def delete(invitation_id):
    try:
        delete_invitation(invitation_id, current_user)
    except InvitationError as e:
        return _error(e)
    return jsonify({"success": True, "message": "Invitation deleted"})


@invitations_bp.route("/invitations/<invitation_id>/respond", methods=["POST"])
@api_login_required
def respond(invitation_id):
    """Body: {response: "accepted" | "declined"}"""
    data = request.get_json(silent=True) or {}
    response = data.get("response")
    try:
        invitation = respond_to_invitation(invitation_id, current_user, response)
    except InvitationError as e:
        return _error(e)

    return jsonify({
        "success": True,
        "response": response,
        "eventId": invitation.event_id,
        "eventTitle": invitation.event.title,
        "message": (
            "You have joined the event!" if response == "accepted" else "Invitation declined"
        ),
    })
