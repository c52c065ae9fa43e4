"""Invitation service - getting people into events.

Three ways in:
- Email invitations (single, resend, or bulk from the owner's contacts)
- SMS invitations (Twilio) to US phone numbers
- The event's invite code, used directly through /join/<code>

Accepting an invitation or joining by code creates an EventMember and marks
any pending email invitation for that user as accepted. Email and SMS
failures never undo the invitation row; callers report them as flags.
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.contact import UserContact
from memora.models.event import Event, EventInvitation, EventMember
from memora.services.auth_service import find_user_by_email, get_user_by_id
from memora.services.email_service import send_email, send_email_sync
from memora.services.reminder_service import format_event_date
from memora.services.sms_service import (
    SMSNotConfigured,
    SMSSendError,
    format_phone_number,
    is_valid_us_phone,
    send_sms,
)
from memora.utils.validation import is_valid_email

logger = logging.getLogger(__name__)


class InvitationError(Exception):
    """Carries the HTTP status and JSON body for a refused invitation action."""

    def __init__(self, message, status_code=400, **extra):
        super().__init__(message)
        self.status_code = status_code
        self.payload = {"error": message, **extra}


# ──────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────

def join_url(event):
    base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    return f"{base_url}/join/{event.invite_code}"


def owner_name(event):
    owner = get_user_by_id(event.user_id)
    return owner.display_name if owner else "Someone"


def _send_invitation_email(event, email, inviter_name, reminder=False):
    subject = (
        f"Reminder: You're invited to {event.title}!"
        if reminder
        else f"{inviter_name} invited you to {event.title}"
    )
    return send_email_sync(
        to=email,
        subject=subject,
        template="emails/invitation.html",
        context={
            "owner_name": inviter_name,
            "event_title": event.title,
            "event_date": format_event_date(event.event_date) if event.event_date else None,
            "event_description": event.description,
            "join_url": join_url(event),
            "is_reminder": reminder,
        },
    )


def _notify_owner(event, user, action):
    """Tell the owner someone joined or declined. Fire-and-forget."""
    owner = get_user_by_id(event.user_id)
    if not owner or not owner.email:
        return
    send_email(
        to=owner.email,
        subject=f"{user.display_name} {action} {event.title}",
        template="emails/owner_notification.html",
        context={
            "guest_name": user.display_name,
            "action": action,
            "event_title": event.title,
        },
    )


def _add_member(event_id, user_id):
    """Insert membership; a concurrent duplicate is fine."""
    if EventMember.query.filter_by(event_id=event_id, user_id=user_id).first():
        return False
    db.session.add(EventMember(event_id=event_id, user_id=user_id, status="accepted"))
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        return False
    return True


# ──────────────────────────────────────────────
# Email invitations
# ──────────────────────────────────────────────

def invite_by_email(event, email):
    """Create a pending invitation and email it.

    Returns (invitation, email_sent). Raises InvitationError.
    """
    if not email or not is_valid_email(email):
        raise InvitationError("Email is required")
    email = email.strip().lower()

    existing = EventInvitation.query.filter_by(event_id=event.id, email=email).first()
    if existing:
        raise InvitationError(
            f"Invitation already {existing.status}", status=existing.status
        )

    invitee = find_user_by_email(email)
    if invitee and (invitee.id == event.user_id or event.is_member(invitee.id)):
        raise InvitationError("User is already a member")

    invitation = EventInvitation(
        event_id=event.id, invited_by=event.user_id, email=email, status="pending"
    )
    db.session.add(invitation)
    db.session.commit()

    email_sent, error = _send_invitation_email(event, email, owner_name(event))
    if not email_sent:
        logger.warning(f"Invitation {invitation.id} created but email failed: {error}")
    return invitation, email_sent


def resend_invitation(event, email):
    """Re-send the invitation email. Raises InvitationError on failure."""
    if not email:
        raise InvitationError("Email is required")
    email = email.strip().lower()

    invitation = EventInvitation.query.filter_by(event_id=event.id, email=email).first()
    if invitation is None:
        raise InvitationError("Invitation not found", 404)

    ok, error = _send_invitation_email(event, email, owner_name(event), reminder=True)
    if not ok:
        logger.error(f"Resend of invitation {invitation.id} failed: {error}")
        raise InvitationError("Failed to send email", 500)
    return invitation


def invite_contacts(event, owner, contact_ids):
    """Bulk-invite the owner's contacts. Returns the grouped results dict."""
    if not isinstance(contact_ids, list) or not contact_ids:
        raise InvitationError("contact_ids array is required")

    contacts = (
        UserContact.query
        .filter(UserContact.id.in_(contact_ids))
        .filter_by(user_id=owner.id)
        .all()
    )
    if not contacts:
        raise InvitationError("No valid contacts found", 404)

    inviter_first_name = owner.split_name()[0] or "Someone"
    results = {"invited": [], "already_invited": [], "already_member": [], "failed": []}

    for contact in contacts:
        try:
            contact_user = get_user_by_id(contact.contact_user_id)
            if not contact_user or not contact_user.email:
                results["failed"].append(
                    {"contact_id": contact.id, "reason": "Contact user not found"}
                )
                continue

            entry = {"contact_id": contact.id, "email": contact_user.email}

            if event.is_member(contact_user.id):
                results["already_member"].append(entry)
                continue

            invitation = EventInvitation.query.filter_by(
                event_id=event.id, email=contact_user.email
            ).first()
            if invitation and invitation.status == "pending":
                results["already_invited"].append(entry)
                continue

            if invitation:
                # Re-open a declined/accepted-then-removed invitation
                invitation.status = "pending"
                invitation.responded_at = None
                invitation.created_at = datetime.now(timezone.utc)
            else:
                invitation = EventInvitation(
                    event_id=event.id,
                    invited_by=owner.id,
                    email=contact_user.email,
                    status="pending",
                )
                db.session.add(invitation)
            db.session.commit()

            entry["invitation_id"] = invitation.id
            ok, _ = _send_invitation_email(event, contact_user.email, inviter_first_name)
            if not ok:
                entry["email_failed"] = True
            results["invited"].append(entry)

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error inviting contact {contact.id}: {e}", exc_info=True)
            results["failed"].append({"contact_id": contact.id, "reason": "Internal error"})

    return results


# ──────────────────────────────────────────────
# SMS invitations
# ──────────────────────────────────────────────

def invite_by_sms(event, phone):
    """Create a phone invitation and text the join link.

    Returns the response dict. SMS trouble is reported with smsSkipped or
    smsError; the invitation stands either way.
    """
    if not phone:
        raise InvitationError("Phone number is required")
    if not is_valid_us_phone(phone):
        raise InvitationError("Please enter a valid US phone number (10 digits)")
    phone = format_phone_number(phone)

    existing = EventInvitation.query.filter_by(event_id=event.id, phone=phone).first()
    if existing:
        raise InvitationError(
            f"SMS invitation already {existing.status}", status=existing.status
        )

    invitation = EventInvitation(
        event_id=event.id, invited_by=event.user_id, phone=phone, status="pending"
    )
    db.session.add(invitation)
    db.session.commit()

    body = (
        f'{owner_name(event)} invited you to "{event.title}" on Memora! '
        f"Join here: {join_url(event)}"
    )
    result = {"success": True, "invitation": invitation.to_dict()}

    try:
        send_sms(phone, body)
    except SMSNotConfigured as e:
        logger.error(f"Skipping SMS for invitation {invitation.id}: {e}")
        result["message"] = f"Invitation created but SMS could not be sent ({e})"
        result["smsSkipped"] = True
        return result
    except SMSSendError as e:
        result["message"] = "Invitation created but SMS failed to send"
        result["smsError"] = str(e)
        return result

    result["message"] = "SMS invitation sent successfully"
    return result


# ──────────────────────────────────────────────
# Joining and responding
# ──────────────────────────────────────────────

def get_event_by_code(code):
    event = Event.query.filter_by(invite_code=code).first()
    if event is None:
        raise InvitationError("Invalid invite code", 404)
    return event


def join_event(code, user):
    """Join by invite code. Returns the Event. Raises InvitationError."""
    event = get_event_by_code(code)

    if event.user_id == user.id:
        raise InvitationError("You are the owner of this event")
    if event.is_member(user.id):
        raise InvitationError(
            "You are already a member of this event", eventId=event.id
        )

    _add_member(event.id, user.id)

    if user.email:
        EventInvitation.query.filter_by(
            event_id=event.id, email=user.email, status="pending"
        ).update(
            {"status": "accepted", "responded_at": datetime.now(timezone.utc)},
            synchronize_session=False,
        )
    db.session.commit()

    logger.info(f"User {user.id} joined event {event.id} by code")
    _notify_owner(event, user, "joined")
    return event


def list_pending_for_user(user):
    """Pending email invitations addressed to the user, with owner names."""
    if not user.email:
        return []

    invitations = (
        EventInvitation.query
        .filter_by(email=user.email, status="pending")
        .order_by(EventInvitation.created_at.desc())
        .all()
    )

    results = []
    for invitation in invitations:
        event = invitation.event
        owner = get_user_by_id(event.user_id)
        first, last = owner.split_name() if owner else ("", "")
        data = invitation.to_dict()
        data["event"] = {
            "id": event.id,
            "title": event.title,
            "description": event.description,
            "event_date": event.event_date.isoformat() if event.event_date else None,
            "slug": event.slug,
            "user_id": event.user_id,
            "owner_name": f"{first} {last}".strip() or "Someone",
        }
        results.append(data)
    return results


def respond_to_invitation(invitation_id, user, response):
    """Accept or decline. Returns the invitation. Raises InvitationError."""
    if response not in ("accepted", "declined"):
        raise InvitationError("Invalid response")

    invitation = db.session.get(EventInvitation, invitation_id)
    if invitation is None:
        raise InvitationError("Invitation not found", 404)
    if not invitation.email or invitation.email.lower() != (user.email or ""):
        raise InvitationError("This invitation is not for you", 403)
    if invitation.status != "pending":
        raise InvitationError(
            f"Invitation already {invitation.status}", status=invitation.status
        )

    invitation.status = response
    invitation.responded_at = datetime.now(timezone.utc)
    if response == "accepted":
        _add_member(invitation.event_id, user.id)
    db.session.commit()

    _notify_owner(
        invitation.event, user, "joined" if response == "accepted" else "declined"
    )
    return invitation


def delete_invitation(invitation_id, user):
    """Owner-only delete. Raises InvitationError."""
    invitation = db.session.get(EventInvitation, invitation_id)
    if invitation is None:
        raise InvitationError("Invitation not found", 404)
    if invitation.event.user_id != user.id:
        raise InvitationError("Only the event owner can delete invitations", 403)

    db.session.delete(invitation)
    db.session.commit()
