"""Tests for event invitations.

Covers:
- Email invitations (send, duplicates, existing members, failed email)
- Resending an invitation
- SMS invitations through Twilio (sent, failed, not configured)
- Bulk invitations from contacts
- Invitee side: pending list, accept, decline
- Deleting invitations (owner only)
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from memora.extensions import db
from memora.models.contact import UserContact
from memora.models.event import EventInvitation, EventMember
from memora.services.sms_service import format_phone_number, is_valid_us_phone


def _invite_url(seed_data, suffix="invite"):
    return f"/api/events/{seed_data['event_id']}/{suffix}"


def _invitation(seed_data, email="gus@example.com", status="pending"):
    invitation = EventInvitation(
        event_id=seed_data["event_id"],
        invited_by=seed_data["owner_id"],
        email=email,
        status=status,
    )
    db.session.add(invitation)
    db.session.commit()
    return invitation.id


def _twilio_response(status_code=201, payload=None):
    resp = MagicMock(status_code=status_code, text="")
    resp.json.return_value = payload if payload is not None else {"sid": "SM_test_123"}
    return resp


# ──────────────────────────────────────────────
# Email invitations
# ──────────────────────────────────────────────

class TestInviteByEmail:
    """POST /api/events/<id>/invite"""

    def test_sends_invitation(self, client, seed_data, auth_headers, outbox):
        resp = client.post(
            _invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": " New.Person@Example.com "}
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["emailSent"] is True
        assert data["invitation"]["email"] == "new.person@example.com"
        assert data["invitation"]["status"] == "pending"

        assert len(outbox) == 1
        assert outbox[0]["to"] == ["new.person@example.com"]
        assert outbox[0]["subject"] == "Olivia Owner invited you to Olivia's 30th"
        assert "http://localhost:3000/join/JOINME42" in outbox[0]["html"]

    def test_invitation_survives_failed_email(self, client, seed_data, auth_headers, outbox):
        outbox.fail = "Resend is down"

        data = client.post(
            _invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": "new@example.com"}
        ).get_json()
        assert data["success"] is True
        assert data["emailSent"] is False
        assert EventInvitation.query.filter_by(email="new@example.com").count() == 1

    def test_duplicate(self, client, seed_data, auth_headers):
        _invitation(seed_data, email="new@example.com", status="declined")

        resp = client.post(
            _invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": "new@example.com"}
        )
        assert resp.status_code == 400
        assert resp.get_json() == {"error": "Invitation already declined", "status": "declined"}

    def test_existing_member(self, client, seed_data, auth_headers, outbox):
        db.session.add(EventMember(event_id=seed_data["event_id"], user_id=seed_data["guest_id"]))
        db.session.commit()

        resp = client.post(
            _invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": "gus@example.com"}
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "User is already a member"
        assert outbox == []

    def test_owner_cannot_invite_self(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": "olivia@example.com"}
        )
        assert resp.status_code == 400

    @pytest.mark.parametrize("email", [None, "", "not-an-email"])
    def test_invalid_email(self, client, seed_data, auth_headers, email):
        resp = client.post(_invite_url(seed_data), headers=auth_headers("owner-token"), json={"email": email})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Email is required"

    def test_non_owner(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data), headers=auth_headers("guest-token"), json={"email": "x@example.com"}
        )
        assert resp.status_code == 403

    def test_list(self, client, seed_data, auth_headers):
        _invitation(seed_data)
        data = client.get(_invite_url(seed_data), headers=auth_headers("owner-token")).get_json()
        assert [i["email"] for i in data["invitations"]] == ["gus@example.com"]


class TestResendInvitation:
    """POST /api/events/<id>/invite/resend"""

    def test_resend(self, client, seed_data, auth_headers, outbox):
        _invitation(seed_data)

        resp = client.post(
            _invite_url(seed_data, "invite/resend"),
            headers=auth_headers("owner-token"),
            json={"email": "gus@example.com"},
        )
        assert resp.status_code == 200
        assert outbox[0]["subject"] == "Reminder: You're invited to Olivia's 30th!"

    def test_unknown_invitation(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data, "invite/resend"),
            headers=auth_headers("owner-token"),
            json={"email": "stranger@example.com"},
        )
        assert resp.status_code == 404

    def test_send_failure(self, client, seed_data, auth_headers, outbox):
        _invitation(seed_data)
        outbox.fail = "boom"

        resp = client.post(
            _invite_url(seed_data, "invite/resend"),
            headers=auth_headers("owner-token"),
            json={"email": "gus@example.com"},
        )
        assert resp.status_code == 500
        assert resp.get_json()["error"] == "Failed to send email"


# ──────────────────────────────────────────────
# SMS invitations
# ──────────────────────────────────────────────

class TestInviteBySms:
    """POST /api/events/<id>/invite-sms"""

    @patch("memora.services.sms_service.requests.post")
    def test_sends_sms(self, mock_post, client, seed_data, auth_headers):
        mock_post.return_value = _twilio_response()

        resp = client.post(
            _invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={"phone": "(512) 555-0142"}
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["message"] == "SMS invitation sent successfully"
        assert data["invitation"]["phone"] == "+15125550142"

        sent = mock_post.call_args.kwargs["data"]
        assert sent["To"] == "+15125550142"
        assert sent["From"] == "+15555550100"
        assert "http://localhost:3000/join/JOINME42" in sent["Body"]
        assert sent["Body"].startswith('Olivia Owner invited you to "Olivia\'s 30th"')

    @patch("memora.services.sms_service.requests.post")
    def test_twilio_rejects(self, mock_post, client, seed_data, auth_headers):
        mock_post.return_value = _twilio_response(400, {"message": "The 'To' number is not a valid phone number."})

        data = client.post(
            _invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={"phone": "5125550142"}
        ).get_json()
        assert data["success"] is True
        assert data["smsError"] == "The 'To' number is not a valid phone number."
        assert EventInvitation.query.filter_by(phone="+15125550142").count() == 1

    @patch("memora.services.sms_service.requests.post")
    def test_twilio_unreachable(self, mock_post, client, seed_data, auth_headers):
        mock_post.side_effect = requests.ConnectionError("connection refused")

        data = client.post(
            _invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={"phone": "5125550142"}
        ).get_json()
        assert "smsError" in data

    @patch("memora.services.sms_service.requests.post")
    def test_not_configured(self, mock_post, app, client, seed_data, auth_headers):
        with patch.dict(app.config, {"TWILIO_AUTH_TOKEN": None}):
            data = client.post(
                _invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={"phone": "5125550142"}
            ).get_json()
        assert data["smsSkipped"] is True
        mock_post.assert_not_called()

    def test_invalid_phone(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={"phone": "555-0142"}
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Please enter a valid US phone number (10 digits)"

    def test_missing_phone(self, client, seed_data, auth_headers):
        resp = client.post(_invite_url(seed_data, "invite-sms"), headers=auth_headers("owner-token"), json={})
        assert resp.get_json()["error"] == "Phone number is required"

    @patch("memora.services.sms_service.requests.post")
    def test_duplicate(self, mock_post, client, seed_data, auth_headers):
        mock_post.return_value = _twilio_response()
        headers = auth_headers("owner-token")
        client.post(_invite_url(seed_data, "invite-sms"), headers=headers, json={"phone": "5125550142"})

        resp = client.post(_invite_url(seed_data, "invite-sms"), headers=headers, json={"phone": "+1 512 555 0142"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "SMS invitation already pending"

    @pytest.mark.parametrize("phone, valid, formatted", [
        ("5125550142", True, "+15125550142"),
        ("1-512-555-0142", True, "+15125550142"),
        ("+1 (512) 555-0142", True, "+15125550142"),
        ("25125550142", False, "+25125550142"),
        ("555-0142", False, "+5550142"),
    ])
    def test_phone_helpers(self, phone, valid, formatted):
        assert is_valid_us_phone(phone) is valid
        if valid:
            assert format_phone_number(phone) == formatted


# ──────────────────────────────────────────────
# Contacts
# ──────────────────────────────────────────────

class TestInviteFromContacts:
    """POST /api/events/<id>/invite-from-contacts"""

    def _contact(self, seed_data, contact_user_id, owner_id=None):
        contact = UserContact(user_id=owner_id or seed_data["owner_id"], contact_user_id=contact_user_id)
        db.session.add(contact)
        db.session.commit()
        return contact.id

    def test_bulk_invite(self, client, seed_data, auth_headers, outbox):
        gus = self._contact(seed_data, seed_data["guest_id"])
        frida = self._contact(seed_data, seed_data["friend_id"])
        ghost = self._contact(seed_data, "55555555-5555-4555-8555-555555555555")
        db.session.add(EventMember(event_id=seed_data["event_id"], user_id=seed_data["friend_id"]))
        db.session.commit()

        resp = client.post(
            _invite_url(seed_data, "invite-from-contacts"),
            headers=auth_headers("owner-token"),
            json={"contact_ids": [gus, frida, ghost]},
        )
        assert resp.status_code == 200
        results = resp.get_json()["results"]

        assert [r["email"] for r in results["invited"]] == ["gus@example.com"]
        assert results["invited"][0]["invitation_id"]
        assert [r["email"] for r in results["already_member"]] == ["frida@example.com"]
        assert results["failed"] == [{"contact_id": ghost, "reason": "Contact user not found"}]

        assert len(outbox) == 1
        assert outbox[0]["subject"] == "Olivia invited you to Olivia's 30th"

    def test_pending_and_reopened(self, client, seed_data, auth_headers):
        gus = self._contact(seed_data, seed_data["guest_id"])
        frida = self._contact(seed_data, seed_data["friend_id"])
        _invitation(seed_data, email="gus@example.com", status="pending")
        declined_id = _invitation(seed_data, email="frida@example.com", status="declined")

        results = client.post(
            _invite_url(seed_data, "invite-from-contacts"),
            headers=auth_headers("owner-token"),
            json={"contact_ids": [gus, frida]},
        ).get_json()["results"]

        assert [r["email"] for r in results["already_invited"]] == ["gus@example.com"]
        assert results["invited"][0]["invitation_id"] == declined_id
        assert db.session.get(EventInvitation, declined_id).status == "pending"

    def test_email_failure_is_flagged(self, client, seed_data, auth_headers, outbox):
        gus = self._contact(seed_data, seed_data["guest_id"])
        outbox.fail = "quota exceeded"

        results = client.post(
            _invite_url(seed_data, "invite-from-contacts"),
            headers=auth_headers("owner-token"),
            json={"contact_ids": [gus]},
        ).get_json()["results"]
        assert results["invited"][0]["email_failed"] is True

    def test_other_users_contacts_are_ignored(self, client, seed_data, auth_headers):
        theirs = self._contact(seed_data, seed_data["friend_id"], owner_id=seed_data["guest_id"])

        resp = client.post(
            _invite_url(seed_data, "invite-from-contacts"),
            headers=auth_headers("owner-token"),
            json={"contact_ids": [theirs]},
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "No valid contacts found"

    def test_requires_contact_ids(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data, "invite-from-contacts"), headers=auth_headers("owner-token"), json={}
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "contact_ids array is required"

    def test_non_owner(self, client, seed_data, auth_headers):
        resp = client.post(
            _invite_url(seed_data, "invite-from-contacts"),
            headers=auth_headers("guest-token"),
            json={"contact_ids": ["x"]},
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Only event owner can invite contacts"


# ──────────────────────────────────────────────
# Invitee side
# ──────────────────────────────────────────────

class TestRespondToInvitation:
    """GET /api/invitations, POST /api/invitations/<id>/respond"""

    def test_pending_list(self, client, seed_data, auth_headers):
        _invitation(seed_data)
        _invitation(seed_data, email="frida@example.com")

        data = client.get("/api/invitations", headers=auth_headers("guest-token")).get_json()
        assert len(data["invitations"]) == 1
        event = data["invitations"][0]["event"]
        assert event["title"] == "Olivia's 30th"
        assert event["owner_name"] == "Olivia Owner"

    def test_accept(self, client, seed_data, auth_headers, outbox):
        invitation_id = _invitation(seed_data)

        resp = client.post(
            f"/api/invitations/{invitation_id}/respond",
            headers=auth_headers("guest-token"),
            json={"response": "accepted"},
        )
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["eventId"] == seed_data["event_id"]
        assert data["message"] == "You have joined the event!"

        assert EventMember.query.filter_by(user_id=seed_data["guest_id"]).count() == 1
        assert db.session.get(EventInvitation, invitation_id).status == "accepted"
        assert outbox[0]["subject"] == "Gus Guest joined Olivia's 30th"

    def test_decline(self, client, seed_data, auth_headers, outbox):
        invitation_id = _invitation(seed_data)

        data = client.post(
            f"/api/invitations/{invitation_id}/respond",
            headers=auth_headers("guest-token"),
            json={"response": "declined"},
        ).get_json()
        assert data["message"] == "Invitation declined"
        assert EventMember.query.count() == 0
        assert outbox[0]["subject"] == "Gus Guest declined Olivia's 30th"

    def test_not_for_you(self, client, seed_data, auth_headers):
        invitation_id = _invitation(seed_data)
        resp = client.post(
            f"/api/invitations/{invitation_id}/respond",
            headers=auth_headers("friend-token"),
            json={"response": "accepted"},
        )
        assert resp.status_code == 403

    def test_already_responded(self, client, seed_data, auth_headers):
        invitation_id = _invitation(seed_data, status="declined")
        resp = client.post(
            f"/api/invitations/{invitation_id}/respond",
            headers=auth_headers("guest-token"),
            json={"response": "accepted"},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Invitation already declined"

    def test_invalid_response(self, client, seed_data, auth_headers):
        invitation_id = _invitation(seed_data)
        resp = client.post(
            f"/api/invitations/{invitation_id}/respond",
            headers=auth_headers("guest-token"),
            json={"response": "maybe"},
        )
        assert resp.status_code == 400

    def test_unknown_invitation(self, client, seed_data, auth_headers):
        resp = client.post(
            "/api/invitations/nope/respond",
            headers=auth_headers("guest-token"),
            json={"response": "accepted"},
        )
        assert resp.status_code == 404


class TestDeleteInvitation:
    """DELETE /api/invitations/<id>"""

    def test_owner_deletes(self, client, seed_data, auth_headers):
        invitation_id = _invitation(seed_data)
        resp = client.delete(f"/api/invitations/{invitation_id}", headers=auth_headers("owner-token"))
        assert resp.status_code == 200
        assert EventInvitation.query.count() == 0

    def test_invitee_cannot_delete(self, client, seed_data, auth_headers):
        invitation_id = _invitation(seed_data)
        resp = client.delete(f"/api/invitations/{invitation_id}", headers=auth_headers("guest-token"))
        assert resp.status_code == 403
        assert EventInvitation.query.count() == 1

    def test_unknown(self, client, seed_data, auth_headers):
        resp = client.delete("/api/invitations/nope", headers=auth_headers("owner-token"))
        assert resp.status_code == 404
