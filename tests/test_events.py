"""Tests for the events blueprint.

Covers:
- POST /api/events (validation, slug generation)
- PATCH /api/events/<id> (owner-only location/theme)
- GET /api/events/<id>/ics
- Members list and removal
- Invite code preview and join
- Reminders (create, limits, list, delete)
"""

import re
from datetime import date, datetime, timedelta, timezone

import pytest

from memora.extensions import db
from memora.models.event import Event, EventInvitation, EventMember, EventReminder
from memora.services.event_service import generate_event_slug, slugify
from memora.services.ics_service import escape_text, safe_filename
from memora.services.reminder_service import calculate_scheduled_for


def _add_member(seed_data, user_id):
    db.session.add(EventMember(event_id=seed_data["event_id"], user_id=user_id, status="accepted"))
    db.session.commit()


class TestCreateEvent:
    """POST /api/events"""

    def test_creates_event(self, client, seed_data, auth_headers):
        resp = client.post("/api/events", headers=auth_headers("guest-token"), json={
            "title": "Gus's Housewarming!",
            "description": "Bring snacks",
            "event_date": "2027-03-14",
            "event_category": "casual",
            "location": {"name": "Gus's place"},
        })
        assert resp.status_code == 201
        event = resp.get_json()["event"]
        assert event["user_id"] == seed_data["guest_id"]
        assert event["date"] == "2027-03-14"
        assert event["registry_enabled"] is True
        assert re.fullmatch(r"guss-housewarming-[0-9a-f]{6}", event["slug"])
        assert event["invite_code"]

    @pytest.mark.parametrize("body, error", [
        ({}, "Title is required"),
        ({"title": "   "}, "Title is required"),
        ({"title": "x" * 201}, "Title cannot exceed 200 characters"),
        ({"title": "Party", "description": "d" * 2001}, "Description cannot exceed 2000 characters"),
        ({"title": "Party", "event_date": "03/14/2027"}, "Invalid date format. Use YYYY-MM-DD"),
        ({"title": "Party", "event_date": "2027-02-30"}, "Invalid date format. Use YYYY-MM-DD"),
        ({"title": "Party", "location": "somewhere"}, "location must be an object"),
    ])
    def test_validation(self, client, seed_data, auth_headers, body, error):
        resp = client.post("/api/events", headers=auth_headers("owner-token"), json=body)
        assert resp.status_code == 400
        assert resp.get_json()["error"] == error

    def test_invalid_category(self, client, seed_data, auth_headers):
        resp = client.post("/api/events", headers=auth_headers("owner-token"), json={
            "title": "Party", "event_category": "rave",
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("event_category must be one of")

    def test_requires_login(self, client, seed_data):
        assert client.post("/api/events", json={"title": "Party"}).status_code == 401

    def test_bad_token(self, client, seed_data, auth_headers):
        resp = client.post("/api/events", headers=auth_headers("forged-token"), json={"title": "Party"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "Invalid or expired token"


class TestSlugs:

    @pytest.mark.parametrize("title, slug", [
        ("Olivia's 30th Birthday!", "olivias-30th-birthday"),
        ("  Baby   Shower -- 2027 ", "baby-shower-2027"),
        ("¡Fiesta!", "fiesta"),
        ("", ""),
    ])
    def test_slugify(self, title, slug):
        assert slugify(title) == slug

    def test_generated_slugs_are_unique(self, seed_data):
        slugs = {generate_event_slug("Same Title") for _ in range(5)}
        assert len(slugs) == 5
        assert all(s.startswith("same-title-") for s in slugs)

    def test_empty_title_falls_back(self, seed_data):
        assert generate_event_slug("!!!").startswith("event-")


class TestUpdateEvent:
    """PATCH /api/events/<id>"""

    def test_updates_location_and_theme(self, client, seed_data, auth_headers):
        resp = client.patch(
            f"/api/events/{seed_data['event_id']}",
            headers=auth_headers("owner-token"),
            json={"location": {"name": "Rooftop"}, "theme": "garden", "title": "ignored"},
        )
        assert resp.status_code == 200
        event = resp.get_json()["event"]
        assert event["location"] == {"name": "Rooftop"}
        assert event["theme"] == "garden"
        assert event["title"] == "Olivia's 30th"

    def test_no_valid_fields(self, client, seed_data, auth_headers):
        resp = client.patch(
            f"/api/events/{seed_data['event_id']}",
            headers=auth_headers("owner-token"),
            json={"title": "New title"},
        )
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "No valid fields provided for update"

    def test_non_owner(self, client, seed_data, auth_headers):
        resp = client.patch(
            f"/api/events/{seed_data['event_id']}",
            headers=auth_headers("guest-token"),
            json={"theme": "hacked"},
        )
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "Permission denied or event not found."


class TestEventIcs:
    """GET /api/events/<id>/ics"""

    def test_download(self, client, seed_data):
        resp = client.get(f"/api/events/{seed_data['event_id']}/ics")
        assert resp.status_code == 200
        assert resp.headers["Content-Type"] == "text/calendar; charset=utf-8"
        assert resp.headers["Content-Disposition"] == 'attachment; filename="Olivias_30th.ics"'

        body = resp.get_data(as_text=True)
        event_date = date.today() + timedelta(days=60)
        assert body.startswith("BEGIN:VCALENDAR\r\n")
        assert f"DTSTART;VALUE=DATE:{event_date:%Y%m%d}" in body
        assert f"DTEND;VALUE=DATE:{event_date + timedelta(days=1):%Y%m%d}" in body
        assert f"UID:{seed_data['event_id']}@mymemoraapp.com" in body
        assert "LOCATION:1 Main St\\, Austin\\, TX" in body
        assert "URL:http://localhost:3000/event/olivias-30th-a1b2c3" in body
        assert "DESCRIPTION:Dinner and drinks\\n\\nView on Memora:" in body

    def test_no_date(self, client, seed_data):
        event = db.session.get(Event, seed_data["event_id"])
        event.event_date = None
        db.session.commit()

        resp = client.get(f"/api/events/{seed_data['event_id']}/ics")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Event has no date set"

    def test_unknown_event(self, client, seed_data):
        assert client.get("/api/events/nope/ics").status_code == 404

    def test_escape_text(self):
        assert escape_text("a;b,c\\d\ne") == "a\\;b\\,c\\\\d\\ne"
        assert escape_text(None) == ""

    def test_safe_filename(self):
        assert safe_filename("Mom & Dad's 40th: Party!") == "Mom_Dads_40th_Party"
        assert safe_filename("!!!") == "event"


class TestMembers:
    """GET/DELETE /api/events/<id>/members"""

    def test_list(self, client, seed_data):
        _add_member(seed_data, seed_data["guest_id"])

        data = client.get(f"/api/events/{seed_data['event_id']}/members").get_json()
        assert data["owner"] == {
            "id": seed_data["owner_id"],
            "email": "olivia@example.com",
            "name": "Olivia Owner",
        }
        assert len(data["members"]) == 1
        assert data["members"][0]["user_id"] == seed_data["guest_id"]
        assert data["members"][0]["name"] == "Gus Guest"
        assert data["members"][0]["status"] == "accepted"

    def test_member_with_deleted_account(self, client, seed_data):
        _add_member(seed_data, "44444444-4444-4444-8444-444444444444")
        data = client.get(f"/api/events/{seed_data['event_id']}/members").get_json()
        assert data["members"][0]["email"] == "Unknown"

    def test_owner_removes_member(self, client, seed_data, auth_headers):
        _add_member(seed_data, seed_data["guest_id"])

        resp = client.delete(
            f"/api/events/{seed_data['event_id']}/members",
            headers=auth_headers("owner-token"),
            json={"memberUserId": seed_data["guest_id"]},
        )
        assert resp.status_code == 200
        assert EventMember.query.count() == 0

    def test_member_leaves(self, client, seed_data, auth_headers):
        _add_member(seed_data, seed_data["guest_id"])

        resp = client.delete(
            f"/api/events/{seed_data['event_id']}/members",
            headers=auth_headers("guest-token"),
            json={"memberUserId": seed_data["guest_id"]},
        )
        assert resp.status_code == 200

    def test_member_cannot_remove_others(self, client, seed_data, auth_headers):
        _add_member(seed_data, seed_data["guest_id"])
        _add_member(seed_data, seed_data["friend_id"])

        resp = client.delete(
            f"/api/events/{seed_data['event_id']}/members",
            headers=auth_headers("guest-token"),
            json={"memberUserId": seed_data["friend_id"]},
        )
        assert resp.status_code == 403
        assert EventMember.query.count() == 2

    def test_remove_non_member(self, client, seed_data, auth_headers):
        resp = client.delete(
            f"/api/events/{seed_data['event_id']}/members",
            headers=auth_headers("owner-token"),
            json={"memberUserId": seed_data["friend_id"]},
        )
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Member not found"


class TestJoinByCode:
    """GET/POST /api/events/join/<code>"""

    def test_preview(self, client, seed_data):
        resp = client.get("/api/events/join/JOINME42")
        assert resp.status_code == 200
        event = resp.get_json()["event"]
        assert event["id"] == seed_data["event_id"]
        assert event["owner_name"] == "Olivia Owner"

    def test_preview_invalid_code(self, client, seed_data):
        resp = client.get("/api/events/join/NOPE")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "Invalid invite code"

    def test_join(self, client, seed_data, auth_headers, outbox):
        db.session.add(EventInvitation(
            event_id=seed_data["event_id"],
            invited_by=seed_data["owner_id"],
            email="gus@example.com",
        ))
        db.session.commit()

        resp = client.post("/api/events/join/JOINME42", headers=auth_headers("guest-token"))
        assert resp.status_code == 200
        assert resp.get_json()["eventId"] == seed_data["event_id"]

        assert EventMember.query.filter_by(user_id=seed_data["guest_id"]).count() == 1
        invitation = EventInvitation.query.filter_by(email="gus@example.com").one()
        assert invitation.status == "accepted"
        assert invitation.responded_at is not None

        assert len(outbox) == 1
        assert outbox[0]["to"] == ["olivia@example.com"]
        assert outbox[0]["subject"] == "Gus Guest joined Olivia's 30th"

    def test_owner_cannot_join(self, client, seed_data, auth_headers):
        resp = client.post("/api/events/join/JOINME42", headers=auth_headers("owner-token"))
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "You are the owner of this event"

    def test_already_member(self, client, seed_data, auth_headers, outbox):
        _add_member(seed_data, seed_data["guest_id"])

        resp = client.post("/api/events/join/JOINME42", headers=auth_headers("guest-token"))
        assert resp.status_code == 400
        assert resp.get_json() == {
            "error": "You are already a member of this event",
            "eventId": seed_data["event_id"],
        }
        assert outbox == []


class TestReminders:
    """/api/events/<id>/reminders"""

    def _url(self, seed_data):
        return f"/api/events/{seed_data['event_id']}/reminders"

    def test_create_and_list(self, client, seed_data, auth_headers):
        headers = auth_headers("owner-token")
        resp = client.post(self._url(seed_data), headers=headers, json={"reminder_type": "1_week"})
        assert resp.status_code == 201
        reminder = resp.get_json()["reminder"]
        assert reminder["reminder_type"] == "1_week"
        assert reminder["send_to_members"] is True
        assert reminder["is_sent"] is False

        data = client.get(self._url(seed_data), headers=headers).get_json()
        assert [r["id"] for r in data["reminders"]] == [reminder["id"]]
        assert data["eventDate"] == (date.today() + timedelta(days=60)).isoformat()

    def test_scheduled_at_nine_utc(self):
        assert calculate_scheduled_for(date(2027, 6, 12), "1_day") == datetime(
            2027, 6, 11, 9, 0, tzinfo=timezone.utc
        )
        assert calculate_scheduled_for(date(2027, 6, 12), "2_hours") == datetime(
            2027, 6, 12, 7, 0, tzinfo=timezone.utc
        )

    def test_invalid_type(self, client, seed_data, auth_headers):
        resp = client.post(self._url(seed_data), headers=auth_headers("owner-token"), json={"reminder_type": "5_years"})
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("Invalid reminder_type")

    def test_duplicate_type(self, client, seed_data, auth_headers):
        headers = auth_headers("owner-token")
        client.post(self._url(seed_data), headers=headers, json={"reminder_type": "1_day"})
        resp = client.post(self._url(seed_data), headers=headers, json={"reminder_type": "1_day"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "A reminder with this timing already exists for this event"

    def test_max_two(self, client, seed_data, auth_headers):
        headers = auth_headers("owner-token")
        client.post(self._url(seed_data), headers=headers, json={"reminder_type": "1_day"})
        client.post(self._url(seed_data), headers=headers, json={"reminder_type": "1_week"})
        resp = client.post(self._url(seed_data), headers=headers, json={"reminder_type": "2_weeks"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Maximum 2 reminders per event allowed"

    def test_past_time_refused(self, client, seed_data, auth_headers):
        event = db.session.get(Event, seed_data["event_id"])
        event.event_date = date.today() + timedelta(days=3)
        db.session.commit()

        resp = client.post(self._url(seed_data), headers=auth_headers("owner-token"), json={"reminder_type": "1_month"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Cannot set reminder for a time that has already passed"

    def test_event_without_date(self, client, seed_data, auth_headers):
        event = db.session.get(Event, seed_data["event_id"])
        event.event_date = None
        db.session.commit()

        resp = client.post(self._url(seed_data), headers=auth_headers("owner-token"), json={"reminder_type": "1_day"})
        assert resp.status_code == 400

    def test_non_owner(self, client, seed_data, auth_headers):
        resp = client.get(self._url(seed_data), headers=auth_headers("guest-token"))
        assert resp.status_code == 403

    def test_unknown_event(self, client, seed_data, auth_headers):
        resp = client.get("/api/events/nope/reminders", headers=auth_headers("owner-token"))
        assert resp.status_code == 404

    def test_delete(self, client, seed_data, auth_headers):
        headers = auth_headers("owner-token")
        reminder_id = client.post(
            self._url(seed_data), headers=headers, json={"reminder_type": "1_day"}
        ).get_json()["reminder"]["id"]

        assert client.delete(self._url(seed_data), headers=headers).status_code == 400
        assert client.delete(f"{self._url(seed_data)}?reminder_id=nope", headers=headers).status_code == 404

        resp = client.delete(f"{self._url(seed_data)}?reminder_id={reminder_id}", headers=headers)
        assert resp.status_code == 200
        assert EventReminder.query.count() == 0
