"""Shared test fixtures for the Memora API test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite, fake keys)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- supabase: fake Supabase Auth (token + admin user lookups), autouse
- outbox: captures every email instead of calling Resend (sync and background), autouse
- seed_data: an owner, a guest and a friend, with one event and one item
- auth_headers: builds a Bearer header for a seeded user's token
"""

from datetime import date, timedelta
from unittest.mock import patch
from urllib.parse import urlparse

import pytest
import requests
from flask import g

from memora import create_app
from memora.extensions import db as _db
from memora.models.event import Event
from memora.models.item import Item


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")

    # Requests reuse the app context pushed by db_session, so g (and the
    # user Flask-Login caches on it) would otherwise leak between requests.
    @app.before_request
    def _forget_cached_user():
        g.pop("_login_user", None)

    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


# ──────────────────────────────────────────────
# Supabase Auth
# ──────────────────────────────────────────────

class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSupabaseAuth:
    """Answers the three GoTrue endpoints auth_service calls."""

    def __init__(self):
        self.users = {}
        self.tokens = {}

    def add_user(self, user_id, email, token=None, provider="email", **metadata):
        self.users[user_id] = {
            "id": user_id,
            "email": email,
            "user_metadata": metadata,
            "app_metadata": {"provider": provider},
            "created_at": "2026-01-01T00:00:00Z",
        }
        if token:
            self.tokens[token] = user_id
        return self.users[user_id]

    def get(self, url, headers=None, params=None, timeout=None):
        path = urlparse(url).path

        if path == "/auth/v1/user":
            token = (headers or {}).get("Authorization", "")[len("Bearer "):]
            user_id = self.tokens.get(token)
            if user_id is None:
                return FakeResponse(401, {"msg": "invalid JWT"})
            return FakeResponse(200, self.users[user_id])

        if path == "/auth/v1/admin/users":
            return FakeResponse(200, {"users": list(self.users.values())})

        if path.startswith("/auth/v1/admin/users/"):
            user = self.users.get(path.rsplit("/", 1)[-1])
            if user is None:
                return FakeResponse(404, {"msg": "User not found"})
            return FakeResponse(200, user)

        return FakeResponse(404, {})


@pytest.fixture(autouse=True)
def supabase():
    """Route auth_service's HTTP calls to an in-memory user directory."""
    fake = FakeSupabaseAuth()
    with patch("memora.services.auth_service.requests") as mock_requests:
        mock_requests.get.side_effect = fake.get
        mock_requests.RequestException = requests.RequestException
        yield fake


# ──────────────────────────────────────────────
# Email
# ──────────────────────────────────────────────

class InlineThread:
    """Stands in for threading.Thread so background sends finish before asserts."""

    def __init__(self, target=None, args=(), kwargs=None, daemon=None):
        self._target = target
        self._args = args
        self._kwargs = kwargs or {}
        self.daemon = daemon

    def start(self):
        self._target(*self._args, **self._kwargs)


@pytest.fixture(autouse=True)
def outbox():
    """Record every outgoing email payload instead of sending it.

    Tests that need a failed send can set outbox.fail = "reason".
    """

    class Outbox(list):
        fail = None

    sent = Outbox()

    def _record(app, payload):
        if sent.fail:
            return False, sent.fail
        sent.append(payload)
        return True, None

    with patch("memora.services.email_service._send_resend", side_effect=_record), \
            patch("memora.services.email_service.threading.Thread", InlineThread):
        yield sent


# ──────────────────────────────────────────────
# Seed data
# ──────────────────────────────────────────────

OWNER_ID = "11111111-1111-4111-8111-111111111111"
GUEST_ID = "22222222-2222-4222-8222-222222222222"
FRIEND_ID = "33333333-3333-4333-8333-333333333333"


@pytest.fixture
def seed_data(app, db_session, supabase):
    """Three users in Supabase, one registry event with one item.

    Returns a dict of plain ids so tests can use them across requests.
    """
    supabase.add_user(
        OWNER_ID, "olivia@example.com", token="owner-token",
        full_name="Olivia Owner", given_name="Olivia", family_name="Owner",
    )
    supabase.add_user(GUEST_ID, "gus@example.com", token="guest-token", full_name="Gus Guest")
    supabase.add_user(FRIEND_ID, "frida@example.com", token="friend-token")

    event = Event(
        user_id=OWNER_ID,
        title="Olivia's 30th",
        description="Dinner and drinks",
        event_date=date.today() + timedelta(days=60),
        slug="olivias-30th-a1b2c3",
        invite_code="JOINME42",
        location={"name": "The Garden Room", "formatted_address": "1 Main St, Austin, TX"},
    )
    _db.session.add(event)
    _db.session.flush()

    item = Item(
        event_id=event.id,
        title="Espresso Machine",
        price_cents=5000,
        current_amount_cents=0,
        product_link="https://www.amazon.com/dp/B000TEST?tag=someone-20",
    )
    _db.session.add(item)
    _db.session.commit()

    return {
        "owner_id": OWNER_ID,
        "guest_id": GUEST_ID,
        "friend_id": FRIEND_ID,
        "event": event,
        "event_id": event.id,
        "event_slug": event.slug,
        "invite_code": event.invite_code,
        "item": item,
        "item_id": item.id,
    }


@pytest.fixture
def auth_headers():
    """auth_headers("owner-token") → {"Authorization": "Bearer owner-token"}"""

    def _headers(token):
        return {"Authorization": f"Bearer {token}"}

    return _headers

