"""Auth service - Supabase Auth (GoTrue) REST calls.

Users are owned by Supabase. We only ever read them:
- get_user_from_token: resolve a bearer JWT (used by the Flask-Login
  request_loader).
- get_user_by_id / list_users / find_user_by_email / search_users: admin
  lookups with the service-role key, for contacts, members and invitations.
"""

import logging

import requests
from flask import current_app

from memora.models.user import AuthUser

logger = logging.getLogger(__name__)

ADMIN_PAGE_SIZE = 1000


class AuthServiceError(Exception):
    """Supabase Auth could not be reached or refused an admin call."""


def _get_auth_config():
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    if not url or not key:
        raise AuthServiceError("Supabase is not configured")
    return url.rstrip("/"), key


def _admin_headers(key):
    return {"apikey": key, "Authorization": f"Bearer {key}"}


def get_user_from_token(token):
    """Return the AuthUser for a Supabase access token, or None."""
    try:
        url, key = _get_auth_config()
        resp = requests.get(
            f"{url}/auth/v1/user",
            headers={"apikey": key, "Authorization": f"Bearer {token}"},
            timeout=10,
        )
    except AuthServiceError as e:
        logger.error(f"Token lookup skipped: {e}")
        return None
    except requests.RequestException as e:
        logger.warning(f"Supabase token lookup failed: {e}")
        return None

    if resp.status_code != 200:
        return None
    data = resp.json()
    if not data or not data.get("id"):
        return None
    return AuthUser(data)


def get_user_by_id(user_id):
    """Admin lookup of one user. Returns AuthUser or None."""
    url, key = _get_auth_config()
    try:
        resp = requests.get(
            f"{url}/auth/v1/admin/users/{user_id}",
            headers=_admin_headers(key),
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Supabase admin lookup for {user_id} failed: {e}")
        return None

    if resp.status_code != 200:
        return None
    return AuthUser(resp.json())


def list_users(page=1, per_page=ADMIN_PAGE_SIZE):
    """Return one page of auth users as AuthUser objects."""
    url, key = _get_auth_config()
    try:
        resp = requests.get(
            f"{url}/auth/v1/admin/users",
            headers=_admin_headers(key),
            params={"page": page, "per_page": per_page},
            timeout=15,
        )
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Supabase list users failed: {e}")
        raise AuthServiceError("Failed to fetch users") from e

    return [AuthUser(u) for u in resp.json().get("users", [])]


def find_user_by_email(email):
    """Case-insensitive exact email match. Returns AuthUser or None."""
    email = (email or "").strip().lower()
    if not email:
        return None
    for user in list_users():
        if user.email == email:
            return user
    return None


def search_users(query, exclude_user_id=None, limit=10):
    """Users whose email contains `query` (case-insensitive), self excluded."""
    query = query.strip().lower()
    matches = []
    for user in list_users():
        if user.id == exclude_user_id:
            continue
        if user.email and query in user.email:
            matches.append(user)
            if len(matches) >= limit:
                break
    return matches
