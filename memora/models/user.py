"""Authenticated user.

Users live in Supabase Auth, not in our database. AuthUser wraps the JSON
user object returned by the Auth API so Flask-Login can treat it as the
current_user.
"""

from flask_login import UserMixin


class AuthUser(UserMixin):

    def __init__(self, data):
        self.data = data or {}
        self.id = self.data.get("id")
        self.email = (self.data.get("email") or "").lower() or None
        self.metadata = self.data.get("user_metadata") or {}
        self.app_metadata = self.data.get("app_metadata") or {}
        self.created_at = self.data.get("created_at")

    @property
    def provider(self):
        return self.app_metadata.get("provider", "email")

    @property
    def email_prefix(self):
        return self.email.split("@")[0] if self.email else None

    @property
    def display_name(self):
        """Name shown to other users: full_name, then name, then email local part."""
        for key in ("full_name", "name"):
            value = self.metadata.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return self.email_prefix or "Someone"

    def split_name(self):
        """Return (first_name, last_name) from whatever metadata is present."""
        given = self.metadata.get("given_name")
        family = self.metadata.get("family_name")
        if given or family:
            return given or "", family or ""

        full = (
            self.metadata.get("full_name")
            or self.metadata.get("name")
            or self.metadata.get("username")
            or self.metadata.get("display_name")
        )
        parts = full.split() if isinstance(full, str) else []
        if parts:
            return parts[0], " ".join(parts[1:])

        return self.email_prefix or "", ""

    def __repr__(self):
        return f"<AuthUser {self.email}>"
