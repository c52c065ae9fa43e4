"""Per-user settings stored alongside Supabase Auth.

- UserProfile: editable profile fields that override auth metadata.
- UserPaymentSettings: the user's Stripe Connect account and its
  onboarding state, synced from account.updated webhooks.
"""

import uuid

from memora.extensions import db


class UserProfile(db.Model):
    __tablename__ = "user_profiles"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), unique=True, nullable=False)
    display_name = db.Column(db.String(255))
    birthday = db.Column(db.String(10))  # YYYY-MM-DD
    phone = db.Column(db.String(30))
    profile_photo_url = db.Column(db.Text)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<UserProfile {self.user_id}>"


class UserPaymentSettings(db.Model):
    __tablename__ = "user_payment_settings"

    CONNECT_STATUSES = ["pending", "active"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), unique=True, nullable=False)
    stripe_connect_account_id = db.Column(db.String(255), unique=True)  # e.g. "acct_1Abc..."
    onboarding_completed = db.Column(db.Boolean, default=False, nullable=False)
    connect_status = db.Column(db.String(20), default="pending")
    capabilities = db.Column(db.JSON)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self):
        return f"<UserPaymentSettings {self.user_id} {self.stripe_connect_account_id}>"
