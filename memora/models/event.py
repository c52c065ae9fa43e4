"""Event models.

- Event: a registry (slug + items) or a calendar-only entry
  (registry_enabled=False). Owned by a Supabase auth user id.
- EventMember: a user who joined an event through its invite code.
- EventInvitation: a pending/accepted/declined invite by email or phone.
- EventReminder: a scheduled reminder email, at most one per type per event.
"""

import secrets
import uuid

from memora.extensions import db


def _invite_code():
    return secrets.token_urlsafe(6)


class Event(db.Model):
    __tablename__ = "events"

    CATEGORIES = ["birthday", "wedding", "baby_shower", "holiday", "casual", "other"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    event_date = db.Column(db.Date, index=True)
    slug = db.Column(db.String(255), unique=True)
    invite_code = db.Column(
        db.String(32), unique=True, nullable=False, default=_invite_code
    )
    location = db.Column(db.JSON)  # {name, address, lat, lng, place_id}
    theme = db.Column(db.String(50))
    event_category = db.Column(db.String(50), default="other")
    is_recurring = db.Column(db.Boolean, default=False, nullable=False)
    registry_enabled = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    items = db.relationship(
        "Item", back_populates="event", lazy="dynamic", cascade="all, delete-orphan"
    )
    members = db.relationship(
        "EventMember", back_populates="event", lazy="dynamic", cascade="all, delete-orphan"
    )
    invitations = db.relationship(
        "EventInvitation", back_populates="event", lazy="dynamic", cascade="all, delete-orphan"
    )
    reminders = db.relationship(
        "EventReminder", back_populates="event", lazy="dynamic", cascade="all, delete-orphan"
    )

    def is_member(self, user_id):
        return (
            self.members.filter_by(user_id=user_id).first() is not None
        )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "date": self.event_date.isoformat() if self.event_date else None,
            "slug": self.slug,
            "invite_code": self.invite_code,
            "location": self.location,
            "theme": self.theme,
            "event_category": self.event_category,
            "is_recurring": self.is_recurring,
            "registry_enabled": self.registry_enabled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Event {self.title} ({self.id})>"


class EventMember(db.Model):
    __tablename__ = "event_members"
    __table_args__ = (
        db.UniqueConstraint("event_id", "user_id", name="uq_event_member"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id"), nullable=False, index=True
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="accepted")
    joined_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    event = db.relationship("Event", back_populates="members")

    def __repr__(self):
        return f"<EventMember user={self.user_id} event={self.event_id}>"


class EventInvitation(db.Model):
    __tablename__ = "event_invitations"

    STATUSES = ["pending", "accepted", "declined"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id"), nullable=False, index=True
    )
    invited_by = db.Column(db.String(36), nullable=False)
    email = db.Column(db.String(255), index=True)   # lowercased
    phone = db.Column(db.String(20), index=True)    # E.164
    status = db.Column(db.String(20), nullable=False, default="pending")
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    responded_at = db.Column(db.DateTime(timezone=True))

    # --- Relationships ---
    event = db.relationship("Event", back_populates="invitations")

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
        }

    def __repr__(self):
        return f"<EventInvitation {self.email or self.phone} ({self.status})>"


class EventReminder(db.Model):
    __tablename__ = "event_reminders"
    __table_args__ = (
        db.UniqueConstraint("event_id", "reminder_type", name="uq_event_reminder_type"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id"), nullable=False, index=True
    )
    user_id = db.Column(db.String(36), nullable=False)
    reminder_type = db.Column(db.String(20), nullable=False)  # e.g. "1_day"
    send_to_members = db.Column(db.Boolean, default=False, nullable=False)
    scheduled_for = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    is_sent = db.Column(db.Boolean, default=False, nullable=False)
    sent_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    event = db.relationship("Event", back_populates="reminders")

    def to_dict(self):
        return {
            "id": self.id,
            "event_id": self.event_id,
            "reminder_type": self.reminder_type,
            "send_to_members": self.send_to_members,
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "is_sent": self.is_sent,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
        }

    def __repr__(self):
        return f"<EventReminder {self.reminder_type} event={self.event_id}>"
