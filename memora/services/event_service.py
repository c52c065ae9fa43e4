"""Event service - registry events and their membership."""

import logging
import re
import secrets

from memora.extensions import db
from memora.models.event import Event, EventMember
from memora.services.auth_service import get_user_by_id
from memora.utils.validation import parse_iso_date, sanitize_string

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 2000
UPDATABLE_FIELDS = ("location", "theme")


def slugify(value):
    """Convert a string to a URL-safe slug: lowercase, only a-z 0-9 and hyphens."""
    value = (value or "").lower()
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"[\s-]+", "-", value)
    return value.strip("-")


def generate_event_slug(title):
    """Title slug plus a short random suffix, unique across events."""
    base = slugify(title)[:60] or "event"
    while True:
        slug = f"{base}-{secrets.token_hex(3)}"
        if not Event.query.filter_by(slug=slug).first():
            return slug


def create_event(user_id, data):
    """Create a registry event. Raises ValueError."""
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValueError("Title is required")
    if len(title) > MAX_TITLE_LENGTH:
        raise ValueError(f"Title cannot exceed {MAX_TITLE_LENGTH} characters")

    description = data.get("description")
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")

    event_date = None
    if data.get("event_date"):
        event_date = parse_iso_date(data["event_date"])
        if event_date is None:
            raise ValueError("Invalid date format. Use YYYY-MM-DD")

    category = data.get("event_category") or "other"
    if category not in Event.CATEGORIES:
        raise ValueError(
            "event_category must be one of: " + ", ".join(Event.CATEGORIES)
        )

    location = data.get("location")
    if location is not None and not isinstance(location, dict):
        raise ValueError("location must be an object")

    event = Event(
        user_id=user_id,
        title=sanitize_string(title, MAX_TITLE_LENGTH),
        description=sanitize_string(description, MAX_DESCRIPTION_LENGTH) or None,
        event_date=event_date,
        slug=generate_event_slug(title),
        location=location,
        theme=sanitize_string(data.get("theme"), 50) or None,
        event_category=category,
        is_recurring=bool(data.get("is_recurring", False)),
        registry_enabled=True,
    )
    db.session.add(event)
    db.session.commit()
    logger.info(f"Event {event.id} ({event.slug}) created by {user_id}")
    return event


def update_event_details(event, data):
    """Update location and/or theme. Raises ValueError when neither is given."""
    updates = {field: data[field] for field in UPDATABLE_FIELDS if field in data}
    if not updates:
        raise ValueError("No valid fields provided for update")

    if "location" in updates and updates["location"] is not None \
            and not isinstance(updates["location"], dict):
        raise ValueError("location must be an object")
    if "theme" in updates:
        updates["theme"] = sanitize_string(updates["theme"], 50) or None

    for field, value in updates.items():
        setattr(event, field, value)
    db.session.commit()
    return event


def _person(user):
    return {"id": user.id, "email": user.email, "name": user.display_name}


def list_members(event):
    """Return {owner, members} with names resolved through Supabase Auth."""
    owner = get_user_by_id(event.user_id)

    members = []
    for member in event.members.order_by(EventMember.joined_at.asc()).all():
        user = get_user_by_id(member.user_id)
        members.append({
            "id": member.id,
            "user_id": member.user_id,
            "status": member.status,
            "joined_at": member.joined_at.isoformat() if member.joined_at else None,
            "email": user.email if user else "Unknown",
            "name": user.display_name if user else "Unknown",
        })

    return {"owner": _person(owner) if owner else None, "members": members}


def remove_member(event, acting_user_id, member_user_id):
    """Owner removes anyone; a member may remove themself.

    Raises PermissionError when the caller may not remove that member,
    LookupError when the user isn't a member.
    """
    if acting_user_id != event.user_id and acting_user_id != member_user_id:
        raise PermissionError("Not authorized")

    member = event.members.filter_by(user_id=member_user_id).first()
    if member is None:
        raise LookupError("Member not found")

    db.session.delete(member)
    db.session.commit()
    logger.info(f"User {member_user_id} removed from event {event.id} by {acting_user_id}")
