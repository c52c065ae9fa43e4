"""Contact service - a user's saved people, used for bulk invitations."""

import logging

from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.contact import UserContact
from memora.services.auth_service import (
    find_user_by_email,
    get_user_by_id,
    search_users,
)

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 3
MAX_SEARCH_RESULTS = 10


class ContactError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _names(user):
    first, last = user.split_name() if user else ("", "")
    return {
        "first_name": first,
        "last_name": last,
        "full_name": f"{first} {last}".strip(),
    }


def serialize_contact(contact, user=None):
    return {
        "id": contact.id,
        "contact_user_id": contact.contact_user_id,
        "email": user.email if user and user.email else "",
        **_names(user),
        "created_at": contact.created_at.isoformat() if contact.created_at else None,
    }


def add_contact(user_id, contact_email):
    """Add the user with `contact_email` to user_id's contacts."""
    if not contact_email:
        raise ContactError("contact_email is required")

    contact_user = find_user_by_email(contact_email)
    if contact_user is None:
        raise ContactError("User not found with this email", 404)
    if contact_user.id == user_id:
        raise ContactError("Cannot add yourself as a contact")

    if UserContact.query.filter_by(user_id=user_id, contact_user_id=contact_user.id).first():
        raise ContactError("Contact already exists", 409)

    contact = UserContact(user_id=user_id, contact_user_id=contact_user.id)
    db.session.add(contact)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ContactError("Contact already exists", 409)

    return serialize_contact(contact, contact_user)


def list_contacts(user_id):
    contacts = (
        UserContact.query
        .filter_by(user_id=user_id)
        .order_by(UserContact.created_at.desc())
        .all()
    )
    return [
        serialize_contact(contact, get_user_by_id(contact.contact_user_id))
        for contact in contacts
    ]


def delete_contact(user_id, contact_id):
    contact = db.session.get(UserContact, contact_id)
    if contact is None:
        raise ContactError("Contact not found", 404)
    if contact.user_id != user_id:
        raise ContactError("Unauthorized to delete this contact", 403)

    db.session.delete(contact)
    db.session.commit()


def search_people(user_id, query):
    """Email search over all users, flagging existing contacts."""
    if not query or len(query) < MIN_SEARCH_LENGTH:
        raise ContactError(
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters"
        )

    matches = search_users(query, exclude_user_id=user_id, limit=MAX_SEARCH_RESULTS)
    contact_ids = {
        row.contact_user_id
        for row in UserContact.query.filter_by(user_id=user_id).all()
    }
    return [
        {
            "id": user.id,
            "email": user.email,
            **_names(user),
            "is_contact": user.id in contact_ids,
        }
        for user in matches
    ]
