"""Profile service - the editable profile row layered over auth metadata."""

import logging

from memora.extensions import db
from memora.models.profile import UserProfile
from memora.utils.validation import parse_iso_date, sanitize_string

logger = logging.getLogger(__name__)

MAX_DISPLAY_NAME_LENGTH = 100


def get_profile(user):
    """Merged profile: the stored row wins, auth metadata fills the gaps."""
    profile = UserProfile.query.filter_by(user_id=user.id).first()
    metadata = user.metadata

    return {
        "display_name": (
            (profile.display_name if profile else None)
            or metadata.get("display_name")
            or metadata.get("full_name")
            or ""
        ),
        "birthday": profile.birthday if profile else None,
        "phone": (profile.phone if profile else None) or "",
        "profile_photo_url": profile.profile_photo_url if profile else None,
        "email": user.email or "",
        "provider": user.provider,
        "created_at": (
            profile.created_at.isoformat()
            if profile and profile.created_at
            else user.created_at
        ),
    }


def _get_or_create(user_id):
    profile = UserProfile.query.filter_by(user_id=user_id).first()
    if profile is None:
        profile = UserProfile(user_id=user_id)
        db.session.add(profile)
    return profile


def update_profile(user_id, data):
    """Upsert display_name / birthday / phone. Empty values clear the field.

    Raises ValueError on a malformed birthday.
    """
    birthday = data.get("birthday") or None
    if birthday and parse_iso_date(birthday) is None:
        raise ValueError("Birthday must be a valid date in YYYY-MM-DD format")

    profile = _get_or_create(user_id)
    profile.display_name = sanitize_string(data.get("display_name"), MAX_DISPLAY_NAME_LENGTH) or None
    profile.birthday = birthday
    profile.phone = sanitize_string(data.get("phone"), 30) or None
    db.session.commit()
    return profile


def set_photo_url(user_id, url):
    profile = _get_or_create(user_id)
    profile.profile_photo_url = url
    db.session.commit()
    return profile


def profile_to_dict(profile):
    return {
        "user_id": profile.user_id,
        "display_name": profile.display_name,
        "birthday": profile.birthday,
        "phone": profile.phone,
        "profile_photo_url": profile.profile_photo_url,
    }
