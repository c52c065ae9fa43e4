"""Calendar service - date-range queries and calendar-only events.

A user's calendar shows the events they own plus events they have joined.
Recurring events (birthdays, anniversaries) repeat yearly on the same
month/day; Feb 29 falls back to Feb 28 in non-leap years.
"""

import calendar
import logging
from datetime import date

from sqlalchemy import or_

from memora.extensions import db
from memora.models.event import Event, EventMember
from memora.utils.validation import parse_iso_date, sanitize_string

logger = logging.getLogger(__name__)

MAX_RANGE_DAYS = 366
MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000

# event_type from the calendar UI → stored event_category
EVENT_TYPE_CATEGORIES = {
    "ceremony": "other",
    "casual": "casual",
}

INVALID_DATE_MESSAGE = "Invalid date format or date does not exist. Use YYYY-MM-DD"


def parse_range(start_raw, end_raw):
    """Validate a startDate/endDate pair. Returns (start, end).

    Raises ValueError with a user-facing message.
    """
    if not start_raw or not end_raw:
        raise ValueError("startDate and endDate are required")

    start = parse_iso_date(start_raw)
    end = parse_iso_date(end_raw)
    if start is None or end is None:
        raise ValueError(INVALID_DATE_MESSAGE)

    days = (end - start).days
    if days > MAX_RANGE_DAYS:
        raise ValueError(f"Date range cannot exceed {MAX_RANGE_DAYS} days")
    if days < 0:
        raise ValueError("Start date must be before end date")
    return start, end


def _anniversary(original, year):
    day = original.day
    if original.month == 2 and day == 29 and not calendar.isleap(year):
        day = 28
    return date(year, original.month, day)


def occurrences_in_range(event, start, end):
    """Dates on which `event` falls within [start, end]."""
    if event.event_date is None:
        return []
    if not event.is_recurring:
        return [event.event_date] if start <= event.event_date <= end else []

    dates = []
    for year in range(max(start.year, event.event_date.year), end.year + 1):
        occurrence = _anniversary(event.event_date, year)
        if start <= occurrence <= end and occurrence >= event.event_date:
            dates.append(occurrence)
    return dates


def get_events_in_range(user_id, start, end):
    """Owned + joined events occurring between start and end, by date."""
    joined_ids = db.session.query(EventMember.event_id).filter(
        EventMember.user_id == user_id,
        EventMember.status == "accepted",
    )
    candidates = (
        Event.query
        .filter(or_(Event.user_id == user_id, Event.id.in_(joined_ids)))
        .filter(Event.event_date.isnot(None))
        .filter(or_(
            Event.is_recurring.is_(True),
            Event.event_date.between(start, end),
        ))
        .all()
    )

    results = []
    for event in candidates:
        for occurrence in occurrences_in_range(event, start, end):
            data = event.to_dict()
            data["occurrence_date"] = occurrence.isoformat()
            data["is_owner"] = event.user_id == user_id
            results.append(data)

    results.sort(key=lambda e: (e["occurrence_date"], e["title"].lower()))
    return results


def _validate_title(title):
    message = f"Title must be between 1 and {MAX_TITLE_LENGTH} characters"
    if not isinstance(title, str) or len(title) > MAX_TITLE_LENGTH:
        raise ValueError(message)
    cleaned = sanitize_string(title, MAX_TITLE_LENGTH)
    if not cleaned:
        raise ValueError(message)
    return cleaned


def _validate_description(description):
    if description is None:
        return None
    if not isinstance(description, str):
        raise ValueError("Description must be a string")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")
    return sanitize_string(description, MAX_DESCRIPTION_LENGTH) or None


def _validate_event_type(event_type):
    if event_type not in EVENT_TYPE_CATEGORIES:
        raise ValueError('event_type must be either "ceremony" or "casual"')
    return EVENT_TYPE_CATEGORIES[event_type]


def create_calendar_event(user_id, data):
    """Create a calendar-only event (no registry). Raises ValueError."""
    title = data.get("title")
    event_date_raw = data.get("event_date")
    event_type = data.get("event_type")
    is_recurring = data.get("is_recurring")

    if not title or not event_date_raw or not event_type or not isinstance(is_recurring, bool):
        raise ValueError(
            "Missing required fields: title, event_date, event_type, is_recurring"
        )

    title = _validate_title(title)
    description = _validate_description(data.get("description"))
    category = _validate_event_type(event_type)
    event_date = parse_iso_date(event_date_raw)
    if event_date is None:
        raise ValueError(INVALID_DATE_MESSAGE)

    event = Event(
        user_id=user_id,
        title=title,
        description=description,
        event_date=event_date,
        event_category=category,
        is_recurring=is_recurring,
        registry_enabled=False,
    )
    db.session.add(event)
    db.session.commit()
    logger.info(f"Calendar event {event.id} created by {user_id}")
    return event


def update_calendar_event(event, data):
    """Apply a partial update to a calendar-only event. Raises ValueError."""
    updates = {}

    if "title" in data:
        updates["title"] = _validate_title(data["title"])
    if "description" in data:
        updates["description"] = _validate_description(data["description"])
    if "event_date" in data:
        event_date = parse_iso_date(data["event_date"])
        if event_date is None:
            raise ValueError(INVALID_DATE_MESSAGE)
        updates["event_date"] = event_date
    if "event_type" in data:
        updates["event_category"] = _validate_event_type(data["event_type"])
    if "is_recurring" in data:
        if not isinstance(data["is_recurring"], bool):
            raise ValueError("is_recurring must be a boolean")
        updates["is_recurring"] = data["is_recurring"]

    if not updates:
        raise ValueError("No valid fields to update")

    for field, value in updates.items():
        setattr(event, field, value)
    db.session.commit()
    return event
