"""iCalendar (.ics) export for a single all-day event."""

import re
from datetime import datetime, timedelta, timezone

PRODID = "-//Memora//Event Calendar//EN"
UID_DOMAIN = "mymemoraapp.com"


def escape_text(value):
    """Escape a TEXT value per RFC 5545 (backslash, ; , newlines)."""
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r", "")
        .replace("\n", "\\n")
    )


def safe_filename(title):
    name = re.sub(r"[^a-zA-Z0-9\s-]", "", title or "")
    name = re.sub(r"\s+", "_", name)[:50]
    return name or "event"


def _utc_stamp(value):
    value = value or datetime.now(timezone.utc)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def build_event_ics(event, event_url=None):
    """Return the VCALENDAR text for an event that has an event_date."""
    description = escape_text(event.description or "")
    if event_url:
        separator = "\\n\\n" if description else ""
        description = f"{description}{separator}View on Memora: {event_url}"

    location = ""
    if event.location:
        location = escape_text(
            event.location.get("formatted_address") or event.location.get("name") or ""
        )

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{event.id}@{UID_DOMAIN}",
        f"DTSTAMP:{_utc_stamp(event.created_at)}",
        f"DTSTART;VALUE=DATE:{event.event_date:%Y%m%d}",
        f"DTEND;VALUE=DATE:{event.event_date + timedelta(days=1):%Y%m%d}",
        f"SUMMARY:{escape_text(event.title)}",
    ]
    if description:
        lines.append(f"DESCRIPTION:{description}")
    if location:
        lines.append(f"LOCATION:{location}")
    if event_url:
        lines.append(f"URL:{event_url}")
    lines += ["END:VEVENT", "END:VCALENDAR"]

    return "\r\n".join(lines)
