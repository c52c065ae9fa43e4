"""Reminder service - scheduled "your event is coming up" emails.

Owners pick up to two reminder timings per event. Each reminder is due at
09:00 UTC on the event day minus its interval. process_reminders() sends
whatever is due and is designed to be called from the Flask CLI
(`flask send-reminders`) on an hourly cron.
"""

import logging
from datetime import datetime, time, timedelta, timezone

import click
from flask import current_app
from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.event import EventMember, EventReminder
from memora.services.auth_service import get_user_by_id
from memora.services.email_service import send_email_sync

logger = logging.getLogger(__name__)

MAX_REMINDERS_PER_EVENT = 2
BATCH_SIZE = 50
REMINDER_HOUR = 9

REMINDER_INTERVALS = {
    "1_hour": timedelta(hours=1),
    "2_hours": timedelta(hours=2),
    "1_day": timedelta(days=1),
    "2_days": timedelta(days=2),
    "3_days": timedelta(days=3),
    "1_week": timedelta(weeks=1),
    "2_weeks": timedelta(weeks=2),
    "1_month": timedelta(days=30),
}

REMINDER_LABELS = {
    "1_hour": "1 hour",
    "2_hours": "2 hours",
    "1_day": "1 day",
    "2_days": "2 days",
    "3_days": "3 days",
    "1_week": "1 week",
    "2_weeks": "2 weeks",
    "1_month": "1 month",
}


def calculate_scheduled_for(event_date, reminder_type):
    """09:00 UTC on event_date minus the reminder's interval."""
    event_start = datetime.combine(
        event_date, time(REMINDER_HOUR, 0), tzinfo=timezone.utc
    )
    return event_start - REMINDER_INTERVALS[reminder_type]


def create_reminder(event, user_id, reminder_type, send_to_members=True):
    """Create a reminder for an owned event.

    Raises ValueError with a user-facing message on any refusal.
    """
    if reminder_type not in REMINDER_INTERVALS:
        raise ValueError(
            "Invalid reminder_type. Must be one of: "
            + ", ".join(REMINDER_INTERVALS)
        )
    if not event.event_date:
        raise ValueError("Cannot set reminder for event without a date")

    if event.reminders.count() >= MAX_REMINDERS_PER_EVENT:
        raise ValueError(f"Maximum {MAX_REMINDERS_PER_EVENT} reminders per event allowed")

    scheduled_for = calculate_scheduled_for(event.event_date, reminder_type)
    if scheduled_for < datetime.now(timezone.utc):
        raise ValueError("Cannot set reminder for a time that has already passed")

    if event.reminders.filter_by(reminder_type=reminder_type).first():
        raise ValueError("A reminder with this timing already exists for this event")

    reminder = EventReminder(
        event_id=event.id,
        user_id=user_id,
        reminder_type=reminder_type,
        send_to_members=bool(send_to_members),
        scheduled_for=scheduled_for,
    )
    db.session.add(reminder)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ValueError("A reminder with this timing already exists for this event")
    return reminder


def format_event_date(value):
    """date(2026, 6, 12) → 'Friday, June 12, 2026'."""
    if not value:
        return "Date TBD"
    return f"{value:%A, %B} {value.day}, {value.year}"


def _collect_recipients(reminder, owner):
    recipients = []
    if owner and owner.email:
        recipients.append(owner.email)

    if reminder.send_to_members:
        members = EventMember.query.filter_by(
            event_id=reminder.event_id, status="accepted"
        ).all()
        for member in members:
            user = get_user_by_id(member.user_id)
            if user and user.email and user.email not in recipients:
                recipients.append(user.email)
    return recipients


def _event_url(event):
    base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    if event.slug:
        return f"{base_url}/event/{event.slug}"
    return f"{base_url}/dashboard"


def process_reminders(dry_run=False):
    """Send every due, unsent reminder (up to BATCH_SIZE per run).

    Args:
        dry_run: If True, log what would be sent but don't actually send.

    Returns:
        (sent, errors) counts.
    """
    now = datetime.now(timezone.utc)
    sent_count = 0
    error_count = 0

    if dry_run:
        click.echo("[DRY RUN] No emails will actually be sent.\n")

    due = (
        EventReminder.query
        .filter(EventReminder.is_sent.is_(False))
        .filter(EventReminder.scheduled_for <= now)
        .order_by(EventReminder.scheduled_for.asc())
        .limit(BATCH_SIZE)
        .all()
    )

    click.echo(f"Found {len(due)} due reminder(s).")
    if not due:
        return 0, 0

    for reminder in due:
        event = reminder.event
        click.echo(f"── {event.title} ({reminder.reminder_type}) ──")

        try:
            owner = get_user_by_id(event.user_id)
            recipients = _collect_recipients(reminder, owner)

            if not recipients:
                click.echo("   No recipients, marking as sent.")
                if not dry_run:
                    reminder.is_sent = True
                    reminder.sent_at = now
                    db.session.commit()
                continue

            subject = f"Reminder: {event.title} is coming up!"
            click.echo(f"   {'WOULD SEND' if dry_run else 'SENDING'} → {', '.join(recipients)}")
            if dry_run:
                sent_count += 1
                continue

            location = event.location or {}
            ok, error = send_email_sync(
                to=recipients,
                subject=subject,
                template="emails/event_reminder.html",
                context={
                    "event_title": event.title,
                    "event_date": format_event_date(event.event_date),
                    "reminder_label": REMINDER_LABELS.get(reminder.reminder_type, "soon"),
                    "owner_name": (
                        owner.metadata.get("full_name") or owner.metadata.get("name")
                        if owner else None
                    ) or "Event Host",
                    "event_url": _event_url(event),
                    "location_name": location.get("name") or location.get("formatted_address"),
                },
            )
            if not ok:
                click.echo(f"   ERROR: {error}")
                error_count += 1
                continue

            reminder.is_sent = True
            reminder.sent_at = now
            db.session.commit()
            sent_count += 1
            click.echo(f"   Sent to {len(recipients)} recipient(s).")

        except Exception as e:
            db.session.rollback()
            logger.error(f"Error processing reminder {reminder.id}: {e}", exc_info=True)
            click.echo(f"   ERROR: {e}")
            error_count += 1

    click.echo(f"\nDone. {sent_count} sent, {error_count} error(s).")
    return sent_count, error_count
