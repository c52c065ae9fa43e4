"""Input validation and sanitising helpers shared by the JSON routes."""

import re
from datetime import date, datetime

import bleach

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
IDEMPOTENCY_KEY_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MIN_AMOUNT_CENTS = 1
MAX_AMOUNT_CENTS = 1_000_000  # $10,000


def is_valid_uuid(value):
    return isinstance(value, str) and bool(UUID_RE.match(value))


def is_valid_email(value):
    return isinstance(value, str) and bool(EMAIL_RE.match(value.strip()))


def validate_idempotency_key(key):
    """Return an error message, or None if the key is acceptable."""
    if not key or not isinstance(key, str):
        return "Idempotency key is required"
    if len(key) < 16:
        return "Idempotency key must be at least 16 characters"
    if not IDEMPOTENCY_KEY_RE.match(key):
        return "Idempotency key contains invalid characters"
    return None


def validate_amount(amount, min_cents=MIN_AMOUNT_CENTS, max_cents=MAX_AMOUNT_CENTS):
    """Validate an amount in integer cents.

    Raises ValueError with a user-facing message.
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError("Amount must be a whole number of cents")
    if amount < min_cents:
        raise ValueError(f"Amount must be at least {min_cents} cents")
    if amount > max_cents:
        raise ValueError(f"Amount cannot exceed {max_cents} cents")
    return amount


def sanitize_string(text, max_length=None):
    """Strip HTML tags, NUL bytes and surrounding whitespace, then truncate."""
    if text is None:
        return None
    cleaned = bleach.clean(str(text), tags=[], strip=True).replace("\x00", "").strip()
    if max_length is not None:
        cleaned = cleaned[:max_length]
    return cleaned


def parse_iso_date(value):
    """Parse a strict YYYY-MM-DD string. Returns a date or None."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None
