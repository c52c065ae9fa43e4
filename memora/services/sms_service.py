"""SMS service - Twilio Messages REST API over requests.

Phone helpers normalise US numbers to E.164 before storing or sending.
"""

import logging
import re

import requests
from flask import current_app

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSNotConfigured(Exception):
    """Twilio credentials or sender number are missing."""


class SMSSendError(Exception):
    """Twilio refused or could not be reached."""


def _digits(phone):
    return re.sub(r"\D", "", phone or "")


def format_phone_number(phone):
    """Format to E.164, assuming US for bare 10-digit numbers."""
    digits = _digits(phone)
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


def is_valid_us_phone(phone):
    digits = _digits(phone)
    return len(digits) == 10 or (len(digits) == 11 and digits.startswith("1"))


def send_sms(to, body):
    """Send one SMS. Returns the Twilio message SID.

    Raises SMSNotConfigured or SMSSendError.
    """
    sid = current_app.config.get("TWILIO_ACCOUNT_SID")
    token = current_app.config.get("TWILIO_AUTH_TOKEN")
    sender = current_app.config.get("TWILIO_PHONE_NUMBER")

    if not sid or not token:
        raise SMSNotConfigured("Twilio not configured")
    if not sender:
        raise SMSNotConfigured("no sender number")

    try:
        resp = requests.post(
            f"{TWILIO_API_BASE}/Accounts/{sid}/Messages.json",
            auth=(sid, token),
            data={"To": to, "From": sender, "Body": body},
            timeout=15,
        )
    except requests.RequestException as e:
        logger.error(f"Twilio request to {to} failed: {e}")
        raise SMSSendError(str(e)) from e

    if resp.status_code >= 400:
        try:
            message = resp.json().get("message") or resp.text
        except ValueError:
            message = resp.text
        logger.error(f"Twilio rejected SMS to {to}: {resp.status_code} {message}")
        raise SMSSendError(message)

    message_sid = resp.json().get("sid")
    logger.info(f"SMS sent to {to} ({message_sid})")
    return message_sid
