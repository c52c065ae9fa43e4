"""
Email service for Memora.

Sends transactional emails through Resend. Templates live under
templates/emails/ and are rendered with Jinja2 before sending.

Usage:
    from memora.services.email_service import send_email

    send_email(
        to="guest@example.com",
        subject="You're invited",
        template="emails/invitation.html",
        context={"owner_name": "Jane"},
    )
"""

import logging
import threading

import resend
from flask import current_app, render_template

logger = logging.getLogger(__name__)


def _build_payload(app, to, subject, html_body, reply_to=None):
    payload = {
        "from": app.config.get("RESEND_FROM_EMAIL"),
        "to": [to] if isinstance(to, str) else list(to),
        "subject": subject,
        "html": html_body,
    }
    if reply_to:
        payload["reply_to"] = reply_to
    return payload


def _send_resend(app, payload):
    """Send one email through Resend.

    Returns (ok: bool, error: str|None). Never raises.
    """
    with app.app_context():
        api_key = app.config.get("RESEND_API_KEY")
        if not api_key:
            logger.warning("Email not sent - RESEND_API_KEY not configured.")
            return False, "Email service not configured"

        resend.api_key = api_key
        try:
            response = resend.Emails.send(payload)
        except Exception as e:
            logger.error(f"Failed to send email to {payload['to']}: {e}")
            return False, str(e)

        if not isinstance(response, dict) or not response.get("id"):
            logger.error(f"Unexpected Resend response for {payload['to']}: {response}")
            return False, str(response)

        logger.info(f"Email sent to {payload['to']} - {payload['subject']}")
        return True, None


def send_email(to, subject, template, context=None, reply_to=None):
    """
    Send a templated HTML email without blocking the request.

    Args:
        to:        Recipient email address (str or list).
        subject:   Email subject line.
        template:  Path to Jinja2 HTML template (relative to templates/).
        context:   Dict of variables to pass to the template.
        reply_to:  Optional reply-to address.
    """
    app = current_app._get_current_object()
    html_body = render_template(template, **(context or {}))
    payload = _build_payload(app, to, subject, html_body, reply_to)

    # Send in background thread so the request doesn't block
    thread = threading.Thread(target=_send_resend, args=(app, payload))
    thread.daemon = True
    thread.start()


def send_email_sync(to, subject, template, context=None, reply_to=None):
    """
    Same as send_email but blocks until Resend answers. Use where the
    caller reports delivery back to the client.

    Returns (ok: bool, error: str|None).
    """
    app = current_app._get_current_object()
    html_body = render_template(template, **(context or {}))
    payload = _build_payload(app, to, subject, html_body, reply_to)
    return _send_resend(app, payload)
