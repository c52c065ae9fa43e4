"""Stripe service - webhook handling and Stripe Connect accounts.

Responsible for:
- Verifying incoming webhook signatures
- Dispatching to event-specific handlers
- Idempotency via the webhook_events_processed table
- Creating Express Connect accounts and onboarding links for event owners
- Syncing Connect verification state (webhook + status polling)
"""

import logging

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.profile import UserPaymentSettings
from memora.models.stripe_event import StripeEvent
from memora.services.payment_service import ItemNotFoundError, apply_payment

logger = logging.getLogger(__name__)


class WebhookRejected(Exception):
    """A verified event we refuse to acknowledge (e.g. missing metadata)."""

    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# ──────────────────────────────────────────────
# Webhooks
# ──────────────────────────────────────────────

def verify_webhook_signature(payload, sig_header):
    """Verify and construct a Stripe event from the raw webhook payload.

    Raises stripe.error.SignatureVerificationError on bad signature.
    """
    return stripe.Webhook.construct_event(
        payload, sig_header, current_app.config["STRIPE_WEBHOOK_SECRET"]
    )


def _record_event(event_id, event_type):
    """Mark an event processed. A concurrent delivery may have got here first."""
    db.session.add(StripeEvent(stripe_event_id=event_id, event_type=event_type))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Webhook event {event_id} already recorded by another delivery")


def handle_webhook_event(event):
    """Process a verified Stripe webhook event.

    Idempotency: checks webhook_events_processed before processing.
    If the event was already processed, returns immediately.

    Returns (success: bool, message: str, status_code: int). message is
    "duplicate" for a replayed event and "processed" on success.
    """
    event_id = event["id"]
    event_type = event["type"]

    # --- Idempotency check ---
    existing = StripeEvent.query.filter_by(
        stripe_event_id=event_id
    ).first()
    if existing:
        logger.info(f"Duplicate webhook event {event_id}, skipping")
        return True, "duplicate", 200

    logger.info(f"Processing webhook event {event_type} {event_id}")

    # --- Route to handler ---
    handlers = {
        "checkout.session.completed": _handle_checkout_completed,
        "payment_intent.payment_failed": _handle_payment_failed,
        "transfer.paid": _handle_transfer_paid,
        "transfer.failed": _handle_transfer_failed,
        "account.updated": _handle_account_updated,
    }

    handler = handlers.get(event_type)
    if handler:
        try:
            handler(event)
        except WebhookRejected as e:
            logger.error(f"Rejected {event_type} {event_id}: {e.message}")
            db.session.rollback()
            _record_event(event_id, event_type)
            return False, e.message, e.status_code
        except Exception as e:
            logger.error(f"Error handling {event_type}: {e}", exc_info=True)
            db.session.rollback()
            return False, "Failed to process webhook", 500

    # --- Record event for idempotency ---
    _record_event(event_id, event_type)

    return True, "processed", 200


# ──────────────────────────────────────────────
# Event Handlers
# ──────────────────────────────────────────────

def _handle_checkout_completed(event):
    """Handle checkout.session.completed.

    Credits the session's amount_total to the item named in metadata via
    apply_payment. A session the verification endpoint already credited is
    a no-op.
    """
    session = event["data"]["object"]
    metadata = session.get("metadata") or {}
    item_id = metadata.get("itemId")

    if not item_id:
        raise WebhookRejected("Item ID missing from metadata")

    try:
        applied, total = apply_payment(
            session_id=session["id"],
            item_id=item_id,
            amount_cents=session.get("amount_total"),
            contributor_name=metadata.get("contributorName"),
            contributor_email=metadata.get("contributorEmail"),
        )
    except ItemNotFoundError:
        logger.error(f"checkout.session.completed for unknown item {item_id} (session {session['id']})")
        return
    except ValueError as e:
        logger.error(f"checkout.session.completed with unusable payload: {e}")
        return

    if applied:
        logger.info(f"Contribution recorded for item {item_id}, new total {total}")
    else:
        logger.info(f"Session {session['id']} was already credited (idempotent)")


def _handle_payment_failed(event):
    """Handle payment_intent.payment_failed - log only, nothing to undo."""
    intent = event["data"]["object"]
    error = intent.get("last_payment_error") or {}
    metadata = intent.get("metadata") or {}

    item_id = None
    session_id = metadata.get("checkout_session_id")
    if session_id:
        try:
            session = stripe.checkout.Session.retrieve(session_id)
            item_id = (session.get("metadata") or {}).get("itemId")
        except Exception as e:
            logger.warning(f"Could not retrieve session {session_id}: {e}")

    logger.warning(
        f"Payment failed: intent={intent.get('id')} item={item_id} "
        f"amount={intent.get('amount')} {intent.get('currency')} "
        f"decline={error.get('decline_code') or error.get('code') or 'unknown'} "
        f"type={error.get('type')} message={error.get('message') or 'Payment failed'}"
    )


def _handle_transfer_paid(event):
    """Handle transfer.paid - the payout reached the owner's account."""
    from memora.services.fulfillment_service import complete_fulfillment

    transfer = event["data"]["object"]
    fulfillment_id = (transfer.get("metadata") or {}).get("fulfillment_id")
    if not fulfillment_id:
        logger.error(f"transfer.paid {transfer.get('id')} has no fulfillment_id")
        return

    if complete_fulfillment(fulfillment_id):
        logger.info(f"Fulfillment {fulfillment_id} completed by transfer {transfer.get('id')}")
    else:
        logger.error(f"transfer.paid for unknown fulfillment {fulfillment_id}")


def _handle_transfer_failed(event):
    """Handle transfer.failed - record Stripe's reason on the fulfillment."""
    from memora.services.fulfillment_service import fail_fulfillment

    transfer = event["data"]["object"]
    fulfillment_id = (transfer.get("metadata") or {}).get("fulfillment_id")
    if not fulfillment_id:
        logger.error(f"transfer.failed {transfer.get('id')} has no fulfillment_id")
        return

    fail_fulfillment(
        fulfillment_id,
        transfer.get("failure_message") or "Transfer failed",
        transfer.get("failure_code") or "unknown",
    )
    logger.warning(f"Fulfillment {fulfillment_id} failed (transfer {transfer.get('id')})")


def _handle_account_updated(event):
    """Handle account.updated - sync Connect verification state."""
    account = event["data"]["object"]
    user_id = (account.get("metadata") or {}).get("memora_user_id")
    if not user_id:
        logger.info(f"account.updated {account.get('id')} has no memora_user_id, skipping")
        return

    settings = sync_account_settings(account)
    if settings is None:
        logger.warning(f"account.updated for unknown account {account.get('id')}")
        return
    logger.info(
        f"Payment settings for user {user_id} now {settings.connect_status}"
    )


# ──────────────────────────────────────────────
# Connect
# ──────────────────────────────────────────────

def is_fully_verified(account):
    """Charges + payouts enabled and the transfers capability active."""
    capabilities = account.get("capabilities") or {}
    return bool(
        account.get("charges_enabled")
        and account.get("payouts_enabled")
        and capabilities.get("transfers") == "active"
    )


def get_payment_settings(user_id):
    return UserPaymentSettings.query.filter_by(user_id=user_id).first()


def sync_account_settings(account):
    """Write a Connect account's verification state to its settings row.

    Returns the updated UserPaymentSettings, or None if no row has that
    account id.
    """
    settings = UserPaymentSettings.query.filter_by(
        stripe_connect_account_id=account["id"]
    ).first()
    if settings is None:
        return None

    verified = is_fully_verified(account)
    settings.onboarding_completed = verified
    settings.connect_status = "active" if verified else "pending"
    settings.capabilities = dict(account.get("capabilities") or {})
    db.session.commit()
    return settings


def get_or_create_connect_account(user):
    """Return (settings, created) for the user's Express account."""
    settings = get_payment_settings(user.id)
    if settings and settings.stripe_connect_account_id:
        return settings, False

    account = stripe.Account.create(
        type="express",
        capabilities={"transfers": {"requested": True}},
        business_type="individual",
        email=user.email,
        metadata={"memora_user_id": user.id},
    )

    if settings is None:
        settings = UserPaymentSettings(user_id=user.id)
        db.session.add(settings)
    settings.stripe_connect_account_id = account.id
    settings.onboarding_completed = False
    settings.connect_status = "pending"
    db.session.commit()

    logger.info(f"Created Connect account {account.id} for user {user.id}")
    return settings, True


def create_onboarding_link(account_id, eventually_due_only=False):
    """Create a fresh account_onboarding link (they expire after minutes)."""
    base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    params = {
        "account": account_id,
        "refresh_url": f"{base_url}/dashboard?connect=refresh",
        "return_url": f"{base_url}/dashboard?connect=success",
        "type": "account_onboarding",
    }
    if eventually_due_only:
        params["collection_options"] = {
            "fields": "eventually_due",
            "future_requirements": "omit",
        }
    return stripe.AccountLink.create(**params)


def get_connect_status(settings):
    """Build the connect status payload; raises on Stripe retrieval failure."""
    account = stripe.Account.retrieve(settings.stripe_connect_account_id)

    capabilities = account.get("capabilities") or {}
    charges_enabled = bool(account.get("charges_enabled"))
    payouts_enabled = bool(account.get("payouts_enabled"))
    transfers_active = capabilities.get("transfers") == "active"
    details_submitted = bool(account.get("details_submitted"))
    verified = charges_enabled and payouts_enabled and transfers_active

    if verified and not settings.onboarding_completed:
        settings.onboarding_completed = True
        settings.connect_status = "active"
        db.session.commit()

    return {
        "connected": True,
        "onboardingCompleted": verified,
        "canReceivePayouts": verified,
        "accountId": settings.stripe_connect_account_id,
        "details": {
            "chargesEnabled": charges_enabled,
            "payoutsEnabled": payouts_enabled,
            "transfersActive": transfers_active,
            "detailsSubmitted": details_submitted,
            "requiresOnboarding": not details_submitted or not verified,
        },
    }
