"""Payment service - contributions to registry items.

Responsible for:
- Creating Stripe Checkout Sessions for a contribution
- apply_payment: the single place an item total is ever incremented
- Verifying a checkout session when the client returns from Stripe, and
  crediting it if the webhook hasn't arrived yet
- Mapping decline codes to messages a contributor can act on

Both the webhook (checkout.session.completed) and the verification
endpoint call apply_payment. The contributions.stripe_session_id unique
constraint is the only guard: whichever path inserts the ledger row first
increments the item, the other gets an IntegrityError and does nothing.
"""

import logging
import time

import stripe
from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.item import Contribution, Item
from memora.utils.validation import validate_amount

logger = logging.getLogger(__name__)

MIN_CHECKOUT_CENTS = 50  # Stripe's minimum charge in USD
MAX_CHECKOUT_CENTS = 1_000_000

GENERIC_FAILURE_MESSAGE = (
    "Payment failed. Please try again or contact support if the problem persists."
)

DECLINE_MESSAGES = {
    "card_declined": (
        "Your card was declined. Please contact your card issuer or try a "
        "different payment method."
    ),
    "insufficient_funds": (
        "Insufficient funds in your account. Please use a different payment "
        "method or contact your bank."
    ),
    "expired_card": (
        "Your card has expired. Please update your payment information and try again."
    ),
    "incorrect_cvc": "The CVV code entered is incorrect. Please verify and try again.",
    "incorrect_zip": "The ZIP code entered is incorrect. Please verify and try again.",
    "generic_decline": (
        "Your bank has rejected the transaction. Please contact your bank for "
        "more details or try a different payment method."
    ),
}


class ItemNotFoundError(Exception):
    """The item named in checkout metadata does not exist."""


# ──────────────────────────────────────────────
# Ledger
# ──────────────────────────────────────────────

def apply_payment(session_id, item_id, amount_cents, contributor_name=None, contributor_email=None):
    """Credit a paid checkout session to an item, at most once.

    Inserts the Contribution row and increments items.current_amount_cents
    in one transaction. The increment is a single UPDATE expression, so
    concurrent payments for different sessions never lose each other's
    amounts.

    Returns (applied: bool, current_amount_cents: int). applied is False
    when a Contribution for session_id already exists.

    Raises ValueError for a missing session id or non-positive amount,
    ItemNotFoundError when the item doesn't exist.
    """
    if not session_id:
        raise ValueError("session_id is required")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValueError(f"Invalid amount for session {session_id}: {amount_cents!r}")

    item = db.session.get(Item, item_id) if item_id else None
    if item is None:
        raise ItemNotFoundError(f"Item {item_id} not found")

    contribution = Contribution(
        item_id=item.id,
        contributor_name=contributor_name or None,
        contributor_email=contributor_email or None,
        amount_cents=amount_cents,
        stripe_session_id=session_id,
        status="completed",
    )
    db.session.add(contribution)

    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        logger.info(f"Session {session_id} already applied, skipping")
        item = db.session.get(Item, item_id)
        return False, item.current_amount_cents

    db.session.execute(
        update(Item)
        .where(Item.id == item.id)
        .values(current_amount_cents=Item.current_amount_cents + amount_cents)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    db.session.refresh(item)

    logger.info(
        f"Applied {amount_cents} cents from session {session_id} to item "
        f"{item.id} (total now {item.current_amount_cents})"
    )
    return True, item.current_amount_cents


# ──────────────────────────────────────────────
# Checkout
# ──────────────────────────────────────────────

def create_checkout_session(item, amount_cents, contributor_name=None, contributor_email=None):
    """Create a one-off Stripe Checkout Session contributing to `item`.

    Returns the Stripe session object (session.id + session.url).
    """
    validate_amount(amount_cents, MIN_CHECKOUT_CENTS, MAX_CHECKOUT_CENTS)

    base_url = current_app.config["APP_BASE_URL"].rstrip("/")
    event = item.event
    event_path = f"{base_url}/event/{event.slug or event.id}"

    params = {
        "mode": "payment",
        "payment_method_types": ["card"],
        "line_items": [{
            "price_data": {
                "currency": "usd",
                "product_data": {
                    "name": f"Gift: {item.title}",
                    "description": f"Contribution for {event.title}",
                },
                "unit_amount": amount_cents,
            },
            "quantity": 1,
        }],
        "success_url": f"{event_path}?success=true&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{event_path}?canceled=true",
        "metadata": {
            "itemId": item.id,
            "contributorName": contributor_name or "",
            "contributorEmail": contributor_email or "",
        },
    }
    if contributor_email:
        params["customer_email"] = contributor_email

    session = stripe.checkout.Session.create(**params)
    logger.info(f"Checkout session {session.id} created for item {item.id} ({amount_cents} cents)")
    return session


# ──────────────────────────────────────────────
# Verification
# ──────────────────────────────────────────────

def classify_payment_failure(session):
    """Derive (failed, error_type, error_message) from a checkout session.

    Looks at the expanded payment_intent's last_payment_error first, then
    falls back to payment_status == "unpaid".
    """
    failed = False
    error_type = None
    error_message = None

    payment_intent = session.get("payment_intent")
    if payment_intent and not isinstance(payment_intent, str):
        error = payment_intent.get("last_payment_error")
        if error:
            failed = True
            code = error.get("decline_code") or error.get("code")
            if code and code in DECLINE_MESSAGES:
                error_type = code
                error_message = DECLINE_MESSAGES[code]
            elif error.get("message"):
                error_type = code or "payment_failed"
                error_message = error["message"]
            else:
                error_type = "payment_failed"
                error_message = GENERIC_FAILURE_MESSAGE

    if session.get("payment_status") == "unpaid" and not failed:
        failed = True
        error_type = "payment_failed"
        error_message = GENERIC_FAILURE_MESSAGE

    return failed, error_type, error_message


def verify_checkout_session(session_id):
    """Report the state of a checkout session and self-heal a missed webhook.

    Returns (payload: dict, http_status: int). Never raises for Stripe or
    database trouble: retrieval errors are reported as an invalid session,
    and a failed fallback credit is logged with databaseUpdated=False.
    """
    if not session_id:
        return {"valid": False, "error": "Session ID is required"}, 400

    try:
        session = stripe.checkout.Session.retrieve(
            session_id, expand=["payment_intent"]
        )
    except Exception as e:
        logger.warning(f"Could not retrieve checkout session {session_id}: {e}")
        return {
            "valid": False,
            "error": "Invalid or expired session",
            "status": "invalid",
        }, 200

    expires_at = session.get("expires_at")
    if expires_at and expires_at < int(time.time()):
        return {
            "valid": False,
            "error": "Payment session has expired",
            "status": "expired",
        }, 200

    payment_status = session.get("payment_status")
    metadata = session.get("metadata") or {}
    item_id = metadata.get("itemId")
    amount = session.get("amount_total")

    failed, error_type, error_message = classify_payment_failure(session)
    completed = payment_status == "paid" and not failed

    database_updated = False
    if completed and item_id:
        try:
            database_updated, _ = apply_payment(
                session_id=session["id"],
                item_id=item_id,
                amount_cents=amount,
                contributor_name=metadata.get("contributorName"),
                contributor_email=metadata.get("contributorEmail"),
            )
            if database_updated:
                logger.info(f"Verification credited session {session['id']} before the webhook")
        except Exception as e:
            db.session.rollback()
            logger.error(
                f"Fallback credit for session {session_id} failed: {e}",
                exc_info=True,
            )

    customer_details = session.get("customer_details") or {}

    return {
        "valid": True,
        "status": payment_status,
        "amount": amount,
        "itemId": item_id,
        "completed": completed,
        "failed": failed,
        "errorType": error_type,
        "errorMessage": error_message,
        "currency": session.get("currency"),
        "customerEmail": customer_details.get("email"),
        "databaseUpdated": database_updated,
    }, 200
