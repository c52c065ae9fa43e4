"""Fulfillment service - paying out funded items to event owners.

Flow for POST /api/fulfillments/create:
  1. Ownership + funding checks
  2. Connect account must be fully verified
  3. Insert a pending Fulfillment (idempotency key unique, one active
     fulfillment per item)
  4. Create the Stripe transfer for gross minus platform fee
  5. Mark processing; transfer.paid / transfer.failed webhooks finish it
"""

import logging
import math
from datetime import date, datetime, timedelta, timezone

import stripe
from flask import current_app
from sqlalchemy.exc import IntegrityError

from memora.extensions import db
from memora.models.event import Event
from memora.models.fulfillment import Fulfillment
from memora.models.item import Item
from memora.services.stripe_service import get_payment_settings
from memora.utils.validation import (
    is_valid_uuid,
    sanitize_string,
    validate_idempotency_key,
)

logger = logging.getLogger(__name__)

ESTIMATED_ARRIVAL_DAYS = 3


class FulfillmentError(Exception):
    """Carries the HTTP status and JSON body for a refused fulfillment."""

    def __init__(self, status_code, error, **extra):
        super().__init__(error)
        self.status_code = status_code
        self.payload = {"error": error, **extra}


def calculate_fee(gross_cents, fee_percentage):
    """Return (platform_fee_cents, net_cents). The fee rounds down."""
    fee = math.floor(gross_cents * fee_percentage / 100)
    return fee, gross_cents - fee


def _check_connect_account(user_id):
    """Return the verified Connect account id or raise FulfillmentError(402)."""
    settings = get_payment_settings(user_id)
    if not settings or not settings.stripe_connect_account_id:
        raise FulfillmentError(
            402, "stripe_connect_required",
            message="Please connect your bank account first",
            action="onboard",
        )

    account_id = settings.stripe_connect_account_id
    try:
        account = stripe.Account.retrieve(account_id)
    except Exception as e:
        logger.error(f"Failed to retrieve Connect account {account_id}: {e}")
        raise FulfillmentError(
            402, "stripe_account_invalid",
            message="Connected account is invalid or deleted",
            action="onboard",
        )

    if not account.get("charges_enabled") or not account.get("payouts_enabled"):
        raise FulfillmentError(
            402, "stripe_account_unverified",
            message="Bank account not yet verified. Please complete onboarding.",
            action="refresh_onboarding",
        )
    if (account.get("capabilities") or {}).get("transfers") != "active":
        raise FulfillmentError(
            402, "stripe_transfers_disabled",
            message="Transfers not enabled on your account",
            action="refresh_onboarding",
        )
    return account_id


def _insert_pending(item, event, user_id, gross, fee, net, method, notes, idempotency_key):
    """Create the pending row, refusing duplicates with 409."""
    if Fulfillment.query.filter_by(idempotency_key=idempotency_key).first():
        raise FulfillmentError(409, "Duplicate request detected (same idempotency key)")

    active = (
        Fulfillment.query
        .filter_by(item_id=item.id)
        .filter(Fulfillment.status.in_(Fulfillment.ACTIVE_STATUSES))
        .first()
    )
    if active:
        raise FulfillmentError(409, "Fulfillment already in progress for this item")

    fulfillment = Fulfillment(
        item_id=item.id,
        event_id=event.id,
        user_id=user_id,
        method=method,
        status="pending",
        gross_amount_cents=gross,
        platform_fee_cents=fee,
        net_amount_cents=net,
        idempotency_key=idempotency_key,
        notes=notes,
    )
    db.session.add(fulfillment)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise FulfillmentError(409, "Duplicate request detected (same idempotency key)")
    return fulfillment


def create_fulfillment(user_id, data):
    """Validate, record and pay out a fulfillment. Returns the response dict.

    Raises FulfillmentError with the status code to return.
    """
    item_id = data.get("itemId")
    event_id = data.get("eventId")
    method = data.get("fulfillmentMethod") or "bank_transfer"
    idempotency_key = data.get("idempotencyKey")

    if not is_valid_uuid(item_id):
        raise FulfillmentError(400, "Invalid Item ID")
    if not is_valid_uuid(event_id):
        raise FulfillmentError(400, "Invalid Event ID")
    key_error = validate_idempotency_key(idempotency_key)
    if key_error:
        raise FulfillmentError(400, key_error)
    notes = sanitize_string(data.get("notes") or "", 500)

    event = db.session.get(Event, event_id)
    if event is None or event.user_id != user_id:
        raise FulfillmentError(403, "Event not found or you do not have permission")

    item = Item.query.filter_by(id=item_id, event_id=event.id).first()
    if item is None:
        raise FulfillmentError(404, "Item not found")
    if item.is_fulfilled:
        raise FulfillmentError(400, "Item has already been fulfilled")
    if not item.is_fully_funded:
        raise FulfillmentError(
            400, "Item not fully funded",
            details={
                "current": item.current_amount_cents,
                "required": item.price_cents,
                "remaining": item.remaining_cents,
            },
        )

    account_id = _check_connect_account(user_id)

    gross = item.current_amount_cents
    fee, net = calculate_fee(gross, current_app.config["PLATFORM_FEE_PERCENTAGE"])

    fulfillment = _insert_pending(
        item, event, user_id, gross, fee, net, method, notes, idempotency_key
    )

    # --- Transfer ---
    try:
        transfer = stripe.Transfer.create(
            amount=net,
            currency="usd",
            destination=account_id,
            metadata={
                "fulfillment_id": fulfillment.id,
                "item_id": item.id,
                "event_id": event.id,
                "user_id": user_id,
                "item_title": item.title,
                "event_title": event.title,
            },
            description=f'Fulfillment for "{item.title}" - {event.title}',
            idempotency_key=f"fulfillment-{fulfillment.id}",
        )
    except Exception as e:
        logger.error(f"Stripe transfer for fulfillment {fulfillment.id} failed: {e}")
        fail_fulfillment(
            fulfillment.id, str(e), getattr(e, "code", None) or "stripe_transfer_failed"
        )
        raise FulfillmentError(
            500, "Transfer failed",
            message="Failed to initiate bank transfer. Please try again.",
        )

    fulfillment.stripe_transfer_id = transfer.id
    fulfillment.status = "processing"
    db.session.commit()

    logger.info(
        f"Fulfillment {fulfillment.id}: transfer {transfer.id} of {net} cents "
        f"(fee {fee}) to {account_id}"
    )

    return {
        "success": True,
        "fulfillment": {
            "id": fulfillment.id,
            "status": "processing",
            "gross_amount_cents": gross,
            "platform_fee_cents": fee,
            "net_amount_cents": net,
            "stripe_transfer_id": transfer.id,
            "estimated_arrival": (
                date.today() + timedelta(days=ESTIMATED_ARRIVAL_DAYS)
            ).isoformat(),
            "item": {"id": item.id, "title": item.title},
            "event": {"id": event.id, "title": event.title},
        },
    }


def complete_fulfillment(fulfillment_id):
    """Mark completed and the item fulfilled. Returns False if unknown."""
    fulfillment = db.session.get(Fulfillment, fulfillment_id)
    if fulfillment is None:
        return False

    fulfillment.status = "completed"
    fulfillment.completed_at = datetime.now(timezone.utc)
    fulfillment.item.is_fulfilled = True
    db.session.commit()
    return True


def fail_fulfillment(fulfillment_id, error_message, error_code):
    fulfillment = db.session.get(Fulfillment, fulfillment_id)
    if fulfillment is None:
        logger.error(f"Cannot fail unknown fulfillment {fulfillment_id}")
        return False

    fulfillment.status = "failed"
    fulfillment.error_message = error_message
    fulfillment.error_code = error_code
    db.session.commit()
    return True


def list_fulfillments(user_id, status=None, limit=20, offset=0):
    """Return (fulfillments, total) for the owner, newest first."""
    query = Fulfillment.query.filter_by(user_id=user_id)
    if status:
        query = query.filter_by(status=status)

    total = query.count()
    rows = (
        query.order_by(Fulfillment.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return rows, total
