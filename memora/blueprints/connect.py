"""Connect blueprint - /api/connect/*

Stripe Connect Express onboarding for event owners, so funded items can be
paid out to their bank account.

Route Map:
  POST /api/connect/onboard  - create account (if needed) + onboarding link
  POST /api/connect/refresh  - fresh onboarding link for an existing account
  GET  /api/connect/status   - verification state as Stripe reports it
"""

import logging

import stripe
from flask import Blueprint, jsonify
from flask_login import current_user

from memora.decorators import api_login_required
from memora.services.stripe_service import (
    create_onboarding_link,
    get_connect_status,
    get_or_create_connect_account,
    get_payment_settings,
    is_fully_verified,
)

logger = logging.getLogger(__name__)

connect_bp = Blueprint("connect", __name__, url_prefix="/api/connect")


@connect_bp.route("/onboard", methods=["POST"])
@api_login_required
def onboard():
    """Start (or resume) Connect onboarding."""
    existing = get_payment_settings(current_user.id)
    if existing and existing.stripe_connect_account_id and existing.onboarding_completed:
        return jsonify({
            "success": True,
            "alreadyOnboarded": True,
            "message": "Bank account already connected",
        })

    try:
        settings, created = get_or_create_connect_account(current_user)
        link = create_onboarding_link(settings.stripe_connect_account_id)
    except Exception as e:
        logger.error(f"Connect onboarding failed for {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to create onboarding link"}), 500

    return jsonify({
        "success": True,
        "url": link.url,
        "accountId": settings.stripe_connect_account_id,
    })


@connect_bp.route("/refresh", methods=["POST"])
@api_login_required
def refresh():
    """Onboarding links expire; hand out a new one."""
    settings = get_payment_settings(current_user.id)
    if not settings or not settings.stripe_connect_account_id:
        return jsonify({
            "error": "No connected account found. Please start onboarding first."
        }), 404

    account_id = settings.stripe_connect_account_id
    try:
        if settings.onboarding_completed:
            account = stripe.Account.retrieve(account_id)
            if is_fully_verified(account):
                return jsonify({
                    "success": True,
                    "alreadyOnboarded": True,
                    "message": "Account is fully verified. No onboarding needed.",
                })
        link = create_onboarding_link(account_id, eventually_due_only=True)
    except Exception as e:
        logger.error(f"Onboarding refresh failed for {current_user.id}: {e}", exc_info=True)
        return jsonify({"error": "Failed to generate new onboarding link"}), 500

    return jsonify({
        "success": True,
        "url": link.url,
        "accountId": account_id,
        "message": "New onboarding link generated",
    })


@connect_bp.route("/status", methods=["GET"])
@api_login_required
def status():
    settings = get_payment_settings(current_user.id)
    if not settings or not settings.stripe_connect_account_id:
        return jsonify({
            "connected": False,
            "onboardingCompleted": False,
            "canReceivePayouts": False,
            "message": "No connected account found",
        })

    try:
        return jsonify(get_connect_status(settings))
    except Exception as e:
        logger.error(
            f"Could not retrieve Connect account {settings.stripe_connect_account_id}: {e}"
        )
        return jsonify({
            "connected": False,
            "onboardingCompleted": False,
            "canReceivePayouts": False,
            "error": "Account not found or invalid",
        }), 404
