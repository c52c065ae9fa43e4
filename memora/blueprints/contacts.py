"""Contacts blueprint - /api/contacts, /api/search-users"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required
from memora.extensions import limiter
from memora.services.auth_service import AuthServiceError
from memora.services.contact_service import (
    ContactError,
    add_contact,
    delete_contact,
    list_contacts,
    search_people,
)

logger = logging.getLogger(__name__)

contacts_bp = Blueprint("contacts", __name__, url_prefix="/api")


@contacts_bp.route("/contacts", methods=["POST"])
@api_login_required
def create():
    """Body: {contact_email}"""
    data = request.get_json(silent=True) or {}
    try:
        contact = add_contact(current_user.id, data.get("contact_email"))
    except ContactError as e:
        return jsonify({"error": e.message}), e.status_code
    except AuthServiceError as e:
        logger.error(f"User lookup failed while adding contact: {e}")
        return jsonify({"error": "Failed to find user"}), 500
    return jsonify({"success": True, "contact": contact})


@contacts_bp.route("/contacts", methods=["GET"])
@api_login_required
def index():
    return jsonify({"contacts": list_contacts(current_user.id)})


@contacts_bp.route("/contacts/<contact_id>", methods=["DELETE"])
@api_login_required
def delete(contact_id):
    try:
        delete_contact(current_user.id, contact_id)
    except ContactError as e:
        return jsonify({"error": e.message}), e.status_code
    return jsonify({"success": True, "message": "Contact removed successfully"})


@contacts_bp.route("/search-users", methods=["GET"])
@api_login_required
@limiter.limit("30 per minute")
def search():
    """Find people to add by email. Query: q (3+ chars)."""
    try:
        users = search_people(current_user.id, request.args.get("q", "").strip())
    except ContactError as e:
        return jsonify({"error": e.message}), e.status_code
    except AuthServiceError as e:
        logger.error(f"User search failed: {e}")
        return jsonify({"error": "Failed to search users"}), 500
    return jsonify({"users": users})
