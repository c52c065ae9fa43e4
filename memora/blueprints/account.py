"""Account blueprint - /api/account/*

Profile fields and the profile photo for the signed-in user.
"""

import logging

from flask import Blueprint, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required
from memora.services.profile_service import (
    get_profile,
    profile_to_dict,
    set_photo_url,
    update_profile,
)
from memora.services.storage_service import (
    StorageError,
    delete_user_photos,
    upload_profile_photo,
    validate_photo,
)

logger = logging.getLogger(__name__)

account_bp = Blueprint("account", __name__, url_prefix="/api/account")


@account_bp.route("/profile", methods=["GET"])
@api_login_required
def profile():
    return jsonify({"profile": get_profile(current_user)})


@account_bp.route("/profile", methods=["PATCH"])
@api_login_required
def update():
    """Body: {display_name?, birthday?, phone?}. Empty values clear the field."""
    data = request.get_json(silent=True) or {}
    try:
        updated = update_profile(current_user.id, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify({"success": True, "profile": profile_to_dict(updated)})


@account_bp.route("/photo", methods=["POST"])
@api_login_required
def upload_photo():
    """Multipart upload, field name `file`."""
    file = request.files.get("file")
    ok, error = validate_photo(file)
    if not ok:
        return jsonify({"error": error}), 400

    try:
        url = upload_profile_photo(file, current_user.id)
    except StorageError as e:
        return jsonify({"error": str(e)}), 500

    set_photo_url(current_user.id, url)
    return jsonify({"success": True, "url": url})


@account_bp.route("/photo", methods=["DELETE"])
@api_login_required
def delete_photo():
    delete_user_photos(current_user.id)
    set_photo_url(current_user.id, None)
    return jsonify({"success": True})
