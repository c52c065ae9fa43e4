"""Storage service - profile photos in Supabase Storage (prod) or local disk (dev).

Supabase bucket: profile-photos (public, must be created in the Supabase dashboard).
Local fallback: instance/uploads/ directory.

Each user keeps at most one photo: uploads clear the user's folder first.
"""

import logging
import os
import time

import requests
from flask import current_app

logger = logging.getLogger(__name__)

# Max file size: 2 MB
MAX_FILE_SIZE = 2 * 1024 * 1024

# Allowed MIME types → stored extension
ALLOWED_TYPES = {
    "image/jpeg": "jpeg",
    "image/png": "png",
    "image/webp": "webp",
}


class StorageError(Exception):
    """Upload to the storage backend failed."""


def _get_supabase_config():
    """Return Supabase storage config if available, else None."""
    url = current_app.config.get("SUPABASE_URL")
    key = current_app.config.get("SUPABASE_SERVICE_KEY")
    bucket = current_app.config.get("SUPABASE_PHOTO_BUCKET", "profile-photos")

    if url and key:
        return {"url": url.rstrip("/"), "key": key, "bucket": bucket}
    return None


def validate_photo(file):
    """Validate an uploaded photo (from request.files).

    Returns (ok: bool, error: str|None).
    """
    if not file or not file.filename:
        return False, "No file provided"

    file.seek(0, os.SEEK_END)
    size = file.tell()
    file.seek(0)

    if size > MAX_FILE_SIZE:
        return False, "File too large. Maximum size is 2MB."
    if size == 0:
        return False, "File is empty."
    if file.mimetype not in ALLOWED_TYPES:
        return False, "Invalid file type. Only JPEG, PNG, and WebP are allowed."

    return True, None


def upload_profile_photo(file, user_id):
    """Replace the user's photo. Returns the public URL.

    Raises StorageError if the backend refuses the upload.
    """
    ext = ALLOWED_TYPES[file.mimetype]
    storage_path = f"{user_id}/{int(time.time() * 1000)}.{ext}"
    file_data = file.read()

    delete_user_photos(user_id)

    supabase = _get_supabase_config()
    if supabase:
        return _upload_supabase(supabase, storage_path, file_data, file.mimetype)
    return _upload_local(storage_path, file_data)


def _upload_supabase(config, path, data, content_type):
    """Upload to Supabase Storage. Returns public URL."""
    url = f"{config['url']}/storage/v1/object/{config['bucket']}/{path}"

    headers = {
        "Authorization": f"Bearer {config['key']}",
        "Content-Type": content_type,
        "x-upsert": "true",
    }

    try:
        resp = requests.post(url, headers=headers, data=data, timeout=30)
        resp.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Supabase upload failed for {path}: {e}")
        raise StorageError("Failed to upload photo") from e

    logger.info(f"Uploaded to Supabase: {path}")
    return f"{config['url']}/storage/v1/object/public/{config['bucket']}/{path}"


def _upload_local(path, data):
    """Upload to local filesystem (dev fallback). Returns URL path."""
    upload_dir = os.path.join(
        current_app.instance_path, "uploads", os.path.dirname(path)
    )
    os.makedirs(upload_dir, exist_ok=True)

    filepath = os.path.join(current_app.instance_path, "uploads", path)
    with open(filepath, "wb") as f:
        f.write(data)

    logger.info(f"Uploaded locally: {filepath}")
    return f"/uploads/{path}"


def delete_user_photos(user_id):
    """Remove every stored photo for a user. Best-effort, does not raise."""
    supabase = _get_supabase_config()
    if supabase:
        headers = {"Authorization": f"Bearer {supabase['key']}"}
        try:
            resp = requests.post(
                f"{supabase['url']}/storage/v1/object/list/{supabase['bucket']}",
                headers=headers,
                json={"prefix": user_id, "limit": 100},
                timeout=10,
            )
            resp.raise_for_status()
            paths = [f"{user_id}/{f['name']}" for f in resp.json() or []]
            if paths:
                requests.delete(
                    f"{supabase['url']}/storage/v1/object/{supabase['bucket']}",
                    headers=headers,
                    json={"prefixes": paths},
                    timeout=10,
                )
        except Exception as e:
            logger.warning(f"Failed to delete photos for {user_id} from Supabase: {e}")
        return

    folder = os.path.join(current_app.instance_path, "uploads", user_id)
    if not os.path.isdir(folder):
        return
    for name in os.listdir(folder):
        try:
            os.remove(os.path.join(folder, name))
        except Exception as e:
            logger.warning(f"Failed to delete local file {name}: {e}")
