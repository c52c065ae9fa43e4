"""Items blueprint - /api/items

Registry items on an owner's event, added by hand or scraped from an
Amazon product link.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from memora.decorators import api_login_required
from memora.extensions import db, limiter
from memora.models.event import Event
from memora.models.item import Item
from memora.services.amazon_service import ScrapeError, scrape_amazon_product
from memora.utils.affiliate import is_amazon_url
from memora.utils.validation import sanitize_string

logger = logging.getLogger(__name__)

items_bp = Blueprint("items", __name__, url_prefix="/api/items")

MAX_TITLE_LENGTH = 500


def _owned_event(event_id):
    """Return (event, error_response)."""
    event = db.session.get(Event, event_id)
    if event is None:
        return None, (jsonify({"error": "Event not found"}), 404)
    if event.user_id != current_user.id:
        return None, (
            jsonify({"error": "Unauthorized: You are not the owner of this event"}),
            403,
        )
    return event, None


def _save_item(event, title, price_cents, product_link=None, image_url=None):
    item = Item(
        event_id=event.id,
        title=sanitize_string(title, MAX_TITLE_LENGTH),
        price_cents=price_cents,
        current_amount_cents=0,
        product_link=product_link or None,
        image_url=image_url or None,
    )
    db.session.add(item)
    db.session.commit()
    logger.info(f"Item {item.id} added to event {event.id}")
    return item


@items_bp.route("", methods=["POST"])
@api_login_required
def create_item():
    """Body: {eventId, title, priceCents, productLink?, imageUrl?}"""
    data = request.get_json(silent=True) or {}
    event_id = data.get("eventId")
    title = data.get("title")
    price_cents = data.get("priceCents")

    if not event_id or not title or not price_cents:
        return jsonify({"error": "Missing required fields"}), 400
    if isinstance(price_cents, bool) or not isinstance(price_cents, int) or price_cents <= 0:
        return jsonify({"error": "priceCents must be a positive whole number"}), 400

    event, error = _owned_event(event_id)
    if error:
        return error

    item = _save_item(
        event, title, price_cents, data.get("productLink"), data.get("imageUrl")
    )
    return jsonify({
        "success": True,
        "item": item.to_dict(current_app.config.get("AMAZON_AFFILIATE_TAG")),
    })


@items_bp.route("/add-from-amazon", methods=["POST"])
@api_login_required
@limiter.limit("10 per minute")
def add_from_amazon():
    """Scrape an Amazon link and add it as an item.

    Body: {productLink, eventId}
    """
    data = request.get_json(silent=True) or {}
    product_link = (data.get("productLink") or "").strip()
    event_id = data.get("eventId")

    if not product_link or not event_id:
        return jsonify({"error": "Missing required fields: productLink, eventId"}), 400
    if not is_amazon_url(product_link):
        return jsonify({"error": "Only Amazon product links are supported"}), 400

    event, error = _owned_event(event_id)
    if error:
        return error

    try:
        product = scrape_amazon_product(product_link)
    except ScrapeError as e:
        return jsonify({"error": e.message}), e.status_code

    item = _save_item(
        event,
        product["title"],
        product["price_cents"] or 0,
        product_link,
        product["image_url"],
    )
    return jsonify({
        "success": True,
        "item": item.to_dict(current_app.config.get("AMAZON_AFFILIATE_TAG")),
        "scraped": {
            "title": bool(product["title"]),
            "price": bool(product["price_cents"]),
            "image": bool(product["image_url"]),
        },
    })
