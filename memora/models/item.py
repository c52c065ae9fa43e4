"""Registry item models.

- Item: a gift on an event registry. current_amount_cents only ever grows;
  every increment comes from exactly one Contribution row.
- Contribution: the payment ledger. stripe_session_id is unique, so a
  checkout session can be credited to an item at most once no matter how
  many times the webhook or the verification endpoint report it.
"""

import uuid

from memora.extensions import db


class Item(db.Model):
    __tablename__ = "items"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id"), nullable=False, index=True
    )
    title = db.Column(db.String(500), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    current_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    product_link = db.Column(db.Text)
    image_url = db.Column(db.Text)
    is_fulfilled = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    event = db.relationship("Event", back_populates="items")
    contributions = db.relationship(
        "Contribution", back_populates="item", lazy="dynamic"
    )

    @property
    def remaining_cents(self):
        return max(self.price_cents - (self.current_amount_cents or 0), 0)

    @property
    def is_fully_funded(self):
        return (self.current_amount_cents or 0) >= self.price_cents

    def to_dict(self, affiliate_tag=None):
        from memora.utils.affiliate import add_affiliate_tag

        return {
            "id": self.id,
            "event_id": self.event_id,
            "title": self.title,
            "price_cents": self.price_cents,
            "current_amount_cents": self.current_amount_cents,
            "product_link": self.product_link,
            "affiliate_link": add_affiliate_tag(self.product_link, affiliate_tag),
            "image_url": self.image_url,
            "is_fulfilled": self.is_fulfilled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Item {self.title} {self.current_amount_cents}/{self.price_cents}>"


class Contribution(db.Model):
    __tablename__ = "contributions"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id"), nullable=False, index=True
    )
    contributor_name = db.Column(db.String(255))
    contributor_email = db.Column(db.String(255))
    amount_cents = db.Column(db.Integer, nullable=False)
    stripe_session_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "cs_test_a1B2..."
    status = db.Column(db.String(20), nullable=False, default="completed")
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    item = db.relationship("Item", back_populates="contributions")

    def __repr__(self):
        return f"<Contribution {self.stripe_session_id} {self.amount_cents}>"
