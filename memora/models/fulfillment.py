"""Fulfillment model.

A payout of a funded item's contributions to the event owner's Stripe
Connect account. Lifecycle:

    pending → processing → completed
                 ↘ failed

idempotency_key is unique so a retried create request never produces a
second transfer.
"""

import uuid

from memora.extensions import db


class Fulfillment(db.Model):
    __tablename__ = "fulfillments"

    STATUSES = ["pending", "processing", "completed", "failed"]
    ACTIVE_STATUSES = ["pending", "processing"]

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    item_id = db.Column(
        db.String(36), db.ForeignKey("items.id"), nullable=False, index=True
    )
    event_id = db.Column(
        db.String(36), db.ForeignKey("events.id"), nullable=False
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    method = db.Column(db.String(30), nullable=False, default="stripe_transfer")
    status = db.Column(db.String(20), nullable=False, default="pending")
    gross_amount_cents = db.Column(db.Integer, nullable=False)
    platform_fee_cents = db.Column(db.Integer, nullable=False)
    net_amount_cents = db.Column(db.Integer, nullable=False)
    stripe_transfer_id = db.Column(db.String(255))  # e.g. "tr_1Abc..."
    idempotency_key = db.Column(db.String(255), unique=True, nullable=False)
    notes = db.Column(db.String(500))
    error_message = db.Column(db.Text)
    error_code = db.Column(db.String(100))
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    completed_at = db.Column(db.DateTime(timezone=True))

    # --- Relationships ---
    item = db.relationship("Item")
    event = db.relationship("Event")

    def to_dict(self):
        return {
            "id": self.id,
            "item_id": self.item_id,
            "event_id": self.event_id,
            "method": self.method,
            "status": self.status,
            "gross_amount_cents": self.gross_amount_cents,
            "platform_fee_cents": self.platform_fee_cents,
            "net_amount_cents": self.net_amount_cents,
            "stripe_transfer_id": self.stripe_transfer_id,
            "notes": self.notes,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "item_title": self.item.title if self.item else None,
            "event_title": self.event.title if self.event else None,
        }

    def __repr__(self):
        return f"<Fulfillment {self.id} ({self.status})>"
