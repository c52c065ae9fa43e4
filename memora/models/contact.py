"""User contact model - one row per (owner, contact) pair."""

import uuid

from memora.extensions import db


class UserContact(db.Model):
    __tablename__ = "user_contacts"
    __table_args__ = (
        db.UniqueConstraint("user_id", "contact_user_id", name="uq_user_contact"),
    )

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id = db.Column(db.String(36), nullable=False, index=True)
    contact_user_id = db.Column(db.String(36), nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<UserContact {self.user_id} -> {self.contact_user_id}>"
