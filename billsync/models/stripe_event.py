"""Stripe event model (idempotency ledger).

Every event that changes an account is recorded by its Stripe event ID
in the same transaction as the account update. The unique constraint
is what makes application at-most-once per event id, even when two
deliveries of the same event race each other.
"""

import uuid

from billsync.extensions import db


class StripeEvent(db.Model):
    __tablename__ = "stripe_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    stripe_event_id = db.Column(
        db.String(255), unique=True, nullable=False
    )  # e.g. "evt_1Abc..."
    event_type = db.Column(
        db.String(255), nullable=False
    )  # e.g. "customer.subscription.updated"
    account_id = db.Column(
        db.String(128), db.ForeignKey("accounts.id"), nullable=True
    )
    processed_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    def __repr__(self):
        return f"<StripeEvent {self.stripe_event_id} ({self.event_type})>"
