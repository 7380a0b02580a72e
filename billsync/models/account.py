"""Account model.

One row per end user, keyed by the identity system's account id.
Holds the Stripe customer link and the subscription state mirrored from
Stripe webhooks. Subscription columns are only ever written by the
reconciliation applier; the stripe customer id only by provisioning.
"""

from flask_login import UserMixin

from billsync.extensions import db


class Account(UserMixin, db.Model):
    __tablename__ = "accounts"

    # -- Subscription statuses (Stripe vocabulary, plus "none") --
    STATUSES = [
        "none",
        "incomplete",
        "incomplete_expired",
        "trialing",
        "active",
        "past_due",
        "unpaid",
        "paused",
        "canceled",
    ]

    id = db.Column(db.String(128), primary_key=True)
    email = db.Column(db.String(255), nullable=True)
    stripe_customer_id = db.Column(
        db.String(255), unique=True, nullable=True, index=True
    )
    subscription_id = db.Column(db.String(255), nullable=True)
    subscription_status = db.Column(
        db.String(50), nullable=False, default="none", server_default="none"
    )
    price_id = db.Column(db.String(255), nullable=True)
    subscription_period_end = db.Column(
        db.DateTime(timezone=True), nullable=True
    )

    # --- Ordering / optimistic concurrency ---
    last_event_id = db.Column(db.String(255), nullable=True)
    last_event_created = db.Column(
        db.BigInteger, nullable=True
    )  # Stripe event.created, unix seconds

    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    # --- Relationships ---
    audit_events = db.relationship(
        "AuditEvent", back_populates="account", lazy="dynamic"
    )

    @property
    def has_subscription(self):
        return self.subscription_status not in ("none", "canceled")

    def to_dict(self):
        period_end = self.subscription_period_end
        return {
            "account_id": self.id,
            "stripe_customer_id": self.stripe_customer_id,
            "subscription_id": self.subscription_id,
            "subscription_status": self.subscription_status,
            "has_subscription": self.has_subscription,
            "price_id": self.price_id,
            "subscription_period_end": (
                period_end.isoformat() if period_end else None
            ),
        }

    def __repr__(self):
        return f"<Account {self.id} ({self.subscription_status})>"
