"""Audit event model.

Logs billing actions (customer provisioning, subscription syncs) for
operator debugging. Rows are append-only.
"""

import uuid

from billsync.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "audit_events"

    id = db.Column(
        db.String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    account_id = db.Column(
        db.String(128), db.ForeignKey("accounts.id"), nullable=True, index=True
    )
    action = db.Column(db.String(255), nullable=False)  # e.g. "subscription.synced"
    metadata_ = db.Column(
        "metadata", db.JSON, default=dict
    )  # extra context, named metadata_ to avoid clashing with SQLAlchemy's metadata
    created_at = db.Column(
        db.DateTime(timezone=True), server_default=db.func.now()
    )

    # --- Relationships ---
    account = db.relationship("Account", back_populates="audit_events")

    def __repr__(self):
        return f"<AuditEvent {self.action}>"
