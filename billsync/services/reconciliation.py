"""Reconciliation applier — writes projected subscription state.

Responsible for:
- Resolving the account an event refers to
- Idempotency via the stripe_events ledger
- Conditional (compare-and-set) writes guarded by last_event_id
- Classifying every event as applied / ignored / failed

Safe to run concurrently and to re-run with the same event: there is no
in-process state, and every write is a single atomic transaction.
"""

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from billsync.extensions import db
from billsync.models.account import Account
from billsync.models.stripe_event import StripeEvent
from billsync.services.account_directory import find_by_customer_id, log_billing_audit
from billsync.services.projector import (
    NoOp,
    Rejected,
    extract_customer_id,
    is_tracked,
    project,
)

logger = logging.getLogger(__name__)

# Attempts per event before a concurrent-write conflict is reported.
MAX_ATTEMPTS = 2


class ApplyResult:
    """Terminal outcome of applying one event.

    `retryable` is only meaningful for failures: it tells the webhook
    endpoint whether to ask Stripe for a redelivery.
    """

    APPLIED = "applied"
    IGNORED = "ignored"
    FAILED = "failed"

    def __init__(self, outcome, reason=None, retryable=False):
        self.outcome = outcome
        self.reason = reason
        self.retryable = retryable

    @classmethod
    def applied(cls):
        return cls(cls.APPLIED)

    @classmethod
    def ignored(cls, reason):
        return cls(cls.IGNORED, reason)

    @classmethod
    def failed(cls, reason, retryable=False):
        return cls(cls.FAILED, reason, retryable)

    def to_dict(self):
        return {"status": self.outcome, "reason": self.reason}

    def __repr__(self):
        return f"<ApplyResult {self.outcome} ({self.reason})>"


_CONFLICT = object()


def apply_event(event):
    """Apply a verified WebhookEvent to the matching account.

    Returns an ApplyResult; never raises for storage problems, so one
    bad event can't take down the request loop.
    """
    if not is_tracked(event.type):
        logger.info(f"Ignoring unhandled event type {event.type} ({event.id})")
        return ApplyResult.ignored("unhandled event type")

    customer_id = extract_customer_id(event)
    if not customer_id:
        logger.error(f"Event {event.id} ({event.type}) has no customer id")
        return ApplyResult.failed("missing customer")

    try:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            result = _apply_once(event, customer_id)
            if result is not _CONFLICT:
                return result
            db.session.rollback()
            logger.info(
                f"Concurrent update on customer {customer_id} while applying "
                f"{event.id} (attempt {attempt}/{MAX_ATTEMPTS})"
            )
    except SQLAlchemyError:
        db.session.rollback()
        logger.error(f"Storage error applying {event.id}", exc_info=True)
        return ApplyResult.failed("storage error", retryable=True)

    logger.warning(
        f"Giving up on {event.id} for customer {customer_id}: record kept "
        f"changing concurrently"
    )
    return ApplyResult.failed("concurrent update", retryable=True)


def _apply_once(event, customer_id):
    """One read-project-write pass. Returns an ApplyResult or _CONFLICT."""
    account = find_by_customer_id(customer_id)
    if account is None:
        # Provisioning race or data loss; needs an operator, not a retry.
        logger.error(
            f"Unknown customer {customer_id} in event {event.id} ({event.type})"
        )
        return ApplyResult.failed("unknown customer")

    already = StripeEvent.query.filter_by(stripe_event_id=event.id).first()
    if already:
        logger.info(f"Duplicate webhook event {event.id}, skipping")
        return ApplyResult.ignored("already processed")

    outcome = project(event, account)
    if isinstance(outcome, NoOp):
        return ApplyResult.ignored("unhandled event type")
    if isinstance(outcome, Rejected):
        logger.info(
            f"Not applying {event.id} to account {account.id}: {outcome.reason}"
        )
        return ApplyResult.ignored(outcome.reason)

    # --- Compare-and-set on last_event_id ---
    expected = account.last_event_id
    query = Account.query.filter(Account.id == account.id)
    if expected is None:
        query = query.filter(Account.last_event_id.is_(None))
    else:
        query = query.filter(Account.last_event_id == expected)
    updated = query.update(outcome.fields, synchronize_session=False)
    if updated != 1:
        return _CONFLICT

    status = outcome.fields["subscription_status"]
    try:
        db.session.add(StripeEvent(
            stripe_event_id=event.id,
            event_type=event.type,
            account_id=account.id,
        ))
        log_billing_audit(
            account.id,
            "subscription.canceled" if status == "canceled" else "subscription.synced",
            {
                "stripe_event_id": event.id,
                "event_type": event.type,
                "subscription_id": event.data_object.get("id"),
                "status": status,
            },
        )
        db.session.commit()
    except IntegrityError:
        # Another delivery of this event committed first.
        db.session.rollback()
        logger.info(f"Event {event.id} applied concurrently by another delivery")
        return ApplyResult.ignored("already processed")

    logger.info(
        f"Applied {event.type} {event.id} to account {account.id}: status={status}"
    )
    return ApplyResult.applied()
