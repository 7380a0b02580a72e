"""Account directory — account lookups and the Stripe customer link.

Responsible for:
- Looking up accounts by internal id or by Stripe customer id
- Creating the account row on signup (status "none")
- Linking an account to its Stripe customer, exactly once
- Writing billing audit rows
"""

import logging

from sqlalchemy.exc import IntegrityError

from billsync.errors import AlreadyLinked, NotFound
from billsync.extensions import db
from billsync.models.account import Account
from billsync.models.audit import AuditEvent

logger = logging.getLogger(__name__)


def find_by_account_id(account_id):
    """Return the Account or None."""
    if not account_id:
        return None
    return db.session.get(Account, account_id)


def find_by_customer_id(stripe_customer_id):
    """Return the Account linked to a Stripe customer, or None."""
    if not stripe_customer_id:
        return None
    return Account.query.filter_by(
        stripe_customer_id=stripe_customer_id
    ).first()


def get_account(account_id):
    """Like find_by_account_id, but raises NotFound."""
    account = find_by_account_id(account_id)
    if account is None:
        raise NotFound(f"Account {account_id} not found")
    return account


def ensure_account(account_id, email=None):
    """Get the account row, creating it if this is a new signup.

    Safe to call repeatedly. Returns the Account (committed).
    """
    account = find_by_account_id(account_id)
    if account:
        return account

    account = Account(id=account_id, email=email, subscription_status="none")
    db.session.add(account)
    try:
        db.session.commit()
    except IntegrityError:
        # Created concurrently by a retried trigger.
        db.session.rollback()
        return get_account(account_id)

    logger.info(f"Created account {account_id}")
    return account


def link_customer(account_id, stripe_customer_id):
    """Link an account to its Stripe customer.

    Idempotent for the same (account, customer) pair. Raises
    AlreadyLinked if the account holds a different customer id or the
    customer id belongs to another account; that is a data-integrity
    fault and is never overwritten.

    Returns the Account (committed).
    """
    account = get_account(account_id)

    if account.stripe_customer_id == stripe_customer_id:
        return account

    if account.stripe_customer_id:
        logger.error(
            f"Refusing to relink account {account_id}: already linked to "
            f"{account.stripe_customer_id}, attempted {stripe_customer_id}"
        )
        raise AlreadyLinked(
            f"Account {account_id} is already linked to another customer"
        )

    owner = find_by_customer_id(stripe_customer_id)
    if owner is not None:
        logger.error(
            f"Refusing to link customer {stripe_customer_id} to account "
            f"{account_id}: already linked to account {owner.id}"
        )
        raise AlreadyLinked(
            f"Customer {stripe_customer_id} is already linked to another account"
        )

    account.stripe_customer_id = stripe_customer_id
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current = get_account(account_id)
        if current.stripe_customer_id == stripe_customer_id:
            return current
        logger.error(
            f"Unique-constraint conflict linking customer {stripe_customer_id} "
            f"to account {account_id}"
        )
        raise AlreadyLinked(
            f"Customer {stripe_customer_id} is already linked to another account"
        )

    logger.info(f"Linked account {account_id} to customer {stripe_customer_id}")
    return account


def log_billing_audit(account_id, action, metadata=None):
    """Add a billing audit row to the current transaction.

    Actor is always the system. Uses flush() so the caller controls the
    commit boundary.
    """
    event = AuditEvent(
        account_id=account_id,
        action=action,
        metadata_=metadata or {},
    )
    db.session.add(event)
    db.session.flush()
