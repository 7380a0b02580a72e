"""Customer provisioning — one Stripe customer per account.

Runs when the identity system reports a new account. May be triggered
more than once for the same account, so it checks the existing link
first and passes a deterministic idempotency key to Stripe: a retried
trigger can neither create a second customer nor relink the account.
"""

import logging

import stripe

from billsync.extensions import db
from billsync.services.account_directory import (
    ensure_account,
    link_customer,
    log_billing_audit,
)
from billsync.stripe_client import translate_stripe_error

logger = logging.getLogger(__name__)


def provision_customer(client, account_id, email=None):
    """Create and link a Stripe customer for account_id.

    Args:
        client:     stripe.StripeClient (or a stand-in with the same shape)
        account_id: internal account id, stored as customer metadata
        email:      used for Stripe receipts

    Returns the Stripe customer id.
    Raises Transient on Stripe timeouts, Internal on other Stripe
    errors, AlreadyLinked on a conflicting existing link.
    """
    account = ensure_account(account_id, email)
    if account.stripe_customer_id:
        logger.info(
            f"Account {account_id} already linked to "
            f"{account.stripe_customer_id}, skipping provisioning"
        )
        return account.stripe_customer_id

    params = {"metadata": {"account_id": account_id}}
    if email:
        params["email"] = email

    try:
        customer = client.customers.create(
            params=params,
            options={"idempotency_key": f"provision-customer-{account_id}"},
        )
    except stripe.StripeError as e:
        raise translate_stripe_error(e, "customer provisioning") from e

    link_customer(account_id, customer.id)

    log_billing_audit(account_id, "customer.provisioned", {
        "stripe_customer_id": customer.id,
    })
    db.session.commit()

    logger.info(f"Provisioned Stripe customer {customer.id} for account {account_id}")
    return customer.id
