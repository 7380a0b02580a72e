"""Action gateway — synchronous billing actions for an authenticated account.

- create_subscription: start an incomplete subscription and hand back
  the payment handle (client secret) for the caller to confirm
- open_billing_portal: one-off Stripe Customer Portal session URL

Neither writes subscription state. The resulting Stripe events reach
the reconciliation applier through the webhook like any other change.
"""

import logging

import stripe

from billsync.errors import PreconditionFailed
from billsync.services.account_directory import get_account
from billsync.stripe_client import translate_stripe_error

logger = logging.getLogger(__name__)


def _linked_customer_id(account_id):
    account = get_account(account_id)
    if not account.stripe_customer_id:
        raise PreconditionFailed("Account has no associated Stripe customer")
    return account.stripe_customer_id


def _payment_handle(subscription):
    """Client secret the caller needs to confirm the first payment.

    Read from the expanded latest_invoice.confirmation_secret. None if
    nothing is due.
    """
    invoice = getattr(subscription, "latest_invoice", None)
    if invoice is None or isinstance(invoice, str):
        return None
    confirmation = getattr(invoice, "confirmation_secret", None)
    if confirmation is None:
        return None
    return getattr(confirmation, "client_secret", None)


def create_subscription(client, account_id, price_id):
    """Create a subscription in "incomplete" state pending payment.

    Returns {"subscription_id", "client_secret"}.
    Raises PreconditionFailed if price_id is missing or the account has
    no Stripe customer, NotFound for unknown accounts, Transient/Internal
    on Stripe failures.
    """
    if not price_id:
        raise PreconditionFailed("price_id is required")
    customer_id = _linked_customer_id(account_id)

    try:
        subscription = client.subscriptions.create(params={
            "customer": customer_id,
            "items": [{"price": price_id}],
            "payment_behavior": "default_incomplete",
            "expand": ["latest_invoice.confirmation_secret"],
        })
    except stripe.StripeError as e:
        raise translate_stripe_error(e, "subscription creation") from e

    client_secret = _payment_handle(subscription)
    if client_secret is None:
        logger.warning(
            f"Subscription {subscription.id} for account {account_id} has no "
            f"payment handle"
        )

    logger.info(
        f"Created subscription {subscription.id} for account {account_id} "
        f"(price={price_id})"
    )
    return {
        "subscription_id": subscription.id,
        "client_secret": client_secret,
    }


def open_billing_portal(client, account_id, return_url):
    """Create a Stripe Customer Portal session.

    Returns {"url"}. Raises PreconditionFailed if the account has no
    Stripe customer yet.
    """
    customer_id = _linked_customer_id(account_id)

    try:
        session = client.billing_portal.sessions.create(params={
            "customer": customer_id,
            "return_url": return_url,
        })
    except stripe.StripeError as e:
        raise translate_stripe_error(e, "billing portal session") from e

    return {"url": session.url}
