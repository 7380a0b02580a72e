"""Stripe API client construction and error translation.

One StripeClient is built per app in create_app() and handed to the
services that call Stripe; nothing sets module-level `stripe.api_key`.
Every call is bounded by STRIPE_API_TIMEOUT and never retried here:
retry policy belongs to whoever called us.
"""

import logging

import stripe
from flask import current_app

from billsync.errors import Internal, Transient

logger = logging.getLogger(__name__)


def build_stripe_client(config):
    """Return a StripeClient for the given app config, or None if unset."""
    api_key = config.get("STRIPE_SECRET_KEY")
    if not api_key:
        logger.warning("STRIPE_SECRET_KEY is not set; Stripe calls are disabled")
        return None

    http_client = stripe.RequestsClient(timeout=config["STRIPE_API_TIMEOUT"])
    return stripe.StripeClient(
        api_key,
        http_client=http_client,
        max_network_retries=0,
    )


def get_stripe_client():
    """The client bound to the current app."""
    client = current_app.extensions.get("stripe_client")
    if client is None:
        raise Internal("Stripe client is not configured")
    return client


def translate_stripe_error(error, action):
    """Map a Stripe SDK exception to a billing error.

    Connection problems, timeouts and rate limits are Transient; anything
    else is Internal. Logs either way.
    """
    if isinstance(error, (stripe.APIConnectionError, stripe.RateLimitError)):
        logger.warning(f"Transient Stripe error during {action}: {error}")
        return Transient(f"Stripe unavailable during {action}")
    logger.error(f"Stripe error during {action}: {error}", exc_info=True)
    return Internal(f"Stripe error during {action}: {error}")
