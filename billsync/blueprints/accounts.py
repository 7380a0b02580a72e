"""Accounts blueprint — /internal/accounts

Account creation trigger, called by the identity system whenever a new
account is created. Creates the account row and provisions its Stripe
customer. Safe to re-run: a retried call returns the existing link.
"""

import logging

from flask import Blueprint, jsonify, request

from billsync.decorators import hook_token_required, json_errors
from billsync.errors import PreconditionFailed
from billsync.extensions import limiter
from billsync.services.provisioning import provision_customer
from billsync.stripe_client import get_stripe_client

logger = logging.getLogger(__name__)

accounts_bp = Blueprint("accounts", __name__, url_prefix="/internal/accounts")


@accounts_bp.route("", methods=["POST"])
@limiter.limit("60 per minute")
@hook_token_required
@json_errors
def account_created():
    """Handle {"account_id", "email"} from the identity system."""
    data = request.get_json(silent=True) or {}
    account_id = (data.get("account_id") or "").strip()
    email = (data.get("email") or "").strip().lower() or None

    if not account_id:
        raise PreconditionFailed("account_id is required")

    customer_id = provision_customer(get_stripe_client(), account_id, email)
    return jsonify({
        "account_id": account_id,
        "stripe_customer_id": customer_id,
    }), 200
