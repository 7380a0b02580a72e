"""Billing blueprint — /billing/*

Action gateway for the signed-in account. All routes require a bearer
identity token (Flask-Login request loader) and act on that account only.

Routes:
- POST /billing/subscriptions  : start a subscription, return payment handle
- POST /billing/portal         : create Customer Portal Session, return URL
- GET  /billing/account        : current subscription snapshot
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from billsync.decorators import json_errors
from billsync.errors import Unauthenticated
from billsync.extensions import limiter
from billsync.services import gateway
from billsync.stripe_client import get_stripe_client

logger = logging.getLogger(__name__)

billing_bp = Blueprint("billing", __name__, url_prefix="/billing")


def _caller_account_id(data):
    """The authenticated account id; a body account_id must agree with it."""
    requested = data.get("account_id")
    if requested and requested != current_user.id:
        logger.warning(
            f"Account {current_user.id} attempted a billing action for {requested}"
        )
        raise Unauthenticated("Identity does not match account_id")
    return current_user.id


# ──────────────────────────────────────────────
# POST /billing/subscriptions
# ──────────────────────────────────────────────

@billing_bp.route("/subscriptions", methods=["POST"])
@limiter.limit("10 per minute")
@login_required
@json_errors
def create_subscription():
    """Create an incomplete subscription for {"price_id"}.

    The client confirms the payment with the returned client_secret;
    the webhook then records the resulting subscription state.
    """
    data = request.get_json(silent=True) or {}
    account_id = _caller_account_id(data)
    result = gateway.create_subscription(
        get_stripe_client(), account_id, data.get("price_id")
    )
    return jsonify(result), 200


# ──────────────────────────────────────────────
# POST /billing/portal
# ──────────────────────────────────────────────

@billing_bp.route("/portal", methods=["POST"])
@limiter.limit("10 per minute")
@login_required
@json_errors
def customer_portal():
    """Create a Stripe Customer Portal Session.

    Only works once the account has a Stripe customer.
    """
    data = request.get_json(silent=True) or {}
    account_id = _caller_account_id(data)
    return_url = data.get("return_url") or current_app.config["BILLING_PORTAL_RETURN_URL"]
    result = gateway.open_billing_portal(get_stripe_client(), account_id, return_url)
    return jsonify(result), 200


# ──────────────────────────────────────────────
# GET /billing/account
# ──────────────────────────────────────────────

@billing_bp.route("/account")
@login_required
@json_errors
def account_overview():
    """Subscription state as last reconciled from Stripe."""
    return jsonify(current_user.to_dict()), 200
