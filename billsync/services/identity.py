"""Caller identity tokens.

The identity system signs the account id with the shared SECRET_KEY;
this module verifies those tokens for the action gateway. Issuing is
exposed too so operators (and tests) can mint a token locally.
"""

import logging

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from billsync.extensions import db
from billsync.models.account import Account

logger = logging.getLogger(__name__)

_SALT = "billsync-identity"


def _serializer(secret):
    return URLSafeTimedSerializer(secret, salt=_SALT)


def issue_token(account_id):
    """Return a signed bearer token for account_id."""
    return _serializer(current_app.config["SECRET_KEY"]).dumps(
        {"account_id": account_id}
    )


def load_account_from_token(token):
    """Return the Account the token was issued for, or None.

    Expired, tampered, or orphaned tokens all resolve to None so
    Flask-Login treats the request as anonymous.
    """
    max_age = current_app.config["IDENTITY_TOKEN_MAX_AGE"]
    try:
        data = _serializer(current_app.config["SECRET_KEY"]).loads(
            token, max_age=max_age
        )
    except SignatureExpired:
        logger.info("Rejected expired identity token")
        return None
    except BadSignature:
        logger.warning("Rejected identity token with bad signature")
        return None

    account_id = data.get("account_id") if isinstance(data, dict) else None
    if not account_id:
        return None
    return db.session.get(Account, account_id)
