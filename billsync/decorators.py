"""
Custom route decorators.

- json_errors: turns BillingError into a JSON response with its status;
  anything unexpected is logged and surfaced as a generic 500.
- hook_token_required: shared-secret check for the account creation
  trigger called by the identity system.
"""

import hmac
import logging
from functools import wraps

from flask import current_app, jsonify, request

from billsync.errors import BillingError, Internal

logger = logging.getLogger(__name__)


def json_errors(f):
    """Render BillingError subclasses as {"error", "message"} JSON."""

    @wraps(f)
    def decorated(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except BillingError as e:
            if isinstance(e, Internal):
                logger.error(f"{request.path}: {e.message}")
            return jsonify(e.to_dict()), e.status_code
        except Exception:
            logger.error(f"Unhandled error on {request.path}", exc_info=True)
            return jsonify(Internal().to_dict()), 500

    return decorated


def hook_token_required(f):
    """Require X-Account-Hook-Token to match ACCOUNT_HOOK_TOKEN."""

    @wraps(f)
    def decorated(*args, **kwargs):
        expected = current_app.config.get("ACCOUNT_HOOK_TOKEN") or ""
        supplied = request.headers.get("X-Account-Hook-Token") or ""
        if not expected or not hmac.compare_digest(expected, supplied):
            logger.warning("Account hook called with a bad or missing token")
            return jsonify({
                "error": "unauthenticated",
                "message": "Invalid hook token.",
            }), 401
        return f(*args, **kwargs)

    return decorated
