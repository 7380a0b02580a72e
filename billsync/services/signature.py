"""Webhook signature verification.

Stripe signs each delivery with a timestamped HMAC-SHA256 over
"<timestamp>.<raw body>". The signature must be checked against the
exact bytes received; the body is only parsed after it passes.
"""

import json
import logging
import time

import stripe

from billsync.errors import VerificationError

logger = logging.getLogger(__name__)


class WebhookEvent:
    """A verified Stripe event, reduced to the fields reconciliation reads."""

    __slots__ = ("id", "type", "created", "data_object")

    def __init__(self, id, type, created, data_object):
        self.id = id
        self.type = type
        self.created = created
        self.data_object = data_object

    @classmethod
    def from_dict(cls, data):
        """Build from a decoded Stripe event payload.

        Raises VerificationError if a required field is missing.
        """
        try:
            event_id = data["id"]
            event_type = data["type"]
            created = int(data["created"])
            data_object = data["data"]["object"]
        except (KeyError, TypeError, ValueError) as e:
            raise VerificationError(f"Malformed event payload: {e!r}") from e
        if not isinstance(data_object, dict):
            raise VerificationError("Malformed event payload: data.object")
        return cls(event_id, event_type, created, data_object)

    def __repr__(self):
        return f"<WebhookEvent {self.id} ({self.type})>"


def _header_timestamp(sig_header):
    for item in sig_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "t":
            try:
                return int(value)
            except ValueError:
                return None
    return None


def verify_event(payload, sig_header, secret, tolerance=300):
    """Verify a webhook delivery and return the parsed WebhookEvent.

    Args:
        payload:    raw request body (bytes)
        sig_header: value of the Stripe-Signature header
        secret:     webhook signing secret (whsec_...)
        tolerance:  allowed clock skew in seconds, both directions

    Raises VerificationError if the header is missing or malformed, the
    signature doesn't match, or the timestamp is outside the window.
    """
    if not sig_header:
        raise VerificationError("Missing signature header")
    if not secret:
        raise VerificationError("Webhook secret is not configured")

    try:
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    except UnicodeDecodeError as e:
        raise VerificationError("Payload is not valid UTF-8") from e

    try:
        stripe.WebhookSignature.verify_header(body, sig_header, secret, tolerance)
    except stripe.SignatureVerificationError as e:
        raise VerificationError(str(e)) from e

    # verify_header only rejects old timestamps; reject far-future ones too.
    timestamp = _header_timestamp(sig_header)
    if timestamp is None or timestamp > time.time() + tolerance:
        raise VerificationError("Timestamp outside the tolerance zone")

    try:
        data = json.loads(body)
    except ValueError as e:
        raise VerificationError("Payload is not valid JSON") from e
    if not isinstance(data, dict):
        raise VerificationError("Malformed event payload")

    return WebhookEvent.from_dict(data)
