"""Shared test fixtures for the billsync test suite.

Provides:
- app: Flask app configured for testing (in-memory SQLite)
- client: Flask test client
- db_session: clean database per test (tables created/dropped)
- stripe_client: MagicMock swapped in for the app's StripeClient
- account / linked_account: seeded account rows
- sign: builds a real Stripe-Signature header for a payload
- subscription_event: builds Stripe subscription event payloads
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock

import pytest

from billsync import create_app
from billsync.extensions import db as _db
from billsync.models.account import Account
from billsync.services.identity import issue_token

WEBHOOK_SECRET = "whsec_test_fake"
PERIOD_END = 1798761600


@pytest.fixture(scope="session")
def app():
    """Create the Flask application configured for testing."""
    app = create_app("testing")
    yield app


@pytest.fixture(autouse=True)
def db_session(app):
    """Create all tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield _db.session
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def stripe_client(app, monkeypatch):
    """Replace the injected StripeClient with a MagicMock."""
    mock = MagicMock(name="StripeClient")
    monkeypatch.setitem(app.extensions, "stripe_client", mock)
    return mock


@pytest.fixture
def account(db_session):
    """An account that exists but has no Stripe customer yet."""
    acct = Account(
        id="acct_new",
        email="new@example.com",
        subscription_status="none",
    )
    db_session.add(acct)
    db_session.commit()
    return acct.id


@pytest.fixture
def linked_account(db_session):
    """An account linked to Stripe customer cus_1, no subscription."""
    acct = Account(
        id="acct_1",
        email="joe@example.com",
        stripe_customer_id="cus_1",
        subscription_status="none",
    )
    db_session.add(acct)
    db_session.commit()
    return acct.id


@pytest.fixture
def auth_headers():
    """Build bearer headers for an account id."""

    def _headers(account_id):
        return {"Authorization": f"Bearer {issue_token(account_id)}"}

    return _headers


@pytest.fixture
def sign():
    """Sign a raw payload the way Stripe does: HMAC-SHA256 over "t.body"."""

    def _sign(payload, secret=WEBHOOK_SECRET, timestamp=None):
        if timestamp is None:
            timestamp = int(time.time())
        signed = f"{timestamp}.".encode() + payload
        sig = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={sig}"

    return _sign


@pytest.fixture
def subscription_event():
    """Build a Stripe customer.subscription.* event as a dict."""

    def _event(event_id="evt_1", event_type="customer.subscription.created",
               created=1_700_000_000, customer="cus_1", subscription_id="sub_1",
               status="active", price_id="price_basic", period_end=PERIOD_END):
        return {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "created": created,
            "data": {
                "object": {
                    "id": subscription_id,
                    "object": "subscription",
                    "customer": customer,
                    "status": status,
                    "current_period_end": period_end,
                    "items": {
                        "data": [{"price": {"id": price_id}}],
                    },
                },
            },
        }

    return _event


@pytest.fixture
def to_payload():
    """Serialize an event dict to the raw bytes Stripe would POST."""

    def _payload(event):
        return json.dumps(event).encode()

    return _payload
