"""Subscription projector — event + account -> field changes.

Pure: reads the event and the account snapshot, returns one of
FieldUpdate / NoOp / Rejected. No database access, no mutation. The
applier decides what to do with the result.

Handled events:
- customer.subscription.created / .updated: mirror id, status, price,
  period end
- customer.subscription.deleted: clear subscription fields, status canceled
Everything else is a NoOp.
"""

from datetime import datetime, timezone

SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


class FieldUpdate:
    """Columns to write on the account, keyed by attribute name."""

    def __init__(self, fields):
        self.fields = fields

    def __eq__(self, other):
        return isinstance(other, FieldUpdate) and self.fields == other.fields

    def __repr__(self):
        return f"<FieldUpdate {self.fields!r}>"


class NoOp:
    """Event type this service doesn't reconcile."""

    def __eq__(self, other):
        return isinstance(other, NoOp)

    def __repr__(self):
        return "<NoOp>"


class Rejected:
    """Event is tracked but must not be applied (stale, duplicate, ...)."""

    def __init__(self, reason):
        self.reason = reason

    def __eq__(self, other):
        return isinstance(other, Rejected) and self.reason == other.reason

    def __repr__(self):
        return f"<Rejected {self.reason}>"


# ──────────────────────────────────────────────
# Payload helpers
# ──────────────────────────────────────────────

def extract_customer_id(event):
    """Return the Stripe customer id an event refers to, or None.

    `customer` is a plain id unless the payload was expanded, in which
    case it's a customer object.
    """
    customer = event.data_object.get("customer")
    if isinstance(customer, dict):
        return customer.get("id")
    return customer or None


class MalformedSubscription(ValueError):
    """A subscription payload member has an unexpected shape."""


def _first_item(sub_data):
    items = sub_data.get("items") or {}
    if not isinstance(items, dict):
        raise MalformedSubscription("items")
    data = items.get("data") or []
    if not isinstance(data, list):
        raise MalformedSubscription("items.data")
    if not data:
        return None
    if not isinstance(data[0], dict):
        raise MalformedSubscription("items.data[0]")
    return data[0]


def _extract_price_id(sub_data):
    """Price of the first line item (legacy payloads carry `plan`)."""
    item = _first_item(sub_data)
    if not item:
        return None
    price = item.get("price") or item.get("plan") or {}
    if isinstance(price, str):
        return price
    if not isinstance(price, dict):
        raise MalformedSubscription("price")
    return price.get("id")


def _extract_period_end(sub_data):
    """Extract current_period_end from a Stripe subscription object.

    Newer Stripe API versions moved current_period_end from the
    subscription top level to items.data[0].current_period_end.
    Checks both. Returns a timezone-aware datetime or None.
    """
    ts = sub_data.get("current_period_end")
    if not ts:
        item = _first_item(sub_data)
        if item:
            ts = item.get("current_period_end")
    if not ts:
        return None
    if isinstance(ts, bool) or not isinstance(ts, (int, float)):
        raise MalformedSubscription("current_period_end")
    return datetime.fromtimestamp(ts, tz=timezone.utc)


def _cleared_fields():
    return {
        "subscription_id": None,
        "subscription_status": "canceled",
        "price_id": None,
        "subscription_period_end": None,
    }


# ──────────────────────────────────────────────
# Per-type projections
# ──────────────────────────────────────────────

def _project_upsert(event, account):
    sub_data = event.data_object
    status = sub_data.get("status")
    if not sub_data.get("id") or not status:
        return Rejected("missing subscription fields")

    if status == "canceled":
        return _project_cancel(sub_data["id"], account)

    try:
        price_id = _extract_price_id(sub_data)
        period_end = _extract_period_end(sub_data)
    except MalformedSubscription:
        return Rejected("malformed subscription")

    return FieldUpdate({
        "subscription_id": sub_data["id"],
        "subscription_status": status,
        "price_id": price_id,
        "subscription_period_end": period_end,
    })


def _project_cancel(sub_id, account):
    if account.subscription_id and sub_id and sub_id != account.subscription_id:
        # A replaced subscription ending must not clear its successor.
        return Rejected("subscription mismatch")
    return FieldUpdate(_cleared_fields())


def _project_deleted(event, account):
    return _project_cancel(event.data_object.get("id"), account)


_PROJECTIONS = {
    SUBSCRIPTION_CREATED: _project_upsert,
    SUBSCRIPTION_UPDATED: _project_upsert,
    SUBSCRIPTION_DELETED: _project_deleted,
}


def is_tracked(event_type):
    """True if the projector reconciles this event type."""
    return event_type in _PROJECTIONS


def project(event, account):
    """Map a verified event onto the account's current state.

    Returns FieldUpdate, NoOp, or Rejected(reason). A FieldUpdate always
    carries last_event_id / last_event_created so the ordering state
    moves with the subscription fields.
    """
    projection = _PROJECTIONS.get(event.type)
    if projection is None:
        return NoOp()

    if account.last_event_id is not None and event.id == account.last_event_id:
        return Rejected("duplicate")
    if (
        account.last_event_created is not None
        and event.created < account.last_event_created
    ):
        return Rejected("stale")

    result = projection(event, account)
    if isinstance(result, FieldUpdate):
        result.fields["last_event_id"] = event.id
        result.fields["last_event_created"] = event.created
    return result
