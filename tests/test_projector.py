"""Tests for the subscription projector (pure, no database writes)."""

from datetime import datetime, timezone

from billsync.models.account import Account
from billsync.services.projector import (
    FieldUpdate,
    NoOp,
    Rejected,
    extract_customer_id,
    is_tracked,
    project,
)
from billsync.services.signature import WebhookEvent

PERIOD_END = 1798761600


def _account(**kwargs):
    fields = {
        "id": "acct_1",
        "stripe_customer_id": "cus_1",
        "subscription_status": "none",
        "last_event_id": None,
        "last_event_created": None,
    }
    fields.update(kwargs)
    return Account(**fields)


def _event(subscription_event, **kwargs):
    return WebhookEvent.from_dict(subscription_event(**kwargs))


class TestSubscriptionUpserts:

    def test_created_sets_all_fields(self, subscription_event):
        """Example: {status: none} + created(S1, active, P1, T1)."""
        event = _event(subscription_event, event_id="evt_a", created=100)

        result = project(event, _account())

        assert result == FieldUpdate({
            "subscription_id": "sub_1",
            "subscription_status": "active",
            "price_id": "price_basic",
            "subscription_period_end": datetime.fromtimestamp(
                PERIOD_END, tz=timezone.utc
            ),
            "last_event_id": "evt_a",
            "last_event_created": 100,
        })

    def test_updated_is_projected_like_created(self, subscription_event):
        event = _event(
            subscription_event,
            event_type="customer.subscription.updated",
            status="past_due",
        )
        result = project(event, _account(subscription_id="sub_1"))
        assert isinstance(result, FieldUpdate)
        assert result.fields["subscription_status"] == "past_due"

    def test_updated_to_canceled_clears_fields(self, subscription_event):
        event = _event(
            subscription_event,
            event_type="customer.subscription.updated",
            status="canceled",
        )
        result = project(event, _account(subscription_id="sub_1"))
        assert result.fields["subscription_status"] == "canceled"
        assert result.fields["subscription_id"] is None
        assert result.fields["price_id"] is None
        assert result.fields["subscription_period_end"] is None

    def test_period_end_falls_back_to_first_item(self, subscription_event):
        data = subscription_event()
        sub = data["data"]["object"]
        del sub["current_period_end"]
        sub["items"]["data"][0]["current_period_end"] = PERIOD_END

        result = project(WebhookEvent.from_dict(data), _account())

        assert result.fields["subscription_period_end"] == datetime.fromtimestamp(
            PERIOD_END, tz=timezone.utc
        )

    def test_price_falls_back_to_legacy_plan(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"]["data"][0] = {"plan": {"id": "plan_legacy"}}

        result = project(WebhookEvent.from_dict(data), _account())

        assert result.fields["price_id"] == "plan_legacy"

    def test_missing_status_rejected(self, subscription_event):
        data = subscription_event()
        del data["data"]["object"]["status"]
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("missing subscription fields")


class TestSubscriptionDeleted:

    def test_deleted_clears_fields(self, subscription_event):
        event = _event(
            subscription_event,
            event_id="evt_del",
            event_type="customer.subscription.deleted",
            status="canceled",
            created=200,
        )
        account = _account(
            subscription_id="sub_1",
            subscription_status="active",
            price_id="price_basic",
            last_event_id="evt_a",
            last_event_created=100,
        )

        result = project(event, account)

        assert result == FieldUpdate({
            "subscription_id": None,
            "subscription_status": "canceled",
            "price_id": None,
            "subscription_period_end": None,
            "last_event_id": "evt_del",
            "last_event_created": 200,
        })

    def test_deleting_replaced_subscription_rejected(self, subscription_event):
        event = _event(
            subscription_event,
            event_type="customer.subscription.deleted",
            subscription_id="sub_old",
        )
        account = _account(subscription_id="sub_new", subscription_status="active")

        assert project(event, account) == Rejected("subscription mismatch")

    def test_canceling_replaced_subscription_rejected(self, subscription_event):
        event = _event(
            subscription_event,
            event_type="customer.subscription.updated",
            subscription_id="sub_old",
            status="canceled",
        )
        account = _account(subscription_id="sub_new", subscription_status="active")

        assert project(event, account) == Rejected("subscription mismatch")

    def test_canceling_with_nothing_tracked_clears_fields(self, subscription_event):
        event = _event(
            subscription_event,
            event_type="customer.subscription.updated",
            status="canceled",
        )
        result = project(event, _account())
        assert result.fields["subscription_status"] == "canceled"
        assert result.fields["subscription_id"] is None


class TestMalformedPayloads:

    def test_items_not_a_dict(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"] = ["si_1"]
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("malformed subscription")

    def test_items_data_not_a_list(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"] = {"data": "si_1"}
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("malformed subscription")

    def test_line_item_not_a_dict(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"]["data"] = ["si_1"]
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("malformed subscription")

    def test_price_of_unexpected_type(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"]["data"][0] = {"price": 42}
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("malformed subscription")

    def test_period_end_not_numeric(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["current_period_end"] = "soon"
        result = project(WebhookEvent.from_dict(data), _account())
        assert result == Rejected("malformed subscription")

    def test_price_given_as_plain_id(self, subscription_event):
        data = subscription_event()
        data["data"]["object"]["items"]["data"][0] = {"price": "price_plain"}
        result = project(WebhookEvent.from_dict(data), _account())
        assert result.fields["price_id"] == "price_plain"


class TestOrdering:

    def test_stale_event_rejected(self, subscription_event):
        event = _event(subscription_event, event_id="evt_old", created=100)
        account = _account(last_event_id="evt_new", last_event_created=200)
        assert project(event, account) == Rejected("stale")

    def test_same_second_event_accepted(self, subscription_event):
        event = _event(subscription_event, event_id="evt_b", created=200)
        account = _account(last_event_id="evt_a", last_event_created=200)
        assert isinstance(project(event, account), FieldUpdate)

    def test_same_event_id_rejected(self, subscription_event):
        event = _event(subscription_event, event_id="evt_a", created=200)
        account = _account(last_event_id="evt_a", last_event_created=200)
        assert project(event, account) == Rejected("duplicate")


class TestOtherEvents:

    def test_unknown_type_is_noop(self):
        event = WebhookEvent("evt_x", "invoice.payment_failed", 100,
                             {"customer": "cus_1"})
        assert project(event, _account()) == NoOp()
        assert not is_tracked("invoice.payment_failed")
        assert is_tracked("customer.subscription.deleted")

    def test_noop_even_when_stale(self):
        event = WebhookEvent("evt_x", "customer.created", 1, {"customer": "cus_1"})
        account = _account(last_event_created=500)
        assert project(event, account) == NoOp()

    def test_project_does_not_mutate_account(self, subscription_event):
        account = _account()
        project(_event(subscription_event), account)
        assert account.subscription_status == "none"
        assert account.subscription_id is None
        assert account.last_event_id is None


class TestExtractCustomerId:

    def test_plain_id(self):
        event = WebhookEvent("evt", "t", 1, {"customer": "cus_9"})
        assert extract_customer_id(event) == "cus_9"

    def test_expanded_customer(self):
        event = WebhookEvent("evt", "t", 1, {"customer": {"id": "cus_9"}})
        assert extract_customer_id(event) == "cus_9"

    def test_missing_customer(self):
        assert extract_customer_id(WebhookEvent("evt", "t", 1, {})) is None
