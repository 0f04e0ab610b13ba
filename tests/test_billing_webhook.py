"""Tests for billing webhook verification, dispatch and subscription status."""

import hashlib
import hmac
import json
import time

import pytest

from ledgerly.api.exceptions import WebhookSignatureError
from ledgerly.billing.subscriptions import get_subscription_status
from ledgerly.billing.webhook import handle_event, parse_event, verify_signature

SECRET = "whsec_test"


def sign(payload: bytes, timestamp: int = None, secret: str = SECRET) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def event(event_type, obj):
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid_signature(self):
        payload = b'{"type": "ping"}'
        verify_signature(payload, sign(payload), SECRET)

    def test_any_of_several_signatures_is_accepted(self):
        payload = b"{}"
        timestamp, good = sign(payload).split(",")
        verify_signature(payload, f"{timestamp},v1=deadbeef,{good}", SECRET)

    def test_tampered_payload_rejected(self):
        header = sign(b'{"amount": 1}')
        with pytest.raises(WebhookSignatureError):
            verify_signature(b'{"amount": 2}', header, SECRET)

    def test_wrong_secret_rejected(self):
        payload = b"{}"
        with pytest.raises(WebhookSignatureError):
            verify_signature(payload, sign(payload, secret="other"), SECRET)

    def test_stale_timestamp_rejected(self):
        payload = b"{}"
        with pytest.raises(WebhookSignatureError):
            verify_signature(payload, sign(payload, timestamp=int(time.time()) - 301), SECRET)

    @pytest.mark.parametrize("header", [None, "", "garbage", "t=abc,v1=00", "v1=00"])
    def test_malformed_header_rejected(self, header):
        with pytest.raises(WebhookSignatureError):
            verify_signature(b"{}", header, SECRET)

    def test_non_utf8_payload_rejected(self):
        payload = b"\xff\xfe{}"
        with pytest.raises(WebhookSignatureError):
            verify_signature(payload, sign(payload), SECRET)


class TestParseEvent:
    """Tests for parse_event."""

    def test_without_secret_accepts_unverified(self):
        assert parse_event(b'{"type": "invoice.created"}', None, None)["type"] == "invoice.created"

    def test_signed_event_is_decoded(self):
        payload = json.dumps(event("invoice.payment_failed", {"subscription": "sub_1"})).encode()

        assert parse_event(payload, sign(payload), SECRET)["type"] == "invoice.payment_failed"

    def test_invalid_json_rejected(self):
        with pytest.raises(WebhookSignatureError):
            parse_event(b"not json", None, None)

    def test_invalid_utf8_rejected(self):
        with pytest.raises(WebhookSignatureError):
            parse_event(b'{"type": "\xff"}', None, None)

    def test_payload_without_type_rejected(self):
        with pytest.raises(WebhookSignatureError):
            parse_event(b'{"id": "evt"}', None, None)

    def test_stale_signed_event_rejected(self):
        payload = json.dumps(event("invoice.payment_failed", {"subscription": "sub_1"})).encode()

        with pytest.raises(WebhookSignatureError):
            parse_event(payload, sign(payload, timestamp=1_700_000_000), SECRET)


class TestHandleEvent:
    """Tests for event dispatch onto the subscriptions table."""

    def test_checkout_completed_starts_trial(self, store):
        handled = handle_event(store, event("checkout.session.completed", {
            "customer": "cus_1",
            "subscription": "sub_1",
            "metadata": {"user_id": "u1", "plan_type": "monthly"},
        }))

        row = store.fetch_one("subscriptions", [("user_id", "==", "u1")])
        assert handled is True
        assert row["status"] == "trialing"
        assert row["stripe_customer_id"] == "cus_1"
        assert row["stripe_subscription_id"] == "sub_1"

    def test_checkout_without_user_is_ignored(self, store):
        assert handle_event(store, event("checkout.session.completed", {"customer": "cus_1"})) is False
        assert store.fetch("subscriptions") == []

    def test_subscription_updated_resolves_user_by_customer(self, store):
        store.upsert("subscriptions", {"user_id": "u1", "stripe_customer_id": "cus_1"}, ("user_id",))

        handle_event(store, event("customer.subscription.updated", {
            "id": "sub_1",
            "customer": "cus_1",
            "status": "active",
            "current_period_start": 1_700_000_000,
            "current_period_end": 1_731_536_000,
            "cancel_at_period_end": True,
            "items": {"data": [{"price": {"recurring": {"interval": "year"}}}]},
        }))

        row = store.fetch_one("subscriptions", [("user_id", "==", "u1")])
        assert row["status"] == "active"
        assert row["plan_type"] == "annual"
        assert row["cancel_at_period_end"] == 1
        assert row["current_period_start"].startswith("2023-11-14")

    def test_subscription_for_unknown_customer_is_ignored(self, store):
        handled = handle_event(store, event("customer.subscription.created", {
            "id": "sub_9", "customer": "cus_unknown", "status": "active",
        }))

        assert handled is False

    @pytest.mark.parametrize("event_type,key,expected", [
        ("customer.subscription.deleted", "id", "canceled"),
        ("invoice.payment_succeeded", "subscription", "active"),
        ("invoice.payment_failed", "subscription", "past_due"),
    ])
    def test_status_transitions(self, store, event_type, key, expected):
        store.upsert("subscriptions", {"user_id": "u1", "stripe_subscription_id": "sub_1", "status": "trialing"},
                     ("user_id",))

        assert handle_event(store, event(event_type, {key: "sub_1", "id": "sub_1" if key == "id" else "in_1"}))
        assert store.fetch_one("subscriptions", [("user_id", "==", "u1")])["status"] == expected

    def test_unknown_event_type_is_ignored(self, store):
        assert handle_event(store, event("charge.refunded", {"id": "ch_1"})) is False

    def test_one_row_per_user(self, store):
        obj = {"customer": "cus_1", "subscription": "sub_1", "metadata": {"user_id": "u1"}}
        handle_event(store, event("checkout.session.completed", obj))
        handle_event(store, event("checkout.session.completed", {**obj, "subscription": "sub_2"}))

        rows = store.fetch("subscriptions")
        assert len(rows) == 1
        assert rows[0]["stripe_subscription_id"] == "sub_2"


class TestSubscriptionStatus:
    """Tests for get_subscription_status."""

    def test_no_subscription(self, store):
        status = get_subscription_status(store, "u1")

        assert status["status"] == "none"
        assert status["is_active"] is False

    @pytest.mark.parametrize("status,is_active,is_trial", [
        ("trialing", True, True),
        ("active", True, False),
        ("past_due", False, False),
        ("canceled", False, False),
    ])
    def test_active_statuses(self, store, status, is_active, is_trial):
        store.upsert("subscriptions", {"user_id": "u1", "status": status, "plan_type": "monthly"}, ("user_id",))

        result = get_subscription_status(store, "u1")

        assert result["is_active"] is is_active
        assert result["is_trial"] is is_trial
        assert result["plan_type"] == "monthly"
