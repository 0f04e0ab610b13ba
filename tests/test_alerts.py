"""Tests for spending-limit and recurring-expense alerts."""

from datetime import date

import httpx
import pytest

from conftest import TODAY, add_profile, add_transaction, add_user
from ledgerly.alerts.notifier import WebhookNotifier
from ledgerly.alerts.recurring_expenses import (
    check_recurring_expenses,
    next_due_date,
    upcoming_expenses,
    urgency_level,
)
from ledgerly.alerts.spending_limit import check_spending_limits, classify_spending, monthly_expenses
from ledgerly.utils.formatters import format_brl

HOOK = "https://hooks.example.com/alerts"


class RecordingNotifier:
    """Notifier that stores payloads instead of posting them."""

    def __init__(self, result=True):
        self.result = result
        self.sent = []

    def send(self, url, payload):
        self.sent.append((url, payload))
        return self.result


def add_recurring(store, user_id, description, amount, due_day, is_paid=False):
    store.insert("recurring_expenses", {
        "user_id": user_id,
        "description": description,
        "amount": amount,
        "due_day": due_day,
        "is_paid": is_paid,
        "category": "bills",
    })


class TestFormatBrl:
    """Tests for BRL formatting."""

    @pytest.mark.parametrize("value,expected", [
        (0, "R$ 0,00"),
        (1234.5, "R$ 1.234,50"),
        (1234567.891, "R$ 1.234.567,89"),
        (-10, "-R$ 10,00"),
    ])
    def test_format(self, value, expected):
        assert format_brl(value) == expected


class TestClassifySpending:
    """Tests for spending thresholds."""

    @pytest.mark.parametrize("spent,expected", [
        (0, None),
        (749.99, None),
        (750, "spending_limit_warning_75"),
        (899.99, "spending_limit_warning_75"),
        (900, "spending_limit_warning_90"),
        (1000, "spending_limit_warning_90"),
        (1000.01, "spending_limit_exceeded"),
    ])
    def test_thresholds(self, spent, expected):
        assert classify_spending(spent, 1000) == expected

    def test_zero_limit_never_alerts(self):
        assert classify_spending(500, 0) is None


class TestSpendingLimits:
    """Tests for check_spending_limits."""

    def test_monthly_expenses_covers_calendar_month(self, store):
        add_transaction(store, "u", 100, "expense", "2024-06-01", mode="business")
        add_transaction(store, "u", 200, "expense", "2024-06-30", mode="business")
        add_transaction(store, "u", 400, "expense", "2024-07-01", mode="business")
        add_transaction(store, "u", 800, "expense", "2024-05-31", mode="business")
        add_transaction(store, "u", 999, "income", "2024-06-10", mode="business")
        add_transaction(store, "u", 50, "expense", "2024-06-10")

        assert monthly_expenses(store, "u", TODAY) == 300
        assert monthly_expenses(store, "u", TODAY, mode="personal") == 50

    def test_sends_exceeded_alert(self, store):
        add_user(store, "u", email="u@example.com")
        add_profile(store, "u", webhook_url=HOOK, monthly_spending_limit=1000, full_name="Ana")
        add_transaction(store, "u", 1200, "expense", "2024-06-03", mode="business")
        notifier = RecordingNotifier()

        result = check_spending_limits(store, notifier, TODAY)

        assert result == {"profiles_checked": 1, "notifications_sent": 1}
        url, payload = notifier.sent[0]
        assert url == HOOK
        assert payload["alert_type"] == "spending_limit_exceeded"
        assert payload["user_email"] == "u@example.com"
        assert payload["month"] == "2024-06"
        assert payload["exceeded_amount"] == 200
        assert payload["percent_used"] == 120.0
        assert "R$ 1.200,00" in payload["message"]
        assert "Ana" in payload["message_chat"]

    def test_warning_reports_remaining_amount(self, store):
        add_profile(store, "u", webhook_url=HOOK, monthly_spending_limit=1000)
        add_transaction(store, "u", 800, "expense", "2024-06-03", mode="business")
        notifier = RecordingNotifier()

        check_spending_limits(store, notifier, TODAY)

        payload = notifier.sent[0][1]
        assert payload["alert_type"] == "spending_limit_warning_75"
        assert payload["remaining_amount"] == 200
        assert payload["user_name"] == "User"

    def test_profiles_without_webhook_or_limit_are_skipped(self, store):
        add_profile(store, "a", webhook_url=None, monthly_spending_limit=100)
        add_profile(store, "b", webhook_url=HOOK, monthly_spending_limit=None)
        add_transaction(store, "a", 500, "expense", "2024-06-03", mode="business")
        notifier = RecordingNotifier()

        assert check_spending_limits(store, notifier, TODAY) == {"profiles_checked": 0, "notifications_sent": 0}

    def test_failed_delivery_is_not_counted(self, store):
        add_profile(store, "u", webhook_url=HOOK, monthly_spending_limit=100)
        add_transaction(store, "u", 500, "expense", "2024-06-03", mode="business")

        result = check_spending_limits(store, RecordingNotifier(result=False), TODAY)

        assert result == {"profiles_checked": 1, "notifications_sent": 0}


class TestRecurringSchedule:
    """Tests for due dates and the reminder window."""

    @pytest.mark.parametrize("due_day,today,expected", [
        (20, date(2024, 6, 15), date(2024, 6, 20)),
        (10, date(2024, 6, 15), date(2024, 6, 10)),
        (5, date(2024, 6, 15), date(2024, 7, 5)),
        (31, date(2024, 6, 15), date(2024, 6, 30)),
        (31, date(2024, 1, 31), date(2024, 1, 31)),
        (2, date(2024, 12, 20), date(2025, 1, 2)),
    ])
    def test_next_due_date(self, due_day, today, expected):
        assert next_due_date(due_day, today) == expected

    @pytest.mark.parametrize("days,level,text", [
        (-2, "overdue", "OVERDUE"),
        (0, "due_today", "DUE TODAY"),
        (1, "due_soon", "DUE TOMORROW"),
        (3, "due_soon", "DUE IN 3 DAYS"),
    ])
    def test_urgency_level(self, days, level, text):
        urgency = urgency_level(days)

        assert urgency["level"] == level
        assert urgency["text"] == text

    def test_window_and_order(self):
        expenses = [
            {"description": "rent", "amount": 1500, "due_day": 18},
            {"description": "gym", "amount": 90, "due_day": 15},
            {"description": "phone", "amount": 60, "due_day": 10},
            {"description": "water", "amount": 80, "due_day": 25},
            {"description": "old", "amount": 10, "due_day": 7},
        ]

        upcoming = upcoming_expenses(expenses, TODAY, days_before=3)

        assert [(e["description"], e["days_until_due"]) for e in upcoming] == [
            ("phone", -5),
            ("gym", 0),
            ("rent", 3),
        ]
        assert upcoming[0]["due_date"] == "2024-06-10"


class TestRecurringExpenses:
    """Tests for check_recurring_expenses."""

    def test_due_today_reminder(self, store):
        add_user(store, "u")
        add_profile(store, "u", webhook_url=HOOK, full_name="Bia")
        add_recurring(store, "u", "Internet", 120, 15)
        add_recurring(store, "u", "Rent", 1500, 17)
        add_recurring(store, "u", "Paid already", 50, 15, is_paid=True)
        notifier = RecordingNotifier()

        result = check_recurring_expenses(store, notifier, TODAY)

        assert result == {"profiles_checked": 1, "notifications_sent": 1}
        payload = notifier.sent[0][1]
        assert payload["alert_type"] == "recurring_expenses_due_today"
        assert [e["description"] for e in payload["expenses"]] == ["Internet", "Rent"]
        assert payload["total_amount"] == 1620
        assert payload["due_today_count"] == 1
        assert payload["due_soon_count"] == 1
        assert "Internet" in payload["message"]
        assert "R$ 120,00" in payload["message"]

    def test_overdue_takes_precedence(self, store):
        add_profile(store, "u", webhook_url=HOOK)
        add_recurring(store, "u", "Card", 900, 12)
        add_recurring(store, "u", "Internet", 120, 15)
        notifier = RecordingNotifier()

        check_recurring_expenses(store, notifier, TODAY)

        payload = notifier.sent[0][1]
        assert payload["alert_type"] == "recurring_expenses_overdue"
        assert payload["overdue_count"] == 1
        assert payload["expenses"][0]["urgency_level"] == "overdue"

    def test_uses_profile_notification_window(self, store):
        add_profile(store, "u", webhook_url=HOOK, notification_days_before=7)
        add_recurring(store, "u", "Insurance", 300, 21)
        notifier = RecordingNotifier()

        check_recurring_expenses(store, notifier, TODAY)

        assert notifier.sent[0][1]["alert_type"] == "recurring_expenses_due_soon"
        assert notifier.sent[0][1]["days_before_notification"] == 7

    def test_nothing_due_sends_nothing(self, store):
        add_profile(store, "u", webhook_url=HOOK)
        add_recurring(store, "u", "Insurance", 300, 28)
        notifier = RecordingNotifier()

        assert check_recurring_expenses(store, notifier, TODAY) == {"profiles_checked": 1, "notifications_sent": 0}
        assert notifier.sent == []


class TestWebhookNotifier:
    """Tests for WebhookNotifier.send."""

    def test_posts_json(self):
        received = {}

        def handler(request):
            received["method"] = request.method
            received["body"] = request.content
            return httpx.Response(204)

        notifier = WebhookNotifier(transport=httpx.MockTransport(handler))

        assert notifier.send(HOOK, {"alert_type": "x"}) is True
        assert received["method"] == "POST"
        assert b'"alert_type"' in received["body"]

    def test_error_status_returns_false(self):
        notifier = WebhookNotifier(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))

        assert notifier.send(HOOK, {}) is False

    def test_network_error_returns_false(self):
        def handler(request):
            raise httpx.ConnectTimeout("timed out", request=request)

        assert WebhookNotifier(transport=httpx.MockTransport(handler)).send(HOOK, {}) is False
