"""Spending-limit and recurring-expense webhook alerts."""

from ledgerly.alerts.notifier import WebhookNotifier
from ledgerly.alerts.recurring_expenses import (
    check_recurring_expenses,
    upcoming_expenses,
    urgency_level,
)
from ledgerly.alerts.spending_limit import check_spending_limits, classify_spending

__all__ = [
    "WebhookNotifier",
    "check_recurring_expenses",
    "check_spending_limits",
    "classify_spending",
    "upcoming_expenses",
    "urgency_level",
]
