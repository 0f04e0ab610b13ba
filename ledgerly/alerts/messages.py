"""Notification templates.

Placeholders use ``{name}`` and are filled by ``render_template``. Each alert
type has a title, a plain message and a shorter chat variant.
"""

SPENDING_LIMIT_MESSAGES = {
    "spending_limit_exceeded": {
        "title": "⚠️ Spending limit exceeded",
        "message": (
            "⚠️ You have exceeded your spending limit!\n\n"
            "Spent this month: {total_spent}\n"
            "Configured limit: {spending_limit}\n"
            "Over by: {exceeded_amount} ({exceeded_percent}%)\n\n"
            "💡 Review your expenses and consider adjusting next month's budget."
        ),
        "chat": (
            "🚨 *Heads up {user_name}!*\n\n"
            "You went over your monthly spending limit.\n\n"
            "• Spent: *{total_spent}*\n"
            "• Limit: {spending_limit}\n"
            "• Over by: *{exceeded_amount}* ({exceeded_percent}%)"
        ),
    },
    "spending_limit_warning_90": {
        "title": "🚨 90% of your spending limit reached",
        "message": (
            "🚨 You have used 90% of your spending limit!\n\n"
            "Spent so far: {total_spent}\n"
            "Configured limit: {spending_limit}\n"
            "Still available: {remaining_amount}\n\n"
            "⚠️ You are close to exceeding your limit."
        ),
        "chat": (
            "🚨 *Heads up {user_name}!*\n\n"
            "You have spent 90% of your monthly limit.\n\n"
            "• Spent: {total_spent}\n"
            "• Limit: {spending_limit}\n"
            "• Available: {remaining_amount}"
        ),
    },
    "spending_limit_warning_75": {
        "title": "⚠️ 75% of your spending limit reached",
        "message": (
            "⚠️ You have used 75% of your spending limit!\n\n"
            "Spent so far: {total_spent}\n"
            "Configured limit: {spending_limit}\n"
            "Still available: {remaining_amount}\n\n"
            "💡 Keep an eye on your next expenses."
        ),
        "chat": (
            "⚠️ *Heads up {user_name}!*\n\n"
            "You have spent 75% of your monthly limit.\n\n"
            "• Spent: {total_spent}\n"
            "• Limit: {spending_limit}\n"
            "• Available: {remaining_amount}"
        ),
    },
}

RECURRING_EXPENSE_MESSAGES = {
    "recurring_expenses_due_soon": {
        "title": "🔔 Upcoming recurring expenses",
        "message": (
            "🔔 You have {count} expense(s) due soon!\n\n"
            "Total due: {total_amount}\n\n"
            "📋 UPCOMING:\n{expenses_list}"
        ),
        "chat": (
            "🔔 *Reminder {user_name}!*\n\n"
            "{count} expense(s) due soon.\n\n"
            "💰 Total: *{total_amount}*\n\n"
            "{expenses_list}"
        ),
    },
    "recurring_expenses_due_today": {
        "title": "⏰ Expense due TODAY",
        "message": (
            "⏰ An expense is due TODAY!\n\n"
            "{description}\n"
            "Amount: {amount}\n\n"
            "Pay now to avoid fees."
        ),
        "chat": (
            "⏰ *Reminder {user_name}!*\n\n"
            "Due *TODAY*:\n"
            "📌 {description}\n"
            "💰 Amount: *{amount}*"
        ),
    },
    "recurring_expenses_overdue": {
        "title": "🚨 Overdue expenses",
        "message": (
            "🚨 You have overdue expenses!\n\n"
            "{count} expense(s) overdue\n"
            "Total: {total_amount}\n\n"
            "📋 OVERDUE:\n{expenses_list}"
        ),
        "chat": (
            "🚨 *Urgent {user_name}!*\n\n"
            "{count} expense(s) *OVERDUE*.\n\n"
            "💰 Total: *{total_amount}*\n\n"
            "{expenses_list}"
        ),
    },
}

DEFAULT_USER_NAME = "User"

PIN_RESET_MESSAGE = {
    "title": "🔐 Mode PIN reset requested",
    "message": (
        "🔐 Hi {user_name}, a reset of your mode-switch PIN was requested.\n\n"
        "Open this link to choose a new PIN:\n{reset_url}\n\n"
        "The link expires at {expires_at}. If you did not ask for this, ignore this message."
    ),
}
