"""
billing.py
Billing cycle arithmetic: subscription end dates and renewal urgency.
"""

from __future__ import annotations

from datetime import date, timedelta

from models import CYCLE_MONTHS, Subscription


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def advance(start_date: date, cycle: str) -> date:
    """End of one billing period that starts on start_date."""
    return add_months(start_date, CYCLE_MONTHS[cycle])


def days_until_end(subscription: Subscription, reference_date: date) -> int:
    return (subscription.end_date - reference_date).days


def is_due_within(subscription: Subscription, reference_date: date, horizon_days: int) -> bool:
    if subscription.status != "active":
        return False
    return 0 <= days_until_end(subscription, reference_date) <= horizon_days
