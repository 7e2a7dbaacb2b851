"""
utils.py
Validation, dates, exports.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict
from datetime import date, datetime

import pandas as pd

from models import CYCLE_MONTHS, REMINDER_TYPES, SUBSCRIPTION_STATUSES

EMAIL_RE = re.compile(r"\S+@\S+\.\S+")


def today_iso() -> str:
    return date.today().isoformat()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d)


def to_date(value) -> date:
    """Accept a date, a datetime (time part dropped) or an ISO string (YYYY-MM-DD)."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return parse_iso(str(value))


def _try_date(value, label: str, errors: list[str]) -> date | None:
    if value in (None, ""):
        errors.append(f"{label} is required.")
        return None
    try:
        return to_date(value)
    except ValueError:
        errors.append(f"{label} must be a valid ISO date (YYYY-MM-DD).")
        return None


def validate_customer_inputs(name, email) -> list[str]:
    errors: list[str] = []
    if not (name or "").strip():
        errors.append("Name is required.")
    email = (email or "").strip()
    if not email:
        errors.append("Email is required.")
    elif not EMAIL_RE.fullmatch(email):
        errors.append("Email is invalid.")
    return errors


def validate_category_inputs(name) -> list[str]:
    if not (name or "").strip():
        return ["Category name is required."]
    return []


def validate_product_inputs(name, price, billing_cycle) -> list[str]:
    errors: list[str] = []
    if not (name or "").strip():
        errors.append("Product name is required.")
    try:
        value = float(price)
        if not math.isfinite(value):
            errors.append("Price must be a finite number.")
        elif value <= 0:
            errors.append("Price must be greater than 0.")
    except (TypeError, ValueError):
        errors.append("Price must be numeric.")
    if billing_cycle not in CYCLE_MONTHS:
        errors.append(f"Billing cycle must be one of: {', '.join(CYCLE_MONTHS)}.")
    return errors


def validate_subscription_inputs(customer_id, product_id, start_date, end_date, status) -> list[str]:
    """end_date=None skips the date-order check (used before end_date is derived)."""
    errors: list[str] = []
    if not customer_id:
        errors.append("Customer is required.")
    if not product_id:
        errors.append("Product is required.")
    if status not in SUBSCRIPTION_STATUSES:
        errors.append(f"Status must be one of: {', '.join(SUBSCRIPTION_STATUSES)}.")
    sd = _try_date(start_date, "Start date", errors)
    if end_date is not None:
        ed = _try_date(end_date, "End date", errors)
        if sd and ed and ed <= sd:
            errors.append("End date must be after start date.")
    return errors


def validate_reminder_inputs(subscription_id, reminder_date, reminder_type) -> list[str]:
    errors: list[str] = []
    if not subscription_id:
        errors.append("Subscription is required.")
    _try_date(reminder_date, "Reminder date", errors)
    if reminder_type not in REMINDER_TYPES:
        errors.append(f"Reminder type must be one of: {', '.join(REMINDER_TYPES)}.")
    return errors


def records_to_frame(records, columns: list[str] | None = None) -> pd.DataFrame:
    """Dataclass records -> DataFrame (empty frame keeps the given columns)."""
    df = pd.DataFrame([asdict(r) for r in records])
    if df.empty:
        return pd.DataFrame(columns=columns or [])
    return df


def records_to_csv_bytes(records) -> bytes:
    return records_to_frame(records).to_csv(index=False).encode("utf-8")


def subscription_labels(subscriptions, customers, products) -> dict[int, str]:
    """Subscription id -> "Customer - Product" for selectors and tables."""
    customer_names = {c.id: c.name for c in customers}
    product_names = {p.id: p.name for p in products}
    return {
        s.id: f"{customer_names.get(s.customer_id, 'Unknown customer')} - {product_names.get(s.product_id, 'Unknown product')}"
        for s in subscriptions
    }


def subscriptions_frame(subscriptions, customers, products, reference_date: date | None = None) -> pd.DataFrame:
    columns = ["id", "customer", "product", "price", "billing_cycle", "start_date", "end_date",
               "days_left", "status", "auto_renew"]
    df = records_to_frame(subscriptions)
    if df.empty:
        return pd.DataFrame(columns=columns)
    ref = reference_date or date.today()
    by_id = {p.id: p for p in products}
    df["customer"] = df["customer_id"].map({c.id: c.name for c in customers})
    df["product"] = df["product_id"].map({p.id: p.name for p in products})
    df["price"] = df["product_id"].map({pid: p.price for pid, p in by_id.items()})
    df["billing_cycle"] = df["product_id"].map({pid: p.billing_cycle for pid, p in by_id.items()})
    df["days_left"] = df["end_date"].map(lambda d: (d - ref).days)
    return df[columns]


def reminders_frame(reminders, labels: dict[int, str]) -> pd.DataFrame:
    columns = ["id", "subscription", "reminder_date", "type", "status", "sent_at"]
    df = records_to_frame(reminders)
    if df.empty:
        return pd.DataFrame(columns=columns)
    df["subscription"] = df["subscription_id"].map(labels)
    return df[columns]


def recurring_revenue_by_cycle(subscriptions, products) -> pd.DataFrame:
    """Active subscription count and billed amount per billing cycle."""
    subs = records_to_frame([s for s in subscriptions if s.status == "active"])
    if subs.empty:
        return pd.DataFrame(columns=["billing_cycle", "subscriptions", "revenue"])
    prods = records_to_frame(products)[["id", "price", "billing_cycle"]]
    merged = subs.merge(prods, left_on="product_id", right_on="id", suffixes=("", "_product"))
    summary = (
        merged.groupby("billing_cycle")
        .agg(subscriptions=("id", "count"), revenue=("price", "sum"))
        .reset_index()
    )
    return summary.sort_values("billing_cycle").reset_index(drop=True)
