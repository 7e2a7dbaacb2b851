"""
services.py
Workflows on top of the repositories: reminder generation job, reminder
settings, renewals, dashboard numbers, sample data.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta

import db
from billing import add_months, advance
from errors import ValidationError
from models import Reminder, ReminderSettings, Subscription
from reminders import compute_due_reminders
from repositories import (
    CategoryRepository,
    CustomerRepository,
    ProductRepository,
    ReminderRepository,
    SubscriptionRepository,
)

logger = logging.getLogger(__name__)

customers = CustomerRepository()
categories = CategoryRepository()
products = ProductRepository(categories)
subscriptions = SubscriptionRepository(customers, products)
reminders = ReminderRepository(subscriptions)


# ---------- Reminder settings ----------

def load_reminder_settings() -> ReminderSettings:
    defaults = ReminderSettings()
    return ReminderSettings(
        lead_days=int(db.get_setting("reminder_lead_days", str(defaults.lead_days))),
        email_enabled=db.get_setting("reminder_email_enabled", "1" if defaults.email_enabled else "0") == "1",
        whatsapp_enabled=db.get_setting("reminder_whatsapp_enabled", "1" if defaults.whatsapp_enabled else "0") == "1",
    )


def save_reminder_settings(settings: ReminderSettings) -> None:
    if settings.lead_days < 0:
        raise ValidationError("Reminder lead time cannot be negative.")
    db.set_setting("reminder_lead_days", str(int(settings.lead_days)))
    db.set_setting("reminder_email_enabled", "1" if settings.email_enabled else "0")
    db.set_setting("reminder_whatsapp_enabled", "1" if settings.whatsapp_enabled else "0")


# ---------- Reminders ----------

def generate_reminders(reference_date: date | None = None, settings: ReminderSettings | None = None) -> list[Reminder]:
    """
    Create the reminders that are due and not stored yet.
    Returns only the newly stored reminders (empty on a repeated run).
    """
    ref = reference_date or date.today()
    settings = settings or load_reminder_settings()

    # Both lists are read before computing so the dedup check sees one snapshot
    active = subscriptions.list_active()
    existing = reminders.list()
    drafts = compute_due_reminders(active, existing, ref, settings.lead_days, settings.enabled_types)

    created = []
    for draft in drafts:
        reminder = reminders.insert_if_absent(draft)
        if reminder is not None:
            created.append(reminder)

    logger.info(
        "Reminder generation for %s (lead %d days): %d draft(s), %d stored",
        ref, settings.lead_days, len(drafts), len(created),
    )
    return created


# ---------- Subscriptions ----------

def expire_lapsed_subscriptions(reference_date: date | None = None) -> int:
    # Keep statuses consistent with end_date
    return subscriptions.expire_ended_before(reference_date or date.today())


def renew_subscription(subscription_id, reference_date: date | None = None) -> Subscription:
    """
    Start a new billing period: at the current end date if it has not passed,
    otherwise at reference_date.
    """
    ref = reference_date or date.today()
    current = subscriptions.get(subscription_id)
    if current.status == "cancelled":
        raise ValidationError("Cancelled subscriptions cannot be renewed.")
    product = products.get(current.product_id)

    start = current.end_date if current.end_date >= ref else ref
    end = advance(start, product.billing_cycle)
    renewed = subscriptions.update(subscription_id, {"start_date": start, "end_date": end, "status": "active"})
    logger.info("Renewed subscription %s: %s -> %s", subscription_id, start, end)
    return renewed


def upcoming_renewals(days: int = 7, reference_date: date | None = None) -> list[Subscription]:
    return subscriptions.list_expiring_within(days, reference_date)


def recent_subscriptions(limit: int = 10) -> list[Subscription]:
    return subscriptions.recent(limit)


# ---------- Dashboard ----------

def dashboard_stats() -> dict[str, int]:
    def count(sql: str) -> int:
        return int(db.fetch_one(sql)["c"])

    return {
        "total_customers": count("SELECT COUNT(*) AS c FROM customers"),
        "active_subscriptions": count("SELECT COUNT(*) AS c FROM subscriptions WHERE status='active'"),
        "total_products": count("SELECT COUNT(*) AS c FROM products"),
        "pending_reminders": count("SELECT COUNT(*) AS c FROM reminders WHERE status='pending'"),
    }


# ---------- Sample data ----------

def insert_sample_data(today: date | None = None) -> None:
    """
    Insert a small catalogue, 3 customers and their subscriptions.
    Names and emails are fixed, so a second run fails on the unique category name.
    """
    today = today or date.today()

    software = categories.create({"name": "Software", "description": "SaaS and licences"})
    media = categories.create({"name": "Media", "description": "Streaming and news"})

    crm = products.create({"name": "CRM Pro", "price": 49.0, "billing_cycle": "monthly", "category_id": software.id})
    backup = products.create({"name": "Cloud Backup", "price": 120.0, "billing_cycle": "quarterly", "category_id": software.id})
    news = products.create({"name": "News Plus", "price": 99.0, "billing_cycle": "yearly", "category_id": media.id})

    ana = customers.create({"name": "Ana Souza", "email": "ana@example.com", "phone": "+55 11 90000-0001", "whatsapp": "+5511900000001"})
    ben = customers.create({"name": "Ben Carter", "email": "ben@example.com", "phone": "+1 555 0100"})
    chloe = customers.create({"name": "Chloe Martin", "email": "chloe@example.com", "address": "12 Rue de la Paix, Paris"})

    # Ana's CRM ends in a few days, so reminders are generated right away
    subscriptions.create({"customer_id": ana.id, "product_id": crm.id, "start_date": add_months(today + timedelta(days=4), -1)})
    subscriptions.create({"customer_id": ben.id, "product_id": backup.id, "start_date": today - timedelta(days=10)})
    subscriptions.create({"customer_id": chloe.id, "product_id": news.id, "start_date": today, "auto_renew": False})
    logger.info("Sample data inserted")
