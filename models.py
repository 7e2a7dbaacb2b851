"""
models.py
Lightweight domain types (enumerations, dataclasses).
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date, datetime

# Billing cycle length in months (used for end_date auto-calculation)
CYCLE_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "yearly": 12,
}

SUBSCRIPTION_STATUSES = ("active", "expired", "cancelled")

# Order matters: drafts for the same day and subscription list email first
REMINDER_TYPES = ("email", "whatsapp")
REMINDER_STATUSES = ("pending", "sent", "failed")


def _date(value) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _datetime(value) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


@dataclass(frozen=True)
class Customer:
    id: int | None
    name: str
    email: str
    phone: str | None = None
    whatsapp: str | None = None
    address: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Customer":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            phone=row["phone"],
            whatsapp=row["whatsapp"],
            address=row["address"],
            created_at=_datetime(row["created_at"]),
            updated_at=_datetime(row["updated_at"]),
        )


@dataclass(frozen=True)
class Category:
    id: int | None
    name: str
    description: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Category":
        return cls(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_at=_datetime(row["created_at"]),
        )


@dataclass(frozen=True)
class Product:
    id: int | None
    name: str
    price: float
    billing_cycle: str  # monthly / quarterly / yearly
    category_id: int | None = None
    description: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Product":
        return cls(
            id=row["id"],
            name=row["name"],
            price=float(row["price"]),
            billing_cycle=row["billing_cycle"],
            category_id=row["category_id"],
            description=row["description"],
            created_at=_datetime(row["created_at"]),
        )


@dataclass(frozen=True)
class Subscription:
    id: int | None
    customer_id: int
    product_id: int
    start_date: date
    end_date: date
    status: str = "active"  # active / expired / cancelled
    auto_renew: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row) -> "Subscription":
        return cls(
            id=row["id"],
            customer_id=row["customer_id"],
            product_id=row["product_id"],
            start_date=_date(row["start_date"]),
            end_date=_date(row["end_date"]),
            status=row["status"],
            auto_renew=bool(row["auto_renew"]),
            created_at=_datetime(row["created_at"]),
            updated_at=_datetime(row["updated_at"]),
        )


@dataclass(frozen=True)
class ReminderDraft:
    subscription_id: int
    type: str
    reminder_date: date

    @property
    def key(self) -> tuple[int, str, date]:
        return (self.subscription_id, self.type, self.reminder_date)


@dataclass(frozen=True)
class Reminder:
    id: int | None
    subscription_id: int
    reminder_date: date
    type: str  # email / whatsapp
    status: str = "pending"  # pending / sent / failed
    sent_at: datetime | None = None
    created_at: datetime | None = None

    @property
    def key(self) -> tuple[int, str, date]:
        return (self.subscription_id, self.type, self.reminder_date)

    @classmethod
    def from_row(cls, row) -> "Reminder":
        return cls(
            id=row["id"],
            subscription_id=row["subscription_id"],
            reminder_date=_date(row["reminder_date"]),
            type=row["type"],
            status=row["status"],
            sent_at=_datetime(row["sent_at"]),
            created_at=_datetime(row["created_at"]),
        )


@dataclass(frozen=True)
class ReminderSettings:
    lead_days: int = 7
    email_enabled: bool = True
    whatsapp_enabled: bool = False

    @property
    def enabled_types(self) -> tuple[str, ...]:
        enabled = {"email": self.email_enabled, "whatsapp": self.whatsapp_enabled}
        return tuple(t for t in REMINDER_TYPES if enabled[t])
