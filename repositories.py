"""
repositories.py
Table access per entity: typed records in, typed records out.

Every method opens its own connection through db.get_conn, so a repository
instance holds no state and can be shared.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date, datetime, timedelta

import db
import reminders as reminder_rules
from billing import advance
from errors import InvalidTransition, NotFound, ValidationError
from models import Category, Customer, Product, Reminder, ReminderDraft, Subscription
import utils

logger = logging.getLogger(__name__)


def _to_db(value):
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value


class _Repository:
    table: str
    entity: str
    model: type
    fields: tuple[str, ...] = ()
    date_fields: tuple[str, ...] = ()
    defaults: dict = {}
    order_by = "id DESC"
    has_updated_at = False

    def validate(self, record: dict) -> list[str]:
        raise NotImplementedError

    def _clean(self, fields: dict) -> dict:
        unknown = sorted(set(fields) - set(self.fields))
        if unknown:
            raise ValidationError(f"Unknown field(s) for {self.entity.lower()}: {', '.join(unknown)}.")
        clean = {}
        for key, value in fields.items():
            if isinstance(value, str):
                value = value.strip() or None
            if key in self.date_fields and value is not None:
                try:
                    value = utils.to_date(value)
                except ValueError:
                    pass  # reported by validate()
            clean[key] = value
        return clean

    def _check(self, record: dict) -> None:
        errors = self.validate(record)
        if errors:
            raise ValidationError(errors)

    def _insert(self, record: dict):
        now = db.now_iso()
        record = {**record, "created_at": now}
        if self.has_updated_at:
            record["updated_at"] = now
        cols = list(record)
        new_id = db.execute(
            f"INSERT INTO {self.table}({', '.join(cols)}) VALUES({', '.join('?' * len(cols))})",
            tuple(_to_db(record[c]) for c in cols),
        )
        logger.info("Created %s %s", self.entity.lower(), new_id)
        return self.get(new_id)

    def list(self) -> list:
        rows = db.fetch_all(f"SELECT * FROM {self.table} ORDER BY {self.order_by}")
        return [self.model.from_row(r) for r in rows]

    def get(self, entity_id):
        row = db.fetch_one(f"SELECT * FROM {self.table} WHERE id = ?", (entity_id,))
        if not row:
            raise NotFound(self.entity, entity_id)
        return self.model.from_row(row)

    def exists(self, entity_id) -> bool:
        return db.fetch_one(f"SELECT 1 FROM {self.table} WHERE id = ?", (entity_id,)) is not None

    def create(self, fields: dict):
        record = {**self.defaults, **self._clean(fields)}
        self._check(record)
        return self._insert(record)

    def update(self, entity_id, fields: dict):
        current = self.get(entity_id)
        changes = self._clean(fields)
        if not changes:
            return current
        self._check({**asdict(current), **changes})
        if self.has_updated_at:
            changes["updated_at"] = db.now_iso()
        assignments = ", ".join(f"{c}=?" for c in changes)
        db.execute(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?",
            (*[_to_db(v) for v in changes.values()], entity_id),
        )
        logger.info("Updated %s %s (%s)", self.entity.lower(), entity_id, ", ".join(fields))
        return self.get(entity_id)

    def delete(self, entity_id) -> None:
        self.get(entity_id)
        db.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
        logger.info("Deleted %s %s", self.entity.lower(), entity_id)


class CustomerRepository(_Repository):
    table = "customers"
    entity = "Customer"
    model = Customer
    fields = ("name", "email", "phone", "whatsapp", "address")
    has_updated_at = True

    def validate(self, record: dict) -> list[str]:
        return utils.validate_customer_inputs(record.get("name"), record.get("email"))


class CategoryRepository(_Repository):
    table = "categories"
    entity = "Category"
    model = Category
    fields = ("name", "description")
    order_by = "name ASC"

    def validate(self, record: dict) -> list[str]:
        return utils.validate_category_inputs(record.get("name"))


class ProductRepository(_Repository):
    table = "products"
    entity = "Product"
    model = Product
    fields = ("name", "description", "price", "billing_cycle", "category_id")
    defaults = {"billing_cycle": "monthly"}

    def __init__(self, categories: CategoryRepository | None = None):
        self.categories = categories or CategoryRepository()

    def _clean(self, fields: dict) -> dict:
        clean = super()._clean(fields)
        if clean.get("price") is not None:
            try:
                clean["price"] = float(clean["price"])
            except (TypeError, ValueError):
                pass  # reported by validate()
        return clean

    def validate(self, record: dict) -> list[str]:
        errors = utils.validate_product_inputs(record.get("name"), record.get("price"), record.get("billing_cycle"))
        category_id = record.get("category_id")
        if category_id is not None and not self.categories.exists(category_id):
            errors.append(f"Category {category_id} does not exist.")
        return errors

    def list_by_category(self, category_id) -> list[Product]:
        rows = db.fetch_all(
            f"SELECT * FROM {self.table} WHERE category_id = ? ORDER BY name ASC",
            (category_id,),
        )
        return [Product.from_row(r) for r in rows]


class SubscriptionRepository(_Repository):
    table = "subscriptions"
    entity = "Subscription"
    model = Subscription
    fields = ("customer_id", "product_id", "start_date", "end_date", "status", "auto_renew")
    date_fields = ("start_date", "end_date")
    defaults = {"status": "active", "auto_renew": True}
    has_updated_at = True

    def __init__(self, customers: CustomerRepository | None = None, products: ProductRepository | None = None):
        self.customers = customers or CustomerRepository()
        self.products = products or ProductRepository()

    def validate(self, record: dict) -> list[str]:
        errors = utils.validate_subscription_inputs(
            record.get("customer_id"),
            record.get("product_id"),
            record.get("start_date"),
            record.get("end_date"),
            record.get("status"),
        )
        if record.get("customer_id") and not self.customers.exists(record["customer_id"]):
            errors.append(f"Customer {record['customer_id']} does not exist.")
        if record.get("product_id") and not self.products.exists(record["product_id"]):
            errors.append(f"Product {record['product_id']} does not exist.")
        return errors

    def create(self, fields: dict) -> Subscription:
        """New subscription; end_date is one billing cycle of the product after start_date."""
        if fields.get("end_date") is not None:
            raise ValidationError("End date is derived from the product's billing cycle; edit the subscription to override it.")
        record = {**self.defaults, **self._clean({k: v for k, v in fields.items() if k != "end_date"})}
        self._check(record)
        product = self.products.get(record["product_id"])
        record["end_date"] = advance(record["start_date"], product.billing_cycle)
        return self._insert(record)

    def list_active(self) -> list[Subscription]:
        rows = db.fetch_all(
            f"SELECT * FROM {self.table} WHERE status = 'active' ORDER BY end_date ASC, id ASC"
        )
        return [Subscription.from_row(r) for r in rows]

    def list_expiring_within(self, days: int, reference_date: date | None = None) -> list[Subscription]:
        """Active subscriptions ending between reference_date and reference_date + days (inclusive)."""
        if days < 0:
            raise ValidationError("Days must not be negative.")
        ref = reference_date or date.today()
        rows = db.fetch_all(
            f"""
            SELECT * FROM {self.table}
            WHERE status = 'active' AND end_date BETWEEN ? AND ?
            ORDER BY end_date ASC, id ASC
            """,
            (ref.isoformat(), (ref + timedelta(days=days)).isoformat()),
        )
        return [Subscription.from_row(r) for r in rows]

    def recent(self, limit: int = 10) -> list[Subscription]:
        rows = db.fetch_all(
            f"SELECT * FROM {self.table} ORDER BY created_at DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [Subscription.from_row(r) for r in rows]

    def expire_ended_before(self, reference_date: date) -> int:
        count = db.execute_count(
            f"""
            UPDATE {self.table} SET status = 'expired', updated_at = ?
            WHERE status = 'active' AND end_date < ?
            """,
            (db.now_iso(), reference_date.isoformat()),
        )
        if count:
            logger.info("Expired %d subscription(s) ended before %s", count, reference_date)
        return count


class ReminderRepository(_Repository):
    table = "reminders"
    entity = "Reminder"
    model = Reminder
    fields = ("subscription_id", "reminder_date", "type")
    date_fields = ("reminder_date",)
    defaults = {"type": "email"}
    order_by = "reminder_date DESC, id DESC"

    def __init__(self, subscriptions: SubscriptionRepository | None = None):
        self.subscriptions = subscriptions or SubscriptionRepository()

    def validate(self, record: dict) -> list[str]:
        errors = utils.validate_reminder_inputs(
            record.get("subscription_id"), record.get("reminder_date"), record.get("type")
        )
        if record.get("subscription_id") and not self.subscriptions.exists(record["subscription_id"]):
            errors.append(f"Subscription {record['subscription_id']} does not exist.")
        return errors

    def create(self, fields: dict) -> Reminder:
        """Manual reminder; always starts pending."""
        record = {**self.defaults, **self._clean(fields)}
        self._check(record)
        return self._insert({**record, "status": "pending"})

    def update(self, reminder_id, fields: dict) -> Reminder:
        current = self.get(reminder_id)
        if current.status != "pending":
            raise ValidationError(f"Reminder {reminder_id} is {current.status} and can no longer be edited.")
        return super().update(reminder_id, fields)

    def list_pending(self, reference_date: date | None = None) -> list[Reminder]:
        ref = reference_date or date.today()
        rows = db.fetch_all(
            f"""
            SELECT * FROM {self.table}
            WHERE status = 'pending' AND reminder_date <= ?
            ORDER BY reminder_date ASC, id ASC
            """,
            (ref.isoformat(),),
        )
        return [Reminder.from_row(r) for r in rows]

    def find(self, subscription_id, reminder_type: str, reminder_date: date) -> Reminder | None:
        row = db.fetch_one(
            f"SELECT * FROM {self.table} WHERE subscription_id = ? AND type = ? AND reminder_date = ?",
            (subscription_id, reminder_type, reminder_date.isoformat()),
        )
        return Reminder.from_row(row) if row else None

    def insert_if_absent(self, draft: ReminderDraft) -> Reminder | None:
        """Persist a draft; None when (subscription_id, type, reminder_date) already exists."""
        inserted = db.execute_count(
            f"""
            INSERT INTO {self.table}(subscription_id, reminder_date, type, status, created_at)
            VALUES(?,?,?,'pending',?)
            ON CONFLICT(subscription_id, type, reminder_date) DO NOTHING
            """,
            (draft.subscription_id, draft.reminder_date.isoformat(), draft.type, db.now_iso()),
        )
        if not inserted:
            logger.debug("Reminder already exists: %s", draft.key)
            return None
        return self.find(draft.subscription_id, draft.type, draft.reminder_date)

    def _transition(self, current: Reminder, target: Reminder) -> Reminder:
        changed = db.execute_count(
            f"UPDATE {self.table} SET status = ?, sent_at = ? WHERE id = ? AND status = 'pending'",
            (target.status, _to_db(target.sent_at), current.id),
        )
        if not changed:
            # another caller transitioned it first
            raise InvalidTransition(current.id, self.get(current.id).status, target.status)
        logger.info("Reminder %s marked %s", current.id, target.status)
        return self.get(current.id)

    def mark_sent(self, reminder_id, now: datetime | None = None) -> Reminder:
        current = self.get(reminder_id)
        return self._transition(current, reminder_rules.mark_sent(current, now))

    def mark_failed(self, reminder_id) -> Reminder:
        current = self.get(reminder_id)
        return self._transition(current, reminder_rules.mark_failed(current))
