from datetime import date, datetime

import pytest

from errors import InvalidTransition, NotFound, ValidationError
from models import ReminderDraft


# ---------- customers / categories / products ----------

def test_customer_crud(repos, customer):
    customers = repos["customers"]
    assert customers.get(customer.id).email == "ada@example.com"
    assert customer.created_at is not None

    updated = customers.update(customer.id, {"phone": " 555-0199 ", "whatsapp": ""})
    assert updated.phone == "555-0199"
    assert updated.whatsapp is None
    assert updated.name == "Ada Lovelace"

    customers.delete(customer.id)
    with pytest.raises(NotFound):
        customers.get(customer.id)


def test_customer_validation(repos, customer):
    customers = repos["customers"]
    with pytest.raises(ValidationError) as exc:
        customers.create({"name": "", "email": "not-an-email"})
    assert exc.value.errors == ["Name is required.", "Email is invalid."]

    with pytest.raises(ValidationError):
        customers.create({"name": "Other Ada", "email": "ada@example.com"})

    with pytest.raises(ValidationError):
        customers.create({"name": "Bob", "email": "bob@example.com", "nickname": "b"})


def test_missing_ids_raise_not_found(repos):
    with pytest.raises(NotFound):
        repos["customers"].update(999, {"name": "Nobody"})
    with pytest.raises(NotFound):
        repos["products"].delete(999)
    with pytest.raises(NotFound):
        repos["subscriptions"].get(999)


def test_category_names_are_unique(repos):
    repos["categories"].create({"name": "Software"})
    with pytest.raises(ValidationError):
        repos["categories"].create({"name": "Software"})


def test_product_validation(repos):
    products = repos["products"]
    with pytest.raises(ValidationError):
        products.create({"name": "Free", "price": 0, "billing_cycle": "monthly"})
    with pytest.raises(ValidationError):
        products.create({"name": "Odd", "price": 5, "billing_cycle": "weekly"})
    with pytest.raises(ValidationError) as exc:
        products.create({"name": "Orphan", "price": 5, "billing_cycle": "monthly", "category_id": 42})
    assert "Category 42 does not exist." in exc.value.errors


def test_product_price_from_text(repos):
    product = repos["products"].create({"name": "Text price", "price": "12.50", "billing_cycle": "yearly"})
    assert product.price == 12.5


def test_deleting_category_detaches_products(repos):
    category = repos["categories"].create({"name": "Media"})
    product = repos["products"].create(
        {"name": "News", "price": 9.0, "billing_cycle": "monthly", "category_id": category.id}
    )
    assert repos["products"].list_by_category(category.id) == [product]

    repos["categories"].delete(category.id)

    assert repos["products"].get(product.id).category_id is None


# ---------- subscriptions ----------

def test_subscription_end_date_is_derived(subscription):
    assert subscription.start_date == date(2025, 1, 15)
    assert subscription.end_date == date(2025, 2, 15)
    assert subscription.status == "active"
    assert subscription.auto_renew is True


@pytest.mark.parametrize(
    "cycle, start, expected",
    [
        ("quarterly", "2025-01-31", date(2025, 4, 30)),
        ("yearly", "2024-02-29", date(2025, 2, 28)),
    ],
)
def test_subscription_end_date_per_cycle(repos, customer, cycle, start, expected):
    product = repos["products"].create({"name": cycle, "price": 30.0, "billing_cycle": cycle})
    sub = repos["subscriptions"].create({"customer_id": customer.id, "product_id": product.id, "start_date": start})
    assert sub.end_date == expected


def test_subscription_create_rejects_explicit_end_date(repos, customer, monthly_product):
    with pytest.raises(ValidationError):
        repos["subscriptions"].create(
            {
                "customer_id": customer.id,
                "product_id": monthly_product.id,
                "start_date": date(2025, 1, 15),
                "end_date": date(2025, 6, 1),
            }
        )


def test_subscription_requires_existing_references(repos, monthly_product):
    with pytest.raises(ValidationError) as exc:
        repos["subscriptions"].create({"customer_id": 99, "product_id": monthly_product.id, "start_date": "2025-01-01"})
    assert "Customer 99 does not exist." in exc.value.errors

    with pytest.raises(ValidationError):
        repos["subscriptions"].create({"product_id": monthly_product.id, "start_date": "2025-01-01"})


def test_subscription_manual_end_date_override(repos, subscription):
    subs = repos["subscriptions"]
    updated = subs.update(subscription.id, {"end_date": "2025-03-01"})
    assert updated.end_date == date(2025, 3, 1)

    # changing the product does not recompute the end date
    yearly = repos["products"].create({"name": "Yearly", "price": 100.0, "billing_cycle": "yearly"})
    updated = subs.update(subscription.id, {"product_id": yearly.id})
    assert updated.end_date == date(2025, 3, 1)

    with pytest.raises(ValidationError):
        subs.update(subscription.id, {"end_date": date(2025, 1, 15)})


def test_subscription_status_must_be_known(repos, subscription):
    with pytest.raises(ValidationError):
        repos["subscriptions"].update(subscription.id, {"status": "paused"})


def test_customer_with_subscription_cannot_be_deleted(repos, customer, subscription):
    with pytest.raises(ValidationError):
        repos["customers"].delete(customer.id)


def test_list_expiring_within(repos, customer, monthly_product):
    subs = repos["subscriptions"]
    created = {}
    for start in ["2025-01-07", "2025-01-08", "2025-01-15", "2025-01-16"]:
        created[start] = subs.create({"customer_id": customer.id, "product_id": monthly_product.id, "start_date": start})
    cancelled = subs.create(
        {"customer_id": customer.id, "product_id": monthly_product.id, "start_date": "2025-01-10", "status": "cancelled"}
    )

    expiring = subs.list_expiring_within(7, date(2025, 2, 8))

    assert [s.id for s in expiring] == [created["2025-01-08"].id, created["2025-01-15"].id]
    assert cancelled.id not in [s.id for s in expiring]

    with pytest.raises(ValidationError):
        subs.list_expiring_within(-1, date(2025, 2, 8))


def test_expire_ended_before(repos, subscription):
    subs = repos["subscriptions"]
    assert subs.expire_ended_before(date(2025, 2, 15)) == 0
    assert subs.expire_ended_before(date(2025, 2, 16)) == 1
    assert subs.get(subscription.id).status == "expired"
    assert subs.list_active() == []


# ---------- reminders ----------

def test_insert_if_absent_is_idempotent(repos, subscription):
    reminders = repos["reminders"]
    draft = ReminderDraft(subscription_id=subscription.id, type="email", reminder_date=date(2025, 2, 8))

    stored = reminders.insert_if_absent(draft)
    assert stored.status == "pending"
    assert stored.key == draft.key
    assert stored.sent_at is None

    assert reminders.insert_if_absent(draft) is None
    assert len(reminders.list()) == 1


def test_mark_sent_and_failed(repos, subscription):
    reminders = repos["reminders"]
    email = reminders.insert_if_absent(ReminderDraft(subscription.id, "email", date(2025, 2, 8)))
    whatsapp = reminders.insert_if_absent(ReminderDraft(subscription.id, "whatsapp", date(2025, 2, 8)))

    now = datetime(2025, 2, 8, 10, 0, 0)
    sent = reminders.mark_sent(email.id, now)
    assert sent.status == "sent"
    assert sent.sent_at == now

    failed = reminders.mark_failed(whatsapp.id)
    assert failed.status == "failed"
    assert failed.sent_at is None

    with pytest.raises(InvalidTransition):
        reminders.mark_sent(email.id)
    with pytest.raises(InvalidTransition):
        reminders.mark_sent(whatsapp.id)
    with pytest.raises(NotFound):
        reminders.mark_failed(12345)


def test_list_pending_by_reference_date(repos, subscription):
    reminders = repos["reminders"]
    early = reminders.insert_if_absent(ReminderDraft(subscription.id, "email", date(2025, 2, 1)))
    due = reminders.insert_if_absent(ReminderDraft(subscription.id, "email", date(2025, 2, 8)))
    reminders.insert_if_absent(ReminderDraft(subscription.id, "email", date(2025, 2, 9)))
    done = reminders.insert_if_absent(ReminderDraft(subscription.id, "whatsapp", date(2025, 2, 2)))
    reminders.mark_sent(done.id)

    assert [r.id for r in reminders.list_pending(date(2025, 2, 8))] == [early.id, due.id]


def test_manual_reminder_lifecycle(repos, subscription):
    reminders = repos["reminders"]
    reminder = reminders.create({"subscription_id": subscription.id, "reminder_date": "2025-02-10", "type": "whatsapp"})
    assert reminder.status == "pending"

    moved = reminders.update(reminder.id, {"reminder_date": date(2025, 2, 11)})
    assert moved.reminder_date == date(2025, 2, 11)

    with pytest.raises(ValidationError):
        reminders.create({"subscription_id": subscription.id, "reminder_date": "2025-02-11", "type": "whatsapp"})
    with pytest.raises(ValidationError):
        reminders.create({"subscription_id": subscription.id, "reminder_date": "2025-02-12", "status": "sent"})

    reminders.mark_sent(reminder.id)
    with pytest.raises(ValidationError):
        reminders.update(reminder.id, {"type": "email"})

    reminders.delete(reminder.id)
    assert reminders.list() == []


def test_reminder_requires_existing_subscription(repos):
    with pytest.raises(ValidationError):
        repos["reminders"].create({"subscription_id": 5, "reminder_date": "2025-02-10", "type": "email"})


def test_deleting_subscription_removes_its_reminders(repos, subscription):
    repos["reminders"].insert_if_absent(ReminderDraft(subscription.id, "email", date(2025, 2, 8)))
    repos["subscriptions"].delete(subscription.id)
    assert repos["reminders"].list() == []


# ---------- date fields, prices, emails ----------

def test_datetime_for_date_fields_keeps_only_the_date(repos, customer, monthly_product):
    subs = repos["subscriptions"]
    sub = subs.create(
        {"customer_id": customer.id, "product_id": monthly_product.id, "start_date": datetime(2025, 1, 15, 10, 30)}
    )
    assert sub.start_date == date(2025, 1, 15)
    assert sub.end_date == date(2025, 2, 15)

    reminder = repos["reminders"].create(
        {"subscription_id": sub.id, "reminder_date": datetime(2025, 2, 8, 23, 59), "type": "email"}
    )
    assert reminder.reminder_date == date(2025, 2, 8)

    updated = subs.update(sub.id, {"end_date": datetime(2025, 3, 1, 8, 0)})
    assert updated.end_date == date(2025, 3, 1)

    assert [s.start_date for s in subs.list()] == [date(2025, 1, 15)]
    assert [r.reminder_date for r in repos["reminders"].list()] == [date(2025, 2, 8)]


@pytest.mark.parametrize("price", ["inf", "-inf", "nan", float("inf")])
def test_product_price_must_be_finite(repos, price):
    with pytest.raises(ValidationError) as exc:
        repos["products"].create({"name": "Unbounded", "price": price, "billing_cycle": "monthly"})
    assert exc.value.errors == ["Price must be a finite number."]
    assert repos["products"].list() == []


def test_customer_email_is_unique_ignoring_case(repos, customer):
    with pytest.raises(ValidationError):
        repos["customers"].create({"name": "Ada Again", "email": "ADA@Example.com"})
    assert len(repos["customers"].list()) == 1
