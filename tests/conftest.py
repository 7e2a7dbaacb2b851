from datetime import date

import pytest

import db
from repositories import (
    CategoryRepository,
    CustomerRepository,
    ProductRepository,
    ReminderRepository,
    SubscriptionRepository,
)


@pytest.fixture
def store(tmp_path, monkeypatch):
    """Fresh SQLite file per test."""
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db("placeholder-hash")
    return tmp_path / "test.db"


@pytest.fixture
def repos(store):
    customers = CustomerRepository()
    categories = CategoryRepository()
    products = ProductRepository(categories)
    subscriptions = SubscriptionRepository(customers, products)
    reminders = ReminderRepository(subscriptions)
    return {
        "customers": customers,
        "categories": categories,
        "products": products,
        "subscriptions": subscriptions,
        "reminders": reminders,
    }


@pytest.fixture
def customer(repos):
    return repos["customers"].create({"name": "Ada Lovelace", "email": "ada@example.com", "phone": "555-0100"})


@pytest.fixture
def monthly_product(repos):
    return repos["products"].create({"name": "Basic", "price": 10.0, "billing_cycle": "monthly"})


@pytest.fixture
def subscription(repos, customer, monthly_product):
    return repos["subscriptions"].create(
        {"customer_id": customer.id, "product_id": monthly_product.id, "start_date": date(2025, 1, 15)}
    )
