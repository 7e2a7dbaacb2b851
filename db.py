"""
db.py
SQLite helpers + initialization (creates DB/tables, inserts default admin, etc.)
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime

from errors import DependencyFailure, ValidationError

logger = logging.getLogger(__name__)

DB_FILE = Path(os.environ.get("SUBSCRIPTION_ADMIN_DB") or Path(__file__).with_name("subscriptions.db"))


def now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _integrity_message(exc: sqlite3.IntegrityError) -> str:
    msg = str(exc)
    if msg.startswith("UNIQUE constraint failed:"):
        fields = msg.split(":", 1)[1].strip()
        return f"A record with the same {fields} already exists."
    if "FOREIGN KEY constraint failed" in msg:
        return "The record references a missing record, or is still referenced by other records."
    return f"Constraint violated: {msg}"


@contextmanager
def get_conn():
    try:
        conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    except sqlite3.Error as e:
        logger.error("Cannot open database %s: %s", DB_FILE, e)
        raise DependencyFailure(f"Cannot open database: {e}") from e
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    except sqlite3.IntegrityError as e:
        conn.rollback()
        raise ValidationError(_integrity_message(e)) from e
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Database error: %s", e)
        raise DependencyFailure(f"Database error: {e}") from e
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def execute_count(sql: str, params: tuple = ()) -> int:
    """Like execute, but returns the number of affected rows."""
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.rowcount


def executemany(sql: str, seq_of_params: list[tuple]) -> None:
    with get_conn() as conn:
        conn.executemany(sql, seq_of_params)


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS admin_users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            username TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS customers (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            email TEXT NOT NULL UNIQUE COLLATE NOCASE,
            phone TEXT,
            whatsapp TEXT,
            address TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS categories (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL UNIQUE,
            description TEXT,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS products (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            name TEXT NOT NULL,
            description TEXT,
            price REAL NOT NULL CHECK(price > 0),
            billing_cycle TEXT NOT NULL CHECK(billing_cycle IN ('monthly','quarterly','yearly')),
            category_id INTEGER,
            created_at TEXT NOT NULL,
            FOREIGN KEY(category_id) REFERENCES categories(id) ON DELETE SET NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS subscriptions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            customer_id INTEGER NOT NULL,
            product_id INTEGER NOT NULL,
            start_date TEXT NOT NULL,
            end_date TEXT NOT NULL,
            status TEXT NOT NULL CHECK(status IN ('active','expired','cancelled')),
            auto_renew INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL,
            CHECK(end_date > start_date),
            FOREIGN KEY(customer_id) REFERENCES customers(id),
            FOREIGN KEY(product_id) REFERENCES products(id)
        )
        """
    )

    # (subscription_id, type, reminder_date) is the generator's dedup key
    execute(
        """
        CREATE TABLE IF NOT EXISTS reminders (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            subscription_id INTEGER NOT NULL,
            reminder_date TEXT NOT NULL,
            type TEXT NOT NULL CHECK(type IN ('email','whatsapp')),
            status TEXT NOT NULL CHECK(status IN ('pending','sent','failed')),
            sent_at TEXT,
            created_at TEXT NOT NULL,
            UNIQUE(subscription_id, type, reminder_date),
            FOREIGN KEY(subscription_id) REFERENCES subscriptions(id) ON DELETE CASCADE
        )
        """
    )

    # Key/value settings (forced password change, reminder settings)
    execute(
        """
        CREATE TABLE IF NOT EXISTS app_settings (
            key TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
        """
    )


def get_setting(key: str, default: str | None = None) -> str | None:
    row = fetch_one("SELECT value FROM app_settings WHERE key = ?", (key,))
    if row:
        return str(row["value"])
    return default


def set_setting(key: str, value: str) -> None:
    execute(
        """
        INSERT INTO app_settings(key, value) VALUES(?, ?)
        ON CONFLICT(key) DO UPDATE SET value=excluded.value
        """,
        (key, value),
    )


def init_db(default_admin_hash: str) -> None:
    """
    Initialize the database.
    - Create tables
    - Insert default admin (admin/admin123) if no admin exists
    - Force password change on first login
    """
    _create_tables()

    admin = fetch_one("SELECT id FROM admin_users LIMIT 1")
    if not admin:
        execute(
            "INSERT INTO admin_users(username, password_hash, created_at) VALUES(?,?,?)",
            ("admin", default_admin_hash, now_iso()),
        )
        set_setting("force_password_change", "1")
        logger.info("Created default admin user in %s", DB_FILE)
    else:
        # ensure setting exists
        if get_setting("force_password_change") is None:
            set_setting("force_password_change", "0")


def is_force_password_change() -> bool:
    return get_setting("force_password_change") == "1"


def clear_force_password_change() -> None:
    set_setting("force_password_change", "0")
