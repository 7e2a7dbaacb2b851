import logging

import pytest

import db
from errors import DependencyFailure
from repositories import ReminderRepository


def test_unopenable_database_is_a_dependency_failure(tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "no-such-dir" / "store.db")

    with caplog.at_level(logging.ERROR, logger="db"):
        with pytest.raises(DependencyFailure):
            db.fetch_all("SELECT 1")

    assert any(r.levelno == logging.ERROR and "Cannot open database" in r.getMessage() for r in caplog.records)


def test_store_errors_are_dependency_failures(store, caplog):
    db.execute("DROP TABLE reminders")

    with caplog.at_level(logging.ERROR, logger="db"):
        with pytest.raises(DependencyFailure) as exc:
            ReminderRepository().list()

    assert "no such table" in str(exc.value)
    assert any(r.levelno == logging.ERROR and "Database error" in r.getMessage() for r in caplog.records)
