"""
auth.py
Console login: bcrypt hashing, admin lookup, password changes.
"""

from __future__ import annotations

import logging

import bcrypt

import db
from errors import NotFound, ValidationError

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


def _to_bcrypt_secret(password: str) -> bytes:
    """
    bcrypt only uses the first 72 BYTES of the password.
    We truncate to 72 bytes to avoid ValueError and to make behavior explicit.
    """
    return password.encode("utf-8")[:72]


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(_to_bcrypt_secret(password), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    return bcrypt.checkpw(_to_bcrypt_secret(password), password_hash.encode("utf-8"))


def get_admin_by_username(username: str):
    return db.fetch_one("SELECT * FROM admin_users WHERE username = ?", (username,))


def login(username: str, password: str) -> bool:
    admin = get_admin_by_username(username)
    if not admin or not verify_password(password, admin["password_hash"]):
        logger.warning("Failed login for %r", username)
        return False
    logger.info("Admin %r logged in", username)
    return True


def validate_new_password(new_password: str, confirm: str) -> list[str]:
    errors: list[str] = []
    if len(new_password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
    if new_password != confirm:
        errors.append("Passwords do not match.")
    return errors


def change_password(username: str, new_password: str, confirm: str | None = None) -> None:
    errors = validate_new_password(new_password, new_password if confirm is None else confirm)
    if errors:
        raise ValidationError(errors)
    if not get_admin_by_username(username):
        raise NotFound("Admin", username)
    db.execute(
        "UPDATE admin_users SET password_hash = ? WHERE username = ?",
        (hash_password(new_password), username),
    )
    db.clear_force_password_change()
    logger.info("Password changed for %r", username)
