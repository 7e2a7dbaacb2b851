"""
errors.py
Error kinds raised by repositories, the reminder state machine and services.
"""

from __future__ import annotations


class SubscriptionAdminError(Exception):
    """Base class; the console catches this and shows the message."""


class ValidationError(SubscriptionAdminError):
    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__(" ".join(self.errors))


class NotFound(SubscriptionAdminError):
    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} {entity_id} not found.")


class InvalidTransition(SubscriptionAdminError):
    def __init__(self, reminder_id, current: str, target: str):
        self.reminder_id = reminder_id
        self.current = current
        self.target = target
        super().__init__(f"Reminder {reminder_id} is {current}; cannot mark it {target}.")


class DependencyFailure(SubscriptionAdminError):
    """The store (or another collaborator) failed; the caller decides on retry."""
