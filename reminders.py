"""
reminders.py
Reminder generation and the reminder status machine.

Everything here is a pure transformation over already-loaded records:
callers fetch subscriptions and reminders, compute, then persist through
repositories.ReminderRepository.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator

from billing import is_due_within
from errors import InvalidTransition, ValidationError
from models import REMINDER_TYPES, Reminder, ReminderDraft, Subscription


def _draft_sort_key(draft: ReminderDraft):
    return (draft.reminder_date, draft.subscription_id, REMINDER_TYPES.index(draft.type))


def compute_due_reminders(
    active_subscriptions: Iterable[Subscription],
    existing_reminders: Iterable[Reminder],
    reference_date: date,
    lead_days: int,
    reminder_types_enabled: Iterable[str],
) -> list[ReminderDraft]:
    """
    Drafts for every (subscription, type) due within lead_days that has no
    reminder yet for the same (subscription_id, type, reminder_date).

    reminder_date is end_date - lead_days. Result is sorted by reminder_date,
    then subscription id, then type (email before whatsapp).
    """
    if lead_days < 0:
        raise ValidationError("Reminder lead time cannot be negative.")
    types = list(reminder_types_enabled)
    unknown = [t for t in types if t not in REMINDER_TYPES]
    if unknown:
        raise ValidationError(f"Unknown reminder type(s): {', '.join(unknown)}.")

    seen = {r.key for r in existing_reminders}
    drafts: list[ReminderDraft] = []
    offset = timedelta(days=lead_days)

    for sub in active_subscriptions:
        if not is_due_within(sub, reference_date, lead_days):
            continue
        for reminder_type in types:
            draft = ReminderDraft(
                subscription_id=sub.id,
                type=reminder_type,
                reminder_date=sub.end_date - offset,
            )
            if draft.key in seen:
                continue
            seen.add(draft.key)
            drafts.append(draft)

    drafts.sort(key=_draft_sort_key)
    return drafts


def mark_sent(reminder: Reminder, now: datetime | None = None) -> Reminder:
    if reminder.status != "pending":
        raise InvalidTransition(reminder.id, reminder.status, "sent")
    return replace(reminder, status="sent", sent_at=now or datetime.now())


def mark_failed(reminder: Reminder) -> Reminder:
    if reminder.status != "pending":
        raise InvalidTransition(reminder.id, reminder.status, "failed")
    return replace(reminder, status="failed")


class PendingReminders:
    """Pending reminders due on or before reference_date; iterate as often as needed."""

    def __init__(self, reminders: Iterable[Reminder], reference_date: date):
        self._reminders = tuple(reminders)
        self.reference_date = reference_date

    def __iter__(self) -> Iterator[Reminder]:
        due = (
            r for r in self._reminders
            if r.status == "pending" and r.reminder_date <= self.reference_date
        )
        # ids are None only for unsaved reminders
        return iter(sorted(due, key=lambda r: (r.reminder_date, r.id or 0)))


def list_pending(all_reminders: Iterable[Reminder], reference_date: date) -> PendingReminders:
    return PendingReminders(all_reminders, reference_date)
