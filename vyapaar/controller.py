"""Expense lifecycle controller.

Owns the live ``AppData`` and applies every intent (submit, edit, status
change, delete, taxonomy edits) as a pure transform followed by a full
document save and an event on the bus.
"""

import logging
import random
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional
from uuid import uuid4

from vyapaar.constants import WHATSAPP_PLACEHOLDER_URL
from vyapaar.domain import AppData, Expense, ExpenseStatus, PaymentMethod, User
from vyapaar.errors import ValidationError
from vyapaar.events import (
    DATA_RESET,
    EXPENSE_SUBMITTED,
    EXPENSE_UPDATED,
    EXPENSES_DELETED,
    STATUS_CHANGED,
    TAXONOMY_CHANGED,
    EventBus,
)
from vyapaar.functional import Maybe, Nothing, Some, find_expense, validate_draft
from vyapaar.storage import DocumentStore
from vyapaar.transforms import (
    add_tag,
    count_matching,
    prepend_expense,
    remove_expenses,
    remove_tag,
    replace_expense,
    set_status,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


class ExpenseController:

    def __init__(self, store: DocumentStore, bus: Optional[EventBus] = None, data: Optional[AppData] = None):
        self.store = store
        self.bus = bus or EventBus()
        self.data = data if data is not None else store.load()

    @property
    def expenses(self) -> tuple:
        return self.data.expenses

    @property
    def business_units(self) -> tuple:
        return self.data.business_units

    @property
    def categories(self) -> tuple:
        return self.data.categories

    def _commit(self, data: AppData, event: str, payload: dict) -> None:
        self.data = data
        self.store.save(data)
        self.bus.publish(event, payload)

    # --- expenses

    def submit(self, draft: Mapping[str, Any], user: Optional[User] = None, now: Optional[datetime] = None) -> Expense:
        """Validate a draft and add it to the top of the list as Pending Review."""
        result = validate_draft(draft)
        if result.is_left():
            logger.info("Rejected submission: %s", result.get_error())
            raise ValidationError(result.get_error())
        clean = result.get_or_else(None)

        expense = Expense(
            id=str(uuid4()),
            date=clean["date"],
            amount=clean["amount"],
            merchant=clean["merchant"],
            business_unit=clean["business_unit"],
            category=clean["category"],
            payment_method=clean["payment_method"],
            description=clean.get("description") or "",
            status=ExpenseStatus.PENDING_REVIEW,
            submitted_by=user.name if user else str(clean.get("submitted_by") or ""),
            submitted_by_id=user.id if user else str(clean.get("submitted_by_id") or ""),
            submitted_at=_iso(now or _utc_now()),
            reference_number=clean.get("reference_number") or None,
            receipt_url=clean.get("receipt_url") or None,
            receipt_base64=clean.get("receipt_base64") or None,
        )
        self._commit(
            replace(self.data, expenses=prepend_expense(self.data.expenses, expense)),
            EXPENSE_SUBMITTED,
            {"id": expense.id, "amount": expense.amount, "source": "form"},
        )
        logger.info("Expense %s submitted by %s for %.2f", expense.id, expense.submitted_by_id, expense.amount)
        return expense

    def change_status(self, expense_id: str, status: ExpenseStatus, review_note: Optional[str] = None) -> Maybe[Expense]:
        if find_expense(self.data.expenses, expense_id).is_none():
            logger.debug("Status change for unknown expense %s ignored", expense_id)
            return Nothing()
        expenses = set_status(self.data.expenses, [expense_id], status, review_note)
        self._commit(
            replace(self.data, expenses=expenses),
            STATUS_CHANGED,
            {"ids": [expense_id], "status": status.value},
        )
        return find_expense(expenses, expense_id)

    def bulk_change_status(self, ids: Iterable[str], status: ExpenseStatus) -> int:
        """Apply ``status`` to every known id; returns how many matched."""
        ids = list(ids)
        matched = count_matching(self.data.expenses, ids)
        if matched == 0:
            return 0
        known = {e.id for e in self.data.expenses}
        self._commit(
            replace(self.data, expenses=set_status(self.data.expenses, ids, status)),
            STATUS_CHANGED,
            {"ids": [i for i in ids if i in known], "status": status.value},
        )
        logger.info("Bulk status %s applied to %d expenses", status.value, matched)
        return matched

    def edit(self, updated: Expense) -> Maybe[Expense]:
        """Replace the stored record with the same id (full overwrite)."""
        if find_expense(self.data.expenses, updated.id).is_none():
            logger.debug("Edit for unknown expense %s ignored", updated.id)
            return Nothing()
        result = validate_draft({
            "amount": updated.amount,
            "date": updated.date,
            "merchant": updated.merchant,
            "business_unit": updated.business_unit,
            "category": updated.category,
            "payment_method": updated.payment_method,
        })
        if result.is_left():
            raise ValidationError(result.get_error())
        clean = result.get_or_else(None)
        updated = replace(
            updated,
            amount=clean["amount"],
            date=clean["date"],
            merchant=clean["merchant"],
            business_unit=clean["business_unit"],
            category=clean["category"],
            payment_method=clean["payment_method"],
            status=ExpenseStatus.parse(updated.status),
        )
        self._commit(
            replace(self.data, expenses=replace_expense(self.data.expenses, updated)),
            EXPENSE_UPDATED,
            {"id": updated.id},
        )
        return Some(updated)

    def delete(self, expense_id: str) -> bool:
        return self.bulk_delete([expense_id]) == 1

    def bulk_delete(self, ids: Iterable[str]) -> int:
        ids = list(ids)
        matched = count_matching(self.data.expenses, ids)
        if matched == 0:
            return 0
        known = {e.id for e in self.data.expenses}
        self._commit(
            replace(self.data, expenses=remove_expenses(self.data.expenses, ids)),
            EXPENSES_DELETED,
            {"ids": [i for i in ids if i in known]},
        )
        logger.info("Deleted %d expenses", matched)
        return matched

    def simulate_incoming_receipt(self, now: Optional[datetime] = None, rng: Optional[random.Random] = None) -> Expense:
        """Demo stand-in for a receipt forwarded over WhatsApp."""
        now = now or _utc_now()
        rng = rng or random.Random()
        expense = Expense(
            id=str(uuid4()),
            date=now.date().isoformat(),
            amount=float(rng.randrange(100, 5100)),
            merchant="Whatsapp Forwarded Store",
            business_unit=self.data.business_units[0] if self.data.business_units else "",
            category="Materials",
            payment_method=PaymentMethod.UPI,
            description="Auto-forwarded from +91 98*** ***10",
            status=ExpenseStatus.PENDING_REVIEW,
            submitted_by="WhatsApp Bot",
            submitted_by_id="bot",
            submitted_at=_iso(now),
            receipt_url=WHATSAPP_PLACEHOLDER_URL,
        )
        self._commit(
            replace(self.data, expenses=prepend_expense(self.data.expenses, expense)),
            EXPENSE_SUBMITTED,
            {"id": expense.id, "amount": expense.amount, "source": "whatsapp"},
        )
        return expense

    # --- taxonomy

    def add_business_unit(self, name: str) -> bool:
        return self._set_taxonomy("business_units", add_tag(self.data.business_units, name))

    def remove_business_unit(self, name: str) -> bool:
        return self._set_taxonomy("business_units", remove_tag(self.data.business_units, name))

    def add_category(self, name: str) -> bool:
        return self._set_taxonomy("categories", add_tag(self.data.categories, name))

    def remove_category(self, name: str) -> bool:
        return self._set_taxonomy("categories", remove_tag(self.data.categories, name))

    def _set_taxonomy(self, attr: str, values: tuple) -> bool:
        if values == getattr(self.data, attr):
            return False
        label = "Business Units" if attr == "business_units" else "Categories"
        self._commit(replace(self.data, **{attr: values}), TAXONOMY_CHANGED, {"list": label, "values": list(values)})
        return True

    def reset(self) -> AppData:
        """Drop the stored document and start again from the seed."""
        self.store.clear()
        self.data = self.store.load()
        self.bus.publish(DATA_RESET, {})
        return self.data
