from collections import defaultdict
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Callable, Dict, Iterable, Iterator, List, Set

import pandas as pd

from vyapaar.constants import ALL
from vyapaar.domain import Expense, ExpenseStatus


def iter_expenses(
    expenses: Iterable[Expense], pred: Callable[[Expense], bool]
) -> Iterator[Expense]:
    for e in expenses:
        if pred(e):
            yield e


def by_status(status: ExpenseStatus):
    def _filter(e: Expense) -> bool:
        return e.status == status

    return _filter


def by_business_unit(unit: str):
    def _filter(e: Expense) -> bool:
        return unit == ALL or e.business_unit == unit

    return _filter


def by_month(month: str):
    def _filter(e: Expense) -> bool:
        return month == ALL or e.date.startswith(month)

    return _filter


def total_amount(expenses: Iterable[Expense]) -> float:
    return sum(e.amount for e in expenses)


# --- review queue

def review_queue(expenses: tuple[Expense, ...]) -> tuple[Expense, ...]:
    return tuple(iter_expenses(expenses, by_status(ExpenseStatus.PENDING_REVIEW)))


@dataclass
class Selection:
    """Set of expense ids picked for a bulk action."""

    ids: Set[str] = field(default_factory=set)

    def __len__(self) -> int:
        return len(self.ids)

    def __contains__(self, expense_id: str) -> bool:
        return expense_id in self.ids

    def toggle(self, expense_id: str) -> None:
        if expense_id in self.ids:
            self.ids.discard(expense_id)
        else:
            self.ids.add(expense_id)

    def toggle_all(self, visible_ids: Iterable[str]) -> None:
        visible = set(visible_ids)
        if self.ids == visible:
            self.ids = set()
        else:
            self.ids = visible

    def all_selected(self, visible_ids: Iterable[str]) -> bool:
        visible = set(visible_ids)
        return bool(self.ids) and self.ids == visible

    def retain(self, visible_ids: Iterable[str]) -> None:
        self.ids &= set(visible_ids)

    def clear(self) -> None:
        self.ids = set()

    def as_list(self) -> List[str]:
        return sorted(self.ids)


@dataclass
class ReviewQueueState:
    select_mode: bool = False
    selection: Selection = field(default_factory=Selection)

    def toggle_select_mode(self) -> None:
        self.select_mode = not self.select_mode
        self.selection.clear()

    def finish_bulk_action(self) -> None:
        self.selection.clear()
        self.select_mode = False


# --- reports

@dataclass(frozen=True)
class ReportFilter:
    business_unit: str = ALL
    month: str = ALL      # "YYYY-MM" or ALL


def filter_report(expenses: tuple[Expense, ...], flt: ReportFilter) -> tuple[Expense, ...]:
    unit_ok = by_business_unit(flt.business_unit)
    month_ok = by_month(flt.month)
    return tuple(iter_expenses(expenses, lambda e: unit_ok(e) and month_ok(e)))


@lru_cache(maxsize=32)
def available_months(expenses: tuple[Expense, ...]) -> tuple[str, ...]:
    return tuple(sorted({e.month for e in expenses}, reverse=True))


@dataclass
class ReportState:
    filter: ReportFilter = field(default_factory=ReportFilter)
    selection: Selection = field(default_factory=Selection)

    def set_filter(self, business_unit: str = None, month: str = None) -> bool:
        """Update the filter; a changed filter drops the selection."""
        new = ReportFilter(
            business_unit=self.filter.business_unit if business_unit is None else business_unit,
            month=self.filter.month if month is None else month,
        )
        if new == self.filter:
            return False
        self.filter = new
        self.selection.clear()
        return True


# --- dashboard

@dataclass(frozen=True)
class DashboardStats:
    total_approved: float
    pending_amount: float
    pending_count: int
    approved_count: int
    average_ticket: float


@lru_cache(maxsize=32)
def dashboard_stats(expenses: tuple[Expense, ...]) -> DashboardStats:
    approved = [e.amount for e in expenses if e.status == ExpenseStatus.APPROVED]
    pending = [e.amount for e in expenses if e.status == ExpenseStatus.PENDING_REVIEW]
    total_approved = sum(approved)
    return DashboardStats(
        total_approved=total_approved,
        pending_amount=sum(pending),
        pending_count=len(pending),
        approved_count=len(approved),
        average_ticket=total_approved / len(approved) if approved else 0,
    )


def approved_by_business_unit(expenses: Iterable[Expense]) -> Dict[str, float]:
    totals: Dict[str, float] = defaultdict(float)
    for e in iter_expenses(expenses, by_status(ExpenseStatus.APPROVED)):
        totals[e.business_unit] += e.amount
    return dict(totals)


def recent_activity(expenses: tuple[Expense, ...], n: int = 4) -> tuple[Expense, ...]:
    return expenses[: max(0, n)]


FRAME_COLUMNS = [
    "id", "date", "merchant", "business_unit", "category", "amount",
    "status", "payment_method", "description", "submitted_by",
]


def expenses_to_frame(expenses: Iterable[Expense]) -> pd.DataFrame:
    rows = [
        {
            "id": e.id,
            "date": e.date,
            "merchant": e.merchant,
            "business_unit": e.business_unit,
            "category": e.category,
            "amount": float(e.amount),
            "status": e.status.value,
            "payment_method": e.payment_method.value,
            "description": e.description,
            "submitted_by": e.submitted_by,
        }
        for e in expenses
    ]
    return pd.DataFrame(rows, columns=FRAME_COLUMNS)
