from typing import Iterable, Tuple

from vyapaar.domain import Expense, ExpenseStatus


def prepend_expense(
    expenses: Tuple[Expense, ...], e: Expense
) -> Tuple[Expense, ...]:
    # newest first is the storage and display order
    return (e,) + expenses


def set_status(
    expenses: Tuple[Expense, ...], ids: Iterable[str], status: ExpenseStatus, review_note=None
) -> Tuple[Expense, ...]:
    id_set = frozenset(ids)
    return tuple(
        e.with_status(status, review_note) if e.id in id_set else e
        for e in expenses
    )


def replace_expense(
    expenses: Tuple[Expense, ...], updated: Expense
) -> Tuple[Expense, ...]:
    return tuple(updated if e.id == updated.id else e for e in expenses)


def remove_expenses(
    expenses: Tuple[Expense, ...], ids: Iterable[str]
) -> Tuple[Expense, ...]:
    id_set = frozenset(ids)
    return tuple(filter(lambda e: e.id not in id_set, expenses))


def count_matching(expenses: Tuple[Expense, ...], ids: Iterable[str]) -> int:
    id_set = frozenset(ids)
    return sum(1 for e in expenses if e.id in id_set)


def add_tag(tags: Tuple[str, ...], value: str) -> Tuple[str, ...]:
    value = (value or "").strip()
    if not value or value in tags:
        return tags
    return tags + (value,)


def remove_tag(tags: Tuple[str, ...], value: str) -> Tuple[str, ...]:
    # expenses that still reference the tag keep it as free text
    return tuple(t for t in tags if t != value)
