import datetime
import math
import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Mapping, TypeVar

from vyapaar.domain import Expense, PaymentMethod

T = TypeVar('T')
U = TypeVar('U')
E = TypeVar('E')


class Maybe(Generic[T], ABC):

    @abstractmethod
    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        pass

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_some(self) -> bool:
        pass

    def is_none(self) -> bool:
        return not self.is_some()


class Some(Maybe[T]):

    def __init__(self, value: T):
        self._value = value

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Some(f(self._value))

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_some(self) -> bool:
        return True

    def __repr__(self) -> str:
        return f"Some({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Some) and self._value == other._value


class Nothing(Maybe[T]):

    def map(self, f: Callable[[T], U]) -> 'Maybe[U]':
        return Nothing()

    def get_or_else(self, default: T) -> T:
        return default

    def is_some(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Nothing()"

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)


class Either(Generic[E, T], ABC):

    @abstractmethod
    def get_or_else(self, default: T) -> T:
        pass

    @abstractmethod
    def is_right(self) -> bool:
        pass

    def is_left(self) -> bool:
        return not self.is_right()

    @abstractmethod
    def get_error(self) -> E:
        pass


class Right(Either[E, T]):

    def __init__(self, value: T):
        self._value = value

    def get_or_else(self, default: T) -> T:
        return self._value

    def is_right(self) -> bool:
        return True

    def get_error(self) -> E:
        raise ValueError("Cannot get error from Right")

    def __repr__(self) -> str:
        return f"Right({self._value!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Right) and self._value == other._value


class Left(Either[E, T]):

    def __init__(self, error: E):
        self._error = error

    def get_or_else(self, default: T) -> T:
        return default

    def is_right(self) -> bool:
        return False

    def get_error(self) -> E:
        return self._error

    def __repr__(self) -> str:
        return f"Left({self._error!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, Left) and self._error == other._error


REQUIRED_FIELDS = ("amount", "date", "merchant", "business_unit", "category", "payment_method")

_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def is_calendar_date(value: str) -> bool:
    """True for an existing day written exactly as YYYY-MM-DD."""
    if not _DATE_RE.fullmatch(value):
        return False
    try:
        datetime.date.fromisoformat(value)
    except ValueError:
        return False
    return True


def find_expense(expenses: tuple[Expense, ...], expense_id: str) -> Maybe[Expense]:
    for e in expenses:
        if e.id == expense_id:
            return Some(e)
    return Nothing()


def validate_draft(draft: Mapping[str, Any]) -> Either[list, dict]:
    """Check a submission/edit draft (snake_case keys).

    Returns Right(normalized draft) or Left(list of problem dicts), each problem
    carrying ``error``, ``field`` and ``message``.
    """
    problems = []

    for name in REQUIRED_FIELDS:
        value = draft.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            problems.append({
                "error": "missing_field",
                "field": name,
                "message": f"{name.replace('_', ' ').capitalize()} is required",
            })

    normalized = dict(draft)

    if draft.get("amount") is not None:
        try:
            amount = float(draft["amount"])
        except (TypeError, ValueError):
            problems.append({
                "error": "invalid_amount",
                "field": "amount",
                "message": f"Amount {draft['amount']!r} is not a number",
            })
        else:
            if amount < 0 or math.isnan(amount):
                problems.append({
                    "error": "invalid_amount",
                    "field": "amount",
                    "message": f"Amount must be zero or more, got {amount}",
                })
            normalized["amount"] = amount

    date = draft.get("date")
    if date:
        if is_calendar_date(str(date)):
            normalized["date"] = str(date)
        else:
            problems.append({
                "error": "invalid_date",
                "field": "date",
                "message": f"Date {date!r} is not in YYYY-MM-DD format",
            })

    method = draft.get("payment_method")
    if method and not isinstance(method, PaymentMethod):
        try:
            normalized["payment_method"] = PaymentMethod(method)
        except ValueError:
            problems.append({
                "error": "invalid_payment_method",
                "field": "payment_method",
                "message": f"Unknown payment method {method!r}",
            })

    for name in ("merchant", "business_unit", "category", "description"):
        if isinstance(normalized.get(name), str):
            normalized[name] = normalized[name].strip()

    if problems:
        return Left(problems)
    return Right(normalized)
