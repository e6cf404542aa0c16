from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class ExpenseStatus(str, Enum):
    PENDING_REVIEW = "Pending Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    @classmethod
    def parse(cls, value: Any) -> "ExpenseStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.PENDING_REVIEW


class PaymentMethod(str, Enum):
    UPI = "UPI (PhonePe/GPay)"
    CASH = "Cash"
    BANK_TRANSFER = "Bank Transfer"
    CARD = "Card"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: Any) -> "PaymentMethod":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class User:
    id: str
    name: str
    role: str        # "admin" or "staff"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "role": self.role}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(id=str(data["id"]), name=str(data["name"]), role=str(data["role"]))


# camelCase keys used in the stored JSON document
_WIRE_KEYS = {
    "business_unit": "businessUnit",
    "payment_method": "paymentMethod",
    "reference_number": "referenceNumber",
    "receipt_url": "receiptUrl",
    "receipt_base64": "receiptBase64",
    "submitted_by": "submittedBy",
    "submitted_by_id": "submittedById",
    "submitted_at": "submittedAt",
    "review_note": "reviewNote",
}

_OPTIONAL_FIELDS = ("reference_number", "receipt_url", "receipt_base64", "review_note")


@dataclass(frozen=True)
class Expense:
    id: str
    date: str                 # "YYYY-MM-DD"
    amount: float
    merchant: str
    business_unit: str
    category: str
    payment_method: PaymentMethod
    description: str
    status: ExpenseStatus
    submitted_by: str         # display name
    submitted_by_id: str
    submitted_at: str         # ISO timestamp
    reference_number: Optional[str] = None
    receipt_url: Optional[str] = None
    receipt_base64: Optional[str] = None   # data URL of the uploaded image
    review_note: Optional[str] = None

    @property
    def month(self) -> str:
        return self.date[:7]

    @property
    def has_receipt(self) -> bool:
        return bool(self.receipt_base64 or self.receipt_url)

    def with_status(self, status: ExpenseStatus, review_note: Optional[str] = None) -> "Expense":
        if review_note is None:
            return replace(self, status=status)
        return replace(self, status=status, review_note=review_note)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name in self.__dataclass_fields__:
            value = getattr(self, name)
            if name in _OPTIONAL_FIELDS and value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            out[_WIRE_KEYS.get(name, name)] = value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        return cls(
            id=str(data["id"]),
            date=str(data.get("date", "")),
            amount=float(data.get("amount") or 0),
            merchant=str(data.get("merchant", "")),
            business_unit=str(data.get("businessUnit", "")),
            category=str(data.get("category", "")),
            payment_method=PaymentMethod.parse(data.get("paymentMethod")),
            description=str(data.get("description", "")),
            status=ExpenseStatus.parse(data.get("status")),
            submitted_by=str(data.get("submittedBy", "")),
            submitted_by_id=str(data.get("submittedById", "")),
            submitted_at=str(data.get("submittedAt", "")),
            reference_number=data.get("referenceNumber") or None,
            receipt_url=data.get("receiptUrl") or None,
            receipt_base64=data.get("receiptBase64") or None,
            review_note=data.get("reviewNote") or None,
        )


@dataclass(frozen=True)
class AppData:
    """Root document: everything that is persisted as one unit."""

    expenses: tuple = field(default_factory=tuple)
    business_units: tuple = field(default_factory=tuple)
    categories: tuple = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "expenses": [e.to_dict() for e in self.expenses],
            "businessUnits": list(self.business_units),
            "categories": list(self.categories),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppData":
        return cls(
            expenses=tuple(Expense.from_dict(e) for e in data["expenses"]),
            business_units=tuple(str(b) for b in data["businessUnits"]),
            categories=tuple(str(c) for c in data["categories"]),
        )
