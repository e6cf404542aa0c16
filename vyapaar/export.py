import csv
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from vyapaar.domain import Expense
from vyapaar.projections import FRAME_COLUMNS, expenses_to_frame

CSV_HEADERS = {
    "id": "ID",
    "date": "Date",
    "merchant": "Merchant",
    "business_unit": "Business Unit",
    "category": "Category",
    "amount": "Amount",
    "status": "Status",
    "payment_method": "Payment Method",
    "description": "Description",
    "submitted_by": "Submitted By",
}


def _plain_amount(value: float):
    # 12500.0 -> 12500, 42.5 stays as is
    value = float(value)
    return int(value) if value.is_integer() else value


def expenses_to_csv(expenses: Iterable[Expense]) -> str:
    """One header line plus one row per expense.

    Text cells are always quoted with embedded quotes doubled; amounts stay
    bare numbers.
    """
    df = expenses_to_frame(expenses)[FRAME_COLUMNS].copy()
    # object column so whole and fractional amounts keep their own form
    df["amount"] = pd.Series([_plain_amount(a) for a in df["amount"]], index=df.index, dtype=object)
    df = df.rename(columns=CSV_HEADERS)
    return df.to_csv(
        index=False,
        quoting=csv.QUOTE_NONNUMERIC,
        doublequote=True,
        lineterminator="\n",
    ).rstrip("\n")


def export_filename(on: Optional[date] = None) -> str:
    return f"expenses_export_{(on or date.today()).isoformat()}.csv"
