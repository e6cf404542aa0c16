from factories import make_expense
from vyapaar.domain import AppData, Expense, ExpenseStatus, PaymentMethod
from vyapaar.transforms import (
    add_tag,
    count_matching,
    prepend_expense,
    remove_expenses,
    remove_tag,
    replace_expense,
    set_status,
)


def test_prepend_expense_puts_newest_first():
    old = (make_expense("a"), make_expense("b"))
    new = prepend_expense(old, make_expense("c"))

    assert [e.id for e in new] == ["c", "a", "b"]
    assert len(old) == 2


def test_set_status_only_touches_given_ids():
    expenses = (make_expense("a"), make_expense("b"), make_expense("c"))
    updated = set_status(expenses, ["a", "c", "missing"], ExpenseStatus.APPROVED)

    assert [e.status for e in updated] == [
        ExpenseStatus.APPROVED,
        ExpenseStatus.PENDING_REVIEW,
        ExpenseStatus.APPROVED,
    ]
    assert updated[0].merchant == expenses[0].merchant
    assert expenses[0].status == ExpenseStatus.PENDING_REVIEW


def test_set_status_with_review_note():
    expenses = (make_expense("a"),)
    updated = set_status(expenses, ["a"], ExpenseStatus.REJECTED, review_note="duplicate bill")
    assert updated[0].review_note == "duplicate bill"


def test_replace_expense_full_overwrite_and_missing_id():
    expenses = (make_expense("a", amount=10), make_expense("b", amount=20))
    changed = replace_expense(expenses, make_expense("b", amount=99))
    assert [e.amount for e in changed] == [10, 99]

    untouched = replace_expense(expenses, make_expense("zzz", amount=5))
    assert untouched == expenses


def test_remove_expenses_and_count_matching():
    expenses = (make_expense("a"), make_expense("b"), make_expense("c"))
    ids = ["a", "c", "nope"]

    assert count_matching(expenses, ids) == 2
    remaining = remove_expenses(expenses, ids)
    assert [e.id for e in remaining] == ["b"]


def test_add_tag_ignores_blank_and_duplicates():
    tags = ("School", "College")
    assert add_tag(tags, "  Farm  ") == ("School", "College", "Farm")
    assert add_tag(tags, "   ") == tags
    assert add_tag(tags, "School") == tags


def test_remove_tag_keeps_order():
    assert remove_tag(("A", "B", "C"), "B") == ("A", "C")
    assert remove_tag(("A",), "Z") == ("A",)


def test_expense_wire_format_roundtrip_uses_camel_case():
    e = make_expense("a")
    data = e.to_dict()

    assert data["businessUnit"] == "Head Office"
    assert data["paymentMethod"] == "Cash"
    assert data["status"] == "Pending Review"
    assert "referenceNumber" not in data
    assert Expense.from_dict(data) == e


def test_from_dict_tolerates_unknown_enum_values():
    data = make_expense("a").to_dict()
    data["status"] = "Archived"
    data["paymentMethod"] = "Cheque"

    e = Expense.from_dict(data)
    assert e.status == ExpenseStatus.PENDING_REVIEW
    assert e.payment_method == PaymentMethod.OTHER


def test_appdata_to_dict_shape():
    doc = AppData(expenses=(make_expense("a"),), business_units=("X",), categories=("Y",))
    data = doc.to_dict()

    assert set(data) == {"expenses", "businessUnits", "categories"}
    assert AppData.from_dict(data) == doc
