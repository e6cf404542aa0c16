from vyapaar.domain import Expense, ExpenseStatus, PaymentMethod, User

APP_NAME = "VyapaarTrack"
CURRENCY = "₹"

STORAGE_KEY = "vyapaar_track_data_v1"
SESSION_KEY = "vt_user"

# Seed data for a first run
DEFAULT_BUSINESS_UNITS = (
    "uPVC Manufacturing",
    "Brick Factory",
    "Construction Projects",
    "College",
    "School",
    "Head Office",
)

DEFAULT_CATEGORIES = (
    "Materials",
    "Labor",
    "Fuel & Transport",
    "Utilities",
    "Maintenance",
    "Food & Refreshments",
    "Office Supplies",
    "Other",
)

FALLBACK_CATEGORY = "Other"

PAYMENT_METHODS = tuple(PaymentMethod)

ALL = "All"

# view name -> roles allowed to open it
NAV_ITEMS = {
    "Dashboard": ("admin",),
    "Review Queue": ("admin",),
    "New Entry": ("admin", "staff"),
    "Reports": ("admin",),
    "Settings": ("admin",),
}

MOCK_USERS = (
    User(id="u1", name="Accountant (Admin)", role="admin"),
    User(id="u2", name="Site Manager (Staff)", role="staff"),
)

INITIAL_EXPENSES = (
    Expense(
        id="e1",
        date="2023-10-25",
        amount=12500,
        merchant="Shree Cement Traders",
        business_unit="Construction Projects",
        category="Materials",
        payment_method=PaymentMethod.BANK_TRANSFER,
        description="50 bags of cement for Site A",
        status=ExpenseStatus.APPROVED,
        submitted_by="Ramesh (Site Manager)",
        submitted_by_id="u2",
        submitted_at="2023-10-25T10:30:00Z",
    ),
    Expense(
        id="e2",
        date="2023-10-26",
        amount=450,
        merchant="Local Tea Stall",
        business_unit="Brick Factory",
        category="Food & Refreshments",
        payment_method=PaymentMethod.CASH,
        description="Tea and snacks for laborers",
        status=ExpenseStatus.PENDING_REVIEW,
        submitted_by="Suresh (Supervisor)",
        submitted_by_id="u3",
        submitted_at="2023-10-26T14:15:00Z",
    ),
    Expense(
        id="e3",
        date="2023-10-27",
        amount=3200,
        merchant="Indian Oil Pump",
        business_unit="uPVC Manufacturing",
        category="Fuel & Transport",
        payment_method=PaymentMethod.UPI,
        description="Diesel for Generator",
        status=ExpenseStatus.PENDING_REVIEW,
        submitted_by="Driver Mohan",
        submitted_by_id="u4",
        submitted_at="2023-10-27T09:00:00Z",
    ),
)

WHATSAPP_PLACEHOLDER_URL = "https://placehold.co/400x600/e2e8f0/475569?text=WhatsApp+Screenshot"
