import sys
import os
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import base64
import logging
from datetime import date

import streamlit as st
import pandas as pd
import plotly.express as px

from vyapaar.classifier import (
    ReceiptClassifier,
    classify_into_draft,
    prepare_image,
)
from vyapaar.config import ensure_data_directory, load_settings
from vyapaar.constants import ALL, APP_NAME, CURRENCY, MOCK_USERS, PAYMENT_METHODS
from vyapaar.controller import ExpenseController
from vyapaar.domain import Expense, ExpenseStatus, PaymentMethod
from vyapaar.errors import ClassificationError, CorruptStateError, ValidationError
from vyapaar.events import (
    DATA_RESET,
    EXPENSE_SUBMITTED,
    EXPENSE_UPDATED,
    EXPENSES_DELETED,
    STATUS_CHANGED,
    TAXONOMY_CHANGED,
    notice_handler,
)
from vyapaar.export import expenses_to_csv, export_filename
from vyapaar.functional import find_expense, is_calendar_date
from vyapaar.logger import configure_logging
from vyapaar.projections import (
    ReportState,
    ReviewQueueState,
    approved_by_business_unit,
    available_months,
    dashboard_stats,
    expenses_to_frame,
    filter_report,
    recent_activity,
    review_queue,
    total_amount,
)
from vyapaar.session import SessionContext
from vyapaar.storage import DocumentStore, JsonFileStore, MemoryStore

st.set_page_config(page_title=APP_NAME, layout="wide")

settings = load_settings()
configure_logging(settings.log_level)
log = logging.getLogger("vyapaar.app")


def money(value: float) -> str:
    return f"{CURRENCY}{value:,.2f}"


def _collect_notice(event):
    st.session_state.setdefault("notices", []).append(notice_handler(event))


if "controller" not in st.session_state:
    ensure_data_directory(settings)
    file_store = JsonFileStore(settings.store_path)
    try:
        controller = ExpenseController(DocumentStore(file_store))
    except CorruptStateError as exc:
        log.error("Cannot load %s: %s", settings.store_path, exc)
        st.error(f"The data file {settings.store_path} could not be read.")
        st.caption(
            "Starting fresh moves it aside (kept with a .corrupt suffix) and restores the demo data."
        )
        if st.button("Move file aside and start fresh", type="primary"):
            moved = file_store.quarantine()
            st.session_state.notices = [f"Unreadable data file kept as {moved.name}"]
            st.rerun()
        st.stop()
    for name in (EXPENSE_SUBMITTED, EXPENSE_UPDATED, STATUS_CHANGED, EXPENSES_DELETED, TAXONOMY_CHANGED, DATA_RESET):
        controller.bus.subscribe(name, _collect_notice)
    st.session_state.controller = controller
    log.info("Loaded %d expenses from %s", len(controller.expenses), settings.store_path)

if "session" not in st.session_state:
    # per-browser-session login, not shared through the data file
    st.session_state.session = SessionContext(MemoryStore())
    st.session_state.session.restore()

if "classifier" not in st.session_state:
    st.session_state.classifier = ReceiptClassifier(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        timeout=settings.classify_timeout,
    )

st.session_state.setdefault("review_state", ReviewQueueState())
st.session_state.setdefault("report_state", ReportState())
st.session_state.setdefault("editing_id", None)
st.session_state.setdefault("confirm", None)

ctl: ExpenseController = st.session_state.controller
session: SessionContext = st.session_state.session

for notice in st.session_state.pop("notices", []):
    st.toast(notice)


# --- login

if not session.is_authenticated:
    st.title(f"🔒 {APP_NAME} Login")
    st.write("Select your role to continue")
    for user in MOCK_USERS:
        if st.button(f"{user.name} · {user.role.upper()}", key=f"login_{user.id}", use_container_width=True):
            session.login(user)
            st.rerun()
    st.caption("Note: This is a demo login. No password required.")
    st.stop()


# --- confirmation prompts for destructive actions

def ask_confirm(kind: str, arg, message: str) -> None:
    st.session_state.confirm = {"kind": kind, "arg": arg, "message": message}


def _run_confirmed(kind: str, arg) -> None:
    if kind == "delete":
        ctl.delete(arg)
        st.session_state.editing_id = None
    elif kind == "bulk_delete":
        ctl.bulk_delete(arg)
        st.session_state.review_state.finish_bulk_action()
        st.session_state.report_state.selection.clear()
    elif kind == "remove_business_unit":
        ctl.remove_business_unit(arg)
    elif kind == "remove_category":
        ctl.remove_category(arg)
    elif kind == "reset":
        ctl.reset()


def render_confirm() -> None:
    pending = st.session_state.confirm
    if not pending:
        return
    st.warning(pending["message"])
    c1, c2, _ = st.columns([1, 1, 4])
    if c1.button("Confirm", key="confirm_yes", type="primary"):
        st.session_state.confirm = None
        _run_confirmed(pending["kind"], pending["arg"])
        st.rerun()
    if c2.button("Cancel", key="confirm_no"):
        st.session_state.confirm = None
        st.rerun()


# --- shared widgets

def receipt_image(e: Expense):
    if e.receipt_base64:
        _, _, encoded = e.receipt_base64.partition(",")
        return base64.b64decode(encoded)
    return e.receipt_url


def status_badge(status: ExpenseStatus) -> str:
    return {
        ExpenseStatus.APPROVED: "🟢 Approved",
        ExpenseStatus.PENDING_REVIEW: "🟠 Pending Review",
        ExpenseStatus.REJECTED: "🔴 Rejected",
    }[status]


def expense_card(e: Expense, key_prefix: str, actions: bool = False, selectable: bool = False) -> None:
    with st.container(border=True):
        left, right = st.columns([3, 2])
        with left:
            if selectable:
                review = st.session_state.review_state
                checked = st.checkbox(
                    f"**{e.merchant}**",
                    value=e.id in review.selection,
                    key=f"{key_prefix}_sel_{e.id}",
                )
                if checked != (e.id in review.selection):
                    review.selection.toggle(e.id)
            else:
                st.markdown(f"**{e.merchant}**")
            st.caption(f"{e.date} · {e.business_unit} · {e.category} · {e.payment_method.value}")
            if e.description:
                st.write(e.description)
            st.caption(f"Submitted by {e.submitted_by}" + (" · 📎 receipt" if e.has_receipt else ""))
        with right:
            st.markdown(f"### {money(e.amount)}")
            st.caption(status_badge(e.status))
            if actions and not selectable:
                b1, b2, b3 = st.columns(3)
                if b1.button("Approve", key=f"{key_prefix}_ok_{e.id}"):
                    ctl.change_status(e.id, ExpenseStatus.APPROVED)
                    st.rerun()
                if b2.button("Reject", key=f"{key_prefix}_no_{e.id}"):
                    ctl.change_status(e.id, ExpenseStatus.REJECTED)
                    st.rerun()
                if b3.button("Edit", key=f"{key_prefix}_edit_{e.id}"):
                    st.session_state.editing_id = e.id
                    st.rerun()
            elif not selectable:
                if st.button("Edit", key=f"{key_prefix}_edit_{e.id}"):
                    st.session_state.editing_id = e.id
                    st.rerun()


def _index_of(options, value) -> int:
    options = list(options)
    return options.index(value) if value in options else 0


def _with_current(options, value) -> list:
    # a stale taxonomy value stays selectable as free text
    options = list(options)
    if value and value not in options:
        options.append(value)
    return options


def render_edit_panel() -> None:
    editing_id = st.session_state.editing_id
    if not editing_id:
        return
    found = find_expense(ctl.expenses, editing_id)
    if found.is_none():
        st.session_state.editing_id = None
        return
    e = found.get_or_else(None)

    with st.expander(f"✏️ Edit Expense · {e.merchant}", expanded=True):
        image = receipt_image(e)
        cols = st.columns([2, 1]) if image else [st.container()]
        with cols[0]:
            with st.form(f"edit_{e.id}"):
                c1, c2 = st.columns(2)
                with c1:
                    amount = st.number_input(f"Amount ({CURRENCY})", min_value=0.0, value=float(e.amount), step=100.0)
                    exp_date = st.date_input("Date", value=date.fromisoformat(e.date) if is_calendar_date(e.date) else date.today())
                    merchant = st.text_input("Merchant", value=e.merchant)
                    reference = st.text_input("Reference / UTR", value=e.reference_number or "")
                with c2:
                    units = _with_current(ctl.business_units, e.business_unit)
                    cats = _with_current(ctl.categories, e.category)
                    business_unit = st.selectbox("Business Unit", units, index=_index_of(units, e.business_unit))
                    category = st.selectbox("Category", cats, index=_index_of(cats, e.category))
                    method = st.selectbox(
                        "Payment Method", PAYMENT_METHODS,
                        index=_index_of(PAYMENT_METHODS, e.payment_method),
                        format_func=lambda m: m.value,
                    )
                    status = st.selectbox(
                        "Status", list(ExpenseStatus),
                        index=_index_of(list(ExpenseStatus), e.status),
                        format_func=lambda s: s.value,
                    )
                description = st.text_area("Description", value=e.description)
                review_note = st.text_input("Review note", value=e.review_note or "")
                saved = st.form_submit_button("Save Changes", type="primary")

            if saved:
                updated = Expense(
                    id=e.id,
                    date=exp_date.isoformat(),
                    amount=float(amount),
                    merchant=merchant.strip(),
                    business_unit=business_unit,
                    category=category,
                    payment_method=method,
                    description=description.strip(),
                    status=status,
                    submitted_by=e.submitted_by,
                    submitted_by_id=e.submitted_by_id,
                    submitted_at=e.submitted_at,
                    reference_number=reference.strip() or None,
                    receipt_url=e.receipt_url,
                    receipt_base64=e.receipt_base64,
                    review_note=review_note.strip() or None,
                )
                try:
                    ctl.edit(updated)
                except ValidationError as exc:
                    for problem in exc.problems:
                        st.error(problem["message"])
                else:
                    st.session_state.editing_id = None
                    st.rerun()

            d1, d2, _ = st.columns([1, 1, 4])
            if d1.button("🗑 Delete", key=f"edit_delete_{e.id}"):
                ask_confirm("delete", e.id, "Are you sure you want to delete this expense?")
                st.rerun()
            if d2.button("Close", key=f"edit_close_{e.id}"):
                st.session_state.editing_id = None
                st.rerun()
        if image:
            with cols[1]:
                st.image(image, caption="Receipt", use_container_width=True)


# --- sidebar

user = session.user
st.sidebar.markdown(f"## {APP_NAME}")
st.sidebar.caption(f"👤 {user.name} · {user.role}")

views = session.visible_views()
menu = st.sidebar.radio(
    "Menu",
    views,
    index=_index_of(views, session.landing_view()),
)

if st.sidebar.button("Log out"):
    session.logout()
    st.session_state.editing_id = None
    st.session_state.confirm = None
    st.rerun()

render_confirm()
render_edit_panel()


if menu == "Dashboard":
    st.title("Dashboard")
    stats = dashboard_stats(ctl.expenses)
    k1, k2, k3, k4 = st.columns(4)
    with k1:
        st.metric("Total Approved", money(stats.total_approved))
    with k2:
        st.metric("Pending Amount", money(stats.pending_amount))
    with k3:
        st.metric("Pending Review", stats.pending_count)
    with k4:
        st.metric("Avg. Ticket Size", money(stats.average_ticket))

    left, right = st.columns(2)
    with left:
        st.subheader("Recent Activity")
        recent = recent_activity(ctl.expenses)
        if recent:
            for e in recent:
                expense_card(e, "dash")
        else:
            st.info("No expenses yet.")
    with right:
        st.subheader("Approved Spending by Business")
        by_unit = approved_by_business_unit(ctl.expenses)
        if by_unit:
            df_unit = pd.DataFrame({"Business Unit": list(by_unit), "Approved": list(by_unit.values())})
            fig = px.bar(
                df_unit,
                x="Approved",
                y="Business Unit",
                orientation="h",
                color="Business Unit",
                labels={"Approved": f"Approved ({CURRENCY})"},
            )
            fig.update_layout(showlegend=False, margin=dict(t=10, b=10, l=10, r=10))
            st.plotly_chart(fig, use_container_width=True)
        else:
            st.info("No approved expenses yet.")

elif menu == "Review Queue":
    review: ReviewQueueState = st.session_state.review_state
    pending = review_queue(ctl.expenses)
    pending_ids = [e.id for e in pending]
    review.selection.retain(pending_ids)

    head, toggle = st.columns([4, 1])
    with head:
        st.title("Review Queue")
        st.caption(f"{len(pending)} expenses awaiting approval")
    with toggle:
        if pending and st.button("Cancel Selection" if review.select_mode else "Select Items"):
            review.toggle_select_mode()
            st.session_state.review_version = st.session_state.get("review_version", 0) + 1
            st.rerun()

    if review.select_mode:
        label = "Deselect All" if review.selection.all_selected(pending_ids) else "Select All"
        if st.button(label, key="review_select_all"):
            review.selection.toggle_all(pending_ids)
            st.session_state.review_version = st.session_state.get("review_version", 0) + 1
            st.rerun()

    for e in pending:
        expense_card(e, f"review{st.session_state.get('review_version', 0)}", actions=True, selectable=review.select_mode)

    if not pending:
        st.success("All caught up! No pending expenses to review.")

    if review.select_mode and len(review.selection) > 0:
        ids = review.selection.as_list()
        a1, a2, a3 = st.columns(3)
        if a1.button(f"✅ Approve ({len(ids)})", key="review_bulk_ok", use_container_width=True):
            ctl.bulk_change_status(ids, ExpenseStatus.APPROVED)
            review.finish_bulk_action()
            st.rerun()
        if a2.button(f"❌ Reject ({len(ids)})", key="review_bulk_no", use_container_width=True):
            ctl.bulk_change_status(ids, ExpenseStatus.REJECTED)
            review.finish_bulk_action()
            st.rerun()
        if a3.button(f"🗑 Delete ({len(ids)})", key="review_bulk_del", use_container_width=True):
            ask_confirm("bulk_delete", ids, f"Are you sure you want to delete {len(ids)} expenses? This cannot be undone.")
            st.rerun()

elif menu == "New Entry":
    st.title("New Expense Entry")

    st.session_state.setdefault("entry_version", 0)
    st.session_state.setdefault("entry_form_version", 0)
    version = st.session_state.entry_version

    def blank_draft() -> dict:
        return {
            "date": date.today().isoformat(),
            "business_unit": ctl.business_units[0] if ctl.business_units else "",
            "category": ctl.categories[0] if ctl.categories else "",
            "payment_method": PaymentMethod.UPI,
            "amount": 0.0,
            "merchant": "",
            "description": "",
            "reference_number": "",
        }

    st.session_state.setdefault("entry_draft", blank_draft())
    st.session_state.setdefault("entry_image", None)

    with st.expander("How to add a WhatsApp receipt"):
        st.markdown(
            "1. Open the receipt image in WhatsApp.\n"
            "2. Save it or take a screenshot.\n"
            "3. Upload it here; the fields are filled in automatically when possible."
        )

    uploaded = st.file_uploader(
        "Snap or upload receipt", type=["png", "jpg", "jpeg", "webp"], key=f"entry_upload_{version}"
    )
    if uploaded is not None:
        upload_id = f"{uploaded.name}:{uploaded.size}"
        if st.session_state.get("entry_upload_id") != upload_id:
            st.session_state.entry_upload_id = upload_id
            raw = uploaded.getvalue()
            try:
                jpeg = prepare_image(raw)
            except ClassificationError:
                st.session_state.entry_image = None
                st.session_state.entry_advisory = "Could not read that image. Please enter details manually."
            else:
                st.session_state.entry_image = "data:image/jpeg;base64," + base64.b64encode(jpeg).decode("ascii")
                with st.spinner("Analyzing receipt..."):
                    draft, advisory = classify_into_draft(
                        st.session_state.classifier,
                        raw,
                        st.session_state.entry_draft,
                        ctl.categories,
                        ctl.business_units,
                    )
                st.session_state.entry_draft = draft
                st.session_state.entry_advisory = advisory
                st.session_state.entry_form_version += 1
                st.rerun()

    if st.session_state.get("entry_advisory"):
        st.warning(st.session_state.entry_advisory)
        if st.button("Dismiss", key="entry_dismiss"):
            st.session_state.entry_advisory = None
            st.rerun()

    if st.session_state.entry_image:
        _, _, encoded = st.session_state.entry_image.partition(",")
        st.image(base64.b64decode(encoded), caption="Receipt preview", width=320)

    draft = st.session_state.entry_draft
    with st.form(f"entry_form_{version}_{st.session_state.entry_form_version}"):
        c1, c2 = st.columns(2)
        with c1:
            amount = st.number_input(f"Amount ({CURRENCY})", min_value=0.0, value=float(draft.get("amount") or 0), step=100.0)
            try:
                draft_date = date.fromisoformat(str(draft.get("date")))
            except ValueError:
                draft_date = date.today()
            exp_date = st.date_input("Date", value=draft_date)
            merchant = st.text_input("Merchant / Payee", value=draft.get("merchant") or "")
            reference = st.text_input("Reference / UTR (optional)", value=draft.get("reference_number") or "")
        with c2:
            units = _with_current(ctl.business_units, draft.get("business_unit"))
            cats = _with_current(ctl.categories, draft.get("category"))
            business_unit = st.selectbox("Business Unit", units, index=_index_of(units, draft.get("business_unit")))
            category = st.selectbox("Category", cats, index=_index_of(cats, draft.get("category")))
            method = st.selectbox(
                "Payment Method", PAYMENT_METHODS,
                index=_index_of(PAYMENT_METHODS, draft.get("payment_method")),
                format_func=lambda m: m.value,
            )
        description = st.text_area("Description", value=draft.get("description") or "")
        submitted = st.form_submit_button("Submit Expense", type="primary")

    if submitted:
        try:
            ctl.submit(
                {
                    "amount": amount,
                    "date": exp_date.isoformat(),
                    "merchant": merchant,
                    "business_unit": business_unit,
                    "category": category,
                    "payment_method": method,
                    "description": description,
                    "reference_number": reference,
                    "receipt_base64": st.session_state.entry_image,
                },
                user=session.user,
            )
        except ValidationError as exc:
            for problem in exc.problems:
                st.error(problem["message"])
        else:
            st.session_state.entry_draft = blank_draft()
            st.session_state.entry_image = None
            st.session_state.entry_advisory = None
            st.session_state.entry_upload_id = None
            st.session_state.entry_version = version + 1
            st.rerun()

elif menu == "Reports":
    report: ReportState = st.session_state.report_state
    st.title("Expense Reports")
    st.caption("View and export financial summaries")

    f1, f2 = st.columns(2)
    with f1:
        units = [ALL] + list(ctl.business_units)
        unit = st.selectbox(
            "Business Unit", units,
            index=_index_of(units, report.filter.business_unit),
            format_func=lambda u: "All Businesses" if u == ALL else u,
        )
    with f2:
        months = [ALL] + list(available_months(ctl.expenses))
        month = st.selectbox(
            "Month", months,
            index=_index_of(months, report.filter.month),
            format_func=lambda m: "All Time" if m == ALL else m,
        )
    if report.set_filter(business_unit=unit, month=month):
        st.session_state.report_editor_version = st.session_state.get("report_editor_version", 0) + 1

    filtered = filter_report(ctl.expenses, report.filter)
    visible_ids = [e.id for e in filtered]
    report.selection.retain(visible_ids)

    s1, s2 = st.columns(2)
    s1.metric("Total for Period", money(total_amount(filtered)))
    s2.metric("Entries", len(filtered))

    st.download_button(
        "⬇ Export CSV",
        expenses_to_csv(filtered),
        file_name=export_filename(),
        mime="text/csv",
    )

    if filtered:
        label = "Deselect All" if report.selection.all_selected(visible_ids) else "Select All"
        if st.button(label, key="report_select_all"):
            report.selection.toggle_all(visible_ids)
            st.session_state.report_editor_version = st.session_state.get("report_editor_version", 0) + 1
            st.rerun()

        table = expenses_to_frame(filtered)
        table.insert(0, "Select", table["id"].isin(report.selection.ids))
        edited = st.data_editor(
            table,
            hide_index=True,
            use_container_width=True,
            column_config={
                "Select": st.column_config.CheckboxColumn("Select"),
                "amount": st.column_config.NumberColumn(f"Amount ({CURRENCY})", format="%.2f"),
                "id": None,
            },
            disabled=[c for c in table.columns if c != "Select"],
            key=f"report_editor_{st.session_state.get('report_editor_version', 0)}",
        )
        report.selection.ids = set(edited.loc[edited["Select"], "id"])
    else:
        st.info("No expenses found for the selected filters.")

    if len(report.selection) > 0:
        ids = report.selection.as_list()
        a1, a2, a3 = st.columns(3)
        if a1.button(f"✅ Approve ({len(ids)})", key="report_bulk_ok", use_container_width=True):
            ctl.bulk_change_status(ids, ExpenseStatus.APPROVED)
            report.selection.clear()
            st.session_state.report_editor_version = st.session_state.get("report_editor_version", 0) + 1
            st.rerun()
        if a2.button(f"❌ Reject ({len(ids)})", key="report_bulk_no", use_container_width=True):
            ctl.bulk_change_status(ids, ExpenseStatus.REJECTED)
            report.selection.clear()
            st.session_state.report_editor_version = st.session_state.get("report_editor_version", 0) + 1
            st.rerun()
        if a3.button(f"🗑 Delete ({len(ids)})", key="report_bulk_del", use_container_width=True):
            ask_confirm("bulk_delete", ids, f"Are you sure you want to delete {len(ids)} expenses? This cannot be undone.")
            st.rerun()

elif menu == "Settings":
    st.title("Settings")

    def list_manager(title: str, items, add, remove_kind: str, key: str) -> None:
        st.subheader(title)
        with st.form(f"add_{key}", clear_on_submit=True):
            new_value = st.text_input(f"Add new {title.lower()}...", key=f"new_{key}")
            if st.form_submit_button("Add") and new_value.strip():
                add(new_value)
                st.rerun()
        for idx, item in enumerate(items):
            c1, c2 = st.columns([5, 1])
            c1.write(item)
            if c2.button("🗑", key=f"del_{key}_{idx}", help="Delete"):
                ask_confirm(remove_kind, item, f'Are you sure you want to remove "{item}"?')
                st.rerun()

    col_units, col_cats = st.columns(2)
    with col_units:
        list_manager("Business Units", ctl.business_units, ctl.add_business_unit, "remove_business_unit", "units")
    with col_cats:
        list_manager("Expense Categories", ctl.categories, ctl.add_category, "remove_category", "cats")

    st.divider()
    st.subheader("💬 WhatsApp Integration (Demo)")
    st.write(
        "Since the WhatsApp bot integration requires a backend server, you can use this "
        "button to simulate an incoming receipt forwarding event."
    )
    if st.button("Simulate Incoming WhatsApp Receipt"):
        ctl.simulate_incoming_receipt()
        st.rerun()

    st.divider()
    st.subheader("Reset")
    st.caption(f"Data file: {settings.store_path}")
    if st.button("Reset all data to defaults"):
        ask_confirm("reset", None, "This deletes every stored expense and restores the demo data. Continue?")
        st.rerun()
