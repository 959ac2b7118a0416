"""
Streamlit Frontend for FinWise

The page users work in every day: add transactions four ways, review
what was parsed, submit, and manage the stored list.

DESIGN PRINCIPLES:
1. Every parsed row is shown before anything is saved
2. Problems are shown next to the row they belong to
3. Exact counts after every submit ("X added, Y failed")
4. Failed rows stay on screen for correction and retry
"""

import asyncio
from datetime import date
from decimal import Decimal, InvalidOperation

import streamlit as st

from finwise.agents import ModelError, ReceiptImage
from finwise.config import validate_all_settings
from finwise.models import Candidate, ExpenseType, SettledOutcome, TransactionType
from finwise.orchestrator import IngestionSession, create_app_components
from finwise.parsing import ManualEntry, ParseError
from finwise.parsing.bulk import BULK_COLUMNS, BULK_EXAMPLE_ROW
from finwise.services.storage import StorageError


# Page configuration
st.set_page_config(
    page_title="FinWise",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components():
    """Get or create the shared application components (cached per process)."""
    try:
        return create_app_components(use_storage=True)
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(use_storage=False)


def get_session() -> IngestionSession:
    """Each browser session keeps its own review set and cycle state."""
    if "ingestion_session" not in st.session_state:
        st.session_state.ingestion_session = get_components().new_session()
    return st.session_state.ingestion_session


def main():
    """Main application entry point."""
    session = get_session()

    if not session.catalog_snapshot.categories:
        try:
            run_async(session.load_catalog())
        except StorageError as e:
            st.error(f"Could not load categories: {e}")

    st.sidebar.title("💰 FinWise")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["➕ Add Transactions", "📊 Transactions", "⚙️ Settings"],
        index=0,
    )

    st.sidebar.markdown("---")
    st.sidebar.markdown(
        """
        **How to use:**
        1. Enter, paste, describe or photograph transactions
        2. Review and correct the rows
        3. Submit the ones you are happy with
        """
    )

    if page == "➕ Add Transactions":
        render_add_page(session)
    elif page == "📊 Transactions":
        render_transactions_page(session)
    elif page == "⚙️ Settings":
        render_settings_page()


def _run_parse(coro) -> None:
    """Run a parse and surface failures verbatim."""
    try:
        result = run_async(coro)
    except (ParseError, ModelError, StorageError) as e:
        st.error(str(e))
        return

    if result.nothing_recognized:
        st.warning(result.summary_message)
    else:
        st.session_state.flash = ("info", result.summary_message or "Parsed. Review the rows below.")
        st.rerun()


def render_add_page(session: IngestionSession):
    """Render the four input tabs followed by the review list."""
    st.title("➕ Add Transactions")

    manual_tab, bulk_tab, text_tab, receipt_tab = st.tabs(
        ["✍️ Manual", "📋 Bulk Paste", "💬 Describe", "🧾 Receipt"]
    )

    with manual_tab:
        render_manual_form(session)

    with bulk_tab:
        st.markdown(
            "Paste one transaction per line, tab-separated: "
            + ", ".join(f"`{column}`" for column in BULK_COLUMNS)
        )
        bulk_text = st.text_area(
            "Rows",
            height=200,
            placeholder=BULK_EXAMPLE_ROW,
        )
        if st.button("🔍 Parse Rows", type="primary", key="parse_bulk"):
            _run_parse(session.parse_bulk(bulk_text))

    with text_tab:
        if not session.ai_enabled:
            st.info("AI parsing is not configured. Add GEMINI_API_KEY to enable it.")
        else:
            free_text = st.text_area(
                "Describe your transactions",
                height=150,
                placeholder="Paid 450 for groceries on UPI yesterday, got salary 80000 on the 1st",
            )
            if st.button("🔍 Parse Text", type="primary", key="parse_text"):
                with st.spinner("Reading your transactions..."):
                    _run_parse(session.parse_text(free_text))

    with receipt_tab:
        if not session.ai_enabled:
            st.info("AI parsing is not configured. Add GEMINI_API_KEY to enable it.")
        else:
            uploaded_file = st.file_uploader(
                "Choose a receipt photo",
                type=["jpg", "jpeg", "png", "webp"],
                help="A clear, well-lit photo works best",
            )
            if uploaded_file and st.button("🔍 Read Receipt", type="primary", key="parse_receipt"):
                image = ReceiptImage(
                    data=uploaded_file.getvalue(),
                    mime_type=uploaded_file.type or "",
                    filename=uploaded_file.name,
                )
                with st.spinner("Reading your receipt..."):
                    _run_parse(session.parse_receipt(image))

    flash = st.session_state.pop("flash", None)
    if flash:
        level, message = flash
        getattr(st, level)(message)

    render_review(session)


def render_manual_form(session: IngestionSession):
    """One transaction at a time; goes through the same review and submit."""
    snapshot = session.catalog_snapshot
    transaction_type = st.radio(
        "Type",
        options=list(TransactionType),
        index=1,
        format_func=lambda t: t.value.title(),
        horizontal=True,
        key="manual_type",
    )
    categories = snapshot.categories_for(transaction_type)

    with st.form("manual_entry", clear_on_submit=True):
        col1, col2 = st.columns(2)
        with col1:
            description = st.text_input("Description *")
            amount = st.number_input("Amount (₹) *", min_value=0.0, step=0.01, format="%.2f")
            transaction_date = st.date_input("Date *", value=date.today())
        with col2:
            category = st.selectbox(
                "Category *",
                options=[None] + categories,
                format_func=lambda c: "Select..." if c is None else c.name,
            )
            payment_method = expense_type = None
            source = None
            if transaction_type == TransactionType.EXPENSE:
                payment_method = st.selectbox(
                    "Payment method *",
                    options=[None] + list(snapshot.payment_methods),
                    format_func=lambda pm: "Select..." if pm is None else pm.name,
                )
                expense_type = st.selectbox(
                    "Need / Want / Investment *",
                    options=[None] + list(ExpenseType),
                    format_func=lambda e: "Select..." if e is None else e.value.title(),
                )
            else:
                source = st.text_input("Source (optional)")

        if st.form_submit_button("➕ Add to Review", type="primary"):
            entry = ManualEntry(
                transaction_type=transaction_type,
                transaction_date=transaction_date,
                amount=str(amount) if amount else None,
                description=description,
                category_id=category.id if category else None,
                payment_method_id=payment_method.id if payment_method else None,
                expense_type=expense_type,
                source=source or None,
            )
            _run_parse(session.parse_manual(entry))


def _candidate_label(candidate: Candidate) -> str:
    amount = f"₹{candidate.amount:,.2f}" if candidate.amount is not None else "no amount"
    status = "✅" if candidate.is_clean else "❌"
    return f"{status} Row {candidate.position + 1}: {candidate.description or '(no description)'} · {amount}"


def render_review(session: IngestionSession):
    """Render the review list with per-row editing and the submit button."""
    review_set = session.review_set
    if not len(review_set):
        return

    st.markdown("---")
    st.subheader(f"📋 Review ({len(review_set)} rows)")
    st.markdown("*Rows with problems are unticked. Fix them or tick to submit anyway.*")

    selected = []
    for index, candidate in enumerate(review_set):
        key = str(candidate.candidate_id)
        col_check, col_body = st.columns([1, 12])
        with col_check:
            if st.checkbox("Submit", value=candidate.is_clean, key=f"select_{key}", label_visibility="collapsed"):
                selected.append(index)
        with col_body:
            with st.expander(_candidate_label(candidate), expanded=not candidate.is_clean):
                for error in candidate.errors:
                    st.error(error.message)
                if candidate.confidence_score is not None:
                    st.caption(f"Confidence: {candidate.confidence_score:.0%}")
                render_candidate_editor(session, index, candidate)

    st.markdown("---")
    col1, col2 = st.columns([2, 1])
    with col1:
        if st.button(f"✅ Submit {len(selected)} selected", type="primary", disabled=not selected):
            report = run_async(session.submit(selected))
            level = {
                SettledOutcome.FULL_SUCCESS: "success",
                SettledOutcome.PARTIAL: "warning",
                SettledOutcome.FULL_FAILURE: "error",
                SettledOutcome.NOTHING_TO_SUBMIT: "info",
            }[report.outcome]
            st.session_state.flash = (level, report.message)
            st.rerun()
    with col2:
        if st.button("🗑️ Discard All"):
            session.reset()
            st.rerun()


def render_candidate_editor(session: IngestionSession, index: int, candidate: Candidate):
    """Editable fields for one candidate."""
    snapshot = session.catalog_snapshot
    key = str(candidate.candidate_id)

    new_type = st.radio(
        "Type",
        options=list(TransactionType),
        index=list(TransactionType).index(candidate.transaction_type) if candidate.transaction_type else 1,
        format_func=lambda t: t.value.title(),
        horizontal=True,
        key=f"type_{key}",
    )
    if new_type != candidate.transaction_type:
        run_async(session.change_type(index, new_type))
        st.rerun()

    col1, col2 = st.columns(2)
    with col1:
        description = st.text_input("Description", value=candidate.description, key=f"desc_{key}")
        amount_text = st.text_input(
            "Amount (₹)",
            value="" if candidate.amount is None else str(candidate.amount),
            key=f"amount_{key}",
        )
        transaction_date = st.date_input("Date", value=candidate.transaction_date, key=f"date_{key}")
    with col2:
        categories = snapshot.categories_for(candidate.transaction_type or TransactionType.EXPENSE)
        category_ids = [None] + [c.id for c in categories]
        category_id = st.selectbox(
            "Category",
            options=category_ids,
            index=category_ids.index(candidate.category_id) if candidate.category_id in category_ids else 0,
            format_func=lambda cid: _select_label(cid, snapshot.category_name(cid), candidate.category_name_guess),
            key=f"cat_{key}",
        )
        changes = {}
        if candidate.transaction_type == TransactionType.INCOME:
            changes["source"] = st.text_input("Source", value=candidate.source or "", key=f"source_{key}") or None
        else:
            method_ids = [None] + [pm.id for pm in snapshot.payment_methods]
            changes["payment_method_id"] = st.selectbox(
                "Payment method",
                options=method_ids,
                index=method_ids.index(candidate.payment_method_id) if candidate.payment_method_id in method_ids else 0,
                format_func=lambda pid: _select_label(
                    pid, snapshot.payment_method_name(pid), candidate.payment_method_name_guess
                ),
                key=f"pm_{key}",
            )
            expense_types = [None] + list(ExpenseType)
            changes["expense_type"] = st.selectbox(
                "Need / Want / Investment",
                options=expense_types,
                index=expense_types.index(candidate.expense_type) if candidate.expense_type else 0,
                format_func=lambda e: "Select..." if e is None else e.value.title(),
                key=f"etype_{key}",
            )

    col_save, col_clear, col_remove = st.columns(3)
    with col_save:
        if st.button("💾 Apply", key=f"apply_{key}"):
            try:
                amount = Decimal(amount_text) if amount_text.strip() else None
            except InvalidOperation:
                st.error(f'Amount "{amount_text}" is not a number')
                return
            changes.update(
                description=description,
                amount=amount,
                transaction_date=transaction_date,
                category_id=category_id,
            )
            edited = {
                field: value for field, value in changes.items()
                if getattr(candidate, field) != value
            }
            if edited:
                run_async(session.edit(index, **edited))
            st.rerun()
    with col_clear:
        if candidate.errors and st.button("🧹 Dismiss problems", key=f"clear_{key}"):
            run_async(session.clear_errors(index))
            st.rerun()
    with col_remove:
        if st.button("❌ Remove", key=f"remove_{key}"):
            run_async(session.remove(index))
            st.rerun()


def _select_label(option_id, name, guess) -> str:
    if option_id is None:
        return f"Select... (parsed: {guess})" if guess else "Select..."
    return name or option_id


def render_transactions_page(session: IngestionSession):
    """Render the stored transactions with multi-delete."""
    st.title("📊 Your Transactions")

    try:
        transactions = run_async(session.refresh())
    except StorageError as e:
        st.error(f"Could not load transactions: {e}")
        return

    flash = st.session_state.pop("flash", None)
    if flash:
        level, message = flash
        getattr(st, level)(message)

    if not transactions:
        st.info("📋 Your transactions will appear here once you add them.")
        return

    snapshot = session.catalog_snapshot
    st.dataframe(
        [
            {
                "Date": t.transaction_date.strftime("%d/%m/%Y"),
                "Type": t.transaction_type.value.title(),
                "Description": t.description,
                "Amount (₹)": float(t.amount),
                "Category": snapshot.category_name(t.category_id) or t.category_id,
                "Payment method": snapshot.payment_method_name(t.payment_method_id) or "",
                "Expense type": t.expense_type.value.title() if t.expense_type else "",
                "Source": t.source or "",
            }
            for t in transactions
        ],
        use_container_width=True,
        hide_index=True,
    )

    by_id = {t.id: t for t in transactions}
    to_delete = st.multiselect(
        "Select transactions to delete",
        options=list(by_id),
        format_func=lambda tid: (
            f"{by_id[tid].transaction_date:%d/%m/%Y} · {by_id[tid].description} · ₹{by_id[tid].amount:,.2f}"
        ),
    )
    if to_delete and st.button(f"🗑️ Delete {len(to_delete)}", type="primary"):
        result = run_async(session.delete_transactions(to_delete))
        if result.error_count:
            details = "; ".join(f"{e.id}: {e.error}" for e in result.errors)
            st.session_state.flash = ("warning", f"{result.success_count} deleted, {result.error_count} failed. {details}")
        else:
            st.session_state.flash = ("success", f"{result.success_count} deleted")
        st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Google Sheets (Storage)", "google_sheets"),
        ("Gemini (AI parsing)", "gemini"),
        ("Application", "app"),
    ]

    for name, key in services:
        if status.get(key, False):
            st.success(f"✅ {name} - Configured")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "To configure the application, create a `.env` file with your keys. "
        "See `.env.example` for the required variables."
    )


if __name__ == "__main__":
    main()
