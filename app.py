import streamlit as st
import pandas as pd
import tempfile
import time
from datetime import date, timedelta
from pathlib import Path

from database import SessionLocal, init_db
from auth import authenticate, register_user, get_user
from categories import get_categories_by_type, seed_default_categories
from dashboard import transactions_to_df, kpis, cat_spend, income_vs_expense_monthly, category_breakdown
from document_parser import ExtractionError, extract_text
from errors import AuthError, FinanceTrackerError
from receipt_parser import interpret
from storage import StorageError, allowed_receipt_type, build_receipt_name, save_receipt, MAX_RECEIPT_BYTES
from transactions import (
    add_transaction,
    delete_transaction,
    get_transaction_stats,
    get_transactions,
    summarize_totals,
)

# --- Configuration ---
st.set_page_config(page_title="Personal Finance Tracker", layout="wide", page_icon="💰")

# --- Database Session ---
init_db()

if "db" not in st.session_state:
    st.session_state.db = SessionLocal()
    seed_default_categories(st.session_state.db)

def get_db():
    return st.session_state.db

# --- Authentication ---
def check_login():
    """Sign-in / registration page with a short lockout after repeated failures."""
    if "authenticated" not in st.session_state:
        st.session_state["authenticated"] = False
        st.session_state["user_id"] = None
        st.session_state["failed_attempts"] = []
        st.session_state["lock_until"] = None

    if st.session_state.get("authenticated", False):
        return True

    st.title("💰 Personal Finance Tracker")
    login_tab, register_tab = st.tabs(["Sign In", "Register"])

    with login_tab:
        email = st.text_input("Email", placeholder="Enter your email", key="login_email")
        password = st.text_input("Password", type="password", placeholder="Enter your password", key="login_pass")

        now = time.time()
        lock_until = st.session_state.get("lock_until")
        if lock_until and now < lock_until:
            wait_for = int(lock_until - now)
            st.error(f"Too many failed attempts. Please wait {wait_for} seconds before trying again.")
        elif st.button("Sign In", key="login_btn", type="primary", use_container_width=True):
            # Prune stale attempts (keep last 5 minutes)
            st.session_state["failed_attempts"] = [t for t in st.session_state.get("failed_attempts", []) if now - t < 300]

            user = authenticate(get_db(), email, password)
            if user:
                st.session_state["authenticated"] = True
                st.session_state["user_id"] = user.id
                st.session_state["failed_attempts"] = []
                st.session_state["lock_until"] = None
                st.rerun()
            else:
                st.session_state["failed_attempts"].append(now)
                st.error("❌ Invalid email or password.")
                if len(st.session_state["failed_attempts"]) >= 5:
                    st.session_state["lock_until"] = now + 60

    with register_tab:
        with st.form("register"):
            username = st.text_input("Username")
            reg_email = st.text_input("Email")
            reg_password = st.text_input("Password", type="password")
            if st.form_submit_button("Create Account", use_container_width=True):
                try:
                    user = register_user(get_db(), username, reg_email, reg_password)
                except AuthError as e:
                    st.error(str(e))
                else:
                    st.session_state["authenticated"] = True
                    st.session_state["user_id"] = user.id
                    st.rerun()

    return st.session_state.get("authenticated", False)

if not check_login():
    st.stop()

db = get_db()
user_id = st.session_state["user_id"]
current_user = get_user(db, user_id)
if current_user is None:
    st.session_state["authenticated"] = False
    st.rerun()

# --- Helpers ---
def category_names(txn_type: str) -> list[str]:
    return [c.name for c in get_categories_by_type(db, txn_type)]

def transaction_form(key: str, defaults: dict, receipt=None):
    """
    Add-transaction form.  ``defaults`` pre-fills the fields, e.g. from a
    processed receipt; nothing is saved until the user submits.
    """
    txn_type = st.radio("Type", ["expense", "income"], horizontal=True, key=f"{key}_type")
    names = category_names(txn_type)
    default_category = defaults.get("category")
    index = names.index(default_category) if default_category in names else 0

    with st.form(key):
        amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f",
                                 value=float(defaults.get("amount") or 0.0))
        category = st.selectbox("Category", names, index=index if names else None)
        description = st.text_input("Description", value=defaults.get("description", ""))
        txn_date = st.date_input("Date", value=date.today())
        submitted = st.form_submit_button("Save Transaction", type="primary")

    if not submitted:
        return None
    if amount <= 0:
        st.error("Please enter a valid amount")
        return None

    receipt_path = None
    try:
        if receipt is not None:
            receipt_path = save_receipt(build_receipt_name(receipt.name), receipt.getvalue())
        txn = add_transaction(db, user_id, type=txn_type, amount=amount, category=category,
                              date=txn_date, description=description, receipt_path=receipt_path)
    except (FinanceTrackerError, StorageError) as e:
        st.error(str(e))
        return None
    st.success(f"Saved {txn.type} of ${txn.amount:,.2f} in {txn.category}.")
    return txn

# --- Sidebar ---
with st.sidebar:
    st.header(f"👋 {current_user.username}")
    page = st.radio("Navigate", ["📊 Dashboard", "➕ Add Transaction", "📄 Receipt Upload",
                                 "💳 Transactions", "📈 Analytics"])
    st.divider()
    if st.button("🚪 Logout", use_container_width=True):
        st.session_state["authenticated"] = False
        st.session_state["user_id"] = None
        st.session_state.pop("receipt_result", None)
        st.rerun()

# --- Pages ---
if page == "📊 Dashboard":
    st.header("📊 Dashboard")
    end = date.today()
    start = end - timedelta(days=30)
    recent = get_transactions(db, user_id, start, end)
    st.caption(f"Last 30 days ({start:%b %d} - {end:%b %d})")
    kpis(summarize_totals(recent))

    stats = get_transaction_stats(db, user_id)
    col1, col2 = st.columns(2)
    with col1:
        if stats["stats"]:
            st.plotly_chart(cat_spend(stats["stats"]), use_container_width=True)
        else:
            st.info("No transactions yet. Add one to see your spending breakdown.")
    with col2:
        df = transactions_to_df(recent)
        st.subheader("Recent Transactions")
        st.dataframe(df[["Date", "Type", "Category", "Description", "Amount"]].head(10), use_container_width=True)

elif page == "➕ Add Transaction":
    st.header("➕ Add Transaction")
    transaction_form("add_transaction", {})

elif page == "📄 Receipt Upload":
    st.header("📄 Receipt Upload & Processing")
    st.caption("Upload an image (JPG, PNG) or PDF receipt to pre-fill a transaction. Review before saving.")
    uploaded = st.file_uploader("Receipt", type=["png", "jpg", "jpeg", "webp", "pdf"])

    if uploaded is not None and st.button("🔍 Process Receipt"):
        if not allowed_receipt_type(uploaded.type):
            st.error("Only images and PDF files are allowed")
        elif uploaded.size > MAX_RECEIPT_BYTES:
            st.error("File too large (max 5MB)")
        else:
            with st.spinner("Extracting text..."):
                with tempfile.TemporaryDirectory() as tmp:
                    path = Path(tmp) / f"upload{Path(uploaded.name).suffix}"
                    path.write_bytes(uploaded.getvalue())
                    try:
                        text = extract_text(path, uploaded.type)
                    except ExtractionError:
                        st.error("Failed to process receipt")
                        text = None
            if text is not None:
                st.session_state["receipt_result"] = {"text": text, "data": interpret(text).to_dict()}

    result = st.session_state.get("receipt_result")
    if result:
        with st.expander("Extracted text"):
            st.text(result["text"])
        st.subheader("Review Transaction")
        if transaction_form("receipt_transaction", result["data"], receipt=uploaded):
            st.session_state.pop("receipt_result", None)

elif page == "💳 Transactions":
    st.header("💳 Transactions")
    col1, col2 = st.columns(2)
    start = col1.date_input("From", value=date.today() - timedelta(days=90))
    end = col2.date_input("To", value=date.today())
    txns = get_transactions(db, user_id, start, end)
    df = transactions_to_df(txns)

    if df.empty:
        st.info("No transactions in this range.")
    else:
        search = st.text_input("Search description")
        if search:
            df = df[df["Description"].str.contains(search, case=False, na=False)]
        st.dataframe(df[["Date", "Type", "Category", "Description", "Amount"]], use_container_width=True)

        with st.expander("🗑️ Delete a transaction"):
            labels = {f"{r.Date:%Y-%m-%d} · {r.Description or r.Category} · ${r.Amount:,.2f}": int(r.ID)
                      for r in df.itertuples()}
            choice = st.selectbox("Transaction", list(labels))
            if st.button("Delete", type="secondary"):
                try:
                    delete_transaction(db, user_id, labels[choice])
                except FinanceTrackerError as e:
                    st.error(str(e))
                else:
                    st.success("Deleted.")
                    st.rerun()

elif page == "📈 Analytics":
    st.header("📈 Analytics")
    stats = get_transaction_stats(db, user_id)
    if not stats["stats"]:
        st.info("No data to analyze yet.")
    else:
        col1, col2 = st.columns(2)
        with col1:
            st.plotly_chart(cat_spend(stats["stats"]), use_container_width=True)
        with col2:
            st.plotly_chart(income_vs_expense_monthly(stats["monthly_stats"]), use_container_width=True)

        st.subheader("By Category")
        breakdown = category_breakdown(stats["stats"])
        st.dataframe(
            pd.DataFrame({
                "Type": breakdown["type"].str.title(),
                "Category": breakdown["category"],
                "Total": breakdown["total"].map("${:,.2f}".format),
                "Count": breakdown["count"],
                "Share %": breakdown["share"],
            }),
            use_container_width=True,
        )
