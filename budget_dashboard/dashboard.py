"""Streamlit home page of the budget dashboard.

Shows this month's budget at a glance: income, fixed costs and what is
left, progress per category, the month-end forecast, and quick entry of
expenses by form, free text or receipt photo.  Pro users also get the
yearly projection, weekly savings challenges and the chat assistant.

To run the dashboard from the command line::

    streamlit run budget_dashboard/dashboard.py

Additional pages live in ``pages/`` and are discovered by Streamlit.
"""

from __future__ import annotations

import base64
import os
import sqlite3
import sys
from datetime import date
from typing import Any, Dict, List

import streamlit as st

# Support both ``python -m budget_dashboard.dashboard`` and
# ``streamlit run budget_dashboard/dashboard.py``.
if __package__:
    from . import ai_gateway, analytics, db
    from . import budget_engine as engine
    from . import visualization as viz
    from .formatting import format_currency, format_signed_currency
    from .models import Transaction
    from .shared_sidebar import render_shared_sidebar
else:
    CURRENT_DIR = os.path.dirname(os.path.abspath(__file__))
    PARENT_DIR = os.path.dirname(CURRENT_DIR)
    if PARENT_DIR not in sys.path:
        sys.path.insert(0, PARENT_DIR)
    from budget_dashboard import ai_gateway, analytics, db  # type: ignore
    from budget_dashboard import budget_engine as engine  # type: ignore
    from budget_dashboard import visualization as viz  # type: ignore
    from budget_dashboard.formatting import format_currency, format_signed_currency  # type: ignore
    from budget_dashboard.models import Transaction  # type: ignore
    from budget_dashboard.shared_sidebar import render_shared_sidebar  # type: ignore

STATUS_LABELS = {
    'good': ("✅", "On track"),
    'warning': ("⚠️", "Slightly over budget"),
    'danger': ("🚨", "Over budget"),
}
NOTICE_KEY = "entry_notice"


def _save_expenses(workspace: Dict[str, Any], parsed: List[ai_gateway.ParsedExpense], when: date) -> int:
    """Store parsed expenses, matching category names to the user's categories."""
    by_name = {c.name.lower(): c.id for c in workspace['categories']}
    saved = 0
    for item in parsed:
        db.create_transaction(
            workspace['user_id'],
            item.amount,
            when,
            'expense',
            category_id=by_name.get(item.category.lower()),
            description=item.description,
            db_path=workspace['db_path'],
        )
        saved += 1
    return saved


def _notify_and_rerun(message: str) -> None:
    """Rerun so the totals include the new entries, keeping the message for the next run."""
    st.session_state[NOTICE_KEY] = message
    st.rerun()


def render_summary(summary, forecast) -> None:
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Income", format_currency(summary.total_income))
    col2.metric("Fixed costs", format_currency(summary.fixed_costs))
    col3.metric("Disposable", format_currency(summary.disposable_income))
    col4.metric(
        "Remaining",
        format_currency(summary.remaining),
        delta=format_signed_currency(summary.remaining),
        delta_color="normal",
    )

    icon, label = STATUS_LABELS.get(forecast.status, ("", forecast.status))
    st.subheader(f"{icon} Month-end forecast: {label}")
    f1, f2, f3 = st.columns(3)
    f1.metric("Spent so far", format_currency(forecast.current_expense))
    f2.metric("Daily average", format_currency(forecast.daily_average))
    f3.metric(
        "Projected month-end spending",
        format_currency(forecast.projected_expense),
        delta=f"{forecast.days_remaining} days left",
        delta_color="off",
    )
    if forecast.status == 'good':
        st.success(f"At this pace you will finish {format_currency(forecast.budget_gap)} under budget.")
    elif forecast.status == 'warning':
        st.warning(f"At this pace you will overspend by {format_currency(-forecast.budget_gap)}.")
    else:
        st.error(f"At this pace you will overspend by {format_currency(-forecast.budget_gap)}. Time to cut back.")


def render_manual_input(workspace: Dict[str, Any]) -> None:
    categories = workspace['categories']
    with st.form("manual_input", clear_on_submit=True):
        c1, c2, c3 = st.columns(3)
        txn_type = c1.radio("Type", options=["expense", "income"], horizontal=True)
        amount = c2.number_input("Amount (¥)", min_value=0, step=100)
        txn_date = c3.date_input("Date", value=date.today())
        category = st.selectbox(
            "Category",
            options=[None] + categories,
            format_func=lambda c: "(none)" if c is None else c.name,
        )
        description = st.text_input("Description")
        submitted = st.form_submit_button("Add")
    if submitted:
        if amount <= 0:
            st.warning("Enter an amount greater than zero.")
            return
        try:
            db.create_transaction(
                workspace['user_id'],
                amount,
                txn_date,
                txn_type,
                category_id=category.id if category else None,
                description=description,
                db_path=workspace['db_path'],
            )
        except (ValueError, sqlite3.Error) as e:
            st.error(f"Could not save the transaction: {e}")
            return
        _notify_and_rerun("Saved.")


def render_text_input(workspace: Dict[str, Any]) -> None:
    names = [c.name for c in workspace['categories']]
    text = st.text_input("Describe your spending", placeholder="lunch 1,200円, train ¥460")
    if st.button("Parse and save", disabled=not text):
        try:
            parsed = ai_gateway.parse_expense_text(text, names or None)
        except ai_gateway.GatewayInputError as e:
            st.warning(str(e))
            return
        if not parsed:
            st.info("No amounts found in the text.")
            return
        saved = _save_expenses(workspace, parsed, date.today())
        details = ", ".join(f"{p.description} {format_currency(p.amount)}" for p in parsed)
        _notify_and_rerun(f"Saved {saved} expense(s): {details}")


def render_receipt_input(workspace: Dict[str, Any]) -> None:
    upload = st.file_uploader("Receipt photo", type=["jpg", "jpeg", "png"])
    if upload is None:
        return
    if st.button("Scan receipt"):
        mime = upload.type or "image/jpeg"
        image_b64 = f"data:{mime};base64,{base64.b64encode(upload.getvalue()).decode('ascii')}"
        names = [c.name for c in workspace['categories']]
        parsed = ai_gateway.parse_receipt(image_b64, names or None)
        if not parsed:
            st.warning("The receipt could not be read.")
            return
        _save_expenses(workspace, parsed, date.today())
        receipt = parsed[0]
        _notify_and_rerun(f"Receipt saved: {receipt.description} {format_currency(receipt.amount)}")


def render_yearly(transactions: List[Transaction], target_income) -> None:
    yearly = engine.project_yearly(transactions, target_income)
    st.subheader(f"📅 {yearly.year} so far")
    y1, y2, y3 = st.columns(3)
    y1.metric("Income", format_currency(yearly.income), delta=format_signed_currency(yearly.income_gap))
    y2.metric("Spending", format_currency(yearly.expense))
    y3.metric("Savings", format_currency(yearly.savings))
    st.caption(
        f"Projected savings for the full year: {format_currency(yearly.projected_yearly_savings)} "
        f"(spending {format_currency(yearly.projected_yearly_expense)})"
    )


def render_challenges(workspace: Dict[str, Any], month_txns: List[Transaction]) -> None:
    st.subheader("🏆 This week's challenges")
    if st.button("Suggest challenges"):
        data = ai_gateway.build_spending_data(workspace['categories'], month_txns)
        st.session_state['challenges'] = ai_gateway.generate_challenges(data)
    for challenge in st.session_state.get('challenges', []):
        with st.container(border=True):
            st.markdown(f"**{challenge.title}** · _{challenge.difficulty}_")
            st.write(challenge.description)
            st.caption(challenge.target)


def render_chat(workspace: Dict[str, Any], summary, month_txns: List[Transaction]) -> None:
    st.subheader("💬 Ask about your budget")
    history = st.session_state.setdefault('chat_history', [])
    for turn in history:
        with st.chat_message(turn['role']):
            st.write(turn['content'])
    message = st.chat_input("How much did I spend this month?")
    if message:
        context = ai_gateway.build_chat_context(summary, workspace['categories'], month_txns)
        reply = ai_gateway.chat_reply(message, context, history)
        history.append({'role': 'user', 'content': message})
        history.append({'role': 'assistant', 'content': reply})
        st.rerun()


def main() -> None:
    """Entry point for the Streamlit app."""
    st.set_page_config(page_title="Budget Dashboard", page_icon="💴", layout="wide")
    workspace = render_shared_sidebar()

    profile = workspace['profile']
    categories = workspace['categories']
    today = date.today()
    month_txns = analytics.this_month(workspace['transactions'], today)

    summary = engine.compute_budget_summary(profile.target_income, categories, month_txns)
    progress = engine.compute_category_progress(categories, month_txns, summary.disposable_income)
    forecast = engine.forecast_month_end(month_txns, profile.target_income, summary.fixed_costs, today)

    st.title(f"💴 {today.strftime('%B %Y')}")
    notice = st.session_state.pop(NOTICE_KEY, None)
    if notice:
        st.success(notice)
    render_summary(summary, forecast)

    left, right = st.columns(2)
    with left:
        st.plotly_chart(viz.create_budget_breakdown_chart(summary), use_container_width=True)
    with right:
        st.plotly_chart(viz.create_category_progress_chart(progress), use_container_width=True)

    over = [p for p in progress if p.is_over_budget]
    if over:
        st.warning("Over budget: " + ", ".join(f"{p.name} ({p.progress:.0f}%)" for p in over))

    st.header("➕ Add")
    tab_form, tab_text, tab_receipt = st.tabs(["Form", "Text", "Receipt"])
    with tab_form:
        render_manual_input(workspace)
    with tab_text:
        render_text_input(workspace)
    with tab_receipt:
        if profile.is_pro:
            render_receipt_input(workspace)
        else:
            st.info("Receipt scanning is a Pro feature.")

    if profile.is_pro:
        render_yearly(workspace['transactions'], profile.target_income)
        render_challenges(workspace, month_txns)
        render_chat(workspace, summary, month_txns)
    else:
        st.info("Upgrade to Pro in Settings for the yearly projection, savings challenges and the chat assistant.")


if __name__ == "__main__":  # pragma: no cover
    main()
