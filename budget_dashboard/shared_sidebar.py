"""Shared sidebar and data loading for every dashboard page.

Each page calls :func:`render_shared_sidebar` once.  It resolves the
database and user from configuration, bootstraps a first-time user with
a profile and the preset categories, loads the data the page needs and
draws the common sidebar.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict

import streamlit as st

from . import db
from .config import DEFAULT_USER_ID, get_db_path, get_openai_api_key
from .export import categories_to_csv, export_filename, transactions_to_csv
from .formatting import format_currency

logger = logging.getLogger(__name__)


def load_workspace(user_id: str, db_path: str) -> Dict[str, Any]:
    """Load profile, categories and transactions for ``user_id``."""
    profile = db.ensure_profile(user_id, db_path)
    categories = db.ensure_default_categories(user_id, db_path)
    transactions = db.get_transactions(user_id, db_path=db_path)
    return {
        'user_id': user_id,
        'db_path': db_path,
        'profile': profile,
        'categories': categories,
        'transactions': transactions,
    }


def render_shared_sidebar() -> Dict[str, Any]:
    """Render shared sidebar elements available on all pages.

    Returns:
        Dict with keys: 'user_id', 'db_path', 'profile', 'categories',
        'transactions'
    """
    try:
        workspace = load_workspace(DEFAULT_USER_ID, get_db_path())
    except sqlite3.Error as e:
        st.error(f"Could not open the budget database: {e}")
        st.stop()

    profile = workspace['profile']
    st.sidebar.title("💴 Budget")
    st.sidebar.caption(f"User: {workspace['user_id']}")
    tier_label = "⭐ Pro" if profile.is_pro else "Free"
    st.sidebar.markdown(f"**Plan:** {tier_label}")
    st.sidebar.markdown(f"**Target income:** {format_currency(profile.target_income)}")
    st.sidebar.markdown(f"**Payday:** day {profile.salary_day}")
    if not get_openai_api_key():
        st.sidebar.info("AI features use local rules. Set OPENAI_API_KEY to use the hosted model.")

    st.sidebar.subheader("📥 Export")
    st.sidebar.download_button(
        "Transactions CSV",
        data=transactions_to_csv(workspace['transactions'], workspace['categories']),
        file_name=export_filename('transactions'),
        mime='text/csv',
    )
    st.sidebar.download_button(
        "Categories CSV",
        data=categories_to_csv(workspace['categories']),
        file_name=export_filename('categories'),
        mime='text/csv',
    )
    return workspace
