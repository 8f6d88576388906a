from __future__ import annotations

import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path
from typing import MutableMapping, Optional

import streamlit as st

from shopledger.auth import User, clear_current_user, current_user, sign_out
from shopledger.config import SESSION_DATA_DIR_KEY, Settings, get_settings, persist_data_dir
from shopledger.db import get_conn
from shopledger.log import configure_logging
from shopledger.services.reports import DATE_PRESETS, date_range_for_preset

logger = logging.getLogger(__name__)

PRESET_LABELS = {
    "all": "All time",
    "today": "Today",
    "yesterday": "Yesterday",
    "this_week": "This week",
    "last_week": "Last week",
    "this_month": "This month",
    "last_month": "Last month",
    "this_year": "This year",
    "last_year": "Last year",
    "custom": "Custom range",
}


def bootstrap() -> tuple[Settings, sqlite3.Connection]:
    settings = get_settings()
    configure_logging(settings.log_level)
    conn = get_conn(settings.db_path)
    return settings, conn


def require_user(conn: sqlite3.Connection) -> User:
    """Stop the page for anonymous sessions; otherwise render the account sidebar."""
    user = current_user()
    if user is None:
        st.warning("Please sign in to continue.")
        st.stop()

    with st.sidebar:
        st.write(f"Signed in as **{user.name}**")
        if st.button("Sign out", key="sidebar_sign_out"):
            sign_out(conn, user)
            clear_current_user()
            st.rerun()
    return user


def switch_data_dir(
    data_dir_str: str,
    state: Optional[MutableMapping] = None,
    *,
    default_dir: Optional[Path] = None,
) -> Path:
    """
    Persist and select a new data directory. The signed-in user belongs to the
    old database, so the session is signed out.
    """
    data_dir = persist_data_dir(data_dir_str, default_dir=default_dir)
    s = st.session_state if state is None else state
    s[SESSION_DATA_DIR_KEY] = str(data_dir)
    clear_current_user(s)
    logger.info("Data directory switched to %s", data_dir)
    return data_dir


def date_filter(key: str, default: str = "all") -> tuple[Optional[datetime], Optional[date]]:
    """Preset/custom period picker. Returns (start, end); (None, None) for all time."""
    options = ["all", *DATE_PRESETS, "custom"]
    preset = st.selectbox(
        "Period",
        options=options,
        index=options.index(default),
        format_func=lambda p: PRESET_LABELS[p],
        key=f"{key}_preset",
    )
    if preset == "all":
        return None, None
    if preset == "custom":
        c1, c2 = st.columns(2)
        start = c1.date_input("From", key=f"{key}_from")
        end = c2.date_input("To", key=f"{key}_to")
        return datetime.combine(start, datetime.min.time()), end
    return date_range_for_preset(preset)


def show_error(e: Exception, what: str) -> None:
    logger.exception("Error %s", what)
    st.error(str(e))
