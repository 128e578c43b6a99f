"""Table components"""
from typing import Any, Callable, Dict, Sequence

import pandas as pd
import streamlit as st

from config.settings import PAGE_SIZE_OPTIONS
from core.list_view import DESC, CustomerLots, ListState, Page, PageSizeStore, SortConfig
from core.payment_schedule import format_month_label
from data_manager.schema import ActivityLogEntry, DeceasedRecord, Lot, MonthlyPayment, User
from utils.date_utils import fmt_clock_time, fmt_local_date, fmt_short_date
from utils.formatters import capitalize_first, fmt_amount


def users_frame(users: Sequence[User]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Username": u.username,
                "Name": u.full_name,
                "Email": u.email or "-",
                "Role": capitalize_first(u.role),
                "Contact": u.contact_number or "-",
                "Created": fmt_local_date(u.created_at),
            }
            for u in users
        ],
        columns=["Username", "Name", "Email", "Role", "Contact", "Created"],
    )


def deceased_frame(records: Sequence[DeceasedRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Name": r.name,
                "Date of Birth": fmt_local_date(r.date_of_birth),
                "Date of Death": fmt_local_date(r.date_of_death),
                "Burial Date": fmt_local_date(r.burial_date),
                "Location": r.lot_label or "-",
                "Status": r.status,
            }
            for r in records
        ],
        columns=["Name", "Date of Birth", "Date of Death", "Burial Date", "Location", "Status"],
    )


def lots_frame(lots: Sequence[Lot]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Lot": lot.code,
                "Garden": lot.garden,
                "Sector": lot.sector,
                "Block": lot.block_number,
                "Lot No.": lot.lot_number,
                "Status": lot.display_status,
                "Owner": lot.owner or "-",
                "Deceased": lot.deceased_display,
            }
            for lot in lots
        ],
        columns=["Lot", "Garden", "Sector", "Block", "Lot No.", "Status", "Owner", "Deceased"],
    )


def activity_frame(entries: Sequence[ActivityLogEntry]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Date": fmt_short_date(e.timestamp),
                "Time": fmt_clock_time(e.timestamp),
                "Action": e.action,
                "User": e.user,
                "Type": e.type,
                "Details": e.details,
            }
            for e in entries
        ],
        columns=["Date", "Time", "Action", "User", "Type", "Details"],
    )


def ownership_frame(groups: Sequence[CustomerLots]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "Customer": g.customer_name,
                "Lots": g.total_lots,
                "Lot Codes": g.lot_codes,
                "Status": g.status,
            }
            for g in groups
        ],
        columns=["Customer", "Lots", "Lot Codes", "Status"],
    )


def schedule_frame(months: Sequence[MonthlyPayment]) -> pd.DataFrame:
    rows = []
    for m in months:
        if m.paid:
            status = "✅ Paid"
        elif m.overdue:
            status = "⚠️ Overdue"
        else:
            status = "Unpaid"
        rows.append({
            "Month": format_month_label(m),
            "Amount": fmt_amount(m.amount),
            "With Penalty": fmt_amount(m.amount_with_penalty) if m.overdue and m.amount_with_penalty else "",
            "Status": status,
        })
    return pd.DataFrame(rows, columns=["Month", "Amount", "With Penalty", "Status"])


def render_list(
    key: str,
    rows: Sequence[Any],
    to_frame: Callable[[Sequence[Any]], pd.DataFrame],
    search_fields: Sequence[Callable[[Any], Any]],
    sort_keys: Dict[str, Callable[[Any], Any]],
    sort_labels: Dict[str, str],
    page_sizes: PageSizeStore,
    empty_message: str = "No records found.",
) -> Page:
    """Search box, sort selector, paged table and page-size picker sharing one ListState"""
    state_key = f"{key}_list_state"
    if state_key not in st.session_state:
        st.session_state[state_key] = ListState(page_size=page_sizes.get(key))
    state: ListState = st.session_state[state_key]

    c1, c2, c3 = st.columns([3, 2, 1])
    with c1:
        query = st.text_input("Search", value=state.query, key=f"{key}_search")
        if query != state.query:
            state.query = query
            state.page = 1
    with c2:
        sort_by = st.selectbox(
            "Sort by",
            options=[""] + list(sort_labels),
            format_func=lambda k: sort_labels.get(k, "None"),
            key=f"{key}_sort_key",
        )
    if not sort_by:
        state.sort = SortConfig()
    elif state.sort.key != sort_by:
        state.sort = state.sort.toggle(sort_by)
    with c3:
        arrow = "↓" if state.sort.direction == DESC else "↑"
        if st.button(arrow, key=f"{key}_sort_toggle", disabled=not sort_by):
            state.sort = state.sort.toggle(sort_by)
            st.rerun()

    page = state.apply(rows, search_fields, sort_keys)
    if page.total == 0:
        st.info(empty_message)
    else:
        st.dataframe(to_frame(page.rows), width='stretch', hide_index=True)

    c1, c2, c3 = st.columns([1, 2, 1])
    with c1:
        if st.button("Previous", key=f"{key}_prev", disabled=page.page <= 1):
            state.page = page.page - 1
            st.rerun()
    with c2:
        st.caption(f"Page {page.page} of {page.total_pages} • {page.total} records")
    with c3:
        if st.button("Next", key=f"{key}_next", disabled=page.page >= page.total_pages):
            state.page = page.page + 1
            st.rerun()

    size = st.selectbox(
        "Rows per page",
        options=PAGE_SIZE_OPTIONS,
        index=PAGE_SIZE_OPTIONS.index(state.page_size) if state.page_size in PAGE_SIZE_OPTIONS else 1,
        key=f"{key}_page_size",
    )
    if size != state.page_size:
        state.page_size = size
        state.page = 1
        page_sizes.set(key, size)
        st.rerun()
    return page
