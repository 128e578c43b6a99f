"""Reports"""
from datetime import date, timedelta

import streamlit as st

from components.charts import create_inventory_bar, create_revenue_chart
from components.session import get_api, require_login, show_notifications
from config.constants import ReportType, Role
from core.list_view import load
from core.reports import (
    DATE_RANGES, FINANCIAL_DESCRIPTION, GARDENS, GRANULARITIES, INTAKE_FILTER_LABELS, SECTIONS,
    build_dataset, financial_first_header, meta_line, report_params, tab_label, tabs_for_role,
)
from data_manager.excel_handler import export_report_bytes, report_file_name, to_csv

st.set_page_config(page_title="Reports", page_icon="📑", layout="wide")
st.title("📑 Reports")

session = require_login([Role.ADMIN.value, Role.STAFF.value, Role.CASHIER.value])
show_notifications()
api = get_api()

report_keys = tabs_for_role(session.role)

# ---- filters ----
with st.sidebar:
    st.header("Filters")
    date_range = st.selectbox("Date Range", list(DATE_RANGES), format_func=DATE_RANGES.get)
    start_date = end_date = ""
    if date_range == "custom":
        start = st.date_input("Start Date", value=date.today() - timedelta(days=30))
        end = st.date_input("End Date", value=date.today())
        if start > end:
            st.error("Start date must be before end date")
        else:
            start_date, end_date = start.isoformat(), end.isoformat()
    granularity = st.selectbox("Granularity", list(GRANULARITIES), index=1, format_func=GRANULARITIES.get)
    section = st.selectbox("Section", list(SECTIONS), format_func=SECTIONS.get)
    garden = st.selectbox("Garden", GARDENS, format_func=lambda g: "All Gardens" if g == "all" else g)
    if ReportType.INTAKE.value in report_keys:
        intake_filter = st.selectbox(
            "Payments Filter", ["today", "30days", "all"],
            format_func=lambda f: INTAKE_FILTER_LABELS.get(f, "All Time"),
        )
    else:
        intake_filter = "all"
    if st.button("🔄 Refresh"):
        st.rerun()

params = report_params(date_range, granularity, section, garden, start_date, end_date)
if params is None:
    st.info("Pick a start and end date to load the custom range.")
    st.stop()

with st.spinner("Loading reports..."):
    state = load(lambda: api.reports(**params))
if not state.is_loaded:
    st.error(f"Failed to load reports: {state.error}")
    st.stop()
reports = state.data.get("reports") or state.data.get("data") or {}

intake_state = None
if ReportType.INTAKE.value in report_keys:
    intake_state = load(lambda: api.intake_payments(intake_filter))


def render_report(report_key: str):
    label = tab_label(report_key)
    if report_key == ReportType.INTAKE.value and not intake_state.is_loaded:
        st.error(f"Failed to load payments: {intake_state.error}")
        return
    dataset = build_dataset(
        report_key, reports,
        intake_payments=intake_state.data if report_key == ReportType.INTAKE.value else None,
        granularity=granularity, date_range=date_range,
    )
    meta = meta_line(report_key, date_range, granularity, section, garden, start_date, end_date, intake_filter)

    st.subheader(dataset.title)
    st.caption(meta)
    if report_key == ReportType.FINANCIAL.value:
        st.caption(FINANCIAL_DESCRIPTION)
        if reports.get("financial"):
            st.plotly_chart(
                create_revenue_chart(reports["financial"], financial_first_header(granularity, date_range)),
                width='stretch', key=f"chart_{report_key}",
            )
    elif report_key == ReportType.INVENTORY.value and reports.get("inventory"):
        st.plotly_chart(create_inventory_bar(reports["inventory"]), width='stretch', key=f"chart_{report_key}")

    if not dataset.rows:
        st.info("No data for the selected filters.")
        return
    st.dataframe(dataset.to_dataframe(), width='stretch', hide_index=True)

    c1, c2, _ = st.columns([1, 1, 4])
    with c1:
        st.download_button(
            "📥 Excel",
            data=export_report_bytes(dataset, report_key, meta),
            file_name=report_file_name(label),
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            key=f"xlsx_{report_key}",
        )
    with c2:
        st.download_button(
            "📄 CSV",
            data=to_csv(dataset),
            file_name=report_file_name(label).rsplit(".", 1)[0] + ".csv",
            mime="text/csv",
            key=f"csv_{report_key}",
        )


for tab, key in zip(st.tabs([tab_label(k) for k in report_keys]), report_keys):
    with tab:
        render_report(key)
