"""Metric card components"""
import streamlit as st

from core.payment_schedule import PaymentQuote, format_month_label
from utils.formatters import fmt_amount, fmt_months, fmt_percent, to_number


def render_dashboard_stats(stats: dict):
    """Headline counts from the dashboard stats endpoint"""
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Total Lots", f"{int(to_number(stats.get('total_lots'))):,}")
    with c2:
        st.metric("Available Lots", f"{int(to_number(stats.get('available_lots'))):,}")
    with c3:
        st.metric("Customers", f"{int(to_number(stats.get('total_customers'))):,}")
    with c4:
        st.metric("Revenue", fmt_amount(to_number(stats.get('total_revenue'))))


def render_schedule_metrics(summary: dict, plan_total: float = 0.0):
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        st.metric("Paid Months", fmt_months(summary.get("paid", 0)))
    with c2:
        st.metric("Unpaid Months", fmt_months(summary.get("unpaid", 0)))
    with c3:
        st.metric("Overdue", fmt_months(summary.get("overdue", 0)))
    with c4:
        total = summary.get("total", 0)
        st.metric("Progress", fmt_percent(round(summary.get("paid", 0) * 100 / total, 1) if total else 0))
    if plan_total:
        st.caption(f"Contract price: {fmt_amount(plan_total)}")


def render_payment_quote(quote: PaymentQuote):
    """Next-due month, and the penalty breakdown when it is overdue"""
    if quote.fully_paid:
        st.success(quote.message)
        return
    c1, c2 = st.columns(2)
    with c1:
        st.metric("Next Due", format_month_label(quote.month))
    with c2:
        st.metric("Amount", fmt_amount(quote.charge_amount))
    if not quote.online_allowed:
        st.warning(quote.message)
        st.markdown(
            f"- Monthly amount: {fmt_amount(quote.base_amount)}\n"
            f"- Penalty: {fmt_amount(quote.penalty_amount)}\n"
            f"- Total due at the office: **{fmt_amount(quote.total_with_penalty)}**"
        )
