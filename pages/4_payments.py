"""Payments"""
import streamlit as st

from components.charts import create_schedule_status_pie
from components.metrics import render_payment_quote, render_schedule_metrics
from components.session import get_api, notify, require_login, show_notifications
from components.tables import schedule_frame
from config.constants import Role
from config.settings import APP_BASE_URL, FOLLOWUP_TICK
from core.list_view import load
from core.payment_monitor import AutoSync, CheckoutMonitor, store_for_user
from core.payment_schedule import (
    bulk_payment_items, find_plan, format_month_label, initial_collapsed, is_lot_fully_paid,
    next_due_amount, office_amount, payable_lots, quote_next_payment, schedule_summary,
    select_month_for_lot, unpaid_run,
)
from data_manager.api_client import ApiRejection, DashboardError, NetworkError
from utils.date_utils import fmt_local_date
from utils.formatters import fmt_amount, to_number

st.set_page_config(page_title="Payments", page_icon="💳", layout="wide")
st.title("💳 Payments")

session = require_login([Role.CUSTOMER.value, Role.CASHIER.value, Role.ADMIN.value])
show_notifications()
api = get_api()


def _mark_stale():
    st.session_state["payments_stale"] = True


# ---- background follow-up, driven by fragment reruns ----
if "checkout_monitor" not in st.session_state:
    monitor = CheckoutMonitor(api, store=store_for_user(session.user_id), on_refresh=_mark_stale, notify=notify)
    monitor.resume_pending(schedule=False)
    st.session_state["checkout_monitor"] = monitor
    st.session_state["auto_sync"] = AutoSync(api, on_refresh=_mark_stale, notify=notify)
monitor: CheckoutMonitor = st.session_state["checkout_monitor"]
auto_sync: AutoSync = st.session_state["auto_sync"]

params = st.query_params
if params.get("payment") == "success":
    st.success("Payment completed. Syncing latest records…")
    if params.get("checkout_id"):
        monitor.start(params["checkout_id"], schedule=False)
    auto_sync.sync_once()
    params.clear()
elif params.get("payment") == "cancelled":
    st.error("Payment was cancelled. You can try again anytime.")
    params.clear()


@st.fragment(run_every=FOLLOWUP_TICK)
def payment_followup():
    """Checkout polls and auto-sync, each only when its interval has elapsed"""
    pending = monitor.active_ids()
    if pending:
        st.info(f"Waiting for confirmation of {len(pending)} online payment(s)...")
    monitor.poll_due()
    auto_sync.sync_if_due()
    if auto_sync.last_sync is not None:
        st.caption(f"Last synced {auto_sync.last_sync.strftime('%I:%M:%S %p')}")
    if st.session_state.pop("payments_stale", False):
        st.rerun(scope="app")


payment_followup()


def render_lot_schedules(statuses, plans, allow_online: bool, customer_id=None):
    collapsed = initial_collapsed(statuses)
    for status in statuses:
        plan = find_plan(plans, status.lot_id)
        fully_paid = is_lot_fully_paid(status, plan)
        title = status.lot_label or f"Lot {status.lot_id}"
        if fully_paid:
            title += " • Fully paid"
        with st.expander(title, expanded=not collapsed.get(status.lot_id, False)):
            summary = schedule_summary(status.monthly_payments)
            c1, c2 = st.columns([3, 1])
            with c1:
                render_schedule_metrics(summary, plan.total_amount if plan else 0.0)
            with c2:
                if summary["total"]:
                    st.plotly_chart(create_schedule_status_pie(summary), width='stretch',
                                    key=f"pie_{status.lot_id}")
            st.dataframe(schedule_frame(status.monthly_payments), width='stretch', hide_index=True)

            quote = quote_next_payment(status.monthly_payments)
            render_payment_quote(quote)
            if allow_online and quote.online_allowed:
                month = select_month_for_lot(status)
                if st.button(f"Pay {fmt_amount(quote.charge_amount)} online", key=f"pay_{status.lot_id}",
                             type="primary"):
                    try:
                        data = api.create_checkout(
                            status.lot_id, month[0], quote.charge_amount, customer_id or session.user_id,
                            success_url=f"{APP_BASE_URL}/payments?payment=success",
                            cancel_url=f"{APP_BASE_URL}/payments?payment=cancelled",
                        )
                    except ApiRejection as e:
                        st.error(e.message or "Failed to create checkout")
                    except NetworkError as e:
                        st.error(str(e))
                    else:
                        monitor.start(data.get("checkout_id"), status.lot_id, schedule=False)
                        st.link_button("Continue to payment", data.get("checkout_url", ""))


# ---- customer ----
if session.role == Role.CUSTOMER.value:
    tab_status, tab_history = st.tabs(["Monthly Status", "Payment History"])
    with tab_status:
        state = load(lambda: (api.monthly_payment_status(), api.payment_plans()))
        if not state.is_loaded:
            st.error(f"Failed to load payment status: {state.error}")
        else:
            statuses, plans = state.data
            if not statuses:
                st.info("No installment plans found for your lots.")
            render_lot_schedules(statuses, plans, allow_online=True)
    with tab_history:
        history = load(api.payment_history)
        if not history.is_loaded:
            st.error(f"Failed to load payment history: {history.error}")
        elif not history.data:
            st.info("No payments yet.")
        else:
            st.dataframe(
                [
                    {
                        "Date": fmt_local_date(p.get("payment_date")),
                        "Lot": p.get("lot_display") or "-",
                        "Amount": fmt_amount(to_number(p.get("payment_amount"))),
                        "Method": p.get("payment_method") or "-",
                        "Status": p.get("status") or "-",
                        "Receipt": p.get("receipt_url") or None,
                    }
                    for p in history.data
                ],
                column_config={"Receipt": st.column_config.LinkColumn("Receipt", display_text="View")},
                width='stretch',
                hide_index=True,
            )
    st.stop()

# ---- cashier / admin ----
c1, c2 = st.columns([4, 1])
with c2:
    if st.button("🔄 Sync online payments"):
        try:
            result = api.sync_payments()
            st.success(result.get("message") or "Sync complete")
        except DashboardError as e:
            st.error(str(e))

customers_state = load(api.list_customer_users)
if not customers_state.is_loaded:
    st.error(f"Failed to load customers: {customers_state.error}")
    st.stop()

customers = {str(c.id): c for c in customers_state.data}
customer_id = st.selectbox(
    "Customer", [""] + list(customers),
    format_func=lambda cid: customers[cid].full_name or customers[cid].username if cid else "Select...",
)
if not customer_id:
    st.stop()

state = load(lambda: (api.monthly_payment_status(customer_id), api.payment_plans(customer_id)))
if not state.is_loaded:
    st.error(f"Failed to load payment status: {state.error}")
    st.stop()
statuses, plans = state.data
render_lot_schedules(statuses, plans, allow_online=False)

st.markdown("### Record Onsite Payment")
payable = {s.lot_id: s for s in payable_lots(statuses, plans)}
if not payable:
    st.info("All lots are fully paid.")
    st.stop()

lot_id = st.selectbox("Lot", list(payable), format_func=lambda lid: payable[lid].lot_label or lid)
st.metric("Next due", fmt_amount(next_due_amount(lot_id, statuses, plans, default=0.0)))

# Months are settled oldest first; the cashier picks the last one
unpaid = unpaid_run(payable[lot_id].monthly_payments)
labels = {m.year_month: format_month_label(m) for m in unpaid}
through = st.selectbox(
    "Pay through",
    list(labels),
    index=0,
    format_func=lambda ym: labels.get(ym, ym),
)
months = unpaid_run(unpaid, through) if through else []
items = bulk_payment_items(unpaid, [m.year_month for m in months])
total = sum(i["payment_amount"] for i in items)
for m in months:
    if m.overdue:
        st.caption(f"{format_month_label(m)} is overdue: {fmt_amount(office_amount(m))} including penalty")
st.metric("Total", fmt_amount(total))

if st.button("Record Cash Payment", type="primary", disabled=not items):
    try:
        data = api.create_f2f_payment(lot_id, customer_id, items)
    except ApiRejection as e:
        st.error(e.message or "Failed to process payment")
    except NetworkError as e:
        st.error(str(e))
    else:
        count = len(data.get("processed_months") or items)
        name = customers[customer_id].full_name or "customer"
        notify("success", f"Payment of {fmt_amount(total)} processed successfully for "
                          f"{count} month{'' if count == 1 else 's'} ({name}).")
        st.rerun()
