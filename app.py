"""Memorial park dashboard - main entry"""
import logging

import streamlit as st

from components.metrics import render_dashboard_stats
from components.session import current_session, get_api, show_notifications, sign_in, sign_out
from config.constants import Role
from config.settings import COMPANY_NAME, LAYOUT, PAGE_ICON, PAGE_TITLE, configure_logging
from data_manager.api_client import ApiRejection, NetworkError
from utils.formatters import capitalize_first

configure_logging()
logger = logging.getLogger(__name__)

st.set_page_config(
    page_title=PAGE_TITLE,
    page_icon=PAGE_ICON,
    layout=LAYOUT,
    initial_sidebar_state="expanded",
)

st.title(f"{PAGE_ICON} {PAGE_TITLE}")
show_notifications()

session = current_session()

if not session.authenticated:
    st.markdown(f"Sign in to the **{COMPANY_NAME}** management dashboard.")
    with st.form("login_form"):
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign In", type="primary")
    if submitted:
        if not username or not password:
            st.error("Please enter your username and password.")
        else:
            try:
                sign_in(get_api().login(username, password))
                st.rerun()
            except ApiRejection as e:
                st.error(e.message or "Invalid username or password.")
            except NetworkError as e:
                st.error(str(e))
    st.stop()

PAGES_BY_ROLE = {
    Role.ADMIN.value: [
        ("👥 **Accounts**", "Create, edit and import user accounts"),
        ("🏷️ **Lot Ownership**", "Assign, transfer and remove lot ownership"),
        ("📊 **Reports**", "Export financial, inventory and aging reports to Excel"),
        ("📝 **Activity Log**", "Review who changed what"),
    ],
    Role.STAFF.value: [
        ("👥 **Accounts**", "Manage customer accounts"),
        ("🏷️ **Lot Ownership**", "Assign lots to customers"),
        ("🕊️ **Deceased Records**", "Record interments and vault options"),
        ("🔎 **Lot Search**", "Find lots by code, owner or status"),
        ("📊 **Reports**", "Lot inventory by garden and section"),
    ],
    Role.CASHIER.value: [
        ("💳 **Payments**", "Installment schedules and payment intake"),
        ("📊 **Reports**", "Payments and intake reports"),
    ],
    Role.CUSTOMER.value: [
        ("💳 **Payments**", "Your installment schedule and online payment"),
        ("🧭 **Directional Guide**", "Walking route from the main gate to your lot"),
    ],
}

st.markdown(f"Welcome, **{session.username}** ({capitalize_first(session.role)})")

if session.role == Role.ADMIN.value:
    try:
        data = get_api().dashboard_stats()
        render_dashboard_stats(data.get("stats") or data)
    except (ApiRejection, NetworkError) as e:
        st.warning(f"Dashboard stats unavailable: {e}")

st.markdown("### Your pages")
table = "| Page | Purpose |\n|------|---------|\n" + "\n".join(
    f"| {page} | {purpose} |" for page, purpose in PAGES_BY_ROLE.get(session.role, [])
)
st.markdown(table)

with st.sidebar:
    st.markdown("### About")
    st.markdown(COMPANY_NAME)
    if st.button("Sign Out"):
        try:
            get_api().logout()
        except (ApiRejection, NetworkError) as e:
            logger.warning("Logout request failed: %s", e)
        sign_out()
        st.rerun()
