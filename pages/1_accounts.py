"""Account management"""
import tempfile
import time
from pathlib import Path

import streamlit as st

from components.forms import render_account_wizard
from components.session import get_api, notify, require_login, show_notifications
from components.tables import render_list, users_frame
from config.constants import IMPORT_EXTENSIONS, Role
from core.account_wizard import AccountWizard
from core.import_summary import import_file
from core.list_view import (
    USER_SEARCH_FIELDS, USER_SORT_KEYS, PageSizeStore, is_master_admin, load, visible_users,
)
from data_manager.api_client import ApiRejection, DashboardError, NetworkError
from data_manager.schema import CustomerProfile

st.set_page_config(page_title="Accounts", page_icon="👥", layout="wide")
st.title("👥 Account Management")

session = require_login([Role.ADMIN.value, Role.STAFF.value])
show_notifications()
api = get_api()

state = load(api.list_users)
if not state.is_loaded:
    st.error(f"Failed to load users: {state.error}")
    if st.button("Retry"):
        st.rerun()
    st.stop()

users = visible_users(state.data, session.role)

# ---- add / edit dialog ----
wizard: AccountWizard = st.session_state.get("account_wizard")
if wizard is not None and wizard.is_open:
    with st.container(border=True):
        result = render_account_wizard(wizard)
    if result is not None and result.ok and not wizard.is_open:
        notify("success", result.message)
        st.session_state.pop("account_wizard", None)
        st.rerun()
elif wizard is not None:
    st.session_state.pop("account_wizard", None)

c1, c2 = st.columns([1, 5])
with c1:
    if st.button("➕ Add Account", type="primary"):
        st.session_state["account_wizard"] = AccountWizard(api, viewer_role=session.role)
        st.rerun()

# ---- list ----
page = render_list(
    "accounts",
    users,
    users_frame,
    USER_SEARCH_FIELDS,
    USER_SORT_KEYS,
    {"username": "Username", "name": "Name", "email": "Email", "role": "Role", "created_at": "Created"},
    PageSizeStore(),
    empty_message="No users found.",
)

if page.rows:
    st.markdown("#### Actions")
    by_label = {f"{u.username} ({u.full_name})": u for u in page.rows}
    selected = by_label[st.selectbox("Account", list(by_label))]
    c1, c2 = st.columns(2)
    with c1:
        if st.button("✏️ Edit"):
            profile = None
            if selected.role == Role.CUSTOMER.value:
                try:
                    data = api.get_profile(selected.id)
                    profile = CustomerProfile.from_api(data.get("profile") or {})
                except DashboardError as e:
                    st.warning(f"Could not load customer details: {e}")
            st.session_state["account_wizard"] = AccountWizard(
                api, viewer_role=session.role, editing=selected, profile=profile)
            st.rerun()
    with c2:
        protected = is_master_admin(selected)
        if st.button("🗑️ Delete", disabled=protected, help="The master admin cannot be deleted" if protected else None):
            st.session_state["confirm_delete_user"] = selected

    pending = st.session_state.get("confirm_delete_user")
    if pending is not None:
        st.warning(f"Delete account **{pending.username}** ({pending.full_name})? This cannot be undone.")
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Confirm Delete", type="primary"):
                st.session_state.pop("confirm_delete_user", None)
                try:
                    api.delete_user(pending.id)
                    notify("success", "User deleted successfully!")
                except ApiRejection as e:
                    notify("error", e.message or "Failed to delete user")
                except NetworkError as e:
                    notify("error", str(e))
                st.rerun()
        with c2:
            if st.button("Cancel Delete"):
                st.session_state.pop("confirm_delete_user", None)
                st.rerun()

# ---- import ----
if session.role == Role.ADMIN.value:
    with st.expander("📥 Import from Excel"):
        upload = st.file_uploader("Spreadsheet", type=[ext.lstrip(".") for ext in IMPORT_EXTENSIONS])
        if st.button("Import", disabled=upload is None):
            with tempfile.TemporaryDirectory() as tmp:
                path = Path(tmp) / upload.name
                path.write_bytes(upload.getvalue())
                try:
                    with st.spinner("Importing..."):
                        summary = import_file(api, path)
                except DashboardError as e:
                    st.error(str(e))
                    st.stop()
            if not summary.ok:
                st.error(summary.message)
            else:
                if summary.level == "success":
                    st.success(summary.message)
                else:
                    st.warning(summary.message)
                if summary.error_message:
                    time.sleep(summary.error_delay)
                    st.error(summary.error_message)
