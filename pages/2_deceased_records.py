"""Deceased records"""
import streamlit as st

from components.forms import render_deceased_form, render_vault_picker, require_vault
from components.session import get_api, notify, require_login, show_notifications
from components.tables import deceased_frame, render_list
from config.constants import Role
from core.list_view import DECEASED_SEARCH_FIELDS, DECEASED_SORT_KEYS, PageSizeStore, load
from data_manager.api_client import ApiRejection, DashboardError, NetworkError

st.set_page_config(page_title="Deceased Records", page_icon="🕊️", layout="wide")
st.title("🕊️ Deceased Records")

session = require_login([Role.ADMIN.value, Role.STAFF.value])
show_notifications()
api = get_api()

state = load(api.list_deceased)
if not state.is_loaded:
    st.error(f"Failed to load deceased records: {state.error}")
    if st.button("Retry"):
        st.rerun()
    st.stop()
records = state.data


def _save(payload: dict, editing: bool):
    try:
        if editing:
            api.update_deceased(payload)
            api.record_activity("Updated deceased record", "deceased", payload["name"])
        else:
            api.create_deceased(payload)
            api.record_activity("Added deceased record", "deceased", payload["name"])
    except ApiRejection as e:
        st.error(e.message or "Failed to save record")
        return
    except NetworkError as e:
        st.error(str(e))
        return
    notify("success", "Record updated successfully!" if editing else "Record added successfully!")
    st.session_state.pop("deceased_dialog", None)
    st.rerun()


# ---- add / edit dialog ----
dialog = st.session_state.get("deceased_dialog")
if dialog is not None:
    record = dialog.get("record")
    with st.container(border=True):
        st.subheader("Edit Deceased Record" if record else "Add Deceased Record")
        lookups = load(lambda: (api.list_customer_users(), api.list_ownerships()))
        if not lookups.is_loaded:
            st.error(f"Failed to load customers and lots: {lookups.error}")
        else:
            customers, ownerships = lookups.data
            vault_ok = True
            if record is None:
                # widget state of the lot selector below, set on the previous run
                lot_key = st.session_state.get("deceased_lot")
                if lot_key:
                    try:
                        vault = api.get_lot_vault(lot_key)
                    except DashboardError as e:
                        st.warning(f"Could not load vault details: {e}")
                        vault = None
                    if vault is not None:
                        selection = render_vault_picker(vault)
                        problem = require_vault(vault, selection)
                        if problem:
                            st.caption(f":orange[{problem}]")
                            vault_ok = False
                        elif selection and selection != vault.option and not vault.locked:
                            if st.button("Set Vault Option"):
                                try:
                                    api.set_lot_vault_option(lot_key, selection)
                                    notify("success", "Vault option updated")
                                    st.rerun()
                                except ApiRejection as e:
                                    st.error(e.message or "Failed to update vault option")
            payload = render_deceased_form(customers, ownerships, record)
            if payload is not None:
                if not vault_ok:
                    st.error("Missing required fields: Vault Option")
                else:
                    _save(payload, editing=record is not None)
        if st.button("Close"):
            st.session_state.pop("deceased_dialog", None)
            st.rerun()

if st.button("➕ Add Record", type="primary"):
    st.session_state["deceased_dialog"] = {"record": None}
    st.rerun()

# ---- list ----
page = render_list(
    "deceased",
    records,
    deceased_frame,
    DECEASED_SEARCH_FIELDS,
    DECEASED_SORT_KEYS,
    {
        "name": "Name", "date_of_birth": "Date of Birth", "date_of_death": "Date of Death",
        "burial_date": "Burial Date", "location": "Location", "status": "Status",
    },
    PageSizeStore(),
    empty_message="No deceased records found.",
)

if page.rows:
    by_label = {f"{r.name} • {r.lot_label or '-'}": r for r in page.rows}
    selected = by_label[st.selectbox("Record", list(by_label))]
    c1, c2 = st.columns(2)
    with c1:
        if st.button("✏️ Edit"):
            st.session_state["deceased_dialog"] = {"record": selected}
            st.rerun()
    with c2:
        if st.button("🗑️ Delete"):
            st.session_state["confirm_delete_deceased"] = selected

    pending = st.session_state.get("confirm_delete_deceased")
    if pending is not None:
        st.warning(f"Delete the record of **{pending.name}**? This cannot be undone.")
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Confirm Delete", type="primary"):
                st.session_state.pop("confirm_delete_deceased", None)
                try:
                    api.delete_deceased(pending.id)
                    notify("success", "Record deleted successfully!")
                except ApiRejection as e:
                    notify("error", e.message or "Failed to delete record")
                except NetworkError as e:
                    notify("error", str(e))
                st.rerun()
        with c2:
            if st.button("Cancel Delete"):
                st.session_state.pop("confirm_delete_deceased", None)
                st.rerun()
