"""Lot ownership"""
import streamlit as st

from components.session import get_api, notify, require_login, show_notifications
from components.tables import ownership_frame, render_list
from config.constants import Role
from core.list_view import (
    OWNERSHIP_SEARCH_FIELDS, OWNERSHIP_SORT_KEYS, PageSizeStore, group_ownerships, load,
    natural_key, transfer_problem,
)
from data_manager.api_client import ApiRejection, NetworkError

st.set_page_config(page_title="Lot Ownership", page_icon="🏷️", layout="wide")
st.title("🏷️ Lot Ownership")

session = require_login([Role.ADMIN.value, Role.STAFF.value])
show_notifications()
api = get_api()
can_change = session.role == Role.ADMIN.value

state = load(lambda: (api.list_ownerships(), api.list_customer_users()))
if not state.is_loaded:
    st.error(f"Failed to load ownerships: {state.error}")
    if st.button("Retry"):
        st.rerun()
    st.stop()
ownerships, customer_users = state.data
customers = {str(c.id): c for c in customer_users}


def _customer_label(cid: str) -> str:
    if not cid:
        return "Select..."
    c = customers[cid]
    return c.full_name or c.username


def _close_dialog():
    st.session_state.pop("ownership_dialog", None)
    st.rerun()


def _send(action, success: str, activity: tuple):
    try:
        action()
        api.record_activity(*activity)
    except ApiRejection as e:
        st.error(e.message or "Request failed")
        return
    except NetworkError as e:
        st.error(str(e))
        return
    notify("success", success)
    _close_dialog()


def _pick(label: str, fetch, key: str, empty: str):
    """One step of the garden / sector / block / lot cascade"""
    options_state = load(fetch)
    if not options_state.is_loaded:
        st.error(f"Failed to load {label.lower()}s: {options_state.error}")
        return None
    options = [""] + list(options_state.data)
    if len(options) == 1:
        st.caption(empty)
        return None
    return st.selectbox(label, options, key=key, format_func=lambda v: v or "Select...") or None


def render_assign_form():
    customer_id = st.selectbox("Customer", [""] + list(customers), format_func=_customer_label,
                               key="own_customer")
    c1, c2, c3, c4 = st.columns(4)
    with c1:
        garden = _pick("Garden", api.map_gardens, "own_garden", "No gardens are mapped yet.")
    sector = block = lot_number = None
    available = None
    if garden:
        with c2:
            sector = _pick("Sector", lambda: api.map_sectors(garden), f"own_sector_{garden}",
                           "No sectors in this garden.")
    if sector:
        with c3:
            block = _pick("Block", lambda: api.map_blocks(garden, sector), f"own_block_{garden}_{sector}",
                          "No blocks in this sector.")
    if block:
        available_state = load(lambda: api.map_available_lots(garden, sector, block))
        if not available_state.is_loaded:
            st.error(f"Failed to load available lots: {available_state.error}")
        else:
            available = available_state.data
            with c4:
                lot_number = _pick("Lot Number", lambda: sorted(available.lots, key=natural_key),
                                   f"own_lot_{garden}_{sector}_{block}", "No available lots in this block.")
            st.caption(f"Lot type: {available.lot_type.capitalize()}")

    missing = [name for name, value in [
        ("Customer", customer_id), ("Garden", garden), ("Sector", sector), ("Block", block), ("Lot", lot_number),
    ] if not value]
    if missing:
        st.caption(f"Required: {', '.join(missing)}")
    if st.button("Assign Lot", type="primary", disabled=bool(missing)):
        code = f"{garden} {sector}{block}-{lot_number}"
        _send(
            lambda: api.create_ownership(customer_id, garden, sector, block, lot_number, available.lot_type),
            f"Lot {code} assigned to {_customer_label(customer_id)}.",
            ("Created", "Lot", f"Created ownership for customer ID {customer_id} - Lot {code} "
                               f"({available.lot_type})"),
        )


def render_transfer_form(ownership):
    st.markdown(f"**Lot:** {ownership.code} • currently **{ownership.customer_name or '-'}**")
    new_owner = st.selectbox("Transfer to", [""] + list(customers), format_func=_customer_label,
                             key="own_transfer_to")
    problem = transfer_problem(ownership, new_owner)
    if problem and new_owner:
        st.caption(f":orange[{problem}]")
    if st.button("Transfer", type="primary", disabled=bool(problem)):
        _send(
            lambda: api.update_ownership(ownership.id, new_owner),
            f"Lot {ownership.code} transferred to {_customer_label(new_owner)}.",
            ("Updated", "Lot", f"Transferred ownership from customer ID {ownership.customer_id} to "
                               f"customer ID {new_owner} - Lot {ownership.code}"),
        )


# ---- assign / transfer dialog ----
dialog = st.session_state.get("ownership_dialog")
if dialog is not None:
    with st.container(border=True):
        if dialog["mode"] == "transfer":
            st.subheader("Transfer Ownership")
            render_transfer_form(dialog["ownership"])
        else:
            st.subheader("Assign Lot")
            render_assign_form()
        if st.button("Close"):
            _close_dialog()

if st.button("➕ Assign Lot", type="primary"):
    st.session_state["ownership_dialog"] = {"mode": "assign"}
    st.rerun()

# ---- list ----
page = render_list(
    "ownership",
    group_ownerships(ownerships),
    ownership_frame,
    OWNERSHIP_SEARCH_FIELDS,
    OWNERSHIP_SORT_KEYS,
    {"customer": "Customer", "lots": "Lots", "status": "Status"},
    PageSizeStore(),
    empty_message="No lot ownerships found.",
)

if page.rows and can_change:
    by_code = {f"{o.code} • {g.customer_name}": o for g in page.rows for o in g.lots}
    selected = by_code[st.selectbox("Lot", list(by_code))]
    c1, c2 = st.columns(2)
    with c1:
        if st.button("🔁 Transfer"):
            st.session_state["ownership_dialog"] = {"mode": "transfer", "ownership": selected}
            st.rerun()
    with c2:
        if st.button("🗑️ Delete"):
            st.session_state["confirm_delete_ownership"] = selected

    pending = st.session_state.get("confirm_delete_ownership")
    if pending is not None:
        st.warning(f"Remove **{pending.customer_name or '-'}** as owner of **{pending.code}**?")
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Confirm Delete", type="primary"):
                st.session_state.pop("confirm_delete_ownership", None)
                try:
                    api.delete_ownership(pending.id)
                    api.record_activity("Deleted", "Lot", f"Deleted ownership for customer "
                                                          f"{pending.customer_name} - Lot {pending.code}")
                    notify("success", "Ownership deleted successfully!")
                except ApiRejection as e:
                    notify("error", e.message or "Failed to delete ownership")
                except NetworkError as e:
                    notify("error", str(e))
                st.rerun()
        with c2:
            if st.button("Cancel Delete"):
                st.session_state.pop("confirm_delete_ownership", None)
                st.rerun()
