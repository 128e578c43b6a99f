"""Form components"""
from datetime import date
from typing import List, Optional

import streamlit as st

from config.constants import CUSTOMER_FIELD_LABELS, Role, SexAtBirth, VaultOption
from core.account_wizard import IDENTITY_STEP, AccountWizard, WizardResult
from data_manager.data_validator import fix_following_message, missing_fields_message, validate_deceased
from data_manager.schema import DeceasedRecord, LotVault, Ownership, User, deceased_payload
from utils.date_utils import parse_date
from utils.formatters import split_full_name

OPTIONAL_PROFILE_FIELDS = {
    "barangay": "Barangay",
    "occupation": "Occupation",
    "monthly_income": "Monthly Income",
    "source_of_funds": "Source of Funds",
    "notes": "Notes",
}


def _role_options(viewer_role: str) -> List[str]:
    if viewer_role == Role.STAFF.value:
        return [Role.CUSTOMER.value]
    return [r.value for r in Role]


def _select(label: str, options: List[str], value: str, key: str, format_func=str, disabled: bool = False) -> str:
    choices = [""] + options
    index = choices.index(value) if value in choices else 0
    return st.selectbox(
        label, choices, index=index, key=key, disabled=disabled,
        format_func=lambda v: format_func(v) if v else "Select...",
    )


def render_account_wizard(wizard: AccountWizard, key_prefix: str = "account") -> Optional[WizardResult]:
    """Render the current wizard step; returns the result of Next/Save when clicked"""
    editing = wizard.editing is not None
    st.subheader("Edit Account" if editing else "Add Account")
    st.caption(f"Step {wizard.step} of {wizard.step_count}")

    if wizard.step == IDENTITY_STEP:
        c1, c2, c3 = st.columns(3)
        with c1:
            wizard.set_field("first_name", st.text_input(
                "First Name", value=wizard.account["first_name"], key=f"{key_prefix}_first"))
        with c2:
            wizard.set_field("middle_name", st.text_input(
                "Middle Name (optional)", value=wizard.account["middle_name"], key=f"{key_prefix}_middle"))
        with c3:
            wizard.set_field("last_name", st.text_input(
                "Last Name", value=wizard.account["last_name"], key=f"{key_prefix}_last"))

        c1, c2 = st.columns(2)
        with c1:
            wizard.set_field("contact_number", st.text_input(
                "Contact Number", value=wizard.account["contact_number"], key=f"{key_prefix}_contact",
                disabled=not wizard.field_enabled("contact_number")))
            if wizard.errors.get("contact_number"):
                st.caption(f":red[{wizard.errors['contact_number']}]")
        with c2:
            wizard.set_field("email", st.text_input(
                "Email (optional)", value=wizard.account["email"], key=f"{key_prefix}_email"))
            if wizard.errors.get("email"):
                st.caption(f":red[{wizard.errors['email']}]")

        c1, c2 = st.columns(2)
        with c1:
            wizard.set_field("sex_at_birth", _select(
                "Gender", [s.value for s in SexAtBirth], wizard.account["sex_at_birth"],
                f"{key_prefix}_sex", lambda v: SexAtBirth(v).label,
                disabled=not wizard.field_enabled("sex_at_birth")))
        with c2:
            wizard.set_field("role", _select(
                "Role", _role_options(wizard.viewer_role), wizard.account["role"],
                f"{key_prefix}_role", lambda v: Role(v).label,
                disabled=not wizard.field_enabled("role")))
    else:
        st.markdown("**Customer Details**")
        fields = {**CUSTOMER_FIELD_LABELS, **OPTIONAL_PROFILE_FIELDS}
        columns = st.columns(2)
        for i, (name, label) in enumerate(fields.items()):
            with columns[i % 2]:
                shown = label if name in CUSTOMER_FIELD_LABELS else f"{label} (optional)"
                wizard.set_field(name, st.text_input(
                    shown, value=wizard.profile.get(name, ""), key=f"{key_prefix}_{name}"))
        if wizard.errors.get("emergency_contact_phone"):
            st.caption(f":red[{wizard.errors['emergency_contact_phone']}]")

    c1, c2, c3 = st.columns(3)
    result = None
    with c1:
        if wizard.step > IDENTITY_STEP and st.button("Back", key=f"{key_prefix}_back"):
            wizard.back()
            st.rerun()
    with c2:
        if wizard.step < wizard.step_count:
            if st.button("Next", key=f"{key_prefix}_next", type="primary"):
                result = wizard.next()
                if result.ok:
                    st.rerun()
        elif st.button("Save", key=f"{key_prefix}_save", type="primary"):
            result = wizard.submit()
    with c3:
        if st.button("Cancel", key=f"{key_prefix}_cancel"):
            wizard.is_open = False
            st.rerun()

    if result is not None and not result.ok:
        st.error(result.message)
    return result


def render_vault_picker(vault: LotVault, key_prefix: str = "vault") -> Optional[str]:
    """Vault option overview; returns the chosen option, or the lot's existing one"""
    st.markdown("**Vault Options Overview**")
    for option in VaultOption:
        marker = "✅ " if vault.option == option.value else ""
        st.caption(f"{marker}{option.value.upper()}: {option.description}")
    if vault.option:
        st.info(f"Vault option already set: {vault.option.upper()} • Usage: {vault.availability}")
        if vault.locked:
            st.warning("🔒 Vault option is locked. To change it, remove all interments for this lot and reset.")
            return vault.option
    choice = _select(
        "Vault Option", [o.value for o in VaultOption], vault.option, f"{key_prefix}_option",
        lambda v: v.upper(), disabled=vault.locked,
    )
    return choice or None


def render_deceased_form(
    customers: List[User],
    ownerships: List[Ownership],
    record: Optional[DeceasedRecord] = None,
    key_prefix: str = "deceased",
) -> Optional[dict]:
    """Deceased record form; returns a validated request payload on submit"""
    first, middle, last = split_full_name(record.name) if record else ("", "", "")
    customer_ids = [str(c.id) for c in customers]
    names = {str(c.id): c.full_name or c.username for c in customers}

    customer_id = _select(
        "Customer", customer_ids, record.customer_id if record else "", f"{key_prefix}_customer",
        lambda v: names.get(v, v))
    lots = {str(o.id): o.label for o in ownerships if not customer_id or o.customer_id == customer_id}
    lot_id = _select(
        "Owned Lot", list(lots), record.lot_id if record else "", f"{key_prefix}_lot",
        lambda v: lots.get(v, v))

    with st.form(f"{key_prefix}_form"):
        c1, c2, c3 = st.columns(3)
        with c1:
            first_name = st.text_input("First Name", value=first)
        with c2:
            middle_name = st.text_input("Middle Name (optional)", value=middle)
        with c3:
            last_name = st.text_input("Last Name", value=last)

        c1, c2, c3 = st.columns(3)
        with c1:
            dob = st.date_input("Date of Birth", value=parse_date(record.date_of_birth) if record else None,
                                min_value=date(1900, 1, 1), max_value=date.today())
        with c2:
            dod = st.date_input("Date of Death", value=parse_date(record.date_of_death) if record else None,
                                min_value=date(1900, 1, 1), max_value=date.today())
        with c3:
            burial = st.date_input("Burial Date", value=parse_date(record.burial_date) if record else None,
                                   min_value=date(1900, 1, 1))

        c1, c2 = st.columns(2)
        with c1:
            cause = st.text_input("Cause of Death (optional)", value=record.cause_of_death if record else "")
        with c2:
            funeral_home = st.text_input("Funeral Home (optional)", value=record.funeral_home if record else "")
        notes = st.text_area("Notes (optional)", value=record.notes if record else "")

        submitted = st.form_submit_button("Save Record" if record else "Add Record", type="primary")

    if not submitted:
        return None

    form = {
        "id": record.id if record else None,
        "customer_id": customer_id,
        "lot_id": lot_id,
        "first_name": first_name,
        "middle_name": middle_name,
        "last_name": last_name,
        "date_of_birth": dob.isoformat() if dob else "",
        "date_of_death": dod.isoformat() if dod else "",
        "burial_date": burial.isoformat() if burial else "",
        "cause_of_death": cause,
        "funeral_home": funeral_home,
        "notes": notes,
    }
    ok, missing, _ = validate_deceased(form)
    if not ok:
        st.error(fix_following_message(missing))
        return None
    return deceased_payload(form)


def require_vault(vault: Optional[LotVault], selection: Optional[str]) -> Optional[str]:
    """Error text when neither the lot nor the user has a vault option"""
    if (vault and vault.option) or selection:
        return None
    return missing_fields_message(["Vault Option"])
