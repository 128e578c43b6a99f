"""Signed-in session and user notifications shared by every page"""
from typing import Optional, Sequence

import streamlit as st

from data_manager.api_client import ApiClient
from data_manager.schema import Session

SESSION_KEY = "session"
API_KEY = "api_client"
FLASH_KEY = "flash_messages"

TOAST_ICONS = {"success": "✅", "warning": "⚠️", "error": "❌", "info": "ℹ️"}


def current_session() -> Session:
    return st.session_state.get(SESSION_KEY) or Session()


def get_api() -> ApiClient:
    """One ApiClient per browser session, rebuilt when the user changes"""
    session = current_session()
    api: Optional[ApiClient] = st.session_state.get(API_KEY)
    if api is None or api.session.user_id != session.user_id:
        if api is not None:
            api.close()
        api = ApiClient(session)
        st.session_state[API_KEY] = api
    return api


def sign_in(session: Session):
    st.session_state[SESSION_KEY] = session


def sign_out():
    api: Optional[ApiClient] = st.session_state.pop(API_KEY, None)
    if api is not None:
        api.close()
    st.session_state.pop(SESSION_KEY, None)


def require_login(roles: Sequence[str] = ()) -> Session:
    """Stop the page unless someone with one of `roles` is signed in"""
    session = current_session()
    if not session.authenticated:
        st.warning("Please sign in on the home page first.")
        st.stop()
    if roles and session.role not in roles:
        st.error("You do not have access to this page.")
        st.stop()
    return session


def notify(level: str, message: str):
    """Queue a toast so it survives the rerun that usually follows an action"""
    st.session_state.setdefault(FLASH_KEY, []).append((level, message))


def show_notifications():
    for level, message in st.session_state.pop(FLASH_KEY, []):
        if level == "error":
            st.error(message)
        else:
            st.toast(message, icon=TOAST_ICONS.get(level, "ℹ️"))
