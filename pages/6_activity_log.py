"""Activity log"""
from collections import Counter

import streamlit as st

from components.session import get_api, require_login, show_notifications
from components.tables import activity_frame, render_list
from config.constants import ACTIVITY_FILTERS, Role
from core.list_view import ACTIVITY_SEARCH_FIELDS, ACTIVITY_SORT_KEYS, PageSizeStore, action_chip_color, filter_activity, load

# streamlit badges only know a handful of colors
BADGE_COLORS = {"amber": "orange", "purple": "violet", "indigo": "violet"}

st.set_page_config(page_title="Activity Log", page_icon="📜", layout="wide")
st.title("📜 Activity Log")

session = require_login([Role.ADMIN.value])
show_notifications()
api = get_api()

state = load(api.activity_logs)
if not state.is_loaded:
    st.error(f"Failed to load activity logs: {state.error}")
    if st.button("Retry"):
        st.rerun()
    st.stop()

kind = st.selectbox(
    "Show",
    ACTIVITY_FILTERS,
    format_func=lambda k: {"all": "All Activity", "login": "Logins"}.get(k, f"{k.capitalize()} actions"),
)
entries = filter_activity(state.data, kind)

counts = Counter(e.action for e in entries if e.action)
if counts:
    badges = []
    for action, n in counts.most_common(8):
        color = action_chip_color(action)
        badges.append(f":{BADGE_COLORS.get(color, color)}-badge[{action} · {n}]")
    st.markdown(" ".join(badges))

render_list(
    "activity",
    entries,
    activity_frame,
    ACTIVITY_SEARCH_FIELDS,
    ACTIVITY_SORT_KEYS,
    {"timestamp": "Date", "action": "Action", "user": "User", "type": "Type"},
    PageSizeStore(),
    empty_message="No activity recorded.",
)
