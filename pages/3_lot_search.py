"""Lot search"""
import streamlit as st

from components.session import get_api, require_login, show_notifications
from components.tables import lots_frame, render_list
from config.constants import Role
from core.list_view import LOT_SEARCH_FIELDS, LOT_SORT_KEYS, PageSizeStore, dedupe_lots, filter_lots, load
from data_manager.schema import Lot

ALL_GARDENS = "ALL"
SECTORS_PER_BATCH = 3

st.set_page_config(page_title="Lot Search", page_icon="🔎", layout="wide")
st.title("🔎 Lot Search")

session = require_login([Role.ADMIN.value, Role.STAFF.value, Role.CASHIER.value])
show_notifications()
api = get_api()

gardens_state = load(api.map_gardens)
if not gardens_state.is_loaded:
    st.error(f"Failed to load gardens: {gardens_state.error}")
    st.stop()

c1, c2 = st.columns(2)
with c1:
    garden = st.selectbox(
        "Garden",
        [ALL_GARDENS] + list(gardens_state.data),
        format_func=lambda g: "All Gardens" if g == ALL_GARDENS else g,
    )
with c2:
    status = st.selectbox("Status", ["Sold", "Available", ""], format_func=lambda s: s or "All")


def _sector_lots(garden: str, sectors: list) -> list:
    lots = []
    for sector in sectors:
        data = api.sector_lots(sector, garden)
        lots += [Lot.from_api(lot, garden, sector) for lot in data.get("lots") or []]
    return lots


def fetch_lots():
    if garden == ALL_GARDENS:
        found = api.search_lots(garden=ALL_GARDENS, status=status, limit=200)
        return dedupe_lots([Lot.from_api(lot) for lot in found])
    sectors = api.map_sectors(garden)[:SECTORS_PER_BATCH]
    return dedupe_lots(_sector_lots(garden, sectors))


with st.spinner("Loading lots..."):
    state = load(fetch_lots)
if not state.is_loaded:
    st.error(f"Failed to load lots: {state.error}")
    st.stop()

lots = filter_lots(state.data, status=status)

render_list(
    "lots",
    lots,
    lots_frame,
    LOT_SEARCH_FIELDS,
    LOT_SORT_KEYS,
    {"code": "Lot", "garden": "Garden", "status": "Status", "owner": "Owner"},
    PageSizeStore(),
    empty_message="No lots match your filters.",
)
