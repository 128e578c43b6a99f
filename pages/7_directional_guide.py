"""Directional guide"""
import streamlit as st

from components.charts import WebMercatorSurface, create_directional_map
from components.session import get_api, require_login, show_notifications
from config.settings import PATH_ANIMATION_INTERVAL, SECTOR_IMAGE_DIR
from core.geometry import Corners
from core.list_view import load, natural_key
from core.map_overlay import DirectionalGuide, find_lot, load_sector_image
from data_manager.api_client import DashboardError
from data_manager.schema import Lot

st.set_page_config(page_title="Directions", page_icon="🧭", layout="wide")
st.title("🧭 Directional Guide")

session = require_login()
show_notifications()
api = get_api()

# /directional_guide?garden=..&sector=..&lot=..&block=.. opens straight onto a lot
params = st.query_params

gardens_state = load(api.map_gardens)
if not gardens_state.is_loaded:
    st.error(f"Failed to load gardens: {gardens_state.error}")
    st.stop()
gardens = list(gardens_state.data)
if not gardens:
    st.info("No gardens are mapped yet.")
    st.stop()


def _index(options, value) -> int:
    return options.index(value) if value in options else 0


c1, c2, c3 = st.columns(3)
with c1:
    garden = st.selectbox("Garden", gardens, index=_index(gardens, params.get("garden")))

sectors_state = load(lambda: api.map_sectors(garden))
if not sectors_state.is_loaded:
    st.error(f"Failed to load sectors: {sectors_state.error}")
    st.stop()
sectors = list(sectors_state.data)
with c2:
    sector = st.selectbox("Sector", sectors, index=_index(sectors, params.get("sector")))
if not sector:
    st.stop()

lots_state = load(lambda: api.sector_lots(sector, garden))
if not lots_state.is_loaded:
    st.error(f"Failed to load lots: {lots_state.error}")
    st.stop()
lots = [Lot.from_api(lot, garden, sector) for lot in lots_state.data.get("lots") or []]
lots.sort(key=lambda lot: natural_key(lot.code))

wanted = find_lot(lots, params.get("block"), params.get("lot"))
with c3:
    destination = st.selectbox(
        "Lot", [None] + lots,
        index=lots.index(wanted) + 1 if wanted is not None else 0,
        format_func=lambda lot: "Select a lot..." if lot is None else f"{lot.code} ({lot.display_status})",
    )

try:
    raw_corners = api.sector_corners(garden, sector)
    path = api.sector_path(garden, sector)
except DashboardError as e:
    st.error(f"Failed to load map data: {e}")
    st.stop()
if raw_corners is None:
    st.warning(f"{garden} {sector} has no map placement yet.")
    st.stop()

# markers and display config are optional; defaults apply without them
try:
    markers = api.map_markers()
    ui_config = api.ui_config()
except DashboardError as e:
    st.caption(f"Map labels unavailable: {e}")
    markers, ui_config = [], {}

image = load_sector_image(garden, sector, SECTOR_IMAGE_DIR)
if image is None:
    st.caption("Sector image not found; showing lot outlines only.")

follow = st.toggle("Follow route from the main gate", value=bool(path), disabled=not path)
replay = st.button("↺ Replay route", disabled=not follow)

# one guide per selection; a new selection closes the previous one
guide_key = (garden, sector, destination.code if destination else None, follow)
cached = st.session_state.get("route_guide")
if cached is not None and (cached[0] != guide_key or replay):
    cached[1].close()
    cached = None
if cached is None:
    guide = DirectionalGuide(
        WebMercatorSurface(), Corners.from_api(raw_corners), image, lots, destination, path,
        markers=markers, ui_config=ui_config,
    ).open(animate=follow, schedule=False)
    st.session_state["route_guide"] = (guide_key, guide)
else:
    guide = cached[1]

animating = follow and not guide.animator.finished


@st.fragment(run_every=PATH_ANIMATION_INTERVAL if animating else None)
def route_map():
    guide.animator.step_if_due()
    st.plotly_chart(create_directional_map(guide, guide.surface), width='stretch')
    if animating and guide.animator.finished:
        st.rerun(scope="app")


route_map()

if destination is not None:
    st.markdown(f"**Destination:** {destination.code}")
    if destination.owner:
        st.caption(f"Owner: {destination.owner}")
    if destination.deceased_names:
        st.caption(f"Interred: {destination.deceased_display}")
    if guide.destination_point is None:
        st.caption("This lot has no outline on the sector image.")
if not path:
    st.info("No walking route has been drawn for this sector yet.")
