"""Plotly chart factory and the map surface used by the directional guide"""
import base64
import io
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import plotly.graph_objects as go
import plotly.io as pio
from PIL import Image

from config.settings import (
    CEMETERY_BOUNDS, COLORS, DEFAULT_MAP_ZOOM, MAIN_GATE, MAP_MAX_ZOOM, MAP_MIN_ZOOM,
)
from core.geometry import Point
from core.map_overlay import DirectionalGuide, MapSurface
from utils.formatters import to_number

# Plotly theme for the report and payment charts
_AXIS = dict(gridcolor="#e6e9ef", linecolor="#c8ccd4", zerolinecolor="#c8ccd4",
             tickfont=dict(color="#5f6673"), title_font=dict(color="#5f6673"))

pio.templates["memorial_dashboard_light"] = go.layout.Template(
    layout=go.Layout(
        font=dict(family="sans-serif", color="#2b2f36"),
        title_font=dict(size=18, color="#2b2f36"),
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        xaxis=_AXIS,
        yaxis=_AXIS,
        legend=dict(font=dict(color="#5f6673"), bgcolor="rgba(255,255,255,0.6)"),
        colorway=[COLORS["primary"], COLORS["warning"], COLORS["success"], COLORS["danger"], COLORS["info"]],
    )
)

pio.templates.default = "memorial_dashboard_light"

TILE_SIZE = 256


def create_schedule_status_pie(summary: Dict[str, int], template: str = "memorial_dashboard_light") -> go.Figure:
    """Donut of paid / unpaid / overdue months for one lot"""
    labels = ["Paid", "Unpaid", "Overdue"]
    overdue = summary.get("overdue", 0)
    values = [summary.get("paid", 0), summary.get("unpaid", 0) - overdue, overdue]
    fig = go.Figure(data=[go.Pie(
        labels=labels,
        values=values,
        hole=0.45,
        marker_colors=[COLORS["paid"], COLORS["unpaid"], COLORS["overdue"]],
        textinfo="label+value",
        sort=False,
    )])
    fig.update_layout(
        showlegend=False,
        margin=dict(t=20, b=20, l=20, r=20),
        height=260,
        template=template,
    )
    return fig


def create_revenue_chart(records: List[dict], first_header: str = "Month",
                         template: str = "memorial_dashboard_light") -> go.Figure:
    """Revenue bars with the paid-transaction count on a second axis"""
    periods = [str(r.get("month")) for r in records]
    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=periods,
        y=[to_number(r.get("revenue")) for r in records],
        name="Revenue",
        marker_color=COLORS["primary"],
        hovertemplate="%{x}<br>Revenue: ₱%{y:,.2f}<extra></extra>",
    ))
    fig.add_trace(go.Scatter(
        x=periods,
        y=[to_number(r.get("payments")) for r in records],
        name="Payments",
        mode="lines+markers",
        yaxis="y2",
        line=dict(color=COLORS["warning"], width=2),
        hovertemplate="%{x}<br>Payments: %{y:,.0f}<extra></extra>",
    ))
    fig.update_layout(
        xaxis_title=first_header,
        yaxis=dict(title="Revenue (₱)", tickformat=",.0f"),
        yaxis2=dict(title="Payments", overlaying="y", side="right", showgrid=False),
        hovermode="x unified",
        margin=dict(t=40, b=40, l=60, r=60),
        height=380,
        legend=dict(orientation="h", yanchor="bottom", y=1.02, xanchor="right", x=1),
        template=template,
    )
    return fig


def create_inventory_bar(records: List[dict], template: str = "memorial_dashboard_light") -> go.Figure:
    """Stacked lot counts per section"""
    sections = [f"{r.get('garden') or '-'} / {r.get('section')}" for r in records]
    series = [
        ("Available", "availableLots", COLORS["success"]),
        ("Reserved", "reservedLots", COLORS["warning"]),
        ("Occupied", "occupiedLots", COLORS["danger"]),
    ]
    fig = go.Figure()
    for name, key, color in series:
        fig.add_trace(go.Bar(
            x=sections,
            y=[to_number(r.get(key)) for r in records],
            name=name,
            marker_color=color,
            hovertemplate="%{x}<br>" + name + ": %{y:,.0f}<extra></extra>",
        ))
    fig.update_layout(
        barmode="stack",
        xaxis_title="Section",
        yaxis_title="Lots",
        margin=dict(t=40, b=40, l=60, r=20),
        height=380,
        template=template,
    )
    return fig


# ---- map ----

def _world(point: Point, zoom: float) -> Tuple[float, float]:
    """Web Mercator world pixel coordinates of (lat, lng) at a zoom level"""
    lat, lng = point
    scale = TILE_SIZE * 2 ** zoom
    siny = min(max(math.sin(math.radians(lat)), -0.9999), 0.9999)
    x = (lng + 180.0) / 360.0 * scale
    y = (0.5 - math.log((1 + siny) / (1 - siny)) / (4 * math.pi)) * scale
    return x, y


def _unworld(x: float, y: float, zoom: float) -> Point:
    scale = TILE_SIZE * 2 ** zoom
    lng = x / scale * 360.0 - 180.0
    n = math.pi - 2 * math.pi * y / scale
    lat = math.degrees(math.atan(math.sinh(n)))
    return lat, lng


class WebMercatorSurface(MapSurface):
    """Headless map viewport: a centre, a zoom and a pixel size"""

    def __init__(self, center: Point = MAIN_GATE, zoom: float = DEFAULT_MAP_ZOOM,
                 width: int = 900, height: int = 600):
        self.center = tuple(center)
        self.zoom = zoom
        self.width = width
        self.height = height
        self.overlays: List = []
        self._listeners: Dict[int, Callable[[], None]] = {}
        self._next_handle = 0

    def _changed(self):
        for callback in list(self._listeners.values()):
            callback()

    def add_overlay(self, overlay):
        self.overlays.append(overlay)

    def remove_overlay(self, overlay):
        if overlay in self.overlays:
            self.overlays.remove(overlay)

    def project_to_screen(self, latlng: Point) -> Point:
        cx, cy = _world(self.center, self.zoom)
        x, y = _world(latlng, self.zoom)
        return x - cx + self.width / 2, y - cy + self.height / 2

    def screen_to_latlng(self, point: Point) -> Point:
        cx, cy = _world(self.center, self.zoom)
        return _unworld(point[0] + cx - self.width / 2, point[1] + cy - self.height / 2, self.zoom)

    def on_bounds_changed(self, callback: Callable[[], None]):
        handle = self._next_handle
        self._next_handle += 1
        self._listeners[handle] = callback
        return handle

    def remove_listener(self, handle):
        self._listeners.pop(handle, None)

    def fit_bounds(self, points: Sequence[Point], padding: int):
        if not points:
            return
        lats = [p[0] for p in points]
        lngs = [p[1] for p in points]
        self.center = ((min(lats) + max(lats)) / 2, (min(lngs) + max(lngs)) / 2)
        x0, y0 = _world((max(lats), min(lngs)), 0)
        x1, y1 = _world((min(lats), max(lngs)), 0)
        span_x, span_y = abs(x1 - x0), abs(y1 - y0)
        avail_x = max(1, self.width - 2 * padding)
        avail_y = max(1, self.height - 2 * padding)
        if span_x == 0 and span_y == 0:
            zoom = MAP_MAX_ZOOM
        else:
            fits = [avail_x / span_x if span_x else math.inf, avail_y / span_y if span_y else math.inf]
            zoom = math.floor(math.log2(min(fits)))
        self.zoom = min(max(zoom, MAP_MIN_ZOOM), MAP_MAX_ZOOM)
        self._changed()

    def pan_to(self, point: Point):
        self.center = tuple(point)
        self._changed()

    def get_zoom(self) -> Optional[float]:
        return self.zoom

    def set_zoom(self, zoom: float):
        self.zoom = min(max(zoom, MAP_MIN_ZOOM), MAP_MAX_ZOOM)
        self._changed()


def image_data_uri(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def _overlay_layer(guide: DirectionalGuide, surface: WebMercatorSurface) -> Optional[dict]:
    sector = guide.sector
    if sector.canvas is None:
        return None
    ox, oy = sector.origin
    w, h = sector.canvas.size
    corners = [(ox, oy), (ox + w, oy), (ox + w, oy + h), (ox, oy + h)]
    coordinates = [[lng, lat] for lat, lng in (surface.screen_to_latlng(c) for c in corners)]
    return dict(sourcetype="image", source=image_data_uri(sector.canvas), coordinates=coordinates, below="traces")


def _padded_bounds(bounds: Dict[str, float], margin: float = 0.002) -> dict:
    """Pan limit around the cemetery, with some slack for the route from the gate"""
    return dict(
        west=bounds["west"] - margin,
        east=bounds["east"] + margin,
        south=bounds["south"] - margin,
        north=bounds["north"] + margin,
    )


def create_directional_map(guide: DirectionalGuide, surface: WebMercatorSurface) -> go.Figure:
    """Route map: warped sector image, destination lot, path line and labels"""
    fig = go.Figure()

    for shape in guide.sector.geo_lots:
        if not shape.style.is_destination:
            continue
        lats = [p[0] for p in shape.points] + [shape.points[0][0]]
        lngs = [p[1] for p in shape.points] + [shape.points[0][1]]
        fig.add_trace(go.Scattermap(
            lat=lats, lon=lngs, mode="lines", fill="toself",
            line=dict(color=shape.style.stroke, width=shape.style.width),
            name=shape.lot.code, hoverinfo="name",
        ))

    if guide.path:
        fig.add_trace(go.Scattermap(
            lat=[p[0] for p in guide.path],
            lon=[p[1] for p in guide.path],
            mode="lines",
            line=dict(color=COLORS["route"], width=4),
            opacity=guide.path_opacity,
            name="Route",
            hoverinfo="skip",
        ))

    labels = guide.labels.labels
    if labels:
        fig.add_trace(go.Scattermap(
            lat=[l.position[0] for l in labels],
            lon=[l.position[1] for l in labels],
            mode="markers+text",
            text=[l.title for l in labels],
            textposition="top center",
            marker=dict(size=9, color=[l.background for l in labels]),
            name="Labels",
            hoverinfo="text",
        ))

    layer = _overlay_layer(guide, surface)
    fig.update_layout(
        map=dict(
            style="open-street-map",
            center=dict(lat=surface.center[0], lon=surface.center[1]),
            # MapLibre zoom levels count 512px tiles
            zoom=surface.zoom - 1,
            layers=[layer] if layer else [],
            bounds=_padded_bounds(CEMETERY_BOUNDS),
        ),
        showlegend=False,
        margin=dict(t=0, b=0, l=0, r=0),
        height=surface.height,
    )
    return fig
