"""
Map overlays for the directional guide

Everything here talks to the map through MapSurface, so it runs the same
against the plotly-backed surface in components.charts and against test fakes.
"""
import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from config.constants import (
    DESTINATION_FALLBACK_COLOR, DIMMED_LOT_FILL, DIMMED_LOT_STROKE, LOT_TYPE_COLORS,
)
from config.settings import (
    DEFAULT_MAP_ZOOM, DEFAULT_UI_CONFIG, MAIN_GATE, PATH_ANIMATION_DELAY,
    PATH_ANIMATION_INTERVAL, PATH_FIT_PADDING, SECTOR_IMAGE_DIR, WARP_GRID_SIZE,
)
from core.geometry import (
    Corners, Point, bounding_box, invert_affine, lot_center, lot_polygon,
    segment_thirds, warp_grid,
)
from data_manager.schema import Lot

logger = logging.getLogger(__name__)

START_LABEL_COLOR = "rgba(37,99,235,0.95)"
DESTINATION_LABEL_COLOR = "rgba(14,165,233,0.95)"
DEFAULT_LABEL_COLOR = "rgba(255,255,255,0.95)"


class MapSurface(ABC):
    """Minimal map API the overlays need; points are (lat, lng)"""

    @abstractmethod
    def add_overlay(self, overlay):
        ...

    @abstractmethod
    def remove_overlay(self, overlay):
        ...

    @abstractmethod
    def project_to_screen(self, latlng: Point) -> Point:
        ...

    @abstractmethod
    def on_bounds_changed(self, callback: Callable[[], None]):
        """Register a redraw callback, returning a handle for remove_listener"""

    @abstractmethod
    def remove_listener(self, handle):
        ...

    @abstractmethod
    def fit_bounds(self, points: Sequence[Point], padding: int):
        ...

    @abstractmethod
    def pan_to(self, point: Point):
        ...

    @abstractmethod
    def get_zoom(self) -> Optional[float]:
        ...

    @abstractmethod
    def set_zoom(self, zoom: float):
        ...


@dataclass
class LotStyle:
    fill: str
    stroke: str
    width: float
    is_destination: bool = False


def _as_number(value) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def is_destination(lot: Lot, destination: Optional[Lot]) -> bool:
    """Block and lot numbers compared numerically, so "07" matches "7" """
    if destination is None:
        return False
    pairs = [(lot.block_number, destination.block_number), (lot.lot_number, destination.lot_number)]
    for a, b in pairs:
        na, nb = _as_number(a), _as_number(b)
        if na is None or nb is None or na != nb:
            return False
    return True


def lot_style(lot: Lot, destination: Optional[Lot]) -> LotStyle:
    if is_destination(lot, destination):
        color = LOT_TYPE_COLORS.get(lot.type, DESTINATION_FALLBACK_COLOR)
        return LotStyle(fill=f"{color}99", stroke=color, width=3, is_destination=True)
    return LotStyle(fill=DIMMED_LOT_FILL, stroke=DIMMED_LOT_STROKE, width=1.5)


def find_lot(lots: Sequence[Lot], block_number, lot_number) -> Optional[Lot]:
    for lot in lots:
        if str(lot.lot_number) == str(lot_number) and str(lot.block_number) == str(block_number):
            return lot
    return None


def sector_image_path(garden: str, sector: str, image_dir: Path = SECTOR_IMAGE_DIR) -> Path:
    return Path(image_dir) / f"{garden} - {sector}.png"


def load_sector_image(garden: str, sector: str, image_dir: Path = SECTOR_IMAGE_DIR) -> Optional[Image.Image]:
    path = sector_image_path(garden, sector, image_dir)
    if not path.exists():
        logger.warning("No sector image at %s", path)
        return None
    with Image.open(path) as img:
        return img.convert("RGBA")


def warp_image(image: Image.Image, dest: Corners, canvas_size: Tuple[int, int],
               opacity: float = 1.0, grid: int = WARP_GRID_SIZE) -> Image.Image:
    """Rasterise the image into the quad `dest` (canvas pixels) triangle by triangle"""
    canvas = Image.new("RGBA", canvas_size, (0, 0, 0, 0))
    src = image.convert("RGBA")
    cw, ch = canvas_size
    for cell in warp_grid(src.size, dest, cols=grid, rows=grid):
        for tri in cell.triangles:
            if tri.affine is None:
                continue
            inverse = invert_affine(tri.affine)
            if inverse is None:
                continue
            min_x, min_y, max_x, max_y = bounding_box(tri.dst)
            ox, oy = max(0, int(min_x)), max(0, int(min_y))
            w = min(cw, int(max_x) + 2) - ox
            h = min(ch, int(max_y) + 2) - oy
            if w <= 0 or h <= 0:
                continue
            a, b, c, d, e, f = inverse
            # Pillow maps output pixels back to input pixels
            data = (a, c, a * ox + c * oy + e, b, d, b * ox + d * oy + f)
            patch = src.transform((w, h), Image.Transform.AFFINE, data, resample=Image.Resampling.BILINEAR)
            mask = Image.new("L", (w, h), 0)
            ImageDraw.Draw(mask).polygon([(x - ox, y - oy) for x, y in tri.dst], fill=255)
            canvas.paste(patch, (ox, oy), mask)
    if opacity < 1.0:
        alpha = canvas.getchannel("A").point(lambda v: int(v * opacity))
        canvas.putalpha(alpha)
    return canvas


@dataclass
class LotShape:
    lot: Lot
    points: List[Point]
    style: LotStyle


class SectorOverlay:
    """Warped sector image plus lot polygons, redrawn on every bounds change"""

    def __init__(self, surface: MapSurface, corners: Corners, image: Optional[Image.Image],
                 lots: Sequence[Lot], destination: Optional[Lot] = None,
                 opacity: float = DEFAULT_UI_CONFIG["sectorOverlayOpacity"]):
        self.surface = surface
        self.corners = corners
        self.image = image
        self.lots = list(lots)
        self.destination = destination
        self.opacity = opacity
        self.canvas: Optional[Image.Image] = None
        self.origin: Point = (0.0, 0.0)
        self.screen_lots: List[LotShape] = []
        self.geo_lots: List[LotShape] = []
        self._listener = None

    def attach(self):
        self.surface.add_overlay(self)
        self._listener = self.surface.on_bounds_changed(self.draw)
        self.geo_lots = self._lot_shapes(self.corners)
        self.draw()

    def detach(self):
        self.surface.remove_overlay(self)
        if self._listener is not None:
            self.surface.remove_listener(self._listener)
            self._listener = None
        self.canvas = None
        self.screen_lots = []

    def _lot_shapes(self, quad: Corners, offset: Point = (0.0, 0.0)) -> List[LotShape]:
        if self.image is None:
            return []
        shapes = []
        for lot in self.lots:
            if lot.coordinates is None:
                continue
            pts = lot_polygon(lot.coordinates, self.image.size, quad)
            shapes.append(LotShape(
                lot=lot,
                points=[(x - offset[0], y - offset[1]) for x, y in pts],
                style=lot_style(lot, self.destination),
            ))
        return shapes

    def draw(self):
        screen = self.corners.map(self.surface.project_to_screen)
        min_x, min_y, max_x, max_y = bounding_box(screen.as_list())
        width = max(1, math.ceil(max_x - min_x))
        height = max(1, math.ceil(max_y - min_y))
        self.origin = (min_x, min_y)
        local = screen.map(lambda p: (p[0] - min_x, p[1] - min_y))

        if self.image is not None:
            canvas = warp_image(self.image, local, (width, height), self.opacity)
        else:
            canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))

        self.screen_lots = self._lot_shapes(screen, offset=self.origin)
        layer = ImageDraw.Draw(canvas, "RGBA")
        for shape in self.screen_lots:
            layer.polygon(shape.points, fill=shape.style.fill)
            layer.line(shape.points + shape.points[:1], fill=shape.style.stroke,
                       width=max(1, int(round(shape.style.width))))
        self.canvas = canvas
        return canvas


@dataclass
class Label:
    title: str
    position: Point
    color: Optional[str] = None
    variant: str = ""

    @property
    def background(self) -> str:
        return self.color or DEFAULT_LABEL_COLOR

    @property
    def text_color(self) -> str:
        return "#ffffff" if self.color else "#111827"


@dataclass
class PlacedLabel:
    label: Label
    x: float
    y: float
    transform: str = "translate(-50%, -100%)"
    pointer_events: str = "none"


def _latlng(raw) -> Optional[Point]:
    if not isinstance(raw, dict):
        return None
    lat, lng = _as_number(raw.get("lat")), _as_number(raw.get("lng"))
    if lat is None or lng is None:
        return None
    return lat, lng


def build_labels(markers: Sequence[dict], start: Point = MAIN_GATE,
                 destination: Optional[Point] = None) -> List[Label]:
    labels: List[Label] = []
    for m in markers:
        title = str(m.get("title") or "")
        if m.get("kind") == "segment":
            a, b = _latlng(m.get("from")), _latlng(m.get("to"))
            if a is None or b is None:
                continue
            for mid in segment_thirds(a, b):
                labels.append(Label(title=title, position=mid, color=m.get("color")))
            continue
        point = _latlng(m)
        if point is not None:
            labels.append(Label(title=title, position=point, color=m.get("color")))
    labels.append(Label(title="Start", position=start, color=START_LABEL_COLOR, variant="start"))
    if destination is not None:
        labels.append(Label(title="Destination", position=destination, color=DESTINATION_LABEL_COLOR, variant="dest"))
    return labels


class LabelOverlay:
    """Text bubbles anchored bottom-centre on their point; never interactive"""

    def __init__(self, surface: MapSurface, labels: Sequence[Label]):
        self.surface = surface
        self.labels = list(labels)
        self.placed: List[PlacedLabel] = []
        self._listener = None

    def attach(self):
        self.surface.add_overlay(self)
        self._listener = self.surface.on_bounds_changed(self.draw)
        self.draw()

    def draw(self):
        self.placed = []
        for label in self.labels:
            x, y = self.surface.project_to_screen(label.position)
            self.placed.append(PlacedLabel(label=label, x=x, y=y))
        return self.placed

    def detach(self):
        self.surface.remove_overlay(self)
        if self._listener is not None:
            self.surface.remove_listener(self._listener)
            self._listener = None
        self.placed = []


class PathAnimator:
    """Fit the route once, then pan along it one waypoint per tick

    Ticks come from timer threads (``start(schedule=True)``) or from a caller
    that invokes ``step_if_due()`` on its own refresh loop.
    """

    def __init__(self, surface: MapSurface, path: Sequence[Point],
                 delay: float = PATH_ANIMATION_DELAY, interval: float = PATH_ANIMATION_INTERVAL,
                 clock: Callable[[], float] = time.monotonic):
        self.surface = surface
        self.path = [tuple(p) for p in path]
        self.delay = delay
        self.interval = interval
        self.clock = clock
        self.index = 0
        self._started_at: Optional[float] = None
        self._last_step: Optional[float] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._timer is not None

    @property
    def finished(self) -> bool:
        return self._cancelled or len(self.path) < 2 or self.index >= len(self.path)

    def start(self, schedule: bool = True):
        if not self.path:
            return
        self.surface.fit_bounds(self.path, PATH_FIT_PADDING)
        self._started_at = self.clock()
        if schedule and len(self.path) > 1:
            self._schedule(self.delay)

    def _schedule(self, seconds: float):
        with self._lock:
            if self._cancelled:
                return
            self._timer = threading.Timer(seconds, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def _tick(self):
        if self.step():
            self._schedule(self.interval)

    def step_if_due(self) -> bool:
        """Take the next step when the delay, then the interval, has passed"""
        if self._started_at is None or self.finished:
            return False
        now = self.clock()
        if self._last_step is None:
            due = now - self._started_at >= self.delay
        else:
            due = now - self._last_step >= self.interval
        if not due:
            return False
        self._last_step = now
        return self.step()

    def step(self) -> bool:
        """Advance one waypoint; False once the route is finished"""
        if self._cancelled or self.index >= len(self.path):
            with self._lock:
                self._timer = None
            return False
        self.surface.pan_to(self.path[self.index])
        if self.index == 0:
            self.surface.set_zoom(max(DEFAULT_MAP_ZOOM, self.surface.get_zoom() or DEFAULT_MAP_ZOOM))
        self.index += 1
        return True

    def cancel(self):
        with self._lock:
            self._cancelled = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None


class DirectionalGuide:
    """Route from the main gate to one lot: sector overlay, labels and a following camera"""

    def __init__(self, surface: MapSurface, corners: Corners, image: Optional[Image.Image],
                 lots: Sequence[Lot], destination: Optional[Lot], path: Sequence[Point],
                 markers: Sequence[dict] = (), ui_config: Optional[dict] = None):
        config = {**DEFAULT_UI_CONFIG, **(ui_config or {})}
        self.surface = surface
        self.path = [tuple(p) for p in path]
        self.path_opacity = float(config["directionalOpacity"])
        self.destination = destination
        self.destination_point: Optional[Point] = None
        if destination is not None and destination.coordinates is not None and image is not None:
            self.destination_point = lot_center(destination.coordinates, image.size, corners)
        self.sector = SectorOverlay(surface, corners, image, lots, destination,
                                    opacity=float(config["sectorOverlayOpacity"]))
        self.labels = LabelOverlay(surface, build_labels(markers, MAIN_GATE, self.destination_point))
        self.animator = PathAnimator(surface, self.path)
        self.opened = False

    def open(self, animate: bool = True, schedule: bool = True):
        self.sector.attach()
        self.labels.attach()
        if animate:
            self.animator.start(schedule=schedule)
        else:
            # static view frames the sector as well as the route
            self.surface.fit_bounds(self.path + self.sector.corners.as_list(), PATH_FIT_PADDING)
        self.opened = True
        return self

    def close(self):
        self.animator.cancel()
        if self.opened:
            self.labels.detach()
            self.sector.detach()
            self.opened = False
