"""Directional guide overlay tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest
from PIL import Image

from config.settings import DEFAULT_MAP_ZOOM, MAIN_GATE
from core.geometry import Corners
from core.map_overlay import (
    DirectionalGuide, LabelOverlay, MapSurface, PathAnimator, SectorOverlay,
    build_labels, find_lot, is_destination, load_sector_image, lot_style, sector_image_path,
)
from data_manager.schema import Lot, LotBox


class FakeSurface(MapSurface):
    """lat/lng units scaled by 10 straight onto screen pixels"""

    def __init__(self):
        self.overlays = []
        self.listeners = {}
        self.fitted = []
        self.panned = []
        self.zoom = 17

    def add_overlay(self, overlay):
        self.overlays.append(overlay)

    def remove_overlay(self, overlay):
        self.overlays.remove(overlay)

    def project_to_screen(self, latlng):
        return latlng[1] * 10, latlng[0] * 10

    def on_bounds_changed(self, callback):
        handle = len(self.listeners) + 1
        self.listeners[handle] = callback
        return handle

    def remove_listener(self, handle):
        self.listeners.pop(handle, None)

    def fit_bounds(self, points, padding):
        self.fitted.append(list(points))

    def pan_to(self, point):
        self.panned.append(point)

    def get_zoom(self):
        return self.zoom

    def set_zoom(self, zoom):
        self.zoom = zoom


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def corners():
    return Corners.from_api([[0, 0], [10, 0], [10, 10], [0, 10]])


@pytest.fixture
def image():
    return Image.new("RGBA", (20, 20), (200, 30, 30, 255))


def _lot(block, number, box=None, type_="standard"):
    return Lot(garden="Joy Garden", sector="A", block_number=block, lot_number=number, type=type_, coordinates=box)


class TestDestination:
    def test_numeric_match(self):
        assert is_destination(_lot("01", "07"), _lot("1", "7"))

    def test_different_lot(self):
        assert not is_destination(_lot("1", "8"), _lot("1", "7"))

    def test_non_numeric_never_matches(self):
        assert not is_destination(_lot("A", "7"), _lot("A", "7"))

    def test_no_destination(self):
        assert not is_destination(_lot("1", "7"), None)

    def test_destination_style_uses_type_color(self):
        style = lot_style(_lot("1", "7", type_="premium"), _lot("1", "7"))
        assert style.is_destination
        assert style.stroke == "#2196F3"
        assert style.width == 3

    def test_other_lots_are_dimmed(self):
        style = lot_style(_lot("1", "8"), _lot("1", "7"))
        assert not style.is_destination
        assert style.stroke == "#999999"

    def test_find_lot_compares_as_text(self):
        lots = [_lot("1", "7"), _lot("2", "7")]
        assert find_lot(lots, 2, 7) is lots[1]
        assert find_lot(lots, 3, 7) is None


class TestSectorImage:
    def test_path(self, tmp_path):
        assert sector_image_path("Joy Garden", "A", tmp_path) == tmp_path / "Joy Garden - A.png"

    def test_missing_image(self, tmp_path):
        assert load_sector_image("Joy Garden", "A", tmp_path) is None

    def test_loads_as_rgba(self, tmp_path):
        Image.new("RGB", (4, 3), (1, 2, 3)).save(tmp_path / "Joy Garden - A.png")
        img = load_sector_image("Joy Garden", "A", tmp_path)
        assert img.mode == "RGBA"
        assert img.size == (4, 3)


class TestSectorOverlay:
    def test_canvas_covers_projected_quad(self, surface, corners, image):
        overlay = SectorOverlay(surface, corners, image, [])
        overlay.attach()
        assert overlay.canvas.size == (100, 100)
        assert overlay.origin == (0.0, 0.0)

    def test_image_is_painted_with_opacity(self, surface, corners, image):
        overlay = SectorOverlay(surface, corners, image, [], opacity=0.5)
        overlay.attach()
        r, g, b, a = overlay.canvas.getpixel((52, 52))
        assert r > 150
        assert 100 <= a <= 140

    def test_lots_without_box_are_skipped(self, surface, corners, image):
        lots = [_lot("1", "1", LotBox(0, 0, 10, 10)), _lot("1", "2")]
        overlay = SectorOverlay(surface, corners, image, lots)
        overlay.attach()
        assert len(overlay.screen_lots) == 1
        assert len(overlay.geo_lots) == 1

    def test_redraws_on_bounds_change(self, surface, corners, image):
        overlay = SectorOverlay(surface, corners, image, [])
        overlay.attach()
        surface.project_to_screen = lambda p: (p[1] * 5, p[0] * 5)
        for callback in surface.listeners.values():
            callback()
        assert overlay.canvas.size == (50, 50)

    def test_detach(self, surface, corners, image):
        overlay = SectorOverlay(surface, corners, image, [])
        overlay.attach()
        overlay.detach()
        assert overlay.canvas is None
        assert surface.overlays == []
        assert surface.listeners == {}

    def test_without_image(self, surface, corners):
        overlay = SectorOverlay(surface, corners, None, [_lot("1", "1", LotBox(0, 0, 10, 10))])
        overlay.attach()
        assert overlay.canvas.getpixel((50, 50))[3] == 0
        assert overlay.screen_lots == []


class TestLabels:
    def test_point_markers(self):
        labels = build_labels([{"title": "Chapel", "lat": 1, "lng": 2}])
        assert [l.title for l in labels] == ["Chapel", "Start"]
        assert labels[0].position == (1.0, 2.0)
        assert labels[-1].position == MAIN_GATE

    def test_segment_gets_two_labels(self):
        labels = build_labels([{"kind": "segment", "title": "Main Road",
                                "from": {"lat": 0, "lng": 0}, "to": {"lat": 3, "lng": 6}}])
        road = [l for l in labels if l.title == "Main Road"]
        assert [l.position for l in road] == [(1.0, 2.0), (2.0, 4.0)]

    def test_bad_markers_are_skipped(self):
        labels = build_labels([{"title": "x", "lat": "n/a", "lng": 1}, {"kind": "segment", "from": None}])
        assert [l.title for l in labels] == ["Start"]

    def test_destination_label(self):
        labels = build_labels([], destination=(5, 5))
        assert labels[-1].title == "Destination"
        assert labels[-1].variant == "dest"

    def test_colors(self):
        plain, start = build_labels([{"title": "Office", "lat": 0, "lng": 0}])
        assert plain.text_color == "#111827"
        assert start.text_color == "#ffffff"

    def test_overlay_places_labels(self, surface):
        overlay = LabelOverlay(surface, build_labels([{"title": "Chapel", "lat": 1, "lng": 2}]))
        overlay.attach()
        chapel = overlay.placed[0]
        assert (chapel.x, chapel.y) == (20, 10)
        assert chapel.transform == "translate(-50%, -100%)"
        assert chapel.pointer_events == "none"


class TestPathAnimator:
    def test_steps_through_waypoints(self, surface):
        animator = PathAnimator(surface, [(0, 0), (1, 1), (2, 2)])
        assert animator.step()
        assert surface.zoom == DEFAULT_MAP_ZOOM
        assert animator.step()
        assert animator.step()
        assert not animator.step()
        assert surface.panned == [(0, 0), (1, 1), (2, 2)]

    def test_zoom_is_not_lowered(self, surface):
        surface.zoom = 24
        PathAnimator(surface, [(0, 0)]).step()
        assert surface.zoom == 24

    def test_start_fits_route(self, surface):
        animator = PathAnimator(surface, [(0, 0), (1, 1)], delay=60)
        animator.start()
        animator.cancel()
        assert surface.fitted == [[(0, 0), (1, 1)]]
        assert not animator.running

    def test_cancelled_animator_stops(self, surface):
        animator = PathAnimator(surface, [(0, 0), (1, 1)])
        animator.cancel()
        assert not animator.step()
        assert surface.panned == []

    def test_empty_path(self, surface):
        PathAnimator(surface, []).start()
        assert surface.fitted == []


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestDrivenAnimation:
    def test_step_if_due_follows_delay_then_interval(self, surface):
        clock = FakeClock()
        animator = PathAnimator(surface, [(0, 0), (1, 1), (2, 2)], delay=0.5, interval=0.3, clock=clock)
        animator.start(schedule=False)
        assert not animator.running
        assert not animator.step_if_due()
        clock.now = 0.5
        assert animator.step_if_due()
        clock.now = 0.6
        assert not animator.step_if_due()
        clock.now = 0.8
        assert animator.step_if_due()
        clock.now = 1.1
        assert animator.step_if_due()
        assert animator.finished
        clock.now = 5.0
        assert not animator.step_if_due()
        assert surface.panned == [(0, 0), (1, 1), (2, 2)]

    def test_not_started_never_steps(self, surface):
        clock = FakeClock()
        animator = PathAnimator(surface, [(0, 0), (1, 1)], clock=clock)
        clock.now = 10.0
        assert not animator.step_if_due()

    def test_single_point_has_nothing_to_animate(self, surface):
        animator = PathAnimator(surface, [(0, 0)])
        animator.start(schedule=False)
        assert animator.finished
        assert surface.fitted == [[(0, 0)]]

    def test_guide_animates_and_close_stops_it(self, surface, corners, image):
        lot = _lot("1", "1", LotBox(5, 5, 10, 10))
        guide = DirectionalGuide(surface, corners, image, [lot], lot, [(1, 1), (2, 2)])
        clock = FakeClock()
        guide.animator.clock = clock
        guide.open(animate=True, schedule=False)
        assert surface.fitted == [[(1, 1), (2, 2)]]
        assert not guide.animator.finished
        clock.now = 1.0
        assert guide.animator.step_if_due()
        assert surface.panned == [(1, 1)]
        guide.close()
        assert guide.animator.finished
        clock.now = 2.0
        assert not guide.animator.step_if_due()
        assert surface.overlays == []


class TestDirectionalGuide:
    def test_open_and_close(self, surface, corners, image):
        lot = _lot("1", "1", LotBox(5, 5, 10, 10))
        guide = DirectionalGuide(surface, corners, image, [lot], lot, [(1, 1), (2, 2)],
                                 markers=[], ui_config={"directionalOpacity": 0.5})
        guide.open(animate=False)
        assert guide.path_opacity == 0.5
        assert guide.destination_point == pytest.approx((5.0, 5.0))
        assert guide.labels.labels[-1].title == "Destination"
        assert len(surface.overlays) == 2
        assert (1, 1) in surface.fitted[0]
        guide.close()
        assert surface.overlays == []
        assert not guide.opened

    def test_no_destination_point_without_box(self, surface, corners, image):
        lot = _lot("1", "1")
        guide = DirectionalGuide(surface, corners, image, [lot], lot, [])
        assert guide.destination_point is None
        assert guide.labels.labels[-1].title == "Start"
