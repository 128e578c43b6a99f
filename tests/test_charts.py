"""Chart factory and map surface tests"""
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from components.charts import (
    WebMercatorSurface, create_inventory_bar, create_revenue_chart, create_schedule_status_pie,
    image_data_uri,
)
from config.settings import MAIN_GATE, MAP_MAX_ZOOM, MAP_MIN_ZOOM


class TestSurface:
    def test_center_projects_to_middle(self):
        surface = WebMercatorSurface(width=800, height=600)
        x, y = surface.project_to_screen(MAIN_GATE)
        assert x == pytest.approx(400)
        assert y == pytest.approx(300)

    def test_screen_to_latlng_inverts_projection(self):
        surface = WebMercatorSurface()
        point = (MAIN_GATE[0] + 0.0003, MAIN_GATE[1] - 0.0002)
        lat, lng = surface.screen_to_latlng(surface.project_to_screen(point))
        assert lat == pytest.approx(point[0], abs=1e-9)
        assert lng == pytest.approx(point[1], abs=1e-9)

    def test_north_is_up(self):
        surface = WebMercatorSurface()
        _, y_north = surface.project_to_screen((MAIN_GATE[0] + 0.001, MAIN_GATE[1]))
        assert y_north < surface.height / 2

    def test_fit_bounds_centers_and_notifies(self):
        surface = WebMercatorSurface()
        calls = []
        surface.on_bounds_changed(lambda: calls.append(True))
        surface.fit_bounds([(14.0, 121.0), (14.002, 121.002)], padding=40)
        assert surface.center == pytest.approx((14.001, 121.001))
        assert MAP_MIN_ZOOM <= surface.zoom <= MAP_MAX_ZOOM
        assert calls == [True]

    def test_fit_single_point_uses_max_zoom(self):
        surface = WebMercatorSurface()
        surface.fit_bounds([MAIN_GATE], padding=40)
        assert surface.zoom == MAP_MAX_ZOOM

    def test_fit_wide_area_clamps_to_min_zoom(self):
        surface = WebMercatorSurface()
        surface.fit_bounds([(10.0, 120.0), (15.0, 125.0)], padding=40)
        assert surface.zoom == MAP_MIN_ZOOM

    def test_fit_nothing_is_noop(self):
        surface = WebMercatorSurface()
        surface.fit_bounds([], padding=40)
        assert surface.center == tuple(MAIN_GATE)

    def test_set_zoom_clamps(self):
        surface = WebMercatorSurface()
        surface.set_zoom(40)
        assert surface.get_zoom() == MAP_MAX_ZOOM

    def test_removed_listener_is_silent(self):
        surface = WebMercatorSurface()
        calls = []
        handle = surface.on_bounds_changed(lambda: calls.append(True))
        surface.remove_listener(handle)
        surface.pan_to((14.0, 121.0))
        assert calls == []


class TestCharts:
    def test_pie_splits_overdue_out_of_unpaid(self):
        fig = create_schedule_status_pie({"paid": 2, "unpaid": 5, "overdue": 3})
        assert list(fig.data[0].values) == [2, 2, 3]

    def test_revenue_chart_has_two_axes(self):
        fig = create_revenue_chart([{"month": "2024-01", "revenue": "1000", "payments": 2}], "Month")
        assert [t.name for t in fig.data] == ["Revenue", "Payments"]
        assert fig.data[1].yaxis == "y2"
        assert list(fig.data[0].y) == [1000.0]

    def test_inventory_bar_is_stacked(self):
        fig = create_inventory_bar([{"garden": "Joy Garden", "section": "A", "availableLots": 3}])
        assert fig.layout.barmode == "stack"
        assert list(fig.data[0].x) == ["Joy Garden / A"]


def test_image_data_uri():
    from PIL import Image
    uri = image_data_uri(Image.new("RGBA", (2, 2)))
    assert uri.startswith("data:image/png;base64,")


def test_light_theme_is_the_only_custom_template():
    import plotly.io as pio
    assert pio.templates.default == "memorial_dashboard_light"
    assert [name for name in pio.templates if name.startswith("memorial_")] == ["memorial_dashboard_light"]
