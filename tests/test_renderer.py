import logging
from unittest import mock

import numpy as np
import matplotlib.pyplot as plt
import pytest
import requests
from matplotlib.backend_bases import MouseEvent
from matplotlib.collections import LineCollection

from grenoble_map.model.models import Coordinate
from grenoble_map.mapview.config import MapConfig
from grenoble_map.mapview.overlay import TileLayer
from grenoble_map.mapview.renderer import MapCanvas, format_length, line_midpoint, scale_bar_length
from grenoble_map.mapview.session import MapSession

from conftest import ImmediateExecutor, PendingExecutor

BASTILLE = Coordinate(45.198601, 5.724592)


@pytest.fixture
def canvas(scene, offline_http):
    # offline: no cycle paths, dot markers instead of the icon
    session = MapSession(scene, MapConfig(tiles=False, width_px=800, height_px=600, dpi=100),
                         http=offline_http, executor=ImmediateExecutor()).start()
    c = MapCanvas(session)
    c.build()
    yield c
    plt.close(c.fig)
    session.close()


def mouse(canvas, name, coord=None, xy=None, **kw):
    if coord is not None:
        xy = canvas.ax.transData.transform(canvas.view.projection.project(coord))
    return MouseEvent(name, canvas.fig.canvas, xy[0], xy[1], **kw)


def texts(canvas):
    return [t.get_text() for t in canvas.ax.texts]


# --- helpers ------------------------------------------------------------

@pytest.mark.parametrize("max_m, expected", [(137, 100), (250, 200), (999, 500), (0.7, 0.5), (1000, 1000), (0, 0)])
def test_scale_bar_length(max_m, expected):
    assert scale_bar_length(max_m) == pytest.approx(expected)


def test_format_length():
    assert format_length(500) == "500 m"
    assert format_length(2000) == "2 km"
    assert format_length(0.5) == "0.5 m"


def test_line_midpoint():
    assert line_midpoint(np.array([[0.0, 0.0], [10.0, 0.0]])) == (5.0, 0.0)
    assert line_midpoint(np.array([[0.0, 0.0], [4.0, 0.0], [4.0, 4.0]])) == (4.0, 0.0)
    assert line_midpoint(np.array([[1.0, 1.0], [1.0, 1.0]])) == (1.0, 1.0)


# --- drawing ------------------------------------------------------------

def test_build_sizes_view_to_axes(canvas):
    assert canvas.view.size_px == (800, 600)
    xmin, ymin, xmax, ymax = canvas.view.bounds()
    assert canvas.ax.get_xlim() == pytest.approx((xmin, xmax))
    assert canvas.ax.get_ylim() == pytest.approx((ymin, ymax))


def test_legend(canvas):
    legend = canvas.ax.get_legend()
    assert legend.get_title().get_text() == "Legend"
    assert [t.get_text() for t in legend.get_texts()] == ["Cycle Paths", "Cable Car"]


def test_widgets(canvas):
    assert canvas.layer_buttons is not None
    assert [l.get_text() for l in canvas.layer_buttons.labels] == ["Streets (OSM)", "Satellite (Esri)"]
    assert canvas.search_box is not None


def test_distance_tooltip_follows_zoom(canvas):
    assert not any(t.startswith("Distance : ") for t in texts(canvas))
    canvas.view.set_zoom(15)
    canvas._tick()
    assert any(t.startswith("Distance : ") for t in texts(canvas))
    canvas.view.set_zoom(10)
    canvas._tick()
    assert not any(t.startswith("Distance : ") for t in texts(canvas))


def test_click_on_marker_focuses_and_opens_popup(canvas):
    canvas.view.set_zoom(15)
    canvas.redraw()
    canvas._on_click(mouse(canvas, "button_release_event", coord=BASTILLE, button=1))
    assert canvas.view.center == BASTILLE
    assert canvas.view.zoom == 16
    canvas._tick()
    assert "The Bastille of Grenoble" in texts(canvas)


def test_click_on_empty_map_closes_popup(canvas):
    canvas.s.open_popup(canvas.s.scene.polygons[0])
    canvas._tick()
    assert "Jardin de ville" in texts(canvas)
    canvas._on_click(mouse(canvas, "button_release_event", xy=(20, 300), button=1))
    assert canvas.s.popup is None
    canvas._tick()
    assert "Jardin de ville" not in texts(canvas)


def test_drag_pans(canvas):
    before = canvas.view.projection.project(canvas.view.center)
    canvas._on_press(mouse(canvas, "button_press_event", xy=(400, 300), button=1))
    canvas._on_release(mouse(canvas, "button_release_event", xy=(500, 250), button=1))
    after = canvas.view.projection.project(canvas.view.center)
    res = canvas.view.resolution
    assert after[0] - before[0] == pytest.approx(-100 * res, rel=1e-3)
    assert after[1] - before[1] == pytest.approx(50 * res, rel=1e-3)
    assert canvas.view.zoom == 13


def test_right_button_press_is_ignored(canvas):
    canvas._on_press(mouse(canvas, "button_press_event", xy=(400, 300), button=3))
    assert canvas._press is None


def test_scroll_zooms(canvas):
    canvas._on_scroll(mouse(canvas, "scroll_event", xy=(400, 300), step=1))
    assert canvas.view.zoom == 14
    canvas._on_scroll(mouse(canvas, "scroll_event", xy=(400, 300), step=-1))
    canvas._on_scroll(mouse(canvas, "scroll_event", xy=(400, 300), step=-1))
    assert canvas.view.zoom == 12


def test_layer_radio_switches_base_layer(canvas):
    canvas._on_layer_selected("Satellite (Esri)")
    assert canvas.view.base_layer.name == "Satellite (Esri)"
    assert canvas._dirty


def test_feature_overlay_is_drawn(canvas, feature_collection):
    canvas.s.add_feature_overlay(canvas.s.scene.remote_overlays[0], feature_collection)
    canvas._tick()
    (lc,) = [c for c in canvas.ax.collections if isinstance(c, LineCollection)]
    assert len(lc.get_segments()) == 3


def test_tiles_drawn_under_everything(scene, offline_http):
    session = MapSession(scene, MapConfig(width_px=400, height_px=300, dpi=100),
                         http=offline_http, executor=ImmediateExecutor()).start()
    img = np.zeros((256, 256, 3))
    with mock.patch.object(TileLayer, "fetch", return_value=(img, (0, 1, 0, 1), 13)) as fetch:
        c = MapCanvas(session)
        c.build()
        c._on_layer_selected("Satellite (Esri)")
        c._tick()
    assert len(c.ax.images) == 1
    assert c.ax.images[0].get_zorder() == 0
    assert fetch.call_count == 2
    assert any("Esri" in t for t in texts(c))
    plt.close(c.fig)
    session.close()


def test_tile_failure_degrades_to_blank_background(scene, offline_http, caplog):
    session = MapSession(scene, MapConfig(width_px=400, height_px=300, dpi=100),
                         http=offline_http, executor=ImmediateExecutor()).start()
    with mock.patch.object(TileLayer, "fetch", side_effect=requests.ConnectionError("down")), \
            caplog.at_level(logging.WARNING):
        c = MapCanvas(session)
        c.build()
    assert len(c.ax.images) == 0
    assert "Could not fetch Streets (OSM) tiles" in caplog.text
    assert c.ax.get_legend() is not None
    plt.close(c.fig)
    session.close()


def test_save_writes_png(canvas, tmp_path):
    out = tmp_path / "map.png"
    canvas.save(str(out), timeout=1)
    assert out.read_bytes()[:4] == b"\x89PNG"


def test_tile_fetch_runs_off_the_ui_thread(scene, offline_http):
    executor = PendingExecutor()
    session = MapSession(scene, MapConfig(width_px=400, height_px=300, dpi=100),
                         http=offline_http, executor=executor).start()
    img = np.zeros((256, 256, 3))
    with mock.patch.object(TileLayer, "fetch", return_value=(img, (0, 1, 0, 1), 13)) as fetch:
        c = MapCanvas(session)
        c.build()
        assert len(c.ax.images) == 0
        assert fetch.call_count == 0
        executor.run_all()
        c._tick()
    assert fetch.call_count == 1
    assert len(c.ax.images) == 1
    plt.close(c.fig)
    session.close()
