# renderer.py
from __future__ import annotations
import logging
import math
from concurrent.futures import Future, wait
from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt
import requests
from matplotlib import patches
from matplotlib.collections import LineCollection
from matplotlib.colors import to_rgba
from matplotlib.lines import Line2D
from matplotlib.offsetbox import AnnotationBbox, OffsetImage
from matplotlib.widgets import RadioButtons, TextBox
from mpl_toolkits.axes_grid1.anchored_artists import AnchoredSizeBar

from grenoble_map.model.events import MapEvent
from grenoble_map.model.models import FeatureOverlay, Marker, Polygon, Polyline, Shape
from .geojson import project_geometries
from .markers import IconImageCache, icon_alignment, icon_zoom
from .session import MapSession

logger = logging.getLogger(__name__)

CLICK_TOLERANCE_PX = 4
SCALE_BAR_MAX_PX = 100
TICK_MS = 100

_BOX = dict(boxstyle="round,pad=0.25", fc="white", ec="gray", alpha=0.85)


def scale_bar_length(max_m: float) -> float:
    """Largest 1/2/5 x 10^n metres not longer than max_m."""
    if max_m <= 0:
        return 0.0
    base = 10 ** math.floor(math.log10(max_m))
    for f in (5, 2, 1):
        if f * base <= max_m:
            return f * base
    return base


def format_length(m: float) -> str:
    return f"{m / 1000:g} km" if m >= 1000 else f"{m:g} m"


def line_midpoint(xy: np.ndarray) -> Tuple[float, float]:
    """Point halfway along a projected polyline."""
    seg = np.hypot(*np.diff(xy, axis=0).T)
    total = seg.sum()
    if total == 0:
        return float(xy[0, 0]), float(xy[0, 1])
    half = total / 2
    cum = np.concatenate([[0.0], np.cumsum(seg)])
    i = int(np.searchsorted(cum, half, side="right")) - 1
    i = min(i, len(seg) - 1)
    t = (half - cum[i]) / seg[i] if seg[i] else 0.0
    p = xy[i] + (xy[i + 1] - xy[i]) * t
    return float(p[0]), float(p[1])


class MapCanvas:
    """Draws a MapSession into a matplotlib figure and feeds UI events back to it."""

    def __init__(self, session: MapSession, icons: IconImageCache | None = None):
        self.s = session
        self.view = session.view
        self.icons = icons or IconImageCache(session.http)
        self.fig = None
        self.ax = None
        self.layer_buttons: Optional[RadioButtons] = None
        self.search_box: Optional[TextBox] = None
        self._pickables: List[Tuple[object, Shape]] = []
        self._features: Dict[int, Tuple[List[np.ndarray], np.ndarray]] = {}
        self._press: Optional[Tuple[float, float]] = None
        self._timer = None
        self._tiles: Optional[Tuple[np.ndarray, Tuple[float, float, float, float]]] = None
        self._tile_key: Optional[tuple] = None
        self._tile_future: Optional[Future] = None
        self._dirty = True

    # --- setup --------------------------------------------------------

    def build(self):
        cfg = self.s.config
        with plt.rc_context({"toolbar": "None"}):
            self.fig = plt.figure(figsize=(cfg.width_px / cfg.dpi, cfg.height_px / cfg.dpi), dpi=cfg.dpi)
        self.ax = self.fig.add_axes([0.0, 0.0, 1.0, 1.0])
        self._sync_size()

        # layer switcher (top right)
        names = self.view.base_layers.names
        rax = self.fig.add_axes([0.79, 0.86, 0.2, 0.03 + 0.035 * len(names)])
        self.layer_buttons = RadioButtons(rax, names, active=names.index(self.view.base_layer.name))
        self.layer_buttons.on_clicked(self._on_layer_selected)

        # address search (top left)
        if self.s.geocoder is not None:
            sax = self.fig.add_axes([0.07, 0.945, 0.4, 0.04])
            self.search_box = TextBox(sax, "Search ", initial="")
            self.search_box.on_submit(self._on_search)

        canvas = self.fig.canvas
        canvas.mpl_connect("button_press_event", self._on_press)
        canvas.mpl_connect("button_release_event", self._on_release)
        canvas.mpl_connect("scroll_event", self._on_scroll)
        canvas.mpl_connect("resize_event", self._on_resize)
        canvas.mpl_connect("close_event", self._on_close)

        for type in ("move", "baselayerchange", "resize"):
            self.view.on(type, self._mark_dirty)
        for type in ("overlayadd", "popupopen", "popupclose", "searchresult"):
            self.s.on(type, self._mark_dirty)

        self._timer = canvas.new_timer(interval=TICK_MS)
        self._timer.add_callback(self._tick)
        self._timer.start()

        self.redraw()
        return self.fig

    def _sync_size(self) -> None:
        bbox = self.ax.get_window_extent()
        self.view.resize(bbox.width, bbox.height)

    # --- drawing ------------------------------------------------------

    def redraw(self) -> None:
        ax = self.ax
        ax.cla()
        self._pickables = []
        xmin, ymin, xmax, ymax = self.view.bounds()

        if self.s.config.tiles:
            self._draw_tiles(xmin, ymin, xmax, ymax)

        for overlay in self.s.feature_overlays:
            self._draw_features(overlay)
        for shape in self.s.shapes():
            if isinstance(shape, Polygon):
                self._draw_polygon(shape)
            elif isinstance(shape, Polyline):
                self._draw_polyline(shape)
            elif isinstance(shape, Marker):
                self._draw_marker(shape)

        self._draw_tooltips()
        self._draw_popup()
        self._draw_legend()
        self._draw_scale_bar()

        ax.set_xlim(xmin, xmax)
        ax.set_ylim(ymin, ymax)
        ax.set_axis_off()
        self._dirty = False
        self.fig.canvas.draw_idle()

    def _draw_tiles(self, xmin, ymin, xmax, ymax) -> None:
        """Draw the latest mosaic; a changed extent or layer starts a background fetch."""
        layer = self.view.base_layer
        key = (layer.name, xmin, ymin, xmax, ymax, self.view.zoom)
        if key != self._tile_key:
            self._tile_key = key
            self._tile_future = self.s.executor.submit(layer.fetch, xmin, ymin, xmax, ymax, self.view.zoom)
            self._poll_tiles()
        if self._tiles is None:
            return
        img, extent = self._tiles
        self.ax.imshow(img, extent=extent, origin="upper", interpolation="bilinear", zorder=0)
        if layer.attribution:
            self.ax.text(0.995, 0.005, layer.attribution, transform=self.ax.transAxes,
                         ha="right", va="bottom", fontsize=6, zorder=9,
                         bbox=dict(fc="white", ec="none", alpha=0.7, pad=1))

    def _poll_tiles(self) -> None:
        fut = self._tile_future
        if fut is None or not fut.done():
            return
        self._tile_future = None
        try:
            img, extent, _ = fut.result()
        except (requests.RequestException, OSError, ValueError) as e:
            logger.warning("Could not fetch %s tiles: %s", self._tile_key[0], e)
            self._tiles = None
        else:
            self._tiles = (img, extent)
        self._dirty = True

    def _xy(self, shape: Shape) -> np.ndarray:
        return self.view.projection.project_many(shape.coordinates())

    def _draw_polygon(self, shape: Polygon) -> None:
        st = shape.style
        patch = patches.Polygon(
            self._xy(shape), closed=True,
            facecolor=to_rgba(st.color, st.fill_opacity), edgecolor=st.color,
            linewidth=st.weight, zorder=2,
        )
        self.ax.add_patch(patch)
        self._pickables.append((patch, shape))

    def _draw_polyline(self, shape: Polyline) -> None:
        xy = self._xy(shape)
        line, = self.ax.plot(xy[:, 0], xy[:, 1], color=shape.style.color,
                             linewidth=shape.style.weight, solid_capstyle="round", zorder=3)
        self._pickables.append((line, shape))

    def _draw_marker(self, shape: Marker) -> None:
        x, y = self.view.projection.project(shape.position)
        image = self.icons.get(shape.icon) if shape.icon else None
        if image is not None:
            artist = AnnotationBbox(
                OffsetImage(image, zoom=icon_zoom(shape.icon, image, self.fig.dpi)),
                (x, y), frameon=False, box_alignment=icon_alignment(shape.icon),
                pad=0, zorder=5,
            )
            self.ax.add_artist(artist)
        else:
            artist, = self.ax.plot(x, y, marker="o", markersize=6,
                                   mec="black", mfc="yellow", zorder=6)
        self._pickables.append((artist, shape))

    def _draw_features(self, overlay: FeatureOverlay) -> None:
        key = id(overlay)
        if key not in self._features:
            self._features[key] = project_geometries(overlay.data, self.view.projection)
        lines, points = self._features[key]
        st = overlay.source.style
        if lines:
            self.ax.add_collection(LineCollection(lines, colors=st.color, linewidths=st.weight, zorder=1.5))
        if len(points):
            self.ax.scatter(points[:, 0], points[:, 1], s=12, c=st.color, zorder=1.6)

    def _anchor(self, shape: Shape) -> Tuple[float, float]:
        xy = self._xy(shape)
        if isinstance(shape, Polyline):
            return line_midpoint(xy)
        if isinstance(shape, Polygon):
            return float(xy[:, 0].mean()), float(xy[:, 1].mean())
        return float(xy[0, 0]), float(xy[0, 1])

    def _draw_tooltips(self) -> None:
        for shape in self.s.shapes():
            tip = shape.tooltip
            if tip is None or not tip.permanent:
                continue
            self.ax.annotate(tip.text, self._anchor(shape), ha="center", va="center",
                             fontsize=9, bbox=_BOX, zorder=7)

    def _draw_popup(self) -> None:
        shape = self.s.popup
        if shape is None or not shape.popup:
            return
        offset = (0, 10)
        if isinstance(shape, Marker) and shape.icon is not None:
            offset = (shape.icon.popup_anchor[0], -shape.icon.popup_anchor[1])
        self.ax.annotate(shape.popup, self._anchor(shape), xytext=offset,
                         textcoords="offset pixels", ha="center", va="bottom",
                         fontsize=10, bbox=dict(boxstyle="round,pad=0.4", fc="white", ec="gray"),
                         zorder=8)

    def _draw_legend(self) -> None:
        legend = self.s.scene.legend
        if legend is None or not legend.entries:
            return
        handles = [Line2D([0], [0], color=e.color, linewidth=5, label=e.label) for e in legend.entries]
        leg = self.ax.legend(handles=handles, title=legend.title, loc=legend.position,
                             framealpha=0.7, facecolor=(0.98, 0.98, 0.98), edgecolor="0.8",
                             fancybox=True, handlelength=1.5)
        leg.get_title().set_fontweight("bold")
        leg.set_zorder(10)

    def _draw_scale_bar(self) -> None:
        # web mercator stretches distances by 1/cos(lat)
        k = math.cos(math.radians(self.view.center.lat))
        res = self.view.resolution
        metres = scale_bar_length(res * k * SCALE_BAR_MAX_PX)
        if metres <= 0:
            return
        bar = AnchoredSizeBar(self.ax.transData, metres / k, format_length(metres),
                              loc="lower left", pad=0.5, borderpad=0.8, sep=3,
                              size_vertical=res * 3, frameon=True)
        bar.patch.set_alpha(0.7)
        bar.set_zorder(10)
        self.ax.add_artist(bar)

    # --- UI events ----------------------------------------------------

    def _mark_dirty(self, event: MapEvent | None = None) -> None:
        self._dirty = True

    def _tick(self) -> None:
        self.s.poll_remote()
        self._poll_tiles()
        if self._dirty:
            self.redraw()

    def _on_press(self, event) -> None:
        if event.inaxes is not self.ax or event.button != 1:
            return
        self._press = (event.x, event.y)

    def _on_release(self, event) -> None:
        if self._press is None:
            return
        x0, y0 = self._press
        self._press = None
        dx, dy = event.x - x0, event.y - y0
        if math.hypot(dx, dy) < CLICK_TOLERANCE_PX:
            self._on_click(event)
        else:
            self.view.pan_by(-dx, -dy)

    def _on_click(self, event) -> None:
        for artist, shape in reversed(self._pickables):
            hit, _ = artist.contains(event)
            if hit:
                shape.click()
                return
        self.s.close_popup()

    def _on_scroll(self, event) -> None:
        if event.inaxes is not self.ax:
            return
        anchor = self.view.projection.unproject(event.xdata, event.ydata)
        self.view.zoom_around(anchor, 1 if event.step > 0 else -1)

    def _on_resize(self, event) -> None:
        self._sync_size()

    def _on_layer_selected(self, label: str) -> None:
        self.view.toggle_base_layer(label)

    def _on_search(self, text: str) -> None:
        self.s.search(text)

    def _on_close(self, event) -> None:
        if self._timer is not None:
            self._timer.stop()

    # --- output -------------------------------------------------------

    def show(self) -> None:
        if self.fig is None:
            self.build()
        plt.show()

    def save(self, path: str, timeout: float | None = None) -> None:
        if self.fig is None:
            self.build()
        self.s.wait_remote(timeout)
        self.redraw()
        if self._tile_future is not None:
            wait([self._tile_future], timeout=timeout)
            self._poll_tiles()
            self.redraw()
        self.fig.savefig(path, dpi=self.s.config.dpi)
        logger.info("Map saved to %s", path)
