# view.py
from __future__ import annotations
import logging
import math
from typing import Tuple

import numpy as np

from grenoble_map.model.events import Evented
from grenoble_map.model.models import Bounds, Coordinate
from .overlay import BaseLayerSwitcher, TileLayer
from .projection import WebMercatorProjection, resolution, zoom_for_resolution

logger = logging.getLogger(__name__)


class ViewController(Evented):
    """
    Owns the viewport (center, zoom, pixel size) and the active base layer.

    Events:
      zoom            -- zoom level changed (data: zoom, previous)
      move            -- center or zoom changed (data: center, zoom)
      baselayerchange -- active tile layer changed (data: layer)
      resize          -- viewport pixel size changed (data: size)
    """

    def __init__(
        self,
        center: Coordinate,
        zoom: float,
        base_layers: BaseLayerSwitcher,
        size_px: Tuple[int, int] = (800, 600),
        min_zoom: float = 0,
        max_zoom: float = 19,
        projection: WebMercatorProjection | None = None,
    ):
        self.min_zoom = min_zoom
        self.max_zoom = max_zoom
        self.base_layers = base_layers
        self.projection = projection or WebMercatorProjection()
        self.size_px = size_px
        self._center = center
        self._zoom = self._clamp(zoom)

    def _clamp(self, zoom: float) -> float:
        return float(np.clip(zoom, self.min_zoom, self.max_zoom))

    # --- state --------------------------------------------------------

    @property
    def center(self) -> Coordinate:
        return self._center

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def base_layer(self) -> TileLayer:
        return self.base_layers.active

    @property
    def resolution(self) -> float:
        return resolution(self._zoom)

    def bounds(self) -> Tuple[float, float, float, float]:
        """(xmin, ymin, xmax, ymax) of the viewport in EPSG:3857 metres."""
        cx, cy = self.projection.project(self._center)
        half_w = self.size_px[0] * self.resolution / 2
        half_h = self.size_px[1] * self.resolution / 2
        return cx - half_w, cy - half_h, cx + half_w, cy + half_h

    # --- operations ---------------------------------------------------

    def set_view(self, center: Coordinate, zoom: float | None = None) -> None:
        new_zoom = self._zoom if zoom is None else self._clamp(zoom)
        previous = self._zoom
        moved = center != self._center
        self._center = center
        self._zoom = new_zoom
        if new_zoom != previous:
            self.emit("zoom", zoom=new_zoom, previous=previous)
        if moved or new_zoom != previous:
            self.emit("move", center=center, zoom=new_zoom)

    def set_zoom(self, zoom: float) -> None:
        self.set_view(self._center, zoom)

    def zoom_around(self, anchor: Coordinate, delta: float) -> None:
        """Change zoom by delta keeping the anchor at the same screen position."""
        new_zoom = self._clamp(self._zoom + delta)
        scale = resolution(new_zoom) / self.resolution
        ax, ay = self.projection.project(anchor)
        cx, cy = self.projection.project(self._center)
        center = self.projection.unproject(ax + (cx - ax) * scale, ay + (cy - ay) * scale)
        self.set_view(center, new_zoom)

    def pan_by(self, dx_px: float, dy_px: float) -> None:
        """Shift the view by screen pixels (x right, y up)."""
        if dx_px == 0 and dy_px == 0:
            return
        cx, cy = self.projection.project(self._center)
        res = self.resolution
        self.set_view(self.projection.unproject(cx + dx_px * res, cy + dy_px * res))

    def fit_bounds(self, bounds: Bounds, max_zoom: float | None = None) -> None:
        x0, y0 = self.projection.project(bounds.south_west)
        x1, y1 = self.projection.project(bounds.north_east)
        w, h = abs(x1 - x0), abs(y1 - y0)
        if w == 0 and h == 0:
            zoom = self.max_zoom
        else:
            m_per_px = max(w / self.size_px[0], h / self.size_px[1])
            zoom = math.floor(zoom_for_resolution(m_per_px))
        if max_zoom is not None:
            zoom = min(zoom, max_zoom)
        center = self.projection.unproject((x0 + x1) / 2, (y0 + y1) / 2)
        self.set_view(center, zoom)

    def resize(self, width_px: int, height_px: int) -> None:
        size = (max(1, int(width_px)), max(1, int(height_px)))
        if size != self.size_px:
            self.size_px = size
            self.emit("resize", size=size)

    def toggle_base_layer(self, name: str | None = None) -> TileLayer:
        previous = self.base_layers.active
        layer = self.base_layers.toggle() if name is None else self.base_layers.select(name)
        if layer is not previous:
            logger.debug("Base layer %s -> %s", previous.name, layer.name)
            self.emit("baselayerchange", layer=layer)
        return layer
