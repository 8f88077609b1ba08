# session.py
from __future__ import annotations
import logging
from concurrent.futures import Executor, ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from grenoble_map.model.events import Evented, MapEvent
from grenoble_map.model.models import (
    FeatureOverlay,
    Marker,
    Polyline,
    RemoteOverlay,
    Scene,
    Shape,
)
from .config import MapConfig
from .geocoder import GeocodeResult, GeocodingError, NominatimGeocoder
from .handlers import make_distance_label_handler, make_marker_focus_handler
from .overlay import BaseLayerSwitcher, TileLayer
from .projection import path_length_m
from .remote import RemoteOverlayLoader
from .view import ViewController

logger = logging.getLogger(__name__)

SEARCH_MARKER_ID = "geocoder-result"


class MapSession(Evented):
    """
    Everything one open map owns: view, shapes, remote loaders, loaded overlays.

    Created once, wired by start(), torn down by close().

    Events:
      overlayadd   -- a remote feature collection was added (data: overlay)
      popupopen    -- data: shape
      popupclose   -- data: shape
      searchresult -- geocoder result shown (data: result, marker)
    """

    def __init__(
        self,
        scene: Scene,
        config: MapConfig | None = None,
        http: requests.Session | None = None,
        executor: Executor | None = None,
    ):
        self.scene = scene
        self.config = config or MapConfig()
        cfg = self.config

        layers = BaseLayerSwitcher(
            [TileLayer.from_spec(b) for b in scene.base_layers], active=cfg.base_layer
        )
        self.view = ViewController(
            center=scene.center,
            zoom=scene.zoom if cfg.zoom is None else cfg.zoom,
            base_layers=layers,
            size_px=(cfg.width_px, cfg.height_px),
            min_zoom=cfg.min_zoom,
            max_zoom=cfg.max_zoom,
        )

        self._owns_http = http is None
        if http is None:
            http = requests.Session()
            # Nominatim's usage policy requires an identifying agent
            http.headers["User-Agent"] = cfg.user_agent
        self.http = http
        self._owns_executor = executor is None
        self.executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="map-worker")

        self.geocoder = NominatimGeocoder(self.http, url=cfg.geocoder_url) if cfg.geocoder else None

        self.feature_overlays: List[FeatureOverlay] = []
        self.loaders: List[RemoteOverlayLoader] = [
            RemoteOverlayLoader(src, self.add_feature_overlay, self.http, self.executor, cfg.fetch_timeout)
            for src in scene.remote_overlays
        ]
        self.popup: Optional[Shape] = None
        self.search_marker: Optional[Marker] = None
        self._search_click: Optional[Callable[[MapEvent], None]] = None

        self._subscriptions: List[Tuple[Evented, str, Callable[[MapEvent], None]]] = []
        self.started = False
        self.closed = False

    # --- lifecycle ----------------------------------------------------

    def _subscribe(self, source: Evented, type: str, handler: Callable[[MapEvent], None]) -> None:
        source.on(type, handler)
        self._subscriptions.append((source, type, handler))

    def _unsubscribe(self, source: Evented, type: str, handler: Callable[[MapEvent], None]) -> None:
        source.off(type, handler)
        if (source, type, handler) in self._subscriptions:
            self._subscriptions.remove((source, type, handler))

    def start(self) -> "MapSession":
        if self.started:
            return self
        self.started = True

        for marker in self.scene.markers:
            if marker.focus_on_click:
                self._subscribe(marker, "click", make_marker_focus_handler(self.view, marker))
        for shape in self.scene.shapes():
            if shape.popup:
                self._subscribe(shape, "click", self._open_popup_handler(shape))
        for line in self.scene.polylines:
            if line.distance_label:
                on_zoom = make_distance_label_handler(self.view, line)
                self._subscribe(self.view, "zoom", on_zoom)
                on_zoom()  # sync with the initial zoom

        for loader in self.loaders:
            loader.start()
        logger.info(
            "Map session started: %d shape(s), %d remote overlay(s), base layer %s",
            len(self.scene.shapes()), len(self.loaders), self.view.base_layer.name,
        )
        return self

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        for source, type, handler in self._subscriptions:
            source.off(type, handler)
        self._subscriptions.clear()
        if self._owns_executor:
            self.executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_http:
            self.http.close()
        logger.info("Map session closed")

    def __enter__(self) -> "MapSession":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    # --- remote overlays ----------------------------------------------

    def add_feature_overlay(self, source: RemoteOverlay, data: Dict[str, Any]) -> FeatureOverlay:
        overlay = FeatureOverlay(source=source, data=data)
        self.feature_overlays.append(overlay)
        self.emit("overlayadd", overlay=overlay)
        return overlay

    def poll_remote(self) -> bool:
        """Settle finished fetches on the calling (UI) thread; True when none is pending."""
        return all([loader.poll() for loader in self.loaders])

    def wait_remote(self, timeout: float | None = None) -> bool:
        futures = [l.future for l in self.loaders if l.future is not None]
        if futures:
            wait(futures, timeout=timeout)
        return self.poll_remote()

    # --- popups -------------------------------------------------------

    def _open_popup_handler(self, shape: Shape) -> Callable[[MapEvent], None]:
        def on_click(event: MapEvent | None = None) -> None:
            self.open_popup(shape)
        return on_click

    def open_popup(self, shape: Shape) -> None:
        if self.popup is shape:
            return
        self.close_popup()
        self.popup = shape
        self.emit("popupopen", shape=shape)

    def close_popup(self) -> None:
        if self.popup is not None:
            shape, self.popup = self.popup, None
            self.emit("popupclose", shape=shape)

    # --- geocoder -----------------------------------------------------

    def search(self, query: str) -> Optional[GeocodeResult]:
        """Geocode and show the first hit; failures are logged and leave the view as is."""
        if self.geocoder is None:
            return None
        try:
            results = self.geocoder.geocode(query)
        except GeocodingError as e:
            logger.warning("Address search failed: %s", e)
            return None
        if not results:
            logger.info("No result for %r", query)
            return None
        self.show_search_result(results[0])
        return results[0]

    def show_search_result(self, result: GeocodeResult) -> Marker:
        if self.search_marker is not None:
            if self.popup is self.search_marker:
                self.close_popup()
            self._unsubscribe(self.search_marker, "click", self._search_click)
        self.search_marker = Marker(id=SEARCH_MARKER_ID, popup=result.name, position=result.center)
        self._search_click = self._open_popup_handler(self.search_marker)
        self._subscribe(self.search_marker, "click", self._search_click)
        self.view.fit_bounds(result.bounds)
        self.emit("searchresult", result=result, marker=self.search_marker)
        self.open_popup(self.search_marker)
        return self.search_marker

    # --- helpers ------------------------------------------------------

    def shapes(self) -> List[Shape]:
        shapes = self.scene.shapes()
        if self.search_marker is not None:
            shapes.append(self.search_marker)
        return shapes

    def distances(self) -> List[Tuple[Polyline, float]]:
        return [(line, path_length_m(line.points)) for line in self.scene.polylines]
