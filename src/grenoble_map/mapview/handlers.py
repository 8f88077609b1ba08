# handlers.py
from __future__ import annotations
from typing import Callable

from grenoble_map.model.events import MapEvent
from grenoble_map.model.models import Marker, Polyline
from .projection import path_length_m
from .view import ViewController

LABEL_ZOOM_THRESHOLD = 14
MARKER_FOCUS_ZOOM = 16


def format_distance_label(distance_m: float) -> str:
    return f"Distance : {distance_m:.2f} m"


def make_marker_focus_handler(view: ViewController, marker: Marker) -> Callable[[MapEvent], None]:
    def on_click(event: MapEvent | None = None) -> None:
        view.set_view(marker.position, MARKER_FOCUS_ZOOM)
    return on_click


def make_distance_label_handler(view: ViewController, line: Polyline) -> Callable[[MapEvent], None]:
    """
    Zoom handler showing the line length as a permanent centred tooltip
    while zoom > LABEL_ZOOM_THRESHOLD.
    """
    text = format_distance_label(path_length_m(line.points))

    def on_zoom(event: MapEvent | None = None) -> None:
        if view.zoom > LABEL_ZOOM_THRESHOLD:
            if line.tooltip is None or line.tooltip.text != text:
                line.bind_tooltip(text, permanent=True, direction="center")
        else:
            line.unbind_tooltip()
    return on_zoom
