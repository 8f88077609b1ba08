from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .events import Evented

Size = Tuple[int, int]


# --- geometry ---------------------------------------------------------

@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def as_tuple(self) -> Tuple[float, float]:
        return (self.lat, self.lon)


@dataclass(frozen=True)
class Bounds:
    """Geographic box given by its south-west and north-east corners."""
    south_west: Coordinate
    north_east: Coordinate

    def center(self) -> Coordinate:
        return Coordinate(
            (self.south_west.lat + self.north_east.lat) * 0.5,
            (self.south_west.lon + self.north_east.lon) * 0.5,
        )


# --- styling ------------------------------------------------------------

@dataclass(frozen=True)
class ShapeStyle:
    color: str = "#3388ff"
    weight: float = 3.0
    fill_opacity: float = 0.2


@dataclass(frozen=True)
class Icon:
    url: str
    size: Size = (32, 32)
    anchor: Size = (16, 32)       # pixel of the image placed on the coordinate
    popup_anchor: Size = (0, -32)


@dataclass(frozen=True)
class Tooltip:
    text: str
    permanent: bool = False
    direction: str = "auto"


# --- overlays -----------------------------------------------------------

@dataclass(eq=False)
class Shape(Evented):
    """Common part of markers, polygons and polylines: one popup, one tooltip slot."""
    id: str
    style: ShapeStyle = field(default_factory=ShapeStyle)
    popup: Optional[str] = None
    tooltip: Optional[Tooltip] = None

    def bind_popup(self, text: str) -> "Shape":
        self.popup = text
        return self

    def bind_tooltip(self, text: str, permanent: bool = False, direction: str = "auto") -> "Shape":
        # rebinding replaces the slot, so labels never pile up
        self.tooltip = Tooltip(text=text, permanent=permanent, direction=direction)
        self.emit("tooltipchange", tooltip=self.tooltip)
        return self

    def unbind_tooltip(self) -> "Shape":
        if self.tooltip is not None:
            self.tooltip = None
            self.emit("tooltipchange", tooltip=None)
        return self

    def click(self) -> None:
        self.emit("click")


@dataclass(eq=False)
class Marker(Shape):
    position: Coordinate = Coordinate(0.0, 0.0)
    icon: Optional[Icon] = None
    focus_on_click: bool = False

    def coordinates(self) -> List[Coordinate]:
        return [self.position]


@dataclass(eq=False)
class Polygon(Shape):
    vertices: List[Coordinate] = field(default_factory=list)

    def coordinates(self) -> List[Coordinate]:
        return list(self.vertices)


@dataclass(eq=False)
class Polyline(Shape):
    points: List[Coordinate] = field(default_factory=list)
    distance_label: bool = False

    def coordinates(self) -> List[Coordinate]:
        return list(self.points)


# --- base layers / remote data -----------------------------------------

@dataclass(frozen=True)
class BaseLayerSpec:
    name: str
    tiles: str  # xyzservices key ("OpenStreetMap.Mapnik") or {z}/{x}/{y} URL


@dataclass(frozen=True)
class RemoteOverlay:
    id: str
    url: str
    name: str = ""
    style: ShapeStyle = field(default_factory=ShapeStyle)


@dataclass(frozen=True)
class FeatureOverlay:
    """A fetched feature collection; the payload is kept as received."""
    source: RemoteOverlay
    data: Dict[str, Any]


# --- legend -------------------------------------------------------------

@dataclass(frozen=True)
class LegendEntry:
    label: str
    color: str


@dataclass(frozen=True)
class Legend:
    title: str = "Legend"
    position: str = "lower right"
    entries: Tuple[LegendEntry, ...] = ()


# --- whole scene --------------------------------------------------------

@dataclass
class Scene:
    center: Coordinate
    zoom: float
    base_layers: List[BaseLayerSpec]
    markers: List[Marker] = field(default_factory=list)
    polygons: List[Polygon] = field(default_factory=list)
    polylines: List[Polyline] = field(default_factory=list)
    remote_overlays: List[RemoteOverlay] = field(default_factory=list)
    legend: Optional[Legend] = None

    def shapes(self) -> List[Shape]:
        # draw order: areas below lines below points
        return [*self.polygons, *self.polylines, *self.markers]


__all__ = [
    "Coordinate",
    "Bounds",
    "ShapeStyle",
    "Icon",
    "Tooltip",
    "Shape",
    "Marker",
    "Polygon",
    "Polyline",
    "BaseLayerSpec",
    "RemoteOverlay",
    "FeatureOverlay",
    "LegendEntry",
    "Legend",
    "Scene",
]
