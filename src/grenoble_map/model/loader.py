from __future__ import annotations
import pathlib, json, warnings
from typing import Any, Dict, List

from jsonschema import validate

from .models import (
    BaseLayerSpec,
    Coordinate,
    Icon,
    Legend,
    LegendEntry,
    Marker,
    Polygon,
    Polyline,
    RemoteOverlay,
    Scene,
    ShapeStyle,
)

PACKAGE_DIR = pathlib.Path(__file__).parent.parent
DEFAULT_SCENE = PACKAGE_DIR / "data" / "grenoble.json"


def _coords(pairs: List[List[float]]) -> List[Coordinate]:
    return [Coordinate(float(lat), float(lon)) for lat, lon in pairs]


def _style(d: Dict[str, Any] | None) -> ShapeStyle:
    return ShapeStyle(**d) if d else ShapeStyle()


class SceneLoader:
    """Reads a scene JSON document and turns it into model objects."""

    def __init__(self, validate_schema: bool = True, schema_dir: str | pathlib.Path | None = None):
        self.validate_schema = validate_schema
        if schema_dir is None:
            self.schema_dir = PACKAGE_DIR / "schemas"
        else:
            self.schema_dir = pathlib.Path(schema_dir)

    def _load_json(self, path: str | pathlib.Path) -> Any:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _validate(self, instance: Any, schema_name: str) -> None:
        if self.validate_schema:
            schema = self._load_json(self.schema_dir / schema_name)
            validate(instance=instance, schema=schema)

    # --- public API ---------------------------------------------------

    def load(self, path: str | pathlib.Path | None = None) -> Scene:
        """scene.json -> Scene (the packaged Grenoble scene when path is None)"""
        p = pathlib.Path(path) if path else DEFAULT_SCENE
        if not p.exists():
            raise FileNotFoundError(p)
        return self.build_scene(self._load_json(p))

    def build_scene(self, data: Dict[str, Any]) -> Scene:
        self._validate(data, "scene.schema.json")

        scene = Scene(
            center=Coordinate(float(data["center"]["lat"]), float(data["center"]["lon"])),
            zoom=float(data["zoom"]),
            base_layers=[BaseLayerSpec(name=b["name"], tiles=b["tiles"]) for b in data["base_layers"]],
        )

        for item in data.get("markers", []):
            icon = None
            if "icon" in item:
                ij = item["icon"]
                icon = Icon(
                    url=ij["url"],
                    size=tuple(ij.get("size", (32, 32))),
                    anchor=tuple(ij.get("anchor", (16, 32))),
                    popup_anchor=tuple(ij.get("popup_anchor", (0, -32))),
                )
            scene.markers.append(
                Marker(
                    id=item["id"],
                    popup=item.get("popup"),
                    position=Coordinate(float(item["lat"]), float(item["lon"])),
                    icon=icon,
                    focus_on_click=bool(item.get("focus_on_click", False)),
                )
            )

        for item in data.get("polygons", []):
            scene.polygons.append(
                Polygon(
                    id=item["id"],
                    style=_style(item.get("style")),
                    popup=item.get("popup"),
                    vertices=_coords(item["vertices"]),
                )
            )

        for item in data.get("polylines", []):
            scene.polylines.append(
                Polyline(
                    id=item["id"],
                    style=_style(item.get("style")),
                    popup=item.get("popup"),
                    points=_coords(item["points"]),
                    distance_label=bool(item.get("distance_label", False)),
                )
            )

        for item in data.get("remote_overlays", []):
            scene.remote_overlays.append(
                RemoteOverlay(
                    id=item["id"],
                    url=item["url"],
                    name=item.get("name", item["id"]),
                    style=_style(item.get("style")),
                )
            )

        if "legend" in data:
            lj = data["legend"]
            scene.legend = Legend(
                title=lj.get("title", "Legend"),
                position=lj.get("position", "lower right"),
                entries=tuple(LegendEntry(e["label"], e["color"]) for e in lj.get("entries", [])),
            )

        ids = [s.id for s in scene.shapes()]
        for sid in {i for i in ids if ids.count(i) > 1}:
            warnings.warn(f"Duplicate shape id {sid}")

        return scene
