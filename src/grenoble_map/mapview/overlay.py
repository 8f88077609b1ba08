# overlay.py
from dataclasses import dataclass
from typing import Dict, Iterable, List
import numpy as np
import contextily as ctx

from grenoble_map.model.models import BaseLayerSpec
from .projection import resolution


@dataclass(frozen=True)
class TileLayer:
    name: str
    tiles: str = "OpenStreetMap.Mapnik"
    max_px: int = 8192

    @classmethod
    def from_spec(cls, spec: BaseLayerSpec) -> "TileLayer":
        return cls(name=spec.name, tiles=spec.tiles)

    def _resolve(self):
        if self.tiles.startswith(("http://", "https://")):
            return self.tiles
        prov = ctx.providers
        for p in self.tiles.split("."):
            if p: prov = getattr(prov, p)
        return prov

    @property
    def attribution(self) -> str:
        return getattr(self._resolve(), "attribution", "") or ""

    def clamp_zoom(self, zoom: float, provider) -> int:
        zmin = getattr(provider, "min_zoom", 0)
        zmax = getattr(provider, "max_zoom", 22)
        return int(np.clip(int(round(zoom)), zmin, zmax))

    def cap_zoom(self, xmin, ymin, xmax, ymax, zoom) -> int:
        m_per_px = resolution(zoom)
        w_px = (xmax - xmin) / m_per_px
        while w_px > self.max_px and zoom > 0:
            zoom -= 1; m_per_px *= 2; w_px /= 2
        return zoom

    def fetch(self, Xmin, Ymin, Xmax, Ymax, zoom: float):
        """Tile mosaic covering the EPSG:3857 box; returns (img, extent, zoom used)."""
        provider = self._resolve()
        z = self.clamp_zoom(zoom, provider)
        z = self.cap_zoom(Xmin, Ymin, Xmax, Ymax, z)
        img, extent_wm = ctx.bounds2img(Xmin, Ymin, Xmax, Ymax, source=provider, zoom=z, ll=False)
        return img, extent_wm, z


class BaseLayerSwitcher:
    """Keeps exactly one of its tile layers active."""

    def __init__(self, layers: Iterable[TileLayer], active: str | None = None):
        self._layers: Dict[str, TileLayer] = {l.name: l for l in layers}
        if not self._layers:
            raise ValueError("at least one base layer is required")
        self._active = next(iter(self._layers))
        if active is not None:
            self.select(active)

    @property
    def names(self) -> List[str]:
        return list(self._layers)

    @property
    def active(self) -> TileLayer:
        return self._layers[self._active]

    def is_active(self, name: str) -> bool:
        return name == self._active

    def select(self, name: str) -> TileLayer:
        if name not in self._layers:
            raise ValueError(f"Unknown base layer {name!r} (available: {', '.join(self._layers)})")
        self._active = name
        return self.active

    def toggle(self) -> TileLayer:
        """Activate the next layer in declaration order (the other one when there are two)."""
        names = self.names
        return self.select(names[(names.index(self._active) + 1) % len(names)])
