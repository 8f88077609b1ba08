# projection.py
from dataclasses import dataclass
from typing import Iterable, Sequence, Tuple
import math

import numpy as np

from grenoble_map.model.models import Coordinate

INITIAL_RES = 156543.03392804097  # m/px at z=0 (3857, 256px)
EARTH_RADIUS = 6371000.0          # spherical earth, metres


@dataclass(frozen=True)
class WebMercatorProjection:
    """EPSG:4326 <-> EPSG:3857"""
    def __post_init__(self):
        from pyproj import Transformer
        object.__setattr__(self, "_to_merc",
            Transformer.from_crs("EPSG:4326", "EPSG:3857", always_xy=True))
        object.__setattr__(self, "_to_geo",
            Transformer.from_crs("EPSG:3857", "EPSG:4326", always_xy=True))

    def lonlat_to_xy(self, lon, lat):
        return self._to_merc.transform(lon, lat)

    def xy_to_lonlat(self, x, y):
        return self._to_geo.transform(x, y)

    def project(self, c: Coordinate) -> Tuple[float, float]:
        x, y = self.lonlat_to_xy(c.lon, c.lat)
        return float(x), float(y)

    def unproject(self, x: float, y: float) -> Coordinate:
        lon, lat = self.xy_to_lonlat(x, y)
        return Coordinate(float(lat), float(lon))

    def project_many(self, coords: Iterable[Coordinate]) -> np.ndarray:
        """(N, 2) array of x/y for a list of coordinates."""
        pts = [(c.lon, c.lat) for c in coords]
        if not pts:
            return np.empty((0, 2))
        lon, lat = np.asarray(pts, dtype=float).T
        x, y = self.lonlat_to_xy(lon, lat)
        return np.column_stack([x, y])

    def project_lonlat_array(self, lonlat: np.ndarray) -> np.ndarray:
        """GeoJSON-ordered (N, >=2) array -> (N, 2) Web Mercator array."""
        x, y = self.lonlat_to_xy(lonlat[:, 0], lonlat[:, 1])
        return np.column_stack([x, y])


def resolution(zoom: float) -> float:
    """Metres per pixel at the equator for a 256px tile pyramid."""
    return INITIAL_RES / (2 ** zoom)


def zoom_for_resolution(m_per_px: float) -> float:
    return float(np.log2(INITIAL_RES / max(1e-9, m_per_px)))


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle (haversine) distance on a spherical earth."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlat = lat2 - lat1
    dlon = math.radians(b.lon - a.lon)
    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS * math.asin(min(1.0, math.sqrt(h)))


def path_length_m(points: Sequence[Coordinate]) -> float:
    return sum(distance_m(p, q) for p, q in zip(points, points[1:]))
