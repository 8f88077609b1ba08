# geojson.py
"""
Turns a GeoJSON object into drawable Web Mercator geometry.

Nothing is validated: unknown or broken geometries are skipped so that
whatever is renderable gets rendered.
"""
from __future__ import annotations
import logging
from typing import Any, Iterator, List, Tuple

import numpy as np

from .projection import WebMercatorProjection

logger = logging.getLogger(__name__)

_LINEAR = ("LineString", "MultiLineString", "Polygon", "MultiPolygon")


def iter_geometries(obj: Any) -> Iterator[dict]:
    """Yield the bare geometry objects contained in any GeoJSON object."""
    if not isinstance(obj, dict):
        return
    kind = obj.get("type")
    if kind == "FeatureCollection":
        for feature in obj.get("features") or ():
            yield from iter_geometries(feature)
    elif kind == "Feature":
        yield from iter_geometries(obj.get("geometry"))
    elif kind == "GeometryCollection":
        for geom in obj.get("geometries") or ():
            yield from iter_geometries(geom)
    elif kind is not None:
        yield obj


def _rings(geom: dict) -> List[Any]:
    coords = geom.get("coordinates") or []
    kind = geom["type"]
    if kind == "LineString":
        return [coords]
    if kind in ("MultiLineString", "Polygon"):
        return list(coords)
    # MultiPolygon
    return [ring for polygon in coords for ring in polygon]


def project_geometries(
    obj: Any, projection: WebMercatorProjection
) -> Tuple[List[np.ndarray], np.ndarray]:
    """(line segments, points) in EPSG:3857; each segment is an (N, 2) array."""
    lines: List[np.ndarray] = []
    points: List[Tuple[float, float]] = []
    for geom in iter_geometries(obj):
        kind = geom.get("type")
        try:
            if kind in _LINEAR:
                for ring in _rings(geom):
                    arr = np.asarray(ring, dtype=float)
                    if arr.ndim == 2 and arr.shape[0] >= 2 and arr.shape[1] >= 2:
                        lines.append(projection.project_lonlat_array(arr))
            elif kind == "Point":
                c = geom["coordinates"]
                points.append((float(c[0]), float(c[1])))
            elif kind == "MultiPoint":
                points.extend([(float(p[0]), float(p[1])) for p in geom["coordinates"]])
            else:
                logger.debug("Skipping geometry type %r", kind)
        except (KeyError, TypeError, ValueError) as e:
            logger.debug("Skipping malformed %s geometry: %s", kind, e)

    if points:
        pts = projection.project_lonlat_array(np.asarray(points, dtype=float))
    else:
        pts = np.empty((0, 2))
    return lines, pts
