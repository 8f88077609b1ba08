# geocoder.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import List

import requests

from grenoble_map.model.models import Bounds, Coordinate

logger = logging.getLogger(__name__)

NOMINATIM_URL = "https://nominatim.openstreetmap.org/search"


class GeocodingError(RuntimeError):
    pass


@dataclass(frozen=True)
class GeocodeResult:
    name: str
    center: Coordinate
    bounds: Bounds


class NominatimGeocoder:
    """Free-text place search against a Nominatim instance."""

    def __init__(
        self,
        session: requests.Session,
        url: str = NOMINATIM_URL,
        timeout: float | None = 10.0,
        limit: int = 5,
    ):
        self.session = session
        self.url = url
        self.timeout = timeout
        self.limit = limit

    def geocode(self, query: str) -> List[GeocodeResult]:
        query = query.strip()
        if not query:
            return []
        try:
            response = self.session.get(
                self.url,
                params={"q": query, "format": "json", "limit": self.limit},
                timeout=self.timeout,
            )
            response.raise_for_status()
            items = response.json()
        except requests.RequestException as e:
            raise GeocodingError(f"geocoding {query!r} failed: {e}") from e
        except ValueError as e:
            raise GeocodingError(f"geocoder returned invalid JSON for {query!r}") from e
        if not isinstance(items, list):
            raise GeocodingError(f"geocoder returned {type(items).__name__} instead of a list for {query!r}")

        results = []
        for item in items:
            try:
                results.append(self._parse(item))
            except (KeyError, TypeError, ValueError):
                logger.debug("Skipping unparsable geocoder entry %r", item)
        logger.info("Geocoder: %d result(s) for %r", len(results), query)
        return results

    @staticmethod
    def _parse(item: dict) -> GeocodeResult:
        center = Coordinate(float(item["lat"]), float(item["lon"]))
        # Nominatim order: south, north, west, east
        south, north, west, east = map(float, item["boundingbox"])
        return GeocodeResult(
            name=item.get("display_name", ""),
            center=center,
            bounds=Bounds(Coordinate(south, west), Coordinate(north, east)),
        )
