# markers.py
from __future__ import annotations
import io
import logging
from typing import Dict, Optional, Tuple

import numpy as np
import matplotlib.image as mpimg
import requests

from grenoble_map.model.models import Icon

logger = logging.getLogger(__name__)


class IconImageCache:
    """Downloads marker icon images once; a failed download is remembered as None."""

    def __init__(self, session: requests.Session, timeout: float | None = 10.0):
        self.session = session
        self.timeout = timeout
        self._images: Dict[str, Optional[np.ndarray]] = {}

    def get(self, icon: Icon) -> Optional[np.ndarray]:
        if icon.url not in self._images:
            self._images[icon.url] = self._download(icon.url)
        return self._images[icon.url]

    def _download(self, url: str) -> Optional[np.ndarray]:
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            return mpimg.imread(io.BytesIO(response.content))
        # Pillow's PNG reader reports a non-PNG body as SyntaxError
        except (requests.RequestException, OSError, ValueError, SyntaxError) as e:
            logger.warning("Could not load marker icon %s: %s", url, e)
            return None


def icon_zoom(icon: Icon, image: np.ndarray, dpi: float) -> float:
    """OffsetImage zoom that renders the image icon.size[0] pixels wide."""
    return icon.size[0] / image.shape[1] * 72.0 / dpi


def icon_alignment(icon: Icon) -> Tuple[float, float]:
    """box_alignment placing the icon anchor pixel on the marker coordinate."""
    w, h = icon.size
    ax, ay = icon.anchor
    return ax / w, 1.0 - ay / h
