# remote.py
"""
Asynchronous loading of remote feature collections.

The HTTP request runs on a worker thread; the UI thread calls ``poll()``
(from a matplotlib timer) and only then is the overlay handed to the
``on_loaded`` callback, so all map state is still mutated from one thread.
"""
from __future__ import annotations
import logging
from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, Optional

import requests

from grenoble_map.model.models import RemoteOverlay

logger = logging.getLogger(__name__)

IDLE, PENDING, LOADED, FAILED = "idle", "pending", "loaded", "failed"


class FeatureFetchError(RuntimeError):
    """Network failure, non-2xx status or a body that is not a JSON object."""


def fetch_feature_collection(
    session: requests.Session, url: str, timeout: float | None = None
) -> Dict[str, Any]:
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise FeatureFetchError(f"request to {url} failed: {e}") from e
    try:
        data = response.json()
    except (ValueError, RecursionError) as e:
        raise FeatureFetchError(f"response from {url} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise FeatureFetchError(f"response from {url} is not a JSON object")
    return data


class RemoteOverlayLoader:
    def __init__(
        self,
        source: RemoteOverlay,
        on_loaded: Callable[[RemoteOverlay, Dict[str, Any]], None],
        session: requests.Session,
        executor: Executor,
        timeout: float | None = None,
    ):
        self.source = source
        self.on_loaded = on_loaded
        self.session = session
        self.executor = executor
        self.timeout = timeout
        self.state = IDLE
        self.error: Optional[Exception] = None
        self._future: Optional[Future] = None

    @property
    def future(self) -> Optional[Future]:
        return self._future

    @property
    def done(self) -> bool:
        return self.state in (LOADED, FAILED)

    def start(self) -> Future:
        if self._future is None:
            logger.info("Loading %s from %s", self.source.id, self.source.url)
            self._future = self.executor.submit(
                fetch_feature_collection, self.session, self.source.url, self.timeout
            )
            self.state = PENDING
        return self._future

    def poll(self) -> bool:
        """Hand a finished fetch to the UI side exactly once; True once settled."""
        if self.state != PENDING or not self._future.done():
            return self.done
        # any worker failure settles the load as failed
        try:
            data = self._future.result()
        except Exception as e:
            self.state = FAILED
            self.error = e
            logger.error("Error loading the GeoJSON file %s: %s", self.source.url, e)
            return True
        self.state = LOADED
        self.on_loaded(self.source, data)
        logger.info("Loaded %s (%d features)", self.source.id, len(data.get("features", ())))
        return True
