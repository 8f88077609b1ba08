"""
Shared fixtures: Agg backend, the packaged Grenoble scene, and HTTP / executor
doubles so nothing in the suite touches the network or spawns a GUI.
"""
from concurrent.futures import Future
from unittest import mock

import matplotlib

matplotlib.use("Agg")

import pytest
import requests

from grenoble_map.model.loader import SceneLoader
from grenoble_map.mapview.config import MapConfig
from grenoble_map.mapview.session import MapSession


class ImmediateExecutor:
    """Runs submitted work inline; returned futures are already settled."""

    def __init__(self):
        self.calls = 0

    def submit(self, fn, *args, **kwargs):
        self.calls += 1
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:  # the future carries it
            future.set_exception(e)
        return future

    def shutdown(self, wait=True, cancel_futures=False):
        pass


class PendingExecutor:
    """Keeps futures pending until the test settles them."""

    def __init__(self):
        self.futures = []

    def submit(self, fn, *args, **kwargs):
        future = Future()
        self.futures.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        for future, fn, args, kwargs in self.futures:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

    def shutdown(self, wait=True, cancel_futures=False):
        pass


def _response(json_data=None, status=200, json_error=None, content=b""):
    resp = mock.MagicMock()
    resp.status_code = status
    resp.content = content
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Server Error")
    if json_error is not None:
        resp.json.side_effect = json_error
    else:
        resp.json.return_value = json_data
    return resp


FEATURES = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "properties": {"type": "chronovelo"},
            "geometry": {
                "type": "LineString",
                "coordinates": [[5.72, 45.18], [5.73, 45.19], [5.74, 45.19]],
            },
        },
        {
            "type": "Feature",
            "properties": {"type": "voieverte"},
            "geometry": {
                "type": "MultiLineString",
                "coordinates": [
                    [[5.70, 45.17], [5.71, 45.17]],
                    [[5.71, 45.17], [5.71, 45.18]],
                ],
            },
        },
    ],
}


@pytest.fixture
def make_response():
    return _response


@pytest.fixture
def feature_collection():
    return FEATURES


@pytest.fixture
def scene():
    return SceneLoader().load()


@pytest.fixture
def http():
    """requests.Session double; every GET succeeds with the feature collection."""
    h = mock.MagicMock()
    h.get.return_value = _response(FEATURES)
    return h


@pytest.fixture
def offline_http():
    h = mock.MagicMock()
    h.get.side_effect = requests.ConnectionError("network is unreachable")
    return h


@pytest.fixture
def config():
    return MapConfig(tiles=False)


@pytest.fixture
def session(scene, config, http):
    s = MapSession(scene, config, http=http, executor=ImmediateExecutor())
    yield s
    s.close()


@pytest.fixture
def started(session):
    return session.start()
