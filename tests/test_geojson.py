import pytest

from grenoble_map.mapview.geojson import iter_geometries, project_geometries
from grenoble_map.mapview.projection import WebMercatorProjection


@pytest.fixture(scope="module")
def proj():
    return WebMercatorProjection()


def test_iter_geometries_walks_collections(feature_collection):
    kinds = [g["type"] for g in iter_geometries(feature_collection)]
    assert kinds == ["LineString", "MultiLineString"]


def test_iter_geometries_nested_and_bare():
    doc = {
        "type": "Feature",
        "geometry": {
            "type": "GeometryCollection",
            "geometries": [
                {"type": "Point", "coordinates": [5.72, 45.19]},
                {"type": "Polygon", "coordinates": [[[5.7, 45.1], [5.8, 45.1], [5.8, 45.2], [5.7, 45.1]]]},
            ],
        },
    }
    assert [g["type"] for g in iter_geometries(doc)] == ["Point", "Polygon"]
    assert list(iter_geometries({"type": "Point", "coordinates": [0, 0]})) == [{"type": "Point", "coordinates": [0, 0]}]
    assert list(iter_geometries([1, 2])) == []
    assert list(iter_geometries({"type": "Feature", "geometry": None})) == []


def test_project_lines(feature_collection, proj):
    lines, points = project_geometries(feature_collection, proj)
    assert [l.shape for l in lines] == [(3, 2), (2, 2), (2, 2)]
    assert points.shape == (0, 2)
    x, y = proj.lonlat_to_xy(5.72, 45.18)
    assert lines[0][0] == pytest.approx((x, y))


def test_project_polygons_and_points(proj):
    ring = [[5.7, 45.1], [5.8, 45.1], [5.8, 45.2], [5.7, 45.1]]
    doc = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "MultiPolygon", "coordinates": [[ring], [ring, ring]]}},
            {"type": "Feature", "geometry": {"type": "MultiPoint", "coordinates": [[5.7, 45.1], [5.8, 45.2]]}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [5.75, 45.15, 212.0]}},
        ],
    }
    lines, points = project_geometries(doc, proj)
    assert len(lines) == 3
    assert points.shape == (3, 2)


def test_broken_geometries_are_skipped(proj):
    doc = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[5.7, 45.1]]}},
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": "nope"}},
            {"type": "Feature", "geometry": {"type": "Point"}},
            {"type": "Feature", "geometry": {"type": "Circle", "coordinates": [5.7, 45.1]}},
            {"type": "Feature", "geometry": {"type": "LineString", "coordinates": [[5.7, 45.1], [5.8, 45.1]]}},
        ],
    }
    lines, points = project_geometries(doc, proj)
    assert len(lines) == 1
    assert points.shape == (0, 2)
