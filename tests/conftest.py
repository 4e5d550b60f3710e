import matplotlib

matplotlib.use("Agg")

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import Point, box

from centroid_grid.datasource import PointSchema


@pytest.fixture
def schema():
    return PointSchema()


@pytest.fixture
def cells():
    """Three unit cells side by side along the equator."""
    return gpd.GeoDataFrame(
        {
            "gid": ["1", "2", "3"],
            "gwno": [475, 475, 481],
            "value": [1, 2, 3],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(2, 0, 3, 1)],
        crs="EPSG:4326",
    )


@pytest.fixture
def background():
    return gpd.GeoDataFrame(
        {"name": ["Land"]},
        geometry=[box(-10, -10, 10, 10)],
        crs="EPSG:4326",
    )


@pytest.fixture
def raw_points():
    return pd.DataFrame(
        {
            "id": ["doc-a", "doc-b", "doc-c", "doc-d", "doc-e", "doc-f"],
            "year": [1961, 1961, 1962, 1962, 1962, 1963],
            "month": [1, 5, 2, 7, 7, 12],
            "day": [15, 3, 28, 4, 4, 31],
            "lat": [0.5, 0.5, 0.25, 0.75, 0.75, 0.5],
            "long": [0.5, 0.5, 1.5, 2.5, 2.5, 2.25],
        }
    )


@pytest.fixture
def points_csv(tmp_path, raw_points):
    path = tmp_path / "centroids.csv"
    raw_points.to_csv(path, index=False)
    return path


@pytest.fixture
def point_geometries():
    """One point inside each cell of the ``cells`` fixture."""
    return gpd.GeoDataFrame(
        {"id": ["a", "b", "c"]},
        geometry=[Point(0.5, 0.5), Point(1.5, 0.5), Point(2.5, 0.5)],
        crs="EPSG:4326",
    )
