import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import Point, box

from centroid_grid.errors import CoordinateRangeError, CRSMismatchError, MissingColumnError
from centroid_grid.spatial_ops import (
    AggregationMethod,
    PointGridJoiner,
    TieBreak,
    aggregate_by_cell,
    check_crs,
    spatial_join_points,
    to_geodataframe,
    validate_coordinates,
)


def test_to_geodataframe_builds_points(raw_points):
    gdf = to_geodataframe(raw_points)

    assert gdf.crs == "EPSG:4326"
    assert len(gdf) == len(raw_points)
    assert "lat" not in gdf.columns and "long" not in gdf.columns
    assert gdf.geometry.iloc[1].equals(Point(0.5, 0.5))
    assert gdf.geometry.iloc[2].equals(Point(1.5, 0.25))


def test_to_geodataframe_keep_coordinates(raw_points):
    gdf = to_geodataframe(raw_points, keep_coordinates=True)
    assert {"lat", "long"} <= set(gdf.columns)


def test_to_geodataframe_drops_missing_coordinates():
    frame = pd.DataFrame({"lat": [1.0, np.nan], "long": [2.0, 3.0]})

    gdf = to_geodataframe(frame)

    assert gdf.index.tolist() == [0]


def test_to_geodataframe_missing_coordinates_strict():
    frame = pd.DataFrame({"lat": [1.0, np.nan], "long": [2.0, 3.0]})

    with pytest.raises(CoordinateRangeError, match="missing"):
        to_geodataframe(frame, drop_missing=False)


@pytest.mark.parametrize("lat, lon", [(91.0, 0.0), (-90.5, 0.0), (0.0, 180.1), (0.0, -200.0)])
def test_out_of_range_coordinates_rejected(lat, lon):
    frame = pd.DataFrame({"lat": [0.0, lat], "long": [0.0, lon]})

    with pytest.raises(CoordinateRangeError, match=r"first rows: \[1\]"):
        to_geodataframe(frame)


def test_range_limits_are_inclusive():
    frame = pd.DataFrame({"lat": [90.0, -90.0], "long": [180.0, -180.0]})
    validate_coordinates(frame)


def test_non_numeric_coordinates_rejected():
    frame = pd.DataFrame({"lat": ["north"], "long": [1.0]})

    with pytest.raises(CoordinateRangeError, match="not numeric"):
        to_geodataframe(frame)


def test_join_one_point_per_cell(point_geometries, cells):
    result = spatial_join_points(point_geometries, cells)

    assert len(result.data) == 3
    assert result.data["id"].tolist() == ["a", "b", "c"]
    assert result.data["value"].tolist() == [1, 2, 3]
    assert result.data["gid"].tolist() == ["1", "2", "3"]
    assert result.ambiguous_count == 0
    assert result.unmatched_count == 0
    assert result.data.geometry.iloc[0].equals(Point(0.5, 0.5))


def test_join_preserves_input_order(point_geometries, cells):
    reversed_points = point_geometries.iloc[::-1]

    result = spatial_join_points(reversed_points, cells)

    assert result.data["id"].tolist() == ["c", "b", "a"]
    assert result.data["value"].tolist() == [3, 2, 1]


def test_join_keeps_unmatched_points(cells):
    points = gpd.GeoDataFrame(
        {"id": ["in", "out"]},
        geometry=[Point(0.5, 0.5), Point(50, 50)],
        crs="EPSG:4326",
    )

    result = spatial_join_points(points, cells)

    assert len(result.data) == 2
    assert result.unmatched_count == 1
    assert pd.isna(result.data["gid"].iloc[1])
    assert result.data["match_count"].tolist() == [1, 0]


def _boundary_point():
    return gpd.GeoDataFrame(
        {"id": ["edge", "inside"]},
        geometry=[Point(1.0, 0.5), Point(2.5, 0.5)],
        crs="EPSG:4326",
    )


@pytest.mark.parametrize("order", [[0, 1, 2], [2, 1, 0], [1, 2, 0]])
def test_boundary_tie_break_lowest_id_ignores_row_order(cells, order):
    shuffled = cells.iloc[order].reset_index(drop=True)

    result = PointGridJoiner(shuffled, tie_break=TieBreak.LOWEST_ID).join(_boundary_point())

    assert len(result.data) == 2
    assert result.data["gid"].tolist() == ["1", "3"]
    assert result.ambiguous_count == 1
    assert result.data["match_count"].tolist() == [2, 1]


def test_lowest_id_uses_numeric_order():
    cells = gpd.GeoDataFrame(
        {"gid": ["10", "9"]},
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1)],
        crs="EPSG:4326",
    )
    points = gpd.GeoDataFrame(geometry=[Point(1.0, 0.5)], crs="EPSG:4326")

    result = spatial_join_points(points, cells)

    assert result.data["gid"].tolist() == ["9"]


def test_nearest_centroid_tie_break():
    # A tall cell beside a small one; the point on the shared edge sits
    # closer to the small cell's centroid.
    cells = gpd.GeoDataFrame(
        {"gid": ["1", "2"]},
        geometry=[box(0, 0, 1, 10), box(1, 0, 2, 1)],
        crs="EPSG:4326",
    )
    points = gpd.GeoDataFrame(geometry=[Point(1.0, 0.5)], crs="EPSG:4326")

    nearest = spatial_join_points(points, cells, tie_break="nearest_centroid")
    lowest = spatial_join_points(points, cells, tie_break="lowest_id")

    assert nearest.data["gid"].tolist() == ["2"]
    assert lowest.data["gid"].tolist() == ["1"]


def test_drop_tie_break_clears_ambiguous_points(cells):
    result = spatial_join_points(_boundary_point(), cells, tie_break=TieBreak.DROP)

    assert len(result.data) == 2
    assert pd.isna(result.data["gid"].iloc[0])
    assert pd.isna(result.data["value"].iloc[0])
    assert result.data["gid"].iloc[1] == "3"
    assert result.data["match_count"].iloc[0] == 2


def test_join_is_repeatable(cells):
    first = spatial_join_points(_boundary_point(), cells).data
    second = spatial_join_points(_boundary_point(), cells).data

    pd.testing.assert_frame_equal(first, second)


def test_join_rejects_duplicate_point_index(cells):
    points = gpd.GeoDataFrame(
        geometry=[Point(0.5, 0.5), Point(1.5, 0.5)], index=[0, 0], crs="EPSG:4326"
    )

    with pytest.raises(ValueError, match="unique"):
        spatial_join_points(points, cells)


def test_joiner_requires_id_column(cells):
    with pytest.raises(MissingColumnError):
        PointGridJoiner(cells, cell_id_column="cell")


def test_crs_mismatch_fails_fast(point_geometries, cells):
    projected = point_geometries.to_crs("EPSG:3857")

    with pytest.raises(CRSMismatchError, match="EPSG:3857"):
        spatial_join_points(projected, cells)


def test_crs_mismatch_aligned(point_geometries, cells):
    projected = point_geometries.to_crs("EPSG:3857")

    result = spatial_join_points(projected, cells, align_crs=True)

    assert result.data["value"].tolist() == [1, 2, 3]


def test_missing_crs_fails(cells):
    bare = gpd.GeoDataFrame({"id": ["a"]}, geometry=[Point(0.5, 0.5)])

    with pytest.raises(CRSMismatchError, match="points"):
        check_crs(bare, cells)


def test_aggregate_by_cell(cells):
    points = gpd.GeoDataFrame(
        {"count": [2, 2, 1]},
        geometry=[Point(0.5, 0.5), Point(0.6, 0.6), Point(2.5, 0.5)],
        crs="EPSG:4326",
    )
    joined = spatial_join_points(points, cells).data

    summary = aggregate_by_cell(joined, cells, value_column="count", aggregation=AggregationMethod.SUM)

    assert summary["gid"].tolist() == ["1", "3"]
    assert summary["points"].tolist() == [2, 1]
    assert summary["count_sum"].tolist() == [4, 1]
    assert isinstance(summary, gpd.GeoDataFrame)

    with_empty = aggregate_by_cell(joined, cells, keep_empty=True)
    assert len(with_empty) == 3
    assert pd.isna(with_empty.loc[with_empty["gid"] == "2", "points"]).all()


def test_clashing_cell_columns_keep_point_names(point_geometries, cells):
    points = point_geometries.assign(year=[1961, 1962, 1963])
    grid = cells.assign(year=2000, id="cell")

    result = spatial_join_points(points, grid)

    assert result.data["id"].tolist() == ["a", "b", "c"]
    assert result.data["year"].tolist() == [1961, 1962, 1963]
    assert result.data["cell_year"].tolist() == [2000, 2000, 2000]
    assert result.data["cell_id"].tolist() == ["cell", "cell", "cell"]
    assert not any(c.endswith(("_left", "_right")) for c in result.data.columns)
    assert result.cell_id_column == "gid"


def test_clashing_cell_id_column(point_geometries, cells):
    points = point_geometries.assign(gid=["p1", "p2", "p3"])

    result = spatial_join_points(points, cells)

    assert result.cell_id_column == "cell_gid"
    assert result.data["gid"].tolist() == ["p1", "p2", "p3"]
    assert result.data["cell_gid"].tolist() == ["1", "2", "3"]

    summary = aggregate_by_cell(
        result.data, cells, "gid", joined_id_column=result.cell_id_column
    )
    assert summary["gid"].tolist() == ["1", "2", "3"]
    assert summary["points"].tolist() == [1, 1, 1]


def test_clashing_columns_with_drop_tie_break(cells):
    points = _boundary_point().assign(year=[1961, 1962])

    result = spatial_join_points(points, cells.assign(year=2000), tie_break="drop")

    assert result.data["year"].tolist() == [1961, 1962]
    assert pd.isna(result.data["cell_year"].iloc[0])
    assert result.data["cell_year"].iloc[1] == 2000
