import matplotlib.pyplot as plt
import numpy as np
import pytest

from centroid_grid.enrich import enrich_points
from centroid_grid.errors import MissingLayerError
from centroid_grid.spatial_ops import to_geodataframe
from centroid_grid.visualizer import (
    ColorScale,
    MapStyle,
    MapVisualizer,
    marker_sizes,
    plot_points_map,
)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def test_plot_points_from_table(background, raw_points):
    points = enrich_points(raw_points)

    fig, ax = MapVisualizer().plot_points(background, points, size_column="count")

    scatter = ax.collections[-1]
    assert len(scatter.get_offsets()) == len(points)
    np.testing.assert_allclose(scatter.get_sizes(), points["count"].to_numpy() * 4.0)
    assert fig is ax.get_figure()


def test_plot_points_from_geodataframe(background, point_geometries):
    style = MapStyle(point_size=9.0, point_color="navy", point_alpha=0.3)

    _, ax = MapVisualizer(style).plot_points(background, point_geometries)

    scatter = ax.collections[-1]
    np.testing.assert_allclose(scatter.get_offsets()[:, 0], [0.5, 1.5, 2.5])
    assert scatter.get_sizes().tolist() == [9.0]
    assert scatter.get_alpha() == 0.3


def test_marker_sizes_are_linear_in_count(raw_points):
    points = enrich_points(raw_points)
    style = MapStyle(size_scale=10.0)

    sizes = marker_sizes(points, "count", style)

    assert sizes.tolist() == [20.0, 20.0, 10.0, 20.0, 20.0, 10.0]
    assert marker_sizes(points, None, style) == style.point_size


def test_missing_background_is_named(raw_points):
    with pytest.raises(MissingLayerError, match="background"):
        MapVisualizer().plot_points(None, raw_points)


def test_empty_background_is_named(background, raw_points):
    with pytest.raises(MissingLayerError, match="'background' is empty"):
        MapVisualizer().plot_points(background.iloc[0:0], raw_points)


def test_missing_size_column_is_named(background, raw_points):
    with pytest.raises(MissingLayerError, match="'points' lacks columns \\['count'\\]"):
        MapVisualizer().plot_points(background, raw_points, size_column="count")


def test_choropleth_and_save(tmp_path, cells, background):
    viz = MapVisualizer(MapStyle(colormap=ColorScale.YELLOW_GREEN, title="Forest"))

    fig, ax = viz.choropleth(cells, "value", background=background)
    path = viz.save(tmp_path / "maps" / "thematic.png", fig)

    assert path.exists()
    assert ax.get_title() == "Forest"


def test_choropleth_missing_value_column(cells):
    with pytest.raises(MissingLayerError, match="thematic"):
        MapVisualizer().choropleth(cells, "forest_gc")


def test_plot_points_map_saves(tmp_path, background, raw_points):
    path = tmp_path / "point_map.png"

    plot_points_map(background, enrich_points(raw_points), save_path=str(path))

    assert path.exists()


def test_plot_points_geometry_from_converter(background, raw_points):
    gdf = to_geodataframe(enrich_points(raw_points))

    _, ax = MapVisualizer().plot_points(background, gdf, size_column="count")

    assert len(ax.collections[-1].get_offsets()) == len(raw_points)
