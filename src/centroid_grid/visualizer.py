"""
Map visualization for point centroids and grid cells.

This module renders point markers over a background of country polygons
and thematic choropleths of grid cell attributes.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.axes import Axes
from matplotlib.figure import Figure

from centroid_grid.datasource import PointSchema
from centroid_grid.errors import MissingLayerError

logger = logging.getLogger(__name__)


class ColorScale(Enum):
    """Pre-defined color scales for thematic maps."""
    VIRIDIS = "viridis"
    CIVIDIS = "cividis"
    GREENS = "Greens"
    REDS = "Reds"
    YELLOW_GREEN = "YlGn"
    YELLOW_ORANGE_RED = "YlOrRd"
    SPECTRAL = "Spectral"


@dataclass
class MapStyle:
    """Configuration for map styling.

    Attributes:
        colormap: Color scale for choropleth values
        background_color: Fill of background polygons
        edge_color: Color for polygon boundaries
        edge_width: Width of polygon boundaries
        point_color: Marker color
        point_alpha: Marker transparency (0-1)
        point_size: Marker size when no size column is used
        size_scale: Marker area per unit of the size column
        missing_color: Color for regions with no data
        figsize: Figure size in inches (width, height)
        title: Map title
        legend: Whether to show legend/colorbar
        legend_label: Label for the colorbar
    """
    colormap: Union[str, ColorScale] = ColorScale.VIRIDIS
    background_color: str = "lightgrey"
    edge_color: str = "white"
    edge_width: float = 0.2
    point_color: str = "darkred"
    point_alpha: float = 0.6
    point_size: float = 6.0
    size_scale: float = 4.0
    missing_color: str = "lightgrey"
    figsize: Tuple[int, int] = (12, 6)
    title: Optional[str] = None
    legend: bool = True
    legend_label: Optional[str] = None

    def get_colormap_name(self) -> str:
        """Get the colormap name as a string."""
        if isinstance(self.colormap, ColorScale):
            return self.colormap.value
        return self.colormap


@dataclass
class LayerConfig:
    """Configuration for a map layer.

    Attributes:
        data: Table to display
        name: Layer name used in error messages
        size_column: Column mapped linearly to marker size (points only)
        value_column: Column mapped to color (polygons only)
        zorder: Drawing order (higher = on top)
    """
    data: Optional[pd.DataFrame]
    name: str
    size_column: Optional[str] = None
    value_column: Optional[str] = None
    zorder: int = 1


def point_xy(
    points: pd.DataFrame,
    schema: Optional[PointSchema] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """Return x (longitude) and y (latitude) arrays of a point layer.

    GeoDataFrames are read from their geometry; plain tables from the
    longitude and latitude columns.
    """
    schema = schema or PointSchema()
    if isinstance(points, gpd.GeoDataFrame):
        return points.geometry.x.to_numpy(), points.geometry.y.to_numpy()
    return (
        points[schema.lon_column].to_numpy(dtype=float),
        points[schema.lat_column].to_numpy(dtype=float),
    )


def marker_sizes(
    points: pd.DataFrame,
    size_column: Optional[str],
    style: MapStyle
) -> Union[float, np.ndarray]:
    """Marker areas: linear in ``size_column`` or uniform."""
    if size_column is None:
        return style.point_size
    return points[size_column].fillna(1).to_numpy(dtype=float) * style.size_scale


class MapVisualizer:
    """Creates map visualizations from point and polygon layers.

    Background polygons are drawn first with a neutral fill, then point
    markers on top.
    """

    def __init__(
        self,
        style: Optional[MapStyle] = None,
        schema: Optional[PointSchema] = None
    ):
        """Initialize the visualizer.

        Args:
            style: Default style settings for maps
            schema: Column names of point layers
        """
        self.default_style = style or MapStyle()
        self.schema = schema or PointSchema()

    def _check_layer(self, layer: LayerConfig):
        """Fail with the layer name if it is missing, empty or lacks columns."""
        if layer.data is None:
            raise MissingLayerError(f"Layer '{layer.name}' is missing")
        if len(layer.data) == 0:
            raise MissingLayerError(f"Layer '{layer.name}' is empty")

        required = [c for c in (layer.size_column, layer.value_column) if c]
        if not isinstance(layer.data, gpd.GeoDataFrame):
            required += self.schema.coordinate_columns
        missing = [c for c in required if c not in layer.data.columns]
        if missing:
            raise MissingLayerError(
                f"Layer '{layer.name}' lacks columns {missing}"
            )

    def draw_background(
        self,
        background: gpd.GeoDataFrame,
        ax: Axes,
        style: Optional[MapStyle] = None
    ):
        """Draw the background polygons on ``ax``."""
        style = style or self.default_style
        self._check_layer(LayerConfig(data=background, name="background"))
        background.plot(
            ax=ax,
            color=style.background_color,
            edgecolor=style.edge_color,
            linewidth=style.edge_width,
            zorder=1
        )

    def plot_points(
        self,
        background: gpd.GeoDataFrame,
        points: pd.DataFrame,
        size_column: Optional[str] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Draw point markers over background polygons.

        Args:
            background: Country (or other) polygons
            points: Points as a GeoDataFrame or a table with lat/long columns
            size_column: Column mapped linearly to marker area (e.g. ``count``)
            style: Styling options
            ax: Existing axes to plot on (creates new if None)

        Returns:
            Tuple of (Figure, Axes)

        Raises:
            MissingLayerError: If a layer is missing, empty or lacks columns
        """
        style = style or self.default_style
        point_layer = LayerConfig(
            data=points, name="points", size_column=size_column, zorder=2
        )
        self._check_layer(LayerConfig(data=background, name="background"))
        self._check_layer(point_layer)

        if ax is None:
            fig, ax = plt.subplots(1, 1, figsize=style.figsize)
        else:
            fig = ax.get_figure()

        self.draw_background(background, ax, style)

        x, y = point_xy(points, self.schema)
        ax.scatter(
            x, y,
            s=marker_sizes(points, size_column, style),
            c=style.point_color,
            alpha=style.point_alpha,
            linewidths=0,
            zorder=point_layer.zorder
        )

        if style.title:
            ax.set_title(style.title, fontsize=14, fontweight='bold')
        ax.set_axis_off()

        fig.tight_layout()
        return fig, ax

    def choropleth(
        self,
        data: gpd.GeoDataFrame,
        value_column: str,
        background: Optional[gpd.GeoDataFrame] = None,
        style: Optional[MapStyle] = None,
        ax: Optional[Axes] = None
    ) -> Tuple[Figure, Axes]:
        """Create a thematic map coloring polygons by ``value_column``.

        Args:
            data: Polygons with values, e.g. grid cells
            value_column: Column containing numeric values
            background: Optional polygons drawn underneath
            style: Styling options
            ax: Existing axes to plot on

        Returns:
            Tuple of (Figure, Axes)
        """
        style = style or self.default_style
        self._check_layer(LayerConfig(data=data, name="thematic", value_column=value_column))

        if ax is None:
            fig, ax = plt.subplots(1, 1, figsize=style.figsize)
        else:
            fig = ax.get_figure()

        if background is not None:
            self.draw_background(background, ax, style)

        plot_kwargs: Dict[str, Any] = {
            "ax": ax,
            "column": value_column,
            "cmap": style.get_colormap_name(),
            "legend": style.legend,
            "missing_kwds": {"color": style.missing_color},
            "zorder": 2
        }
        if style.legend:
            plot_kwargs["legend_kwds"] = {"label": style.legend_label or value_column}
        data.plot(**plot_kwargs)

        if style.title:
            ax.set_title(style.title, fontsize=14, fontweight='bold')
        ax.set_axis_off()

        fig.tight_layout()
        return fig, ax

    def save(
        self,
        filepath: Union[str, Path],
        fig: Optional[Figure] = None,
        dpi: int = 150,
        **kwargs
    ) -> Path:
        """Save the visualization to a file.

        Args:
            filepath: Output file path
            fig: Figure to save (uses current figure if None)
            dpi: Resolution in dots per inch
            **kwargs: Additional arguments passed to savefig
        """
        if fig is None:
            fig = plt.gcf()

        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(
            filepath,
            dpi=dpi,
            bbox_inches='tight',
            **kwargs
        )
        logger.info("Saved map to %s", filepath)
        return filepath


def plot_points_map(
    background: gpd.GeoDataFrame,
    points: pd.DataFrame,
    size_column: Optional[str] = "count",
    title: Optional[str] = None,
    color: str = "darkred",
    alpha: float = 0.6,
    save_path: Optional[str] = None
) -> Tuple[Figure, Axes]:
    """Convenience function to plot points over a world map.

    Example:
        >>> fig, ax = plot_points_map(
        ...     background=world,
        ...     points=centroids,
        ...     size_column="count",
        ...     title="Document centroids"
        ... )
    """
    style = MapStyle(title=title, point_color=color, point_alpha=alpha)
    viz = MapVisualizer(style)
    fig, ax = viz.plot_points(background, points, size_column=size_column)

    if save_path:
        viz.save(save_path, fig)

    return fig, ax
