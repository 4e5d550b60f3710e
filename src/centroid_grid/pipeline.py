"""End-to-end pipeline: load, enrich, plot, join to the grid and animate."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd

from centroid_grid.animator import AnimationResult, YearAnimator
from centroid_grid.config import Config, config as default_config, resolve_dataset
from centroid_grid.datasource import FileDataSource, load_points
from centroid_grid.enrich import enrich_points, filter_years
from centroid_grid.grid import GridLoader
from centroid_grid.spatial_ops import (
    JoinResult,
    PointGridJoiner,
    TieBreak,
    aggregate_by_cell,
    to_geodataframe,
)
from centroid_grid.visualizer import MapStyle, MapVisualizer

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Container for pipeline outputs."""

    points: pd.DataFrame
    geometries: gpd.GeoDataFrame
    join: Optional[JoinResult] = None
    animation: Optional[AnimationResult] = None
    outputs: Dict[str, Path] = field(default_factory=dict)


class Pipeline:
    """Runs every stage in a fixed order.

    Handles:
    - Loading and enriching the point table
    - Rendering the point map
    - Converting points to geometries and joining them to grid cells
    - Rendering the thematic map
    - Writing the year-by-year animation
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or default_config
        self.style = MapStyle(
            colormap=self.config.plot.colormap,
            background_color=self.config.plot.background_color,
            edge_color=self.config.plot.edge_color,
            edge_width=self.config.plot.edge_width,
            point_color=self.config.plot.point_color,
            point_alpha=self.config.plot.point_alpha,
            size_scale=self.config.plot.size_scale,
            figsize=self.config.plot.figsize,
        )
        self.visualizer = MapVisualizer(self.style, self.config.schema)
        self.grid_loader = GridLoader(self.config.grid)

    def load_background(self) -> gpd.GeoDataFrame:
        """Read the world polygons drawn underneath every map."""
        dataset = resolve_dataset(
            self.config.background_dataset, self.config.paths.world_path
        )
        logger.info("Reading %s from %s", dataset.name, dataset.path)
        return FileDataSource(dataset).load().to_crs(self.config.crs)

    def load_points(self) -> pd.DataFrame:
        """Load, year-filter and enrich the point table."""
        schema = self.config.schema
        points = load_points(self.config.paths.points_path, schema)
        points = filter_years(
            points, self.config.start_year, self.config.end_year, schema
        )
        return enrich_points(points, schema, self.config.coordinate_precision)

    def run(
        self,
        background: Optional[gpd.GeoDataFrame] = None,
        cells: Optional[gpd.GeoDataFrame] = None,
        skip_grid: bool = False,
        skip_animation: bool = False,
        download: bool = True
    ) -> PipelineResult:
        """Execute the full pipeline.

        Args:
            background: World polygons; read from the configured path if None
            cells: Grid cells with attributes; loaded by GridLoader if None
            skip_grid: Skip the grid join and thematic map
            skip_animation: Skip the GIF
            download: Let GridLoader fetch and extract the archive

        Returns:
            PipelineResult with intermediate tables and output paths
        """
        paths = self.config.paths
        schema = self.config.schema

        logger.info("Loading points from %s", paths.points_path)
        points = self.load_points()

        if background is None:
            background = self.load_background()

        fig, _ = self.visualizer.plot_points(
            background, points, size_column=schema.count_column
        )
        outputs = {
            "point_map": self.visualizer.save(paths.point_map_path, fig, dpi=self.config.plot.dpi)
        }
        plt.close(fig)

        geometries = to_geodataframe(points, schema, crs=self.config.crs)
        result = PipelineResult(points=points, geometries=geometries, outputs=outputs)

        if not skip_grid:
            if cells is None:
                cells = self.grid_loader.load(download=download)
            result.join = self.join(geometries, cells)
            outputs["thematic_map"] = self.thematic_map(result.join, cells, background)

        if not skip_animation:
            animator = YearAnimator(
                self.style,
                schema,
                frame_duration_ms=self.config.plot.frame_duration_ms,
                size_column=schema.count_column
            )
            source = result.join.data if result.join is not None else geometries
            result.animation = animator.animate(background, source, paths.animation_path)
            outputs["animation"] = result.animation.path

        logger.info("Pipeline finished; outputs: %s", {k: str(v) for k, v in outputs.items()})
        return result

    def join(self, geometries: gpd.GeoDataFrame, cells: gpd.GeoDataFrame) -> JoinResult:
        """Join point geometries to grid cells with the configured tie-break."""
        joiner = PointGridJoiner(
            cells,
            cell_id_column=self.config.grid.id_column,
            tie_break=TieBreak(self.config.tie_break)
        )
        return joiner.join(geometries)

    def thematic_map(
        self,
        join: JoinResult,
        cells: gpd.GeoDataFrame,
        background: gpd.GeoDataFrame
    ) -> Path:
        """Color the cells that received points by the configured attribute.

        Falls back to the number of points per cell when the attribute is
        not present on the cells.
        """
        value_column = self.config.plot.thematic_column
        if value_column not in cells.columns:
            logger.warning(
                "Cells have no column '%s'; mapping points per cell instead", value_column
            )
            value_column = "points"

        summary = aggregate_by_cell(
            join.data,
            cells,
            self.config.grid.id_column,
            joined_id_column=join.cell_id_column
        )
        fig, _ = self.visualizer.choropleth(summary, value_column, background=background)
        path = self.visualizer.save(
            self.config.paths.thematic_map_path, fig, dpi=self.config.plot.dpi
        )
        plt.close(fig)
        return path
