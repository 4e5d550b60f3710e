"""
Document centroids on a world map and on PRIO-GRID.

This package loads point centroids extracted from historical documents,
derives dates, coordinate keys and per-location counts, renders them over
country polygons, joins them to PRIO-GRID cells and animates them by year.

Modules:
    datasource: Point, attribute and geometry file loading
    enrich: Date, coordinate key and count derivation
    spatial_ops: Point geometries, point-to-cell joins, per-cell summaries
    grid: PRIO-GRID download, extraction and attribute join
    visualizer: Point maps and thematic choropleths
    animator: Year-by-year GIF animation
    pipeline: All stages in order
    config: Paths, grid settings and dataset presets

Example:
    >>> from centroid_grid import load_points, enrich_points, to_geodataframe
    >>> points = enrich_points(load_points("data/centroids.csv"))
    >>> geometries = to_geodataframe(points)
"""

__version__ = "0.1.0"

from centroid_grid.errors import (
    CentroidGridError,
    CoordinateRangeError,
    CRSMismatchError,
    DownloadError,
    DuplicateKeyError,
    EmptyTimelineError,
    ExtractionError,
    MissingColumnError,
    MissingLayerError,
)
from centroid_grid.datasource import (
    DatasetConfig,
    DataSource,
    FileDataSource,
    PointSchema,
    load_attribute_table,
    load_dataset,
    load_points,
)
from centroid_grid.enrich import (
    add_counts,
    coordinate_key,
    derive_date,
    enrich_points,
    filter_years,
)
from centroid_grid.spatial_ops import (
    AggregationMethod,
    JoinResult,
    PointGridJoiner,
    TieBreak,
    aggregate_by_cell,
    spatial_join_points,
    to_geodataframe,
)
from centroid_grid.grid import GridLoader, load_grid
from centroid_grid.visualizer import (
    ColorScale,
    MapStyle,
    MapVisualizer,
    plot_points_map,
)
from centroid_grid.animator import AnimationResult, YearAnimator, animate_by_year
from centroid_grid.config import (
    Config,
    GridConfig,
    get_dataset_config,
    list_datasets,
    load_config_from_env,
    register_dataset,
    resolve_dataset,
)
from centroid_grid.pipeline import Pipeline, PipelineResult

__all__ = [
    # Errors
    "CentroidGridError",
    "CoordinateRangeError",
    "CRSMismatchError",
    "DownloadError",
    "DuplicateKeyError",
    "EmptyTimelineError",
    "ExtractionError",
    "MissingColumnError",
    "MissingLayerError",
    # Data loading
    "DatasetConfig",
    "DataSource",
    "FileDataSource",
    "PointSchema",
    "load_attribute_table",
    "load_dataset",
    "load_points",
    # Enrichment
    "add_counts",
    "coordinate_key",
    "derive_date",
    "enrich_points",
    "filter_years",
    # Spatial operations
    "AggregationMethod",
    "JoinResult",
    "PointGridJoiner",
    "TieBreak",
    "aggregate_by_cell",
    "spatial_join_points",
    "to_geodataframe",
    # Grid
    "GridLoader",
    "load_grid",
    # Visualization
    "ColorScale",
    "MapStyle",
    "MapVisualizer",
    "plot_points_map",
    "AnimationResult",
    "YearAnimator",
    "animate_by_year",
    # Configuration
    "Config",
    "GridConfig",
    "get_dataset_config",
    "list_datasets",
    "load_config_from_env",
    "register_dataset",
    "resolve_dataset",
    # Pipeline
    "Pipeline",
    "PipelineResult",
]
