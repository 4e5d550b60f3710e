"""
Configuration for the centroid_grid pipeline.

Every input and output location is a named setting with a documented
default, overridable through environment variables. Dataset presets for the
geometry layers the pipeline reads are kept in a registry.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional, Tuple

from centroid_grid.datasource import DatasetConfig, PointSchema


PRIOGRID_URL = "https://grid.prio.org/extensions/priogrid_cellshp.zip"
PRIOGRID_LAYER = "priogrid_cell"
PRIOGRID_ID_COLUMN = "gid"


@dataclass
class PathsConfig:
    """Locations of inputs and outputs."""

    data_dir: str = field(
        default_factory=lambda: os.getenv("CENTROID_GRID_DATA_DIR", "./data")
    )
    output_dir: str = field(
        default_factory=lambda: os.getenv("CENTROID_GRID_OUTPUT_DIR", "./output")
    )
    points_file: str = field(
        default_factory=lambda: os.getenv("CENTROID_GRID_POINTS", "centroids.csv")
    )
    world_file: str = field(
        default_factory=lambda: os.getenv(
            "CENTROID_GRID_WORLD", "ne_110m_admin_0_countries.zip"
        )
    )

    @property
    def points_path(self) -> Path:
        return Path(self.data_dir) / self.points_file

    @property
    def world_path(self) -> Path:
        return Path(self.data_dir) / self.world_file

    @property
    def point_map_path(self) -> Path:
        return Path(self.output_dir) / "point_map.png"

    @property
    def thematic_map_path(self) -> Path:
        return Path(self.output_dir) / "thematic_map.png"

    @property
    def animation_path(self) -> Path:
        return Path(self.output_dir) / "centroids_by_year.gif"


@dataclass
class GridConfig:
    """PRIO-GRID download and join settings."""

    url: str = field(default_factory=lambda: os.getenv("PRIOGRID_URL", PRIOGRID_URL))
    archive_path: str = field(
        default_factory=lambda: os.getenv(
            "PRIOGRID_ARCHIVE", "./data/priogrid_cellshp.zip"
        )
    )
    extract_dir: str = field(
        default_factory=lambda: os.getenv("PRIOGRID_EXTRACT_DIR", "./data/priogrid")
    )
    attributes_path: str = field(
        default_factory=lambda: os.getenv(
            "PRIOGRID_ATTRIBUTES", "./data/priogrid_static.csv"
        )
    )
    # Registry preset describing the cell layer; its path is replaced by extract_dir
    dataset: str = "priogrid"
    # None reads the layer named by the preset
    layer: Optional[str] = None
    id_column: str = PRIOGRID_ID_COLUMN
    # Source header -> canonical name, applied to the attribute table.
    attribute_column_map: Dict[str, str] = field(
        default_factory=lambda: {
            "﻿gid": PRIOGRID_ID_COLUMN,
            "ï»¿gid": PRIOGRID_ID_COLUMN,
        }
    )
    timeout: float = 60.0
    chunk_size: int = 1 << 16


@dataclass
class PlotConfig:
    """Rendering settings shared by maps and animations."""

    background_color: str = "lightgrey"
    edge_color: str = "white"
    edge_width: float = 0.2
    point_color: str = "darkred"
    point_alpha: float = 0.6
    size_scale: float = 4.0
    figsize: Tuple[int, int] = (12, 6)
    frame_duration_ms: int = 1000
    thematic_column: str = "forest_gc"
    colormap: str = "YlGn"
    dpi: int = 150


@dataclass
class Config:
    """Main configuration container."""

    paths: PathsConfig = field(default_factory=PathsConfig)
    grid: GridConfig = field(default_factory=GridConfig)
    plot: PlotConfig = field(default_factory=PlotConfig)
    schema: PointSchema = field(default_factory=PointSchema)

    # Registry preset for the background polygons; its path is replaced by paths.world_path
    background_dataset: str = "world"
    crs: str = "EPSG:4326"
    coordinate_precision: int = 6
    # One of spatial_ops.TieBreak values
    tie_break: str = "lowest_id"
    start_year: Optional[int] = None
    end_year: Optional[int] = None


# Global config instance
config = Config()


def load_config_from_env() -> Config:
    """Load configuration from environment variables."""
    return Config(
        paths=PathsConfig(),
        grid=GridConfig(),
        plot=PlotConfig(),
        schema=PointSchema(),
    )


WORLD_COUNTRIES = DatasetConfig(
    path="./data/ne_110m_admin_0_countries.zip",
    name="Natural Earth countries (1:110m)"
)

PRIOGRID_CELLS = DatasetConfig(
    path="./data/priogrid",
    id_column=PRIOGRID_ID_COLUMN,
    layer=PRIOGRID_LAYER,
    name="PRIO-GRID cells (0.5 degree)"
)


class DatasetRegistry:
    """Named presets for the geometry layers the pipeline reads.

    A preset fixes the layer, id column and display name of a source. The
    pipeline looks presets up by name and substitutes its configured path.
    """

    def __init__(self):
        self._datasets: Dict[str, DatasetConfig] = {}
        self.register("world", WORLD_COUNTRIES)
        self.register("countries", WORLD_COUNTRIES)
        self.register("priogrid", PRIOGRID_CELLS)

    def register(self, name: str, config: DatasetConfig):
        """Add or replace the preset stored under ``name`` (case-insensitive)."""
        self._datasets[name.lower()] = config

    def get(self, name: str) -> DatasetConfig:
        """Return the preset stored under ``name``.

        Raises:
            KeyError: If no preset has that name; the message lists known names
        """
        key = name.lower()
        if key not in self._datasets:
            raise KeyError(
                f"Dataset '{name}' not found. Available datasets: {sorted(self._datasets)}"
            )
        return self._datasets[key]

    def resolve(self, name: str, path, **overrides) -> DatasetConfig:
        """Copy of the ``name`` preset reading from ``path``.

        Overrides whose value is None leave the preset's setting in place.
        """
        preset = self.get(name)
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(preset, path=str(path), **changes)

    def list_datasets(self) -> Dict[str, str]:
        """Map each preset name to its display name."""
        return {key: preset.name for key, preset in self._datasets.items()}


registry = DatasetRegistry()


def get_dataset_config(name: str) -> DatasetConfig:
    """Look up a preset in the module registry.

    Example:
        >>> get_dataset_config("priogrid").layer
        'priogrid_cell'
    """
    return registry.get(name)


def resolve_dataset(name: str, path, **overrides) -> DatasetConfig:
    """Preset ``name`` from the module registry, reading from ``path``."""
    return registry.resolve(name, path, **overrides)


def register_dataset(name: str, config: DatasetConfig):
    registry.register(name, config)


def list_datasets() -> Dict[str, str]:
    return registry.list_datasets()
