"""
Data source abstraction for loading point tables and geospatial datasets.

This module covers the three kinds of input the pipeline reads:
delimited point tables (document centroids), delimited attribute tables
keyed by a grid cell id, and geometry files such as Shapefiles,
GeoPackages or GeoJSON.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import fiona
import geopandas as gpd
import pandas as pd

from centroid_grid.errors import MissingColumnError

logger = logging.getLogger(__name__)


@dataclass
class PointSchema:
    """Canonical column names of a point table.

    Attributes:
        id_column: Document or event identifier
        year_column: Year of the observation
        month_column: Month of the observation
        day_column: Day of the observation
        lat_column: Latitude in decimal degrees
        lon_column: Longitude in decimal degrees
        date_column: Name of the derived date column
        key_column: Name of the derived coordinate key column
        count_column: Name of the derived frequency column
    """
    id_column: str = "id"
    year_column: str = "year"
    month_column: str = "month"
    day_column: str = "day"
    lat_column: str = "lat"
    lon_column: str = "long"
    date_column: str = "date"
    key_column: str = "coords"
    count_column: str = "count"

    @property
    def coordinate_columns(self) -> List[str]:
        return [self.lat_column, self.lon_column]

    @property
    def date_parts(self) -> List[str]:
        return [self.year_column, self.month_column, self.day_column]


@dataclass
class DatasetConfig:
    """Configuration for a geospatial dataset.

    Attributes:
        path: Path to the data file
        id_column: Column name containing unique identifiers
        value_column: Column name containing the values to visualize/aggregate
        geometry_column: Column name for geometry (default: 'geometry')
        layer: Layer name for multi-layer formats like GeoDatabase or Shapefile directories
        name: Human-readable name for the dataset
        column_map: Explicit renames applied right after reading
    """
    path: str
    id_column: Optional[str] = None
    value_column: Optional[str] = None
    geometry_column: str = "geometry"
    layer: Optional[str] = None
    name: Optional[str] = None
    column_map: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if self.name is None:
            self.name = Path(self.path).stem


def require_columns(frame: pd.DataFrame, columns: Iterable[str]):
    """Raise MissingColumnError if any of ``columns`` is absent from ``frame``."""
    missing = [c for c in columns if c not in frame.columns]
    if missing:
        raise MissingColumnError(missing, frame.columns)


def canonical_column_map(
    columns: Iterable[str],
    column_map: Optional[Dict[str, str]] = None
) -> Dict[str, str]:
    """Build the rename mapping for a freshly read header.

    Only headers declared in ``column_map`` are renamed; every other header
    is kept as read.
    """
    column_map = column_map or {}
    return {column: column_map[column] for column in columns if column in column_map}


def normalize_id(values: pd.Series) -> pd.Series:
    """Coerce identifiers to one string form.

    Integral floats read from CSV (``12.0``) become ``"12"`` so they compare
    equal to integer ids read from a Shapefile. Missing ids stay missing.
    """
    def _to_str(value):
        if pd.isna(value):
            return None
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value).strip()

    return values.map(_to_str).astype("object")


def load_points(
    path: Union[str, Path],
    schema: Optional[PointSchema] = None,
    column_map: Optional[Dict[str, str]] = None,
    **read_csv_kwargs
) -> pd.DataFrame:
    """Load a delimited table of point records.

    Latitude and longitude are coerced to floats; values that cannot be
    parsed become NaN instead of aborting the load.

    Args:
        path: Path to the delimited file
        schema: Canonical column names
        column_map: Explicit renames from source headers to canonical names
        **read_csv_kwargs: Passed through to ``pandas.read_csv``

    Returns:
        DataFrame with one row per input line

    Raises:
        FileNotFoundError: If the file doesn't exist
        MissingColumnError: If a coordinate column is absent
    """
    schema = schema or PointSchema()
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Point table not found: {path}")

    read_csv_kwargs.setdefault("encoding", "utf-8-sig")
    frame = pd.read_csv(path, **read_csv_kwargs)
    frame = frame.rename(columns=canonical_column_map(frame.columns, column_map))
    require_columns(frame, schema.coordinate_columns)

    for column in schema.coordinate_columns:
        raw = frame[column]
        frame[column] = pd.to_numeric(raw, errors="coerce").astype(float)
        failed = int(frame[column].isna().sum() - raw.isna().sum())
        if failed:
            logger.warning(
                "%d values in column %r could not be parsed as numbers", failed, column
            )

    logger.info("Loaded %d point records from %s", len(frame), path)
    return frame


def load_attribute_table(
    path: Union[str, Path],
    id_column: str,
    column_map: Optional[Dict[str, str]] = None,
    **read_csv_kwargs
) -> pd.DataFrame:
    """Load a delimited table of thematic attributes keyed by a cell id.

    Args:
        path: Path to the delimited file
        id_column: Canonical name of the identifier column
        column_map: Explicit renames from source headers to canonical names
        **read_csv_kwargs: Passed through to ``pandas.read_csv``

    Returns:
        DataFrame with ``id_column`` normalized to strings
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Attribute table not found: {path}")

    read_csv_kwargs.setdefault("encoding", "utf-8-sig")
    frame = pd.read_csv(path, **read_csv_kwargs)
    frame = frame.rename(columns=canonical_column_map(frame.columns, column_map))
    require_columns(frame, [id_column])
    frame[id_column] = normalize_id(frame[id_column])

    logger.info(
        "Loaded %d attribute rows with %d columns from %s",
        len(frame), len(frame.columns) - 1, path
    )
    return frame


class DataSource(ABC):
    """Abstract base class for geospatial data sources."""

    @abstractmethod
    def load(self) -> gpd.GeoDataFrame:
        """Load and return the geospatial data."""
        pass

    @abstractmethod
    def get_config(self) -> DatasetConfig:
        """Return the dataset configuration."""
        pass


class FileDataSource(DataSource):
    """Data source that loads geometries from a file path.

    Supports the formats GeoPandas/Fiona can read, including Shapefile
    (single file or a directory of sibling files selected by layer),
    GeoPackage, GeoJSON and GeoDatabase.
    """

    def __init__(self, config: DatasetConfig):
        """Initialize the data source.

        Args:
            config: Dataset configuration specifying path and column mappings
        """
        self.config = config
        self._data: Optional[gpd.GeoDataFrame] = None

    def load(self) -> gpd.GeoDataFrame:
        """Load the geospatial data from file.

        Returns:
            GeoDataFrame containing the loaded data

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the specified layer doesn't exist
        """
        if self._data is not None:
            return self._data

        path = Path(self.config.path)

        if not path.exists():
            raise FileNotFoundError(f"Data file not found: {path}")

        if self.config.layer is not None:
            data = self._load_layer(path)
        else:
            data = gpd.read_file(str(path))

        renames = canonical_column_map(data.columns, self.config.column_map)
        self._data = data.rename(columns=renames)
        self._validate_columns()

        logger.info(
            "Loaded %d features from %s (crs=%s)", len(self._data), path, self._data.crs
        )
        return self._data

    def _load_layer(self, path: Path) -> gpd.GeoDataFrame:
        """Load one named layer from a multi-layer source.

        Args:
            path: Path to the source

        Returns:
            GeoDataFrame from the specified layer
        """
        available_layers = fiona.listlayers(str(path))

        if self.config.layer not in available_layers:
            raise ValueError(
                f"Layer '{self.config.layer}' not found in {path}. "
                f"Available layers: {available_layers}"
            )

        return gpd.read_file(str(path), layer=self.config.layer)

    def _validate_columns(self):
        """Validate that required columns exist in the loaded data."""
        if self._data is None:
            return

        required = [
            c for c in (self.config.id_column, self.config.value_column) if c
        ]
        require_columns(self._data, required)

    def get_config(self) -> DatasetConfig:
        """Return the dataset configuration."""
        return self.config

    def list_layers(self) -> List[str]:
        """List available layers of the source.

        Returns:
            List of layer names
        """
        return fiona.listlayers(str(self.config.path))


def load_dataset(
    path: Union[str, Path],
    id_column: Optional[str] = None,
    value_column: Optional[str] = None,
    layer: Optional[str] = None,
    name: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Convenience function to quickly load a geospatial dataset.

    Args:
        path: Path to the data file
        id_column: Column containing unique identifiers
        value_column: Optional column containing values to visualize
        layer: Layer name for multi-layer formats
        name: Human-readable name for the dataset

    Returns:
        Loaded GeoDataFrame

    Example:
        >>> cells = load_dataset(
        ...     path="data/priogrid",
        ...     id_column="gid",
        ...     layer="priogrid_cell"
        ... )
    """
    config = DatasetConfig(
        path=str(path),
        id_column=id_column,
        value_column=value_column,
        layer=layer,
        name=name
    )
    return FileDataSource(config).load()
