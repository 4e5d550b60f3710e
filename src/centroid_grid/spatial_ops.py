"""
Spatial operations on point centroids and grid cells.

This module converts point tables to geometries, joins points to the
grid cells containing them with an explicit tie-break for points on
shared cell boundaries, and aggregates joined points per cell.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely

from centroid_grid.datasource import PointSchema, require_columns
from centroid_grid.errors import CoordinateRangeError, CRSMismatchError

logger = logging.getLogger(__name__)

DEFAULT_CRS = "EPSG:4326"

MATCH_COUNT_COLUMN = "match_count"
_ORDER_COLUMN = "_point_order"
_CELL_INDEX_COLUMN = "index_right"

class AggregationMethod(Enum):
    """Supported aggregation methods for per-cell summaries."""
    MEAN = "mean"
    SUM = "sum"
    COUNT = "count"
    MIN = "min"
    MAX = "max"
    MEDIAN = "median"
    FIRST = "first"
    LAST = "last"

class TieBreak(Enum):
    """Rule for points contained by more than one grid cell."""
    LOWEST_ID = "lowest_id"
    NEAREST_CENTROID = "nearest_centroid"
    DROP = "drop"

@dataclass
class JoinResult:
    """Result of a point-to-grid join.

    Attributes:
        data: One row per input point, in input order, with cell attributes
        cell_id_column: Column name for grid cell identifiers
        ambiguous_count: Points matched by more than one cell before tie-breaking
        unmatched_count: Points outside every cell
        tie_break: Rule applied to the ambiguous points
    """
    data: gpd.GeoDataFrame
    cell_id_column: str
    ambiguous_count: int
    unmatched_count: int
    tie_break: TieBreak

def validate_coordinates(
    frame: pd.DataFrame,
    schema: Optional[PointSchema] = None
):
    """Check that non-missing coordinates are numeric and within range.

    Raises:
        CoordinateRangeError: If any latitude falls outside [-90, 90] or any
            longitude outside [-180, 180]
    """
    schema = schema or PointSchema()
    require_columns(frame, schema.coordinate_columns)

    problems = []
    for column, limit in ((schema.lat_column, 90), (schema.lon_column, 180)):
        values = frame[column]
        if not pd.api.types.is_numeric_dtype(values):
            raise CoordinateRangeError(
                f"Column '{column}' is not numeric (dtype={values.dtype})"
            )
        bad = values.notna() & ((values < -limit) | (values > limit))
        if bad.any():
            first = frame.index[bad.to_numpy()][:5].tolist()
            problems.append(
                f"{int(bad.sum())} values in '{column}' outside "
                f"[-{limit}, {limit}] (first rows: {first})"
            )

    if problems:
        raise CoordinateRangeError("; ".join(problems))

def to_geodataframe(
    frame: pd.DataFrame,
    schema: Optional[PointSchema] = None,
    crs: str = DEFAULT_CRS,
    drop_missing: bool = True,
    keep_coordinates: bool = False
) -> gpd.GeoDataFrame:
    """Turn the latitude/longitude columns of a point table into point geometries.

    Args:
        frame: Point table with numeric coordinate columns
        schema: Canonical column names
        crs: Coordinate reference system of the coordinates
        drop_missing: Drop rows with a missing coordinate instead of raising
        keep_coordinates: Keep the latitude/longitude columns next to the geometry

    Returns:
        GeoDataFrame tagged with ``crs``

    Raises:
        CoordinateRangeError: On non-numeric or out of range coordinates, or on
            missing coordinates when ``drop_missing`` is False
    """
    schema = schema or PointSchema()
    validate_coordinates(frame, schema)

    missing = frame[schema.coordinate_columns].isna().any(axis=1)
    if missing.any():
        if not drop_missing:
            raise CoordinateRangeError(
                f"{int(missing.sum())} rows have missing coordinates "
                f"(first rows: {frame.index[missing.to_numpy()][:5].tolist()})"
            )
        logger.warning("Dropping %d rows with missing coordinates", int(missing.sum()))
        frame = frame[~missing]

    geometry = gpd.points_from_xy(frame[schema.lon_column], frame[schema.lat_column])
    data = frame if keep_coordinates else frame.drop(columns=schema.coordinate_columns)
    return gpd.GeoDataFrame(data, geometry=geometry, crs=crs)

def check_crs(
    points: gpd.GeoDataFrame,
    cells: gpd.GeoDataFrame,
    align: bool = False
) -> gpd.GeoDataFrame:
    """Make sure two layers share a coordinate reference system.

    Args:
        points: Layer to validate and optionally reproject
        cells: Reference layer
        align: Reproject ``points`` to the CRS of ``cells`` on mismatch

    Returns:
        ``points``, reprojected when ``align`` is set and the CRS differ

    Raises:
        CRSMismatchError: If either layer has no CRS, or the CRS differ and
            ``align`` is False
    """
    if points.crs is None or cells.crs is None:
        missing = [
            name for name, layer in (("points", points), ("cells", cells))
            if layer.crs is None
        ]
        raise CRSMismatchError(f"Layers without a CRS: {missing}")

    if points.crs == cells.crs:
        return points

    if not align:
        raise CRSMismatchError(
            f"CRS mismatch: points use {points.crs.to_string()}, "
            f"cells use {cells.crs.to_string()}"
        )

    logger.info("Reprojecting points from %s to %s", points.crs, cells.crs)
    return points.to_crs(cells.crs)

def _id_sort_key(ids: pd.Series) -> pd.Series:
    """Sort key for cell ids: numeric when every id parses as a number."""
    present = ids.notna()
    numeric = pd.to_numeric(ids, errors="coerce")
    if (numeric.notna() == present).all():
        return numeric
    return ids.map(lambda value: None if pd.isna(value) else str(value))

class PointGridJoiner:
    """Joins point geometries to the grid cells that contain them.

    The join happens in three steps:
    1. Validating that both layers share a CRS
    2. Matching every point against every intersecting cell
    3. Resolving points matched by several cells with a ``TieBreak``

    The output has exactly one row per input point, in input order.
    """

    def __init__(
        self,
        cells: gpd.GeoDataFrame,
        cell_id_column: str = "gid",
        tie_break: TieBreak = TieBreak.LOWEST_ID,
        align_crs: bool = False
    ):
        """Initialize the joiner.

        Args:
            cells: Grid cell polygons with attribute columns
            cell_id_column: Column holding the cell identifier
            tie_break: Rule for points matched by more than one cell
            align_crs: Reproject points to the cell CRS instead of failing on mismatch
        """
        require_columns(cells, [cell_id_column])
        # sjoin names the matched-cell column after the index name
        self.cells = cells.rename_axis(index=None)
        self.cell_id_column = cell_id_column
        self.tie_break = tie_break
        self.align_crs = align_crs

    def _cells_for(self, points: gpd.GeoDataFrame):
        """Cells with columns renamed where they clash with point columns.

        Point columns keep their names through the join; a clashing cell
        column ``x`` becomes ``cell_x``.

        Returns:
            Tuple of (cells, cell id column name)
        """
        point_columns = set(points.columns) - {points.geometry.name}
        clashes = [
            c for c in self.cells.columns
            if c != self.cells.geometry.name and c in point_columns
        ]
        if not clashes:
            return self.cells, self.cell_id_column

        renames = {c: f"cell_{c}" for c in clashes}
        logger.warning("Renaming cell columns that clash with point columns: %s", renames)
        return (
            self.cells.rename(columns=renames),
            renames.get(self.cell_id_column, self.cell_id_column),
        )

    def join(self, points: gpd.GeoDataFrame) -> JoinResult:
        """Attach the attributes of the containing cell to each point.

        Args:
            points: Point geometries

        Returns:
            JoinResult with one row per input point
        """
        points = check_crs(points, self.cells, align=self.align_crs)

        if points.index.has_duplicates:
            raise ValueError(
                "Point index must be unique; it identifies points through the join"
            )

        cells, cell_id_column = self._cells_for(points)
        left = points.copy()
        left[_ORDER_COLUMN] = np.arange(len(left))

        matches = gpd.sjoin(left, cells, how="left", predicate="intersects")
        match_counts = matches.groupby(level=0)[_CELL_INDEX_COLUMN].count()
        matches[MATCH_COUNT_COLUMN] = match_counts.reindex(matches.index).to_numpy()

        ambiguous = match_counts[match_counts > 1]
        unmatched = int((match_counts == 0).sum())

        resolved = self._resolve(matches, cells, cell_id_column, ambiguous.index)
        resolved = resolved.sort_values(_ORDER_COLUMN, kind="stable")
        resolved = resolved.drop(columns=[_ORDER_COLUMN, _CELL_INDEX_COLUMN])

        if len(ambiguous):
            logger.warning(
                "%d points matched several cells; resolved with tie-break '%s'",
                len(ambiguous), self.tie_break.value
            )
        if unmatched:
            logger.info("%d points fall outside every cell", unmatched)

        return JoinResult(
            data=resolved,
            cell_id_column=cell_id_column,
            ambiguous_count=len(ambiguous),
            unmatched_count=unmatched,
            tie_break=self.tie_break
        )

    def _resolve(
        self,
        matches: gpd.GeoDataFrame,
        cells: gpd.GeoDataFrame,
        cell_id_column: str,
        ambiguous_keys: pd.Index
    ) -> gpd.GeoDataFrame:
        """Keep one row per point key according to the tie-break rule."""
        matches = matches.copy()
        matches["_point_key"] = matches.index
        matches["_id_key"] = _id_sort_key(matches[cell_id_column])

        sort_columns = ["_point_key", "_id_key"]
        if self.tie_break == TieBreak.NEAREST_CENTROID:
            matches["_distance"] = self._centroid_distance(matches, cells)
            sort_columns = ["_point_key", "_distance", "_id_key"]

        matches = matches.sort_values(sort_columns, kind="stable", na_position="last")
        resolved = matches[~matches["_point_key"].duplicated(keep="first")].copy()

        if self.tie_break == TieBreak.DROP and len(ambiguous_keys):
            cell_columns = [
                c for c in cells.columns
                if c != cells.geometry.name and c in resolved.columns
            ]
            keep = ~resolved["_point_key"].isin(ambiguous_keys)
            for column in cell_columns + [_CELL_INDEX_COLUMN]:
                resolved[column] = resolved[column].where(keep)

        helper = [c for c in ("_point_key", "_id_key", "_distance") if c in resolved.columns]
        return resolved.drop(columns=helper)

    def _centroid_distance(
        self,
        matches: gpd.GeoDataFrame,
        cells: gpd.GeoDataFrame
    ) -> np.ndarray:
        """Distance from each point to the centroid of its matched cell."""
        matched = matches[_CELL_INDEX_COLUMN].notna().to_numpy()
        distance = np.full(len(matches), np.nan)
        if not matched.any():
            return distance

        cell_index = matches[_CELL_INDEX_COLUMN][matched]
        if pd.api.types.is_integer_dtype(cells.index):
            cell_index = cell_index.astype("int64")

        # Planar distance in the layer CRS; only the ranking is used.
        centroids = shapely.centroid(cells.geometry.loc[cell_index].to_numpy())
        points = matches.geometry.to_numpy()[matched]
        distance[matched] = shapely.distance(points, centroids)
        return distance

def spatial_join_points(
    points: gpd.GeoDataFrame,
    cells: gpd.GeoDataFrame,
    cell_id_column: str = "gid",
    tie_break: Union[str, TieBreak] = TieBreak.LOWEST_ID,
    align_crs: bool = False
) -> JoinResult:
    """Convenience function for joining points to grid cells.

    Example:
        >>> result = spatial_join_points(
        ...     points=centroids,
        ...     cells=priogrid,
        ...     cell_id_column="gid",
        ...     tie_break="nearest_centroid"
        ... )
        >>> result.data["forest_gc"]
    """
    joiner = PointGridJoiner(
        cells,
        cell_id_column=cell_id_column,
        tie_break=TieBreak(tie_break),
        align_crs=align_crs
    )
    return joiner.join(points)

def aggregate_by_cell(
    joined: pd.DataFrame,
    cells: gpd.GeoDataFrame,
    cell_id_column: str = "gid",
    value_column: Optional[str] = None,
    aggregation: AggregationMethod = AggregationMethod.COUNT,
    keep_empty: bool = False,
    joined_id_column: Optional[str] = None
) -> gpd.GeoDataFrame:
    """Summarize joined points per grid cell.

    Args:
        joined: Output of a point join (``JoinResult.data``)
        cells: Grid cell polygons
        cell_id_column: Column holding the cell identifier on ``cells``
        value_column: Column to aggregate; None counts points
        aggregation: Aggregation applied to ``value_column``
        keep_empty: Keep cells without any point (value is missing)
        joined_id_column: Cell identifier column of ``joined`` when it differs
            from ``cell_id_column`` (see ``JoinResult.cell_id_column``)

    Returns:
        Cell geometries with a ``points`` count column, plus
        ``<value_column>_<aggregation>`` when a value column is given
    """
    joined_id_column = joined_id_column or cell_id_column
    require_columns(joined, [joined_id_column])
    matched = joined[joined[joined_id_column].notna()]
    grouped = matched.groupby(joined_id_column)

    summary = grouped.size().to_frame(name="points")
    if value_column is not None:
        require_columns(joined, [value_column])
        summary[f"{value_column}_{aggregation.value}"] = (
            grouped[value_column].agg(aggregation.value)
        )

    how = "left" if keep_empty else "inner"
    return cells.merge(summary, left_on=cell_id_column, right_index=True, how=how)
