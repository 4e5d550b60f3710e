"""
Derived columns for point tables.

Adds a calendar date, a string coordinate key and a per-location
frequency count to a loaded point table.
"""

import logging
from typing import Optional

import pandas as pd

from centroid_grid.datasource import PointSchema, require_columns

logger = logging.getLogger(__name__)

DEFAULT_PRECISION = 6


def _format_coordinate(value: float, precision: int) -> str:
    # +0.0 folds negative zero into zero
    text = f"{round(float(value), precision) + 0.0:.{precision}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return "0" if text == "-0" else text


def coordinate_key(lat, lon, precision: int = DEFAULT_PRECISION) -> Optional[str]:
    """Build the ``"lat, long"`` key for one coordinate pair.

    Both values are rounded to ``precision`` decimals so pairs that only
    differ in floating point noise share a key.

    Returns:
        The key, or None when either coordinate is missing
    """
    if pd.isna(lat) or pd.isna(lon):
        return None
    return f"{_format_coordinate(lat, precision)}, {_format_coordinate(lon, precision)}"


def derive_date(frame: pd.DataFrame, schema: Optional[PointSchema] = None) -> pd.Series:
    """Combine the year, month and day columns into a datetime Series.

    Rows whose parts are missing, non-integral or do not form a valid
    calendar date get NaT.
    """
    schema = schema or PointSchema()
    require_columns(frame, schema.date_parts)

    parts = frame[schema.date_parts].apply(pd.to_numeric, errors="coerce")
    integral = parts.notna().all(axis=1) & (parts.fillna(0) % 1 == 0).all(axis=1)

    text = pd.Series(None, index=frame.index, dtype="object")
    valid = parts[integral].astype("int64")
    text[integral] = [
        f"{y:04d}-{m:02d}-{d:02d}"
        for y, m, d in valid.itertuples(index=False, name=None)
    ]

    dates = pd.to_datetime(text, format="%Y-%m-%d", errors="coerce")
    invalid = int(dates.isna().sum())
    if invalid:
        logger.warning("%d rows do not form a valid calendar date", invalid)
    return dates


def add_coordinate_keys(
    frame: pd.DataFrame,
    schema: Optional[PointSchema] = None,
    precision: int = DEFAULT_PRECISION
) -> pd.DataFrame:
    """Return a copy of ``frame`` with the coordinate key column added."""
    schema = schema or PointSchema()
    require_columns(frame, schema.coordinate_columns)

    result = frame.copy()
    result[schema.key_column] = [
        coordinate_key(lat, lon, precision)
        for lat, lon in zip(frame[schema.lat_column], frame[schema.lon_column])
    ]
    return result


def add_counts(
    frame: pd.DataFrame,
    key_column: str = "coords",
    count_column: str = "count"
) -> pd.DataFrame:
    """Return a copy of ``frame`` with the size of each key group on every row.

    Rows are not deduplicated; each row sharing a key carries the same
    count. Rows with a missing key get a missing count.
    """
    require_columns(frame, [key_column])

    result = frame.copy()
    result[count_column] = frame.groupby(key_column)[key_column].transform("size")
    return result


def enrich_points(
    frame: pd.DataFrame,
    schema: Optional[PointSchema] = None,
    precision: int = DEFAULT_PRECISION
) -> pd.DataFrame:
    """Add date, coordinate key and count columns to a point table.

    Args:
        frame: Loaded point table
        schema: Canonical column names
        precision: Decimal places used in the coordinate key

    Returns:
        New DataFrame; ``frame`` is left untouched
    """
    schema = schema or PointSchema()

    result = frame.copy()
    result[schema.date_column] = derive_date(result, schema)
    result = add_coordinate_keys(result, schema, precision)
    result = add_counts(result, schema.key_column, schema.count_column)

    logger.info(
        "Enriched %d points at %d distinct locations",
        len(result), result[schema.key_column].nunique()
    )
    return result


def filter_years(
    frame: pd.DataFrame,
    start: Optional[int] = None,
    end: Optional[int] = None,
    schema: Optional[PointSchema] = None
) -> pd.DataFrame:
    """Keep rows whose year falls within ``[start, end]``.

    Either bound may be None to leave that side open. Rows with a missing
    or non-numeric year are dropped once any bound is given.
    """
    schema = schema or PointSchema()
    if start is None and end is None:
        return frame

    require_columns(frame, [schema.year_column])
    years = pd.to_numeric(frame[schema.year_column], errors="coerce")

    mask = years.notna()
    if start is not None:
        mask &= years >= start
    if end is not None:
        mask &= years <= end

    logger.info("Year filter [%s, %s] kept %d of %d rows", start, end, mask.sum(), len(frame))
    return frame[mask]
