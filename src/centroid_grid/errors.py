"""Exception types raised by the centroid_grid pipeline."""

from typing import Optional


class CentroidGridError(Exception):
    """Base class for all pipeline errors."""


class MissingColumnError(CentroidGridError, KeyError):
    """A required column is absent from a table."""

    def __init__(self, columns, available=None):
        self.columns = list(columns)
        self.available = list(available) if available is not None else None
        message = f"Missing required columns: {self.columns}"
        if self.available is not None:
            message += f". Available columns: {self.available}"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class CoordinateRangeError(CentroidGridError, ValueError):
    """Latitude or longitude values are out of range."""


class CRSMismatchError(CentroidGridError, ValueError):
    """Two datasets carry missing or different coordinate reference systems."""


class DuplicateKeyError(CentroidGridError, ValueError):
    """A key expected to be unique appears more than once."""


class MissingLayerError(CentroidGridError, ValueError):
    """A layer required for rendering is missing or empty."""


class EmptyTimelineError(CentroidGridError, ValueError):
    """No time values are available to build an animation from."""


class DownloadError(CentroidGridError, IOError):
    """Fetching a remote archive failed."""

    def __init__(self, message: str, url: str, path: Optional[str] = None):
        self.url = url
        self.path = path
        detail = f"{message} (url={url}"
        if path is not None:
            detail += f", path={path}"
        super().__init__(detail + ")")


class ExtractionError(CentroidGridError, IOError):
    """Unpacking a downloaded archive failed."""

    def __init__(self, message: str, path: str):
        self.path = path
        super().__init__(f"{message} (path={path})")
