"""
Year-by-year animation of point centroids.

One frame is rendered per distinct year, in ascending order, over a fixed
background and a fixed marker-size scale, and written as a looping GIF.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.animation import FuncAnimation, PillowWriter

from centroid_grid.datasource import PointSchema, require_columns
from centroid_grid.errors import EmptyTimelineError
from centroid_grid.visualizer import MapStyle, MapVisualizer, marker_sizes, point_xy

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """Points shown in one animation frame."""
    year: int
    points: pd.DataFrame

    @property
    def point_count(self) -> int:
        return len(self.points)


@dataclass
class AnimationResult:
    """Summary of a written animation.

    Attributes:
        path: Location of the GIF
        years: Frame years in display order
        point_counts: Number of markers per frame
        frame_duration_ms: Delay between frames
    """
    path: Path
    years: List[int]
    point_counts: List[int]
    frame_duration_ms: int

    @property
    def frame_count(self) -> int:
        return len(self.years)


class YearAnimator:
    """Renders one map frame per year and writes them as a GIF."""

    def __init__(
        self,
        style: Optional[MapStyle] = None,
        schema: Optional[PointSchema] = None,
        frame_duration_ms: int = 1000,
        size_column: Optional[str] = "count",
        time_column: Optional[str] = None
    ):
        self.visualizer = MapVisualizer(style, schema)
        self.style = self.visualizer.default_style
        self.schema = self.visualizer.schema
        self.frame_duration_ms = frame_duration_ms
        self.size_column = size_column
        self.time_column = time_column or self.schema.year_column

    def frames(self, points: pd.DataFrame) -> List[Frame]:
        """Partition ``points`` into frames in ascending time order.

        Rows whose time value is missing, non-numeric or not a whole year
        are left out.

        Raises:
            EmptyTimelineError: If no time values remain
        """
        require_columns(points, [self.time_column])
        times = pd.to_numeric(points[self.time_column], errors="coerce")

        fractional = times.notna() & (times % 1 != 0)
        if fractional.any():
            logger.warning(
                "Skipping %d rows with non-integral values in '%s' (first: %s)",
                int(fractional.sum()), self.time_column,
                times[fractional].head(5).tolist()
            )
            times = times.mask(fractional)

        years = sorted(int(t) for t in times.dropna().unique())
        if not years:
            raise EmptyTimelineError(
                f"No values in '{self.time_column}' to build frames from"
            )

        return [Frame(year=year, points=points[times == year]) for year in years]

    def animate(
        self,
        background: gpd.GeoDataFrame,
        points: pd.DataFrame,
        path: Union[str, Path]
    ) -> AnimationResult:
        """Write a looping GIF with one frame per year.

        Args:
            background: Polygons drawn underneath every frame
            points: Points with a time column and optionally a size column
            path: Output GIF path

        Returns:
            AnimationResult describing the frames written
        """
        frames = self.frames(points)
        path = Path(path)

        fig, ax = plt.subplots(1, 1, figsize=self.style.figsize)
        self.visualizer.draw_background(background, ax, self.style)
        minx, miny, maxx, maxy = background.total_bounds
        ax.set_xlim(minx, maxx)
        ax.set_ylim(miny, maxy)
        ax.set_axis_off()

        scatter = ax.scatter(
            [], [],
            c=self.style.point_color,
            alpha=self.style.point_alpha,
            linewidths=0,
            zorder=2
        )
        title = ax.set_title("", fontsize=14, fontweight='bold')

        def draw(index):
            frame = frames[index]
            x, y = point_xy(frame.points, self.schema)
            scatter.set_offsets(np.column_stack([x, y]))
            sizes = marker_sizes(frame.points, self.size_column, self.style)
            scatter.set_sizes(np.broadcast_to(sizes, (len(x),)))
            title.set_text(str(frame.year))
            return scatter, title

        animation = FuncAnimation(
            fig,
            draw,
            frames=len(frames),
            interval=self.frame_duration_ms,
            blit=False,
            repeat=True
        )

        path.parent.mkdir(parents=True, exist_ok=True)
        writer = PillowWriter(fps=1000.0 / self.frame_duration_ms)
        try:
            animation.save(str(path), writer=writer)
        finally:
            plt.close(fig)

        result = AnimationResult(
            path=path,
            years=[f.year for f in frames],
            point_counts=[f.point_count for f in frames],
            frame_duration_ms=self.frame_duration_ms
        )
        logger.info("Wrote %d frames (%s-%s) to %s",
                    result.frame_count, result.years[0], result.years[-1], path)
        return result


def animate_by_year(
    background: gpd.GeoDataFrame,
    points: pd.DataFrame,
    path: Union[str, Path],
    frame_duration_ms: int = 1000,
    size_column: Optional[str] = "count"
) -> AnimationResult:
    """Convenience function writing a year-by-year GIF."""
    animator = YearAnimator(frame_duration_ms=frame_duration_ms, size_column=size_column)
    return animator.animate(background, points, path)
