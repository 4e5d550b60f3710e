#!/usr/bin/env python3
"""CLI entry point for the centroid mapping pipeline."""

import argparse
import logging
import sys

import matplotlib

from centroid_grid.config import load_config_from_env
from centroid_grid.errors import CentroidGridError
from centroid_grid.pipeline import Pipeline
from centroid_grid.spatial_ops import TieBreak


def main():
    parser = argparse.ArgumentParser(
        description="Map document centroids and join them to PRIO-GRID cells"
    )
    parser.add_argument("--data-dir", help="Directory holding the input files")
    parser.add_argument("--output-dir", help="Directory for maps and the animation")
    parser.add_argument("--points", help="Point table file name inside the data dir")
    parser.add_argument("--world", help="World polygons file name inside the data dir")
    parser.add_argument("--grid-attributes", help="PRIO-GRID attribute CSV path")
    parser.add_argument(
        "--tie-break",
        choices=[t.value for t in TieBreak],
        default=TieBreak.LOWEST_ID.value,
        help="Rule for points on a shared cell boundary",
    )
    parser.add_argument("--start-year", type=int, help="First year to include")
    parser.add_argument("--end-year", type=int, help="Last year to include")
    parser.add_argument(
        "--no-download",
        action="store_true",
        help="Use an already extracted grid instead of fetching the archive",
    )
    parser.add_argument("--skip-grid", action="store_true", help="Skip the grid join")
    parser.add_argument(
        "--skip-animation", action="store_true", help="Skip the year-by-year GIF"
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")

    args = parser.parse_args()

    matplotlib.use("Agg")
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config_from_env()
    if args.data_dir:
        config.paths.data_dir = args.data_dir
    if args.output_dir:
        config.paths.output_dir = args.output_dir
    if args.points:
        config.paths.points_file = args.points
    if args.world:
        config.paths.world_file = args.world
    if args.grid_attributes:
        config.grid.attributes_path = args.grid_attributes
    config.tie_break = args.tie_break
    config.start_year = args.start_year
    config.end_year = args.end_year

    print("Starting centroid pipeline...")
    print(f"  Points: {config.paths.points_path}")
    print(f"  Output: {config.paths.output_dir}")
    print(f"  Tie-break: {config.tie_break}")
    print()

    pipeline = Pipeline(config)

    try:
        result = pipeline.run(
            skip_grid=args.skip_grid,
            skip_animation=args.skip_animation,
            download=not args.no_download,
        )
    except (CentroidGridError, FileNotFoundError) as e:
        print(f"Pipeline failed: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 50)
    print("Pipeline Complete!")
    print("=" * 50)
    print(f"Points: {len(result.points)}")
    if result.join is not None:
        print(f"Points on a shared cell boundary: {result.join.ambiguous_count}")
        print(f"Points outside the grid: {result.join.unmatched_count}")
    print()
    print("Outputs:")
    for name, path in result.outputs.items():
        print(f"  {name}: {path}")


if __name__ == "__main__":
    main()
