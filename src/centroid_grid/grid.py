"""
PRIO-GRID cell loading.

Downloads the cell Shapefile archive, unpacks it, reads the cell
polygons and left-joins a table of thematic attributes on the cell id.
"""

import logging
import shutil
import zipfile
from pathlib import Path
from typing import Optional

import geopandas as gpd
import pandas as pd
import requests

from centroid_grid.config import GridConfig, resolve_dataset
from centroid_grid.datasource import FileDataSource, load_attribute_table, normalize_id
from centroid_grid.errors import DownloadError, DuplicateKeyError, ExtractionError

logger = logging.getLogger(__name__)


class GridLoader:
    """Loads grid cell polygons and their thematic attributes.

    This class handles the process of:
    1. Downloading the Shapefile archive
    2. Extracting it to a clean directory
    3. Reading the cell layer
    4. Reading the attribute table
    5. Left-joining attributes onto cells by id
    """

    def __init__(self, config: Optional[GridConfig] = None):
        self.config = config or GridConfig()

    def download(self, force: bool = False) -> Path:
        """Fetch the archive to ``archive_path``.

        Args:
            force: Download even if the archive already exists

        Returns:
            Path of the archive

        Raises:
            DownloadError: On connection failure, non-200 status or write failure
        """
        url = self.config.url
        path = Path(self.config.archive_path)

        if path.exists() and not force:
            logger.info("Archive already present at %s, skipping download", path)
            return path

        logger.info("Downloading %s to %s", url, path)
        try:
            response = requests.get(url, stream=True, timeout=self.config.timeout)
        except requests.RequestException as e:
            raise DownloadError(f"Request failed: {e}", url, str(path)) from e

        with response:
            if response.status_code != 200:
                raise DownloadError(
                    f"Unexpected HTTP status {response.status_code}", url, str(path)
                )
            # Written under a temporary name; only a complete archive reaches ``path``
            partial = path.with_name(path.name + ".part")
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                with open(partial, "wb") as fh:
                    for chunk in response.iter_content(chunk_size=self.config.chunk_size):
                        fh.write(chunk)
                partial.replace(path)
            except requests.RequestException as e:
                partial.unlink(missing_ok=True)
                raise DownloadError(f"Transfer interrupted: {e}", url, str(path)) from e
            except OSError as e:
                partial.unlink(missing_ok=True)
                raise DownloadError(f"Could not write archive: {e}", url, str(path)) from e

        logger.info("Downloaded %d bytes", path.stat().st_size)
        return path

    def extract(self, archive: Optional[Path] = None) -> Path:
        """Unpack the archive into ``extract_dir``, replacing prior contents.

        Returns:
            Path of the extraction directory

        Raises:
            ExtractionError: If the archive is missing or not a valid zip file
        """
        archive = Path(archive or self.config.archive_path)
        target = Path(self.config.extract_dir)

        if not archive.exists():
            raise ExtractionError("Archive not found", str(archive))

        try:
            with zipfile.ZipFile(archive) as zf:
                if target.exists():
                    shutil.rmtree(target)
                target.mkdir(parents=True)
                zf.extractall(target)
                names = zf.namelist()
        except zipfile.BadZipFile as e:
            raise ExtractionError(f"Not a valid zip archive: {e}", str(archive)) from e
        except OSError as e:
            raise ExtractionError(f"Could not extract to {target}: {e}", str(archive)) from e

        logger.info("Extracted %d files to %s", len(names), target)
        return target

    def read_cells(self, directory: Optional[Path] = None) -> gpd.GeoDataFrame:
        """Read the cell polygons described by the ``dataset`` preset.

        The preset is read from ``directory`` (default ``extract_dir``); a
        configured ``layer`` takes precedence over the preset's.
        """
        dataset = resolve_dataset(
            self.config.dataset,
            directory or self.config.extract_dir,
            id_column=self.config.id_column,
            layer=self.config.layer
        )
        logger.info("Reading %s from %s", dataset.name, dataset.path)
        cells = FileDataSource(dataset).load().copy()
        cells[self.config.id_column] = normalize_id(cells[self.config.id_column])
        return cells

    def read_attributes(self, path: Optional[Path] = None) -> pd.DataFrame:
        """Read the thematic attribute table keyed by cell id."""
        return load_attribute_table(
            path or self.config.attributes_path,
            id_column=self.config.id_column,
            column_map=self.config.attribute_column_map
        )

    def join_attributes(
        self,
        cells: gpd.GeoDataFrame,
        attributes: pd.DataFrame
    ) -> gpd.GeoDataFrame:
        """Left-join attribute columns onto cells by id.

        Every cell is kept; attribute rows without a cell are dropped and cells
        without attributes get missing values.

        Raises:
            DuplicateKeyError: If the attribute table repeats a cell id
        """
        id_column = self.config.id_column

        duplicated = attributes[id_column].duplicated(keep=False)
        if duplicated.any():
            dupes = sorted(attributes.loc[duplicated, id_column].dropna().unique())
            raise DuplicateKeyError(
                f"{len(dupes)} cell ids repeat in the attribute table "
                f"(first: {dupes[:5]})"
            )

        # Only the cell geometry survives a name clash
        overlap = [c for c in attributes.columns if c != id_column and c in cells.columns]
        if overlap:
            logger.info("Attribute columns %s replace columns already on cells", overlap)
            cells = cells.drop(columns=overlap)

        joined = cells.merge(attributes, on=id_column, how="left")
        if len(joined) != len(cells):
            raise DuplicateKeyError(
                f"Join changed the cell count from {len(cells)} to {len(joined)}"
            )

        unmatched = int((~cells[id_column].isin(attributes[id_column])).sum())
        logger.info(
            "Joined %d attribute columns onto %d cells (%d without attributes)",
            len(attributes.columns) - 1, len(joined), unmatched
        )
        return joined

    def load(
        self,
        download: bool = True,
        force: bool = False
    ) -> gpd.GeoDataFrame:
        """Run download, extraction, reading and the attribute join.

        Args:
            download: Fetch and extract the archive first
            force: Re-download even if the archive exists
        """
        if download:
            archive = self.download(force=force)
            self.extract(archive)

        cells = self.read_cells()
        attributes = self.read_attributes()
        return self.join_attributes(cells, attributes)


def load_grid(config: Optional[GridConfig] = None, download: bool = True) -> gpd.GeoDataFrame:
    """Convenience function returning grid cells with their attributes."""
    return GridLoader(config).load(download=download)
